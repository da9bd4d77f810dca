# spectreidx

Building blocks for indexing a block DAG into a PostgreSQL database: row
models, asynchronous SQL statements, checkpoint tracking, shutdown handling
and batched block and transaction writes. The package has no third-party
dependencies.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

### `spectreidx.models`

Dataclasses for the table rows: `Block`, `BlockParent`, `BlockTransaction`,
`Transaction`, `TransactionInput`, `TransactionOutput`,
`TransactionAcceptance`, `AddressTransaction`, `ScriptTransaction`,
`Subnetwork` and `Var`, plus `DatabaseDetails` and `TableDetails` for
server statistics.

Equality and hashing follow each table's key columns, so rows can be
deduplicated in sets: a `Block` is identified by its `hash`, a `Transaction`
by its `transaction_id`, inputs and outputs by `(transaction_id, index)`,
a `Subnetwork` by its `subnetwork_id` string.

`Hash` wraps exactly 32 bytes (`ValueError` otherwise, `TypeError` for
non-bytes). `Hash.from_hex(text)` parses one, `as_bytes()` returns the raw
bytes and `hex()` (also `str()`) the lowercase hexadecimal form.

### `spectreidx.query`

Asynchronous insert, select, delete and upsert functions. Each takes an
object following the `Executor` protocol, with `execute`, `fetch_one`,
`fetch_all` and `transaction()`, using `$n` positional placeholders. `Hash`
values, and lists of them, are bound as raw bytes. Functions that need a
row and get none raise `RowNotFound`.

- Inserts: `insert_blocks` (inside a transaction), `insert_block_parents`,
  `insert_transactions`, `insert_transaction_inputs` (optionally filling the
  previous outpoint script and amount from stored outputs),
  `insert_transaction_outputs`, `insert_address_transactions`,
  `insert_script_transactions`, `insert_address_transactions_from_inputs`,
  `insert_script_transactions_from_inputs`, `insert_block_transactions`,
  `insert_transaction_acceptances`, `insert_subnetwork`. All use
  `ON CONFLICT DO NOTHING` and return the number of affected rows (the id,
  for `insert_subnetwork`).
- `delete_transaction_acceptances`, `upsert_var`, `execute_ddl` (runs each
  non-blank `;`-separated statement in order).
- Selects: `select_database_details`, `select_all_table_details`,
  `select_var`, `select_subnetworks`, `select_tx_count`,
  `select_is_chain_block`.
- `generate_placeholders(rows, columns)` builds multi-row VALUES lists:

```python
from spectreidx.query import generate_placeholders

generate_placeholders(2, 3)
# '($1, $2, $3), ($4, $5, $6)'
```

### `spectreidx.settings`

`Settings` holds `net_bps`, `net_tps_max`, the starting `checkpoint` hash,
`disable_vcp_wait_for_sync`, `batch_scale` (must lie between 0.1 and 10.0,
else `ValueError`), `cache_ttl`, and the name sets `disable`, `enable` and
`exclude_fields`. `is_disabled`, `is_enabled` and `is_excluded` accept
strings or enum members; names compare case-insensitively with `-` and `_`
treated alike.

### `spectreidx.checkpoint`

`CheckpointTracker.offer(block)` takes `CheckpointBlock`s reported by the
block processor, the transaction processor or the virtual chain processor
(`CheckpointOrigin`) and returns a checkpoint once every enabled processor
has committed it. A new candidate is chosen at most once every 60 seconds;
a warning is logged every 60 seconds while one waits, and it is dropped
once processing has moved 600 seconds' worth of blocks past it.

`process_checkpoints(settings, run, checkpoint_queue, save)` drives a
tracker from an `asyncio.Queue` or `queue.Queue` while `run.is_set()`, and
awaits `save(block)` for every confirmed checkpoint.

### `spectreidx.signals`

`ShutdownHandler(run)` clears the `threading.Event` on the first SIGINT or
SIGTERM and raises `SystemExit(1)` on the next. `install()` registers it and
returns the handlers it replaced; `request_stop(name)` does the same work
directly.

### `spectreidx.blocks`

- `check_lag(synced, lag_count, newest_block_timestamp, now)` returns the
  updated lag counter, logging a warning and resetting after 15 consecutive
  checks where the newest block is at least 30 seconds old.
- `crescendo(net_bps, daa_score)` logs countdown warnings at one block per
  second and raises `CrescendoActivated` once DAA score 110165000 is reached.
- `insert_blocks_batched`, `insert_block_parents_batched` and
  `delete_transaction_acceptances_batched` split their input into batches
  sized by `batch_scale` and return the summed row counts; a failing batch
  raises `RuntimeError`.

### `spectreidx.transactions`

- `SubnetworkRegistry(db)` caches subnetwork keys: `load()` reads all known
  ones, `resolve(subnetwork_id)` returns a key, inserting unknown ids.
- `resolve_inputs_from_outputs(tx_inputs, tx_outputs)` fills the previous
  outpoint script and amount of inputs that spend outputs of the same batch,
  in place, and returns how many were filled.
- `insert_txs`, `insert_tx_inputs`, `insert_tx_outputs`,
  `insert_input_tx_addr`, `insert_input_tx_script`, `insert_output_tx_addr`,
  `insert_output_tx_script` and `insert_block_txs` write in scaled batches.

## What this package does not do

It is a library, not a running indexer. It has no command-line program, no
client for a node's RPC interface, no block-fetching or processing loop that
ties the pieces together, no web server or metrics endpoint, no database
schema definitions and no database driver: you supply an `Executor` backed
by the PostgreSQL driver of your choice.