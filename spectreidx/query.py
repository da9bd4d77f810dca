"""SQL statements for reading and writing the indexer tables.

Every function takes an :class:`Executor`, a small asynchronous interface
over a PostgreSQL connection pool using ``$n`` positional placeholders.
Values of type :class:`~spectreidx.models.Hash` are bound as their raw bytes.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, AsyncContextManager, Optional, Protocol, runtime_checkable

from spectreidx.models import (
    AddressTransaction,
    Block,
    BlockParent,
    BlockTransaction,
    DatabaseDetails,
    Hash,
    ScriptTransaction,
    Subnetwork,
    TableDetails,
    Transaction,
    TransactionAcceptance,
    TransactionInput,
    TransactionOutput,
)

Row = Mapping[str, Any]


class RowNotFound(LookupError):
    """A query that must return one row returned none."""


@runtime_checkable
class Executor(Protocol):
    """Asynchronous access to a PostgreSQL database.

    Rows are mappings from column name to value, in column order.
    """

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a statement and return the number of rows it affected."""
        ...

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        """Run a query and return its first row, or None if it has none."""
        ...

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        """Run a query and return all of its rows."""
        ...

    def transaction(self) -> AsyncContextManager["Executor"]:
        """Open a transaction committed when the block exits without error."""
        ...


def _encode(value: Any) -> Any:
    if isinstance(value, Hash):
        return value.as_bytes()
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    return value


def _params(values: Sequence[Any]) -> list[Any]:
    return [_encode(value) for value in values]


def _first_column(row: Optional[Row]) -> Any:
    if row is None:
        raise RowNotFound("query returned no rows")
    return next(iter(row.values()))


async def _fetch_required(db: Executor, sql: str, params: Sequence[Any] = ()) -> Row:
    row = await db.fetch_one(sql, params)
    if row is None:
        raise RowNotFound("query returned no rows")
    return row


def generate_placeholders(rows: int, columns: int) -> str:
    """Return ``($1, $2), ($3, $4), ...`` for a multi-row VALUES clause."""
    return ", ".join(
        "(" + ", ".join(f"${row * columns + col}" for col in range(1, columns + 1)) + ")"
        for row in range(rows)
    )


async def insert_subnetwork(subnetwork_id: str, db: Executor) -> int:
    """Insert a subnetwork and return its generated id."""
    row = await db.fetch_one(
        "INSERT INTO subnetworks (subnetwork_id) VALUES ($1) ON CONFLICT DO NOTHING RETURNING id",
        [subnetwork_id],
    )
    return _first_column(row)


async def insert_blocks(blocks: Sequence[Block], db: Executor) -> int:
    """Insert blocks inside a transaction; return the number of new rows."""
    columns = 15
    sql = (
        "INSERT INTO blocks (hash, accepted_id_merkle_root, merge_set_blues_hashes, merge_set_reds_hashes, "
        "selected_parent_hash, bits, blue_score, blue_work, daa_score, hash_merkle_root, nonce, pruning_point, "
        "timestamp, utxo_commitment, version"
        f") VALUES {generate_placeholders(len(blocks), columns)} ON CONFLICT DO NOTHING"
    )
    params = _params(
        [
            value
            for b in blocks
            for value in (
                b.hash,
                b.accepted_id_merkle_root,
                b.merge_set_blues_hashes,
                b.merge_set_reds_hashes,
                b.selected_parent_hash,
                b.bits,
                b.blue_score,
                b.blue_work,
                b.daa_score,
                b.hash_merkle_root,
                b.nonce,
                b.pruning_point,
                b.timestamp,
                b.utxo_commitment,
                b.version,
            )
        ]
    )
    async with db.transaction() as tx:
        return await tx.execute(sql, params)


async def insert_block_parents(block_parents: Sequence[BlockParent], db: Executor) -> int:
    """Insert block/parent edges; return the number of new rows."""
    sql = (
        "INSERT INTO block_parent (block_hash, parent_hash) "
        f"VALUES {generate_placeholders(len(block_parents), 2)} ON CONFLICT DO NOTHING"
    )
    params = _params([v for bp in block_parents for v in (bp.block_hash, bp.parent_hash)])
    return await db.execute(sql, params)


async def insert_transactions(transactions: Sequence[Transaction], db: Executor) -> int:
    """Insert transactions; return the number of new rows."""
    sql = (
        "INSERT INTO transactions (transaction_id, subnetwork_id, hash, mass, payload, block_time) "
        f"VALUES {generate_placeholders(len(transactions), 6)} ON CONFLICT DO NOTHING"
    )
    params = _params(
        [
            v
            for t in transactions
            for v in (t.transaction_id, t.subnetwork_id, t.hash, t.mass, t.payload, t.block_time)
        ]
    )
    return await db.execute(sql, params)


_INPUT_COLUMNS = (
    "transaction_id, index, previous_outpoint_hash, previous_outpoint_index, "
    "signature_script, sig_op_count, block_time, previous_outpoint_script, previous_outpoint_amount"
)


async def insert_transaction_inputs(
    resolve_previous_outpoints: bool,
    transaction_inputs: Sequence[TransactionInput],
    db: Executor,
) -> int:
    """Insert inputs, optionally filling previous outpoint data from stored outputs."""
    placeholders = generate_placeholders(len(transaction_inputs), 9)
    if resolve_previous_outpoints:
        sql = (
            f"INSERT INTO transactions_inputs ({_INPUT_COLUMNS}) "
            "SELECT i.transaction_id, i.index, i.previous_outpoint_hash, i.previous_outpoint_index, "
            "i.signature_script, i.sig_op_count, i.block_time, "
            "COALESCE(i.previous_outpoint_script, o.script_public_key), "
            "COALESCE(i.previous_outpoint_amount, o.amount) "
            f"FROM (VALUES {placeholders}) AS i ({_INPUT_COLUMNS}) "
            "LEFT JOIN transactions_outputs o "
            "ON i.previous_outpoint_hash = o.transaction_id "
            "AND i.previous_outpoint_index = o.index "
            "ON CONFLICT DO NOTHING"
        )
    else:
        sql = (
            f"INSERT INTO transactions_inputs ({_INPUT_COLUMNS}) "
            f"VALUES {placeholders} ON CONFLICT DO NOTHING"
        )
    params = _params(
        [
            v
            for i in transaction_inputs
            for v in (
                i.transaction_id,
                i.index,
                i.previous_outpoint_hash,
                i.previous_outpoint_index,
                i.signature_script,
                i.sig_op_count,
                i.block_time,
                i.previous_outpoint_script,
                i.previous_outpoint_amount,
            )
        ]
    )
    return await db.execute(sql, params)


async def insert_transaction_outputs(transaction_outputs: Sequence[TransactionOutput], db: Executor) -> int:
    """Insert transaction outputs; return the number of new rows."""
    sql = (
        "INSERT INTO transactions_outputs "
        "(transaction_id, index, amount, script_public_key, script_public_key_address, block_time) "
        f"VALUES {generate_placeholders(len(transaction_outputs), 6)} ON CONFLICT DO NOTHING"
    )
    params = _params(
        [
            v
            for o in transaction_outputs
            for v in (
                o.transaction_id,
                o.index,
                o.amount,
                o.script_public_key,
                o.script_public_key_address,
                o.block_time,
            )
        ]
    )
    return await db.execute(sql, params)


async def insert_address_transactions(address_transactions: Sequence[AddressTransaction], db: Executor) -> int:
    """Insert address/transaction relations; return the number of new rows."""
    sql = (
        "INSERT INTO addresses_transactions (address, transaction_id, block_time) "
        f"VALUES {generate_placeholders(len(address_transactions), 3)} ON CONFLICT DO NOTHING"
    )
    params = _params([v for a in address_transactions for v in (a.address, a.transaction_id, a.block_time)])
    return await db.execute(sql, params)


async def insert_script_transactions(script_transactions: Sequence[ScriptTransaction], db: Executor) -> int:
    """Insert script/transaction relations; return the number of new rows."""
    sql = (
        "INSERT INTO scripts_transactions (script_public_key, transaction_id, block_time) "
        f"VALUES {generate_placeholders(len(script_transactions), 3)} ON CONFLICT DO NOTHING"
    )
    params = _params(
        [v for s in script_transactions for v in (s.script_public_key, s.transaction_id, s.block_time)]
    )
    return await db.execute(sql, params)


async def insert_address_transactions_from_inputs(
    use_tx: bool, transaction_ids: Sequence[Hash], db: Executor
) -> int:
    """Add address relations for the spent outputs of the given transactions' inputs."""
    if use_tx:
        sql = (
            "INSERT INTO addresses_transactions (address, transaction_id, block_time) "
            "SELECT o.script_public_key_address, i.transaction_id, t.block_time "
            "FROM transactions_inputs i "
            "JOIN transactions t ON t.transaction_id = i.transaction_id "
            "JOIN transactions_outputs o ON o.transaction_id = i.previous_outpoint_hash "
            "AND o.index = i.previous_outpoint_index "
            "WHERE i.transaction_id = ANY($1) AND t.transaction_id = ANY($1) "
            "ON CONFLICT DO NOTHING"
        )
    else:
        sql = (
            "INSERT INTO addresses_transactions (address, transaction_id, block_time) "
            "SELECT o.script_public_key_address, i.transaction_id, i.block_time "
            "FROM transactions_inputs i "
            "JOIN transactions_outputs o ON o.transaction_id = i.previous_outpoint_hash "
            "AND o.index = i.previous_outpoint_index "
            "WHERE i.transaction_id = ANY($1) "
            "ON CONFLICT DO NOTHING"
        )
    return await db.execute(sql, [_encode(list(transaction_ids))])


async def insert_script_transactions_from_inputs(
    use_tx: bool, transaction_ids: Sequence[Hash], db: Executor
) -> int:
    """Add script relations for the spent outputs of the given transactions' inputs."""
    if use_tx:
        sql = (
            "INSERT INTO scripts_transactions (script_public_key, transaction_id, block_time) "
            "SELECT o.script_public_key, i.transaction_id, t.block_time "
            "FROM transactions_inputs i "
            "JOIN transactions t ON t.transaction_id = i.transaction_id "
            "JOIN transactions_outputs o ON o.transaction_id = i.previous_outpoint_hash "
            "AND o.index = i.previous_outpoint_index "
            "WHERE i.transaction_id = ANY($1) AND t.transaction_id = ANY($1) "
            "ON CONFLICT DO NOTHING"
        )
    else:
        sql = (
            "INSERT INTO scripts_transactions (script_public_key, transaction_id, block_time) "
            "SELECT o.script_public_key, i.transaction_id, i.block_time "
            "FROM transactions_inputs i "
            "JOIN transactions_outputs o ON o.transaction_id = i.previous_outpoint_hash "
            "AND o.index = i.previous_outpoint_index "
            "WHERE i.transaction_id = ANY($1) "
            "ON CONFLICT DO NOTHING"
        )
    return await db.execute(sql, [_encode(list(transaction_ids))])


async def insert_block_transactions(block_transactions: Sequence[BlockTransaction], db: Executor) -> int:
    """Insert block/transaction memberships; return the number of new rows."""
    sql = (
        "INSERT INTO blocks_transactions (block_hash, transaction_id) "
        f"VALUES {generate_placeholders(len(block_transactions), 2)} ON CONFLICT DO NOTHING"
    )
    params = _params([v for bt in block_transactions for v in (bt.block_hash, bt.transaction_id)])
    return await db.execute(sql, params)


async def insert_transaction_acceptances(tx_acceptances: Sequence[TransactionAcceptance], db: Executor) -> int:
    """Insert transaction acceptances; return the number of new rows."""
    sql = (
        "INSERT INTO transactions_acceptances (transaction_id, block_hash) "
        f"VALUES {generate_placeholders(len(tx_acceptances), 2)} ON CONFLICT DO NOTHING"
    )
    params = _params([v for ta in tx_acceptances for v in (ta.transaction_id, ta.block_hash)])
    return await db.execute(sql, params)


async def delete_transaction_acceptances(block_hashes: Sequence[Hash], db: Executor) -> int:
    """Delete acceptances made by the given blocks; return the number of rows removed."""
    return await db.execute(
        "DELETE FROM transactions_acceptances WHERE block_hash = ANY($1)",
        [_encode(list(block_hashes))],
    )


async def execute_ddl(ddl: str, db: Executor) -> None:
    """Run each non-blank ';'-separated statement of a DDL script in order."""
    for statement in (s for s in ddl.split(";") if s.strip()):
        await db.execute(statement)


async def select_database_details(db: Executor) -> DatabaseDetails:
    """Return size and activity figures for the current database."""
    row = await _fetch_required(
        db,
        "SELECT "
        "current_database() AS database_name, "
        "current_schema() AS schema_name, "
        "pg_database_size(current_database()) AS database_size, "
        "(SELECT count(*) AS active_queries FROM pg_stat_activity "
        "WHERE state = 'active' AND pid <> pg_backend_pid()) AS active_queries, "
        "(SELECT count(*) FROM pg_locks WHERE NOT granted) AS blocked_queries, "
        "(SELECT count(*) FROM pg_stat_activity) AS active_connections, "
        "(SELECT setting::int FROM pg_settings WHERE name = 'max_connections') AS max_connections",
    )
    return DatabaseDetails(
        database_name=row["database_name"],
        schema_name=row["schema_name"],
        database_size=row["database_size"],
        active_queries=row["active_queries"],
        blocked_queries=row["blocked_queries"],
        active_connections=row["active_connections"],
        max_connections=row["max_connections"],
    )


async def select_all_table_details(db: Executor) -> list[TableDetails]:
    """Return size details for every table of the current schema, ordered by name."""
    rows = await db.fetch_all(
        "SELECT "
        "cls.relname AS name, "
        "pg_total_relation_size(cls.relname::text) AS total_size, "
        "pg_indexes_size(cls.relname::text) AS indexes_size, "
        "cls.reltuples::bigint AS approximate_row_count "
        "FROM pg_class cls "
        "JOIN pg_namespace nsp ON cls.relnamespace = nsp.oid "
        "WHERE nsp.nspname = current_schema() "
        "AND cls.relkind = 'r' "
        "ORDER BY cls.relname"
    )
    return [
        TableDetails(
            name=row["name"],
            total_size=row["total_size"],
            indexes_size=row["indexes_size"],
            approximate_row_count=row["approximate_row_count"],
        )
        for row in rows
    ]


async def select_var(key: str, db: Executor) -> str:
    """Return the value stored under ``key``; raise RowNotFound if absent."""
    row = await db.fetch_one("SELECT value FROM vars WHERE key = $1", [key])
    return _first_column(row)


async def select_subnetworks(db: Executor) -> list[Subnetwork]:
    """Return all known subnetworks."""
    rows = await db.fetch_all("SELECT id, subnetwork_id FROM subnetworks")
    return [Subnetwork(id=row["id"], subnetwork_id=row["subnetwork_id"]) for row in rows]


async def select_tx_count(block_hash: Hash, db: Executor) -> int:
    """Return the number of transactions recorded for a block."""
    row = await db.fetch_one(
        "SELECT COUNT(*) FROM blocks_transactions WHERE block_hash = $1", [_encode(block_hash)]
    )
    return _first_column(row)


async def select_is_chain_block(block_hash: Hash, db: Executor) -> bool:
    """Return whether the block has accepted any transactions."""
    row = await db.fetch_one(
        "SELECT EXISTS(SELECT 1 FROM transactions_acceptances WHERE block_hash = $1)",
        [_encode(block_hash)],
    )
    return bool(_first_column(row))


async def upsert_var(key: str, value: str, db: Executor) -> int:
    """Store ``value`` under ``key``, replacing any previous value."""
    return await db.execute(
        "INSERT INTO vars (key, value) VALUES ($1, $2) ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value",
        [key, value],
    )