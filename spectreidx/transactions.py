"""Batched transaction writes, subnetwork lookup and input pre-resolution."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from spectreidx import query
from spectreidx.blocks import _batch_size, _run_batched
from spectreidx.models import (
    AddressTransaction,
    BlockTransaction,
    Hash,
    ScriptTransaction,
    Transaction,
    TransactionInput,
    TransactionOutput,
)
from spectreidx.query import Executor

log = logging.getLogger(__name__)

TXS_BATCH_BASE = 250
TXS_BATCH_MAX = 8000
TX_INPUTS_BATCH_BASE = 250
TX_INPUTS_BATCH_MAX = 8000
TX_OUTPUTS_BATCH_BASE = 250
TX_OUTPUTS_BATCH_MAX = 10000
INPUT_RELATIONS_BATCH_BASE = 100
INPUT_RELATIONS_BATCH_MAX = 8000
OUTPUT_RELATIONS_BATCH_BASE = 250
OUTPUT_RELATIONS_BATCH_MAX = 20000
BLOCK_TXS_BATCH_BASE = 500
BLOCK_TXS_BATCH_MAX = 30000


class SubnetworkRegistry:
    """Maps subnetwork id strings to their database keys, inserting unknown ones."""

    def __init__(self, db: Executor) -> None:
        self._db = db
        self._keys: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, subnetwork_id: object) -> bool:
        return subnetwork_id in self._keys

    async def load(self) -> int:
        """Load all known subnetworks; return how many are now known."""
        for subnetwork in await query.select_subnetworks(self._db):
            self._keys[subnetwork.subnetwork_id] = subnetwork.id
        log.info("Loaded %d known subnetworks", len(self._keys))
        return len(self._keys)

    async def resolve(self, subnetwork_id: str) -> int:
        """Return the key of a subnetwork, inserting it if it is new."""
        key = self._keys.get(subnetwork_id)
        if key is not None:
            return key
        try:
            key = await query.insert_subnetwork(subnetwork_id, self._db)
        except Exception as exc:
            raise RuntimeError(f"Insert subnetwork FAILED: {exc}") from exc
        self._keys[subnetwork_id] = key
        log.info("Committed new subnetwork, id: %s subnetwork_id: %s", key, subnetwork_id)
        return key


def resolve_inputs_from_outputs(
    tx_inputs: Iterable[TransactionInput], tx_outputs: Iterable[TransactionOutput]
) -> int:
    """Fill previous outpoint script and amount of inputs spending outputs of the same batch.

    Inputs are updated in place; returns how many were resolved.
    """
    outputs = {(o.transaction_id, o.index): o for o in tx_outputs}
    resolved = 0
    for tx_input in tx_inputs:
        if tx_input.previous_outpoint_hash is None or tx_input.previous_outpoint_index is None:
            raise ValueError(
                f"Input {tx_input.transaction_id}:{tx_input.index} has no previous outpoint"
            )
        output = outputs.get((tx_input.previous_outpoint_hash, tx_input.previous_outpoint_index))
        if output is not None:
            tx_input.previous_outpoint_script = output.script_public_key
            tx_input.previous_outpoint_amount = output.amount
            resolved += 1
    if resolved:
        log.debug("Pre-resolved %d tx_inputs from tx_outputs", resolved)
    return resolved


async def insert_txs(batch_scale: float, values: Sequence[Transaction], db: Executor) -> int:
    """Insert transactions in scaled batches; return the number of new rows."""
    size = _batch_size(batch_scale, TXS_BATCH_BASE, TXS_BATCH_MAX)
    return await _run_batched(
        "transactions", "Insert", values, size, lambda chunk: query.insert_transactions(chunk, db)
    )


async def insert_tx_inputs(
    batch_scale: float,
    resolve_previous_outpoints: bool,
    values: Sequence[TransactionInput],
    db: Executor,
) -> int:
    """Insert transaction inputs in scaled batches; return the number of new rows."""
    size = _batch_size(batch_scale, TX_INPUTS_BATCH_BASE, TX_INPUTS_BATCH_MAX)
    return await _run_batched(
        "transaction_inputs",
        "Insert",
        values,
        size,
        lambda chunk: query.insert_transaction_inputs(resolve_previous_outpoints, chunk, db),
    )


async def insert_tx_outputs(batch_scale: float, values: Sequence[TransactionOutput], db: Executor) -> int:
    """Insert transaction outputs in scaled batches; return the number of new rows."""
    size = _batch_size(batch_scale, TX_OUTPUTS_BATCH_BASE, TX_OUTPUTS_BATCH_MAX)
    return await _run_batched(
        "transactions_outputs",
        "Insert",
        values,
        size,
        lambda chunk: query.insert_transaction_outputs(chunk, db),
    )


async def insert_input_tx_addr(batch_scale: float, use_tx: bool, values: Sequence[Hash], db: Executor) -> int:
    """Add address relations from the inputs of the given transactions, in batches."""
    size = _batch_size(batch_scale, INPUT_RELATIONS_BATCH_BASE, INPUT_RELATIONS_BATCH_MAX)
    return await _run_batched(
        "input addresses_transactions",
        "Insert",
        values,
        size,
        lambda chunk: query.insert_address_transactions_from_inputs(use_tx, chunk, db),
    )


async def insert_input_tx_script(batch_scale: float, use_tx: bool, values: Sequence[Hash], db: Executor) -> int:
    """Add script relations from the inputs of the given transactions, in batches."""
    size = _batch_size(batch_scale, INPUT_RELATIONS_BATCH_BASE, INPUT_RELATIONS_BATCH_MAX)
    return await _run_batched(
        "input scripts_transactions",
        "Insert",
        values,
        size,
        lambda chunk: query.insert_script_transactions_from_inputs(use_tx, chunk, db),
    )


async def insert_output_tx_addr(batch_scale: float, values: Sequence[AddressTransaction], db: Executor) -> int:
    """Insert address relations of outputs in scaled batches."""
    size = _batch_size(batch_scale, OUTPUT_RELATIONS_BATCH_BASE, OUTPUT_RELATIONS_BATCH_MAX)
    return await _run_batched(
        "output addresses_transactions",
        "Insert",
        values,
        size,
        lambda chunk: query.insert_address_transactions(chunk, db),
    )


async def insert_output_tx_script(batch_scale: float, values: Sequence[ScriptTransaction], db: Executor) -> int:
    """Insert script relations of outputs in scaled batches."""
    size = _batch_size(batch_scale, OUTPUT_RELATIONS_BATCH_BASE, OUTPUT_RELATIONS_BATCH_MAX)
    return await _run_batched(
        "output scripts_transactions",
        "Insert",
        values,
        size,
        lambda chunk: query.insert_script_transactions(chunk, db),
    )


async def insert_block_txs(batch_scale: float, values: Sequence[BlockTransaction], db: Executor) -> int:
    """Insert block/transaction memberships in scaled batches."""
    size = _batch_size(batch_scale, BLOCK_TXS_BATCH_BASE, BLOCK_TXS_BATCH_MAX)
    return await _run_batched(
        "block/transaction mappings",
        "Insert",
        values,
        size,
        lambda chunk: query.insert_block_transactions(chunk, db),
    )