"""Batched block writes and the health checks made while fetching blocks."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterator, Sequence
from itertools import islice
from typing import Optional, TypeVar

from spectreidx import query
from spectreidx.models import Block, BlockParent, Hash
from spectreidx.query import Executor

log = logging.getLogger(__name__)

T = TypeVar("T")

CRESCENDO_DAA_SCORE = 110165000
LAG_SKEW_SECONDS = 30
LAG_WARN_COUNT = 15

BLOCKS_BATCH_BASE = 200
BLOCKS_BATCH_MAX = 3500
BLOCK_PARENTS_BATCH_BASE = 400
BLOCK_PARENTS_BATCH_MAX = 10000
ACCEPTANCES_BATCH_BASE = 100
ACCEPTANCES_BATCH_MAX = 50000


class CrescendoActivated(RuntimeError):
    """The network switched block rate; the indexer must restart to adapt."""


def check_lag(synced: bool, lag_count: int, newest_block_timestamp: int, now: Optional[int] = None) -> int:
    """Return the updated lag counter, warning once the fetcher has lagged long enough.

    ``newest_block_timestamp`` is in milliseconds, ``now`` in seconds since the epoch.
    """
    if synced:
        if now is None:
            now = int(time.time())
        skew_seconds = now - newest_block_timestamp // 1000
        if skew_seconds >= LAG_SKEW_SECONDS:
            if lag_count >= LAG_WARN_COUNT:
                log.warning("Block fetcher is lagging behind. Newest block is %d seconds old", skew_seconds)
                return 0
            return lag_count + 1
    return 0


def crescendo(net_bps: int, daa_score: int) -> Optional[int]:
    """Warn ahead of the block-rate change and raise once it is reached.

    Returns the remaining countdown when running at one block per second,
    otherwise None.
    """
    if net_bps != 1:
        return None
    countdown = CRESCENDO_DAA_SCORE - daa_score
    if countdown <= 0:
        raise CrescendoActivated("Crescendo activated, shutting down for automatic bps adjustment...")
    if countdown <= 600:
        log.warning(
            "Crescendo activation in ~%d seconds. "
            "On activation indexer will shutdown for automatic bps adjustment",
            countdown,
        )
    elif countdown <= 86400 and countdown % 10 == 0:
        log.warning(
            "Crescendo activation in %d minutes. "
            "On activation indexer will shutdown for automatic bps adjustment",
            countdown // 60,
        )
    return countdown


def _batch_size(batch_scale: float, base: int, maximum: int) -> int:
    size = min(int(base * batch_scale), maximum)
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}")
    return size


def _chunks(values: Sequence[T], size: int) -> Iterator[list[T]]:
    it = iter(values)
    while chunk := list(islice(it, size)):
        yield chunk


async def _run_batched(
    key: str,
    verb: str,
    values: Sequence[T],
    size: int,
    write: Callable[[list[T]], Awaitable[int]],
) -> int:
    start = time.monotonic()
    log.debug("Processing %d %s", len(values), key)
    rows_affected = 0
    for chunk in _chunks(values, size):
        try:
            rows_affected += await write(chunk)
        except Exception as exc:
            raise RuntimeError(f"{verb} {key} FAILED: {exc}") from exc
    log.debug("Committed %d %s in %dms", rows_affected, key, int((time.monotonic() - start) * 1000))
    return rows_affected


async def insert_blocks_batched(batch_scale: float, values: Sequence[Block], db: Executor) -> int:
    """Insert blocks in scaled batches; return the number of new rows."""
    size = _batch_size(batch_scale, BLOCKS_BATCH_BASE, BLOCKS_BATCH_MAX)
    return await _run_batched("blocks", "Insert", values, size, lambda chunk: query.insert_blocks(chunk, db))


async def insert_block_parents_batched(batch_scale: float, values: Sequence[BlockParent], db: Executor) -> int:
    """Insert block/parent edges in scaled batches; return the number of new rows."""
    size = _batch_size(batch_scale, BLOCK_PARENTS_BATCH_BASE, BLOCK_PARENTS_BATCH_MAX)
    return await _run_batched(
        "block_parents", "Insert", values, size, lambda chunk: query.insert_block_parents(chunk, db)
    )


async def delete_transaction_acceptances_batched(
    batch_scale: float, block_hashes: Sequence[Hash], db: Executor
) -> int:
    """Delete acceptances of the given blocks in scaled batches; return rows removed."""
    size = _batch_size(batch_scale, ACCEPTANCES_BATCH_BASE, ACCEPTANCES_BATCH_MAX)
    return await _run_batched(
        "transaction_acceptances",
        "Deleting",
        block_hashes,
        size,
        lambda chunk: query.delete_transaction_acceptances(chunk, db),
    )