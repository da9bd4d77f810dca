"""Selection and confirmation of block checkpoints.

A checkpoint candidate is only saved once every enabled processor has
committed the block it refers to, so a restart from it loses nothing.
"""

from __future__ import annotations

import asyncio
import logging
import queue
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from time import monotonic
from typing import Any, Optional

from spectreidx.models import Hash
from spectreidx.settings import Settings

log = logging.getLogger(__name__)

CHECKPOINT_SAVE_INTERVAL = 60
CHECKPOINT_WARN_INTERVAL = 60
CHECKPOINT_FAILED_TIMEOUT = 600


class CheckpointOrigin(Enum):
    """Which processor reported a checkpoint block."""

    BLOCKS = "Blocks"
    TRANSACTIONS = "Transactions"
    VCP = "Vcp"
    INITIAL = "Initial"


@dataclass(frozen=True)
class CheckpointBlock:
    """A block that has been committed by one of the processors."""

    origin: CheckpointOrigin
    hash: Hash
    timestamp: int
    daa_score: int
    blue_score: int


class CheckpointTracker:
    """Tracks checkpoint candidates and decides when one may be saved."""

    def __init__(self, settings: Settings, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock if clock is not None else monotonic
        self._disable_vcp = settings.is_disabled("virtual_chain_processing")
        self._disable_tx = settings.is_disabled("transaction_processing")
        self._failed_margin = CHECKPOINT_FAILED_TIMEOUT * settings.net_bps
        now = self._clock()
        self._last_saved = now
        self._last_warned = now
        self._candidate: Optional[CheckpointBlock] = None
        self._last_block_blue_score = 0
        self._last_tx_blue_score = 0
        self._blocks_processed: set[Hash] = set()
        self._txs_processed: set[Hash] = set()
        self._ok_blocks = False
        self._ok_txs = False

    @property
    def candidate(self) -> Optional[CheckpointBlock]:
        """The checkpoint currently waiting for confirmation, if any."""
        return self._candidate

    def _seconds_since(self, instant: float) -> int:
        return int(self._clock() - instant)

    def _maybe_select(self, block: CheckpointBlock, blocks_ok: bool) -> None:
        if self._candidate is None and self._seconds_since(self._last_saved) > CHECKPOINT_SAVE_INTERVAL:
            log.debug("Selected block_checkpoint candidate %s", block.hash.hex())
            self._candidate = block
            self._last_warned = self._clock()
            self._ok_blocks = blocks_ok
            self._ok_txs = False

    def offer(self, block: CheckpointBlock) -> Optional[CheckpointBlock]:
        """Record a committed block; return the checkpoint to save, if one is ready."""
        if block.origin is CheckpointOrigin.BLOCKS:
            self._last_block_blue_score = block.blue_score
            if self._disable_vcp:
                self._maybe_select(block, blocks_ok=True)
            else:
                self._blocks_processed.add(block.hash)
        elif block.origin is CheckpointOrigin.TRANSACTIONS:
            self._last_tx_blue_score = block.blue_score
            self._txs_processed.add(block.hash)
        elif block.origin is CheckpointOrigin.VCP:
            self._maybe_select(block, blocks_ok=False)

        candidate = self._candidate
        if candidate is None:
            return None

        if not self._ok_blocks and candidate.hash in self._blocks_processed:
            self._ok_blocks = True
        self._blocks_processed = set()
        if not self._ok_txs and (self._disable_tx or candidate.hash in self._txs_processed):
            self._ok_txs = True
        self._txs_processed = set()

        if self._ok_blocks and self._ok_txs:
            log.info("Saving block_checkpoint %s", candidate.hash.hex())
            self._last_saved = self._clock()
            self._candidate = None
            return candidate
        if self._seconds_since(self._last_warned) > CHECKPOINT_WARN_INTERVAL:
            log.warning("Still unable to save block_checkpoint %s", candidate.hash.hex())
            self._last_warned = self._clock()
        elif self._last_block_blue_score > candidate.blue_score + self._failed_margin and (
            self._disable_tx or self._last_tx_blue_score > candidate.blue_score + self._failed_margin
        ):
            log.error("Failed to synchronize on block_checkpoint %s", candidate.hash.hex())
            self._last_saved = self._clock()
            self._candidate = None
        return None


async def process_checkpoints(
    settings: Settings,
    run: Any,
    checkpoint_queue: Any,
    save: Callable[[CheckpointBlock], Awaitable[Any]],
) -> None:
    """Consume checkpoint blocks while ``run.is_set()`` and await ``save`` for each confirmed one.

    ``checkpoint_queue`` may be an :class:`asyncio.Queue` or a :class:`queue.Queue`.
    """
    tracker = CheckpointTracker(settings)
    while run.is_set():
        try:
            block = checkpoint_queue.get_nowait()
        except (asyncio.QueueEmpty, queue.Empty):
            await asyncio.sleep(0.1)
            continue
        ready = tracker.offer(block)
        if ready is not None:
            await save(ready)