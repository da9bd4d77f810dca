import asyncio
import queue
import threading
from unittest.mock import patch

import pytest

from spectreidx.checkpoint import (
    CHECKPOINT_FAILED_TIMEOUT,
    CheckpointBlock,
    CheckpointOrigin,
    CheckpointTracker,
    process_checkpoints,
)
from spectreidx.models import Hash
from spectreidx.settings import Settings

HASH_A = Hash(bytes([1]) * 32)
HASH_B = Hash(bytes([2]) * 32)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class StepClock:
    """Returns 0 on the first call and a late time afterwards."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return 0.0 if self.calls == 1 else 1000.0


def settings(disable=()):
    return Settings(net_bps=1, net_tps_max=300, checkpoint=HASH_A, disable=set(disable))


def block(origin, h=HASH_A, blue_score=100):
    return CheckpointBlock(origin=origin, hash=h, timestamp=1, daa_score=blue_score, blue_score=blue_score)


def test_no_candidate_before_save_interval():
    clock = FakeClock()
    tracker = CheckpointTracker(settings(), clock)
    assert tracker.offer(block(CheckpointOrigin.VCP)) is None
    assert tracker.candidate is None


def test_vcp_candidate_needs_blocks_and_transactions():
    clock = FakeClock()
    tracker = CheckpointTracker(settings(), clock)
    clock.now = 61
    vcp = block(CheckpointOrigin.VCP)
    assert tracker.offer(vcp) is None
    assert tracker.candidate == vcp
    assert tracker.offer(block(CheckpointOrigin.BLOCKS)) is None
    assert tracker.candidate == vcp
    saved = tracker.offer(block(CheckpointOrigin.TRANSACTIONS))
    assert saved == vcp
    assert tracker.candidate is None


def test_exactly_sixty_seconds_is_not_enough():
    clock = FakeClock()
    tracker = CheckpointTracker(settings(), clock)
    clock.now = 60.5
    tracker.offer(block(CheckpointOrigin.VCP))
    assert tracker.candidate is None


def test_transaction_processing_disabled_saves_on_blocks():
    clock = FakeClock()
    tracker = CheckpointTracker(settings(disable={"transaction_processing"}), clock)
    clock.now = 61
    vcp = block(CheckpointOrigin.VCP)
    tracker.offer(vcp)
    assert tracker.offer(block(CheckpointOrigin.BLOCKS)) == vcp


def test_virtual_chain_disabled_selects_block_origin():
    clock = FakeClock()
    tracker = CheckpointTracker(settings(disable={"virtual_chain_processing"}), clock)
    clock.now = 61
    blk = block(CheckpointOrigin.BLOCKS)
    assert tracker.offer(blk) is None
    assert tracker.candidate == blk
    assert tracker.offer(block(CheckpointOrigin.TRANSACTIONS)) == blk


def test_everything_disabled_saves_immediately():
    clock = FakeClock()
    tracker = CheckpointTracker(
        settings(disable={"virtual_chain_processing", "transaction_processing"}), clock
    )
    clock.now = 61
    blk = block(CheckpointOrigin.BLOCKS)
    assert tracker.offer(blk) == blk


def test_no_new_candidate_right_after_save():
    clock = FakeClock()
    tracker = CheckpointTracker(settings(disable={"transaction_processing"}), clock)
    clock.now = 61
    tracker.offer(block(CheckpointOrigin.VCP))
    assert tracker.offer(block(CheckpointOrigin.BLOCKS)) is not None
    tracker.offer(block(CheckpointOrigin.VCP, HASH_B))
    assert tracker.candidate is None


def test_candidate_dropped_after_failed_timeout():
    clock = FakeClock()
    tracker = CheckpointTracker(settings(disable={"transaction_processing"}), clock)
    clock.now = 61
    tracker.offer(block(CheckpointOrigin.VCP, HASH_A, blue_score=100))
    far = block(CheckpointOrigin.BLOCKS, HASH_B, blue_score=100 + CHECKPOINT_FAILED_TIMEOUT + 1)
    assert tracker.offer(far) is None
    assert tracker.candidate is None
    tracker.offer(block(CheckpointOrigin.VCP, HASH_B))
    assert tracker.candidate is None


def test_candidate_kept_at_failed_boundary():
    clock = FakeClock()
    tracker = CheckpointTracker(settings(disable={"transaction_processing"}), clock)
    clock.now = 61
    vcp = block(CheckpointOrigin.VCP, HASH_A, blue_score=100)
    tracker.offer(vcp)
    tracker.offer(block(CheckpointOrigin.BLOCKS, HASH_B, blue_score=100 + CHECKPOINT_FAILED_TIMEOUT))
    assert tracker.candidate == vcp


def test_warning_keeps_candidate(caplog):
    clock = FakeClock()
    tracker = CheckpointTracker(settings(), clock)
    clock.now = 61
    vcp = block(CheckpointOrigin.VCP)
    tracker.offer(vcp)
    clock.now = 200
    with caplog.at_level("WARNING"):
        tracker.offer(block(CheckpointOrigin.BLOCKS, HASH_B))
    assert tracker.candidate == vcp
    assert any("Still unable to save block_checkpoint" in r.message for r in caplog.records)


def test_initial_origin_ignored():
    clock = FakeClock()
    tracker = CheckpointTracker(settings(), clock)
    clock.now = 61
    assert tracker.offer(block(CheckpointOrigin.INITIAL)) is None
    assert tracker.candidate is None


@pytest.mark.asyncio
async def test_process_checkpoints_saves_and_stops():
    run = threading.Event()
    run.set()
    q = asyncio.Queue()
    vcp = block(CheckpointOrigin.VCP)
    q.put_nowait(vcp)
    q.put_nowait(block(CheckpointOrigin.BLOCKS))
    saved = []

    async def save(cp):
        saved.append(cp)
        run.clear()

    with patch("spectreidx.checkpoint.monotonic", new=StepClock()):
        await asyncio.wait_for(
            process_checkpoints(settings(disable={"transaction_processing"}), run, q, save), timeout=5
        )
    assert saved == [vcp]


@pytest.mark.asyncio
async def test_process_checkpoints_returns_when_stopped():
    run = threading.Event()
    q = queue.Queue()
    q.put(block(CheckpointOrigin.VCP))

    async def save(cp):
        raise AssertionError("nothing should be saved")

    await asyncio.wait_for(process_checkpoints(settings(), run, q, save), timeout=5)
    assert q.qsize() == 1