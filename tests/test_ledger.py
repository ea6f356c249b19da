"""Unit tests for the fire-and-forget vote ledger."""

import asyncio
import threading
from datetime import datetime, timezone

import pytest

from hydravote.database.ledger import LedgerWriter, SQLiteLedgerStore
from hydravote.database.repositories import AnalysisRepository, VoteRepository
from hydravote.engine.consensus import calculate_consensus


class MemoryStore:
    """In-memory ledger store that can be told to fail or block."""

    def __init__(self, fail_votes: bool = False):
        self.fail_votes = fail_votes
        self.votes = []
        self.consensus = []
        self.gate = threading.Event()
        self.gate.set()

    def insert_vote(self, analysis_id, vote):
        self.gate.wait(timeout=5)
        if self.fail_votes:
            raise RuntimeError("disk full")
        self.votes.append((analysis_id, vote.provider_id))

    def insert_consensus(self, analysis_id, consensus, created_at=None):
        self.gate.wait(timeout=5)
        self.consensus.append((analysis_id, consensus.estimated_value))


@pytest.mark.asyncio
async def test_records_are_written_in_background(make_vote):
    """Test queued writes reach the store once flushed."""
    store = MemoryStore()
    ledger = LedgerWriter(store)

    ledger.record_vote("a1", make_vote("openai"))
    ledger.record_vote("a1", make_vote("anthropic"))
    ledger.record_consensus("a1", calculate_consensus([make_vote()]))
    await ledger.close()

    assert store.votes == [("a1", "openai"), ("a1", "anthropic")]
    assert store.consensus == [("a1", 100.0)]
    assert ledger.written == 3
    assert ledger.pending == 0


@pytest.mark.asyncio
async def test_record_does_not_wait_for_store(make_vote):
    """Test recording returns immediately while the store is blocked."""
    store = MemoryStore()
    store.gate.clear()
    ledger = LedgerWriter(store)

    ledger.record_vote("a1", make_vote("openai"))
    ledger.record_vote("a1", make_vote("google"))
    await asyncio.sleep(0.05)

    assert store.votes == []

    store.gate.set()
    await ledger.close()
    assert len(store.votes) == 2


@pytest.mark.asyncio
async def test_store_failures_are_swallowed(make_vote):
    """Test a failing store is logged and counted, never raised."""
    store = MemoryStore(fail_votes=True)
    ledger = LedgerWriter(store)

    ledger.record_vote("a1", make_vote("openai"))
    ledger.record_consensus("a1", calculate_consensus([]))
    await ledger.close()

    assert ledger.failed == 1
    assert ledger.written == 1
    assert store.consensus == [("a1", 0.0)]


@pytest.mark.asyncio
async def test_full_queue_drops_writes(make_vote):
    """Test writes beyond the pending limit are dropped."""
    store = MemoryStore()
    store.gate.clear()
    ledger = LedgerWriter(store, max_pending=2)

    for provider_id in ["p1", "p2", "p3", "p4"]:
        ledger.record_vote("a1", make_vote(provider_id))

    assert ledger.dropped >= 1

    store.gate.set()
    await ledger.close()
    assert len(store.votes) + ledger.dropped == 4


def test_record_without_event_loop_is_dropped(make_vote):
    """Test recording outside an event loop drops instead of raising."""
    ledger = LedgerWriter(MemoryStore())

    ledger.record_vote("a1", make_vote())

    assert ledger.dropped == 1


@pytest.mark.asyncio
async def test_sqlite_store_last_write_wins(db, make_vote):
    """Test re-recording a provider's vote for an analysis replaces it."""
    ledger = LedgerWriter(SQLiteLedgerStore(db))
    created_at = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)

    ledger.record_vote("a1", make_vote("openai", value=100))
    ledger.record_vote("a1", make_vote("openai", value=150))
    ledger.record_consensus("a1", calculate_consensus([make_vote("openai", value=150)]), created_at)
    await ledger.close()

    votes = VoteRepository(db).get_by_analysis("a1")
    assert len(votes) == 1
    assert votes[0]["estimated_value"] == 150

    stored = AnalysisRepository(db).get("a1")
    assert stored["estimated_value"] == 150
    assert stored["created_at"] == "2026-03-04 12:00:00"
    assert stored["consensus_metrics"]["total_weight"] == pytest.approx(0.8)
