"""Fire-and-forget persistence of votes and consensus results."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Protocol, Tuple

from hydravote.database.repositories import AnalysisRepository, VoteRepository
from hydravote.engine.models import ConsensusResult, ModelVote

logger = logging.getLogger(__name__)


class LedgerStore(Protocol):
    """Durable store for votes and consensus results."""

    def insert_vote(self, analysis_id: str, vote: ModelVote) -> None:
        ...

    def insert_consensus(
        self, analysis_id: str, consensus: ConsensusResult, created_at: Optional[datetime] = None
    ) -> None:
        ...


class SQLiteLedgerStore:
    """LedgerStore backed by the vote and analysis repositories."""

    def __init__(self, db=None):
        """Initialize store with database connection."""
        self.votes = VoteRepository(db)
        self.analyses = AnalysisRepository(db)

    def insert_vote(self, analysis_id: str, vote: ModelVote) -> None:
        self.votes.upsert(analysis_id, vote)

    def insert_consensus(
        self, analysis_id: str, consensus: ConsensusResult, created_at: Optional[datetime] = None
    ) -> None:
        self.analyses.create_or_update(analysis_id, consensus, created_at)


class LedgerWriter:
    """Queues ledger writes and performs them on a background worker.

    ``record_vote`` and ``record_consensus`` never block and never raise: a
    full queue drops the write and a failing store call is logged and
    swallowed. Store calls run in a worker thread so a slow database cannot
    stall the event loop.
    """

    def __init__(self, store: LedgerStore, max_pending: int = 1000):
        """Initialize ledger writer.

        Args:
            store: Durable store
            max_pending: Maximum queued writes before new ones are dropped
        """
        self.store = store
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._worker: Optional[asyncio.Task] = None
        self.written = 0
        self.failed = 0
        self.dropped = 0

    def start(self) -> None:
        """Start the background worker. Requires a running event loop."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    def _enqueue(self, description: str, func: Callable[..., Any], *args: Any) -> None:
        try:
            self.start()
            self._queue.put_nowait((description, func, args))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Ledger queue full, dropping {description}")
        except RuntimeError as e:
            self.dropped += 1
            logger.warning(f"Ledger unavailable, dropping {description}: {e}")

    def record_vote(self, analysis_id: str, vote: ModelVote) -> None:
        """Queue a vote for persistence."""
        self._enqueue(
            f"vote {analysis_id}/{vote.provider_id}", self.store.insert_vote, analysis_id, vote
        )

    def record_consensus(
        self, analysis_id: str, consensus: ConsensusResult, created_at: Optional[datetime] = None
    ) -> None:
        """Queue a consensus result for persistence."""
        self._enqueue(
            f"consensus {analysis_id}",
            self.store.insert_consensus,
            analysis_id,
            consensus,
            created_at,
        )

    async def _run(self) -> None:
        while True:
            item: Tuple[str, Callable[..., Any], tuple] = await self._queue.get()
            description, func, args = item
            try:
                await asyncio.to_thread(func, *args)
                self.written += 1
            except Exception as e:
                self.failed += 1
                logger.error(f"Ledger write failed for {description}: {e}")
            finally:
                self._queue.task_done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def flush(self) -> None:
        """Wait until every queued write has been attempted."""
        if self._worker is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Drain the queue and stop the worker."""
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
