import asyncio
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mirage.persistence.repositories.usage_repo import UsageRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageEvent:
    user_id: UUID
    endpoint_id: Optional[UUID]
    method: str
    url_pattern: str
    response_status_code: int
    processing_time_ms: int


class UsageRecorder:
    """
    Fire-and-forget usage persistence.

    `record()` never blocks and never raises: events go onto a bounded
    queue and are dropped with a warning when it is full. A single
    background task writes each event in its own session; write failures
    are logged and discarded.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        maxsize: int = 1000,
    ):
        self.session_factory = session_factory
        self.queue: asyncio.Queue[UsageEvent] = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None
        self.dropped = 0

    # ─────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self._run(), name="usage-recorder")

    async def stop(self) -> None:
        """
        Flush what is queued, then stop the worker.
        """
        if self._worker is None:
            return

        await self.queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    # ─────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────

    def record(self, event: UsageEvent) -> bool:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"Usage queue full, dropping event for user {event.user_id} "
                f"({event.method} {event.url_pattern})"
            )
            return False
        return True

    # ─────────────────────────────────────────────
    # Worker
    # ─────────────────────────────────────────────

    async def _run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await self._write(event)
            except Exception:
                logger.exception(f"Failed to record usage for user {event.user_id}")
            finally:
                self.queue.task_done()

    async def _write(self, event: UsageEvent) -> None:
        async with self.session_factory() as session:
            repo = UsageRepository(session)
            await repo.create(
                user_id=event.user_id,
                endpoint_id=event.endpoint_id,
                method=event.method,
                url_pattern=event.url_pattern,
                response_status_code=event.response_status_code,
                processing_time_ms=event.processing_time_ms,
            )
            await session.commit()
