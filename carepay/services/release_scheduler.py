"""
Release Scheduler
Fires one deferred escrow evaluation per booking after the dispute window
"""

import asyncio
import logging
from datetime import timedelta
from typing import Awaitable, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

ReleaseCallback = Callable[[str], Awaitable[object]]


class ReleaseScheduler(Protocol):
    async def schedule(self, payment_id: str, delay_seconds: float) -> bool:
        """Schedule the release evaluation; False if one is already scheduled"""


class InProcessReleaseScheduler:
    """
    Timers kept on the running event loop, keyed by booking id.

    Handles are lost when the process stops, so bookings created before a
    restart are not released automatically.
    """

    def __init__(self, callback: ReleaseCallback):
        self.callback = callback
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._running: set[asyncio.Task] = set()

    async def schedule(self, payment_id: str, delay_seconds: float) -> bool:
        if payment_id in self._handles:
            logger.debug(f"Release already scheduled for booking {payment_id}")
            return False

        loop = asyncio.get_running_loop()
        self._handles[payment_id] = loop.call_later(delay_seconds, self._fire, payment_id)
        logger.info(f"⏳ Release scheduled for booking {payment_id} in {delay_seconds:.0f}s")
        return True

    def cancel(self, payment_id: str) -> bool:
        handle = self._handles.pop(payment_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def is_scheduled(self, payment_id: str) -> bool:
        return payment_id in self._handles

    @property
    def scheduled_count(self) -> int:
        return len(self._handles)

    def _fire(self, payment_id: str) -> None:
        self._handles.pop(payment_id, None)
        task = asyncio.ensure_future(self._run(payment_id))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self, payment_id: str) -> None:
        try:
            await self.callback(payment_id)
        except Exception:
            logger.exception(f"❌ Release evaluation crashed for booking {payment_id}")

    async def drain(self) -> None:
        """Wait for release evaluations that are already running"""
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    async def shutdown(self) -> None:
        for payment_id in list(self._handles):
            self.cancel(payment_id)
        await self.drain()
        logger.info("Release scheduler stopped")


class ArqReleaseScheduler:
    """
    Defers release_payment_task in Redis through arq.

    The deterministic job id makes arq refuse a second job for the same
    booking, and the job outlives API restarts.
    """

    def __init__(self, pool=None, redis_settings=None):
        self._pool = pool
        self.redis_settings = redis_settings

    async def _get_pool(self):
        if self._pool is None:
            from arq import create_pool

            from ..worker import get_redis_settings

            self._pool = await create_pool(self.redis_settings or get_redis_settings())
        return self._pool

    async def schedule(self, payment_id: str, delay_seconds: float) -> bool:
        pool = await self._get_pool()
        job = await pool.enqueue_job(
            "release_payment_task",
            payment_id,
            _job_id=release_job_id(payment_id),
            _defer_by=timedelta(seconds=delay_seconds),
        )
        if job is None:
            logger.debug(f"Release job already queued for booking {payment_id}")
            return False
        logger.info(f"📋 Release job queued for booking {payment_id}: {job.job_id}")
        return True

    async def shutdown(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None


def release_job_id(payment_id: str) -> str:
    return f"release:{payment_id}"


def build_release_scheduler(
    backend: str, callback: Optional[ReleaseCallback] = None
) -> InProcessReleaseScheduler | ArqReleaseScheduler:
    """Create the scheduler selected by RELEASE_SCHEDULER_BACKEND"""
    if backend == "arq":
        logger.info("🔧 Release scheduler: arq")
        return ArqReleaseScheduler()
    if backend != "memory":
        logger.warning(f"Unknown release scheduler backend '{backend}', using in-process timers")
    if callback is None:
        raise ValueError("In-process release scheduler needs a callback")
    logger.info("🔧 Release scheduler: in-process")
    return InProcessReleaseScheduler(callback)
