"""Startup and daily triggers for full syncs."""

import asyncio
import contextlib
import logging
import time
from datetime import UTC, datetime, timedelta

from ..config import Config, get_config
from ..exceptions import FullSyncFailed, ReconcileAllError, RemoteApiError
from ..models import FullSyncResult
from .engine import SyncEngine

logger = logging.getLogger(__name__)


def _elapsed_minutes(started: float) -> float:
    return round((time.monotonic() - started) / 60, 2)


def is_retriable(error: BaseException) -> bool:
    """True when every failed list hit a rate limit or a Discogs server error."""
    causes = error.errors.values() if isinstance(error, ReconcileAllError) else [error]
    return all(isinstance(cause, RemoteApiError) and cause.retriable for cause in causes)


def seconds_until(hour: int, minute: int, now: datetime | None = None) -> float:
    """Seconds from ``now`` until the next HH:MM UTC (tomorrow if already passed)."""
    now = now or datetime.now(UTC)
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class SyncScheduler:
    """Runs a full sync once after startup and then daily at a fixed UTC time.

    Start once at process boot with ``start()``; ``stop()`` cancels both
    triggers. Trigger failures are logged and never escape.
    """

    def __init__(self, engine: SyncEngine, config: Config | None = None):
        self.engine = engine
        self.config = config or get_config()
        self._run_lock = asyncio.Lock()
        self._startup_task: asyncio.Task[None] | None = None
        self._daily_task: asyncio.Task[None] | None = None
        self.last_result: FullSyncResult | None = None

    @property
    def running(self) -> bool:
        return any(task is not None and not task.done() for task in (self._startup_task, self._daily_task))

    @property
    def sync_in_progress(self) -> bool:
        return self._run_lock.locked()

    async def start(self) -> None:
        """Schedule the startup run and the daily loop, each if enabled."""
        if self.running:
            return

        sync_config = self.config.sync
        if sync_config.sync_on_startup:
            self._startup_task = asyncio.create_task(self._run_startup(sync_config.startup_delay_seconds))
        else:
            logger.info("Startup sync disabled via sync.sync_on_startup=false")

        if sync_config.cron_sync_enabled:
            self._daily_task = asyncio.create_task(self._daily_loop())
            logger.info("Daily sync scheduled at %s UTC", sync_config.daily_run_time)
        else:
            logger.info("Daily sync disabled via sync.cron_sync_enabled=false")

    async def stop(self) -> None:
        """Cancel both triggers, interrupting a run in progress."""
        for task in (self._startup_task, self._daily_task):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._startup_task = None
        self._daily_task = None
        logger.info("Sync scheduler stopped")

    async def _run_startup(self, delay_seconds: float) -> None:
        logger.info("Application started - beginning initial sync in %.0fs", delay_seconds)
        await asyncio.sleep(delay_seconds)
        await self.run_trigger("startup")

    async def _daily_loop(self) -> None:
        hour, minute = self.config.sync.daily_run_hour_minute
        while True:
            await asyncio.sleep(seconds_until(hour, minute))
            logger.info("Daily sync triggered at %02d:%02d UTC", hour, minute)
            await self.run_trigger("daily")

    async def run_trigger(self, trigger: str) -> FullSyncResult | None:
        """Run a full sync for a trigger, logging instead of raising.

        Returns None when skipped because another run is in progress.
        """
        if self._run_lock.locked():
            logger.warning("[%s] Sync skipped: another sync is still running", trigger)
            return None
        try:
            return await self.perform_full_sync(trigger)
        except FullSyncFailed as e:
            return e.result
        except Exception as e:
            logger.exception("[%s] Sync failed unexpectedly: %s", trigger, e)
            return None

    async def perform_full_sync(self, trigger: str) -> FullSyncResult:
        """Reconcile collection and wantlist for the default user.

        Returns the success report, or raises FullSyncFailed carrying the
        failure report (same trigger/duration fields, ``success=False``).
        """
        async with self._run_lock:
            started = time.monotonic()
            started_at = datetime.now(UTC)
            logger.info("[%s] Starting full sync", trigger)

            try:
                results = await self.engine.reconcile_all(self.config.default_user_id)
            except Exception as e:
                duration = _elapsed_minutes(started)
                partial = e.results if isinstance(e, ReconcileAllError) else {}
                logger.error(
                    "[%s] Sync failed after %.2f minutes (retriable=%s): %s",
                    trigger,
                    duration,
                    is_retriable(e),
                    e,
                )
                self.last_result = FullSyncResult(
                    success=False,
                    trigger=trigger,
                    duration_minutes=duration,
                    collection=partial.get("collection"),
                    wantlist=partial.get("wantlist"),
                    error=str(e),
                    started_at=started_at,
                )
                raise FullSyncFailed(self.last_result) from e

            duration = _elapsed_minutes(started)
            collection = results["collection"]
            wantlist = results["wantlist"]
            logger.info("[%s] Sync completed successfully in %.2f minutes", trigger, duration)
            logger.info(
                "[%s] Results: Collection: %d/%d, Wantlist: %d/%d",
                trigger,
                collection.synced,
                collection.total,
                wantlist.synced,
                wantlist.total,
            )
            if collection.errors > 0 or wantlist.errors > 0:
                logger.warning(
                    "[%s] Sync completed with errors: Collection: %d, Wantlist: %d",
                    trigger,
                    collection.errors,
                    wantlist.errors,
                )

            self.last_result = FullSyncResult(
                success=True,
                trigger=trigger,
                duration_minutes=duration,
                collection=collection,
                wantlist=wantlist,
                started_at=started_at,
            )
            return self.last_result
