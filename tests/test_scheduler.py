"""Tests for SyncScheduler."""

import asyncio
import logging
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from discogs_catalog_sync.config import Config, DiscogsConfig, SyncConfig
from discogs_catalog_sync.exceptions import (
    FullSyncFailed,
    ReconcileAllError,
    RemoteApiError,
    RemoteConfigError,
    RemoteUnavailable,
)
from discogs_catalog_sync.models import ListType, SyncRunResult
from discogs_catalog_sync.sync.engine import SyncEngine
from discogs_catalog_sync.sync.scheduler import SyncScheduler, is_retriable, seconds_until


def results(collection_errors: int = 0, wantlist_errors: int = 0) -> dict[str, SyncRunResult]:
    return {
        "collection": SyncRunResult(
            list_type=ListType.COLLECTION, synced=10 - collection_errors, errors=collection_errors, total=10
        ),
        "wantlist": SyncRunResult(
            list_type=ListType.WANTLIST, synced=4 - wantlist_errors, errors=wantlist_errors, total=4
        ),
    }


def make_config(**sync_fields) -> Config:
    sync_fields.setdefault("startup_delay_seconds", 0)
    return Config(discogs=DiscogsConfig(username="digger", api_token="t"), sync=SyncConfig(**sync_fields))


@pytest.fixture
def engine():
    """Mocked sync engine."""
    mock = MagicMock(spec=SyncEngine)
    mock.reconcile_all = AsyncMock(return_value=results())
    return mock


class TestSecondsUntil:
    """Test next daily run computation."""

    def test_later_today(self):
        now = datetime(2024, 5, 1, 10, 0, tzinfo=UTC)
        assert seconds_until(12, 30, now) == 2.5 * 3600

    def test_already_passed_is_tomorrow(self):
        now = datetime(2024, 5, 1, 23, 59, tzinfo=UTC)
        assert seconds_until(0, 0, now) == 60

    def test_exact_time_is_tomorrow(self):
        now = datetime(2024, 5, 1, 0, 0, tzinfo=UTC)
        assert seconds_until(0, 0, now) == 24 * 3600


class TestPerformFullSync:
    """Test the full sync routine."""

    @pytest.mark.asyncio
    async def test_success(self, engine):
        scheduler = SyncScheduler(engine, make_config())

        result = await scheduler.perform_full_sync("manual")

        engine.reconcile_all.assert_awaited_once_with("digger")
        assert result.success is True
        assert result.trigger == "manual"
        assert result.duration_minutes >= 0
        assert result.collection is not None and result.collection.synced == 10
        assert result.wantlist is not None and result.wantlist.total == 4
        assert result.error is None
        assert scheduler.last_result is result
        assert scheduler.sync_in_progress is False

    @pytest.mark.asyncio
    async def test_item_errors_are_a_warning(self, engine, caplog):
        engine.reconcile_all.return_value = results(collection_errors=2)
        scheduler = SyncScheduler(engine, make_config())

        with caplog.at_level(logging.INFO, logger="discogs_catalog_sync.sync.scheduler"):
            result = await scheduler.perform_full_sync("daily")

        assert result.success is True
        assert "Collection: 8/10, Wantlist: 4/4" in caplog.text
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Collection: 2, Wantlist: 0" in warnings[0].getMessage()

    @pytest.mark.asyncio
    async def test_partial_failure(self, engine):
        partial = {"collection": results()["collection"]}
        engine.reconcile_all.side_effect = ReconcileAllError(partial, {"wantlist": RemoteUnavailable("down")})
        scheduler = SyncScheduler(engine, make_config())

        with pytest.raises(FullSyncFailed) as exc_info:
            await scheduler.perform_full_sync("startup")

        failed = exc_info.value.result
        assert failed.success is False
        assert failed.trigger == "startup"
        assert failed.duration_minutes >= 0
        assert failed.collection is not None and failed.collection.synced == 10
        assert failed.wantlist is None
        assert "down" in failed.error
        assert scheduler.last_result is failed

    @pytest.mark.asyncio
    async def test_config_failure(self, engine):
        engine.reconcile_all.side_effect = RemoteConfigError("Discogs token not configured")
        scheduler = SyncScheduler(engine, make_config())

        with pytest.raises(FullSyncFailed) as exc_info:
            await scheduler.perform_full_sync("manual")

        assert exc_info.value.result.error == "Discogs token not configured"
        assert exc_info.value.result.collection is None
        assert str(exc_info.value) == "Discogs token not configured"


    @pytest.mark.asyncio
    async def test_rate_limited_failure_is_logged_as_retriable(self, engine, caplog):
        engine.reconcile_all.side_effect = ReconcileAllError(
            {}, {"collection": RemoteApiError(429), "wantlist": RemoteApiError(503)}
        )
        scheduler = SyncScheduler(engine, make_config())

        with caplog.at_level(logging.ERROR, logger="discogs_catalog_sync.sync.scheduler"):
            with pytest.raises(FullSyncFailed):
                await scheduler.perform_full_sync("cron")

        assert "retriable=True" in caplog.text


class TestIsRetriable:
    """Test failure classification for the next run."""

    def test_rate_limit_and_server_errors(self):
        assert is_retriable(RemoteApiError(429)) is True
        assert is_retriable(RemoteApiError(502)) is True

    def test_client_errors_and_config(self):
        assert is_retriable(RemoteApiError(404)) is False
        assert is_retriable(RemoteConfigError("no token")) is False
        assert is_retriable(RemoteUnavailable("down")) is False

    def test_all_lists_must_be_retriable(self):
        mixed = ReconcileAllError({}, {"collection": RemoteApiError(429), "wantlist": RemoteApiError(401)})
        both = ReconcileAllError({}, {"collection": RemoteApiError(429), "wantlist": RemoteApiError(500)})

        assert is_retriable(mixed) is False
        assert is_retriable(both) is True


class TestRunTrigger:
    """Test trigger wrapper."""

    @pytest.mark.asyncio
    async def test_failure_returns_report(self, engine):
        engine.reconcile_all.side_effect = RemoteUnavailable("down")
        scheduler = SyncScheduler(engine, make_config())

        result = await scheduler.run_trigger("daily")

        assert result is not None
        assert result.success is False

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged(self, engine):
        engine.reconcile_all.return_value = {}
        scheduler = SyncScheduler(engine, make_config())

        assert await scheduler.run_trigger("daily") is None

    @pytest.mark.asyncio
    async def test_skipped_while_running(self, engine):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_reconcile(user_id):
            started.set()
            await release.wait()
            return results()

        engine.reconcile_all.side_effect = slow_reconcile
        scheduler = SyncScheduler(engine, make_config())

        first = asyncio.create_task(scheduler.run_trigger("startup"))
        await started.wait()
        assert scheduler.sync_in_progress is True

        assert await scheduler.run_trigger("daily") is None

        release.set()
        result = await first
        assert result is not None and result.trigger == "startup"
        assert engine.reconcile_all.await_count == 1


class TestStartStop:
    """Test trigger scheduling."""

    @pytest.mark.asyncio
    async def test_startup_run(self, engine):
        scheduler = SyncScheduler(engine, make_config(cron_sync_enabled=False))

        await scheduler.start()
        assert scheduler._daily_task is None
        await scheduler._startup_task

        assert scheduler.last_result is not None
        assert scheduler.last_result.trigger == "startup"
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_both_disabled(self, engine):
        scheduler = SyncScheduler(engine, make_config(sync_on_startup=False, cron_sync_enabled=False))

        await scheduler.start()

        assert scheduler.running is False
        engine.reconcile_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_cancels_daily_loop(self, engine):
        scheduler = SyncScheduler(engine, make_config(sync_on_startup=False))

        await scheduler.start()
        assert scheduler.running is True

        await scheduler.stop()
        assert scheduler.running is False
        engine.reconcile_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_daily_failure_does_not_stop_schedule(self, engine):
        second_run = asyncio.Event()
        calls = 0

        async def reconcile(user_id):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RemoteUnavailable("down")
            second_run.set()
            return results()

        engine.reconcile_all.side_effect = reconcile
        scheduler = SyncScheduler(engine, make_config(sync_on_startup=False, daily_run_time="03:00"))

        with patch("discogs_catalog_sync.sync.scheduler.seconds_until", return_value=0) as mock_until:
            await scheduler.start()
            await asyncio.wait_for(second_run.wait(), timeout=5)
            await scheduler.stop()

        mock_until.assert_called_with(3, 0)
        assert scheduler.last_result is not None
        assert scheduler.last_result.trigger == "daily"
        assert scheduler.last_result.success is True
