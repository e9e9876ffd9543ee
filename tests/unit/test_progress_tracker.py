"""Unit tests for ProgressTracker and CancellationToken."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.pipeline import PipelineProgress, PipelineStage, ProgressEvent
from src.pipeline.cancellation import CancellationToken
from src.pipeline.progress_tracker import ALL_RUNS, ProgressTracker

# ======================================================================
# ProgressTracker
# ======================================================================


class TestProgressTracker:
    @pytest.fixture()
    def tracker(self) -> ProgressTracker:
        return ProgressTracker()

    @pytest.mark.asyncio
    async def test_update_records_latest(self, tracker: ProgressTracker) -> None:
        await tracker.update("run-1", PipelineStage.PARSING, message="Parsing")
        await tracker.update("run-1", PipelineStage.ENRICHING, 2, 5, "Enriched chunk 2 of 5")

        latest = tracker.get_latest("run-1")
        assert latest == ProgressEvent(
            run_id="run-1",
            stage=PipelineStage.ENRICHING,
            current=2,
            total=5,
            message="Enriched chunk 2 of 5",
        )

    def test_unknown_run_has_no_snapshot(self, tracker: ProgressTracker) -> None:
        assert tracker.get_latest("nope") is None

    @pytest.mark.asyncio
    async def test_listeners_receive_only_their_run(self, tracker: ProgressTracker) -> None:
        mine = MagicMock()
        other = MagicMock()
        tracker.register_listener("run-1", mine)
        tracker.register_listener("run-2", other)

        await tracker.update("run-1", PipelineStage.CHUNKING)

        mine.assert_called_once()
        other.assert_not_called()

    @pytest.mark.asyncio
    async def test_all_runs_listener_sees_everything(self, tracker: ProgressTracker) -> None:
        listener = MagicMock()
        tracker.register_listener(ALL_RUNS, listener)

        await tracker.update("a", PipelineStage.PARSING)
        await tracker.update("b", PipelineStage.PARSING)

        assert [call.args[0].run_id for call in listener.call_args_list] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_async_listener_is_awaited(self, tracker: ProgressTracker) -> None:
        listener = AsyncMock()
        tracker.register_listener("run-1", listener)

        await tracker.update("run-1", PipelineStage.COMPLETE)

        listener.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self, tracker: ProgressTracker) -> None:
        broken = MagicMock(side_effect=RuntimeError("socket closed"))
        healthy = MagicMock()
        tracker.register_listener("run-1", broken)
        tracker.register_listener("run-1", healthy)

        await tracker.update("run-1", PipelineStage.ENRICHING, 1, 2)

        healthy.assert_called_once()

    @pytest.mark.asyncio
    async def test_duplicate_registration_is_ignored(self, tracker: ProgressTracker) -> None:
        listener = MagicMock()
        tracker.register_listener("run-1", listener)
        tracker.register_listener("run-1", listener)

        await tracker.update("run-1", PipelineStage.PARSING)

        listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_unregister_stops_delivery(self, tracker: ProgressTracker) -> None:
        listener = MagicMock()
        tracker.register_listener("run-1", listener)
        tracker.unregister_listener("run-1", listener)

        await tracker.update("run-1", PipelineStage.PARSING)

        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_forget_drops_snapshot(self, tracker: ProgressTracker) -> None:
        await tracker.update("run-1", PipelineStage.COMPLETE)
        tracker.forget("run-1")
        assert tracker.get_latest("run-1") is None


# ======================================================================
# PipelineProgress / CancellationToken
# ======================================================================


class TestPipelineProgress:
    def test_percent(self) -> None:
        assert PipelineProgress(current=1, total=3).percent == 33.3

    def test_percent_without_total_is_zero(self) -> None:
        assert PipelineProgress().percent == 0.0


class TestCancellationToken:
    def test_starts_uncancelled(self) -> None:
        assert CancellationToken().is_cancelled is False

    def test_cancel_records_reason(self) -> None:
        token = CancellationToken()
        token.cancel("user")

        assert token.is_cancelled is True
        assert token.reason == "user"
