"""Tests for the refresh and cancel passes."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from matrixrun.adapters.mock import MockMatrixServiceAdapter, remote_matrix
from matrixrun.core.matrix_canceller import cancel_matrices
from matrixrun.core.matrix_refresher import refresh_matrices
from matrixrun.models.enums import MatrixState

from .conftest import make_map, make_saved


@pytest.fixture
def mock_store():
    return MagicMock()


class TestRefreshMatrices:
    async def test_only_in_progress_matrices_are_refreshed(self, android_args, mock_store):
        service = MockMatrixServiceAdapter(script={
            "a": [remote_matrix("a", "FINISHED", outcome="SUCCESS")],
            "b": [remote_matrix("b", "RUNNING")],
        })
        matrix_map = make_map(
            make_saved("a", MatrixState.RUNNING),
            make_saved("b", MatrixState.PENDING),
            make_saved("c", MatrixState.FINISHED, downloaded=True),
            make_saved("d", MatrixState.CANCELLED),
        )

        result = await refresh_matrices(matrix_map, android_args, service, mock_store)

        assert sorted(c[0] for c in service.call_names("refresh")) == ["a", "b"]
        assert result.requested == 2
        assert result.changed == 2
        assert matrix_map.map["a"].state == MatrixState.FINISHED
        assert matrix_map.map["a"].outcome == "SUCCESS"
        assert matrix_map.map["b"].state == MatrixState.RUNNING
        mock_store.update_matrix_file.assert_called_once_with(matrix_map)

    async def test_unchanged_records_do_not_persist(self, android_args, mock_store):
        service = MockMatrixServiceAdapter(script={
            "a": [remote_matrix("a", "RUNNING")],
        })
        matrix_map = make_map(make_saved("a", MatrixState.RUNNING))

        result = await refresh_matrices(matrix_map, android_args, service, mock_store)

        assert result.requested == 1
        assert result.changed == 0
        mock_store.update_matrix_file.assert_not_called()

    async def test_nothing_to_refresh(self, android_args, mock_store, capsys):
        service = MockMatrixServiceAdapter()
        matrix_map = make_map(make_saved("a", MatrixState.FINISHED))

        result = await refresh_matrices(matrix_map, android_args, service, mock_store)

        assert result.nothing_to_do
        assert service.calls == []
        mock_store.update_matrix_file.assert_not_called()
        assert "No matrices to refresh" in capsys.readouterr().out

    async def test_requests_run_concurrently(self, android_args, mock_store):
        in_flight = 0
        peak = 0

        class SlowService(MockMatrixServiceAdapter):
            async def refresh(self, matrix_id, args):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return remote_matrix(matrix_id, "FINISHED")

        matrix_map = make_map(*(make_saved(f"m{i}") for i in range(4)))
        await refresh_matrices(matrix_map, android_args, SlowService(), mock_store)
        assert peak == 4

    async def test_failed_refresh_leaves_file_untouched(self, android_args, store):
        class FlakyService(MockMatrixServiceAdapter):
            async def refresh(self, matrix_id, args):
                if matrix_id == "bad":
                    raise RuntimeError("service unavailable")
                return remote_matrix(matrix_id, "FINISHED")

        matrix_map = make_map(make_saved("good"), make_saved("bad"))
        path = store.update_matrix_file(matrix_map)
        before = path.read_text()

        with pytest.raises(RuntimeError, match="service unavailable"):
            await refresh_matrices(matrix_map, android_args, FlakyService(), store)

        assert path.read_text() == before
        assert json.loads(before)["good"]["state"] == "RUNNING"

    async def test_failed_refresh_cancels_siblings(self, android_args, mock_store):
        cancelled = []

        class SlowAndFailingService(MockMatrixServiceAdapter):
            async def refresh(self, matrix_id, args):
                if matrix_id == "bad":
                    raise RuntimeError("service unavailable")
                try:
                    await asyncio.sleep(1)
                except asyncio.CancelledError:
                    cancelled.append(matrix_id)
                    raise
                return remote_matrix(matrix_id, "FINISHED")

        matrix_map = make_map(make_saved("slow"), make_saved("bad"))

        with pytest.raises(RuntimeError, match="service unavailable"):
            await refresh_matrices(matrix_map, android_args, SlowAndFailingService(), mock_store)

        assert cancelled == ["slow"]
        assert matrix_map.map["slow"].state == MatrixState.RUNNING
        mock_store.update_matrix_file.assert_not_called()


class TestCancelMatrices:
    async def test_cancels_only_in_progress(self, android_args, capsys):
        service = MockMatrixServiceAdapter()
        matrix_map = make_map(
            make_saved("a", MatrixState.RUNNING),
            make_saved("b", MatrixState.VALIDATING),
            make_saved("c", MatrixState.FINISHED),
        )

        count = await cancel_matrices(matrix_map, android_args, service)

        assert count == 2
        assert sorted(c[0] for c in service.call_names("cancel")) == ["a", "b"]
        # Cancellation is observed on the next refresh, not merged here
        assert matrix_map.map["a"].state == MatrixState.RUNNING
        assert "Cancelling 2x matrices" in capsys.readouterr().out

    async def test_nothing_to_cancel(self, android_args, capsys):
        service = MockMatrixServiceAdapter()
        matrix_map = make_map(make_saved("a", MatrixState.ERROR))

        count = await cancel_matrices(matrix_map, android_args, service)

        assert count == 0
        assert service.calls == []
        assert "No matrices to cancel" in capsys.readouterr().out

    async def test_cancel_then_refresh_observes_cancelled(self, android_args, mock_store):
        service = MockMatrixServiceAdapter()
        matrix_map = make_map(make_saved("a", MatrixState.RUNNING))

        await cancel_matrices(matrix_map, android_args, service)
        await refresh_matrices(matrix_map, android_args, service, mock_store)

        assert matrix_map.map["a"].state == MatrixState.CANCELLED
