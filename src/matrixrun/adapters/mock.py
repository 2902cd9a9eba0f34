from pathlib import Path
from typing import Any

from matrixrun.models.args import AndroidArgs, IosArgs
from matrixrun.models.enums import MatrixState
from matrixrun.models.matrix import MatrixMap, RemoteMatrix, SavedMatrix

from .base import MatrixServiceAdapter, StorageAdapter, StorageObject


def remote_matrix(
    matrix_id: str,
    state: MatrixState | str,
    *,
    execution_state: str | None = None,
    progress: list[str] | None = None,
    error: str | None = None,
    gcs_path: str = "",
    outcome: str | None = None,
    results_url: str | None = None,
) -> RemoteMatrix:
    """Build a RemoteMatrix the way the testing service would serialize it."""
    details: dict[str, Any] = {}
    if progress is not None:
        details["progressMessages"] = progress
    if error is not None:
        details["errorMessage"] = error
    execution: dict[str, Any] = {"state": execution_state or MatrixState(state).value}
    if details:
        execution["testDetails"] = details
    return RemoteMatrix.model_validate({
        "testMatrixId": matrix_id,
        "state": MatrixState(state).value,
        "testExecutions": [execution],
        "resultStorage": {
            "googleCloudStorage": {"gcsPath": gcs_path},
            "resultsUrl": results_url,
        },
        "outcomeSummary": outcome,
    })


class MockMatrixServiceAdapter(MatrixServiceAdapter):
    """In-process testing service.

    Scripted matrices return their scripted responses in order, repeating the
    last one. Unscripted matrices advance PENDING -> RUNNING -> FINISHED on
    successive refreshes.
    """

    _LIFECYCLE = (MatrixState.PENDING, MatrixState.RUNNING, MatrixState.FINISHED)

    def __init__(self, script: dict[str, list[RemoteMatrix]] | None = None):
        self.calls: list[tuple[str, tuple, dict]] = []
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.cancelled: set[str] = set()
        self._refresh_counts: dict[str, int] = {}
        self._gcs_paths: dict[str, str] = {}
        self._next_matrix = 1

    async def submit(self, args: AndroidArgs | IosArgs, run_path: str) -> MatrixMap:
        self.calls.append(("submit", (args, run_path), {}))
        matrix_map = MatrixMap(run_path=run_path)
        for index, _targets in enumerate(args.test_targets_shards):
            matrix_id = f"matrix-{self._next_matrix}"
            self._next_matrix += 1
            gcs_path = f"gs://{args.results_bucket}/{run_path}/shard_{index}/"
            self._gcs_paths[matrix_id] = gcs_path
            remote = remote_matrix(matrix_id, MatrixState.PENDING, gcs_path=gcs_path)
            matrix_map.map[matrix_id] = SavedMatrix.from_remote(remote)
        return matrix_map

    async def refresh(self, matrix_id: str, args: AndroidArgs | IosArgs) -> RemoteMatrix:
        self.calls.append(("refresh", (matrix_id,), {}))
        count = self._refresh_counts.get(matrix_id, 0)
        self._refresh_counts[matrix_id] = count + 1

        if matrix_id in self.cancelled:
            return remote_matrix(
                matrix_id, MatrixState.CANCELLED, gcs_path=self._gcs_paths.get(matrix_id, ""),
            )

        responses = self.script.get(matrix_id)
        if responses:
            return responses[min(count, len(responses) - 1)]

        state = self._LIFECYCLE[min(count + 1, len(self._LIFECYCLE) - 1)]
        progress = ["Starting attempt 1."]
        if state == MatrixState.FINISHED:
            progress.append("Done. Test time=42 (secs)")
        return remote_matrix(
            matrix_id,
            state,
            progress=progress,
            gcs_path=self._gcs_paths.get(matrix_id, ""),
            outcome="SUCCESS" if state == MatrixState.FINISHED else None,
        )

    async def cancel(self, matrix_id: str, args: AndroidArgs | IosArgs) -> None:
        self.calls.append(("cancel", (matrix_id,), {}))
        self.cancelled.add(matrix_id)

    def call_names(self, name: str) -> list[tuple]:
        return [c[1] for c in self.calls if c[0] == name]


class MockStorageAdapter(StorageAdapter):
    def __init__(self, objects: list[StorageObject] | None = None):
        self.calls: list[tuple[str, tuple, dict]] = []
        self.objects = list(objects or [])

    async def list_objects(self, bucket: str, prefix: str) -> list[StorageObject]:
        self.calls.append(("list_objects", (bucket, prefix), {}))
        return [o for o in self.objects if o.bucket == bucket and o.name.startswith(prefix)]

    async def download(self, obj: StorageObject, local_path: Path) -> None:
        self.calls.append(("download", (obj, local_path), {}))
        Path(local_path).write_bytes(f"gs://{obj.bucket}/{obj.name}".encode())
