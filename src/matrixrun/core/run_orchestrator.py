"""Run Orchestrator: new runs, resuming the last run, cancelling the last run.

Every top-level operation runs its passes strictly in order:
refresh -> poll -> fetch -> report. Errors are raised, never turned into a
process exit here; the CLI owns termination.
"""

from __future__ import annotations

import logging
import random
import string
from datetime import datetime
from pathlib import Path

from matrixrun.adapters.base import MatrixServiceAdapter, StorageAdapter
from matrixrun.config import Settings
from matrixrun.core.artifact_fetcher import fetch_artifacts
from matrixrun.core.matrix_canceller import cancel_matrices
from matrixrun.core.matrix_poller import poll_matrices
from matrixrun.core.matrix_refresher import refresh_matrices
from matrixrun.core.progress import INDENT
from matrixrun.core.report_manager import ReportManager
from matrixrun.core.run_resolver import RunResolver
from matrixrun.core.run_store import RunStore
from matrixrun.models.args import AndroidArgs, IosArgs
from matrixrun.models.matrix import MatrixMap

logger = logging.getLogger(__name__)


def unique_run_path(now: datetime | None = None) -> str:
    """Timestamped run directory name, e.g. ``2024-05-01_13-02-11.123456_aBcD``."""
    now = now or datetime.now()
    suffix = "".join(random.choices(string.ascii_letters, k=4))
    return f"{now:%Y-%m-%d_%H-%M-%S.%f}_{suffix}"


class RunOrchestrator:
    def __init__(
        self,
        settings: Settings,
        service: MatrixServiceAdapter,
        storage: StorageAdapter,
        reports: ReportManager | None = None,
    ):
        self.settings = settings
        self.service = service
        self.storage = storage
        self.reports = reports or ReportManager()
        self.store = RunStore(settings)
        self.resolver = RunResolver(settings, self.store)

    async def new_run(self, args: AndroidArgs | IosArgs) -> int | None:
        """Submit a run. Returns the report exit code, or None for async runs."""
        run_path = unique_run_path()
        print(f"NewRun {args.platform} project={args.project} run={run_path}")

        self.store.save_config_file(run_path, args)
        matrix_map = await self.service.submit(args, run_path)
        matrix_map.run_path = run_path
        matrix_file = self.store.update_matrix_file(matrix_map)
        print(INDENT + f"Submitted {len(matrix_map.map)}x matrices")
        print()
        logger.info("Run %s saved to %s", run_path, matrix_file)

        if args.async_:
            return None
        return await self._finish_run(matrix_map, args)

    async def refresh_last_run(self) -> int:
        """Resume the most recent run: refresh, poll, fetch, report."""
        matrix_map = self.resolver.last_matrices()
        args = self.resolver.last_args()

        await refresh_matrices(matrix_map, args, self.service, self.store)
        return await self._finish_run(matrix_map, args)

    async def cancel_last_run(self) -> int:
        """Request cancellation of the most recent run's unfinished matrices."""
        matrix_map = self.resolver.last_matrices()
        args = self.resolver.last_args()

        return await cancel_matrices(matrix_map, args, self.service)

    def matrix_path_to_obj(self, path: str | Path) -> MatrixMap:
        return self.store.matrix_path_to_obj(path)

    async def _finish_run(self, matrix_map: MatrixMap, args: AndroidArgs | IosArgs) -> int:
        await poll_matrices(
            matrix_map, args, self.service, self.store, self.settings.poll_interval
        )
        await fetch_artifacts(matrix_map, args, self.storage, self.store)
        # Reports read the fetched XML artifacts
        return self.reports.generate(matrix_map, args)
