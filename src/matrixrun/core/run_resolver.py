"""Run Resolver: reconstruct the most recent run from the results directory."""

from __future__ import annotations

import logging
from pathlib import Path

from matrixrun.config import Settings
from matrixrun.core.run_store import NotFoundError, RunStore
from matrixrun.models.args import CONFIG_FILES, AndroidArgs, IosArgs, load_args
from matrixrun.models.enums import Platform
from matrixrun.models.matrix import MatrixMap

logger = logging.getLogger(__name__)

# iOS is checked first
_CONFIG_LOOKUP_ORDER = (Platform.IOS, Platform.ANDROID)


class FatalRunError(Exception):
    """A precondition the orchestrator cannot repair. Ends the process."""


class RunNotFoundError(FatalRunError):
    pass


class RunResolver:
    def __init__(self, settings: Settings, store: RunStore):
        self.results_dir = Path(settings.results_dir)
        self.store = store

    def last_run_path(self) -> str | None:
        """Name of the most recently modified run directory, if any."""
        if not self.results_dir.is_dir():
            return None
        runs = [p for p in self.results_dir.iterdir() if p.is_dir()]
        if not runs:
            return None
        return max(runs, key=lambda p: p.stat().st_mtime).name

    def _require_last_run(self) -> str:
        last_run = self.last_run_path()
        if last_run is None:
            raise RunNotFoundError(f"no runs found in {self.results_dir}/ folder")
        return last_run

    def last_args(self) -> AndroidArgs | IosArgs:
        last_run = self._require_last_run()
        run_dir = self.results_dir / last_run
        for platform in _CONFIG_LOOKUP_ORDER:
            config_path = run_dir / CONFIG_FILES[platform]
            if config_path.is_file():
                logger.debug("Using %s config %s", platform.value, config_path)
                return load_args(config_path, platform)
        raise RunNotFoundError(f"No config file found in the last run folder: {last_run}")

    def last_matrices(self) -> MatrixMap:
        last_run = self._require_last_run()
        print(f"Loading run {last_run}")
        try:
            return self.store.matrix_path_to_obj(self.results_dir / last_run)
        except NotFoundError as exc:
            raise RunNotFoundError(str(exc)) from exc
