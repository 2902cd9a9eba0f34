"""Run-State Store: persists a run's matrix map as matrix_ids.json."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from matrixrun.config import Settings
from matrixrun.models.args import AndroidArgs, IosArgs
from matrixrun.models.matrix import MatrixMap, SavedMatrix

logger = logging.getLogger(__name__)

MATRIX_IDS_FILE = "matrix_ids.json"


class NotFoundError(Exception):
    """No readable matrix file at the requested location."""


class RunStore:
    def __init__(self, settings: Settings):
        self.results_dir = Path(settings.results_dir)

    def run_dir(self, run_path: str) -> Path:
        return self.results_dir / run_path

    def matrix_path_to_obj(self, path: str | Path) -> MatrixMap:
        """Load a MatrixMap from ``path`` or from ``results_dir/path``."""
        file_path = Path(path) / MATRIX_IDS_FILE
        if not file_path.is_file():
            file_path = self.results_dir / path / MATRIX_IDS_FILE
        if not file_path.is_file():
            raise NotFoundError(f"No {MATRIX_IDS_FILE} found for run {path}")

        try:
            data = json.loads(file_path.read_text())
            matrices = {
                matrix_id: SavedMatrix.model_validate(record)
                for matrix_id, record in data.items()
            }
        except (OSError, ValueError, AttributeError, ValidationError) as exc:
            raise NotFoundError(f"Unreadable matrix file {file_path}: {exc}") from exc

        return MatrixMap(map=matrices, run_path=Path(path).name, run_dir=file_path.parent)

    def update_matrix_file(self, matrix_map: MatrixMap) -> Path:
        """Rewrite the run's matrix file with the full current map.

        A map loaded from disk is written back to the file it came from.
        """
        run_dir = matrix_map.run_dir or self.run_dir(matrix_map.run_path)
        matrix_ids_path = run_dir / MATRIX_IDS_FILE
        payload = {
            matrix_id: matrix.model_dump(mode="json")
            for matrix_id, matrix in matrix_map.map.items()
        }
        _atomic_write(matrix_ids_path, json.dumps(payload, indent=2))
        logger.debug("Wrote %d matrices to %s", len(payload), matrix_ids_path)
        return matrix_ids_path

    def save_config_file(self, run_path: str, args: AndroidArgs | IosArgs) -> Path:
        config_path = self.run_dir(run_path) / args.config_file_name
        _atomic_write(config_path, args.data)
        return config_path


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise
