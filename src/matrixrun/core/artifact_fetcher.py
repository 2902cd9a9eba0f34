"""Artifact Fetcher: download result objects of finished matrices."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from matrixrun.adapters.base import StorageAdapter
from matrixrun.core.fanout import gather_or_cancel
from matrixrun.core.progress import INDENT
from matrixrun.core.run_store import RunStore
from matrixrun.models.args import AndroidArgs, IosArgs
from matrixrun.models.matrix import MatrixMap, SavedMatrix

logger = logging.getLogger(__name__)


async def fetch_artifacts(
    matrix_map: MatrixMap,
    args: AndroidArgs | IosArgs,
    storage: StorageAdapter,
    store: RunStore,
) -> int:
    """Fetch artifacts for FINISHED matrices not yet downloaded.

    Returns the number of matrices marked downloaded. Files already present
    locally are not fetched again.
    """
    print("FetchArtifacts")

    eligible = matrix_map.finished_not_downloaded()
    if not eligible:
        print(INDENT + "No matrices to fetch")
        print()
        return 0

    print(INDENT + f"Fetching artifacts for {len(eligible)}x matrices")
    patterns = args.artifact_patterns()
    counts = await gather_or_cancel(
        *(_fetch_matrix(m, patterns, storage, store.results_dir) for m in eligible)
    )
    print(INDENT + f"Downloaded {sum(counts)} files")

    print(INDENT + "Updating matrix file")
    store.update_matrix_file(matrix_map)
    print()
    return len(eligible)


async def _fetch_matrix(
    matrix: SavedMatrix,
    patterns: list[re.Pattern],
    storage: StorageAdapter,
    results_dir: Path,
) -> int:
    objects = await storage.list_objects(
        matrix.gcs_root_bucket, matrix.gcs_path_without_root_bucket
    )

    root = results_dir.resolve()
    downloaded = 0
    for obj in objects:
        if not any(p.fullmatch(obj.name) for p in patterns):
            continue
        local_path = results_dir / obj.name
        if not local_path.resolve().is_relative_to(root):
            logger.warning("Skipping gs://%s/%s: resolves outside %s", obj.bucket, obj.name, root)
            continue
        if local_path.exists():
            continue
        local_path.parent.mkdir(parents=True, exist_ok=True)
        await storage.download(obj, local_path)
        downloaded += 1

    matrix.mark_downloaded()
    logger.info("Matrix %s: downloaded %d of %d objects", matrix.matrix_id, downloaded, len(objects))
    return downloaded
