"""Status Refresh Engine: refresh every in-progress matrix in parallel."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from matrixrun.adapters.base import MatrixServiceAdapter
from matrixrun.core.fanout import gather_or_cancel
from matrixrun.core.progress import INDENT
from matrixrun.core.run_store import RunStore
from matrixrun.models.args import AndroidArgs, IosArgs
from matrixrun.models.matrix import MatrixMap

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    """Outcome of a refresh pass."""
    requested: int = 0
    changed: int = 0

    @property
    def nothing_to_do(self) -> bool:
        return self.requested == 0


async def refresh_matrices(
    matrix_map: MatrixMap,
    args: AndroidArgs | IosArgs,
    service: MatrixServiceAdapter,
    store: RunStore,
) -> PassResult:
    """Refresh in-progress matrices concurrently, then persist once if dirty.

    A failed refresh cancels the others and propagates before anything is
    merged or written, so the matrix file is never partially updated.
    """
    print("RefreshMatrices")

    pending = matrix_map.in_progress()
    if not pending:
        print(INDENT + "No matrices to refresh")
        print()
        return PassResult()

    print(INDENT + f"Refreshing {len(pending)}x matrices")
    refreshed = await gather_or_cancel(
        *(service.refresh(m.matrix_id, args) for m in pending)
    )

    result = PassResult(requested=len(pending))
    for saved, remote in zip(pending, refreshed):
        print(INDENT + f"{remote.state.value} {remote.test_matrix_id}")
        if saved.update(remote):
            result.changed += 1

    if result.changed:
        print(INDENT + "Updating matrix file")
        store.update_matrix_file(matrix_map)
    print()
    return result
