"""Cancel Engine: best-effort cancellation of every in-progress matrix."""

import logging

from matrixrun.adapters.base import MatrixServiceAdapter
from matrixrun.core.fanout import gather_or_cancel
from matrixrun.core.progress import INDENT
from matrixrun.models.args import AndroidArgs, IosArgs
from matrixrun.models.matrix import MatrixMap

logger = logging.getLogger(__name__)


async def cancel_matrices(
    matrix_map: MatrixMap,
    args: AndroidArgs | IosArgs,
    service: MatrixServiceAdapter,
) -> int:
    """Request cancellation of in-progress matrices. Returns how many were requested.

    The local map is not touched; the cancelled state shows up on the next refresh.
    """
    print("CancelMatrices")

    pending = matrix_map.in_progress()
    if not pending:
        print(INDENT + "No matrices to cancel")
        print()
        return 0

    print(INDENT + f"Cancelling {len(pending)}x matrices")
    await gather_or_cancel(*(service.cancel(m.matrix_id, args) for m in pending))
    logger.info("Cancel requested for %s", ", ".join(m.matrix_id for m in pending))
    print()
    return len(pending)
