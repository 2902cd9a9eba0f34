"""Report Manager: per-matrix summary and the process exit code."""

import logging

from matrixrun.core.progress import INDENT
from matrixrun.models.args import AndroidArgs, IosArgs
from matrixrun.models.enums import MatrixState
from matrixrun.models.matrix import MatrixMap

logger = logging.getLogger(__name__)

SUCCESS_OUTCOME = "SUCCESS"


class ReportManager:
    def generate(self, matrix_map: MatrixMap, args: AndroidArgs | IosArgs) -> int:
        """Print the run summary. Returns 0 if every matrix passed, else 1."""
        print("MatrixResultsReport")

        failed = 0
        for matrix in sorted(matrix_map.map.values(), key=lambda m: m.matrix_id):
            outcome = matrix.outcome or "UNKNOWN"
            line = f"{INDENT}{matrix.matrix_id} {matrix.state.value} {outcome}"
            if matrix.web_link:
                line += f" {matrix.web_link}"
            print(line)
            if matrix.state != MatrixState.FINISHED or matrix.outcome != SUCCESS_OUTCOME:
                failed += 1

        total = len(matrix_map.map)
        print(INDENT + f"{total - failed} / {total} matrices passed")
        print()
        if failed:
            logger.info("Run %s: %d of %d matrices did not pass", matrix_map.run_path, failed, total)
            return 1
        return 0
