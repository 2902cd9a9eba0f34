"""Detail Poller: drive matrices to a terminal state with progress narration.

Each poll fetches the full matrix, prints only the progress messages and
errors not seen before, and sleeps a fixed interval. The matrix-detail
endpoint must not be polled faster than ``poll_interval``.
"""

from __future__ import annotations

import asyncio
import logging

from matrixrun.adapters.base import MatrixServiceAdapter
from matrixrun.core.progress import INDENT, StopWatch
from matrixrun.core.run_store import RunStore
from matrixrun.models.args import AndroidArgs, IosArgs
from matrixrun.models.enums import completed
from matrixrun.models.matrix import MatrixMap, RemoteMatrix

logger = logging.getLogger(__name__)

DONE_MARKER = "Done. Test time="
POST_PROCESSING_NOTE = "Waiting for post-processing service to finish"


class MatrixPoller:
    """Polling state for one matrix, carried across iterations."""

    def __init__(
        self,
        matrix_id: str,
        args: AndroidArgs | IosArgs,
        service: MatrixServiceAdapter,
        stopwatch: StopWatch,
        poll_interval: float = 15,
    ):
        self.matrix_id = matrix_id
        self.args = args
        self.service = service
        self.stopwatch = stopwatch
        self.poll_interval = poll_interval

        self.last_state = ""
        self.last_error = ""
        self.progress: list[str] = []
        self.last_progress_len = 0
        self.finished = False

    def puts(self, msg: str) -> None:
        print(f"{INDENT}{self.stopwatch.check()} {self.matrix_id} {msg}")

    def observe(self, matrix: RemoteMatrix) -> list[str]:
        """Process one fetched matrix. Returns the messages it emitted."""
        emitted: list[str] = []

        def emit(msg: str) -> None:
            emitted.append(msg)
            self.puts(msg)

        execution = matrix.test_executions[0] if matrix.test_executions else None
        details = execution.test_details if execution else None
        if details is not None:
            # The service never clears errorMessage; only report a new one.
            # Infrastructure failures are retried by the service itself.
            if details.error_message is not None and details.error_message != self.last_error:
                self.last_error = details.error_message
                emit(f"Error: {self.last_error}")
            if details.progress_messages is not None:
                self.progress = list(details.progress_messages)

        if completed(matrix.state):
            self.finished = True
            return emitted

        # Flaky test attempts restart the progress list at size 1
        if self.last_progress_len > len(self.progress):
            self.last_progress_len = 0

        for msg in self.progress[self.last_progress_len:]:
            emit(msg)
            # Finalizing the matrix can lag well behind the 'Done' message
            if DONE_MARKER in msg:
                emit(POST_PROCESSING_NOTE)
        self.last_progress_len = len(self.progress)

        if execution is not None and execution.state and execution.state != self.last_state:
            self.last_state = execution.state
            emit(self.last_state)

        return emitted

    async def poll(self) -> RemoteMatrix:
        """Poll until the matrix reaches a terminal state and return it."""
        while True:
            matrix = await self.service.refresh(self.matrix_id, self.args)
            self.observe(matrix)
            if self.finished:
                break
            await asyncio.sleep(self.poll_interval)

        # Final state, possibly minutes after the last progress message
        self.puts(matrix.state.value)
        return matrix


async def poll_matrices(
    matrix_map: MatrixMap,
    args: AndroidArgs | IosArgs,
    service: MatrixServiceAdapter,
    store: RunStore,
    poll_interval: float = 15,
) -> int:
    """Poll every in-progress matrix to completion, one at a time.

    Returns the number of matrices polled. The map is persisted once after
    the sweep.
    """
    print("PollMatrices")

    pending = matrix_map.in_progress()
    if not pending:
        print(INDENT + "No matrices to poll")
        print()
        return 0

    stopwatch = StopWatch().start()
    for saved in pending:
        poller = MatrixPoller(saved.matrix_id, args, service, stopwatch, poll_interval)
        completed_matrix = await poller.poll()
        saved.update(completed_matrix)
    print()

    store.update_matrix_file(matrix_map)
    return len(pending)
