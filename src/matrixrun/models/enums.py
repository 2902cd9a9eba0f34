from enum import Enum


class MatrixState(str, Enum):
    VALIDATING = "VALIDATING"
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"
    UNSUPPORTED = "UNSUPPORTED"
    INVALID = "INVALID"
    CANCELLED = "CANCELLED"


class Platform(str, Enum):
    ANDROID = "android"
    IOS = "ios"


IN_PROGRESS_STATES = frozenset({
    MatrixState.VALIDATING,
    MatrixState.PENDING,
    MatrixState.RUNNING,
})

TERMINAL_STATES = frozenset(MatrixState) - IN_PROGRESS_STATES


def in_progress(state: MatrixState | str) -> bool:
    return MatrixState(state) in IN_PROGRESS_STATES


def completed(state: MatrixState | str) -> bool:
    return MatrixState(state) in TERMINAL_STATES
