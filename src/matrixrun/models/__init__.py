from .args import (
    ANDROID_CONFIG_FILE,
    CONFIG_FILES,
    IOS_CONFIG_FILE,
    AndroidArgs,
    ArgsError,
    Device,
    IosArgs,
    RunArgs,
    load_args,
    parse_args,
)
from .enums import (
    IN_PROGRESS_STATES,
    TERMINAL_STATES,
    MatrixState,
    Platform,
    completed,
    in_progress,
)
from .matrix import MatrixMap, RemoteMatrix, SavedMatrix

__all__ = [
    "ANDROID_CONFIG_FILE",
    "AndroidArgs",
    "ArgsError",
    "CONFIG_FILES",
    "Device",
    "IN_PROGRESS_STATES",
    "IOS_CONFIG_FILE",
    "IosArgs",
    "MatrixMap",
    "MatrixState",
    "Platform",
    "RemoteMatrix",
    "RunArgs",
    "SavedMatrix",
    "TERMINAL_STATES",
    "completed",
    "in_progress",
    "load_args",
    "parse_args",
]
