"""Run arguments: one validated model per platform, joined as a tagged union.

The raw YAML text is kept on the model (``data``) so the exact file the user
ran with can be written into the run directory and reloaded on resume.
"""

import re
from pathlib import Path
from typing import Annotated, ClassVar, Literal, Union

import yaml
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from .enums import Platform

ANDROID_CONFIG_FILE = "matrixrun.android.yml"
IOS_CONFIG_FILE = "matrixrun.ios.yml"

# JUnit reports are always fetched
DEFAULT_ARTIFACT_PATTERNS = (r".*test_result_\d+\.xml$",)


class ArgsError(Exception):
    """Run arguments could not be read or failed validation."""


class Device(BaseModel):
    model: str
    version: str
    locale: str = "en"
    orientation: str = "portrait"


class _BaseArgs(BaseModel):
    model_config = {"populate_by_name": True}

    # Set by each platform variant
    config_file: ClassVar[str]

    project: str
    results_bucket: str
    async_: bool = Field(default=False, alias="async")
    devices: list[Device] = Field(min_length=1)
    test_timeout: str = "15m"
    flaky_test_attempts: int = Field(default=0, ge=0, le=10)
    files_to_download: list[str] = []
    test_targets_shards: list[list[str]] = [[]]
    data: str = Field(default="", exclude=True)

    @field_validator("files_to_download")
    @classmethod
    def validate_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"invalid files_to_download pattern {pattern!r}: {exc}") from exc
        return value

    @field_validator("test_targets_shards")
    @classmethod
    def validate_shards(cls, value: list[list[str]]) -> list[list[str]]:
        return value or [[]]

    def artifact_patterns(self) -> list[re.Pattern]:
        return [re.compile(p) for p in (*DEFAULT_ARTIFACT_PATTERNS, *self.files_to_download)]

    @property
    def config_file_name(self) -> str:
        return self.config_file


def _require_gcs(value: str) -> str:
    if not value.startswith("gs://"):
        raise ValueError(f"expected a gs:// path, got {value!r}")
    return value


class AndroidArgs(_BaseArgs):
    config_file: ClassVar[str] = ANDROID_CONFIG_FILE

    platform: Literal["android"] = "android"
    app: str
    test: str

    @field_validator("app", "test")
    @classmethod
    def validate_gcs_paths(cls, value: str) -> str:
        return _require_gcs(value)


class IosArgs(_BaseArgs):
    config_file: ClassVar[str] = IOS_CONFIG_FILE

    platform: Literal["ios"] = "ios"
    test: str
    xctestrun_file: str

    @field_validator("test", "xctestrun_file")
    @classmethod
    def validate_gcs_paths(cls, value: str) -> str:
        return _require_gcs(value)


RunArgs = Annotated[Union[AndroidArgs, IosArgs], Field(discriminator="platform")]

_run_args_adapter = TypeAdapter(RunArgs)

CONFIG_FILES = {
    Platform.ANDROID: ANDROID_CONFIG_FILE,
    Platform.IOS: IOS_CONFIG_FILE,
}


def parse_args(text: str, platform: Platform) -> AndroidArgs | IosArgs:
    """Parse YAML run arguments for ``platform``."""
    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ArgsError(f"Invalid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ArgsError("Run arguments must be a YAML mapping")

    declared = raw.get("platform")
    if declared is not None and declared != Platform(platform).value:
        raise ArgsError(
            f"Config declares platform {declared!r} but {Platform(platform).value!r} was requested"
        )
    raw["platform"] = Platform(platform).value
    raw["data"] = text

    try:
        return _run_args_adapter.validate_python(raw)
    except ValidationError as exc:
        raise ArgsError(f"Invalid {Platform(platform).value} run arguments:\n{exc}") from exc


def load_args(path: str | Path, platform: Platform) -> AndroidArgs | IosArgs:
    """Read and validate a run-arguments file."""
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as exc:
        raise ArgsError(f"Cannot read config {path}: {exc}") from exc
    return parse_args(text, platform)
