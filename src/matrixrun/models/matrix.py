from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from .enums import MatrixState, in_progress

_REMOTE_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class TestDetails(BaseModel):
    """Detail block of a single test execution as reported by the testing service."""

    model_config = _REMOTE_CONFIG

    error_message: Optional[str] = None
    progress_messages: Optional[list[str]] = None


class TestExecution(BaseModel):
    model_config = _REMOTE_CONFIG

    id: Optional[str] = None
    state: str = ""
    test_details: Optional[TestDetails] = None


class GoogleCloudStorage(BaseModel):
    model_config = _REMOTE_CONFIG

    gcs_path: str = ""


class ResultStorage(BaseModel):
    model_config = _REMOTE_CONFIG

    google_cloud_storage: GoogleCloudStorage = GoogleCloudStorage()
    results_url: Optional[str] = None


class RemoteMatrix(BaseModel):
    """A test matrix resource freshly fetched from the testing service."""

    model_config = _REMOTE_CONFIG

    test_matrix_id: str
    state: MatrixState
    test_executions: list[TestExecution] = []
    result_storage: ResultStorage = ResultStorage()
    outcome_summary: Optional[str] = None


class SavedMatrix(BaseModel):
    """Locally persisted record of one remotely scheduled matrix."""

    matrix_id: str
    state: MatrixState
    gcs_path: str = ""
    web_link: str = ""
    outcome: str = ""
    downloaded: bool = False

    @classmethod
    def from_remote(cls, remote: RemoteMatrix) -> "SavedMatrix":
        saved = cls(matrix_id=remote.test_matrix_id, state=remote.state)
        saved.update(remote)
        return saved

    @property
    def gcs_root_bucket(self) -> str:
        return self.gcs_path.split("/", 1)[0]

    @property
    def gcs_path_without_root_bucket(self) -> str:
        parts = self.gcs_path.split("/", 1)
        return parts[1] if len(parts) > 1 else ""

    def update(self, remote: RemoteMatrix) -> bool:
        """Merge a fetched remote matrix. Returns True if any field changed."""
        if remote.test_matrix_id != self.matrix_id:
            raise ValueError(
                f"Cannot merge matrix {remote.test_matrix_id} into {self.matrix_id}"
            )

        changed = False
        if remote.state != self.state:
            self.state = remote.state
            changed = True

        outcome = remote.outcome_summary or ""
        if outcome != self.outcome:
            self.outcome = outcome
            changed = True

        web_link = remote.result_storage.results_url or ""
        if web_link and web_link != self.web_link:
            self.web_link = web_link
            changed = True

        # Storage location is fixed once the service assigns it
        if not self.gcs_path:
            gcs_path = remote.result_storage.google_cloud_storage.gcs_path
            gcs_path = gcs_path.removeprefix("gs://")
            if gcs_path:
                self.gcs_path = gcs_path
                changed = True

        return changed

    def mark_downloaded(self) -> None:
        if self.state != MatrixState.FINISHED:
            raise ValueError(
                f"Matrix {self.matrix_id} is {self.state.value}, not FINISHED"
            )
        self.downloaded = True


@dataclass
class MatrixMap:
    """All matrices of one run, keyed by matrix id."""

    map: dict[str, SavedMatrix] = field(default_factory=dict)
    run_path: str = ""
    # Directory the map was loaded from; unset for a freshly submitted run
    run_dir: Optional[Path] = None

    def in_progress(self) -> list[SavedMatrix]:
        return [m for m in self.map.values() if in_progress(m.state)]

    def finished_not_downloaded(self) -> list[SavedMatrix]:
        return [
            m for m in self.map.values()
            if m.state == MatrixState.FINISHED and not m.downloaded
        ]
