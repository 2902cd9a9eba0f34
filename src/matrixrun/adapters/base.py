from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from matrixrun.models.args import AndroidArgs, IosArgs
from matrixrun.models.matrix import MatrixMap, RemoteMatrix


@dataclass(frozen=True)
class StorageObject:
    bucket: str
    name: str
    size: int = 0


class MatrixServiceAdapter(ABC):
    @abstractmethod
    async def submit(self, args: AndroidArgs | IosArgs, run_path: str) -> MatrixMap:
        """Create the run's test matrices. Returns the accepted matrices."""

    @abstractmethod
    async def refresh(self, matrix_id: str, args: AndroidArgs | IosArgs) -> RemoteMatrix:
        """Fetch the current state of a test matrix."""

    @abstractmethod
    async def cancel(self, matrix_id: str, args: AndroidArgs | IosArgs) -> None:
        """Request cancellation of a test matrix."""


class StorageAdapter(ABC):
    @abstractmethod
    async def list_objects(self, bucket: str, prefix: str) -> list[StorageObject]:
        """List objects under a prefix."""

    @abstractmethod
    async def download(self, obj: StorageObject, local_path: Path) -> None:
        """Download an object to a local file."""
