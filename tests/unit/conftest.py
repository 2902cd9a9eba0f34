import pytest

from matrixrun.adapters.mock import MockMatrixServiceAdapter, MockStorageAdapter
from matrixrun.config import Settings
from matrixrun.core.run_store import RunStore
from matrixrun.models.args import parse_args
from matrixrun.models.enums import MatrixState, Platform
from matrixrun.models.matrix import MatrixMap, SavedMatrix

ANDROID_YAML = """\
project: demo-project
results_bucket: demo-results
app: gs://demo-bucket/app.apk
test: gs://demo-bucket/app-test.apk
devices:
  - model: Pixel2
    version: "28"
files_to_download:
  - .*/logcat$
"""

IOS_YAML = """\
project: demo-project
results_bucket: demo-results
test: gs://demo-bucket/tests.zip
xctestrun_file: gs://demo-bucket/app.xctestrun
devices:
  - model: iphone8
    version: "12.0"
"""


@pytest.fixture
def settings(tmp_path):
    return Settings(
        results_dir=str(tmp_path / "results"),
        poll_interval=0,
        use_mock=True,
    )


@pytest.fixture
def store(settings):
    return RunStore(settings)


@pytest.fixture
def android_args():
    return parse_args(ANDROID_YAML, Platform.ANDROID)


@pytest.fixture
def ios_args():
    return parse_args(IOS_YAML, Platform.IOS)


@pytest.fixture
def mock_service():
    return MockMatrixServiceAdapter()


@pytest.fixture
def mock_storage():
    return MockStorageAdapter()


def make_saved(
    matrix_id="matrix-1",
    state=MatrixState.RUNNING,
    run_path="run-1",
    downloaded=False,
    outcome="",
    **kwargs,
):
    """Helper to create a SavedMatrix stored under demo-results/<run_path>/<matrix_id>/."""
    return SavedMatrix(
        matrix_id=matrix_id,
        state=state,
        gcs_path=kwargs.pop("gcs_path", f"demo-results/{run_path}/{matrix_id}/"),
        downloaded=downloaded,
        outcome=outcome,
        **kwargs,
    )


def make_map(*matrices, run_path="run-1"):
    return MatrixMap(map={m.matrix_id: m for m in matrices}, run_path=run_path)
