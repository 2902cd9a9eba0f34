"""Tests for the REST test-matrix client."""

import json

import httpx
import pytest

from matrixrun.adapters import testlab
from matrixrun.adapters.testlab import MatrixServiceClient, build_matrix_body, timeout_seconds
from matrixrun.models.enums import MatrixState

BASE_URL = "https://testing.example.com/v1"


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(testlab, "BACKOFF_BASE", 0)


def _matrix_json(matrix_id, state="PENDING", gcs_path=""):
    return {
        "testMatrixId": matrix_id,
        "state": state,
        "testExecutions": [{"state": state}],
        "resultStorage": {"googleCloudStorage": {"gcsPath": gcs_path}},
    }


class TestTimeoutSeconds:
    @pytest.mark.parametrize("value,expected", [
        ("15m", 900), ("900s", 900), ("1h", 3600), ("30", 30),
    ])
    def test_durations(self, value, expected):
        assert timeout_seconds(value) == expected

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid duration"):
            timeout_seconds("soon")


class TestBuildMatrixBody:
    def test_android(self, android_args):
        body = build_matrix_body(android_args, "run-1", 2, ["class a.A"])

        test_spec = body["testSpecification"]
        assert test_spec["androidInstrumentationTest"] == {
            "appApk": {"gcsPath": "gs://demo-bucket/app.apk"},
            "testApk": {"gcsPath": "gs://demo-bucket/app-test.apk"},
            "testTargets": ["class a.A"],
        }
        assert test_spec["testTimeout"] == "900s"
        device = body["environmentMatrix"]["androidDeviceList"]["androidDevices"][0]
        assert device == {
            "androidModelId": "Pixel2",
            "androidVersionId": "28",
            "locale": "en",
            "orientation": "portrait",
        }
        assert body["resultStorage"]["googleCloudStorage"]["gcsPath"] == (
            "gs://demo-results/run-1/shard_2/"
        )
        assert body["projectId"] == "demo-project"

    def test_ios(self, ios_args):
        body = build_matrix_body(ios_args, "run-1", 0, [])

        assert body["testSpecification"]["iosXcTest"] == {
            "testsZip": {"gcsPath": "gs://demo-bucket/tests.zip"},
            "xctestrun": {"gcsPath": "gs://demo-bucket/app.xctestrun"},
        }
        device = body["environmentMatrix"]["iosDeviceList"]["iosDevices"][0]
        assert device["iosModelId"] == "iphone8"


class TestMatrixServiceClient:
    async def test_submit_creates_one_matrix_per_shard(self, android_args):
        requests = []

        def handler(request):
            requests.append(request)
            body = json.loads(request.content)
            gcs_path = body["resultStorage"]["googleCloudStorage"]["gcsPath"]
            return httpx.Response(200, json=_matrix_json(f"m{len(requests)}", gcs_path=gcs_path))

        android_args.test_targets_shards = [["class a.A"], ["class b.B"]]
        client = MatrixServiceClient(BASE_URL, "token", transport=httpx.MockTransport(handler))

        matrix_map = await client.submit(android_args, "run-1")
        await client.close()

        assert [r.url.path for r in requests] == ["/v1/projects/demo-project/testMatrices"] * 2
        assert requests[0].headers["Authorization"] == "Bearer token"
        assert matrix_map.run_path == "run-1"
        assert matrix_map.map["m2"].gcs_path == "demo-results/run-1/shard_1/"
        assert matrix_map.map["m1"].state == MatrixState.PENDING

    async def test_submit_is_not_retried(self, android_args):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        client = MatrixServiceClient(BASE_URL, "token", transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.HTTPStatusError):
            await client.submit(android_args, "run-1")
        assert len(calls) == 1

    async def test_refresh_retries_transient_failures(self, android_args):
        responses = iter([
            httpx.Response(503),
            httpx.Response(200, json=_matrix_json("m1", "RUNNING")),
        ])

        def handler(request):
            assert request.method == "GET"
            assert request.url.path == "/v1/projects/demo-project/testMatrices/m1"
            return next(responses)

        client = MatrixServiceClient(BASE_URL, "token", transport=httpx.MockTransport(handler))
        remote = await client.refresh("m1", android_args)

        assert remote.test_matrix_id == "m1"
        assert remote.state == MatrixState.RUNNING

    async def test_refresh_gives_up_after_max_retries(self, android_args):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = MatrixServiceClient(BASE_URL, "token", transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.HTTPStatusError):
            await client.refresh("m1", android_args)
        assert len(calls) == testlab.MAX_RETRIES

    async def test_cancel(self, android_args):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json={"testState": "CANCELLED"})

        client = MatrixServiceClient(BASE_URL, "token", transport=httpx.MockTransport(handler))
        await client.cancel("m1", android_args)

        assert seen == [("POST", "/v1/projects/demo-project/testMatrices/m1:cancel")]
