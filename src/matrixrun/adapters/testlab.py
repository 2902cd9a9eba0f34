"""Real test-matrix service adapter using httpx with bearer-token authentication."""

import asyncio
import logging
import re
from typing import Any

import httpx

from matrixrun.models.args import AndroidArgs, IosArgs
from matrixrun.models.matrix import MatrixMap, RemoteMatrix, SavedMatrix

from .base import MatrixServiceAdapter

logger = logging.getLogger(__name__)

# Max retries with exponential backoff
MAX_RETRIES = 3
BACKOFF_BASE = 1.0

_DURATION_RE = re.compile(r"^(\d+)([smh]?)$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600}


def timeout_seconds(value: str) -> int:
    """Convert a ``15m`` / ``900s`` / ``1h`` duration to seconds."""
    match = _DURATION_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    return int(match.group(1)) * _UNIT_SECONDS[match.group(2)]


def build_matrix_body(
    args: AndroidArgs | IosArgs, run_path: str, shard_index: int, test_targets: list[str]
) -> dict[str, Any]:
    """Build a testMatrices.create request body for one shard of a run."""
    if args.platform == "android":
        test_spec: dict[str, Any] = {
            "androidInstrumentationTest": {
                "appApk": {"gcsPath": args.app},
                "testApk": {"gcsPath": args.test},
                "testTargets": test_targets,
            },
        }
        environment = {
            "androidDeviceList": {
                "androidDevices": [
                    {
                        "androidModelId": d.model,
                        "androidVersionId": d.version,
                        "locale": d.locale,
                        "orientation": d.orientation,
                    }
                    for d in args.devices
                ],
            },
        }
    elif args.platform == "ios":
        test_spec = {
            "iosXcTest": {
                "testsZip": {"gcsPath": args.test},
                "xctestrun": {"gcsPath": args.xctestrun_file},
            },
        }
        environment = {
            "iosDeviceList": {
                "iosDevices": [
                    {
                        "iosModelId": d.model,
                        "iosVersionId": d.version,
                        "locale": d.locale,
                        "orientation": d.orientation,
                    }
                    for d in args.devices
                ],
            },
        }
    else:
        raise ValueError(f"Unknown platform: {args.platform}")

    test_spec["testTimeout"] = f"{timeout_seconds(args.test_timeout)}s"
    return {
        "projectId": args.project,
        "testSpecification": test_spec,
        "environmentMatrix": environment,
        "resultStorage": {
            "googleCloudStorage": {
                "gcsPath": f"gs://{args.results_bucket}/{run_path}/shard_{shard_index}/",
            },
        },
        "flakyTestAttempts": args.flaky_test_attempts,
    }


class MatrixServiceClient(MatrixServiceAdapter):
    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, json_data: Any = None, retry: bool = True
    ) -> Any:
        url = f"{self._base_url}{path}"
        attempts = MAX_RETRIES if retry else 1
        last_exc: Exception | None = None
        for attempt in range(attempts):
            try:
                resp = await self._client.request(method, url, json=json_data)
                resp.raise_for_status()
                return resp.json() if resp.content else {}
            except (httpx.HTTPStatusError, httpx.TransportError) as exc:
                last_exc = exc
                if attempt < attempts - 1:
                    wait = BACKOFF_BASE * (2 ** attempt)
                    logger.warning(
                        "Testing request %s %s failed (attempt %d/%d): %s, retrying in %.1fs",
                        method, path, attempt + 1, attempts, exc, wait,
                    )
                    await asyncio.sleep(wait)
        raise last_exc  # type: ignore[misc]

    async def submit(self, args: AndroidArgs | IosArgs, run_path: str) -> MatrixMap:
        matrix_map = MatrixMap(run_path=run_path)
        # Creation is not idempotent; never retried
        for index, targets in enumerate(args.test_targets_shards):
            body = build_matrix_body(args, run_path, index, targets)
            data = await self._request(
                "POST", f"/projects/{args.project}/testMatrices", body, retry=False
            )
            remote = RemoteMatrix.model_validate(data)
            matrix_map.map[remote.test_matrix_id] = SavedMatrix.from_remote(remote)
            logger.info("Created matrix %s for shard %d", remote.test_matrix_id, index)
        return matrix_map

    async def refresh(self, matrix_id: str, args: AndroidArgs | IosArgs) -> RemoteMatrix:
        data = await self._request("GET", f"/projects/{args.project}/testMatrices/{matrix_id}")
        return RemoteMatrix.model_validate(data)

    async def cancel(self, matrix_id: str, args: AndroidArgs | IosArgs) -> None:
        await self._request("POST", f"/projects/{args.project}/testMatrices/{matrix_id}:cancel")
