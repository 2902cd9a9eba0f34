"""Real object-storage adapter for the GCS JSON API using httpx."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from .base import StorageAdapter, StorageObject

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BACKOFF_BASE = 1.0


class GcsClient(StorageAdapter):
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

    async def _get(self, path: str, params: dict | None = None) -> Any:
        url = f"{self._base_url}{path}"
        last_exc: Exception | None = None
        for attempt in range(MAX_RETRIES):
            try:
                resp = await self._client.get(url, params=params)
                resp.raise_for_status()
                return resp.json()
            except (httpx.HTTPStatusError, httpx.TransportError) as exc:
                last_exc = exc
                if attempt < MAX_RETRIES - 1:
                    wait = BACKOFF_BASE * (2 ** attempt)
                    logger.warning(
                        "GCS request %s failed (attempt %d/%d): %s, retrying in %.1fs",
                        path, attempt + 1, MAX_RETRIES, exc, wait,
                    )
                    await asyncio.sleep(wait)
        raise last_exc  # type: ignore[misc]

    async def list_objects(self, bucket: str, prefix: str) -> list[StorageObject]:
        objects: list[StorageObject] = []
        params: dict[str, str] = {
            "prefix": prefix,
            "fields": "items(name,size),nextPageToken",
        }
        while True:
            data = await self._get(f"/storage/v1/b/{quote(bucket, safe='')}/o", params=params)
            for item in data.get("items", []):
                objects.append(StorageObject(
                    bucket=bucket,
                    name=item["name"],
                    size=int(item.get("size", 0)),
                ))
            token = data.get("nextPageToken")
            if not token:
                return objects
            params = {**params, "pageToken": token}

    async def download(self, obj: StorageObject, local_path: Path) -> None:
        url = (
            f"{self._base_url}/download/storage/v1/b/{quote(obj.bucket, safe='')}"
            f"/o/{quote(obj.name, safe='')}"
        )
        local_path = Path(local_path)
        partial = local_path.with_name(local_path.name + ".part")
        try:
            async with self._client.stream("GET", url, params={"alt": "media"}) as resp:
                resp.raise_for_status()
                with open(partial, "wb") as f:
                    async for chunk in resp.aiter_bytes():
                        f.write(chunk)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        # Only complete files appear under the final name
        os.replace(partial, local_path)
        logger.debug("Downloaded gs://%s/%s to %s", obj.bucket, obj.name, local_path)
