"""Durable evidence backends: local DuckDB and an HTTP gateway (Arweave-style)."""

from __future__ import annotations

import base64
import json
import secrets
import threading
import time
from typing import TYPE_CHECKING, Protocol

import duckdb
import httpx
import structlog

from predictlink.errors import EvidenceNotFound, StorageFailure

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)


class EvidenceBackend(Protocol):
    """Durable blob store. `get` right after `put` may transiently miss."""

    async def put(self, data: bytes, tags: dict[str, str]) -> str: ...
    async def get(self, content_id: str) -> bytes: ...


def new_content_id() -> str:
    """43-char url-safe id, the same shape as an Arweave transaction id."""
    return secrets.token_urlsafe(32)


class DuckDBEvidenceBackend:
    """Evidence blobs in the local DuckDB file. Duplicate uploads get distinct ids."""

    def __init__(self, conn: DuckDBPyConnection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    async def put(self, data: bytes, tags: dict[str, str]) -> str:
        content_id = new_content_id()
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT INTO evidence_blobs (content_id, data, tags, stored_at) VALUES (?, ?, ?, ?)",
                    [content_id, data, json.dumps(tags), int(time.time())],
                )
        except duckdb.Error as e:
            raise StorageFailure(f"evidence write failed: {e}") from e
        return content_id

    async def get(self, content_id: str) -> bytes:
        with self._lock:
            row = self._conn.execute(
                "SELECT data FROM evidence_blobs WHERE content_id = ?", [content_id]
            ).fetchone()
        if row is None:
            raise EvidenceNotFound(f"no evidence with id {content_id}", content_id=content_id)
        return bytes(row[0])


class HttpEvidenceBackend:
    """Upload/download through an HTTP evidence gateway.

    put: POST {upload_url} with {"data": <base64>, "tags": [{"name", "value"}]} -> {"id": ...}
    get: GET {gateway_url}/{id} -> raw bytes
    """

    def __init__(
        self,
        gateway_url: str,
        upload_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.gateway_url = gateway_url.rstrip("/")
        self.upload_url = upload_url
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def put(self, data: bytes, tags: dict[str, str]) -> str:
        body = {
            "data": base64.b64encode(data).decode("ascii"),
            "tags": [{"name": k, "value": v} for k, v in tags.items()],
        }
        try:
            resp = await self._client.post(self.upload_url, json=body)
            resp.raise_for_status()
            content_id = resp.json().get("id")
        except (httpx.HTTPError, ValueError) as e:
            raise StorageFailure(f"evidence upload failed: {e}") from e
        if not content_id:
            raise StorageFailure("evidence upload returned no id")
        log.debug("evidence_uploaded", content_id=content_id, size=len(data))
        return str(content_id)

    async def get(self, content_id: str) -> bytes:
        try:
            resp = await self._client.get(f"{self.gateway_url}/{content_id}")
        except httpx.HTTPError as e:
            raise StorageFailure(f"evidence download failed: {e}") from e
        if resp.status_code == 404:
            raise EvidenceNotFound(f"no evidence with id {content_id}", content_id=content_id)
        if resp.is_error:
            raise StorageFailure(f"evidence download failed: HTTP {resp.status_code}")
        return resp.content

    async def aclose(self) -> None:
        await self._client.aclose()
