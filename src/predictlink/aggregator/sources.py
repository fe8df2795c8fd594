"""Source providers - each returns source labels for a query and may fail independently."""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from predictlink.errors import SourceUnavailable

log = structlog.get_logger(__name__)


class SourceProvider(Protocol):
    """search(query) -> source labels. Raise on failure; the aggregator degrades."""

    name: str

    async def search(self, query: str) -> list[str]: ...


class StaticSource:
    """Fixed labels (e.g. wire services always consulted)."""

    def __init__(self, labels: list[str], name: str = "static") -> None:
        self.name = name
        self.labels = list(labels)

    async def search(self, query: str) -> list[str]:
        return list(self.labels)


def _article_sources(data: dict[str, Any]) -> list[str]:
    """Extract source names from a NewsAPI /everything response."""
    labels = []
    for article in data.get("articles") or []:
        if not isinstance(article, dict):
            continue
        source = article.get("source") or {}
        name = source.get("name") if isinstance(source, dict) else None
        if name:
            labels.append(str(name))
    return labels


class NewsApiSource:
    """NewsAPI /v2/everything search; returns the names of the publishing outlets."""

    name = "newsapi"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://newsapi.org/v2",
        page_size: int = 20,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def search(self, query: str) -> list[str]:
        params = {"q": query, "pageSize": self.page_size, "sortBy": "relevancy"}
        try:
            resp = await self._client.get(
                f"{self.base_url}/everything",
                params=params,
                headers={"X-Api-Key": self.api_key},
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SourceUnavailable(f"newsapi search failed: {e}", provider=self.name) from e
        if not isinstance(data, dict) or data.get("status") == "error":
            raise SourceUnavailable("newsapi returned an error payload", provider=self.name)
        return _article_sources(data)

    async def aclose(self) -> None:
        await self._client.aclose()
