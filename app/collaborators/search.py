from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from app.core import config

logger = logging.getLogger(__name__)

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"


@dataclass(frozen=True, slots=True)
class SearchResult:
    title: str
    link: str
    snippet: str


class SearchError(Exception):
    pass


class SearchCollaborator(Protocol):
    name: str

    async def search(self, query: str) -> list[SearchResult]: ...


class GoogleSearch:
    """Google Programmable Search (Custom Search JSON API)."""

    name = "Google Search"

    def __init__(
        self,
        api_key: str = config.GOOGLE_SEARCH_API_KEY,
        engine_id: str = config.GOOGLE_SEARCH_ENGINE_ID,
        *,
        max_results: int = 5,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self._api_key = api_key
        self._engine_id = engine_id
        self._max_results = max_results
        self._timeout = timeout or httpx.Timeout(
            config.REQUEST_TIMEOUT_S, connect=config.CONNECT_TIMEOUT_S
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._engine_id)

    async def search(self, query: str) -> list[SearchResult]:
        if not self.configured:
            raise SearchError(
                "Google search is not configured. Set GOOGLE_SEARCH_API_KEY and "
                "GOOGLE_SEARCH_ENGINE_ID."
            )

        params = {
            "key": self._api_key,
            "cx": self._engine_id,
            "q": query,
            "num": self._max_results,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                r = await client.get(GOOGLE_SEARCH_URL, params=params)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as exc:
            raise SearchError(f"Search returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise SearchError(f"Search request failed: {exc}") from exc
        except ValueError as exc:
            raise SearchError("Search returned a non-JSON body") from exc

        return _results(data)[: self._max_results]


def _results(data: Any) -> list[SearchResult]:
    items = data.get("items") if isinstance(data, dict) else None
    results: list[SearchResult] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        results.append(
            SearchResult(
                title=str(item.get("title", "")),
                link=str(item.get("link", "")),
                snippet=str(item.get("snippet", "")).replace("\n", " "),
            )
        )
    return results


def default_search() -> GoogleSearch | None:
    search = GoogleSearch()
    if not search.configured:
        logger.info("web search disabled: no search credentials configured")
        return None
    return search
