"""Web search tool backed by a SearXNG JSON endpoint."""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from application.agents.base_agent import ProgressEvent, ProgressEventType
from application.tools.base import ResearchTool

logger = logging.getLogger(__name__)

RECENCY_PATTERN = re.compile(r"\b(latest|recent|today|now|current|score|news|weather|live|tonight|yesterday)\b", re.IGNORECASE)

NO_RESULTS_MESSAGE = "No search results found."


def is_recent_query(query: str) -> bool:
    """Check whether a query asks for current or time-sensitive information."""
    return bool(RECENCY_PATTERN.search(query))


def parse_published_at(value: Any) -> Optional[datetime]:
    """Parse a result's publication timestamp, or None when absent or unparseable.

    Naive timestamps are taken as UTC so they compare with offset-aware ones.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        published = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return published


def order_by_recency(results: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Sort dated results newest first, leaving undated results where they are.

    Dated items are reordered among the positions dated items already occupy,
    so an undated item never moves to the front or back of the list.
    """
    dated_slots = [i for i, r in enumerate(results) if parse_published_at(r.get("publishedDate"))]
    dated = sorted(
        (results[i] for i in dated_slots),
        key=lambda r: parse_published_at(r.get("publishedDate")),
        reverse=True,
    )
    ordered = list(results)
    for slot, item in zip(dated_slots, dated):
        ordered[slot] = item
    return ordered


def format_results(results: list[dict[str, Any]]) -> str:
    """Render search results as numbered entries separated by a blank line."""
    entries = []
    for index, result in enumerate(results, start=1):
        entry = f"{index}. {result.get('title') or 'Untitled'}"
        published = parse_published_at(result.get("publishedDate"))
        if published:
            entry += f" ({published.date().isoformat()})"
        entry += f"\n   {result.get('content') or 'No description'}"
        if result.get("url"):
            entry += f"\n   Source: {result['url']}"
        entries.append(entry)
    return "\n\n".join(entries)


class WebSearchTool(ResearchTool):
    """Search the web and return ranked result summaries."""

    name = "web_search"
    description = "Search the web for current information. Use this when you need up-to-date facts, news, or information you don't know."
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The search query",
            },
        },
        "required": ["query"],
    }
    failure_label = "Search failed"

    def __init__(
        self,
        search_url: str,
        language: str = "en",
        timeout: float = 15.0,
        max_results: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(transport)
        self._search_url = search_url
        self._language = language
        self._timeout = timeout
        self._max_results = max_results

    def build_params(self, query: str) -> dict[str, str]:
        """Build the SearXNG query string for a search."""
        recent = is_recent_query(query)
        params = {
            "q": query,
            "format": "json",
            "categories": "news,general" if recent else "general,news",
            "language": self._language,
        }
        if recent:
            params["time_range"] = "day"
        return params

    async def execute(self, arguments: dict[str, Any]) -> str:
        query = arguments.get("query", "")
        params = self.build_params(query)
        logger.info(f"Web search: {query!r} (recent={'time_range' in params})")

        try:
            async with self._create_client(self._timeout) as client:
                response = await client.get(self._search_url, params=params, headers={"Accept": "application/json"})
                if response.status_code >= 400:
                    logger.warning(f"Search endpoint returned {response.status_code}")
                    return self._failed(f"Search error: {response.status_code}", "http_status")
                data = response.json()
        except httpx.TimeoutException:
            logger.warning(f"Search timed out after {self._timeout}s")
            return self._failed("Search failed: request timed out", "timeout")
        except (httpx.RequestError, ValueError) as e:
            logger.warning(f"Search failed: {e}")
            return self._failed(f"Search failed: {e}", "request_error")

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            results = []
        results = [r for r in results if isinstance(r, dict)]
        if "time_range" in params:
            results = order_by_recency(results)
        results = results[: self._max_results]

        if not results:
            return NO_RESULTS_MESSAGE

        logger.info(f"Web search returned {len(results)} results")
        return format_results(results)

    def start_event(self, arguments: dict[str, Any]) -> ProgressEvent:
        return ProgressEvent(ProgressEventType.SEARCH_START, {"query": arguments.get("query", "")})

    def results_event(self, arguments: dict[str, Any], result: str) -> ProgressEvent:
        return ProgressEvent(ProgressEventType.SEARCH_RESULTS, {"results": result})
