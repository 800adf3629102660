"""Page fetch tool: download a URL and reduce it to readable text."""

import logging
from typing import Any

import httpx

from application.agents.base_agent import ProgressEvent, ProgressEventType
from application.tools.base import ResearchTool, extract_text_from_html

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "... [truncated]"
NO_CONTENT_MESSAGE = "No readable content found on page."


class PageFetchTool(ResearchTool):
    """Fetch a web page and return its cleaned, truncated text."""

    name = "fetch_url"
    description = "Fetch and read the content of a specific URL. Use this to get detailed information from a webpage found in search results."
    parameters = {
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": "The URL to fetch",
            },
        },
        "required": ["url"],
    }
    failure_label = "Fetch failed"

    def __init__(
        self,
        user_agent: str,
        timeout: float = 10.0,
        max_chars: int = 8000,
        preview_chars: int = 500,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(transport)
        self._user_agent = user_agent
        self._timeout = timeout
        self._max_chars = max_chars
        self._preview_chars = preview_chars

    async def execute(self, arguments: dict[str, Any]) -> str:
        url = arguments.get("url", "")
        logger.info(f"Fetching URL: {url}")

        headers = {
            "User-Agent": self._user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }
        try:
            async with self._create_client(self._timeout, follow_redirects=True, max_redirects=5) as client:
                response = await client.get(url, headers=headers)
                if response.status_code >= 400:
                    logger.warning(f"Fetch of {url} returned {response.status_code}")
                    return self._failed(f"Failed to fetch: {response.status_code}", "http_status")
                body = response.text
        except httpx.TimeoutException:
            logger.warning(f"Fetch of {url} timed out after {self._timeout}s")
            return self._failed("Fetch failed: request timed out", "timeout")
        except httpx.RequestError as e:
            logger.warning(f"Fetch of {url} failed: {e}")
            return self._failed(f"Fetch failed: {e}", "request_error")

        text = extract_text_from_html(body)
        logger.debug(f"Extracted {len(text)} chars from {len(body)} bytes")
        if len(text) > self._max_chars:
            text = text[: self._max_chars] + TRUNCATION_MARKER

        return text or NO_CONTENT_MESSAGE

    def preview(self, result: str) -> str:
        """Shorten a fetch result for the progress stream."""
        return result[: self._preview_chars] + "..."

    def start_event(self, arguments: dict[str, Any]) -> ProgressEvent:
        return ProgressEvent(ProgressEventType.FETCH_START, {"url": arguments.get("url", "")})

    def results_event(self, arguments: dict[str, Any], result: str) -> ProgressEvent:
        return ProgressEvent(ProgressEventType.FETCH_RESULTS, {"content": self.preview(result)})
