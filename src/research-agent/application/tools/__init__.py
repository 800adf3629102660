"""Research tools offered to the model.

This package contains:
- web_search: SearXNG-backed search with a recency heuristic
- fetch_url: Page download reduced to readable text
- ToolRegistry: Declarations and argument validation
"""

from application.tools.base import ResearchTool, extract_text_from_html
from application.tools.page_fetch import NO_CONTENT_MESSAGE, TRUNCATION_MARKER, PageFetchTool
from application.tools.registry import ToolRegistry
from application.tools.web_search import NO_RESULTS_MESSAGE, WebSearchTool, is_recent_query

__all__ = [
    "NO_CONTENT_MESSAGE",
    "NO_RESULTS_MESSAGE",
    "TRUNCATION_MARKER",
    "PageFetchTool",
    "ResearchTool",
    "ToolRegistry",
    "WebSearchTool",
    "extract_text_from_html",
    "is_recent_query",
]
