"""Application services for Research Agent."""

from application.services.chat_stream_relay import SSE_HEADERS, ChatStreamRelay, format_sse_frame

__all__ = [
    "ChatStreamRelay",
    "SSE_HEADERS",
    "format_sse_frame",
]
