"""Server-Sent Events relay for research progress.

Turns the agent's progress events into ``data: <json>\\n\\n`` frames for a
FastAPI ``StreamingResponse``. Each frame is yielded as soon as its event is
produced, and the relay closes exactly once, right after the terminal event.
"""

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Optional

from application.agents.base_agent import ProgressEvent

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def format_sse_frame(event: ProgressEvent) -> str:
    """Serialize one event as an SSE data frame."""
    return f"data: {json.dumps(event.to_dict())}\n\n"


class ChatStreamRelay:
    """Relays one run's progress events to one client.

    After the terminal event, or once the client has gone away, ``emit``
    returns ``None`` instead of a frame and never raises.
    """

    def __init__(self, is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None) -> None:
        """Initialize the relay.

        Args:
            is_disconnected: Optional check for a severed client connection
                (typically ``request.is_disconnected``)
        """
        self._is_disconnected = is_disconnected
        self._closed = False
        self._disconnected = False
        self._frames_sent = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    @property
    def frames_sent(self) -> int:
        return self._frames_sent

    def emit(self, event: ProgressEvent) -> Optional[str]:
        """Frame an event for the wire.

        Returns:
            The SSE frame, or None when the stream is closed or the client is gone
        """
        if self._closed or self._disconnected:
            logger.debug(f"Dropping {event.type.value} event: stream already closed")
            return None

        frame = format_sse_frame(event)
        self._frames_sent += 1
        if event.is_terminal:
            self.close()
        return frame

    def close(self) -> None:
        """Close the stream; only the first call has any effect."""
        if self._closed:
            return
        self._closed = True
        logger.debug(f"Chat stream closed after {self._frames_sent} frame(s)")

    def mark_disconnected(self) -> None:
        if not self._disconnected:
            self._disconnected = True
            logger.info(f"Chat client disconnected after {self._frames_sent} frame(s)")

    async def stream(self, events: AsyncIterator[ProgressEvent]) -> AsyncIterator[str]:
        """Relay events from an agent run as SSE frames.

        Any exception escaping the event source becomes a single terminal
        ``error`` frame. A source that ends without a terminal event is closed
        with an ``error`` frame as well.

        The client connection is checked each time the source yields, so a
        disconnect during a long model or tool call is noticed once that call
        returns.

        Args:
            events: The agent's progress event iterator

        Yields:
            SSE frames, ending with the terminal event's frame
        """
        try:
            async for event in events:
                if self._is_disconnected is not None and await self._is_disconnected():
                    self.mark_disconnected()

                frame = self.emit(event)
                if frame is not None:
                    yield frame
                if self._closed or self._disconnected:
                    break
            else:
                if not self._closed and not self._disconnected:
                    logger.error("Event source ended without a terminal event")
                    frame = self.emit(ProgressEvent.error("Stream ended unexpectedly"))
                    if frame is not None:
                        yield frame
        except Exception as e:
            logger.exception(f"Chat stream failed: {e}")
            frame = self.emit(ProgressEvent.error(str(e) or type(e).__name__))
            if frame is not None:
                yield frame
        finally:
            self.close()
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()
