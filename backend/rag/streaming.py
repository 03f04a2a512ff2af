"""
Server-Sent Events transport for streamed answers.

Every session emits, in order:
    sources → text* → (done | error)

The transport is an explicit state machine. Illegal transitions raise,
so a session can never emit text before its sources or emit a second
terminal event.
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from .errors import GenerationFailedError
from .models import Source

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}

GENERIC_STREAM_ERROR = "Answer generation failed"
STALLED_STREAM_ERROR = "Answer generation stalled"


class StreamState(str, Enum):
    IDLE = "idle"
    SOURCES_SENT = "sources_sent"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    StreamState.IDLE: {StreamState.SOURCES_SENT},
    StreamState.SOURCES_SENT: {StreamState.STREAMING, StreamState.DONE, StreamState.FAILED},
    StreamState.STREAMING: {StreamState.STREAMING, StreamState.DONE, StreamState.FAILED},
    StreamState.DONE: set(),
    StreamState.FAILED: set(),
}

TERMINAL_STATES = {StreamState.DONE, StreamState.FAILED}


def format_event(event_type: str, **payload: Any) -> str:
    """Frame one event as an SSE data line."""
    event: Dict[str, Any] = {"type": event_type}
    event.update(payload)
    return "data: " + json.dumps(event, ensure_ascii=False) + "\n\n"


class StreamTransport:
    """
    Frames one answer session.

    Args:
        sources: Ordered Sources, sent before any text
        fragments: Generation fragments, forwarded verbatim and in order
        fragment_timeout: Optional max wait for the next fragment
    """

    def __init__(
        self,
        sources: List[Source],
        fragments: AsyncIterator[str],
        fragment_timeout: Optional[float] = None
    ):
        self.sources = sources
        self.fragments = fragments
        self.fragment_timeout = fragment_timeout
        self.state = StreamState.IDLE
        self.fragment_count = 0
        self.cancelled = False

    def _advance(self, target: StreamState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal stream transition {self.state.value} → {target.value}")
        self.state = target

    def sources_event(self) -> str:
        self._advance(StreamState.SOURCES_SENT)
        return format_event("sources", sources=[s.to_dict() for s in self.sources])

    def text_event(self, fragment: str) -> str:
        self._advance(StreamState.STREAMING)
        self.fragment_count += 1
        return format_event("text", text=fragment)

    def done_event(self) -> str:
        self._advance(StreamState.DONE)
        return format_event("done")

    def error_event(self, message: str) -> str:
        self._advance(StreamState.FAILED)
        return format_event("error", error=message)

    async def _next_fragment(self, iterator: AsyncIterator[str]) -> str:
        if self.fragment_timeout is None:
            return await iterator.__anext__()
        return await asyncio.wait_for(iterator.__anext__(), timeout=self.fragment_timeout)

    async def _close_fragments(self, iterator: AsyncIterator[str]) -> None:
        aclose = getattr(iterator, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.warning(f"Error while closing generation stream: {e}")

    async def events(self) -> AsyncIterator[str]:
        """Yield SSE frames until exactly one terminal event has been sent."""
        yield self.sources_event()

        iterator = self.fragments.__aiter__()
        try:
            while True:
                try:
                    fragment = await self._next_fragment(iterator)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    logger.error(f"No fragment within {self.fragment_timeout}s, failing stream")
                    yield self.error_event(STALLED_STREAM_ERROR)
                    return
                except GenerationFailedError as e:
                    logger.error(f"Stream failed after {self.fragment_count} fragments: {e.message}")
                    yield self.error_event(e.message)
                    return
                except Exception:
                    logger.exception(f"[stream] Stream failed after {self.fragment_count} fragments")
                    yield self.error_event(GENERIC_STREAM_ERROR)
                    return
                yield self.text_event(fragment)

            yield self.done_event()
            logger.info(f"Stream completed with {self.fragment_count} fragments")

        except (asyncio.CancelledError, GeneratorExit):
            if self.state not in TERMINAL_STATES:
                self.cancelled = True
                logger.info(f"Client disconnected after {self.fragment_count} fragments")
            raise
        finally:
            await self._close_fragments(iterator)
