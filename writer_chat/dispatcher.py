"""Drive a generation capability and turn its output into the chunk protocol.

A stream goes ``START -> STREAMING -> DONE`` or ``START -> STREAMING -> ERROR``.
Every non-empty delta produces a chunk whose ``fullResponseSoFar`` extends the
previous one.  The assistant turn is committed to the conversation only when
the upstream finishes cleanly; an upstream failure, a cancel signal or the
consumer closing the iterator all leave the log without an assistant turn.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, Iterator, List, Optional

from .conversation import Conversation
from .llm_client import GenerationCapability, normalise_delta
from .prompts import ComposedPrompt
from .search import SearchResult

logger = logging.getLogger(__name__)


@dataclass
class StreamChunk:
    conversation_id: str
    full_response: str
    content_delta: Optional[str] = None
    search_results: Optional[List[SearchResult]] = None
    is_search_response: bool = False
    done: bool = False
    error: Optional[str] = None
    details: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.content_delta is not None:
            payload["contentDelta"] = self.content_delta
        payload.update(
            {
                "fullResponseSoFar": self.full_response,
                "conversationId": self.conversation_id,
                "searchResults": _results_payload(self.search_results),
                "isSearchResponse": self.is_search_response,
                "done": self.done,
            }
        )
        if self.error is not None:
            payload["error"] = self.error
            payload["details"] = self.details or ""
        return payload

    def to_frame(self) -> str:
        return f"data: {json.dumps(self.to_payload())}\n\n"


@dataclass
class PreparedTurn:
    """Everything resolved before the first generation call."""

    conversation: Conversation
    capability: GenerationCapability
    prompt: ComposedPrompt
    prompt_messages: List[Dict[str, str]] = field(default_factory=list)

    @property
    def conversation_id(self) -> str:
        return self.conversation.id


class StreamingDispatcher:
    def __init__(self, turn: PreparedTurn, *, cancel_event: Optional[threading.Event] = None) -> None:
        self.turn = turn
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def chunks(self) -> Iterator[StreamChunk]:
        conversation = self.turn.conversation
        accumulator = ""
        upstream = None
        try:
            upstream = iter(self.turn.capability.stream(self.turn.prompt_messages))
            while True:
                if self.cancelled:
                    logger.info("Client went away; abandoning stream for conversation %s", conversation.id)
                    return
                try:
                    fragment = next(upstream)
                except StopIteration:
                    break
                delta = normalise_delta(fragment)
                if not delta:
                    continue
                accumulator += delta
                yield self._chunk(accumulator, content_delta=delta)

            # The client may have left while the last pull was blocked.
            if self.cancelled:
                logger.info("Client went away before completion; dropping reply for conversation %s", conversation.id)
                return
            conversation.append("assistant", accumulator)
        except Exception as exc:
            logger.exception("Streaming failed for conversation %s", conversation.id)
            yield self._chunk(accumulator, error="Streaming failed", details=str(exc) or type(exc).__name__)
            return
        finally:
            _close_quietly(upstream)
            conversation.end_turn()

        logger.info("Stream complete for conversation %s (%d chars)", conversation.id, len(accumulator))
        yield self._chunk(accumulator, done=True)

    def frames(self) -> Generator[str, None, None]:
        """Wire frames (``data: {json}\\n\\n``) for :meth:`chunks`."""
        chunks = self.chunks()
        try:
            for chunk in chunks:
                yield chunk.to_frame()
        finally:
            chunks.close()

    def complete(self) -> Dict[str, Any]:
        """Single-shot path: one ``invoke`` call and one JSON payload."""
        try:
            reply = normalise_delta(self.turn.capability.invoke(self.turn.prompt_messages))
            self.turn.conversation.append("assistant", reply)
        finally:
            self.turn.conversation.end_turn()
        return {
            "message": reply,
            "conversationId": self.turn.conversation_id,
            "searchResults": _results_payload(self.turn.prompt.search_results),
            "isSearchResponse": self.turn.prompt.is_search,
        }

    def _chunk(self, full_response: str, **kwargs: Any) -> StreamChunk:
        return StreamChunk(
            conversation_id=self.turn.conversation_id,
            full_response=full_response,
            search_results=self.turn.prompt.search_results,
            is_search_response=self.turn.prompt.is_search,
            **kwargs,
        )


def _results_payload(results: Optional[List[SearchResult]]) -> Optional[List[Dict[str, str]]]:
    if results is None:
        return None
    return [result.to_dict() for result in results]


def _close_quietly(upstream: Any) -> None:
    close = getattr(upstream, "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            logger.debug("Ignoring error while closing upstream stream", exc_info=True)
