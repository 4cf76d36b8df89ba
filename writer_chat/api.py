"""FastAPI entry point for the writing assistant chat core."""

from __future__ import annotations

import argparse
import logging
import threading
from typing import AsyncIterator, Generator, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import iterate_in_threadpool, run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, validator
import uvicorn

from .config import ChatConfig, DocumentConfig, SearchConfig
from .model_registry import DEFAULT_MODEL, list_models
from .service import ChatService
from .utils import setup_logging

logger = logging.getLogger(__name__)

STREAM_ACCEPT = "text/stream"


class ChatRequest(BaseModel):
    message: str = Field(..., description="User message to send to the model.")
    conversation_id: str = Field("default", alias="conversationId", description="Chat session identifier.")
    document_context: Optional[str] = Field(
        None, alias="documentContext", description="Already-extracted document text to ground the answer."
    )
    document_id: Optional[str] = Field(
        None, alias="documentId", description="Document whose content is fetched when no context is supplied."
    )
    model: Optional[str] = Field(None, description="Model key from /api/ai/models.")
    search_mode: bool = Field(False, alias="searchMode", description="Augment the prompt with web search.")

    @validator("message", "conversation_id")
    def _not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("field must not be empty")
        return value


def _error_response(status_code: int, error: str, details: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "details": details})


async def _stream_until_disconnect(
    request: Request, frames: Generator[str, None, None], cancel_event: threading.Event
) -> AsyncIterator[str]:
    """Relay frames until the client goes away, then stop the dispatcher.

    The relay task may also be cancelled by the server while a worker thread
    is inside ``next(frames)``.  Closing a running generator raises
    ``ValueError``; the cancel event then makes the dispatcher stop and close
    the upstream itself on its next step.
    """
    try:
        async for frame in iterate_in_threadpool(frames):
            if await request.is_disconnected():
                logger.info("Client disconnected; cancelling stream")
                return
            yield frame
    finally:
        cancel_event.set()
        try:
            frames.close()
        except ValueError:
            logger.debug("Frame generator still running; dispatcher will stop on the cancel signal", exc_info=True)


def create_app(
    chat_config: Optional[ChatConfig] = None,
    *,
    log_dir: Optional[str] = None,
    service: Optional[ChatService] = None,
) -> FastAPI:
    if log_dir:
        setup_logging(log_dir, logging.INFO)

    app = FastAPI(title="Writer Chat", version="0.1.0")
    app.state.service = service or ChatService(chat_config)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/ai/models")
    async def models() -> dict:
        return {"default": DEFAULT_MODEL, "models": [model.to_dict() for model in list_models()]}

    @app.post("/api/ai/chat")
    async def chat(payload: ChatRequest, request: Request):
        logger.info(
            "Chat request for conversation %s (search=%s, document=%s)",
            payload.conversation_id,
            "on" if payload.search_mode else "off",
            "yes" if payload.document_context or payload.document_id else "no",
        )
        options = dict(
            document_context=payload.document_context,
            document_id=payload.document_id,
            model=payload.model,
            search_mode=payload.search_mode,
        )
        streaming = STREAM_ACCEPT in request.headers.get("accept", "")

        try:
            if not streaming:
                body = await run_in_threadpool(
                    app.state.service.chat, payload.conversation_id, payload.message, **options
                )
                return body

            cancel_event = threading.Event()
            frames = await run_in_threadpool(
                app.state.service.stream_chat,
                payload.conversation_id,
                payload.message,
                cancel_event=cancel_event,
                **options,
            )
        except ValueError as exc:
            return _error_response(400, "Invalid chat request", str(exc))
        except Exception as exc:
            logger.exception("Chat request failed (conversation_id=%s)", payload.conversation_id)
            return _error_response(500, "Failed to generate response", str(exc) or type(exc).__name__)

        return StreamingResponse(
            _stream_until_disconnect(request, frames, cancel_event),
            media_type="text/plain; charset=utf-8",
            headers={"Cache-Control": "no-cache"},
        )

    @app.get("/api/ai/chat/conversations")
    async def conversations() -> dict:
        return {"conversations": app.state.service.list_conversations()}

    @app.get("/api/ai/chat/history/{conversation_id}")
    async def history(conversation_id: str):
        try:
            return app.state.service.get_history(conversation_id)
        except ValueError as exc:
            return _error_response(404, "Conversation not found", str(exc))

    return app


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the writing assistant chat service.")
    parser.add_argument("--host", default="0.0.0.0", help="Host interface to bind.")
    parser.add_argument("--port", type=int, default=8004, help="Port to bind.")
    parser.add_argument("--log_dir", help="Directory for application logs.")
    parser.add_argument("--default_model", default=DEFAULT_MODEL, help="Model used when a request names none.")
    parser.add_argument("--request_timeout", type=int, default=60, help="Timeout for LLM calls (seconds).")
    parser.add_argument(
        "--stream_idle_timeout", type=float, default=None, help="Max seconds between streamed chunks."
    )
    parser.add_argument("--search_timeout", type=float, default=10.0, help="Timeout for web search (seconds).")
    parser.add_argument("--search_results", type=int, default=5, help="Web results injected per search.")
    parser.add_argument(
        "--document_base_url", default="http://localhost:3000/api", help="Base URL of the document content service."
    )
    parser.add_argument(
        "--conversation_ttl", type=int, default=None, help="Evict conversations idle for this many seconds."
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    chat_cfg = ChatConfig(
        search=SearchConfig(result_count=args.search_results, request_timeout=args.search_timeout),
        documents=DocumentConfig(base_url=args.document_base_url),
        default_model=args.default_model,
        request_timeout=args.request_timeout,
        stream_idle_timeout=args.stream_idle_timeout,
        conversation_ttl_seconds=args.conversation_ttl,
    )

    app = create_app(chat_cfg, log_dir=args.log_dir)
    logger.info("Starting chat service on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
