"""High level orchestration for chat with streaming, history, and augmentation."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Generator, List, Optional

from .config import ChatConfig
from .conversation import ConversationStore
from .dispatcher import PreparedTurn, StreamingDispatcher
from .documents import DocumentContextFetcher
from .llm_client import GenerationCapability
from .model_registry import create_model
from .prompts import PromptComposer, select_mode
from .search import BraveSearchClient, SearchAugmenter

logger = logging.getLogger(__name__)

ModelFactory = Callable[[str], GenerationCapability]


class ChatService:
    """Core chat engine used by both the API and direct Python consumers."""

    def __init__(
        self,
        config: Optional[ChatConfig] = None,
        *,
        store: Optional[ConversationStore] = None,
        composer: Optional[PromptComposer] = None,
        document_fetcher: Optional[DocumentContextFetcher] = None,
        model_factory: Optional[ModelFactory] = None,
    ) -> None:
        self.config = config or ChatConfig()
        self.store = store or ConversationStore(
            self.config.system_prompt, ttl_seconds=self.config.conversation_ttl_seconds
        )
        self.composer = composer or PromptComposer(SearchAugmenter(BraveSearchClient(self.config.search)))
        self.document_fetcher = document_fetcher or DocumentContextFetcher(self.config.documents)
        self.model_factory = model_factory or self._create_model

    def prepare_turn(
        self,
        conversation_id: str,
        message: str,
        *,
        document_context: Optional[str] = None,
        document_id: Optional[str] = None,
        model: Optional[str] = None,
        search_mode: bool = False,
    ) -> PreparedTurn:
        """Resolve the conversation, compose the prompt and record the user turn.

        Anything raised here happens before a generation call and is reported
        to the caller as a request failure.
        """
        if not conversation_id:
            raise ValueError("conversationId is required")
        if not message or not message.strip():
            raise ValueError("message is required")

        model_key = model or self.config.default_model
        capability = self.model_factory(model_key)
        conversation = self.store.get_or_create(conversation_id)

        if not document_context and document_id and not search_mode:
            document_context = self.document_fetcher.context_for_chat(document_id)

        mode = select_mode(search_mode, document_context)
        logger.info(
            "Chat turn for conversation %s (model=%s, mode=%s)",
            conversation_id,
            model_key,
            mode.value,
        )
        prompt = self.composer.compose(message, mode, document_context, capability=capability)
        prompt_messages = conversation.begin_turn(prompt.effective_input)
        return PreparedTurn(
            conversation=conversation,
            capability=capability,
            prompt=prompt,
            prompt_messages=prompt_messages,
        )

    def stream_chat(
        self,
        conversation_id: str,
        message: str,
        *,
        document_context: Optional[str] = None,
        document_id: Optional[str] = None,
        model: Optional[str] = None,
        search_mode: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> Generator[str, None, None]:
        """Prepare eagerly, then return a lazy iterator of wire frames."""
        turn = self.prepare_turn(
            conversation_id,
            message,
            document_context=document_context,
            document_id=document_id,
            model=model,
            search_mode=search_mode,
        )
        return StreamingDispatcher(turn, cancel_event=cancel_event).frames()

    def chat(
        self,
        conversation_id: str,
        message: str,
        *,
        document_context: Optional[str] = None,
        document_id: Optional[str] = None,
        model: Optional[str] = None,
        search_mode: bool = False,
    ) -> Dict[str, object]:
        """Single-shot reply as one JSON-ready payload."""
        turn = self.prepare_turn(
            conversation_id,
            message,
            document_context=document_context,
            document_id=document_id,
            model=model,
            search_mode=search_mode,
        )
        return StreamingDispatcher(turn).complete()

    def get_history(self, conversation_id: str) -> Dict[str, object]:
        """Return the recorded conversation and its timestamps."""
        conversation = self.store.get(conversation_id)
        if not conversation:
            raise ValueError(f"No conversation found for id '{conversation_id}'")
        return {
            "conversationId": conversation.id,
            "messages": [message.to_dict() for message in conversation.messages()],
            "createdAt": conversation.created_at,
            "updatedAt": conversation.updated_at,
        }

    def list_conversations(self) -> List[Dict[str, object]]:
        """Return lightweight conversation metadata for UI selection."""
        payload = []
        for conversation in self.store.list_conversations():
            messages = conversation.messages()
            payload.append(
                {
                    "conversationId": conversation.id,
                    "updatedAt": messages[-1].timestamp,
                    "lastMessage": messages[-1].content if len(messages) > 1 else "",
                    "messageCount": len(messages),
                }
            )
        return sorted(payload, key=lambda item: item.get("updatedAt", 0), reverse=True)

    def _create_model(self, model_key: str) -> GenerationCapability:
        return create_model(
            model_key,
            request_timeout=self.config.request_timeout,
            stream_idle_timeout=self.config.stream_idle_timeout,
            model_kwargs=self.config.model_kwargs,
        )
