"""Conversational core for an AI writing assistant embedded in a document editor.

This package keeps per-conversation message logs, composes prompts in plain,
document-context or web-search-augmented form, calls an OpenAI-compatible
chat-completions model and streams the reply back as ``data: {json}`` frames.
The primary entry points are ``writer_chat.api.create_app`` for running the
HTTP service and ``writer_chat.service.ChatService`` for embedding the chat
engine directly into Python code.
"""

from .config import ChatConfig, ChatLLMConfig, DocumentConfig, SearchConfig
from .conversation import Conversation, ConversationStore, Message
from .service import ChatService

__all__ = [
    "ChatConfig",
    "ChatLLMConfig",
    "ChatService",
    "Conversation",
    "ConversationStore",
    "DocumentConfig",
    "Message",
    "SearchConfig",
]
