"""Configuration objects for the chat core."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class ChatLLMConfig:
    """LLM connection details for one chat-completions endpoint."""

    endpoint: str = "https://generativelanguage.googleapis.com/v1beta/openai/chat/completions"
    model: str = "gemini-2.5-flash"
    api_key: Optional[str] = None
    temperature: Optional[float] = 0.7
    request_timeout: int = 60
    # Seconds to wait between streamed chunks before giving up; None waits forever.
    stream_idle_timeout: Optional[float] = None


@dataclass
class SearchConfig:
    """Brave web search settings."""

    endpoint: str = "https://api.search.brave.com/res/v1/web/search"
    api_key: Optional[str] = field(default_factory=lambda: os.environ.get("BRAVE_API_KEY"))
    result_count: int = 5
    request_timeout: float = 10.0


@dataclass
class DocumentConfig:
    """Where extracted document text is served from."""

    base_url: str = "http://localhost:3000/api"
    request_timeout: float = 10.0
    max_context_chars: int = 2000


@dataclass
class ChatConfig:
    """Runtime controls for chat behaviour."""

    search: SearchConfig = field(default_factory=SearchConfig)
    documents: DocumentConfig = field(default_factory=DocumentConfig)
    default_model: str = "gemini-2.5-flash"
    request_timeout: int = 60
    stream_idle_timeout: Optional[float] = None
    conversation_ttl_seconds: Optional[int] = None
    system_prompt: str = (
        "You are OnlyWriteAI, an intelligent writing assistant integrated with a document "
        "editor. You help users with:\n\n"
        "1. **Document Analysis**: Review and analyze document content\n"
        "2. **Writing Assistance**: Improve clarity, grammar, tone, and structure\n"
        "3. **Content Generation**: Help brainstorm, expand, or rewrite content\n"
        "4. **Document Context**: Use provided document context to give relevant suggestions\n\n"
        "Always:\n"
        "- Be helpful and constructive\n"
        "- Provide specific, actionable suggestions\n"
        "- Maintain conversation context\n"
        "- Reference document content when provided\n"
        "- Keep responses concise but thorough\n\n"
        "You are embedded in a document editing environment, so focus on practical writing assistance."
    )
    model_kwargs: Dict[str, object] = field(default_factory=dict)
