"""Fetch extracted document text and shape it into chat context."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from .config import DocumentConfig

logger = logging.getLogger(__name__)

FALLBACK_CONTEXT = "I'm working on a document in the editor and need writing assistance."


class DocumentContextFetcher:
    """Client for ``GET /document/{id}/content``."""

    def __init__(self, config: Optional[DocumentConfig] = None) -> None:
        self.config = config or DocumentConfig()

    def fetch(self, document_id: str) -> Optional[str]:
        """Return the extracted text, or ``None`` when the server has none."""
        url = f"{self.config.base_url.rstrip('/')}/document/{document_id}/content"
        logger.info("Fetching document content for %s", document_id)
        try:
            response = requests.get(url, timeout=self.config.request_timeout)
        except requests.RequestException:
            logger.exception("Error fetching document content for %s", document_id)
            return None

        if not response.ok:
            logger.warning("Document content request for %s failed: %s", document_id, response.status_code)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Document content response for %s is not valid JSON", document_id)
            return None
        if not isinstance(data, dict):
            logger.warning("Unexpected document content payload for %s: %s", document_id, type(data).__name__)
            return None

        content = data.get("content")
        if data.get("success") and isinstance(content, str) and content:
            return content
        return None

    def format_for_chat(self, content: str) -> str:
        limit = self.config.max_context_chars
        if len(content) > limit:
            content = content[:limit] + "... (content truncated)"
        return f"Current document content:\n\"{content}\""

    def context_for_chat(self, document_id: str) -> str:
        """Fetched and truncated document text, or a generic fallback."""
        content = self.fetch(document_id)
        if not content:
            logger.info("Using fallback context for document %s", document_id)
            return FALLBACK_CONTEXT
        return self.format_for_chat(content)
