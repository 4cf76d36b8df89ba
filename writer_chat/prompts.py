"""Prompt composition for plain, document-context and search-augmented turns."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List, Optional

from .llm_client import GenerationCapability
from .search import SearchAugmenter, SearchResult

DOCUMENT_PROMPT = (
    "Document Context: {context}\n\n"
    "User Question: {message}\n\n"
    "Please provide a helpful response based on the document context and user question."
)


class PromptMode(str, enum.Enum):
    PLAIN = "plain"
    DOCUMENT = "document"
    SEARCH = "search"


def select_mode(search_mode: bool, document_context: Optional[str] = None) -> PromptMode:
    """Search wins over document context; document context wins over plain."""
    if search_mode:
        return PromptMode.SEARCH
    if document_context:
        return PromptMode.DOCUMENT
    return PromptMode.PLAIN


@dataclass(frozen=True)
class ComposedPrompt:
    effective_input: str
    mode: PromptMode
    search_results: Optional[List[SearchResult]] = None

    @property
    def is_search(self) -> bool:
        return self.mode is PromptMode.SEARCH


class PromptComposer:
    def __init__(self, augmenter: Optional[SearchAugmenter] = None) -> None:
        self.augmenter = augmenter or SearchAugmenter()

    def compose(
        self,
        message: str,
        mode: PromptMode,
        context: Optional[str] = None,
        *,
        capability: Optional[GenerationCapability] = None,
    ) -> ComposedPrompt:
        if mode is PromptMode.PLAIN:
            return ComposedPrompt(message, mode)

        if mode is PromptMode.DOCUMENT:
            if not context:
                raise ValueError("document mode requires document context")
            return ComposedPrompt(DOCUMENT_PROMPT.format(context=context, message=message), mode)

        if capability is None:
            raise ValueError("search mode requires a generation capability for keyword extraction")
        effective_input, results = self.augmenter.augment(message, capability)
        return ComposedPrompt(effective_input, mode, results)
