"""Web search augmentation: keyword extraction, Brave lookup and prompt rewriting."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Tuple

import requests

from .config import SearchConfig
from .errors import ConfigurationError, FailureKind, ProviderError, UpstreamTimeoutError, classify_failure
from .llm_client import GenerationCapability

logger = logging.getLogger(__name__)

KEYWORD_PROMPT = (
    "Extract 2-4 concise search keywords from this query. "
    "Return only the keywords separated by spaces, no other text:\n\n\"{message}\""
)

SEARCH_PROMPT = (
    "User Query: {message}\n\n"
    "Web Search Results:\n{results}\n\n"
    "Please provide a comprehensive summary based on these search results. "
    "Include source references and format your response clearly."
)

DEGRADED_PROMPT = (
    "I apologize, but {apology} Let me provide a response based on my knowledge instead.\n\n"
    "User Query: {message}\n\n"
    "Note: Web search is temporarily unavailable, but I can still help with general "
    "information and document assistance."
)

APOLOGIES: Dict[FailureKind, str] = {
    FailureKind.CONFIG_MISSING: "Search service is not properly configured. Please contact support.",
    FailureKind.PROVIDER_ERROR: "The search service is temporarily unavailable. Please try again in a few moments.",
    FailureKind.TIMEOUT: "The search request timed out. Please try again.",
    FailureKind.UNKNOWN: "I encountered an error while searching the web.",
}


@dataclass(frozen=True)
class SearchResult:
    title: str
    snippet: str
    link: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class BraveSearchClient:
    """Minimal client for the Brave web search API."""

    def __init__(self, config: Optional[SearchConfig] = None) -> None:
        self.config = config or SearchConfig()

    def search(self, query: str, count: Optional[int] = None) -> List[SearchResult]:
        if not self.config.api_key:
            raise ConfigurationError("Brave API key not configured")

        count = count or self.config.result_count
        logger.info("Searching the web for %r (count=%d)", query, count)
        try:
            response = requests.get(
                self.config.endpoint,
                params={"q": query, "count": count},
                headers={
                    "X-Subscription-Token": self.config.api_key,
                    "Accept": "application/json",
                },
                timeout=self.config.request_timeout,
            )
        except requests.Timeout as exc:
            raise UpstreamTimeoutError(f"Brave Search timed out after {self.config.request_timeout}s") from exc

        if not response.ok:
            raise ProviderError(
                f"Brave Search API error: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        payload = response.json()
        raw_results = (payload.get("web") or {}).get("results") or []
        results = [
            SearchResult(
                title=item.get("title", ""),
                snippet=item.get("description", ""),
                link=item.get("url", ""),
            )
            for item in raw_results[:count]
        ]
        logger.debug("Brave Search returned %d result(s)", len(results))
        return results


def format_results(results: List[SearchResult]) -> str:
    return "\n\n".join(
        f"{index}. **{result.title}**\n   {result.snippet}\n   Source: {result.link}"
        for index, result in enumerate(results, start=1)
    )


def degraded_input(message: str, kind: FailureKind) -> str:
    return DEGRADED_PROMPT.format(apology=APOLOGIES[kind], message=message)


class SearchAugmenter:
    """Rewrite a user message so the model answers from fresh web results.

    Every failure is absorbed here: the caller always gets a usable prompt,
    with ``None`` in place of results when the search could not be run.
    """

    def __init__(self, search_client: Optional[BraveSearchClient] = None) -> None:
        self.search_client = search_client or BraveSearchClient()

    def augment(self, message: str, capability: GenerationCapability) -> Tuple[str, Optional[List[SearchResult]]]:
        try:
            query = self.extract_keywords(message, capability)
            results = self.search_client.search(query)
        except Exception as exc:
            kind = classify_failure(exc)
            logger.warning("Web search failed (%s): %s", kind.value, exc)
            return degraded_input(message, kind), None

        return SEARCH_PROMPT.format(message=message, results=format_results(results)), results

    @staticmethod
    def extract_keywords(message: str, capability: GenerationCapability) -> str:
        prompt = [{"role": "user", "content": KEYWORD_PROMPT.format(message=message)}]
        keywords = (capability.invoke(prompt) or "").strip()
        logger.info("Search query: %s", keywords or message)
        return keywords or message
