"""Generation capability interface and a chat-completions client implementing it."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol

import requests

from .config import ChatLLMConfig
from .errors import ProviderError, UpstreamTimeoutError

logger = logging.getLogger(__name__)


class GenerationCapability(Protocol):
    """Anything that can answer a list of chat messages."""

    def invoke(self, messages: List[Dict[str, str]]) -> str:
        ...

    def stream(self, messages: List[Dict[str, str]]) -> Iterable[Any]:
        ...


def normalise_delta(fragment: Any) -> str:
    """Flatten one streamed fragment into plain text.

    Providers hand back a bare string, a mapping or object carrying a
    ``content``/``text`` field, or a list of parts each carrying ``text``.
    Anything without extractable text becomes an empty string.
    """
    if fragment is None:
        return ""
    if isinstance(fragment, str):
        return fragment
    if isinstance(fragment, (list, tuple)):
        return "".join(normalise_delta(part) for part in fragment)
    if isinstance(fragment, Mapping):
        for key in ("content", "text"):
            if key in fragment:
                return normalise_delta(fragment[key])
        return ""
    for attr in ("content", "text"):
        value = getattr(fragment, attr, None)
        if value is not None:
            return normalise_delta(value)
    logger.debug("Ignoring fragment without text: %r", fragment)
    return ""


class ChatLLMClient:
    """Thin wrapper around an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, config: ChatLLMConfig, *, model_kwargs: Optional[Dict[str, object]] = None) -> None:
        self.config = config
        self.model_kwargs = dict(model_kwargs or {})

    def stream(self, messages: List[Dict[str, str]]) -> Iterator[Any]:
        """Yield raw ``delta.content`` fragments as they arrive.

        The HTTP response is closed when the consumer closes the iterator.
        """
        payload = self._payload(messages, stream=True)
        logger.info("Streaming chat completion to %s using model %s", self.config.endpoint, self.config.model)
        try:
            with requests.post(
                self.config.endpoint,
                json=payload,
                headers=self._headers(),
                stream=True,
                timeout=(self.config.request_timeout, self.config.stream_idle_timeout),
            ) as response:
                self._raise_for_status(response)
                for raw_line in response.iter_lines():
                    if not raw_line:
                        continue
                    line = raw_line.decode("utf-8").strip()
                    if line.startswith("data:"):
                        line = line[5:].strip()
                    if not line or line == "[DONE]":
                        continue

                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError:
                        logger.debug("Skipping non-JSON stream line: %s", line)
                        continue

                    fragment = self._extract_delta(chunk)
                    if fragment is not None:
                        yield fragment
        except requests.Timeout as exc:
            raise UpstreamTimeoutError(f"Model {self.config.model} timed out: {exc}") from exc
        except requests.ConnectionError as exc:
            raise ProviderError(f"Model {self.config.model} connection failed: {exc}") from exc

    def invoke(self, messages: List[Dict[str, str]]) -> str:
        """Return a full completion (no streaming)."""
        payload = self._payload(messages, stream=False)
        logger.debug("Requesting non-streaming completion for %d message(s)", len(messages))
        try:
            response = requests.post(
                self.config.endpoint,
                json=payload,
                headers=self._headers(),
                timeout=self.config.request_timeout,
            )
        except requests.Timeout as exc:
            raise UpstreamTimeoutError(f"Model {self.config.model} timed out: {exc}") from exc
        except requests.ConnectionError as exc:
            raise ProviderError(f"Model {self.config.model} connection failed: {exc}") from exc

        self._raise_for_status(response)
        data = response.json()
        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message") or {}
        return normalise_delta(message.get("content"))

    def _payload(self, messages: List[Dict[str, str]], *, stream: bool) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "model": self.config.model,
            "messages": messages,
            "stream": stream,
        }
        if self.config.temperature is not None:
            payload["temperature"] = self.config.temperature
        if self.model_kwargs:
            payload.update(self.model_kwargs)
        return payload

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _raise_for_status(self, response: requests.Response) -> None:
        if response.ok:
            return
        raise ProviderError(
            f"Model {self.config.model} returned {response.status_code} {response.reason}",
            status_code=response.status_code,
        )

    @staticmethod
    def _extract_delta(payload: Dict[str, Any]) -> Any:
        choices = payload.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        delta = choices[0].get("delta") or {}
        return delta.get("content")
