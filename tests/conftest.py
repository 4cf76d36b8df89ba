"""Shared fakes and fixtures for the chat core tests."""

import json
from typing import List

import pytest

from writer_chat.config import ChatConfig
from writer_chat.prompts import PromptComposer
from writer_chat.search import SearchAugmenter, SearchResult
from writer_chat.service import ChatService

SYSTEM_PROMPT = "You are a test assistant."


class FakeCapability:
    """Generation capability that replays canned output and records calls."""

    def __init__(self, deltas=None, reply="", keywords="", fail_after=None, error=None):
        self.deltas = list(deltas or [])
        self.reply = reply
        self.keywords = keywords
        self.fail_after = fail_after
        self.error = error
        self.invocations: List[list] = []
        self.streamed: List[list] = []
        self.pulled = 0
        self.closed = False

    def invoke(self, messages):
        self.invocations.append(messages)
        if messages[-1]["content"].startswith("Extract 2-4 concise search keywords"):
            return self.keywords
        if self.error is not None and self.fail_after is None:
            raise self.error
        return self.reply

    def stream(self, messages):
        self.streamed.append(messages)
        return self._generate()

    def _generate(self):
        try:
            for index, delta in enumerate(self.deltas):
                if self.fail_after == index:
                    raise self.error
                self.pulled += 1
                yield delta
            if self.fail_after is not None and self.fail_after >= len(self.deltas):
                raise self.error
        finally:
            self.closed = True


class FakeSearchClient:
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.queries: List[str] = []

    def search(self, query, count=None):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.results)


def parse_frames(text: str) -> List[dict]:
    """Split a streamed body into its JSON payloads."""
    payloads = []
    for frame in text.split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data: "):
            payloads.append(json.loads(frame[len("data: "):]))
    return payloads


@pytest.fixture
def sample_results():
    return [
        SearchResult(
            title="Understanding Ownership",
            snippet="Ownership is Rust's most unique feature.",
            link="https://doc.rust-lang.org/book/ch04-01-what-is-ownership.html",
        ),
        SearchResult(
            title="Rust Ownership Explained",
            snippet="A tour of moves, borrows and lifetimes.",
            link="https://example.com/rust-ownership",
        ),
    ]


@pytest.fixture
def make_service():
    """Build a ChatService wired to fakes instead of real upstreams."""

    def _make(capability, search_client=None, **config_overrides):
        config = ChatConfig(system_prompt=SYSTEM_PROMPT, **config_overrides)
        composer = PromptComposer(SearchAugmenter(search_client or FakeSearchClient()))
        return ChatService(config, composer=composer, model_factory=lambda model_key: capability)

    return _make
