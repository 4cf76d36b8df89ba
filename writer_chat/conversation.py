"""Conversation logs and the registry that owns them.

A :class:`Conversation` is an append-only list of :class:`Message` objects
guarded by its own lock, so concurrent requests for the same conversation
never interleave partial writes while requests for different conversations
never wait on each other.  The :class:`ConversationStore` creates
conversations atomically on first reference and can optionally evict
conversations that have been idle for longer than a TTL.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class Message:
    role: str
    content: str
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unsupported message role '{self.role}'")

    def as_prompt(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class Conversation:
    """Ordered, append-only record of the turns of one chat session."""

    def __init__(self, conversation_id: str, system_directive: str) -> None:
        self.id = conversation_id
        self._lock = threading.Lock()
        self._messages: List[Message] = [Message("system", system_directive)]
        self.created_at = self._messages[0].timestamp
        self.last_access = time.monotonic()
        self._open_turns = 0

    def append(self, role: str, content: str) -> Message:
        if role == "system":
            raise ValueError("the system directive is fixed when a conversation is created")
        message = Message(role, content)
        with self._lock:
            self._messages.append(message)
            self.last_access = time.monotonic()
        return message

    def messages(self) -> List[Message]:
        """Return a snapshot of the log."""
        with self._lock:
            return list(self._messages)

    def begin_turn(self, user_content: str) -> List[Dict[str, str]]:
        """Record a user turn and return the full log as prompt messages.

        Both happen under one lock so the prompt always ends with this turn.
        The turn stays open until :meth:`end_turn`; a conversation with an
        open turn is never evicted.
        """
        message = Message("user", user_content)
        with self._lock:
            self._messages.append(message)
            self._open_turns += 1
            self.last_access = time.monotonic()
            return [m.as_prompt() for m in self._messages]

    def end_turn(self) -> None:
        """Close a turn opened by :meth:`begin_turn`, committed or not."""
        with self._lock:
            self._open_turns = max(0, self._open_turns - 1)
            self.last_access = time.monotonic()

    @property
    def has_open_turn(self) -> bool:
        with self._lock:
            return self._open_turns > 0

    @property
    def updated_at(self) -> float:
        with self._lock:
            return self._messages[-1].timestamp

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)


class ConversationStore:
    """Registry mapping conversation ids to :class:`Conversation` objects."""

    def __init__(self, system_directive: str, *, ttl_seconds: Optional[int] = None) -> None:
        self.system_directive = system_directive
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._conversations: Dict[str, Conversation] = {}

    def get_or_create(self, conversation_id: str) -> Conversation:
        """Return the conversation for ``conversation_id``, creating it at most once."""
        if not conversation_id:
            raise ValueError("conversation_id must not be empty")

        with self._lock:
            self._evict_stale()
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                conversation = Conversation(conversation_id, self.system_directive)
                self._conversations[conversation_id] = conversation
                logger.info("Created conversation %s", conversation_id)
            conversation.last_access = time.monotonic()
            return conversation

    def get(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            self._evict_stale()
            return self._conversations.get(conversation_id)

    def list_conversations(self) -> List[Conversation]:
        with self._lock:
            self._evict_stale()
            return list(self._conversations.values())

    def clear(self) -> None:
        with self._lock:
            self._conversations.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._conversations)

    def _evict_stale(self) -> None:
        # Caller holds self._lock.
        if self.ttl_seconds is None:
            return
        now = time.monotonic()
        expired = [
            cid
            for cid, conv in self._conversations.items()
            if now - conv.last_access > self.ttl_seconds and not conv.has_open_turn
        ]
        for cid in expired:
            logger.info("Evicting conversation %s after %.0f seconds of inactivity", cid, self.ttl_seconds)
            self._conversations.pop(cid, None)
