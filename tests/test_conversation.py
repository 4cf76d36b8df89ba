"""Tests for conversation logs and the conversation store."""

import threading

import pytest

from writer_chat.conversation import Conversation, ConversationStore, Message


class TestConversation:
    """Message log behaviour."""

    def setup_method(self):
        self.conversation = Conversation("c1", "directive")

    def test_system_directive_is_first(self):
        messages = self.conversation.messages()
        assert len(messages) == 1
        assert messages[0].role == "system"
        assert messages[0].content == "directive"

    def test_append_keeps_insertion_order(self):
        self.conversation.append("user", "one")
        self.conversation.append("assistant", "two")
        self.conversation.append("user", "three")
        assert [m.content for m in self.conversation.messages()] == ["directive", "one", "two", "three"]

    def test_system_messages_cannot_be_appended(self):
        with pytest.raises(ValueError):
            self.conversation.append("system", "override")

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            Message("tool", "x")

    def test_begin_turn_records_user_and_returns_prompt(self):
        self.conversation.append("user", "earlier")
        self.conversation.append("assistant", "reply")
        prompt = self.conversation.begin_turn("now")
        assert prompt == [
            {"role": "system", "content": "directive"},
            {"role": "user", "content": "earlier"},
            {"role": "assistant", "content": "reply"},
            {"role": "user", "content": "now"},
        ]
        assert self.conversation.messages()[-1].content == "now"

    def test_messages_returns_snapshot(self):
        snapshot = self.conversation.messages()
        self.conversation.append("user", "later")
        assert len(snapshot) == 1
        assert len(self.conversation) == 2


class TestConversationStore:
    """Registry behaviour, including under concurrency."""

    def test_creates_on_first_use_and_reuses(self):
        store = ConversationStore("directive")
        first = store.get_or_create("a")
        second = store.get_or_create("a")
        assert first is second
        assert len(store) == 1

    def test_empty_id_rejected(self):
        store = ConversationStore("directive")
        with pytest.raises(ValueError):
            store.get_or_create("")

    def test_get_does_not_create(self):
        store = ConversationStore("directive")
        assert store.get("missing") is None
        assert len(store) == 0

    def test_concurrent_creation_yields_one_conversation(self):
        store = ConversationStore("directive")
        workers = 32
        barrier = threading.Barrier(workers)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            conversation = store.get_or_create("x")
            with lock:
                results.append(conversation)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == workers
        assert len({id(conversation) for conversation in results}) == 1
        assert len(store) == 1

    def test_concurrent_appends_stay_isolated(self):
        store = ConversationStore("directive")
        per_thread = 200

        def writer(conversation_id):
            conversation = store.get_or_create(conversation_id)
            for index in range(per_thread):
                conversation.append("user", f"{conversation_id}-{index}")

        threads = [threading.Thread(target=writer, args=(cid,)) for cid in ("A", "B", "A", "B")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for cid in ("A", "B"):
            messages = store.get(cid).messages()
            assert len(messages) == 1 + 2 * per_thread
            assert messages[0].role == "system"
            assert all(m.content.startswith(f"{cid}-") for m in messages[1:])

    def test_idle_conversations_evicted_after_ttl(self):
        store = ConversationStore("directive", ttl_seconds=60)
        stale = store.get_or_create("stale")
        store.get_or_create("fresh")
        stale.last_access -= 120

        assert store.get("stale") is None
        assert store.get("fresh") is not None
        assert [c.id for c in store.list_conversations()] == ["fresh"]

    def test_conversation_with_open_turn_is_not_evicted(self):
        store = ConversationStore("directive", ttl_seconds=60)
        conversation = store.get_or_create("busy")
        conversation.begin_turn("slow question")
        conversation.last_access -= 120

        assert store.get("busy") is conversation
        assert conversation.has_open_turn

        conversation.end_turn()
        assert not conversation.has_open_turn
        conversation.last_access -= 120
        assert store.get("busy") is None

    def test_end_turn_refreshes_last_access(self):
        store = ConversationStore("directive", ttl_seconds=60)
        conversation = store.get_or_create("late")
        conversation.begin_turn("question")
        conversation.last_access -= 120

        conversation.end_turn()

        assert store.get("late") is conversation

    def test_no_eviction_without_ttl(self):
        store = ConversationStore("directive")
        conversation = store.get_or_create("old")
        conversation.last_access -= 10 ** 6
        assert store.get("old") is conversation

    def test_clear(self):
        store = ConversationStore("directive")
        store.get_or_create("a")
        store.clear()
        assert len(store) == 0
