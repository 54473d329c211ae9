#!/usr/bin/env python3
import pytest

from local_agent.context import Context
from local_agent.store import Store, StoreError


class BrokenStore:
    """Every operation fails the way a full or locked database would."""

    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise StoreError(f"{name} failed")
        return _fail


class TestWindow:
    """The bounded conversation window."""

    def test_trims_oldest_first(self, store):
        ctx = Context(store, context_limit=5)
        for i in range(1, 11):
            ctx.add_user_message(f"Message {i}")
        assert [m.content for m in ctx.messages] == [f"Message {i}" for i in range(6, 11)]

    def test_never_exceeds_limit(self, store):
        ctx = Context(store, context_limit=3)
        for i in range(7):
            ctx.add_user_message(f"u{i}")
            ctx.add_assistant_message(f"a{i}")
            assert len(ctx.messages) <= 3

    def test_loads_recent_messages_on_start(self, store):
        for i in range(8):
            store.append_message("user", f"M{i}")
        ctx = Context(store, context_limit=4)
        assert [m.content for m in ctx.messages] == ["M4", "M5", "M6", "M7"]

    def test_api_payload_shape(self, store):
        ctx = Context(store, context_limit=5)
        ctx.add_user_message("hi")
        ctx.add_assistant_message("hello")
        assert ctx.messages_for_api() == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]

    def test_rejects_non_positive_limit(self, store):
        with pytest.raises(ValueError):
            Context(store, context_limit=0)


class TestPersistence:
    """Store mirroring and degradation."""

    def test_user_messages_reach_store_and_history(self, store):
        ctx = Context(store, context_limit=5)
        ctx.add_user_message("list files")
        ctx.add_assistant_message("a.txt")
        assert [(m.role, m.content) for m in store.recent_messages(5)] == [
            ("user", "list files"), ("assistant", "a.txt"),
        ]
        assert [h.input for h in store.recent_history()] == ["list files"]

    def test_store_failure_keeps_message_in_memory(self):
        ctx = Context(BrokenStore(), context_limit=5)
        ctx.add_user_message("still here")
        assert [m.content for m in ctx.messages] == ["still here"]

    def test_clear_is_idempotent(self, store):
        ctx = Context(store, context_limit=5)
        ctx.add_user_message("one")
        ctx.clear()
        ctx.clear()
        assert ctx.messages == []
        assert store.recent_messages(10) == []
        assert [h.input for h in store.recent_history()] == ["one"]

    def test_clear_keeps_learned_tools(self, store):
        store.upsert_tool("jq", "JSON processor", "jq .")
        ctx = Context(store, context_limit=5)
        ctx.clear()
        assert store.get_tool("jq") is not None


class TestSystemPrompt:
    """Instructions sent with every request."""

    def test_lists_builtin_tools_and_format(self, store):
        prompt = Context(store).system_prompt()
        for word in ("files", "apps", "system", "clipboard", "spotlight", '"install_via_brew"'):
            assert word in prompt
        assert "LEARNED TOOLS" not in prompt

    def test_learned_tools_read_live(self, store):
        ctx = Context(store)
        store.upsert_tool("ffmpeg", "CLI tool installed via Homebrew", "ffmpeg -i a b")
        prompt = ctx.system_prompt()
        assert "LEARNED TOOLS:" in prompt
        assert "- ffmpeg: CLI tool installed via Homebrew" in prompt

    def test_store_failure_omits_learned_section(self):
        prompt = Context(BrokenStore()).system_prompt()
        assert "LEARNED TOOLS" not in prompt
