import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from local_agent.store import Store


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep the config file, database and command log inside tmp_path."""
    home = tmp_path / "grinsh-home"
    monkeypatch.setenv("GRINSH_HOME", str(home))
    monkeypatch.setenv("GRINSH_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.setattr(config, "_config_manager", None)
    return home


@pytest.fixture
def store():
    s = Store.open(":memory:")
    yield s
    s.close()


class FakeLLM:
    """Stands in for ClaudeClient: returns queued replies, records requests."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def complete(self, messages, system, *, token=None):
        self.calls.append({"messages": messages, "system": system, "token": token})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def fake_llm():
    return FakeLLM
