#!/usr/bin/env python3
"""
Test suite for the grinsh agent.
Run with: python -m pytest tests/ -v
"""
import json

import pytest

import orchestrator
from cloud_agent.claude_client import ApiError
from local_agent.context import Context
from orchestrator import Agent, AgentResponse, format_result, parse_response
from tools import ToolRegistry, ToolResult
from utils.cancel import CancelToken, TurnCancelled


class FakeBrew:
    def __init__(self, installed=False, install_ok=True, output="==> Pouring jq"):
        self.installed = installed
        self.install_ok = install_ok
        self.output = output
        self.installs = []

    def is_installed(self, package):
        return self.installed

    def install(self, package):
        self.installs.append(package)
        self.installed = self.install_ok
        return self.install_ok, self.output


def _agent(store, llm, brew=None, limit=10):
    echoed = []
    agent = Agent(Context(store, limit), store, brew or FakeBrew(installed=True), llm,
                  ToolRegistry(), echo=echoed.append)
    return agent, echoed


class TestResponseParsing:
    """Extracting the tool invocation from model replies."""

    def test_plain_json(self):
        raw = json.dumps({"tool": "files", "action": "pwd", "explanation": "where"})
        assert parse_response(raw) == AgentResponse("files", "pwd", "where")

    def test_json_wrapped_in_prose(self):
        raw = 'Sure! {"tool": "system", "action": "battery", "explanation": "checking", "needs_auth": false} Done.'
        parsed = parse_response(raw)
        assert parsed.tool == "system"
        assert parsed.needs_auth is False

    def test_fenced_json(self):
        raw = 'Here:\n```json\n{"tool": "apps", "action": "list", "explanation": "apps"}\n```'
        assert parse_response(raw).action == "list"

    def test_braces_in_trailing_prose(self):
        raw = '{"tool": "files", "action": "list:.", "explanation": "x"} (use {} for sets)'
        assert parse_response(raw).action == "list:."

    def test_first_top_level_object_beats_later_fence(self):
        raw = ('{"tool": "files", "action": "pwd", "explanation": "first"}\n'
               'or alternatively:\n'
               '```json\n{"tool": "apps", "action": "list", "explanation": "second"}\n```')
        assert parse_response(raw).explanation == "first"

    def test_fence_used_when_leading_braces_are_not_json(self):
        raw = 'Sets look like {a, b}.\n```json\n{"tool": "apps", "action": "list", "explanation": "e"}\n```'
        assert parse_response(raw).action == "list"

    def test_install_field(self):
        raw = json.dumps({"tool": "jq", "action": "jq .", "explanation": "e", "install_via_brew": "jq"})
        assert parse_response(raw).install_via_brew == "jq"

    @pytest.mark.parametrize("raw", [
        "Just chatting, no JSON here.",
        '{"tool": "files", "action": "pwd"}',
        '{"tool": 3, "action": "pwd", "explanation": "x"}',
        '{"tool": "files", "action": "pwd", "explanation": "x", "needs_auth": "yes"}',
        "{not json at all}",
        "",
    ])
    def test_degrades_to_none(self, raw):
        assert parse_response(raw) is None

    def test_format_result(self):
        assert format_result(ToolResult.ok("  done \n")) == "done"
        assert format_result(ToolResult.fail("boom")) == "Error: boom"


class TestTurn:
    """End-to-end turns with a fake completion client."""

    def test_list_files_scenario(self, store, tmp_path, monkeypatch, fake_llm):
        work = tmp_path / "work"
        work.mkdir()
        (work / "a.txt").write_text("a")
        (work / "b").mkdir()
        monkeypatch.chdir(work)
        llm = fake_llm('{"tool":"files","action":"list:.","explanation":"Listing files"}')
        agent, echoed = _agent(store, llm)

        reply = agent.process("list files here")

        assert reply == "a.txt\nb/"
        assert echoed == ["Listing files"]
        assert [(m.role, m.content) for m in store.recent_messages(10)] == [
            ("user", "list files here"), ("assistant", "a.txt\nb/"),
        ]
        assert llm.calls[0]["messages"] == [{"role": "user", "content": "list files here"}]
        assert "files" in llm.calls[0]["system"]

    def test_plain_text_reply_recorded_verbatim(self, store, fake_llm):
        agent, _ = _agent(store, fake_llm("Hello! How can I help?"))
        assert agent.process("hi") == "Hello! How can I help?"
        assert agent.context.messages[-1].content == "Hello! How can I help?"

    def test_api_error_becomes_reply(self, store, fake_llm):
        agent, _ = _agent(store, fake_llm(ApiError("Network error: down")))
        reply = agent.process("hi")
        assert reply.startswith("Error: Could not get a response from Claude")
        assert agent.context.messages[-1].role == "assistant"

    def test_tool_failure_formatted(self, store, tmp_path, fake_llm):
        raw = json.dumps({"tool": "files", "action": f"read:{tmp_path / 'missing'}", "explanation": "reading"})
        agent, _ = _agent(store, fake_llm(raw))
        assert agent.process("read it").startswith("Error: ")

    def test_cancel_records_no_assistant_message(self, store, fake_llm):
        agent, _ = _agent(store, fake_llm(TurnCancelled()))
        with pytest.raises(TurnCancelled):
            agent.process("slow request", token=CancelToken())
        assert [m.role for m in agent.context.messages] == ["user"]
        assert [m.role for m in store.recent_messages(10)] == ["user"]

    def test_token_passed_to_client(self, store, fake_llm):
        llm = fake_llm("ok")
        token = CancelToken()
        agent, _ = _agent(store, llm)
        agent.process("hi", token=token)
        assert llm.calls[0]["token"] is token

    def test_needs_auth_uses_privileged_path(self, store, monkeypatch, fake_llm):
        seen = []
        monkeypatch.setattr(orchestrator, "run_with_auth",
                            lambda cmd: seen.append(cmd) or ToolResult.fail("Authorization denied"))
        raw = json.dumps({"tool": "files", "action": "rm -rf /tmp/x", "explanation": "e", "needs_auth": True})
        agent, _ = _agent(store, fake_llm(raw))
        assert agent.process("delete as root") == "Error: Authorization denied"
        assert seen == ["rm -rf /tmp/x"]

    def test_clear_context(self, store, fake_llm):
        agent, _ = _agent(store, fake_llm("one"))
        agent.process("hi")
        agent.clear_context()
        assert agent.context.messages == []


class TestDependencyResolution:
    """install_via_brew handling."""

    def _raw(self):
        return json.dumps({"tool": "jq", "action": "echo installed-and-ran",
                           "explanation": "Using jq", "install_via_brew": "jq"})

    def test_install_success_learns_tool(self, store, fake_llm):
        brew = FakeBrew(installed=False)
        agent, echoed = _agent(store, fake_llm(self._raw()), brew)
        reply = agent.process("pretty print json")
        assert reply == "installed-and-ran"
        assert brew.installs == ["jq"]
        rec = store.get_tool("jq")
        assert rec.description == "CLI tool installed via Homebrew"
        assert rec.usage == "echo installed-and-ran"
        assert agent.registry.resolve("jq") is not None
        assert "Installing jq via Homebrew..." in echoed

    def test_install_failure_short_circuits(self, store, fake_llm):
        brew = FakeBrew(installed=False, install_ok=False, output="Error: No formula")
        agent, _ = _agent(store, fake_llm(self._raw()), brew)
        reply = agent.process("pretty print json")
        assert reply == "Error: Could not install jq: Error: No formula"
        assert store.get_tool("jq") is None
        assert agent.context.messages[-1].content == reply

    def test_already_installed_skips_install(self, store, fake_llm):
        brew = FakeBrew(installed=True)
        agent, _ = _agent(store, fake_llm(self._raw()), brew)
        agent.process("pretty print json")
        assert brew.installs == []
