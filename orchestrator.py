#!/usr/bin/env python3
# grinsh agent: one turn per user request.
# - Records the input in the conversation context
# - Asks Claude for a JSON tool invocation (cancellable)
# - Installs the requested Homebrew formula when missing, learning a new tool
# - Dispatches the action (privileged path when needs_auth)
# - Records and returns the formatted outcome

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from cloud_agent.claude_client import ApiError
from local_agent.context import Context
from local_agent.homebrew import Homebrew
from local_agent.store import Store, StoreError
from tools import LEARNED_DESCRIPTION, LearnedTool, ToolRegistry, ToolResult
from tools.auth import run_with_auth
from utils.cancel import CancelToken

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class AgentResponse:
    tool: str
    action: str
    explanation: str
    needs_auth: bool = False
    install_via_brew: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional[AgentResponse]:
        tool, action, explanation = data.get("tool"), data.get("action"), data.get("explanation")
        if not all(isinstance(v, str) for v in (tool, action, explanation)):
            return None
        needs_auth = data.get("needs_auth", False)
        if not isinstance(needs_auth, bool):
            return None
        brew = data.get("install_via_brew")
        if brew is not None and not isinstance(brew, str):
            return None
        if brew is not None:
            brew = brew.strip() or None
        return cls(tool, action, explanation, needs_auth, brew)


def _json_candidates(raw: str):
    start = raw.find("{")
    if start != -1:
        try:
            obj, _end = json.JSONDecoder().raw_decode(raw, start)
            yield json.dumps(obj)
        except ValueError:
            pass
    for m in _JSON_FENCE.finditer(raw):
        yield m.group(1)
    end = raw.rfind("}")
    if start != -1 and end > start:
        yield raw[start:end + 1]


def parse_response(raw: str) -> Optional[AgentResponse]:
    """
    Pull the tool invocation out of a model reply that may wrap the JSON in
    prose or markdown. Returns None when the reply is plain text.
    """
    for cand in _json_candidates(raw):
        try:
            data = json.loads(cand)
        except ValueError:
            continue
        if isinstance(data, dict):
            parsed = AgentResponse.from_dict(data)
            if parsed is not None:
                return parsed
    logger.debug("Reply is not a tool invocation: %s", raw[:200])
    return None


def format_result(result: ToolResult) -> str:
    if result.success:
        return result.output.strip()
    return f"Error: {result.error or 'unknown error'}"


class Agent:
    def __init__(
        self,
        context: Context,
        store: Store,
        homebrew: Homebrew,
        llm,
        registry: Optional[ToolRegistry] = None,
        *,
        echo: Callable[[str], None] = print,
    ):
        self.context = context
        self.store = store
        self.homebrew = homebrew
        self.llm = llm
        self.registry = registry or ToolRegistry()
        self.echo = echo

    def clear_context(self) -> None:
        self.context.clear()

    def process(self, text: str, token: Optional[CancelToken] = None) -> str:
        """Run one turn. Raises TurnCancelled if *token* fires during the request."""
        self.context.add_user_message(text)

        try:
            raw = self.llm.complete(
                self.context.messages_for_api(),
                self.context.system_prompt(),
                token=token,
            )
        except ApiError as e:
            logger.warning("Completion failed: %s", e)
            return self._reply(f"Error: Could not get a response from Claude: {e}")
        finally:
            if token is not None:
                token.finish()

        parsed = parse_response(raw)
        if parsed is None:
            return self._reply(raw)

        if parsed.explanation:
            self.echo(parsed.explanation)

        if parsed.install_via_brew and not self.homebrew.is_installed(parsed.install_via_brew):
            failure = self._install(parsed.install_via_brew, parsed.action)
            if failure is not None:
                return self._reply(failure)

        result = self.execute_tool(parsed.tool, parsed.action, parsed.needs_auth)
        return self._reply(format_result(result))

    def _install(self, package: str, action: str) -> Optional[str]:
        self.echo(f"Installing {package} via Homebrew...")
        ok, output = self.homebrew.install(package)
        if not ok:
            return f"Error: Could not install {package}: {output.strip()}"
        if output.strip():
            self.echo(output.strip())
        try:
            self.store.upsert_tool(package, LEARNED_DESCRIPTION, action)
        except StoreError as e:
            logger.warning("Could not save learned tool %s: %s", package, e)
        self.registry.register_learned(LearnedTool(
            package, self.homebrew, usage=action, confirm=self.registry.confirm_commands,
        ))
        return None

    def execute_tool(self, name: str, action: str, needs_auth: bool = False) -> ToolResult:
        if needs_auth:
            logger.info("Running %r with administrator privileges", action)
            return run_with_auth(action)
        return self.registry.dispatch(name, action)

    def _reply(self, text: str) -> str:
        self.context.add_assistant_message(text)
        return text
