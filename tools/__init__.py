"""
grinsh tool registry.

The model answers each request with a tool name and an action string. A name
resolves, case-insensitively, in this order:

    1. Built-in capability handlers (with aliases):
         files / filesystem      -> FilesTool
         apps / applications     -> AppsTool
         system                  -> SystemTool
         clipboard               -> ClipboardTool
         spotlight / search      -> SpotlightTool
    2. Learned tools: CLI programs installed via Homebrew on the model's
       request, persisted in the store and reloaded at startup.
    3. Anything else: the action is run as a literal shell command.

Action strings are colon-delimited, ``command[:arg1[:arg2...]]``.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from tools.apps import AppsTool
from tools.base import Tool, ToolResult, split_action
from tools.clipboard import ClipboardTool
from tools.files import FilesTool
from tools.learned import LEARNED_DESCRIPTION, LearnedTool, ShellCommandTool
from tools.spotlight import SpotlightTool
from tools.system import SystemTool

logger = logging.getLogger("grinsh.tools")

BUILTIN_ALIASES: Dict[str, str] = {
    "files": "files",
    "filesystem": "files",
    "apps": "apps",
    "applications": "apps",
    "system": "system",
    "clipboard": "clipboard",
    "spotlight": "spotlight",
    "search": "spotlight",
}

__all__ = [
    "BUILTIN_ALIASES",
    "LEARNED_DESCRIPTION",
    "LearnedTool",
    "ShellCommandTool",
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "split_action",
]


def default_builtins() -> Dict[str, Tool]:
    return {
        "files": FilesTool(),
        "apps": AppsTool(),
        "system": SystemTool(),
        "clipboard": ClipboardTool(),
        "spotlight": SpotlightTool(),
    }


class ToolRegistry:
    """Maps tool names from model responses onto handlers."""

    def __init__(self, builtins: Optional[Dict[str, Tool]] = None, *, confirm_commands: bool = False) -> None:
        self._builtins = builtins if builtins is not None else default_builtins()
        self._learned: Dict[str, LearnedTool] = {}
        self.confirm_commands = confirm_commands
        self.fallback = ShellCommandTool(confirm=confirm_commands)

    # ------------------------------------------------------------------
    # Learned tools
    # ------------------------------------------------------------------

    def register_learned(self, tool: LearnedTool) -> None:
        self._learned[tool.name.lower()] = tool
        logger.debug("Registered learned tool: %s", tool.name)

    def load_learned(self, store, homebrew) -> int:
        """Rebuild learned tools from the store. Returns how many were loaded."""
        count = 0
        for rec in store.all_tools():
            self.register_learned(LearnedTool(
                rec.name, homebrew,
                description=rec.description,
                usage=rec.usage,
                confirm=self.confirm_commands,
            ))
            count += 1
        logger.info("Loaded %d learned tool(s)", count)
        return count

    def learned_tools(self) -> List[LearnedTool]:
        return sorted(self._learned.values(), key=lambda t: t.name.lower())

    # ------------------------------------------------------------------
    # Resolution and dispatch
    # ------------------------------------------------------------------

    def resolve(self, name: str) -> Optional[Tool]:
        key = (name or "").strip().lower()
        builtin = BUILTIN_ALIASES.get(key)
        if builtin is not None and builtin in self._builtins:
            return self._builtins[builtin]
        return self._learned.get(key)

    def dispatch(self, name: str, action: str) -> ToolResult:
        tool = self.resolve(name) or self.fallback
        logger.info("Dispatching %r to %s", action, tool.name or name)
        try:
            return tool.execute(action)
        except Exception as e:
            logger.exception("Tool %s raised while running %r", tool.name, action)
            return ToolResult.fail(str(e) or e.__class__.__name__)

    def describe(self) -> List[Tuple[str, str]]:
        rows = [(t.name, t.usage()) for t in self._builtins.values()]
        rows.extend((t.name, t.description) for t in self.learned_tools())
        return rows
