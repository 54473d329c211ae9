#!/usr/bin/env python3
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class ToolResult:
    success: bool
    output: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, output: str = "") -> ToolResult:
        return cls(True, output, None)

    @classmethod
    def fail(cls, error: str) -> ToolResult:
        return cls(False, "", error)


def split_action(action: str, maxsplit: int = -1) -> List[str]:
    """
    Split ``command:arg1:arg2`` on colons.

    With *maxsplit* the remainder stays joined, so a final argument such as
    clipboard text or a URL keeps its own colons.
    """
    return action.split(":", maxsplit) if maxsplit >= 0 else action.split(":")


def expand(path: str) -> Path:
    return Path(os.path.expanduser(path.strip()))


class Tool:
    """A capability the agent can dispatch an action string to."""

    name = ""
    description = ""
    commands: tuple[str, ...] = ()

    def execute(self, action: str) -> ToolResult:
        raise NotImplementedError

    def usage(self) -> str:
        return f"{self.name}: " + " | ".join(self.commands)

    def unknown(self, command: str) -> ToolResult:
        return ToolResult.fail(f"Unknown {self.name} command: {command}. Available: {', '.join(self.commands)}")
