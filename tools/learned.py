#!/usr/bin/env python3
"""Tools learned at runtime: command-line programs installed via Homebrew."""
from __future__ import annotations

import logging

from local_agent.homebrew import Homebrew
from tools.base import Tool, ToolResult
from utils.runner import combined_output, run_cmd

logger = logging.getLogger(__name__)

LEARNED_DESCRIPTION = "CLI tool installed via Homebrew"


def run_shell(action: str, *, confirm: bool = False) -> ToolResult:
    """Run *action* through ``/bin/sh -c``; a non-zero exit is a failure."""
    res = run_cmd(action, mode="write", confirm=confirm)
    text = combined_output(res)
    if res["rc"] != 0:
        return ToolResult.fail(text or f"Command exited with status {res['rc']}")
    return ToolResult.ok(text)


class ShellCommandTool(Tool):
    name = "shell"
    description = "Run any shell command"

    def __init__(self, confirm: bool = False):
        self.confirm = confirm

    def execute(self, action: str) -> ToolResult:
        return run_shell(action, confirm=self.confirm)


class LearnedTool(Tool):
    def __init__(self, name: str, homebrew: Homebrew, description: str = LEARNED_DESCRIPTION,
                 usage: str = "", confirm: bool = False):
        self.name = name
        self.description = description
        self.example = usage
        self.homebrew = homebrew
        self.confirm = confirm

    def usage(self) -> str:
        return f"{self.name}: {self.example}" if self.example else self.name

    def execute(self, action: str) -> ToolResult:
        install_note = ""
        if not self.homebrew.is_installed(self.name):
            logger.info("Learned tool %s missing, reinstalling", self.name)
            ok, output = self.homebrew.install(self.name)
            if not ok:
                return ToolResult.fail(f"Could not install {self.name}: {output.strip()}")
            install_note = output.strip()
        result = run_shell(action, confirm=self.confirm)
        if not install_note:
            return result
        if result.success:
            return ToolResult.ok(f"{install_note}\n{result.output}".strip())
        return ToolResult.fail(f"{install_note}\n{result.error}".strip())
