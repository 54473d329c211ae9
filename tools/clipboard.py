#!/usr/bin/env python3
from __future__ import annotations

import pyperclip

from tools.base import Tool, ToolResult, split_action


class ClipboardTool(Tool):
    name = "clipboard"
    description = "Read and write the clipboard"
    commands = ("get", "set", "clear")

    def execute(self, action: str) -> ToolResult:
        parts = split_action(action, 1)
        command = parts[0].strip().lower()
        try:
            if command == "get":
                return ToolResult.ok(pyperclip.paste() or "(clipboard is empty)")
            if command == "set":
                if len(parts) < 2:
                    return ToolResult.fail("set requires content")
                pyperclip.copy(parts[1])
                return ToolResult.ok(f"Copied {len(parts[1])} characters to clipboard")
            if command == "clear":
                pyperclip.copy("")
                return ToolResult.ok("Clipboard cleared")
        except pyperclip.PyperclipException as e:
            return ToolResult.fail(f"Clipboard unavailable: {e}")
        return self.unknown(command)
