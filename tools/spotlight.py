#!/usr/bin/env python3
"""Desktop search: Spotlight (mdfind) on macOS, locate/find elsewhere."""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import List

from tools.base import Tool, ToolResult, split_action
from utils.runner import have, run_cmd

MAX_RESULTS = 20

APP_DIRS = ("/usr/share/applications", "~/.local/share/applications", "/var/lib/flatpak/exports/share/applications")


def _lines(stdout: str) -> List[str]:
    return [ln for ln in stdout.splitlines() if ln.strip()][:MAX_RESULTS]


class SpotlightTool(Tool):
    name = "spotlight"
    description = "Search files and applications"
    commands = ("search", "find-file", "find-app")

    def execute(self, action: str) -> ToolResult:
        parts = split_action(action, 1)
        command = parts[0].strip().lower()
        query = parts[1].strip() if len(parts) > 1 else ""
        if command not in self.commands:
            return self.unknown(command)
        if not query:
            return ToolResult.fail(f"{command} requires a query")
        if command == "search":
            hits = self._search(query)
        elif command == "find-file":
            hits = self._find_file(query)
        else:
            hits = self._find_app(query)
        if hits is None:
            return ToolResult.fail("No search backend available (need mdfind, locate or find)")
        if not hits:
            return ToolResult.ok(f"No results for '{query}'")
        return ToolResult.ok("\n".join(hits))

    def _search(self, query: str):
        if sys.platform == "darwin":
            return _lines(run_cmd(["mdfind", query])["stdout"])
        if have("locate"):
            return _lines(run_cmd(["locate", "-i", "-l", str(MAX_RESULTS), query])["stdout"])
        return self._find_file(query)

    def _find_file(self, name: str):
        if sys.platform == "darwin":
            return _lines(run_cmd(["mdfind", f"kMDItemFSName == '*{name}*'c"])["stdout"])
        if have("locate"):
            return _lines(run_cmd(["locate", "-i", "-b", "-l", str(MAX_RESULTS), name])["stdout"])
        if have("find"):
            res = run_cmd(["find", str(Path.home()), "-iname", f"*{name}*", "-not", "-path", "*/.*"], timeout=30)
            return _lines(res["stdout"])
        return None

    def _find_app(self, name: str):
        if sys.platform == "darwin":
            return _lines(run_cmd([
                "mdfind", f"kMDItemContentType == 'com.apple.application-bundle' && kMDItemFSName == '*{name}*'c",
            ])["stdout"])
        low = name.lower()
        hits = []
        for folder in APP_DIRS:
            base = Path(os.path.expanduser(folder))
            if not base.is_dir():
                continue
            for entry in sorted(base.glob("*.desktop")):
                if low in entry.stem.lower():
                    hits.append(str(entry))
        return hits[:MAX_RESULTS]
