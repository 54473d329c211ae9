#!/usr/bin/env python3
"""File system operations: list, read, write, copy, move, delete, trash, search."""
from __future__ import annotations

import os
import shutil
import sys
from datetime import datetime
from pathlib import Path

from tools.base import Tool, ToolResult, expand, split_action
from utils.runner import have, spawn_cmd

MAX_SEARCH_RESULTS = 50


def _trash_dir() -> Path:
    if sys.platform == "darwin":
        return Path.home() / ".Trash"
    data_home = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(data_home) / "Trash" / "files"


def _unique_target(folder: Path, name: str) -> Path:
    target = folder / name
    if not target.exists():
        return target
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return folder / f"{name}.{stamp}"


def _human_size(n: float) -> str:
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if n < 1024 or unit == "TB":
            return f"{n:.0f} {unit}" if unit == "B" else f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


class FilesTool(Tool):
    name = "files"
    description = "File system operations"
    commands = (
        "pwd", "list", "read", "write", "copy", "move", "delete",
        "trash", "mkdir", "info", "reveal", "search",
    )

    def execute(self, action: str) -> ToolResult:
        parts = split_action(action, 1)
        command = parts[0].strip().lower()
        rest = parts[1] if len(parts) > 1 else ""
        try:
            if command == "pwd":
                return ToolResult.ok(os.getcwd())
            if command == "list":
                return self._list(rest or ".")
            if command == "read":
                return self._read(rest)
            if command == "write":
                path, _, content = rest.partition(":")
                return self._write(path, content)
            if command in ("copy", "move"):
                src, _, dst = rest.partition(":")
                return self._transfer(command, src, dst)
            if command == "delete":
                return self._delete(rest)
            if command == "trash":
                return self._trash(rest)
            if command == "mkdir":
                return self._mkdir(rest)
            if command == "info":
                return self._info(rest)
            if command == "reveal":
                return self._reveal(rest)
            if command == "search":
                folder, _, pattern = rest.partition(":")
                return self._search(folder, pattern)
        except OSError as e:
            return ToolResult.fail(str(e))
        return self.unknown(command)

    def _list(self, path: str) -> ToolResult:
        folder = expand(path)
        if not folder.is_dir():
            return ToolResult.fail(f"Not a directory: {path}")
        entries = sorted(folder.iterdir(), key=lambda p: p.name)
        if not entries:
            return ToolResult.ok("(empty)")
        return ToolResult.ok("\n".join(p.name + ("/" if p.is_dir() else "") for p in entries))

    def _read(self, path: str) -> ToolResult:
        if not path:
            return ToolResult.fail("read requires a path")
        return ToolResult.ok(expand(path).read_text(encoding="utf-8", errors="replace"))

    def _write(self, path: str, content: str) -> ToolResult:
        if not path:
            return ToolResult.fail("write requires a path")
        target = expand(path)
        target.write_text(content, encoding="utf-8")
        return ToolResult.ok(f"Wrote {len(content)} bytes to {target}")

    def _transfer(self, command: str, src: str, dst: str) -> ToolResult:
        if not src or not dst:
            return ToolResult.fail(f"{command} requires source and destination")
        source, dest = expand(src), expand(dst)
        if not source.exists():
            return ToolResult.fail(f"No such file or directory: {src}")
        if command == "move":
            shutil.move(str(source), str(dest))
            return ToolResult.ok(f"Moved {source} to {dest}")
        if source.is_dir():
            if dest.is_dir():
                dest = dest / source.name
            shutil.copytree(source, dest)
        else:
            shutil.copy2(source, dest)
        return ToolResult.ok(f"Copied {source} to {dest}")

    def _delete(self, path: str) -> ToolResult:
        if not path:
            return ToolResult.fail("delete requires a path")
        target = expand(path)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
        return ToolResult.ok(f"Deleted {target}")

    def _trash(self, path: str) -> ToolResult:
        if not path:
            return ToolResult.fail("trash requires a path")
        target = expand(path)
        if not target.exists():
            return ToolResult.fail(f"No such file or directory: {path}")
        trash = _trash_dir()
        trash.mkdir(parents=True, exist_ok=True)
        dest = _unique_target(trash, target.name)
        shutil.move(str(target), str(dest))
        return ToolResult.ok(f"Moved {target} to Trash")

    def _mkdir(self, path: str) -> ToolResult:
        if not path:
            return ToolResult.fail("mkdir requires a path")
        target = expand(path)
        target.mkdir(parents=True, exist_ok=True)
        return ToolResult.ok(f"Created {target}")

    def _info(self, path: str) -> ToolResult:
        target = expand(path or ".")
        st = target.stat()
        kind = "directory" if target.is_dir() else "symlink" if target.is_symlink() else "file"
        lines = [
            f"Path: {target.resolve()}",
            f"Type: {kind}",
            f"Size: {_human_size(st.st_size)}",
            f"Modified: {datetime.fromtimestamp(st.st_mtime).strftime('%Y-%m-%d %H:%M:%S')}",
            f"Permissions: {oct(st.st_mode & 0o777)}",
        ]
        return ToolResult.ok("\n".join(lines))

    def _reveal(self, path: str) -> ToolResult:
        target = expand(path or ".")
        if not target.exists():
            return ToolResult.fail(f"No such file or directory: {path}")
        if sys.platform == "darwin":
            rc = spawn_cmd(["open", "-R", str(target)])
        elif have("xdg-open"):
            rc = spawn_cmd(["xdg-open", str(target if target.is_dir() else target.parent)])
        else:
            return ToolResult.fail("No file manager opener available")
        if rc != 0:
            return ToolResult.fail(f"Could not reveal {target}")
        return ToolResult.ok(f"Revealed {target}")

    def _search(self, folder: str, pattern: str) -> ToolResult:
        if not pattern:
            return ToolResult.fail("search requires a directory and a pattern")
        root = expand(folder or ".")
        if not root.is_dir():
            return ToolResult.fail(f"Not a directory: {folder}")
        needle = pattern.lower()
        hits = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for name in sorted(dirnames + filenames):
                if needle in name.lower():
                    hits.append(os.path.join(dirpath, name))
                    if len(hits) >= MAX_SEARCH_RESULTS:
                        return ToolResult.ok("\n".join(hits))
        if not hits:
            return ToolResult.ok(f"No files matching '{pattern}' in {root}")
        return ToolResult.ok("\n".join(hits))
