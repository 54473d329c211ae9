#!/usr/bin/env python3
"""Application control: list, launch, quit, hide, activate."""
from __future__ import annotations

import logging
import sys
from typing import List

import psutil

from tools.base import Tool, ToolResult, split_action
from utils.runner import have, run_cmd, spawn_cmd

logger = logging.getLogger(__name__)


def _osascript(script: str) -> dict:
    return run_cmd(["osascript", "-e", script])


def _matching_processes(name: str) -> List[psutil.Process]:
    low = name.strip().lower()
    found = []
    for proc in psutil.process_iter(["name"]):
        pname = (proc.info.get("name") or "").lower()
        if pname == low or pname == f"{low}.app":
            found.append(proc)
    return found


class AppsTool(Tool):
    name = "apps"
    description = "Launch, quit and switch between applications"
    commands = ("list", "launch", "quit", "force-quit", "hide", "unhide", "activate", "frontmost")

    def execute(self, action: str) -> ToolResult:
        parts = split_action(action, 1)
        command = parts[0].strip().lower()
        app = parts[1].strip() if len(parts) > 1 else ""
        if command == "list":
            return self._list()
        if command == "frontmost":
            return self._frontmost()
        if command not in self.commands:
            return self.unknown(command)
        if not app:
            return ToolResult.fail(f"{command} requires an application name")
        if command == "launch":
            return self._launch(app)
        if command in ("quit", "force-quit"):
            return self._quit(app, force=command == "force-quit")
        return self._window(command, app)

    def _list(self) -> ToolResult:
        if sys.platform == "darwin":
            res = _osascript(
                'tell application "System Events" to get name of every process whose background only is false'
            )
            if res["rc"] == 0:
                names = sorted({n.strip() for n in res["stdout"].split(",") if n.strip()}, key=str.lower)
                return ToolResult.ok("\n".join(names))
        names = set()
        for proc in psutil.process_iter(["name", "terminal"]):
            # GUI-ish processes have no controlling terminal
            if proc.info.get("name") and not proc.info.get("terminal"):
                names.add(proc.info["name"])
        return ToolResult.ok("\n".join(sorted(names, key=str.lower)) or "(none)")

    def _launch(self, app: str) -> ToolResult:
        if sys.platform == "darwin":
            res = run_cmd(["open", "-a", app])
            if res["rc"] != 0:
                return ToolResult.fail(res["stderr"].strip() or f"Could not launch {app}")
            return ToolResult.ok(f"Launched {app}")
        if have(app) and spawn_cmd([app]) == 0:
            return ToolResult.ok(f"Launched {app}")
        if have("gtk-launch") and run_cmd(["gtk-launch", app])["rc"] == 0:
            return ToolResult.ok(f"Launched {app}")
        return ToolResult.fail(f"Application not found: {app}")

    def _quit(self, app: str, force: bool) -> ToolResult:
        if sys.platform == "darwin" and not force:
            res = _osascript(f'tell application "{app}" to quit')
            if res["rc"] == 0:
                return ToolResult.ok(f"Quit {app}")
        procs = _matching_processes(app)
        if not procs:
            return ToolResult.fail(f"{app} is not running")
        for proc in procs:
            try:
                if force:
                    proc.kill()
                else:
                    proc.terminate()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied as e:
                return ToolResult.fail(f"Permission denied stopping {app} (pid {e.pid})")
        verb = "Force quit" if force else "Quit"
        return ToolResult.ok(f"{verb} {app}")

    def _window(self, command: str, app: str) -> ToolResult:
        if sys.platform == "darwin":
            if command == "activate":
                script = f'tell application "{app}" to activate'
            else:
                visible = "false" if command == "hide" else "true"
                script = f'tell application "System Events" to set visible of process "{app}" to {visible}'
            res = _osascript(script)
        elif have("wmctrl"):
            if command == "hide":
                res = run_cmd(["wmctrl", "-r", app, "-b", "add,hidden"])
            elif command == "unhide":
                res = run_cmd(["wmctrl", "-r", app, "-b", "remove,hidden"])
            else:
                res = run_cmd(["wmctrl", "-a", app])
        else:
            return ToolResult.fail(f"{command} is not supported here (missing wmctrl)")
        if res["rc"] != 0:
            return ToolResult.fail(res["stderr"].strip() or f"{command} failed for {app}")
        past = {"hide": "Hid", "unhide": "Unhid", "activate": "Activated"}[command]
        return ToolResult.ok(f"{past} {app}")

    def _frontmost(self) -> ToolResult:
        if sys.platform == "darwin":
            res = _osascript(
                'tell application "System Events" to get name of first process whose frontmost is true'
            )
        elif have("xdotool"):
            res = run_cmd(["xdotool", "getactivewindow", "getwindowname"])
        else:
            return ToolResult.fail("Cannot determine the frontmost application (missing xdotool)")
        if res["rc"] != 0:
            return ToolResult.fail(res["stderr"].strip() or "Cannot determine the frontmost application")
        return ToolResult.ok(res["stdout"].strip())
