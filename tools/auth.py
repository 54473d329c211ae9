#!/usr/bin/env python3
"""Run a command through the platform's administrator authorization prompt."""
from __future__ import annotations

import logging
import sys

from tools.base import ToolResult
from utils.runner import combined_output, have, run_cmd

logger = logging.getLogger(__name__)

DENIED = "Authorization denied"

# osascript reports "User canceled. (-128)". pkexec exits 126 when the dialog is
# dismissed and 127 when not authorized, but also passes through the same
# codes from the child shell, so its own message has to be present too.
_PKEXEC_DENIED = {126, 127}
_PKEXEC_MARKERS = ("not authorized", "dismissed", "authentication failed")


def _pkexec_denied(res: dict) -> bool:
    if res["rc"] not in _PKEXEC_DENIED:
        return False
    stderr = res["stderr"].strip().lower()
    return not stderr or any(m in stderr for m in _PKEXEC_MARKERS)


def _applescript_quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def run_with_auth(command: str) -> ToolResult:
    if sys.platform == "darwin":
        script = f"do shell script {_applescript_quote(command)} with administrator privileges"
        res = run_cmd(["osascript", "-e", script], mode="write")
        if res["rc"] != 0:
            if "-128" in res["stderr"] or "User canceled" in res["stderr"]:
                return ToolResult.fail(DENIED)
            return ToolResult.fail(res["stderr"].strip() or f"Command exited with status {res['rc']}")
        return ToolResult.ok(res["stdout"].strip())

    if have("pkexec"):
        res = run_cmd(["pkexec", "/bin/sh", "-c", command], mode="write")
        if _pkexec_denied(res):
            return ToolResult.fail(DENIED)
    elif have("sudo"):
        res = run_cmd(["sudo", "/bin/sh", "-c", command], mode="write")
        if res["rc"] != 0 and "incorrect password" in res["stderr"].lower():
            return ToolResult.fail(DENIED)
    else:
        return ToolResult.fail("No authorization mechanism available (need pkexec or sudo)")

    text = combined_output(res)
    if res["rc"] != 0:
        return ToolResult.fail(text or f"Command exited with status {res['rc']}")
    return ToolResult.ok(text)
