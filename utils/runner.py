#!/usr/bin/env python3
from __future__ import annotations

import json
import os
import shlex
import shutil
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from config import get_config

LOG_NAME = "command_log.jsonl"
MAX_CAPTURE = 8192  # chars per stream to keep in log


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _log_file() -> Path:
    return get_config().data_dir() / LOG_NAME


def have(cmd: str) -> bool:
    return shutil.which(cmd) is not None


def _ensure_list(cmd: Sequence[str] | str) -> list[str]:
    if isinstance(cmd, str):
        return ["/bin/sh", "-c", cmd]
    return list(cmd)


def _prompt_confirm(cmd_str: str) -> bool:
    if not sys.stdin.isatty():
        # Non-interactive: deny
        return False
    try:
        ans = input(f"Allow command?\n  {cmd_str}\n[y/N]: ").strip().lower()
    except EOFError:
        ans = ""
    return ans in {"y", "yes"}


def _truncate(s: str | bytes | None, limit: int = MAX_CAPTURE) -> str:
    if s is None:
        return ""
    if isinstance(s, bytes):
        s = s.decode("utf-8", errors="replace")
    s = str(s)
    if len(s) <= limit:
        return s
    return s[:limit] + f"\n… [truncated {len(s) - limit} chars]"


def _write_log(entry: dict[str, Any]) -> None:
    try:
        path = _log_file()
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
    except Exception:
        # Best-effort logging; never raise
        pass


def run_cmd(
    cmd: Sequence[str] | str,
    *,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    mode: str = "read",
    confirm: bool = False,
    timeout: float | None = None,
    input_text: str | None = None,
) -> dict[str, Any]:
    """
    Execute a command synchronously, capture stdout/stderr, log JSONL, and return:
    { 'rc': int, 'stdout': str, 'stderr': str, 'cmd': [...], 'cwd': str }

    A string is run through ``/bin/sh -c``. ``rc`` is 127 when the program
    does not exist, 124 on timeout and 126 when the user declines to confirm.
    """
    argv = _ensure_list(cmd)
    workdir = str(cwd or os.getcwd())
    cmd_str = cmd if isinstance(cmd, str) else " ".join(shlex.quote(x) for x in argv)

    if confirm and not _prompt_confirm(cmd_str):
        _write_log({
            "ts": _now_iso(),
            "cmd": argv,
            "cwd": workdir,
            "mode": mode,
            "rc": None,
            "denied": True,
        })
        return {"rc": 126, "stdout": "", "stderr": "Denied by user", "cmd": argv, "cwd": workdir}

    try:
        p = subprocess.Popen(
            argv,
            cwd=str(cwd) if cwd else None,
            env={**os.environ, **(env or {})},
            stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        try:
            out, err = p.communicate(input=input_text, timeout=timeout)
        except subprocess.TimeoutExpired:
            p.kill()
            out, err = p.communicate()
            rc = 124
        else:
            rc = p.returncode
    except FileNotFoundError as e:
        out, err, rc = "", str(e), 127
    except OSError as e:
        out, err, rc = "", str(e), 1

    _write_log({
        "ts": _now_iso(),
        "cmd": argv,
        "cwd": workdir,
        "env_keys": sorted((env or {}).keys()),
        "mode": mode,
        "rc": rc,
        "stdout": _truncate(out),
        "stderr": _truncate(err),
    })

    return {"rc": rc, "stdout": out or "", "stderr": err or "", "cmd": argv, "cwd": workdir}


def run_passthrough(cmd: str, *, cwd: str | Path | None = None) -> int:
    """Run a shell command attached to the terminal (no capture); returns its status."""
    argv = _ensure_list(cmd)
    try:
        rc = subprocess.call(argv, cwd=str(cwd) if cwd else None)
    except FileNotFoundError:
        rc = 127
    except OSError:
        rc = 1
    _write_log({
        "ts": _now_iso(),
        "cmd": argv,
        "cwd": str(cwd or os.getcwd()),
        "mode": "raw",
        "rc": rc,
    })
    return rc


def spawn_cmd(
    cmd: Sequence[str] | str,
    *,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> int:
    """Spawn a detached process (no capture); still logs the intent."""
    argv = _ensure_list(cmd)
    try:
        subprocess.Popen(
            argv,
            cwd=str(cwd) if cwd else None,
            env={**os.environ, **(env or {})},
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
        rc = 0
    except FileNotFoundError:
        rc = 127
    except OSError:
        rc = 1
    _write_log({
        "ts": _now_iso(),
        "cmd": argv,
        "cwd": str(cwd or os.getcwd()),
        "mode": "spawn",
        "rc": rc,
    })
    return rc


def combined_output(res: dict[str, Any]) -> str:
    """stdout followed by stderr, trimmed."""
    out = (res.get("stdout") or "").strip()
    err = (res.get("stderr") or "").strip()
    if out and err:
        return f"{out}\n{err}"
    return out or err
