#!/usr/bin/env python3
"""
grinsh: a conversational shell.

    grinsh                 interactive session
    grinsh -c COMMAND      run COMMAND through /bin/sh and exit with its status
    grinsh some request    one-shot: run a single request and exit

Inside the session:
    exit, quit, /quit      leave grinsh
    clear, /clear          forget the conversation
    !command               run command directly, bypassing Claude
    /history [N]           show the last N inputs (default 20)
    /tools                 list built-in and learned tools
    /pref KEY [VALUE]      show or set a stored preference
    /brew [info|search X]  list installed formulae, or look one up
    /help                  this text

Ctrl-C while Claude is thinking cancels the request.
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Callable, List, Optional

from cloud_agent.claude_client import ClaudeClient
from config import MISSING_KEY_HELP, Config, ConfigurationError, get_config, get_config_manager, resolve_api_key
from local_agent.context import Context
from local_agent.homebrew import Homebrew
from local_agent.store import Store, StoreError
from orchestrator import Agent
from tools import ToolRegistry
from utils.cancel import CancelToken, TurnCancelled
from utils.runner import run_passthrough

logger = logging.getLogger(__name__)

BANNER = r"""
  __ _ _ __(_)_ __  ___| |__
 / _` | '__| | '_ \/ __| '_ \
| (_| | |  | | | | \__ \ | | |
 \__, |_|  |_|_| |_|___/_| |_|
 |___/   talk to your computer
"""

EXIT_WORDS = {"exit", "quit", "/quit", "/exit"}
CLEAR_WORDS = {"clear", "/clear"}
EXIT_HINT = "Use 'exit' or 'quit' to exit grinsh"


def _prompt() -> str:
    name = Path.cwd().name or "/"
    return f"grinsh {name}> "


class Shell:
    """The read loop. Owns the cancel token of the turn in flight."""

    def __init__(self, agent: Agent, store: Store, *, out: Callable[[str], None] = print):
        self.agent = agent
        self.store = store
        self.out = out
        self.current: Optional[CancelToken] = None

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def handle_interrupt(self, signum=None, frame=None) -> None:
        token = self.current
        if token is not None and token.active:
            token.cancel()
            return
        self.out(f"\n{EXIT_HINT}")
        try:
            sys.stdout.write(_prompt())
            sys.stdout.flush()
        except OSError:
            pass

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self.handle_interrupt)

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def run_turn(self, text: str) -> Optional[str]:
        token = CancelToken()
        self.current = token
        try:
            return self.agent.process(text, token=token)
        except TurnCancelled:
            return None
        finally:
            self.current = None

    def handle_line(self, line: str) -> bool:
        """Handle one input line. Returns False when the session should end."""
        line = line.strip()
        if not line:
            return True
        if line.lower() in EXIT_WORDS:
            return False
        if line.lower() in CLEAR_WORDS:
            self.agent.clear_context()
            self.out("Conversation cleared.")
            return True
        if line.startswith("!"):
            cmd = line[1:].strip()
            if cmd:
                rc = run_passthrough(cmd)
                if rc != 0:
                    self.out(f"(exit status {rc})")
            return True
        if line.startswith("/") and self._slash(line):
            return True

        reply = self.run_turn(line)
        if reply is None:
            self.out("Cancelled.")
        elif reply:
            self.out(reply)
        return True

    def _slash(self, line: str) -> bool:
        parts = line.split()
        cmd, args = parts[0].lower(), parts[1:]
        if cmd == "/help":
            self.out(__doc__.strip())
        elif cmd == "/history":
            self._history(args)
        elif cmd == "/tools":
            for name, usage in self.agent.registry.describe():
                self.out(f"  {name:<12} {usage}")
        elif cmd == "/pref":
            self._pref(args)
        elif cmd == "/brew":
            self._brew(args)
        else:
            return False
        return True

    def _history(self, args: List[str]) -> None:
        try:
            limit = int(args[0]) if args else 20
            if limit <= 0:
                raise ValueError(limit)
            entries = self.store.recent_history(limit)
        except ValueError:
            self.out("Usage: /history [N]")
            return
        except StoreError as e:
            self.out(f"History unavailable: {e}")
            return
        if not entries:
            self.out("No history yet.")
            return
        for e in entries:
            self.out(f"  {e.timestamp.astimezone():%Y-%m-%d %H:%M}  {e.input}")

    def _pref(self, args: List[str]) -> None:
        if not args:
            self.out("Usage: /pref KEY [VALUE]")
            return
        try:
            if len(args) == 1:
                value = self.store.get_preference(args[0])
                self.out(f"{args[0]} = {value}" if value is not None else f"{args[0]} is not set")
            else:
                self.store.set_preference(args[0], " ".join(args[1:]))
                self.out(f"{args[0]} saved")
        except StoreError as e:
            self.out(f"Preferences unavailable: {e}")

    def _brew(self, args: List[str]) -> None:
        brew = self.agent.homebrew
        if not args:
            packages = brew.installed_packages()
            self.out("\n".join(f"  {p}" for p in packages) if packages else "No Homebrew formulae installed.")
            return
        sub, rest = args[0].lower(), " ".join(args[1:])
        if sub == "info" and rest:
            text = brew.info(rest)
            self.out(text if text else f"No info for {rest}")
        elif sub == "search" and rest:
            hits = brew.search(rest)
            self.out("\n".join(f"  {h}" for h in hits) if hits else f"No formulae match {rest}")
        else:
            self.out("Usage: /brew [info NAME | search QUERY]")

    def loop(self) -> None:
        self.out(BANNER)
        self.out("Type /help for commands. Use 'exit' or 'quit' to leave.\n")
        while True:
            try:
                line = input(_prompt())
            except EOFError:
                self.out("")
                break
            if not self.handle_line(line):
                break


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s')
    for noisy in ("anthropic", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))


def build_agent(config: Config, store: Store, api_key: str) -> Agent:
    brew_cmd = config.homebrew.command
    if not Homebrew.is_available(brew_cmd):
        print(f"Warning: Homebrew ('{brew_cmd}') not found; tools cannot be installed on demand.")
    homebrew = Homebrew(store, brew=brew_cmd, ttl_seconds=config.homebrew.cache_ttl_seconds)
    registry = ToolRegistry(confirm_commands=config.security.confirm_commands)
    try:
        registry.load_learned(store, homebrew)
    except StoreError as e:
        logger.warning("Could not load learned tools: %s", e)
    context = Context(store, config.context_limit)
    llm = ClaudeClient(
        api_key,
        model=config.model,
        max_tokens=config.llm.max_tokens,
        max_retries=config.llm.max_retries,
    )
    return Agent(context, store, homebrew, llm, registry)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="grinsh", description="A conversational shell powered by Claude.")
    p.add_argument("-c", dest="command", metavar="COMMAND", help="run COMMAND through /bin/sh and exit")
    p.add_argument("-l", "--login", action="store_true", help="accepted for login-shell use; ignored")
    p.add_argument("-v", "--verbose", action="count", default=0, help="more logging (-vv for debug)")
    p.add_argument("request", nargs="*", help="run a single request and exit")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    _setup_logging(args.verbose)

    if args.command is not None:
        return run_passthrough(args.command)

    config = get_config()
    api_key = resolve_api_key(config)
    if not api_key:
        print(MISSING_KEY_HELP.format(config_file=get_config_manager().config_file), file=sys.stderr)
        return 1

    try:
        store = Store.open(config.db_path())
    except StoreError as e:
        print(f"grinsh: {e}", file=sys.stderr)
        return 1

    with store:
        try:
            agent = build_agent(config, store, api_key)
        except ConfigurationError as e:
            print(str(e), file=sys.stderr)
            return 1
        shell = Shell(agent, store)
        shell.install_signal_handlers()
        signal.signal(signal.SIGTERM, lambda *_: sys.exit(0))

        if args.request:
            reply = shell.run_turn(" ".join(args.request))
            print("Cancelled." if reply is None else reply)
            return 0 if reply is not None else 130
        shell.loop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
