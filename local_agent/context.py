#!/usr/bin/env python3
"""
Conversation context: the bounded window of recent messages sent with every
request, mirrored into the store so a new session picks up where the last
one stopped.
"""
from __future__ import annotations

import logging
import platform
from dataclasses import dataclass
from typing import Dict, List

from local_agent.store import Store, StoreError

logger = logging.getLogger(__name__)

SYSTEM_TEMPLATE = r"""
You are grinsh, a conversational shell for {os_name}. Turn each user request
into exactly one tool invocation.

TOOLS AND THEIR ACTIONS:

1. files - file system operations
   pwd | list:path | read:path | write:path:content | copy:source:dest |
   move:source:dest | delete:path | trash:path | mkdir:path | info:path |
   reveal:path | search:directory:pattern

2. apps - application management
   list | launch:app | quit:app | force-quit:app | hide:app | unhide:app |
   activate:app | frontmost

3. system - system controls
   get_volume | set_volume:0.0-1.0 | get_brightness | set_brightness:0.0-1.0 |
   battery | wifi | disk_space | sleep

4. clipboard - clipboard operations
   get | set:content | clear

5. spotlight - search
   search:query | find-file:filename | find-app:appname

6. Command-line programs (ffmpeg, git, jq, ...). Use the program name as the
   tool and the full command line as the action. Programs that may be
   missing are installed with Homebrew when you name the formula in
   "install_via_brew".
{learned}
Reply with ONLY a JSON object:
{{
  "tool": "<tool name>",
  "action": "<action string>",
  "explanation": "<one line describing what you are doing>",
  "needs_auth": false,
  "install_via_brew": "<formula, only when the program may need installing>"
}}

Rules:
1) Use a built-in tool whenever one fits.
2) Set "needs_auth" to true only for commands that need administrator rights.
3) If the request is a question you can answer without running anything,
   reply in plain text instead of JSON.

Examples:
User: where are we?
{{"tool": "files", "action": "pwd", "explanation": "Showing the current directory", "needs_auth": false}}
User: turn the volume down to 20%
{{"tool": "system", "action": "set_volume:0.2", "explanation": "Setting volume to 20%", "needs_auth": false}}
User: convert clip.mov to a gif
{{"tool": "ffmpeg", "action": "ffmpeg -i clip.mov clip.gif", "explanation": "Converting the video with ffmpeg", "needs_auth": false, "install_via_brew": "ffmpeg"}}
"""


def _os_name() -> str:
    system = platform.system()
    return "macOS" if system == "Darwin" else system or "this computer"


@dataclass(frozen=True)
class ConversationMessage:
    role: str
    content: str

    def to_api(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class Context:
    def __init__(self, store: Store, context_limit: int = 50):
        if context_limit <= 0:
            raise ValueError("context_limit must be positive")
        self.store = store
        self.context_limit = context_limit
        self._messages: List[ConversationMessage] = []
        self._load()

    def _load(self) -> None:
        try:
            rows = self.store.recent_messages(self.context_limit)
        except StoreError as e:
            logger.warning("Could not load conversation history: %s", e)
            return
        self._messages = [ConversationMessage(r.role, r.content) for r in rows]

    @property
    def messages(self) -> List[ConversationMessage]:
        return list(self._messages)

    def messages_for_api(self) -> List[Dict[str, str]]:
        return [m.to_api() for m in self._messages]

    def add_user_message(self, text: str) -> None:
        self._append("user", text)
        try:
            self.store.append_history(text)
        except StoreError as e:
            logger.warning("Could not record input history: %s", e)

    def add_assistant_message(self, text: str) -> None:
        self._append("assistant", text)

    def _append(self, role: str, text: str) -> None:
        self._messages.append(ConversationMessage(role, text))
        self._trim()
        try:
            self.store.append_message(role, text)
        except StoreError as e:
            logger.warning("Could not persist %s message, keeping it in memory only: %s", role, e)

    def _trim(self) -> None:
        excess = len(self._messages) - self.context_limit
        if excess > 0:
            del self._messages[:excess]

    def clear(self) -> None:
        self._messages.clear()
        try:
            self.store.clear_messages()
        except StoreError as e:
            logger.warning("Could not clear stored messages: %s", e)

    def system_prompt(self) -> str:
        return SYSTEM_TEMPLATE.format(os_name=_os_name(), learned=self._learned_section()).strip()

    def _learned_section(self) -> str:
        try:
            tools = self.store.all_tools()
        except StoreError as e:
            logger.warning("Could not read learned tools: %s", e)
            return ""
        if not tools:
            return ""
        lines = ["", "   LEARNED TOOLS:"]
        lines.extend(f"   - {t.name}: {t.description}" for t in tools)
        return "\n".join(lines) + "\n"
