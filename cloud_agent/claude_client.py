#!/usr/bin/env python3
from __future__ import annotations

import logging
import sys
import threading
import time
from typing import Any, Dict, List, Optional

import anthropic

from config import DEFAULT_MODEL, MISSING_KEY_HELP, ConfigurationError, get_config_manager
from utils.cancel import CancelToken, TurnCancelled

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1


class ApiError(RuntimeError):
    """The completion request failed or returned no usable text."""


# ---- Spinner -----------------------------------------------------------------
class Spinner:
    FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"

    def __init__(self, label: str = "Thinking", stream=None):
        self.label = label
        self.stream = stream or sys.stdout
        self._stop = threading.Event()
        self._t: Optional[threading.Thread] = None
        self._start = 0.0

    def start(self):
        self._start = time.time()
        self._t = threading.Thread(target=self._run, daemon=True)
        self._t.start()

    def _run(self):
        i = 0
        while not self._stop.is_set():
            elapsed = time.time() - self._start
            frame = self.FRAMES[i % len(self.FRAMES)]
            try:
                self.stream.write(f"\r{self.label} {frame}  ⏱ {elapsed:0.1f}s ")
                self.stream.flush()
            except (OSError, ValueError):
                return
            self._stop.wait(0.08)
            i += 1

    def stop(self):
        self._stop.set()
        if self._t:
            self._t.join(timeout=0.2)
        try:
            self.stream.write("\r" + " " * 40 + "\r")
            self.stream.flush()
        except (OSError, ValueError):
            pass


def _prepare_messages(messages: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """The API requires the first turn to come from the user."""
    out = [m for m in messages if m.get("content")]
    while out and out[0]["role"] != "user":
        out.pop(0)
    return out


def _response_text(resp: Any) -> str:
    for block in getattr(resp, "content", None) or []:
        if getattr(block, "type", "text") == "text" and getattr(block, "text", None):
            return block.text
    raise ApiError("Response contained no text")


# ---- Client ------------------------------------------------------------------
class ClaudeClient:
    """
    Sends the conversation to the Anthropic Messages API.

    ``complete`` runs the request on a worker thread and polls the caller's
    CancelToken; a cancelled request is abandoned and its response is never
    returned.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
        max_retries: int = 2,
        client: Any = None,
        show_spinner: Optional[bool] = None,
    ):
        if not api_key and client is None:
            raise ConfigurationError(
                MISSING_KEY_HELP.format(config_file=get_config_manager().config_file)
            )
        self.model = model
        self.max_tokens = max_tokens
        self._client = client or anthropic.Anthropic(api_key=api_key, max_retries=max_retries)
        self.show_spinner = sys.stdout.isatty() if show_spinner is None else show_spinner

    def _request_client(self, token: CancelToken):
        """Returns (client, http_client or None) for one request."""
        # A per-request HTTP client lets cancel() tear down the socket
        with_options = getattr(self._client, "with_options", None)
        if with_options is None:
            return self._client, None
        http_client = anthropic.DefaultHttpxClient()
        token.add_callback(http_client.close)
        return with_options(http_client=http_client), http_client

    def complete(
        self,
        messages: List[Dict[str, str]],
        system: str,
        *,
        token: Optional[CancelToken] = None,
    ) -> str:
        token = token or CancelToken()
        token.raise_if_cancelled()
        payload = _prepare_messages(messages)
        if not payload:
            raise ApiError("No user message to send")

        client, http_client = self._request_client(token)
        done = threading.Event()
        box: Dict[str, Any] = {}

        def _worker() -> None:
            try:
                box["resp"] = client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    system=system,
                    messages=payload,
                )
            except Exception as e:
                box["error"] = e
            finally:
                done.set()
                if http_client is not None and not token.cancelled:
                    http_client.close()

        logger.info("Sending %d message(s) to %s", len(payload), self.model)
        t0 = time.time()
        spin = Spinner() if self.show_spinner else None
        if spin:
            spin.start()
        threading.Thread(target=_worker, name="claude-request", daemon=True).start()
        try:
            while not done.wait(POLL_INTERVAL):
                if token.cancelled:
                    break
        finally:
            if spin:
                spin.stop()

        if token.cancelled:
            logger.info("Request cancelled after %.2fs", time.time() - t0)
            raise TurnCancelled()

        err = box.get("error")
        if err is not None:
            if isinstance(err, anthropic.APIStatusError):
                raise ApiError(f"API error {err.status_code}: {err.message}") from err
            if isinstance(err, anthropic.APIConnectionError):
                raise ApiError(f"Network error: {err}") from err
            raise ApiError(str(err) or err.__class__.__name__) from err

        text = _response_text(box["resp"]).strip()
        logger.info("Reply received in %.2fs (%d chars)", time.time() - t0, len(text))
        return text
