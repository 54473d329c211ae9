#!/usr/bin/env python3
"""Cooperative cancellation for a single in-flight turn."""
from __future__ import annotations

import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)


class TurnCancelled(Exception):
    """The user interrupted the turn before a response arrived."""


class CancelToken:
    """
    Created by the read loop for each turn and passed down explicitly.

    ``cancel()`` is called from the SIGINT handler, which runs on the main
    thread between bytecodes, so it takes no lock. Callbacks are handed out
    with ``list.pop()``, which is atomic, so each one runs exactly once no
    matter how ``cancel()`` and ``add_callback()`` interleave.

    ``finish()`` marks the remote request as answered; after that an
    interrupt no longer targets this turn.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._finished = threading.Event()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def active(self) -> bool:
        """True while a request is outstanding and not yet cancelled."""
        return not self._event.is_set() and not self._finished.is_set()

    def finish(self) -> None:
        self._finished.set()

    def cancel(self) -> None:
        self._event.set()
        self._drain()

    def add_callback(self, cb: Callable[[], None]) -> None:
        self._callbacks.append(cb)
        if self._event.is_set():
            self._drain()

    def _drain(self) -> None:
        while True:
            try:
                cb = self._callbacks.pop()
            except IndexError:
                return
            try:
                cb()
            except Exception as e:
                logger.debug("Cancel callback %r failed: %s", cb, e)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TurnCancelled()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)
