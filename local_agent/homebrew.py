#!/usr/bin/env python3
"""
Homebrew dependency resolver.

Installation checks spawn processes, so results are cached in the store and
trusted for CACHE_TTL_SECONDS. Stale or missing entries trigger a real check
whose outcome is written back whatever it is.
"""
from __future__ import annotations

import logging
import shutil
from typing import List, Optional, Tuple

from local_agent.store import Store, StoreError
from utils.runner import run_cmd

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 3600


class Homebrew:
    def __init__(self, store: Store, *, brew: str = "brew", ttl_seconds: int = CACHE_TTL_SECONDS):
        self.store = store
        self.brew = brew
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def is_available(brew: str = "brew") -> bool:
        return shutil.which(brew) is not None

    def is_installed(self, package: str) -> bool:
        try:
            entry = self.store.get_package_cache(package)
        except StoreError as e:
            logger.warning("Package cache read failed for %s: %s", package, e)
            entry = None
        if entry is not None and entry.age_seconds() < self.ttl_seconds:
            return entry.installed

        installed = self._check_installation(package)
        self._remember(package, installed)
        return installed

    def _check_installation(self, package: str) -> bool:
        if shutil.which(package):
            return True
        # Formula names often differ from the binary they ship (gnu-tar -> gtar)
        if self.is_available(self.brew):
            res = run_cmd([self.brew, "list", "--versions", package])
            return res["rc"] == 0 and bool(res["stdout"].strip())
        return False

    def install(self, package: str) -> Tuple[bool, str]:
        """Run ``brew install``; returns (success, stdout on success else stderr)."""
        logger.info("Installing %s via Homebrew", package)
        res = run_cmd([self.brew, "install", package], mode="write")
        success = res["rc"] == 0
        self._remember(package, success)
        if success:
            return True, res["stdout"]
        return False, res["stderr"] or res["stdout"]

    def _remember(self, package: str, installed: bool, description: str = "") -> None:
        try:
            self.store.upsert_package_cache(package, installed, description)
        except StoreError as e:
            logger.warning("Package cache write failed for %s: %s", package, e)

    def search(self, query: str) -> List[str]:
        res = run_cmd([self.brew, "search", query])
        if res["rc"] != 0:
            return []
        return [ln.strip() for ln in res["stdout"].splitlines() if ln.strip() and not ln.startswith("==>")]

    def info(self, package: str) -> Optional[str]:
        res = run_cmd([self.brew, "info", package])
        if res["rc"] != 0:
            return None
        return res["stdout"].strip()

    def installed_packages(self) -> List[str]:
        res = run_cmd([self.brew, "list", "--formula", "-1"])
        if res["rc"] != 0:
            return []
        return [ln.strip() for ln in res["stdout"].splitlines() if ln.strip()]
