#!/usr/bin/env python3
from datetime import datetime, timedelta, timezone

import local_agent.homebrew as homebrew_mod
from local_agent.homebrew import CACHE_TTL_SECONDS, Homebrew


def _result(rc=0, stdout="", stderr=""):
    return {"rc": rc, "stdout": stdout, "stderr": stderr, "cmd": [], "cwd": "."}


class CountingBrew(Homebrew):
    def __init__(self, store, installed):
        super().__init__(store)
        self.installed = installed
        self.checks = 0

    def _check_installation(self, package):
        self.checks += 1
        return self.installed


class TestCacheFreshness:
    """Fresh cache entries skip the real check."""

    def test_fresh_entry_is_trusted(self, store):
        store.upsert_package_cache("jq", True)
        brew = CountingBrew(store, installed=False)
        assert brew.is_installed("jq") is True
        assert brew.checks == 0

    def test_stale_entry_rechecked_and_written_back(self, store):
        stale = datetime.now(timezone.utc) - timedelta(seconds=CACHE_TTL_SECONDS + 60)
        store.upsert_package_cache("jq", True, updated_at=stale)
        brew = CountingBrew(store, installed=False)
        assert brew.is_installed("jq") is False
        assert brew.checks == 1
        entry = store.get_package_cache("jq")
        assert entry.installed is False
        assert entry.age_seconds() < 60

    def test_missing_entry_checked_once(self, store):
        brew = CountingBrew(store, installed=True)
        assert brew.is_installed("ripgrep") is True
        assert brew.is_installed("ripgrep") is True
        assert brew.checks == 1

    def test_negative_result_is_cached_too(self, store):
        brew = CountingBrew(store, installed=False)
        brew.is_installed("nothere")
        assert store.get_package_cache("nothere").installed is False


class TestInstall:
    """brew install outcomes."""

    def test_success_returns_stdout_and_caches(self, store, monkeypatch):
        calls = []
        monkeypatch.setattr(homebrew_mod, "run_cmd",
                            lambda argv, **kw: calls.append(argv) or _result(0, "installed jq\n", "noise"))
        ok, output = Homebrew(store).install("jq")
        assert ok is True
        assert output == "installed jq\n"
        assert calls == [["brew", "install", "jq"]]
        assert store.get_package_cache("jq").installed is True

    def test_failure_returns_stderr_and_caches(self, store, monkeypatch):
        monkeypatch.setattr(homebrew_mod, "run_cmd",
                            lambda argv, **kw: _result(1, "", "Error: No available formula"))
        ok, output = Homebrew(store).install("nope")
        assert ok is False
        assert "No available formula" in output
        assert store.get_package_cache("nope").installed is False

    def test_check_uses_path_first(self, store, monkeypatch):
        monkeypatch.setattr(homebrew_mod.shutil, "which", lambda name: "/usr/bin/" + name)
        assert Homebrew(store)._check_installation("git") is True

    def test_check_falls_back_to_brew_list(self, store, monkeypatch):
        monkeypatch.setattr(homebrew_mod.shutil, "which", lambda name: "/opt/brew" if name == "brew" else None)
        monkeypatch.setattr(homebrew_mod, "run_cmd", lambda argv, **kw: _result(0, "gnu-tar 1.35\n"))
        assert Homebrew(store)._check_installation("gnu-tar") is True

    def test_search_skips_headers(self, store, monkeypatch):
        monkeypatch.setattr(homebrew_mod, "run_cmd",
                            lambda argv, **kw: _result(0, "==> Formulae\njq\njql\n"))
        assert Homebrew(store).search("jq") == ["jq", "jql"]

    def test_info_returns_stdout(self, store, monkeypatch):
        calls = []
        monkeypatch.setattr(homebrew_mod, "run_cmd",
                            lambda argv, **kw: calls.append(argv) or _result(0, "==> jq: stable 1.7\n"))
        assert Homebrew(store).info("jq") == "==> jq: stable 1.7"
        assert calls == [["brew", "info", "jq"]]

    def test_info_unknown_formula_is_none(self, store, monkeypatch):
        monkeypatch.setattr(homebrew_mod, "run_cmd",
                            lambda argv, **kw: _result(1, "", "Error: No available formula"))
        assert Homebrew(store).info("nope") is None

    def test_installed_packages_one_per_line(self, store, monkeypatch):
        monkeypatch.setattr(homebrew_mod, "run_cmd", lambda argv, **kw: _result(0, "git\njq\n\nwget\n"))
        assert Homebrew(store).installed_packages() == ["git", "jq", "wget"]

    def test_installed_packages_empty_when_brew_fails(self, store, monkeypatch):
        monkeypatch.setattr(homebrew_mod, "run_cmd", lambda argv, **kw: _result(127, "", "brew: not found"))
        assert Homebrew(store).installed_packages() == []
