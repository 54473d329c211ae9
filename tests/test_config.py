#!/usr/bin/env python3
import json
import sys
from types import SimpleNamespace

import config
from config import DEFAULT_MODEL, Config, ConfigManager, get_config, resolve_api_key


class TestConfiguration:
    """Test configuration management."""

    def test_config_defaults(self):
        cfg = Config.from_dict({})
        assert cfg.model == DEFAULT_MODEL
        assert cfg.context_limit == 50
        assert cfg.api_key == ""
        assert cfg.llm.max_tokens == 4096
        assert cfg.homebrew.cache_ttl_seconds == 3600

    def test_missing_file_uses_defaults(self, tmp_path):
        mgr = ConfigManager(tmp_path / "nope.json")
        assert mgr.config.model == DEFAULT_MODEL

    def test_partial_file_merged(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"model": "claude-x", "llm": {"max_tokens": 1024}, "bogus": 1}))
        cfg = ConfigManager(path).config
        assert cfg.model == "claude-x"
        assert cfg.llm.max_tokens == 1024
        assert cfg.llm.max_retries == 2

    def test_invalid_context_limit_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        for bad in (0, -3, "ten", True):
            path.write_text(json.dumps({"context_limit": bad}))
            assert ConfigManager(path).config.context_limit == 50

    def test_corrupt_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert ConfigManager(path).config.context_limit == 50

    def test_update_and_save(self, tmp_path):
        path = tmp_path / "sub" / "config.json"
        mgr = ConfigManager(path)
        mgr.update_config({"context_limit": 12, "homebrew": {"command": "/opt/homebrew/bin/brew"}})
        saved = json.loads(path.read_text())
        assert saved["context_limit"] == 12
        assert saved["homebrew"]["command"] == "/opt/homebrew/bin/brew"
        assert (path.stat().st_mode & 0o777) == 0o600

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GRINSH_HOME", str(tmp_path / "home"))
        cfg = get_config()
        assert cfg.data_dir() == tmp_path / "home"
        assert cfg.db_path() == tmp_path / "home" / "grinsh.db"


class TestApiKey:
    """API key lookup order."""

    def test_config_key_first(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")
        cfg = Config.from_dict({"api_key": "from-config"})
        assert resolve_api_key(cfg) == "from-config"

    def test_env_key(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", " from-env ")
        assert resolve_api_key(Config.from_dict({})) == "from-env"

    def test_keyring_key(self, monkeypatch):
        fake = SimpleNamespace(get_password=lambda service, user: "from-keyring"
                               if (service, user) == (config.KEYRING_SERVICE, config.KEYRING_USER) else None)
        monkeypatch.setitem(sys.modules, "keyring", fake)
        assert resolve_api_key(Config.from_dict({})) == "from-keyring"

    def test_keyring_disabled(self, monkeypatch):
        fake = SimpleNamespace(get_password=lambda service, user: "from-keyring")
        monkeypatch.setitem(sys.modules, "keyring", fake)
        cfg = Config.from_dict({"security": {"prefer_keyring": False}})
        assert resolve_api_key(cfg) == ""

    def test_keyring_error_tolerated(self, monkeypatch):
        def _boom(service, user):
            raise RuntimeError("no backend")
        monkeypatch.setitem(sys.modules, "keyring", SimpleNamespace(get_password=_boom))
        assert resolve_api_key(Config.from_dict({})) == ""
