#!/usr/bin/env python3
"""
Configuration management for grinsh.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_CONTEXT_LIMIT = 50

KEYRING_SERVICE = "grinsh"
KEYRING_USER = "anthropic_api_key"

DEFAULT_CONFIG = {
    "api_key": "",
    "model": DEFAULT_MODEL,
    "context_limit": DEFAULT_CONTEXT_LIMIT,
    "llm": {
        "max_tokens": 4096,
        "max_retries": 2,
    },
    "paths": {
        "data_dir": "~/.grinsh",
        "config_dir": "~/.config/grinsh",
    },
    "homebrew": {
        "command": "brew",
        "cache_ttl_seconds": 3600,
    },
    "security": {
        "prefer_keyring": True,
        "confirm_commands": False,
    },
}


class ConfigurationError(RuntimeError):
    """Raised when a required setting (usually the API key) is missing."""


@dataclass
class LLMConfig:
    max_tokens: int = 4096
    max_retries: int = 2


@dataclass
class PathsConfig:
    data_dir: str = "~/.grinsh"
    config_dir: str = "~/.config/grinsh"


@dataclass
class HomebrewConfig:
    command: str = "brew"
    cache_ttl_seconds: int = 3600


@dataclass
class SecurityConfig:
    prefer_keyring: bool = True
    confirm_commands: bool = False


def _known(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    # Unknown keys in a hand-edited file are ignored
    names = getattr(cls, "__dataclass_fields__", {})
    return {k: v for k, v in (data or {}).items() if k in names}


def _context_limit(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        logger.warning("Invalid context_limit %r, using %d", value, DEFAULT_CONTEXT_LIMIT)
        return DEFAULT_CONTEXT_LIMIT
    return value


@dataclass
class Config:
    api_key: str
    model: str
    context_limit: int
    llm: LLMConfig
    paths: PathsConfig
    homebrew: HomebrewConfig
    security: SecurityConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Config:
        return cls(
            api_key=str(data.get("api_key") or ""),
            model=str(data.get("model") or DEFAULT_MODEL),
            context_limit=_context_limit(data.get("context_limit", DEFAULT_CONTEXT_LIMIT)),
            llm=LLMConfig(**_known(LLMConfig, data.get("llm", {}))),
            paths=PathsConfig(**_known(PathsConfig, data.get("paths", {}))),
            homebrew=HomebrewConfig(**_known(HomebrewConfig, data.get("homebrew", {}))),
            security=SecurityConfig(**_known(SecurityConfig, data.get("security", {}))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "api_key": self.api_key,
            "model": self.model,
            "context_limit": self.context_limit,
            "llm": asdict(self.llm),
            "paths": asdict(self.paths),
            "homebrew": asdict(self.homebrew),
            "security": asdict(self.security),
        }

    def data_dir(self) -> Path:
        """Directory holding the database and command log (``GRINSH_HOME`` wins)."""
        override = os.environ.get("GRINSH_HOME", "").strip()
        return Path(os.path.expanduser(override or self.paths.data_dir))

    def db_path(self) -> Path:
        return self.data_dir() / "grinsh.db"


class ConfigManager:
    def __init__(self, config_file: Optional[Path] = None):
        if config_file is None:
            env_file = os.environ.get("GRINSH_CONFIG", "").strip()
            if env_file:
                config_file = Path(os.path.expanduser(env_file))
            else:
                config_dir = Path(os.path.expanduser(DEFAULT_CONFIG["paths"]["config_dir"]))
                config_file = config_dir / "config.json"
        self.config_file = Path(config_file)
        self._config: Optional[Config] = None

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def _load_config(self) -> Config:
        if self.config_file.exists():
            try:
                with open(self.config_file, "r") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("top-level value must be an object")
                merged = self._deep_merge(DEFAULT_CONFIG, data)
                return Config.from_dict(merged)
            except (OSError, ValueError) as e:
                logger.warning("Failed to load config %s: %s", self.config_file, e)
        return Config.from_dict(DEFAULT_CONFIG)

    def save_config(self) -> None:
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                json.dump(self.config.to_dict(), f, indent=2)
            try:
                os.chmod(self.config_file, 0o600)
            except OSError:
                pass
        except OSError as e:
            logger.error("Error saving config: %s", e)

    def update_config(self, updates: Dict[str, Any]) -> None:
        current = self.config.to_dict()
        merged = self._deep_merge(current, updates)
        self._config = Config.from_dict(merged)
        self.save_config()

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        result = base.copy()
        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


def resolve_api_key(config: Config) -> str:
    """
    Find the Anthropic API key, in priority order:
    1. ``api_key`` in the config file
    2. Environment variable ANTHROPIC_API_KEY
    3. System keyring (service ``grinsh``), when ``security.prefer_keyring`` is set

    Returns an empty string when nothing is configured.
    """
    key = (config.api_key or "").strip()
    if key:
        logger.info("Using API key from config file")
        return key

    key = os.getenv("ANTHROPIC_API_KEY", "").strip()
    if key:
        logger.info("Using API key from environment variable")
        return key

    if config.security.prefer_keyring:
        try:
            import keyring
            key = (keyring.get_password(KEYRING_SERVICE, KEYRING_USER) or "").strip()
            if key:
                logger.info("Using API key from system keyring")
                return key
        except Exception as e:
            # keyring backends raise their own error types (no backend, locked)
            logger.warning("Failed to access keyring: %s", e)
    return ""


MISSING_KEY_HELP = (
    "No Anthropic API key found. Set it using one of these methods:\n"
    "1. Environment variable: export ANTHROPIC_API_KEY='your-key-here'\n"
    "2. Config file: add \"api_key\": \"your-key-here\" to {config_file}\n"
    "3. System keyring: keyring set grinsh anthropic_api_key\n"
)


# Global singleton
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> Config:
    return get_config_manager().config
