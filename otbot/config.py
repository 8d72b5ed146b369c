from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict


class ConfigError(RuntimeError):
    """Raised when the configuration is invalid."""


CACHE_BACKENDS = ("memory", "sqlite")


def _require_int(raw: Dict[str, Any], name: str) -> int:
    if name not in raw:
        raise ConfigError(f"Missing required setting '{name}'")
    value = raw[name]
    if isinstance(value, bool):
        raise ConfigError(f"Setting '{name}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Cannot parse integer value from '{value}' for '{name}'") from exc


def _require_str(raw: Dict[str, Any], name: str) -> str:
    value = raw.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"Setting '{name}' must be a non-empty string")
    return value.strip()


def _get_int(section: Dict[str, Any], name: str, default: int) -> int:
    value = section.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"Setting '{name}' must be an integer")
    if value <= 0:
        raise ConfigError(f"Setting '{name}' must be positive")
    return value


@dataclass(frozen=True)
class BotConfig:
    token: str
    main_group: int
    admin_group: int
    offtopic_group: str
    meta_group: str
    cache_backend: str = "memory"
    cache_path: str = "otbot_cache.sqlite3"
    cache_capacity: int = 1024 * 1024
    long_poll_timeout: int = 25
    request_timeout: int = 30
    callback_data_limit: int = 64

    @staticmethod
    def from_dict(raw: Dict[str, Any], prefix: str = "OTBOT_") -> "BotConfig":
        # environment wins over the file so the token can stay out of it
        token = os.getenv(f"{prefix}TOKEN", "").strip() or str(raw.get("token") or "").strip()
        if not token:
            raise ConfigError(f"Set 'token' in the config file or the {prefix}TOKEN environment variable")

        cache = raw.get("cache") or {}
        telegram = raw.get("telegram") or {}
        if not isinstance(cache, dict) or not isinstance(telegram, dict):
            raise ConfigError("[cache] and [telegram] must be tables")

        backend = str(cache.get("backend", "memory")).strip().lower()
        if backend not in CACHE_BACKENDS:
            raise ConfigError(f"Unknown cache backend '{backend}', expected one of {', '.join(CACHE_BACKENDS)}")

        return BotConfig(
            token=token,
            main_group=_require_int(raw, "main_group"),
            admin_group=_require_int(raw, "admin_group"),
            offtopic_group=_require_str(raw, "offtopic_group"),
            meta_group=_require_str(raw, "meta_group"),
            cache_backend=backend,
            cache_path=str(cache.get("path", "otbot_cache.sqlite3")).strip(),
            cache_capacity=_get_int(cache, "capacity", 1024 * 1024),
            long_poll_timeout=_get_int(telegram, "long_poll_timeout", 25),
            request_timeout=_get_int(telegram, "request_timeout", 30),
            callback_data_limit=_get_int(telegram, "callback_data_limit", 64),
        )

    @staticmethod
    def from_file(path: str, prefix: str = "OTBOT_") -> "BotConfig":
        config_path = Path(path)
        try:
            with config_path.open("rb") as fh:
                raw = tomllib.load(fh)
        except FileNotFoundError as exc:
            raise ConfigError(f"Config file '{path}' does not exist") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Cannot parse config file '{path}': {exc}") from exc
        return BotConfig.from_dict(raw, prefix=prefix)


__all__ = ["BotConfig", "ConfigError", "CACHE_BACKENDS"]
