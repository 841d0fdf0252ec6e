from __future__ import annotations

import stat
from pathlib import Path
from typing import Any

import yaml

from shproc.util.errors import ConfigError

_ALLOWED_KEYS = {"cwd", "env", "shell", "prefix", "verbose"}


def _is_non_blank_str(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip()) and "\x00" not in value


def _is_str_without_nul(value: object) -> bool:
    return isinstance(value, str) and "\x00" not in value


def _is_valid_env_key(value: object) -> bool:
    return _is_non_blank_str(value) and "=" not in value  # type: ignore[operator]


def _has_symlink_component(path: Path) -> bool:
    for candidate in (path, *path.parents):
        try:
            if stat.S_ISLNK(candidate.lstat().st_mode):
                return True
        except FileNotFoundError:
            continue
        except (OSError, RuntimeError):
            return True
    return False


def parse_overrides(raw: Any) -> dict[str, Any]:
    """Validate a mapping of context overrides and return a clean copy."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config root must be a mapping")
    if any(not isinstance(key, str) for key in raw):
        raise ConfigError("config keys must be strings")
    unknown = set(raw) - _ALLOWED_KEYS
    if unknown:
        raise ConfigError(f"config contains unknown fields: {sorted(unknown)}")

    overrides: dict[str, Any] = {}
    for key in ("cwd", "shell"):
        if key in raw:
            if not _is_non_blank_str(raw[key]):
                raise ConfigError(f"{key} must be non-empty string")
            overrides[key] = raw[key]
    if "prefix" in raw:
        if not _is_str_without_nul(raw["prefix"]):
            raise ConfigError("prefix must be string")
        overrides["prefix"] = raw["prefix"]
    if "verbose" in raw:
        if not isinstance(raw["verbose"], bool):
            raise ConfigError("verbose must be boolean")
        overrides["verbose"] = raw["verbose"]
    if "env" in raw:
        env = raw["env"]
        if not isinstance(env, dict) or not all(
            _is_valid_env_key(k) and _is_str_without_nul(v) for k, v in env.items()
        ):
            raise ConfigError("env must be dict[str, str]")
        overrides["env"] = dict(env)
    return overrides


def load_overrides(path: Path) -> dict[str, Any]:
    if _has_symlink_component(path):
        raise ConfigError(f"config file path must not include symlink: {path}")
    try:
        meta = path.stat()
    except FileNotFoundError as exc:
        raise ConfigError(f"config file not found: {path}") from exc
    except (OSError, RuntimeError) as exc:
        raise ConfigError(f"failed to read config file: {path}") from exc
    if not stat.S_ISREG(meta.st_mode):
        raise ConfigError(f"failed to read config file: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeError as exc:
        raise ConfigError(f"failed to decode config file as utf-8: {path}") from exc
    except OSError as exc:
        raise ConfigError(f"failed to read config file: {path}") from exc

    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse yaml: {exc}") from exc
    return parse_overrides(raw)
