"""Settings loading.

Sources are merged in order, later wins:

1. dataclass defaults
2. ``~/.spotward/defaults.toml`` (global) and ``spotward.toml`` (project)
3. ``SPOTWARD_*`` environment variables (how the Lambda is configured)
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from spotward.constants import (
    DEFAULT_BUCKET,
    DEFAULT_BUNDLE_KEY,
    INSTANCE_USER,
    LOCAL_SCRIPTS_PATH,
    REMOTE_SCRIPTS_DIR,
    RETRY_SCHEDULE,
)
from spotward.exceptions import ConfigurationError

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".spotward" / "defaults.toml"
PROJECT_CONFIG_NAME = "spotward.toml"
ENV_PREFIX = "SPOTWARD_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True, slots=True)
class Settings:
    region: str = "us-east-1"
    spot_request_id: str | None = None
    bucket: str = DEFAULT_BUCKET
    bundle_key: str = DEFAULT_BUNDLE_KEY
    staging_path: str = LOCAL_SCRIPTS_PATH
    remote_scripts_dir: str = REMOTE_SCRIPTS_DIR
    instance_user: str = INSTANCE_USER
    public_key: str | None = None
    private_key: str | None = None
    private_key_passphrase: str | None = None
    prefer_private_address: bool = True
    retry_schedule: str = RETRY_SCHEDULE
    log_level: str = "INFO"
    log_serialize: bool = True

    def __repr__(self) -> str:
        secrets = {"private_key", "private_key_passphrase"}
        shown = ", ".join(
            f"{f.name}={'***' if f.name in secrets and getattr(self, f.name) else getattr(self, f.name)!r}"
            for f in fields(self)
        )
        return f"Settings({shown})"

    def require(self, *names: str) -> None:
        missing = [n for n in names if not getattr(self, n)]
        if missing:
            env = ", ".join(f"{ENV_PREFIX}{n.upper()}" for n in missing)
            raise ConfigurationError(f"Missing required settings: {env}")


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def _from_env(environ: Mapping[str, str]) -> RawConfig:
    names = {f.name for f in fields(Settings)}
    raw: RawConfig = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key.removeprefix(ENV_PREFIX).lower()
        if name in names:
            raw[name] = value
    return raw


def _coerce(raw: RawConfig) -> RawConfig:
    known = {f.name: f for f in fields(Settings)}
    unknown = set(raw) - set(known)
    if unknown:
        raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")

    result: RawConfig = {}
    for name, value in raw.items():
        default = known[name].default
        if isinstance(default, bool):
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered not in _TRUE | _FALSE:
                    raise ConfigurationError(f"{name}: expected a boolean, got {value!r}")
                value = lowered in _TRUE
            elif not isinstance(value, bool):
                raise ConfigurationError(f"{name}: expected a boolean, got {value!r}")
        elif value == "":
            value = None if default is None else default
        result[name] = value
    return result


def load_settings(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_cfg = _read_toml((project_dir or Path.cwd()) / PROJECT_CONFIG_NAME)
    env_cfg = _from_env(os.environ if environ is None else environ)

    merged = _deep_merge(_deep_merge(global_cfg, project_cfg), env_cfg)
    return Settings(**_coerce(merged))
