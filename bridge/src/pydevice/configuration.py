from __future__ import annotations

import hashlib
import json
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from pydevice.contracts import DeviceConfig, DeviceFile

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_PATH_FIELDS = ("python_path", "script_path")


class ConfigError(ValueError):
    pass


def load_yaml(path: str | Path) -> dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return payload


def load_device_file(path: str | Path) -> DeviceFile:
    """
    Load a device YAML file.

    `${VAR}` references are substituted from the environment, and relative
    script/python paths are resolved against the YAML file's directory.
    """
    source = Path(path)
    payload = resolve_env_vars(load_yaml(source))
    try:
        device_file = DeviceFile.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error("device_file", exc)) from exc
    device = resolve_relative_paths(device_file.device, base_dir=source.parent)
    return device_file.model_copy(update={"device": device})


def load_device_config(path: str | Path) -> DeviceConfig:
    return load_device_file(path).device


def resolve_relative_paths(config: DeviceConfig, *, base_dir: Path) -> DeviceConfig:
    updates: dict[str, str] = {}
    for field_name in _PATH_FIELDS:
        value = getattr(config, field_name)
        if not value:
            continue
        candidate = Path(value).expanduser()
        if not candidate.is_absolute():
            updates[field_name] = str(base_dir / candidate)
    if not updates:
        return config
    return config.model_copy(update=updates)


def resolve_env_vars(payload: Any) -> Any:
    return _resolve_env_vars(payload, path="$")


def _resolve_env_vars(payload: Any, *, path: str) -> Any:
    if isinstance(payload, Mapping):
        return {
            str(key): _resolve_env_vars(value, path=f"{path}.{key}")
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [
            _resolve_env_vars(value, path=f"{path}[{index}]") for index, value in enumerate(payload)
        ]
    if isinstance(payload, str):
        return _substitute_env(payload, path=path)
    return payload


def _substitute_env(value: str, *, path: str) -> str:
    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        env_value = os.environ.get(key)
        if env_value is None:
            raise ConfigError(f"Missing environment variable '{key}' at {path}")
        return env_value

    return _ENV_VAR_PATTERN.sub(replace, value)


def stable_hash(payload: Any, *, length: int = 12) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str).encode(
        "utf-8"
    )
    return hashlib.sha256(encoded).hexdigest()[:length]


def _format_validation_error(prefix: str, exc: ValidationError) -> str:
    details: list[str] = []
    for error in exc.errors(include_url=False):
        loc = ".".join(str(part) for part in error["loc"])
        details.append(f"{prefix}.{loc}: {error['msg']}")
    return "; ".join(details)
