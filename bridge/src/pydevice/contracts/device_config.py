from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_PRIMITIVES = (bool, int, float, str)


class DeviceConfig(BaseModel):
    """Pre-initialization settings of one scripted device."""

    model_config = ConfigDict(extra="forbid")

    python_path: str = ""
    script_path: str = Field(min_length=1)
    class_name: str = Field(min_length=1)
    init_args: dict[str, Any] = Field(default_factory=dict)
    release_interpreter_on_shutdown: bool = False

    @field_validator("class_name")
    @classmethod
    def _validate_class_name(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"class_name must be a Python identifier, got {value!r}")
        return value

    @field_validator("init_args", mode="before")
    @classmethod
    def _validate_init_args(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("init_args must be a mapping")
        for key, item in value.items():
            if not str(key).isidentifier():
                raise ValueError(f"init_args key {key!r} is not a valid keyword")
            if not _is_primitive(item):
                raise ValueError(
                    f"init_args.{key} must be a bool, number, string or list of numbers"
                )
        return value


def _is_primitive(value: Any) -> bool:
    if isinstance(value, _PRIMITIVES):
        return True
    if isinstance(value, (list, tuple)):
        return all(isinstance(item, (int, float)) and not isinstance(item, bool) for item in value)
    return False


class DeviceFile(BaseModel):
    """Root of a device YAML file."""

    model_config = ConfigDict(extra="forbid")

    adapter: str = Field(default="PyDevice", min_length=1)
    device: DeviceConfig
