from __future__ import annotations

import textwrap
from pathlib import Path


def write_script(directory: Path, source: str, *, name: str = "device_script.py") -> Path:
    """Write a dedented Python script into `directory` and return its path."""
    path = directory / name
    path.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
    return path
