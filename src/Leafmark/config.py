from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from .model import DEFAULT_CODE_THEME

PLACEHOLDER_REF = "bafkreiplaceholder"
PLACEHOLDER_MIME_TYPE = "image/jpeg"


@dataclass
class ConverterConfig:
    code_theme: str = DEFAULT_CODE_THEME
    placeholder_ref: str = PLACEHOLDER_REF
    placeholder_mime_type: str = PLACEHOLDER_MIME_TYPE


def load_config(path: str | Path) -> ConverterConfig:
    """Read converter options from a YAML mapping; missing keys keep their defaults."""
    text = Path(path).read_text(encoding="utf-8")
    return parse_config(text)


def parse_config(text: str) -> ConverterConfig:
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping of option names to values.")

    known = {f.name for f in fields(ConverterConfig)}
    unknown = sorted(str(key) for key in data if key not in known)
    if unknown:
        raise ValueError(f"Unknown config option(s): {', '.join(unknown)}")

    config = ConverterConfig(**data)
    for name in ("code_theme", "placeholder_ref", "placeholder_mime_type"):
        if not isinstance(getattr(config, name), str):
            raise ValueError(f"{name} must be a string")
    return config
