"""Minimal TOML writing for flat string/bool tables."""

import json
from typing import Any, Mapping


def toml_string(value: str) -> str:
    """Quote value as a TOML basic string."""
    # JSON string escapes are a subset of TOML basic-string escapes, except
    # that TOML forbids a raw DEL character.
    return json.dumps(value, ensure_ascii=False).replace("\x7f", "\\u007f")


def toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return toml_string(value)
    raise TypeError(f"unsupported TOML value type: {type(value).__name__}")


def dumps_toml(data: Mapping[str, Any], align: bool = False) -> str:
    """
    Serialize a flat mapping as TOML "key = value" lines.

    Args:
        data: Keys to values (str, bool or int)
        align: Pad keys so the '=' signs line up

    Returns:
        TOML document text ending in a newline
    """
    width = max((len(k) for k in data), default=0) if align else 0
    return ''.join(f"{k.ljust(width)} = {toml_value(v)}\n" for k, v in data.items())
