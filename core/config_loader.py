"""Shared helpers for locating and loading configuration mappings."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

import json
import tomllib

import yaml


ConfigLoader = Callable[[Any], Any]


FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": tomllib.load,
    ".json": json.load,
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
}
"""Mapping of file suffixes to loader callables."""

_BINARY_SUFFIXES = frozenset({".toml"})


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``.

    An empty YAML document decodes to an empty mapping.
    """

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ValueError(
            f"Unsupported configuration file extension: {suffix}. Supported: {supported}"
        )

    try:
        if suffix in _BINARY_SUFFIXES:
            with path.open("rb") as handle:
                data = loader(handle)
        else:
            with path.open("r", encoding="utf-8") as handle:
                data = loader(handle)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in '{path}': {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")

    return data


def find_config_file(directory: Path, stem: str, *, suffixes: Iterable[str] | None = None) -> Path | None:
    """Return the single ``<stem>.<suffix>`` file in ``directory`` if one exists."""

    allowed = [suffix.lower() for suffix in (suffixes or FILE_LOADERS.keys())]
    found: List[Path] = []
    for suffix in allowed:
        candidate = directory / f"{stem}{suffix}"
        if candidate.is_file():
            found.append(candidate)

    if len(found) > 1:
        names = ", ".join(f"'{path.name}'" for path in found)
        raise ValueError(
            f"Multiple configuration files found for '{stem}': {names}. "
            "Only one format per configuration entry is allowed."
        )
    return found[0] if found else None


def normalize_string_list(value: Any, *, field_name: str | None = None) -> List[str]:
    """Coerce ``value`` into a list of trimmed strings."""

    if value is None:
        return []

    label = f"{field_name} " if field_name else ""
    if isinstance(value, str):
        text = value.strip()
        return [text] if text else []

    if isinstance(value, Sequence) and not isinstance(value, bytes):
        items: List[str] = []
        for item in value:
            if not isinstance(item, str):
                raise TypeError(f"{label}entries must be strings")
            text = item.strip()
            if text:
                items.append(text)
        return items

    raise TypeError(f"{label}must be a string or sequence of strings")


def ensure_known_keys(data: Mapping[str, Any], allowed: Iterable[str], *, section: str) -> None:
    """Raise ``ValueError`` when ``data`` holds keys outside ``allowed``."""

    allowed_set = set(allowed)
    unknown = {str(key) for key in data.keys() if str(key) not in allowed_set}
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ValueError(f"{section} contains unknown keys: {joined}")


__all__ = [
    "ConfigLoader",
    "FILE_LOADERS",
    "ensure_known_keys",
    "find_config_file",
    "load_config_file",
    "normalize_string_list",
]
