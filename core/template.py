"""Placeholder substitution for command templates."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Sequence
import re


_PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")


class TemplateError(ValueError):
    """Raised when template resolution fails."""


@dataclass(frozen=True)
class TemplateResolver:
    """Resolves ``{{name}}`` and ``{{section.name}}`` placeholders against a context."""

    context: Mapping[str, Any]

    def resolve(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute(value)
        if isinstance(value, list):
            return [self.resolve(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.resolve(item) for item in value)
        if isinstance(value, Mapping):
            return {key: self.resolve(item) for key, item in value.items()}
        return value

    def resolve_command(self, command: Sequence[str]) -> List[str]:
        """Resolve every argument of ``command`` to a string."""
        return [str(self.resolve(part)) for part in command]

    def _substitute(self, text: str) -> str:
        def replacement(match: re.Match[str]) -> str:
            return str(self._lookup(match.group(1).strip()))

        return _PLACEHOLDER_PATTERN.sub(replacement, text)

    def _lookup(self, path: str) -> Any:
        current: Any = self.context
        for part in path.split("."):
            if isinstance(current, Mapping) and part in current:
                current = current[part]
                continue
            available = ", ".join(sorted(str(key) for key in self.context)) or "<none>"
            raise TemplateError(
                f"Cannot resolve placeholder '{{{{{path}}}}}' (available: {available})"
            )
        if current is None:
            raise TemplateError(f"Placeholder '{{{{{path}}}}}' has no value")
        return current


def extract_placeholders(value: Any) -> set[str]:
    """Collect all placeholder paths referenced within *value*."""

    placeholders: set[str] = set()

    def _collect(obj: Any) -> None:
        if isinstance(obj, str):
            for match in _PLACEHOLDER_PATTERN.finditer(obj):
                path = match.group(1).strip()
                if path:
                    placeholders.add(path)
            return
        if isinstance(obj, Mapping):
            for item in obj.values():
                _collect(item)
            return
        if isinstance(obj, (list, tuple)):
            for item in obj:
                _collect(item)

    _collect(value)
    return placeholders


def validate_placeholders(value: Any, allowed: Iterable[str], *, label: str) -> None:
    """Raise :class:`TemplateError` if *value* references names outside *allowed*."""

    allowed_set = set(allowed)
    unknown = sorted(path for path in extract_placeholders(value) if path.split(".", 1)[0] not in allowed_set)
    if unknown:
        joined = ", ".join(unknown)
        supported = ", ".join(sorted(allowed_set))
        raise TemplateError(f"{label} references unknown placeholders: {joined} (supported: {supported})")


__all__ = [
    "TemplateError",
    "TemplateResolver",
    "extract_placeholders",
    "validate_placeholders",
]
