"""Error kinds raised while resolving, disting and publishing products."""
from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple


class DistflowError(RuntimeError):
    """Base class for all pipeline errors."""


class ConfigurationError(DistflowError, ValueError):
    """Raised for invalid configuration; always detected before any side effect."""


class UnknownStrategyError(ConfigurationError):
    """Raised when a dister or publisher type name is not registered."""

    def __init__(self, kind: str, type_name: str, available: Iterable[str]):
        names = ", ".join(sorted(available)) or "<none>"
        super().__init__(f"Unknown {kind} type '{type_name}'. Available {kind} types: {names}")
        self.kind = kind
        self.type_name = type_name


class DependencyCycleError(ConfigurationError):
    """Raised when product dependencies form a cycle."""

    def __init__(self, cycle: Sequence[str]):
        super().__init__(f"Circular product dependency detected: {' -> '.join(cycle)}")
        self.cycle = list(cycle)


class ArtifactPathCollisionError(ConfigurationError):
    """Raised when two artifact identifiers resolve to the same output path."""

    def __init__(self, path: str, first: str, second: str):
        super().__init__(f"Artifact path collision at '{path}': {first} and {second}")
        self.path = path
        self.identifiers = (first, second)


class StrategyValidationError(ConfigurationError):
    """Raised when a dister or publisher rejects its own configuration."""

    def __init__(self, type_name: str, message: str, *, context: str | None = None):
        prefix = f"{context}: " if context else ""
        super().__init__(f"{prefix}invalid configuration for '{type_name}': {message}")
        self.type_name = type_name


class DistExecutionError(DistflowError):
    """Raised when building or disting one product/dist/os-arch combination fails."""

    def __init__(self, product_id: str, dist_id: str | None, os_arch: str | None, message: str):
        parts = [f"product '{product_id}'"]
        if dist_id:
            parts.append(f"dist '{dist_id}'")
        if os_arch:
            parts.append(f"os-arch '{os_arch}'")
        super().__init__(f"{', '.join(parts)}: {message}")
        self.product_id = product_id
        self.dist_id = dist_id
        self.os_arch = os_arch


class MissingArtifactError(DistflowError):
    """Raised when publish expects an artifact that was never dist'ed."""

    def __init__(self, product_id: str, dist_id: str, path: str):
        super().__init__(
            f"product '{product_id}', dist '{dist_id}': artifact '{path}' does not exist (run dist first)"
        )
        self.product_id = product_id
        self.dist_id = dist_id
        self.path = path


class PublishExecutionError(DistflowError):
    """Raised when a publisher fails for a single product."""

    def __init__(self, product_id: str, type_name: str, message: str):
        super().__init__(f"product '{product_id}': publisher '{type_name}' failed: {message}")
        self.product_id = product_id
        self.type_name = type_name


class PublishFailures(DistflowError):
    """Aggregate of the per-product failures of a publish invocation."""

    def __init__(self, failures: Sequence[Tuple[str, Exception]]):
        self.failures: List[Tuple[str, Exception]] = list(failures)
        lines = [f"Publish failed for {len(self.failures)} product(s):"]
        lines.extend(f"  {product_id}: {error}" for product_id, error in self.failures)
        super().__init__("\n".join(lines))

    @property
    def product_ids(self) -> List[str]:
        return [product_id for product_id, _ in self.failures]


__all__ = [
    "ArtifactPathCollisionError",
    "ConfigurationError",
    "DependencyCycleError",
    "DistExecutionError",
    "DistflowError",
    "MissingArtifactError",
    "PublishExecutionError",
    "PublishFailures",
    "StrategyValidationError",
    "UnknownStrategyError",
]
