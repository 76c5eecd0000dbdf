"""Type-name registries for dister and publisher strategies."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Generic, Iterable, Mapping, TypeVar

from .errors import ConfigurationError, StrategyValidationError, UnknownStrategyError

if TYPE_CHECKING:
    from .disters import Dister
    from .publishers import Publisher

T = TypeVar("T")

_FLAG_TYPES = {"string": str, "bool": bool, "int": int}


@dataclass(frozen=True, slots=True)
class Flag:
    """Command-line style option accepted by a strategy."""

    name: str
    type: str = "string"
    default: Any = None
    description: str = ""

    def __post_init__(self) -> None:
        if self.type not in _FLAG_TYPES:
            allowed = ", ".join(sorted(_FLAG_TYPES))
            raise ValueError(f"Flag '{self.name}' has unsupported type '{self.type}' (allowed: {allowed})")

    def coerce(self, value: Any) -> Any:
        if value is None:
            return self.default
        if self.type == "bool":
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in {"1", "true", "yes", "on"}:
                return True
            if text in {"0", "false", "no", "off"}:
                return False
            raise ValueError(f"Flag '{self.name}' expects a boolean, got {value!r}")
        if self.type == "int":
            try:
                return int(value)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Flag '{self.name}' expects an integer, got {value!r}") from exc
        return str(value)


def resolve_flag_values(flags: Iterable[Flag], values: Mapping[str, Any] | None) -> Dict[str, Any]:
    """Coerce *values* against *flags*, filling defaults; unknown names are rejected."""

    declared = {flag.name: flag for flag in flags}
    provided = dict(values or {})
    unknown = sorted(set(provided) - set(declared))
    if unknown:
        raise ValueError(f"Unknown flag(s): {', '.join(unknown)}")
    return {name: flag.coerce(provided.get(name)) for name, flag in declared.items()}


class StrategyRegistry(Generic[T]):
    """Maps a type name to a factory producing strategy instances."""

    kind = "strategy"

    def __init__(self) -> None:
        self._factories: Dict[str, Callable[..., T]] = {}

    def register(self, type_name: str, factory: Callable[..., T]) -> None:
        name = type_name.strip()
        if not name:
            raise ConfigurationError(f"{self.kind} type names cannot be empty")
        if name in self._factories:
            raise ConfigurationError(f"{self.kind} type '{name}' is already registered")
        self._factories[name] = factory

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._factories

    def available(self) -> list[str]:
        return sorted(self._factories)

    def _factory(self, type_name: str) -> Callable[..., T]:
        factory = self._factories.get(type_name)
        if factory is None:
            raise UnknownStrategyError(self.kind, type_name, self._factories)
        return factory


class DisterRegistry(StrategyRegistry["Dister"]):
    kind = "dister"

    def create(self, type_name: str, config: Mapping[str, Any] | None = None, *, context: str | None = None) -> "Dister":
        """Instantiate the dister registered as *type_name* with its validated *config*."""
        factory = self._factory(type_name)
        try:
            return factory(dict(config or {}))
        except StrategyValidationError:
            raise
        except (TypeError, ValueError) as exc:
            raise StrategyValidationError(type_name, str(exc), context=context) from exc


class PublisherRegistry(StrategyRegistry["Publisher"]):
    kind = "publisher"

    def get(self, type_name: str) -> "Publisher":
        return self._factory(type_name)()

    def validate(self, type_name: str, config: Mapping[str, Any] | None, *, context: str | None = None) -> None:
        publisher = self.get(type_name)
        try:
            publisher.validate_config(dict(config or {}))
        except StrategyValidationError:
            raise
        except (TypeError, ValueError) as exc:
            raise StrategyValidationError(type_name, str(exc), context=context) from exc


def default_dister_registry() -> DisterRegistry:
    from .disters import register_builtin_disters

    registry = DisterRegistry()
    register_builtin_disters(registry)
    return registry


def default_publisher_registry() -> PublisherRegistry:
    from .publishers import register_builtin_publishers

    registry = PublisherRegistry()
    register_builtin_publishers(registry)
    return registry


__all__ = [
    "DisterRegistry",
    "Flag",
    "PublisherRegistry",
    "StrategyRegistry",
    "default_dister_registry",
    "default_publisher_registry",
    "resolve_flag_values",
]
