"""Resolved, immutable project and product parameters."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Tuple

from .errors import ConfigurationError
from .graph import ProductGraph
from .osarch import OSArch

if TYPE_CHECKING:
    from .disters import Dister

ProductID = str
DistID = str


@dataclass(frozen=True, slots=True)
class ProjectInfo:
    """Environmental facts about the project, independent of configuration."""

    root: Path
    version: str

    @classmethod
    def create(cls, root: Path | str, version: str) -> "ProjectInfo":
        if not isinstance(version, str) or not version.strip():
            raise ConfigurationError("A non-empty project version is required")
        return cls(root=Path(root).expanduser().resolve(), version=version.strip())


@dataclass(frozen=True, slots=True)
class ProductDistID:
    """Selector naming a product and optionally one of its dists."""

    product_id: ProductID
    dist_id: DistID | None = None

    @classmethod
    def parse(cls, value: "str | ProductDistID") -> "ProductDistID":
        if isinstance(value, ProductDistID):
            return value
        text = value.strip()
        product_id, sep, dist_id = text.partition(".")
        if not product_id or (sep and not dist_id):
            raise ConfigurationError(f"Invalid product/dist selector '{value}': expected 'product' or 'product.dist-id'")
        return cls(product_id=product_id, dist_id=dist_id or None)

    def __str__(self) -> str:
        return f"{self.product_id}.{self.dist_id}" if self.dist_id else self.product_id


@dataclass(frozen=True, slots=True)
class BuildParam:
    main_pkg: str
    os_archs: Tuple[OSArch, ...]
    command: Tuple[str, ...] = ()
    environment: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True, slots=True)
class DistParam:
    dist_id: DistID
    type_name: str
    dister: "Dister"
    os_archs: Tuple[OSArch, ...]

    @property
    def extension(self) -> str:
        return self.dister.artifact_extension


@dataclass(frozen=True, slots=True)
class PublishParam:
    group_id: str | None = None
    info: Mapping[str, Mapping[str, Any]] = field(default_factory=lambda: MappingProxyType({}))

    def config_for(self, type_name: str) -> Mapping[str, Any]:
        return self.info.get(type_name, MappingProxyType({}))


@dataclass(frozen=True, slots=True)
class ProductParam:
    id: ProductID
    build: BuildParam
    dists: Mapping[DistID, DistParam]
    publish: PublishParam
    dependencies: Tuple[ProductID, ...] = ()

    def dist_ids(self) -> Tuple[DistID, ...]:
        return tuple(self.dists)

    def dist(self, dist_id: DistID) -> DistParam:
        try:
            return self.dists[dist_id]
        except KeyError:
            available = ", ".join(sorted(self.dists)) or "<none>"
            raise ConfigurationError(
                f"Product '{self.id}' has no dist '{dist_id}'. Available dists: {available}"
            ) from None


@dataclass(frozen=True, slots=True)
class ProjectParam:
    root: Path
    version: str
    products: Mapping[ProductID, ProductParam]
    graph: ProductGraph

    def product(self, product_id: ProductID) -> ProductParam:
        try:
            return self.products[product_id]
        except KeyError:
            available = ", ".join(sorted(self.products)) or "<none>"
            raise ConfigurationError(
                f"Unknown product '{product_id}'. Available products: {available}"
            ) from None

    def dependencies_of(self, product_id: ProductID) -> Tuple[ProductID, ...]:
        return self.graph.dependencies_of(product_id)

    def topological_order(self) -> Tuple[ProductID, ...]:
        return self.graph.topological_order()

    def project_info(self) -> ProjectInfo:
        return ProjectInfo(root=self.root, version=self.version)


@dataclass(frozen=True, slots=True)
class ProductTaskOutputInfo:
    """Artifacts produced for one product; the only input a publisher sees."""

    product_id: ProductID
    version: str
    artifacts: Mapping[DistID, Tuple[Path, ...]]
    group_id: str | None = None

    def dist_ids(self) -> Tuple[DistID, ...]:
        return tuple(sorted(self.artifacts))

    def artifact_paths(self) -> Tuple[Path, ...]:
        return tuple(path for dist_id in self.dist_ids() for path in self.artifacts[dist_id])

    def render(self, header: str | None = None) -> str:
        """Return the per-product summary block, sorted by dist ID."""
        lines = [header or f"Dist outputs for product {self.product_id}:"]
        for dist_id in self.dist_ids():
            paths = " ".join(str(path) for path in self.artifacts[dist_id])
            lines.append(f"{dist_id}: [{paths}]")
        return "\n".join(lines)


__all__ = [
    "BuildParam",
    "DistID",
    "DistParam",
    "ProductDistID",
    "ProductID",
    "ProductParam",
    "ProductTaskOutputInfo",
    "ProjectInfo",
    "ProjectParam",
    "PublishParam",
]
