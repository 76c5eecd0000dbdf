"""Resolve project configuration into immutable :class:`ProjectParam`.

Resolution never touches the output tree: every configuration problem
(unknown strategy types, dependency cycles, colliding artifact paths) is
reported before any dist or publish work can start.
"""
from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping
import fnmatch
import os

from core.template import TemplateError, validate_placeholders

from .build import BUILD_PLACEHOLDERS
from .config import DisterConfig, ExcludeConfig, ProductConfig, ProjectConfig
from .disters import DEFAULT_DIST_ID, OS_ARCH_BIN_TYPE_NAME
from .errors import ConfigurationError
from .graph import ProductGraph
from .osarch import OSArch
from .params import BuildParam, DistParam, ProductParam, ProjectInfo, ProjectParam, PublishParam
from .paths import OUTPUT_DIR, validate_artifact_paths, validate_dist_id, validate_product_id
from .registry import DisterRegistry, PublisherRegistry

ENTRY_FILES = ("main.go", "__main__.py")
DEFAULT_EXCLUDE_NAMES = ("vendor", "node_modules", "__pycache__")


def _is_excluded(relative: str, name: str, exclude: ExcludeConfig) -> bool:
    if name.startswith("."):
        return True
    if relative == OUTPUT_DIR:
        return True
    patterns = (*DEFAULT_EXCLUDE_NAMES, *exclude.names)
    if any(fnmatch.fnmatch(name, pattern) for pattern in patterns):
        return True
    for raw in exclude.paths:
        prefix = raw.strip().strip("/").removeprefix("./")
        if prefix and (relative == prefix or relative.startswith(prefix + "/")):
            return True
    return False


def discover_products(root: Path, exclude: ExcludeConfig) -> Dict[str, ProductConfig]:
    """Create a product for every directory below *root* holding an entry file."""

    discovered: Dict[str, str] = {}
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        relative = current.relative_to(root).as_posix()
        dirnames[:] = sorted(
            name
            for name in dirnames
            if not _is_excluded(name if relative == "." else f"{relative}/{name}", name, exclude)
        )
        if not any(entry in filenames for entry in ENTRY_FILES):
            continue
        product_id = current.name if relative != "." else root.name
        main_pkg = "." if relative == "." else f"./{relative}"
        if product_id in discovered:
            raise ConfigurationError(
                f"Discovered two products named '{product_id}': '{discovered[product_id]}' and '{main_pkg}'. "
                "Configure products explicitly or exclude one of them."
            )
        discovered[product_id] = main_pkg

    products: Dict[str, ProductConfig] = {}
    for product_id in sorted(discovered):
        product = ProductConfig()
        product.build.main_pkg = discovered[product_id]
        products[product_id] = product
    return products


def _resolve_build(product_id: str, config: ProductConfig, current: OSArch) -> BuildParam:
    build = config.build
    os_archs = tuple(build.os_archs) if build.os_archs else (current,)
    try:
        validate_placeholders(build.command or [], BUILD_PLACEHOLDERS, label=f"product '{product_id}' build.command")
        validate_placeholders(build.environment or {}, BUILD_PLACEHOLDERS, label=f"product '{product_id}' build.environment")
    except TemplateError as exc:
        raise ConfigurationError(str(exc)) from exc
    return BuildParam(
        main_pkg=build.main_pkg or f"./{product_id}",
        os_archs=os_archs,
        command=tuple(build.command or ()),
        environment=MappingProxyType(dict(build.environment or {})),
    )


def _resolve_dists(
    product_id: str,
    config: ProductConfig,
    build: BuildParam,
    disters: DisterRegistry,
) -> Mapping[str, DistParam]:
    configured = config.dist.disters
    if not configured:
        configured = {DEFAULT_DIST_ID: DisterConfig(type=OS_ARCH_BIN_TYPE_NAME)}

    dists: Dict[str, DistParam] = {}
    for dist_id, dister_config in configured.items():
        validate_dist_id(product_id, dist_id)
        type_name = dister_config.type or dist_id
        dister = disters.create(
            type_name,
            dister_config.config,
            context=f"product '{product_id}' dist '{dist_id}'",
        )
        os_archs = tuple(dister.os_archs) if dister.os_archs else build.os_archs
        unsupported = [str(os_arch) for os_arch in os_archs if os_arch not in build.os_archs]
        if unsupported:
            built = ", ".join(str(os_arch) for os_arch in build.os_archs)
            raise ConfigurationError(
                f"Product '{product_id}' dist '{dist_id}' ({type_name}) requests OS/arch "
                f"{', '.join(unsupported)} which is not built (build.os_archs: {built})"
            )
        dists[dist_id] = DistParam(dist_id=dist_id, type_name=type_name, dister=dister, os_archs=os_archs)
    return MappingProxyType(dists)


def _resolve_publish(product_id: str, config: ProductConfig, publishers: PublisherRegistry) -> PublishParam:
    info: Dict[str, Mapping[str, object]] = {}
    for type_name, block in (config.publish.info or {}).items():
        publishers.validate(type_name, block, context=f"product '{product_id}' publish")
        info[type_name] = MappingProxyType(dict(block))
    return PublishParam(group_id=config.publish.group_id, info=MappingProxyType(info))


def resolve(
    config: ProjectConfig,
    root: Path | str,
    version: str,
    disters: DisterRegistry,
    publishers: PublisherRegistry,
    *,
    current_os_arch: OSArch | None = None,
) -> ProjectParam:
    """Merge, validate and instantiate *config* into a :class:`ProjectParam`."""

    info = ProjectInfo.create(root, version)
    current = current_os_arch or OSArch.current()

    explicit = config.products
    if explicit:
        product_configs = dict(explicit)
    else:
        product_configs = discover_products(info.root, config.exclude)
        if not product_configs:
            raise ConfigurationError(
                f"No products configured and no entry files ({', '.join(ENTRY_FILES)}) found under '{info.root}'"
            )

    for product_id in sorted(product_configs):
        validate_product_id(product_id)

    merged: Dict[str, ProductConfig] = {
        product_id: product_configs[product_id].merged_over(config.product_defaults)
        for product_id in sorted(product_configs)
    }

    graph = ProductGraph({product_id: product.dependencies or [] for product_id, product in merged.items()})

    products: Dict[str, ProductParam] = {}
    for product_id, product_config in merged.items():
        build = _resolve_build(product_id, product_config, current)
        products[product_id] = ProductParam(
            id=product_id,
            build=build,
            dists=_resolve_dists(product_id, product_config, build, disters),
            publish=_resolve_publish(product_id, product_config, publishers),
            dependencies=graph.edges[product_id],
        )

    validate_artifact_paths(
        info.root,
        info.version,
        {
            product_id: {
                dist_id: (dist.os_archs, dist.extension)
                for dist_id, dist in product.dists.items()
            }
            for product_id, product in products.items()
        },
    )

    return ProjectParam(
        root=info.root,
        version=info.version,
        products=MappingProxyType(products),
        graph=graph,
    )


def resolve_products(project: ProjectParam, product_ids: Iterable[str]) -> List[ProductParam]:
    """Return the params for *product_ids* in dependency order."""
    return [project.product(product_id) for product_id in project.graph.topological_order(product_ids)]


__all__ = [
    "DEFAULT_EXCLUDE_NAMES",
    "ENTRY_FILES",
    "discover_products",
    "resolve",
    "resolve_products",
]
