"""Configuration model for projects and products.

Every field of a product-level section is optional: ``None`` means "not set"
so that :meth:`ProductConfig.merged_over` can layer a product's explicit
settings on top of ``product_defaults``.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

from core.config_loader import (
    ensure_known_keys,
    find_config_file,
    load_config_file,
    normalize_string_list,
)

from .errors import ConfigurationError
from .osarch import OSArch, parse_os_archs

CONFIG_FILE_STEM = "dist"


def _mapping_section(data: Mapping[str, Any], key: str, *, section: str) -> Mapping[str, Any] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise TypeError(f"{section}.{key} must be a table/mapping")
    return value


@dataclass(slots=True)
class BuildConfig:
    main_pkg: str | None = None
    os_archs: List[OSArch] | None = None
    command: List[str] | None = None
    environment: Dict[str, str] | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, section: str = "build") -> "BuildConfig":
        ensure_known_keys(data, {"main_pkg", "os_archs", "command", "environment"}, section=section)
        main_pkg = data.get("main_pkg")
        if main_pkg is not None and (not isinstance(main_pkg, str) or not main_pkg.strip()):
            raise ValueError(f"{section}.main_pkg must be a non-empty string")
        raw_os_archs = data.get("os_archs")
        os_archs = parse_os_archs(raw_os_archs, field_name=f"{section}.os_archs") if raw_os_archs is not None else None
        raw_command = data.get("command")
        if isinstance(raw_command, str):
            raise TypeError(f"{section}.command must be a list of arguments")
        command = normalize_string_list(raw_command, field_name=f"{section}.command") if raw_command is not None else None
        environment: Dict[str, str] | None = None
        env_section = _mapping_section(data, "environment", section=section)
        if env_section is not None:
            environment = {str(key): str(value) for key, value in env_section.items()}
        return cls(
            main_pkg=main_pkg.strip() if isinstance(main_pkg, str) else None,
            os_archs=os_archs,
            command=command,
            environment=environment,
        )

    def merged_over(self, defaults: "BuildConfig") -> "BuildConfig":
        return BuildConfig(
            main_pkg=self.main_pkg if self.main_pkg is not None else defaults.main_pkg,
            os_archs=list(self.os_archs) if self.os_archs is not None else _copy_list(defaults.os_archs),
            command=list(self.command) if self.command is not None else _copy_list(defaults.command),
            environment=dict(self.environment) if self.environment is not None else _copy_dict(defaults.environment),
        )


@dataclass(slots=True)
class DisterConfig:
    type: str | None = None
    config: Dict[str, Any] | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, section: str) -> "DisterConfig":
        ensure_known_keys(data, {"type", "config"}, section=section)
        type_name = data.get("type")
        if type_name is not None and (not isinstance(type_name, str) or not type_name.strip()):
            raise ValueError(f"{section}.type must be a non-empty string")
        config = _mapping_section(data, "config", section=section)
        return cls(
            type=type_name.strip() if isinstance(type_name, str) else None,
            config=dict(config) if config is not None else None,
        )


@dataclass(slots=True)
class DistConfig:
    disters: Dict[str, DisterConfig] | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, section: str = "dist") -> "DistConfig":
        ensure_known_keys(data, {"disters"}, section=section)
        disters_section = _mapping_section(data, "disters", section=section)
        if disters_section is None:
            return cls()
        disters: Dict[str, DisterConfig] = {}
        for raw_id, raw_value in disters_section.items():
            dist_id = str(raw_id)
            if raw_value is None:
                raw_value = {}
            if not isinstance(raw_value, Mapping):
                raise TypeError(f"{section}.disters.{dist_id} must be a table/mapping")
            disters[dist_id] = DisterConfig.from_mapping(raw_value, section=f"{section}.disters.{dist_id}")
        return cls(disters=disters)

    def merged_over(self, defaults: "DistConfig") -> "DistConfig":
        if self.disters is None:
            return DistConfig(disters=dict(defaults.disters) if defaults.disters is not None else None)
        if defaults.disters is None:
            return DistConfig(disters=dict(self.disters))
        merged = dict(defaults.disters)
        merged.update(self.disters)
        return DistConfig(disters=merged)


@dataclass(slots=True)
class PublishConfig:
    group_id: str | None = None
    info: Dict[str, Dict[str, Any]] | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, section: str = "publish") -> "PublishConfig":
        ensure_known_keys(data, {"group_id", "info"}, section=section)
        group_id = data.get("group_id")
        if group_id is not None and not isinstance(group_id, str):
            raise TypeError(f"{section}.group_id must be a string")
        info_section = _mapping_section(data, "info", section=section)
        info: Dict[str, Dict[str, Any]] | None = None
        if info_section is not None:
            info = {}
            for raw_type, raw_value in info_section.items():
                if raw_value is None:
                    raw_value = {}
                if not isinstance(raw_value, Mapping):
                    raise TypeError(f"{section}.info.{raw_type} must be a table/mapping")
                info[str(raw_type)] = dict(raw_value)
        return cls(group_id=group_id, info=info)

    def merged_over(self, defaults: "PublishConfig") -> "PublishConfig":
        info: Dict[str, Dict[str, Any]] | None
        if self.info is None:
            info = _copy_dict(defaults.info)
        elif defaults.info is None:
            info = dict(self.info)
        else:
            info = dict(defaults.info)
            info.update(self.info)
        return PublishConfig(
            group_id=self.group_id if self.group_id is not None else defaults.group_id,
            info=info,
        )


@dataclass(slots=True)
class ProductConfig:
    build: BuildConfig = field(default_factory=BuildConfig)
    dist: DistConfig = field(default_factory=DistConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    dependencies: List[str] | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, section: str) -> "ProductConfig":
        ensure_known_keys(data, {"build", "dist", "publish", "dependencies"}, section=section)
        build = _mapping_section(data, "build", section=section)
        dist = _mapping_section(data, "dist", section=section)
        publish = _mapping_section(data, "publish", section=section)
        raw_dependencies = data.get("dependencies")
        dependencies: List[str] | None = None
        if raw_dependencies is not None:
            if isinstance(raw_dependencies, str):
                raise TypeError(f"{section}.dependencies must be a list of product IDs")
            dependencies = normalize_string_list(raw_dependencies, field_name=f"{section}.dependencies")
        return cls(
            build=BuildConfig.from_mapping(build, section=f"{section}.build") if build is not None else BuildConfig(),
            dist=DistConfig.from_mapping(dist, section=f"{section}.dist") if dist is not None else DistConfig(),
            publish=PublishConfig.from_mapping(publish, section=f"{section}.publish") if publish is not None else PublishConfig(),
            dependencies=dependencies,
        )

    def merged_over(self, defaults: "ProductConfig") -> "ProductConfig":
        """Return a copy where unset fields are inherited from *defaults*."""
        return ProductConfig(
            build=self.build.merged_over(defaults.build),
            dist=self.dist.merged_over(defaults.dist),
            publish=self.publish.merged_over(defaults.publish),
            dependencies=list(self.dependencies) if self.dependencies is not None else _copy_list(defaults.dependencies),
        )


@dataclass(slots=True)
class ExcludeConfig:
    names: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, section: str = "exclude") -> "ExcludeConfig":
        ensure_known_keys(data, {"names", "paths"}, section=section)
        return cls(
            names=normalize_string_list(data.get("names"), field_name=f"{section}.names"),
            paths=normalize_string_list(data.get("paths"), field_name=f"{section}.paths"),
        )


@dataclass(slots=True)
class ProjectConfig:
    products: Dict[str, ProductConfig] = field(default_factory=dict)
    product_defaults: ProductConfig = field(default_factory=ProductConfig)
    exclude: ExcludeConfig = field(default_factory=ExcludeConfig)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProjectConfig":
        try:
            return cls._from_mapping(data)
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ConfigurationError):
                raise
            raise ConfigurationError(str(exc)) from exc

    @classmethod
    def _from_mapping(cls, data: Mapping[str, Any]) -> "ProjectConfig":
        ensure_known_keys(data, {"products", "product_defaults", "exclude"}, section="project configuration")
        products_section = _mapping_section(data, "products", section="project") or {}
        products: Dict[str, ProductConfig] = {}
        for raw_id, raw_value in products_section.items():
            product_id = str(raw_id).strip()
            if not product_id:
                raise ValueError("Product IDs cannot be empty")
            if product_id in products:
                raise ValueError(f"Duplicate product ID '{product_id}'")
            if raw_value is None:
                raw_value = {}
            if not isinstance(raw_value, Mapping):
                raise TypeError(f"products.{product_id} must be a table/mapping")
            products[product_id] = ProductConfig.from_mapping(raw_value, section=f"products.{product_id}")

        defaults_section = _mapping_section(data, "product_defaults", section="project")
        exclude_section = _mapping_section(data, "exclude", section="project")
        return cls(
            products=products,
            product_defaults=(
                ProductConfig.from_mapping(defaults_section, section="product_defaults")
                if defaults_section is not None
                else ProductConfig()
            ),
            exclude=ExcludeConfig.from_mapping(exclude_section) if exclude_section is not None else ExcludeConfig(),
        )

    def with_products(self, products: Mapping[str, ProductConfig]) -> "ProjectConfig":
        return replace(self, products=dict(products))


def load_project_config(path: Path) -> ProjectConfig:
    """Load a :class:`ProjectConfig` from a TOML, JSON or YAML file."""
    try:
        data = load_config_file(path)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{path}: {exc}") from exc
    return ProjectConfig.from_mapping(data)


def find_project_config(root: Path) -> Path | None:
    """Locate ``dist.toml``/``dist.yaml``/``dist.yml``/``dist.json`` in *root*."""
    try:
        return find_config_file(root, CONFIG_FILE_STEM)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def _copy_list(value: Sequence[Any] | None) -> List[Any] | None:
    return list(value) if value is not None else None


def _copy_dict(value: Mapping[str, Any] | None) -> Dict[str, Any] | None:
    return dict(value) if value is not None else None


__all__ = [
    "BuildConfig",
    "CONFIG_FILE_STEM",
    "DistConfig",
    "DisterConfig",
    "ExcludeConfig",
    "ProductConfig",
    "ProjectConfig",
    "PublishConfig",
    "find_project_config",
    "load_project_config",
]
