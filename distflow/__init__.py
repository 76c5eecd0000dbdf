"""Declarative build, dist and publish pipeline for multi-product source trees."""
from __future__ import annotations

from .config import ProjectConfig, load_project_config
from .dist import run_dist
from .errors import (
    ArtifactPathCollisionError,
    ConfigurationError,
    DependencyCycleError,
    DistExecutionError,
    DistflowError,
    MissingArtifactError,
    PublishExecutionError,
    PublishFailures,
    StrategyValidationError,
    UnknownStrategyError,
)
from .osarch import OSArch
from .params import ProductDistID, ProductTaskOutputInfo, ProjectInfo, ProjectParam
from .publish import run_publish
from .registry import DisterRegistry, PublisherRegistry, default_dister_registry, default_publisher_registry
from .resolver import resolve

__all__ = [
    "ArtifactPathCollisionError",
    "ConfigurationError",
    "DependencyCycleError",
    "DistExecutionError",
    "DisterRegistry",
    "DistflowError",
    "MissingArtifactError",
    "OSArch",
    "ProductDistID",
    "ProductTaskOutputInfo",
    "ProjectConfig",
    "ProjectInfo",
    "ProjectParam",
    "PublishExecutionError",
    "PublishFailures",
    "PublisherRegistry",
    "StrategyValidationError",
    "UnknownStrategyError",
    "default_dister_registry",
    "default_publisher_registry",
    "load_project_config",
    "resolve",
    "run_dist",
    "run_publish",
]
