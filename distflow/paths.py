"""Deterministic output paths for build outputs and dist artifacts.

Layout under the project root::

    out/build/<product>/<version>/<os>-<arch>/<product>[.exe]
    out/dist/<product>/<version>/<dist-id>/<product>-<version>-<os>-<arch>.<ext>

Every function here is pure: it only looks at its arguments.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Mapping, Tuple
import posixpath

from .errors import ArtifactPathCollisionError, ConfigurationError
from .osarch import OSArch
from .params import DistID, ProductID, ProjectParam

OUTPUT_DIR = "out"
BUILD_DIR = "build"
DIST_DIR = "dist"


def build_output_dir(root: Path, product_id: ProductID, version: str, os_arch: OSArch) -> Path:
    return root / OUTPUT_DIR / BUILD_DIR / product_id / version / str(os_arch)


def build_output_path(root: Path, product_id: ProductID, version: str, os_arch: OSArch) -> Path:
    filename = f"{product_id}{os_arch.executable_suffix}"
    return build_output_dir(root, product_id, version, os_arch) / filename


def dist_output_dir(root: Path, product_id: ProductID, version: str, dist_id: DistID) -> Path:
    return root / OUTPUT_DIR / DIST_DIR / product_id / version / dist_id


def artifact_name(product_id: ProductID, version: str, os_arch: OSArch, extension: str) -> str:
    return f"{product_id}-{version}-{os_arch.os}-{os_arch.arch}.{extension}"


def dist_artifact_path(
    root: Path,
    product_id: ProductID,
    version: str,
    dist_id: DistID,
    os_arch: OSArch,
    extension: str,
) -> Path:
    return dist_output_dir(root, product_id, version, dist_id) / artifact_name(product_id, version, os_arch, extension)


def product_build_outputs(project: ProjectParam, product_id: ProductID) -> Dict[OSArch, Path]:
    product = project.product(product_id)
    return {
        os_arch: build_output_path(project.root, product_id, project.version, os_arch)
        for os_arch in product.build.os_archs
    }


def product_dist_artifacts(
    project: ProjectParam,
    product_id: ProductID,
    dist_ids: Iterable[DistID] | None = None,
) -> Dict[DistID, Tuple[Path, ...]]:
    """Return ``dist-id -> artifact paths`` for a product, in configured order."""

    product = project.product(product_id)
    selected = product.dist_ids() if dist_ids is None else tuple(dist_ids)
    artifacts: Dict[DistID, Tuple[Path, ...]] = {}
    for dist_id in selected:
        dist = product.dist(dist_id)
        artifacts[dist_id] = tuple(
            dist_artifact_path(project.root, product_id, project.version, dist_id, os_arch, dist.extension)
            for os_arch in dist.os_archs
        )
    return artifacts


def _collision_key(path: Path) -> str:
    return posixpath.normpath(path.as_posix()).casefold()


def validate_product_id(product_id: ProductID) -> None:
    """Reject product IDs that escape the output tree or cannot be selected."""
    if not product_id or not product_id.strip():
        raise ConfigurationError("Product IDs must not be empty")
    if product_id in {".", ".."} or "/" in product_id or "\\" in product_id:
        raise ConfigurationError(f"Product ID '{product_id}' must not contain path separators")
    if "." in product_id:
        raise ConfigurationError(
            f"Product ID '{product_id}' must not contain '.' (it separates product and dist ID in selectors)"
        )


def validate_dist_id(product_id: ProductID, dist_id: DistID) -> None:
    if not dist_id or not dist_id.strip():
        raise ConfigurationError(f"Product '{product_id}' has an empty dist ID")
    if dist_id in {".", ".."} or "/" in dist_id or "\\" in dist_id:
        raise ConfigurationError(
            f"Product '{product_id}' dist ID '{dist_id}' must not contain path separators"
        )


def validate_artifact_paths(
    root: Path,
    version: str,
    plan: Mapping[ProductID, Mapping[DistID, Tuple[Iterable[OSArch], str]]],
) -> None:
    """Reject configurations where two artifact identifiers share an output path.

    *plan* maps each product to ``dist-id -> (os_archs, extension)``. Paths
    are compared case-insensitively so that the layout stays collision-free
    on case-insensitive file systems as well.
    """

    seen: Dict[str, str] = {}
    for product_id in sorted(plan):
        for dist_id, (os_archs, extension) in plan[product_id].items():
            validate_dist_id(product_id, dist_id)
            for os_arch in os_archs:
                path = dist_artifact_path(root, product_id, version, dist_id, os_arch, extension)
                identifier = f"{product_id}.{dist_id} ({os_arch})"
                key = _collision_key(path)
                existing = seen.get(key)
                if existing is not None:
                    raise ArtifactPathCollisionError(str(path), existing, identifier)
                seen[key] = identifier


__all__ = [
    "artifact_name",
    "build_output_dir",
    "build_output_path",
    "dist_artifact_path",
    "dist_output_dir",
    "product_build_outputs",
    "product_dist_artifacts",
    "validate_artifact_paths",
    "validate_dist_id",
    "validate_product_id",
]
