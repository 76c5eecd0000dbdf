"""Dist pipeline: run every selected dister against its product's build outputs."""
from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, TextIO
import shutil

from core.command_runner import CommandRunner, SubprocessCommandRunner
from core.console import Console, quiet_console

from .build import run_build
from .disters import DistRequest
from .errors import ConfigurationError, DistExecutionError, DistflowError
from .params import DistID, DistParam, ProductDistID, ProductID, ProductTaskOutputInfo, ProjectInfo, ProjectParam
from .paths import build_output_path, dist_output_dir, product_dist_artifacts
from .selection import resolve_selection


def check_project_info(project_info: ProjectInfo, project: ProjectParam) -> None:
    if project_info.root != project.root or project_info.version != project.version:
        raise ConfigurationError(
            f"Project info ({project_info.root}, {project_info.version}) does not match the resolved "
            f"project ({project.root}, {project.version})"
        )


def _run_dister(request: DistRequest, dist: DistParam) -> List[Path]:
    type_name = dist.type_name
    try:
        produced = dist.dister.run(request)
    except DistflowError:
        raise
    except Exception as exc:
        raise DistExecutionError(
            request.product_id, request.dist_id, str(request.os_arch), f"{type_name} dister failed: {exc}"
        ) from exc

    produced_paths = [Path(path) for path in produced or []]
    if produced_paths != [request.artifact_path]:
        listed = ", ".join(str(path) for path in produced_paths) or "<nothing>"
        raise DistExecutionError(
            request.product_id,
            request.dist_id,
            str(request.os_arch),
            f"internal error: {type_name} dister returned {listed}, expected {request.artifact_path}",
        )
    if not request.artifact_path.is_file():
        raise DistExecutionError(
            request.product_id,
            request.dist_id,
            str(request.os_arch),
            f"{type_name} dister did not create '{request.artifact_path}'",
        )
    return produced_paths


def dist_product(
    project: ProjectParam,
    product_id: ProductID,
    dist_ids: Iterable[DistID],
    out: TextIO,
    *,
    runner: CommandRunner,
    console: Console,
) -> ProductTaskOutputInfo:
    """Run the selected dists of one product and return its artifacts."""

    product = project.product(product_id)
    expected = product_dist_artifacts(project, product_id, dist_ids)
    for dist_id, artifact_paths in expected.items():
        dist = product.dist(dist_id)
        output_dir = dist_output_dir(project.root, product_id, project.version, dist_id)
        if output_dir.exists():
            shutil.rmtree(output_dir)
        output_dir.mkdir(parents=True)

        for os_arch, artifact_path in zip(dist.os_archs, artifact_paths):
            console.debug(f"Running {dist.type_name} dister for {product_id}.{dist_id} ({os_arch})")
            request = DistRequest(
                project_root=project.root,
                product_id=product_id,
                version=project.version,
                dist_id=dist_id,
                os_arch=os_arch,
                build_output=build_output_path(project.root, product_id, project.version, os_arch),
                artifact_path=artifact_path,
                runner=runner,
                console=console,
            )
            _run_dister(request, dist)
        print(f"Finished creating {dist_id} distribution for {product_id}", file=out, flush=True)

    return ProductTaskOutputInfo(
        product_id=product_id,
        version=project.version,
        artifacts=MappingProxyType(dict(expected)),
        group_id=product.publish.group_id,
    )


def run_dist(
    project_info: ProjectInfo,
    project: ProjectParam,
    selectors: Iterable[str | ProductDistID] | None,
    rebuild: bool,
    out: TextIO,
    *,
    runner: CommandRunner | None = None,
    console: Console | None = None,
) -> Dict[ProductID, ProductTaskOutputInfo]:
    """Build and dist the selected products, failing fast on the first error.

    Returns the artifacts of every dist'ed product; the list is recomputed on
    every call rather than read back from disk.
    """

    check_project_info(project_info, project)
    selection = resolve_selection(project, selectors)
    runner = runner or SubprocessCommandRunner()
    console = console or quiet_console()

    run_build(
        project,
        selection.product_ids(),
        rebuild=rebuild,
        runner=runner,
        out=out,
        console=console,
    )

    outputs: Dict[ProductID, ProductTaskOutputInfo] = {}
    for product_id in selection:
        outputs[product_id] = dist_product(
            project,
            product_id,
            selection.dist_ids(product_id),
            out,
            runner=runner,
            console=console,
        )
    return outputs


__all__ = ["check_project_info", "dist_product", "run_dist"]
