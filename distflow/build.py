"""Build stage: run each product's external build command per OS/arch."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, TextIO, Tuple

from core.command_runner import CommandError, CommandRunner
from core.console import Console
from core.template import TemplateError, TemplateResolver

from .errors import DistExecutionError
from .osarch import OSArch
from .params import ProductID, ProjectParam
from .paths import build_output_path

BUILD_PLACEHOLDERS = ("product", "version", "os", "arch", "main_pkg", "output", "output_dir", "root")


@dataclass(frozen=True, slots=True)
class BuildStep:
    product_id: ProductID
    os_arch: OSArch
    output: Path
    command: Tuple[str, ...]
    environment: Mapping[str, str] = field(default_factory=dict)


def _build_context(project: ProjectParam, product_id: ProductID, os_arch: OSArch, output: Path) -> Dict[str, str]:
    product = project.product(product_id)
    return {
        "product": product_id,
        "version": project.version,
        "os": os_arch.os,
        "arch": os_arch.arch,
        "main_pkg": product.build.main_pkg,
        "output": str(output),
        "output_dir": str(output.parent),
        "root": str(project.root),
    }


def build_order(project: ProjectParam, product_ids: Iterable[ProductID]) -> Tuple[ProductID, ...]:
    """Return *product_ids* plus their transitive dependencies, dependencies first."""
    wanted: set[ProductID] = set()
    for product_id in product_ids:
        wanted.add(product_id)
        wanted.update(project.dependencies_of(product_id))
    return project.graph.topological_order(wanted)


def plan_build(project: ProjectParam, product_ids: Iterable[ProductID], *, rebuild: bool) -> List[BuildStep]:
    """Return the build steps needed before the given products can be dist'ed.

    Outputs that already exist are skipped unless *rebuild* is set. A missing
    output without a configured build command is an error.
    """
    steps: List[BuildStep] = []
    for product_id in build_order(project, product_ids):
        product = project.product(product_id)
        for os_arch in product.build.os_archs:
            output = build_output_path(project.root, product_id, project.version, os_arch)
            if output.is_file() and not rebuild:
                continue
            if not product.build.command:
                raise DistExecutionError(
                    product_id,
                    None,
                    str(os_arch),
                    f"build output '{output}' does not exist and no build.command is configured",
                )
            resolver = TemplateResolver(_build_context(project, product_id, os_arch, output))
            try:
                command = tuple(resolver.resolve_command(product.build.command))
                environment = {key: str(resolver.resolve(value)) for key, value in product.build.environment.items()}
            except TemplateError as exc:
                raise DistExecutionError(product_id, None, str(os_arch), str(exc)) from exc
            environment.setdefault("DISTFLOW_OS", os_arch.os)
            environment.setdefault("DISTFLOW_ARCH", os_arch.arch)
            environment.setdefault("DISTFLOW_OUTPUT", str(output))
            steps.append(
                BuildStep(
                    product_id=product_id,
                    os_arch=os_arch,
                    output=output,
                    command=command,
                    environment=environment,
                )
            )
    return steps


def run_build(
    project: ProjectParam,
    product_ids: Iterable[ProductID],
    *,
    rebuild: bool,
    runner: CommandRunner,
    out: TextIO,
    console: Console,
) -> List[BuildStep]:
    """Execute :func:`plan_build`; stops at the first failing step."""
    steps = plan_build(project, product_ids, rebuild=rebuild)
    for step in steps:
        console.debug(f"Running {runner.format_command(step.command)}")
        step.output.parent.mkdir(parents=True, exist_ok=True)
        try:
            runner.run(
                step.command,
                cwd=project.root,
                env=step.environment,
                note=f"build {step.product_id} {step.os_arch}",
            )
        except (CommandError, OSError) as exc:
            raise DistExecutionError(step.product_id, None, str(step.os_arch), f"build failed: {exc}") from exc
        if not step.output.is_file():
            raise DistExecutionError(
                step.product_id,
                None,
                str(step.os_arch),
                f"build command did not produce '{step.output}'",
            )
        print(f"Finished building {step.product_id} for {step.os_arch} ({step.output})", file=out)
    return steps


__all__ = ["BUILD_PLACEHOLDERS", "BuildStep", "build_order", "plan_build", "run_build"]
