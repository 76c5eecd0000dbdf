"""Command line interface for distflow."""
from __future__ import annotations

from argparse import REMAINDER, ArgumentParser, Namespace
from pathlib import Path
from typing import Dict, Iterable, List, Tuple
import os
import sys

from core.console import Console

from .config import ProjectConfig, find_project_config, load_project_config
from .dist import run_dist
from .errors import ConfigurationError, DistflowError, PublishFailures
from .params import ProjectInfo, ProjectParam
from .paths import product_dist_artifacts
from .publish import run_publish
from .registry import default_dister_registry, default_publisher_registry
from .resolver import resolve
from .selection import resolve_selection

VERSION_ENV_VAR = "DISTFLOW_VERSION"


def _split_publish_arguments(values: Iterable[str]) -> Tuple[List[str], Dict[str, str], bool]:
    """Split the arguments after the publisher type into selectors, flags and dry-run.

    Publisher flags are written ``--name value`` or ``--name=value``; a flag
    without a value is ``true``.
    """

    selectors: List[str] = []
    flags: Dict[str, str] = {}
    dry_run = False
    pending: str | None = None
    for raw in values:
        if pending is not None and not raw.startswith("--"):
            flags[pending] = raw
            pending = None
            continue
        if pending is not None:
            flags[pending] = "true"
            pending = None
        if raw in {"-n", "--dry-run"}:
            dry_run = True
            continue
        if not raw.startswith("-"):
            selectors.append(raw)
            continue
        if not raw.startswith("--") or raw == "--":
            raise ConfigurationError(f"Unexpected argument '{raw}'")
        name, sep, value = raw[2:].partition("=")
        if not name:
            raise ConfigurationError(f"Unexpected argument '{raw}'")
        if sep:
            flags[name] = value
        else:
            pending = name
    if pending is not None:
        flags[pending] = "true"
    return selectors, flags, dry_run


def _build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="distflow", description="Build, dist and publish multi-product source trees")
    parser.add_argument("--root", default=".", help="Project root directory (default: current directory)")
    parser.add_argument("-c", "--config", help="Path to the configuration file (default: dist.{toml,yaml,yml,json} in the root)")
    parser.add_argument(
        "--project-version",
        dest="project_version",
        help=f"Project version (default: ${VERSION_ENV_VAR})",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=sorted(Console.LEVELS, key=Console.LEVELS.__getitem__),
        help="Diagnostic output level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    dist_parser = subparsers.add_parser("dist", help="Build and create distributions")
    dist_parser.add_argument("selectors", nargs="*", metavar="PRODUCT[.DIST]", help="Products or dists to process; omit for all")
    dist_parser.add_argument("--rebuild", action="store_true", help="Rebuild outputs even when they already exist")

    publish_parser = subparsers.add_parser(
        "publish",
        help="Publish existing distributions",
        description=(
            "Arguments after TYPE are selectors (PRODUCT[.DIST]), -n/--dry-run, "
            "and publisher flags written --<flag> VALUE or --<flag>=VALUE."
        ),
    )
    publish_parser.add_argument("type", help="Publisher type")
    publish_parser.add_argument("arguments", nargs=REMAINDER, metavar="ARG", help="Selectors, --dry-run and publisher flags")

    artifacts_parser = subparsers.add_parser("artifacts", help="Print the computed artifact paths")
    artifacts_parser.add_argument("selectors", nargs="*", metavar="PRODUCT[.DIST]", help="Products or dists to list; omit for all")

    subparsers.add_parser("products", help="List product IDs in dependency order")
    subparsers.add_parser("validate", help="Resolve the configuration and report errors")
    return parser


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    return _build_parser().parse_args(list(argv))


def _project_version(args: Namespace) -> str:
    version = args.project_version or os.environ.get(VERSION_ENV_VAR, "")
    if not version.strip():
        raise ConfigurationError(f"No project version given (use --project-version or set {VERSION_ENV_VAR})")
    return version


def _load_config(args: Namespace, root: Path) -> ProjectConfig:
    if args.config:
        path = Path(args.config)
        if not path.is_absolute():
            path = root / path
        if not path.is_file():
            raise ConfigurationError(f"Configuration file '{path}' does not exist")
        return load_project_config(path)
    found = find_project_config(root)
    if found is None:
        return ProjectConfig.from_mapping({})
    return load_project_config(found)


def _load_project(args: Namespace) -> Tuple[ProjectInfo, ProjectParam]:
    info = ProjectInfo.create(Path(args.root), _project_version(args))
    config = _load_config(args, info.root)
    project = resolve(config, info.root, info.version, default_dister_registry(), default_publisher_registry())
    return info, project


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    console = Console(args.log_level)

    try:
        info, project = _load_project(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        return 2

    try:
        if args.command == "dist":
            return _handle_dist(args, info, project, console)
        if args.command == "publish":
            return _handle_publish(args, info, project, console)
        if args.command == "artifacts":
            return _handle_artifacts(args, project)
        if args.command == "products":
            return _handle_products(project)
        if args.command == "validate":
            return _handle_validate(project)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        return 2
    except DistflowError as exc:
        print(f"Error: {exc}")
        return 1
    raise ValueError(f"Unknown command: {args.command}")


def _handle_dist(args: Namespace, info: ProjectInfo, project: ProjectParam, console: Console) -> int:
    outputs = run_dist(info, project, args.selectors, args.rebuild, sys.stdout, console=console)
    for output in outputs.values():
        console.info(output.render())
    return 0


def _handle_publish(
    args: Namespace,
    info: ProjectInfo,
    project: ProjectParam,
    console: Console,
) -> int:
    publisher = default_publisher_registry().get(args.type)
    selectors, flag_values, dry_run = _split_publish_arguments(args.arguments)
    try:
        run_publish(info, project, selectors, publisher, flag_values, dry_run, sys.stdout, console=console)
    except PublishFailures as exc:
        print(f"Error: {exc}")
        return 1
    return 0


def _handle_artifacts(args: Namespace, project: ProjectParam) -> int:
    selection = resolve_selection(project, args.selectors)
    for product_id in selection:
        artifacts = product_dist_artifacts(project, product_id, selection.dist_ids(product_id))
        for dist_id in sorted(artifacts):
            for path in artifacts[dist_id]:
                print(path)
    return 0


def _handle_products(project: ProjectParam) -> int:
    for product_id in project.topological_order():
        dependencies = project.product(product_id).dependencies
        if dependencies:
            print(f"{product_id} (depends on {', '.join(dependencies)})")
        else:
            print(product_id)
    return 0


def _handle_validate(project: ProjectParam) -> int:
    dist_count = sum(len(product.dists) for product in project.products.values())
    print(f"Configuration OK: {len(project.products)} product(s), {dist_count} dist(s)")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
