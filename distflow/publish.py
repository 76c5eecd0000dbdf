"""Publish pipeline: hand each selected product's artifacts to a publisher."""
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, TextIO, Tuple

from core.console import Console, quiet_console

from .dist import check_project_info
from .errors import ConfigurationError, DistflowError, MissingArtifactError, PublishExecutionError, PublishFailures
from .params import ProductDistID, ProductID, ProductTaskOutputInfo, ProjectInfo, ProjectParam
from .paths import product_dist_artifacts
from .publishers import Publisher
from .registry import resolve_flag_values
from .selection import resolve_selection


def collect_output_info(
    project: ProjectParam,
    product_id: ProductID,
    dist_ids: Iterable[str],
) -> ProductTaskOutputInfo:
    """Return the output info of an already dist'ed product.

    Raises :class:`MissingArtifactError` for the first expected artifact that
    is not on disk.
    """

    artifacts = product_dist_artifacts(project, product_id, dist_ids)
    for dist_id, paths in artifacts.items():
        for path in paths:
            if not path.is_file():
                raise MissingArtifactError(product_id, dist_id, str(path))
    return ProductTaskOutputInfo(
        product_id=product_id,
        version=project.version,
        artifacts=MappingProxyType(dict(artifacts)),
        group_id=project.product(product_id).publish.group_id,
    )


def _publish_product(
    project: ProjectParam,
    product_id: ProductID,
    dist_ids: Tuple[str, ...],
    publisher: Publisher,
    flag_values: Mapping[str, Any],
    dry_run: bool,
    out: TextIO,
) -> ProductTaskOutputInfo:
    type_name = publisher.type_name()
    output_info = collect_output_info(project, product_id, dist_ids)
    config = dict(project.product(product_id).publish.config_for(type_name))

    print(output_info.render(f"Publishing {product_id} with {type_name} publisher"), file=out, flush=True)
    try:
        publisher.run_publish(output_info, config, flag_values, dry_run, out)
    except DistflowError:
        raise
    except Exception as exc:
        raise PublishExecutionError(product_id, type_name, str(exc)) from exc
    return output_info


def run_publish(
    project_info: ProjectInfo,
    project: ProjectParam,
    selectors: Iterable[str | ProductDistID] | None,
    publisher: Publisher,
    flag_values: Mapping[str, Any] | None,
    dry_run: bool,
    out: TextIO,
    *,
    console: Console | None = None,
) -> Dict[ProductID, ProductTaskOutputInfo]:
    """Publish the selected products one at a time.

    A failing product does not stop the others; every failure is collected
    and raised together as :class:`PublishFailures` once all products were
    attempted. Dependencies of a selected product are never published
    implicitly.
    """

    check_project_info(project_info, project)
    selection = resolve_selection(project, selectors)
    console = console or quiet_console()
    type_name = publisher.type_name()
    try:
        flags = resolve_flag_values(publisher.flags(), flag_values)
    except ValueError as exc:
        raise ConfigurationError(f"publisher '{type_name}': {exc}") from exc

    published: Dict[ProductID, ProductTaskOutputInfo] = {}
    failures: List[Tuple[ProductID, Exception]] = []
    for product_id in selection:
        console.debug(f"Publishing {product_id} ({', '.join(selection.dist_ids(product_id))})")
        try:
            published[product_id] = _publish_product(
                project,
                product_id,
                selection.dist_ids(product_id),
                publisher,
                flags,
                dry_run,
                out,
            )
        except DistflowError as exc:
            console.error(str(exc))
            failures.append((product_id, exc))

    if failures:
        raise PublishFailures(failures)
    return published


__all__ = ["collect_output_info", "run_publish"]
