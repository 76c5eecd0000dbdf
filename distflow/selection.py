"""Resolution of product/dist selectors into concrete (product, dist) pairs."""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Tuple

from .params import DistID, ProductDistID, ProductID, ProjectParam


@dataclass(frozen=True, slots=True)
class Selection:
    """Selected dist IDs per product, products in dependency order."""

    dists: Mapping[ProductID, Tuple[DistID, ...]]

    def __iter__(self) -> Iterator[ProductID]:
        return iter(self.dists)

    def __len__(self) -> int:
        return len(self.dists)

    def product_ids(self) -> Tuple[ProductID, ...]:
        return tuple(self.dists)

    def dist_ids(self, product_id: ProductID) -> Tuple[DistID, ...]:
        return self.dists.get(product_id, ())

    def contains(self, product_id: ProductID, dist_id: DistID | None = None) -> bool:
        if product_id not in self.dists:
            return False
        return dist_id is None or dist_id in self.dists[product_id]


def resolve_selection(
    project: ProjectParam,
    selectors: Iterable[str | ProductDistID] | None,
) -> Selection:
    """Resolve *selectors*; an empty selection means every product and every dist.

    Unknown products or dist IDs raise :class:`ConfigurationError`. Selecting a
    product never implicitly selects its dependencies.
    """

    parsed = [ProductDistID.parse(selector) for selector in (selectors or [])]
    requested: Dict[ProductID, List[DistID] | None] = {}

    if not parsed:
        for product_id, product in project.products.items():
            requested[product_id] = list(product.dist_ids())
    for selector in parsed:
        product = project.product(selector.product_id)
        if selector.dist_id is None:
            requested[product.id] = None
            continue
        product.dist(selector.dist_id)
        current = requested.get(product.id, [])
        if current is None:
            continue
        if selector.dist_id not in current:
            current.append(selector.dist_id)
        requested[product.id] = current

    ordered: Dict[ProductID, Tuple[DistID, ...]] = {}
    for product_id in project.graph.topological_order(requested):
        wanted = requested[product_id]
        configured = project.products[product_id].dist_ids()
        if wanted is None:
            ordered[product_id] = configured
        else:
            ordered[product_id] = tuple(dist_id for dist_id in configured if dist_id in wanted)
    return Selection(dists=MappingProxyType(ordered))


__all__ = ["Selection", "resolve_selection"]
