"""Product dependency graph."""
from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple
import heapq

from .errors import ConfigurationError, DependencyCycleError


class _Color(Enum):
    WHITE = 0
    GRAY = 1
    BLACK = 2


class ProductGraph:
    """Adjacency map ``product -> dependencies`` validated to be acyclic.

    Construction raises :class:`DependencyCycleError` for cycles (including a
    product depending on itself) and :class:`ConfigurationError` for edges to
    unknown products.
    """

    def __init__(self, edges: Mapping[str, Sequence[str]]) -> None:
        adjacency: Dict[str, Tuple[str, ...]] = {}
        for product_id, dependencies in edges.items():
            ordered: List[str] = []
            for dependency in dependencies:
                if dependency not in edges:
                    available = ", ".join(sorted(edges)) or "<none>"
                    raise ConfigurationError(
                        f"Product '{product_id}' depends on unknown product '{dependency}'. "
                        f"Available products: {available}"
                    )
                if dependency not in ordered:
                    ordered.append(dependency)
            adjacency[product_id] = tuple(ordered)
        self._edges: Mapping[str, Tuple[str, ...]] = MappingProxyType(adjacency)
        self._check_acyclic()

    @property
    def edges(self) -> Mapping[str, Tuple[str, ...]]:
        return self._edges

    def _check_acyclic(self) -> None:
        colors = {node: _Color.WHITE for node in self._edges}

        for start in sorted(self._edges):
            if colors[start] is not _Color.WHITE:
                continue
            colors[start] = _Color.GRAY
            path: List[str] = [start]
            stack: List[Iterator[str]] = [iter(self._edges[start])]
            while stack:
                for dependency in stack[-1]:
                    if colors[dependency] is _Color.GRAY:
                        cycle_start = path.index(dependency)
                        raise DependencyCycleError([*path[cycle_start:], dependency])
                    if colors[dependency] is _Color.WHITE:
                        colors[dependency] = _Color.GRAY
                        path.append(dependency)
                        stack.append(iter(self._edges[dependency]))
                        break
                else:
                    stack.pop()
                    colors[path.pop()] = _Color.BLACK

    def dependencies_of(self, product_id: str) -> Tuple[str, ...]:
        """Return the transitive dependencies of *product_id*, dependencies first."""
        if product_id not in self._edges:
            raise ConfigurationError(f"Unknown product '{product_id}'")

        order: List[str] = []
        seen: set[str] = set()
        # pending[i] owns stack[i + 1]
        pending: List[str] = []
        stack: List[Iterator[str]] = [iter(self._edges[product_id])]
        while stack:
            for dependency in stack[-1]:
                if dependency not in seen:
                    seen.add(dependency)
                    pending.append(dependency)
                    stack.append(iter(self._edges[dependency]))
                    break
            else:
                stack.pop()
                if pending:
                    order.append(pending.pop())
        return tuple(order)

    def topological_order(self, subset: Iterable[str] | None = None) -> Tuple[str, ...]:
        """Return products with every dependency before its dependents.

        Ties are broken by product ID. When *subset* is given only those
        products are returned, still in dependency order.
        """
        indegree = {node: len(deps) for node, deps in self._edges.items()}
        dependents: Dict[str, List[str]] = {node: [] for node in self._edges}
        for node, deps in self._edges.items():
            for dependency in deps:
                dependents[dependency].append(node)

        ready = [node for node, degree in indegree.items() if degree == 0]
        heapq.heapify(ready)
        order: List[str] = []
        while ready:
            node = heapq.heappop(ready)
            order.append(node)
            for dependent in dependents[node]:
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    heapq.heappush(ready, dependent)

        if subset is None:
            return tuple(order)
        wanted = set(subset)
        unknown = sorted(wanted - set(self._edges))
        if unknown:
            raise ConfigurationError(f"Unknown product(s): {', '.join(unknown)}")
        return tuple(node for node in order if node in wanted)


__all__ = ["ProductGraph"]
