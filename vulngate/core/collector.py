import logging
from typing import FrozenSet, Iterable, Optional, Set

from vulngate.core.model import Coordinate, DependencyNode

DEFAULT_SCOPE = "compile"

# Each configured label admits every scope it implies (cumulative scopes).
CUMULATIVE_SCOPES = {
    "compile": {"compile", "provided", "system"},
    "runtime": {"compile", "runtime"},
    "compile+runtime": {"compile", "provided", "system", "runtime"},
    "runtime+system": {"compile", "runtime", "system"},
    "test": {"compile", "provided", "runtime", "system", "test"},
}


def parse_scopes(text: Optional[str]) -> Optional[FrozenSet[str]]:
    """Splits a comma-separated scope string. Blank input means no filter."""
    if text is None:
        return None
    scopes = frozenset(s.strip() for s in text.split(",") if s.strip())
    return scopes or None


def expand_scopes(scopes: Iterable[str]) -> FrozenSet[str]:
    admitted = set()
    for scope in scopes:
        admitted |= CUMULATIVE_SCOPES.get(scope, {scope})
    return frozenset(admitted)


def collect(root: DependencyNode,
            scopes: Optional[Iterable[str]] = None,
            transitive: bool = True) -> Set[Coordinate]:
    """
    Walks the tree below root and returns the deduplicated set of coordinates.

    The root itself is the project and is never part of the result. The scope
    filter is applied to each node on its own: a node that is filtered out is
    still descended into when transitive is set, so in-scope children of an
    out-of-scope parent are collected.
    """
    admitted = expand_scopes(scopes) if scopes is not None else None
    result = set()

    # Explicit stack, deep graphs must not hit the recursion limit
    stack = list(reversed(root.children or []))
    while stack:
        node = stack.pop()

        if admitted is None or (node.scope or DEFAULT_SCOPE) in admitted:
            result.add(node.coordinate)

        if transitive:
            stack.extend(reversed(node.children or []))

    logging.debug(f"Collected {len(result)} unique components (transitive={transitive}).")
    return result
