"""Compile a resolved hierarchical table into a nested term dictionary.

The tree is assembled bottom-up from an explicit node registry keyed by the
case-folded ancestor path, one pass per depth, deepest first.
"""

from typing import Any, Sequence

from ontotag.models import DictionaryEntry
from ontotag.resolve import EMPTY, validate_resolved

Tree = dict[str, dict]
NodeKey = tuple[str, ...]


def _key(path: Sequence[str]) -> NodeKey:
    return tuple(term.casefold() for term in path)


def create_dictionary(
    resolved_table: Sequence[Sequence[Any]],
    return_dictionary: bool = True,
) -> Tree | list[DictionaryEntry]:
    """Build the ontology tree from a fully-resolved table.

    Args:
        resolved_table: Output of fill_rows()
        return_dictionary: Return the nested tree (True) or the flat list of
            DictionaryEntry records (False)

    Returns:
        Nested mapping {term: {child: {...}}} with {} for leaves, or the
        entries ordered by depth then declaration order

    Raises:
        MalformedTableError: If the table is not fully resolved
    """
    rows = validate_resolved(resolved_table)
    paths = [tuple(value for value in row if value != EMPTY) for row in rows]
    max_depth = max(len(path) for path in paths)

    # First declaration fixes a node's position; its label is the smallest
    # spelling seen, so case variants give the same keys in any row order
    labels: dict[NodeKey, str] = {}
    first_seen: dict[NodeKey, int] = {}
    for i, path in enumerate(paths):
        for depth in range(1, len(path) + 1):
            key = _key(path[:depth])
            term = path[depth - 1]
            if key not in labels:
                labels[key] = term
                first_seen[key] = i
            elif term < labels[key]:
                labels[key] = term

    registry: dict[NodeKey, DictionaryEntry] = {}
    for depth in range(max_depth, 0, -1):
        for path in paths:
            if len(path) < depth:
                continue
            key = _key(path[:depth])
            entry = registry.get(key)
            if entry is None:
                entry = DictionaryEntry(
                    depth=depth,
                    term=labels[key],
                    path=[labels[key[:d]] for d in range(1, depth + 1)],
                    children=[],
                )
                registry[key] = entry
            if len(path) > depth:
                child = registry[_key(path[: depth + 1])]
                if child.term not in entry.children:
                    entry.children.append(child.term)

    ordered = sorted(registry, key=lambda k: (len(k), first_seen[k]))
    entries = [registry[key] for key in ordered]

    if not return_dictionary:
        return entries
    return build_tree(entries)


def build_tree(entries: Sequence[DictionaryEntry]) -> Tree:
    """Assemble the nested tree from flat dictionary entries.

    Children without an entry of their own become leaves, so an edited
    entry list only needs records for nodes that have children.
    """
    nodes: dict[NodeKey, Tree] = {}
    for entry in sorted(entries, key=lambda e: -e.depth):
        key = _key(entry.path)
        nodes[key] = {
            child: nodes.get(key + (child.casefold(),), {})
            for child in entry.children
        }

    return {entry.term: nodes[_key(entry.path)] for entry in entries if entry.depth == 1}


def tree_paths(tree: Tree) -> list[list[str]]:
    """List every root-to-node path of a tree in declaration order."""
    paths = []
    # Push in reverse so the first-declared term is visited first
    stack: list[tuple[list[str], Tree]] = [([term], tree[term]) for term in reversed(list(tree))]
    while stack:
        path, node = stack.pop()
        paths.append(path)
        for term in reversed(list(node or {})):
            stack.append((path + [term], node[term]))
    return paths
