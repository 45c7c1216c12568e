"""Project hierarchical tag results onto flat per-level tag vectors."""

from collections import Counter
from typing import Sequence

import pandas as pd

# Sentinel for "every level with enough distinct terms"
ALL_LEVELS = None

DEFAULT_SEPARATOR = "; "


def _as_paths(result) -> list[list[str]]:
    """Normalize a tag result (None, a path or a list of paths) to a list of paths."""
    if not result:
        return []
    if isinstance(result[0], str):
        return [list(result)]
    return [list(path) for path in result if path]


def _term_at(paths: list[list[str]], depth: int, sep: str) -> str | None:
    terms: list[str] = []
    for path in paths:
        if len(path) >= depth and path[depth - 1] not in terms:
            terms.append(path[depth - 1])

    if not terms:
        return None
    return sep.join(terms)


def extract_levels(
    tag_results: Sequence,
    n_levels: int | Sequence[int] | None = ALL_LEVELS,
    min_count: int = 1,
    sep: str = DEFAULT_SEPARATOR,
) -> dict[int, list[str | None]]:
    """Extract the term at one or more depths for every document.

    Args:
        tag_results: Output of tag_strictly() for a sequence of documents
        n_levels: A depth (1 = top level), a sequence of depths, or
            ALL_LEVELS to keep every depth with at least min_count
            distinct terms
        min_count: Distinct-term threshold used with ALL_LEVELS
        sep: Joins distinct terms when a document has several paths that
            differ at a depth

    Returns:
        Mapping of depth -> list aligned with tag_results, None where the
        document is unmatched or its path is shallower than the depth

    Raises:
        ValueError: If a requested depth is below 1
    """
    all_paths = [_as_paths(result) for result in tag_results]

    if n_levels is ALL_LEVELS:
        max_depth = max((len(p) for paths in all_paths for p in paths), default=0)
        depths = list(range(1, max_depth + 1))
    elif isinstance(n_levels, int):
        depths = [n_levels]
    else:
        depths = list(n_levels)

    for depth in depths:
        if depth < 1:
            raise ValueError(f"Levels start at 1, got {depth}")

    levels = {depth: [_term_at(paths, depth, sep) for paths in all_paths] for depth in depths}

    if n_levels is ALL_LEVELS:
        levels = {
            depth: values
            for depth, values in levels.items()
            if len({v for v in values if v is not None}) >= min_count
        }

    return levels


def level_counts(levels: dict[int, list[str | None]]) -> dict[int, list[tuple[str, int]]]:
    """Count documents per term at each depth, most common first."""
    return {
        depth: Counter(v for v in values if v is not None).most_common()
        for depth, values in levels.items()
    }


def levels_to_frame(levels: dict[int, list[str | None]]) -> pd.DataFrame:
    """Arrange per-level vectors as columns level_1, level_2, ..."""
    return pd.DataFrame({f"level_{depth}": values for depth, values in sorted(levels.items())})
