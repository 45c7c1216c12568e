"""Strict dictionary tagging of documents against a compiled ontology tree.

Matching walks the tree from the top-level terms. Within a matching branch
the children are searched in the same document for a more specific match; the
path ends at the deepest term that matched. Sibling ties resolve by declaration order
(the insertion order of the tree mapping), which makes the output
reproducible without any scoring.
"""

import re
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Mapping, Sequence

MATCH_MODES = ("substring", "word")

# Documents per task when tagging in worker processes
DEFAULT_CHUNK_SIZE = 256

TagPath = list[str]
TagResult = TagPath | list[TagPath] | None


class MalformedSchemeError(ValueError):
    """Raised when a tagging scheme is not a well-formed term tree."""


@dataclass(frozen=True)
class _Node:
    """Compiled, read-only tree node."""

    label: str
    forms: tuple[str, ...]  # Case-folded label and synonyms
    patterns: tuple[re.Pattern, ...] | None  # Set in "word" mode only
    children: tuple["_Node", ...]

    def matches(self, text: str) -> bool:
        if self.patterns is not None:
            return any(pattern.search(text) for pattern in self.patterns)
        return any(form in text for form in self.forms)


def validate_scheme(scheme) -> None:
    """Check that a scheme is a tree of term -> children mappings.

    Leaves may be an empty mapping or None.

    Raises:
        MalformedSchemeError: On non-mapping nodes, empty or non-string
            terms, duplicate sibling terms (case-insensitive) or a cycle
    """
    if not isinstance(scheme, Mapping):
        raise MalformedSchemeError(
            f"Scheme must be a mapping of term -> children, got {type(scheme).__name__}"
        )

    stack: list[tuple[Mapping, tuple[str, ...], tuple[int, ...]]] = [(scheme, (), ())]
    while stack:
        node, path, ancestors = stack.pop()
        if id(node) in ancestors:
            raise MalformedSchemeError(f"Scheme contains a cycle at {' > '.join(path)}")

        seen: dict[str, str] = {}
        for term, children in node.items():
            if not isinstance(term, str) or not term.strip():
                raise MalformedSchemeError(f"Invalid term {term!r} under {list(path)}")
            folded = term.strip().casefold()
            if folded in seen:
                raise MalformedSchemeError(
                    f"Duplicate terms {seen[folded]!r} and {term!r} under {list(path)}"
                )
            seen[folded] = term

            if children is None:
                continue
            if not isinstance(children, Mapping):
                raise MalformedSchemeError(
                    f"Children of {term!r} must be a mapping, got {type(children).__name__}"
                )
            stack.append((children, path + (term,), ancestors + (id(node),)))


def _match_forms(term: str, synonyms: Mapping[str, Sequence[str]]) -> tuple[str, ...]:
    forms = [term.strip().casefold()]
    for synonym in synonyms.get(term.strip().casefold(), []):
        form = synonym.strip().casefold()
        if form and form not in forms:
            forms.append(form)
    return tuple(forms)


def _compile(
    scheme: Mapping,
    synonyms: Mapping[str, Sequence[str]],
    match: str,
) -> tuple[_Node, ...]:
    nodes = []
    for term, children in scheme.items():
        forms = _match_forms(term, synonyms)
        patterns = None
        if match == "word":
            patterns = tuple(
                re.compile(r"(?<!\w)" + re.escape(form) + r"(?!\w)") for form in forms
            )
        nodes.append(
            _Node(
                label=term,
                forms=forms,
                patterns=patterns,
                children=_compile(children or {}, synonyms, match),
            )
        )
    return tuple(nodes)


def _branch(node: _Node, text: str, require_ancestors: bool) -> TagPath:
    """Deepest path through node, or [] if nothing in its subtree matches."""
    if require_ancestors and not node.matches(text):
        return []

    below = _deepest(node.children, text, require_ancestors)
    if below or node.matches(text):
        return [node.label] + below
    return []


def _deepest(nodes: tuple[_Node, ...], text: str, require_ancestors: bool) -> TagPath:
    """Deepest path among sibling nodes, earliest declared on ties."""
    best: TagPath = []
    for node in nodes:
        path = _branch(node, text, require_ancestors)
        if len(path) > len(best):
            best = path
    return best


def _tag_document(
    doc,
    roots: tuple[_Node, ...],
    allow_multiple: bool,
    require_ancestors: bool,
) -> TagResult:
    text = doc.casefold() if isinstance(doc, str) else ""

    paths = []
    for root in roots:
        path = _branch(root, text, require_ancestors)
        if path:
            paths.append(path)
            if not allow_multiple:
                break

    if not paths:
        return None
    if allow_multiple:
        return paths
    return paths[0]


def tag_strictly(
    docs: str | Sequence[str],
    scheme: Mapping,
    allow_multiple: bool = False,
    synonyms: Mapping[str, Sequence[str]] | None = None,
    match: str = "substring",
    require_ancestors: bool = False,
    workers: int = 1,
    verbose: bool = False,
) -> TagResult | list[TagResult]:
    """Tag documents with paths from an ontology tree.

    A branch matches when any term in it occurs in the document; a specific
    term implies its broader ancestors, so "integrated pest management" tags
    as ["Agricultural practices", "integrated pest management"].

    Args:
        docs: One document or a sequence of documents (lower-cased text)
        scheme: Nested term tree from create_dictionary()
        allow_multiple: Return one path per matching top-level branch instead
            of only the earliest declared one
        synonyms: Optional term -> alternative strings
        match: "substring" for plain containment, "word" to require word
            boundaries around each term
        require_ancestors: Only search a term's children when the term
            itself occurs in the document
        workers: Worker processes for tagging (1 = in-process)
        verbose: Print progress info

    Returns:
        For a single document: None, a path, or (allow_multiple) a list of
        paths. For a sequence: a list of those, aligned with the input.

    Raises:
        MalformedSchemeError: If the scheme is not a term tree
        ValueError: On an unknown match mode or workers < 1
    """
    validate_scheme(scheme)
    if match not in MATCH_MODES:
        raise ValueError(f"Unknown match mode: {match}. Must be one of {list(MATCH_MODES)}")
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    folded_synonyms = {
        term.strip().casefold(): list(values) for term, values in (synonyms or {}).items()
    }
    roots = _compile(scheme, folded_synonyms, match)
    tag_one = partial(
        _tag_document,
        roots=roots,
        allow_multiple=allow_multiple,
        require_ancestors=require_ancestors,
    )

    if isinstance(docs, str):
        return tag_one(docs)

    docs = list(docs)
    if verbose:
        print(f"Tagging {len(docs)} documents against {len(roots)} top-level terms...", flush=True)

    if workers > 1 and len(docs) > 1:
        chunk_size = max(1, min(DEFAULT_CHUNK_SIZE, len(docs) // workers))
        with ProcessPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(tag_one, docs, chunksize=chunk_size))
    else:
        results = [tag_one(doc) for doc in docs]

    if verbose:
        stats = tag_stats(results)
        print(f"  Matched: {stats['matched']}, Unmatched: {stats['unmatched']}", flush=True)

    return results


def tag_stats(results: Sequence[TagResult]) -> dict:
    """Count matched and unmatched documents in a set of tag results."""
    matched = 0
    total_paths = 0
    for result in results:
        if not result:
            continue
        matched += 1
        total_paths += len(result) if isinstance(result[0], list) else 1

    return {
        "total": len(results),
        "matched": matched,
        "unmatched": len(results) - matched,
        "total_paths": total_paths,
    }
