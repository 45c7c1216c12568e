"""Hierarchy resolution for sparse, spreadsheet-authored ontology tables.

Tables are authored the way people write them in a spreadsheet: an ancestor
value is written once and the rows below it leave that column blank until the
branch changes. For example:

    Agricultural practices | integrated pest management
                           | crop rotation
    Water management       | irrigation

fill_rows() carries ancestors down so every row holds its full path.
"""

import math
from typing import Any, Sequence

EMPTY = ""


class MalformedTableError(ValueError):
    """Raised when a hierarchical table cannot be resolved into a tree."""


def is_empty(cell: Any) -> bool:
    """Check whether a table cell counts as missing.

    None, float NaN (pandas' missing value) and blank strings are empty.
    """
    if cell is None:
        return True
    if isinstance(cell, float) and math.isnan(cell):
        return True
    return isinstance(cell, str) and not cell.strip()


def normalize_cell(cell: Any) -> str:
    """Return a stripped string, or EMPTY for a missing cell."""
    if is_empty(cell):
        return EMPTY
    return str(cell).strip()


def _check_shape(table: Sequence[Sequence[Any]]) -> int:
    if not table:
        raise MalformedTableError("Hierarchical table has no rows")

    width = len(table[0])
    if width == 0:
        raise MalformedTableError("Hierarchical table has no columns")

    for i, row in enumerate(table):
        if len(row) != width:
            raise MalformedTableError(
                f"Row {i} has {len(row)} columns, expected {width}"
            )
    return width


def _check_no_gap(row: list[str], row_num: int) -> None:
    """Ensure missing cells form a contiguous suffix of the row."""
    seen_empty = False
    for col, value in enumerate(row):
        if value == EMPTY:
            seen_empty = True
        elif seen_empty:
            raise MalformedTableError(
                f"Row {row_num} has a gap before column {col} ({value!r})"
            )


def fill_rows(table: Sequence[Sequence[Any]]) -> list[list[str]]:
    """Fill in missing ancestor values of a sparse hierarchical table.

    Each row's leading blank cells are copied from the previous resolved row.
    Cells after the row's first value are never inherited, so a row that
    stops at depth d stays a leaf at depth d.

    Args:
        table: Rows of cells (strings or missing values), column = depth

    Returns:
        Table of the same shape with "" for every remaining empty cell

    Raises:
        MalformedTableError: Ragged or empty table, empty root in the first
            row, a blank row, or a row that leaves a gap in its path
    """
    _check_shape(table)

    resolved: list[list[str]] = []
    previous: list[str] | None = None

    for i, raw_row in enumerate(table):
        row = [normalize_cell(cell) for cell in raw_row]

        first = next((col for col, value in enumerate(row) if value != EMPTY), None)
        if first is None:
            raise MalformedTableError(f"Row {i} is empty")
        if first > 0 and previous is None:
            raise MalformedTableError("First row must define a value in column 0")

        # Carry the ancestor prefix down from the row above
        for col in range(first):
            row[col] = previous[col]

        _check_no_gap(row, i)
        resolved.append(row)
        previous = row

    return resolved


def validate_resolved(table: Sequence[Sequence[Any]]) -> list[list[str]]:
    """Check that a table is already fully resolved.

    Returns:
        The table with normalized cells

    Raises:
        MalformedTableError: If any row has an empty root or a gap
    """
    _check_shape(table)

    rows = []
    for i, raw_row in enumerate(table):
        row = [normalize_cell(cell) for cell in raw_row]
        if row[0] == EMPTY:
            raise MalformedTableError(
                f"Row {i} has an empty root; resolve the table with fill_rows() first"
            )
        _check_no_gap(row, i)
        rows.append(row)
    return rows
