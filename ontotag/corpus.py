"""Loading of hierarchical tables, bibliographic corpora and tagging configs."""

from pathlib import Path
from typing import Sequence

import pandas as pd
import yaml

from ontotag.models import TaggingConfig
from ontotag.resolve import is_empty

EXCEL_SUFFIXES = (".xlsx", ".xls")

DEFAULT_TEXT_FIELDS = ["title", "abstract", "keywords"]


def _read_frame(path: Path, header: bool = True) -> pd.DataFrame:
    if path.suffix.lower() in EXCEL_SUFFIXES:
        return pd.read_excel(path, header=0 if header else None, dtype=str)
    return pd.read_csv(path, header=0 if header else None, dtype=str)


def load_table(path: Path, no_header: bool = False) -> list[list]:
    """Load a hierarchical table (CSV or Excel) as rows of cells.

    Blank cells come back as NaN, which fill_rows() treats as empty.

    Args:
        path: Path to the table file
        no_header: The first line is data rather than column names

    Returns:
        List of rows, one cell per column
    """
    frame = _read_frame(path, header=not no_header)
    return frame.astype(object).values.tolist()


def write_table(table: Sequence[Sequence[str]], path, columns: list[str] | None = None) -> None:
    """Write a (resolved) hierarchical table as CSV to a path or open text stream."""
    width = len(table[0]) if table else len(columns or [])
    if columns is None:
        columns = [f"level_{i}" for i in range(1, width + 1)]
    pd.DataFrame(list(table), columns=columns).to_csv(path, index=False)


def load_corpus(path: Path) -> pd.DataFrame:
    """Load a bibliographic corpus (one record per row) from CSV or Excel."""
    return _read_frame(path)


def prepare_documents(
    records: pd.DataFrame | Sequence[dict],
    fields: Sequence[str] = DEFAULT_TEXT_FIELDS,
) -> list[str]:
    """Concatenate text fields of each record into one lower-cased document.

    Fields missing from a record (or from the whole corpus) are skipped.

    Args:
        records: DataFrame or list of dicts with bibliographic fields
        fields: Field names in concatenation order

    Returns:
        One document string per record, in record order
    """
    if isinstance(records, pd.DataFrame):
        records = records.to_dict("records")

    documents = []
    for record in records:
        parts = []
        for field in fields:
            value = record.get(field)
            if not is_empty(value):
                parts.append(str(value).strip())
        documents.append(" ".join(parts).lower())
    return documents


def load_config(path: Path) -> TaggingConfig:
    """Parse a YAML tagging config.

    A relative scheme path is resolved against the config file's directory.

    Example config:

        scheme: schemes/agriculture.csv
        text_fields: [title, abstract, keywords]
        allow_multiple: false
        match: word
        synonyms:
          integrated pest management: [ipm]
    """
    config_data = yaml.safe_load(path.read_text()) or {}
    config = TaggingConfig(**config_data)

    scheme = Path(config.scheme)
    if not scheme.is_absolute():
        config.scheme = str(path.parent / scheme)
    return config
