"""Shared fixtures: a small sparse scheme and a bibliographic corpus on disk."""

import pandas as pd
import pytest


SCHEME_CSV = """level_1,level_2,level_3
Agricultural practices,integrated pest management,
,crop rotation,legume rotation
,,cereal rotation
Water management,irrigation,
,,drip irrigation
Soil health,,
"""

RECORDS = [
    {
        "title": "Integrated pest management in maize",
        "abstract": "Field trials of biological control.",
        "keywords": "IPM; maize",
    },
    {
        "title": "Drip irrigation and yield",
        "abstract": "Water savings in arid regions.",
        "keywords": None,
    },
    {
        "title": "Urban heat islands",
        "abstract": "Remote sensing of city temperatures.",
        "keywords": "climate",
    },
    {
        "title": "Soil health indicators",
        "abstract": "Legume rotation improved soil organic carbon.",
        "keywords": "soil health",
    },
]


@pytest.fixture
def scheme_path(tmp_path):
    path = tmp_path / "scheme.csv"
    path.write_text(SCHEME_CSV)
    return path


@pytest.fixture
def corpus_path(tmp_path):
    path = tmp_path / "corpus.csv"
    pd.DataFrame(RECORDS).to_csv(path, index=False)
    return path
