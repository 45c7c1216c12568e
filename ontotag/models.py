"""Data models for ontotag."""

from typing import Literal

from pydantic import BaseModel, Field


class DictionaryEntry(BaseModel):
    """One node of a compiled ontology, in flat form."""

    depth: int  # 1 = top-level term
    term: str  # Label as first declared in the table
    path: list[str]  # Root-to-node labels, ending with term
    children: list[str]  # Child labels in declaration order


class TaggingConfig(BaseModel):
    """Configuration file for a dictionary tagging run."""

    scheme: str  # Path to the hierarchical table (CSV/Excel)
    text_fields: list[str] = Field(default_factory=lambda: ["title", "abstract", "keywords"])
    synonyms: dict[str, list[str]] = Field(default_factory=dict)
    allow_multiple: bool = False
    match: Literal["substring", "word"] = "substring"
    require_ancestors: bool = False  # Only search children of terms found in the text
    workers: int = 1
    levels: list[int] | None = None  # None = every populated level
    min_count: int = 1
    no_header: bool = False  # Scheme table has no header row


class ClassifierReport(BaseModel):
    """Evaluation of a supervised tag classifier."""

    accuracy: float
    n_documents: int  # Labelled documents evaluated
    support: dict[str, int]  # Documents per true label


class Topic(BaseModel):
    """A discovered topic and its most heavily weighted terms."""

    id: int
    terms: list[str]


class TopicModelResult(BaseModel):
    """Result of unsupervised topic discovery over a corpus."""

    topics: list[Topic]
    assignments: list[int | None]  # Dominant topic per document
