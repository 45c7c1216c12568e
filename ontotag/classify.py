"""Supervised tagging: learn flat labels from documents with known tags.

Labels typically come from extract_levels() on a dictionary-tagged subset of
a corpus; the trained model then tags the documents the dictionary missed.
"""

from collections import Counter
from typing import Sequence

from sklearn.feature_extraction.text import CountVectorizer, TfidfVectorizer
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import accuracy_score
from sklearn.pipeline import Pipeline

from ontotag.models import ClassifierReport
from ontotag.resolve import is_empty


def build_dtm(
    docs: Sequence[str],
    min_df: int | float = 1,
    max_features: int | None = None,
):
    """Build a document-term matrix of raw counts.

    Returns:
        Tuple of (sparse matrix, fitted CountVectorizer)
    """
    vectorizer = CountVectorizer(stop_words="english", min_df=min_df, max_features=max_features)
    matrix = vectorizer.fit_transform(docs)
    return matrix, vectorizer


def _labelled(docs: Sequence[str], labels: Sequence) -> tuple[list[str], list[str]]:
    if len(docs) != len(labels):
        raise ValueError(f"Got {len(docs)} documents but {len(labels)} labels")
    pairs = [(doc, str(label)) for doc, label in zip(docs, labels) if not is_empty(label)]
    return [doc for doc, _ in pairs], [label for _, label in pairs]


def train_classifier(
    docs: Sequence[str],
    labels: Sequence,
    C: float = 1.0,
    max_iter: int = 1000,
    verbose: bool = False,
) -> Pipeline:
    """Train a regularized logistic regression on TF-IDF features.

    Documents whose label is missing (None, NaN or blank) are skipped.
    Categories with very few documents are kept as they are.

    Args:
        docs: Document texts
        labels: One label per document
        C: Inverse regularization strength
        max_iter: Solver iteration limit
        verbose: Print progress info

    Returns:
        Fitted scikit-learn Pipeline

    Raises:
        ValueError: If documents and labels differ in length or fewer than
            two distinct labels remain
    """
    train_docs, train_labels = _labelled(docs, labels)

    classes = Counter(train_labels)
    if len(classes) < 2:
        raise ValueError(f"Need at least two distinct labels to train, got {len(classes)}")

    if verbose:
        print(f"Training on {len(train_docs)} labelled documents ({len(classes)} labels)...", flush=True)
        for label, count in classes.most_common():
            print(f"  {label}: {count}", flush=True)

    model = Pipeline(
        [
            ("tfidf", TfidfVectorizer(stop_words="english", sublinear_tf=True)),
            ("clf", LogisticRegression(C=C, max_iter=max_iter)),
        ]
    )
    model.fit(train_docs, train_labels)
    return model


def predict_labels(model: Pipeline, docs: Sequence[str]) -> list[str]:
    """Predict one label per document."""
    if not docs:
        return []
    return [str(label) for label in model.predict(list(docs))]


def evaluate_classifier(model: Pipeline, docs: Sequence[str], labels: Sequence) -> ClassifierReport:
    """Score a trained classifier against documents with known labels."""
    test_docs, test_labels = _labelled(docs, labels)
    if not test_docs:
        raise ValueError("No labelled documents to evaluate")

    predicted = predict_labels(model, test_docs)
    return ClassifierReport(
        accuracy=float(accuracy_score(test_labels, predicted)),
        n_documents=len(test_docs),
        support=dict(Counter(test_labels)),
    )
