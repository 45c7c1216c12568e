"""Unsupervised topic discovery over an untagged corpus (TF-IDF + NMF)."""

from typing import Sequence

import numpy as np
from sklearn.decomposition import NMF
from sklearn.feature_extraction.text import TfidfVectorizer

from ontotag.models import Topic, TopicModelResult


def discover_topics(
    docs: Sequence[str],
    n_topics: int,
    n_terms: int = 10,
    random_state: int = 0,
    verbose: bool = False,
) -> TopicModelResult:
    """Find topics in a corpus and assign each document its dominant topic.

    Args:
        docs: Document texts
        n_topics: Number of topics to fit
        n_terms: Top terms reported per topic
        random_state: Seed for the NMF initialisation
        verbose: Print progress info

    Returns:
        TopicModelResult; documents with no weight on any topic get None
    """
    if n_topics < 1:
        raise ValueError(f"n_topics must be at least 1, got {n_topics}")

    vectorizer = TfidfVectorizer(stop_words="english")
    matrix = vectorizer.fit_transform(list(docs))
    n_topics = min(n_topics, *matrix.shape)

    if verbose:
        print(f"Fitting {n_topics} topics on {matrix.shape[0]} documents, {matrix.shape[1]} terms...", flush=True)

    model = NMF(n_components=n_topics, init="nndsvda", random_state=random_state, max_iter=500)
    weights = model.fit_transform(matrix)

    vocabulary = vectorizer.get_feature_names_out()
    topics = []
    for topic_id, components in enumerate(model.components_):
        top = np.argsort(components)[::-1][:n_terms]
        topics.append(Topic(id=topic_id, terms=[str(vocabulary[i]) for i in top if components[i] > 0]))

    assignments: list[int | None] = []
    for row in weights:
        assignments.append(int(np.argmax(row)) if row.max() > 0 else None)

    return TopicModelResult(topics=topics, assignments=assignments)
