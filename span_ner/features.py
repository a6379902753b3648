"""Sentence and chunk feature vectors built from word features."""

from typing import Sequence

import numpy as np

from span_ner.embedders import WordFeatureExtractor
from span_ner.types import Span

# Chunk length buckets: 1, 2, 3, 4, 5+
NUM_LENGTH_BUCKETS = 5


def sentence_to_features(embedder: WordFeatureExtractor, tokens: Sequence[str]) -> np.ndarray:
    """
    Per-token feature matrix of shape ``(len(tokens), 3 * embedder.dimensions)``.

    Each row is the token's own vector followed by the previous and next
    token vectors (zeros past the sentence boundary).
    """
    dim = embedder.dimensions
    if not tokens:
        return np.zeros((0, 3 * dim), dtype=np.float32)
    words = np.stack([embedder.embed(token) for token in tokens]).astype(np.float32)
    padding = np.zeros((1, dim), dtype=np.float32)
    previous = np.concatenate([padding, words[:-1]])
    following = np.concatenate([words[1:], padding])
    return np.hstack([words, previous, following])


def chunk_feature_dimensions(sentence_dims: int) -> int:
    return 5 * sentence_dims + NUM_LENGTH_BUCKETS


def chunk_features(sentence: np.ndarray, span: Span) -> np.ndarray:
    """
    Feature vector for one chunk of a sentence feature matrix.

    Concatenates the mean of the chunk rows, the first and last rows, the
    rows just outside the chunk and a one-hot length bucket.
    """
    if span.end > len(sentence):
        raise ValueError(f"Span {span} outside sentence of length {len(sentence)}")
    width = sentence.shape[1]
    rows = sentence[span.begin:span.end]
    zeros = np.zeros(width, dtype=np.float32)
    left = sentence[span.begin - 1] if span.begin > 0 else zeros
    right = sentence[span.end] if span.end < len(sentence) else zeros
    length = np.zeros(NUM_LENGTH_BUCKETS, dtype=np.float32)
    length[min(len(span), NUM_LENGTH_BUCKETS) - 1] = 1.0
    return np.concatenate([rows.mean(axis=0), rows[0], rows[-1], left, right, length]).astype(np.float32)
