"""
Training-time reconciliation of gold and chunker-proposed chunks.

The classifier is trained on the union of the gold chunks and the chunks
the trained chunker actually proposes. Proposals with no exact gold match
are labelled NOT_ENTITY, which teaches the classifier to reject this
chunker's false positives.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np

from span_ner.features import chunk_features, sentence_to_features
from span_ner.types import EntityLabel, LabeledSentence, Span

logger = logging.getLogger(__name__)


def label_for_span(
    gold_spans: Sequence[Span],
    gold_labels: Sequence[int],
    span: Span,
) -> EntityLabel:
    """Label of the gold chunk equal to ``span``, else NOT_ENTITY."""
    for gold_span, gold_label in zip(gold_spans, gold_labels):
        if gold_span == span:
            return EntityLabel(gold_label)
    return EntityLabel.NOT_ENTITY


def reconcile_sentence(
    features: np.ndarray,
    gold_spans: Sequence[Span],
    gold_labels: Sequence[int],
    predicted_spans: Sequence[Span],
) -> Tuple[List[Span], List[np.ndarray], List[EntityLabel]]:
    """One classifier sample per distinct chunk in gold | predicted."""
    spans = sorted(set(gold_spans) | set(predicted_spans))
    vectors = [chunk_features(features, span) for span in spans]
    labels = [label_for_span(gold_spans, gold_labels, span) for span in spans]
    return spans, vectors, labels


@dataclass
class ClassifierSamples:
    features: List[np.ndarray] = field(default_factory=list)
    labels: List[EntityLabel] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.labels)

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        return np.vstack(self.features), np.array([int(label) for label in self.labels])


def build_classifier_samples(
    sentences: Sequence[LabeledSentence],
    embedder,
    segmenter,
) -> ClassifierSamples:
    samples = ClassifierSamples()
    num_rejects = 0
    for sentence in sentences:
        if not sentence.tokens:
            continue
        features = sentence_to_features(embedder, sentence.tokens)
        predicted = segmenter(features)
        _, vectors, labels = reconcile_sentence(features, sentence.spans, sentence.labels, predicted)
        samples.features.extend(vectors)
        samples.labels.extend(labels)
        num_rejects += sum(label == EntityLabel.NOT_ENTITY for label in labels)
    logger.info(
        f"Built {len(samples)} classifier samples from {len(sentences)} sentences "
        f"({num_rejects} labelled NOT_ENTITY)"
    )
    return samples
