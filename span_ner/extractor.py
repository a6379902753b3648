"""
Composed named entity extractor.

text -> tokens -> per-token features -> chunks -> labels -> detections.
A loaded extractor is read-only, so one instance can serve concurrent
extraction calls.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from span_ner.classifier import EntityClassifier
from span_ner.conll import spans_to_bio
from span_ner.features import chunk_features, sentence_to_features
from span_ner.segmenter import SequenceSegmenter
from span_ner.tokenizer import SpacyTokenizer
from span_ner.types import Detection, EntityLabel, Span

logger = logging.getLogger(__name__)


def token_range_to_chars(tokens: Sequence[Tuple[str, int]], span: Span) -> Tuple[int, int]:
    """Character range ``[start, end)`` covered by a chunk of ``(word, offset)`` tokens."""
    first_offset = tokens[span.begin][1]
    last_word, last_offset = tokens[span.end - 1]
    return first_offset, last_offset + len(last_word)


class NamedEntityExtractor:
    """Chunker + classifier pair with the label names they were trained for."""

    def __init__(
        self,
        tag_names: Sequence[str],
        embedder,
        segmenter: SequenceSegmenter,
        classifier: EntityClassifier,
        tokenizer: Optional[SpacyTokenizer] = None,
    ) -> None:
        self._tag_names = tuple(tag_names)
        self.embedder = embedder
        self.segmenter = segmenter
        self.classifier = classifier
        self.tokenizer = tokenizer or SpacyTokenizer()

    @property
    def tag_names(self) -> Tuple[str, ...]:
        return self._tag_names

    def __call__(self, tokens: Sequence[str]) -> Tuple[List[Span], List[EntityLabel]]:
        """Typed chunks of a tokenized sentence, in sentence order, rejects dropped."""
        if not tokens:
            return [], []
        features = sentence_to_features(self.embedder, tokens)
        candidates = self.segmenter(features)
        if not candidates:
            return [], []
        predicted = self.classifier.predict(np.vstack([chunk_features(features, s) for s in candidates]))
        kept = [
            (span, label)
            for span, label in zip(candidates, predicted)
            if label != EntityLabel.NOT_ENTITY
        ]
        return [span for span, _ in kept], [label for _, label in kept]

    def tag(self, tokens: Sequence[str]) -> List[str]:
        """BIO tags for a tokenized sentence."""
        spans, labels = self(tokens)
        return spans_to_bio(spans, labels, len(tokens))

    def extract(self, text: str) -> List[Detection]:
        """Detections in ``text``, ordered by strictly increasing start offset."""
        tokens = self.tokenizer(text)
        spans, labels = self([word for word, _ in tokens])
        detections = []
        for span, label in zip(spans, labels):
            start, end = token_range_to_chars(tokens, span)
            detections.append(Detection(start, end - start, int(label), self._tag_names[label]))
        # chunks never overlap, so sorting by start makes the starts strictly increasing
        detections.sort(key=lambda d: d.start)
        assert all(a.start < b.start for a, b in zip(detections, detections[1:])), \
            "detections must have strictly increasing offsets"
        logger.debug(f"Extracted {len(detections)} entities from {len(tokens)} tokens")
        return detections
