"""Chunk proposal stage: build segmentation samples, train and evaluate."""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from span_ner.config import ChunkerConfig
from span_ner.features import sentence_to_features
from span_ner.metrics import Score, score_spans
from span_ner.segmenter import SequenceSegmenter, StructuralSegmenterTrainer
from span_ner.types import LabeledSentence, Span

logger = logging.getLogger(__name__)


def build_segmentation_samples(
    sentences: Sequence[LabeledSentence],
    embedder,
) -> Tuple[List[np.ndarray], List[List[Span]]]:
    samples = [sentence_to_features(embedder, sentence.tokens) for sentence in sentences]
    chunks = [list(sentence.spans) for sentence in sentences]
    return samples, chunks


def train_chunker(
    sentences: Sequence[LabeledSentence],
    embedder,
    config: Optional[ChunkerConfig] = None,
) -> SequenceSegmenter:
    trainer = StructuralSegmenterTrainer(config)
    samples, chunks = build_segmentation_samples(sentences, embedder)
    segmenter = trainer.train(samples, chunks)
    logger.info(f"Chunker model has {segmenter.weights.emission.size} emission weights")
    return segmenter


def evaluate_chunker(
    segmenter: SequenceSegmenter,
    embedder,
    sentences: Sequence[LabeledSentence],
) -> Score:
    samples, chunks = build_segmentation_samples(sentences, embedder)
    return score_spans((segmenter(x) for x in samples), chunks)
