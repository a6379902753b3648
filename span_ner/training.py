"""
Training and evaluation entry points for both stages.

The ``*_stage`` functions work on files (corpus in, model file out) and
are what the command line calls; the rest work on in-memory objects.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from span_ner.chunker import evaluate_chunker, train_chunker
from span_ner.classifier import ClassifierTrainer, ConfusionReport, evaluate_classifier
from span_ner.config import ChunkerConfig, ClassifierConfig, TrainingConfig
from span_ner.conll import parse_conll_file
from span_ner.embedders import load_embedder
from span_ner.extractor import NamedEntityExtractor
from span_ner.metrics import LabelEvaluation, Score, score_labels
from span_ner.reconcile import build_classifier_samples
from span_ner.segmenter import SequenceSegmenter
from span_ner.serialization import load_extractor, load_segmenter, save_extractor, save_segmenter
from span_ner.types import ENTITY_LABELS, LABEL_NAMES, LabeledSentence

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def train_extractor(
    sentences: Sequence[LabeledSentence],
    embedder,
    segmenter: SequenceSegmenter,
    config: Optional[ClassifierConfig] = None,
    tag_names: Sequence[str] = LABEL_NAMES,
) -> Tuple[NamedEntityExtractor, ConfusionReport]:
    """Train the classifier against ``segmenter``'s proposals and compose the extractor."""
    samples = build_classifier_samples(sentences, embedder, segmenter)
    if not len(samples):
        raise ValueError("No classifier samples: corpus has no gold or proposed chunks")
    features, labels = samples.as_arrays()
    classifier = ClassifierTrainer(config).train(features, labels)
    report = evaluate_classifier(classifier, features, labels)
    return NamedEntityExtractor(tag_names, embedder, segmenter, classifier), report


def evaluate_extractor(
    extractor: NamedEntityExtractor,
    sentences: Sequence[LabeledSentence],
) -> LabelEvaluation:
    predictions = [extractor(sentence.tokens) for sentence in sentences]
    gold = [(sentence.spans, sentence.labels) for sentence in sentences]
    return score_labels(predictions, gold, ENTITY_LABELS)


def train_chunker_stage(
    corpus_path: PathLike,
    embedder,
    output_path: PathLike,
    config: Optional[ChunkerConfig] = None,
) -> Score:
    config = (config or ChunkerConfig()).validate()
    sentences = parse_conll_file(corpus_path)
    logger.info(f"Word feature dimensions: {embedder.dimensions}")
    segmenter = train_chunker(sentences, embedder, config)
    score = evaluate_chunker(segmenter, embedder, sentences)
    logger.info(f"Chunker on training data: {score.summary()}")
    save_segmenter(output_path, embedder, segmenter)
    return score


def test_chunker_stage(corpus_path: PathLike, segmenter_path: PathLike) -> Score:
    sentences = parse_conll_file(corpus_path)
    embedder, segmenter = load_segmenter(segmenter_path)
    return evaluate_chunker(segmenter, embedder, sentences)


def train_id_stage(
    corpus_path: PathLike,
    segmenter_path: PathLike,
    output_path: PathLike,
    config: Optional[ClassifierConfig] = None,
) -> ConfusionReport:
    config = (config or ClassifierConfig()).validate()
    sentences = parse_conll_file(corpus_path)
    embedder, segmenter = load_segmenter(segmenter_path)
    extractor, report = train_extractor(sentences, embedder, segmenter, config)
    logger.info(f"Classifier accuracy on training data: {report.accuracy}")
    save_extractor(output_path, extractor)
    return report


def test_id_stage(corpus_path: PathLike, model_path: PathLike) -> Tuple[LabelEvaluation, Tuple[str, ...]]:
    """Score a composed model on a corpus; also returns the model's tag names."""
    extractor = load_extractor(model_path)
    sentences = parse_conll_file(corpus_path)
    return evaluate_extractor(extractor, sentences), extractor.tag_names


def train_from_config(
    corpus_path: PathLike,
    config: TrainingConfig,
    segmenter_path: PathLike,
    model_path: PathLike,
) -> Tuple[Score, ConfusionReport]:
    """Run both training stages from one config, writing both model files."""
    config.validate()
    embedder = load_embedder(config.embedder)
    chunker_score = train_chunker_stage(corpus_path, embedder, segmenter_path, config.chunker)
    report = train_id_stage(corpus_path, segmenter_path, model_path, config.classifier)
    return chunker_score, report
