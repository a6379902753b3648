"""Shared fixtures for span_ner tests."""

import os
import tempfile
from typing import Iterator, List, Optional, Sequence

import numpy as np
import pytest

from span_ner.embedders import HashingEmbedder
from span_ner.extractor import NamedEntityExtractor
from span_ner.types import LABEL_NAMES, EntityLabel, Span


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

SAMPLE_CONLL = """\
-DOCSTART- -X- -X- O

EU NNP B-NP I-ORG
rejects VBZ B-VP O
German JJ B-NP I-MISC
call NN I-NP O
to TO B-VP O
boycott VB I-VP O
British JJ B-NP I-MISC
lamb NN I-NP O
. . O O

Peter NNP B-NP I-PER
Blackburn NNP I-NP I-PER

BRUSSELS NNP B-NP I-LOC
1996-08-22 CD I-NP O

-DOCSTART- -X- -X- O

John NNP B-NP B-PER
Smith NNP I-NP I-PER
visited VBD B-VP O
Paris NNP B-NP B-LOC
with IN B-PP O
Acme NNP B-NP B-ORG
Corp NNP I-NP I-ORG
. . O O

Mary NNP B-NP B-PER
Jones NNP I-NP I-PER
works VBZ B-VP O
for IN B-PP O
Globex NNP B-NP B-ORG
in IN B-PP O
London NNP B-NP B-LOC
. . O O

the DT B-NP O
French JJ I-NP B-MISC
team NN I-NP O
met VBD B-VP O
David NNP B-NP B-PER
in IN B-PP O
Berlin NNP B-NP B-LOC
. . O O
"""


@pytest.fixture
def sample_conll_text() -> str:
    return SAMPLE_CONLL


@pytest.fixture
def temp_conll_file(sample_conll_text: str) -> Iterator[str]:
    """Create a temporary CoNLL file with the sample corpus."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".conll", delete=False, encoding="utf-8") as f:
        f.write(sample_conll_text)
        path = f.name
    yield path
    os.unlink(path)


@pytest.fixture
def sample_text() -> str:
    """Raw text with irregular whitespace between tokens."""
    return "John   Smith lives in New York ."


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder(dimensions=32)


# ---------------------------------------------------------------------------
# Mock classes
# ---------------------------------------------------------------------------


class MockSegmenter:
    """Segmenter that proposes predefined chunks for every sentence."""

    def __init__(self, spans: Optional[List[Span]] = None):
        self._spans = spans or []
        self.calls = 0

    def __call__(self, features: np.ndarray) -> List[Span]:
        self.calls += 1
        return [span for span in self._spans if span.end <= len(features)]

    def set_spans(self, spans: List[Span]) -> None:
        self._spans = spans


class MockClassifier:
    """Classifier that returns predefined labels, one per chunk row."""

    def __init__(self, labels: Optional[Sequence[EntityLabel]] = None):
        self._labels = list(labels or [])

    def predict(self, features: np.ndarray) -> List[EntityLabel]:
        assert len(features) <= len(self._labels), "more chunks than mocked labels"
        return self._labels[: len(features)]

    def set_labels(self, labels: Sequence[EntityLabel]) -> None:
        self._labels = list(labels)


# ---------------------------------------------------------------------------
# Mock fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_segmenter() -> MockSegmenter:
    """Chunks over "John   Smith lives in New York ." tokens."""
    return MockSegmenter([Span(0, 2), Span(2, 3), Span(4, 6)])


@pytest.fixture
def mock_classifier() -> MockClassifier:
    return MockClassifier([EntityLabel.PERSON, EntityLabel.NOT_ENTITY, EntityLabel.LOCATION])


@pytest.fixture
def mock_extractor(
    embedder: HashingEmbedder,
    mock_segmenter: MockSegmenter,
    mock_classifier: MockClassifier,
) -> NamedEntityExtractor:
    return NamedEntityExtractor(LABEL_NAMES, embedder, mock_segmenter, mock_classifier)
