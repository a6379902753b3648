"""Unit tests for gold/predicted chunk reconciliation."""

import numpy as np
import pytest

from span_ner.features import chunk_features, sentence_to_features
from span_ner.reconcile import build_classifier_samples, label_for_span, reconcile_sentence
from span_ner.types import EntityLabel, LabeledSentence, Span

from tests.conftest import MockSegmenter

PER = EntityLabel.PERSON
LOC = EntityLabel.LOCATION
NOT_ENTITY = EntityLabel.NOT_ENTITY


@pytest.fixture
def sentence_features(embedder):
    return sentence_to_features(embedder, ["Peter", "Blackburn", "visited", "Brussels", "today", "."])


class TestLabelForSpan:
    def test_exact_match(self):
        assert label_for_span([Span(0, 2), Span(3, 4)], [PER, LOC], Span(3, 4)) == LOC

    def test_overlap_is_not_a_match(self):
        assert label_for_span([Span(0, 2)], [PER], Span(0, 1)) == NOT_ENTITY
        assert label_for_span([Span(0, 2)], [PER], Span(0, 3)) == NOT_ENTITY

    def test_no_gold(self):
        assert label_for_span([], [], Span(1, 2)) == NOT_ENTITY


class TestReconcileSentence:
    def test_union_cardinality(self, sentence_features):
        gold = [Span(0, 2), Span(3, 4)]
        predicted = [Span(0, 2), Span(2, 3), Span(3, 5)]
        spans, vectors, labels = reconcile_sentence(sentence_features, gold, [PER, LOC], predicted)
        assert len(spans) == len(vectors) == len(labels) == len(set(gold) | set(predicted)) == 4

    def test_shared_chunk_counted_once(self, sentence_features):
        gold = [Span(0, 2)]
        spans, _, labels = reconcile_sentence(sentence_features, gold, [PER], [Span(0, 2)])
        assert spans == [Span(0, 2)]
        assert labels == [PER]

    def test_reject_labels(self, sentence_features):
        gold = [Span(0, 2), Span(3, 4)]
        predicted = [Span(0, 1), Span(3, 4), Span(5, 6)]
        spans, _, labels = reconcile_sentence(sentence_features, gold, [PER, LOC], predicted)
        by_span = dict(zip(spans, labels))
        assert by_span[Span(0, 2)] == PER
        assert by_span[Span(3, 4)] == LOC
        assert by_span[Span(0, 1)] == NOT_ENTITY
        assert by_span[Span(5, 6)] == NOT_ENTITY

    def test_order_independent(self, sentence_features):
        gold = [Span(0, 2), Span(3, 4)]
        predicted = [Span(5, 6), Span(0, 1)]
        a = reconcile_sentence(sentence_features, gold, [PER, LOC], predicted)
        b = reconcile_sentence(sentence_features, gold[::-1], [LOC, PER], predicted[::-1])
        assert a[0] == b[0]
        assert a[2] == b[2]
        for x, y in zip(a[1], b[1]):
            assert np.array_equal(x, y)

    def test_vectors_are_chunk_features(self, sentence_features):
        spans, vectors, _ = reconcile_sentence(sentence_features, [Span(0, 2)], [PER], [])
        assert np.array_equal(vectors[0], chunk_features(sentence_features, Span(0, 2)))


class TestBuildClassifierSamples:
    def test_counts_across_sentences(self, embedder):
        sentences = [
            LabeledSentence(tokens=["Peter", "Blackburn", "spoke"], spans=[Span(0, 2)], labels=[PER]),
            LabeledSentence(tokens=["in", "Bonn"], spans=[Span(1, 2)], labels=[LOC]),
            LabeledSentence(tokens=[]),
        ]
        segmenter = MockSegmenter([Span(0, 2), Span(2, 3)])
        samples = build_classifier_samples(sentences, embedder, segmenter)
        # first sentence: {0-2, 2-3}; second: {1-2} | {0-2}
        assert len(samples) == 4
        assert samples.labels == [PER, NOT_ENTITY, NOT_ENTITY, LOC]
        features, labels = samples.as_arrays()
        assert features.shape[0] == 4
        assert labels.tolist() == [0, 4, 4, 1]
        assert segmenter.calls == 2
