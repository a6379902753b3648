"""Unit tests for model stream save/load."""

import pickle

import numpy as np
import pytest

from span_ner.classifier import ClassifierTrainer
from span_ner.config import ClassifierConfig
from span_ner.errors import ModelFormatError
from span_ner.extractor import NamedEntityExtractor
from span_ner.segmenter import SegmenterWeights, SequenceSegmenter
from span_ner.serialization import (
    FORMAT_VERSION,
    KIND_EXTRACTOR,
    MAGIC,
    load_extractor,
    load_segmenter,
    save_extractor,
    save_segmenter,
)
from span_ner.types import LABEL_NAMES, EntityLabel


@pytest.fixture
def segmenter(embedder):
    weights = SegmenterWeights.zeros(3 * embedder.dimensions)
    weights.emission[:] = np.random.default_rng(0).normal(size=weights.emission.shape)
    return SequenceSegmenter(weights)


@pytest.fixture
def classifier():
    features = np.vstack([np.eye(4)] * 3)
    labels = [0, 1, 2, 4] * 3
    return ClassifierTrainer(ClassifierConfig(num_threads=1)).train(features, labels)


@pytest.fixture
def extractor(embedder, segmenter, classifier):
    return NamedEntityExtractor(LABEL_NAMES, embedder, segmenter, classifier)


def _write_pickles(path, *objects):
    with open(path, "wb") as f:
        for obj in objects:
            pickle.dump(obj, f)


class TestSegmenterStream:
    def test_round_trip(self, tmp_path, embedder, segmenter):
        path = tmp_path / "segmenter.dat"
        save_segmenter(path, embedder, segmenter)
        loaded_embedder, loaded = load_segmenter(path)
        assert loaded_embedder.dimensions == embedder.dimensions
        assert np.array_equal(loaded.weights.emission, segmenter.weights.emission)

        features = np.random.default_rng(1).normal(size=(6, segmenter.num_dimensions))
        assert loaded(features) == segmenter(features)

    def test_extractor_file_is_not_a_segmenter(self, tmp_path, extractor):
        path = tmp_path / "model.dat"
        save_extractor(path, extractor)
        with pytest.raises(ModelFormatError, match="segmenter"):
            load_segmenter(path)


class TestExtractorStream:
    def test_round_trip(self, tmp_path, extractor, classifier):
        path = tmp_path / "model.dat"
        save_extractor(path, extractor)
        loaded = load_extractor(path)
        assert loaded.tag_names == extractor.tag_names
        probe = np.vstack([np.eye(4), np.ones((1, 4))])
        assert loaded.classifier.predict(probe) == classifier.predict(probe)
        assert loaded.segmenter.num_dimensions == extractor.segmenter.num_dimensions

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_extractor(tmp_path / "missing.dat")

    def test_segmenter_file_is_not_an_extractor(self, tmp_path, embedder, segmenter):
        path = tmp_path / "segmenter.dat"
        save_segmenter(path, embedder, segmenter)
        with pytest.raises(ModelFormatError, match="extractor"):
            load_extractor(path)

    def test_garbage(self, tmp_path):
        path = tmp_path / "garbage.dat"
        path.write_bytes(b"\x00\x01 this is not a model")
        with pytest.raises(ModelFormatError):
            load_extractor(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.dat"
        path.write_bytes(b"")
        with pytest.raises(ModelFormatError, match="Truncated"):
            load_extractor(path)

    def test_bad_magic(self, tmp_path):
        path = tmp_path / "model.dat"
        _write_pickles(path, {"magic": "something_else", "version": FORMAT_VERSION, "kind": KIND_EXTRACTOR})
        with pytest.raises(ModelFormatError, match="Not a span_ner model"):
            load_extractor(path)

    def test_unsupported_version(self, tmp_path):
        path = tmp_path / "model.dat"
        _write_pickles(path, {"magic": MAGIC, "version": FORMAT_VERSION + 1, "kind": KIND_EXTRACTOR})
        with pytest.raises(ModelFormatError, match="version"):
            load_extractor(path)

    def test_truncated_stream(self, tmp_path, extractor):
        path = tmp_path / "model.dat"
        _write_pickles(
            path,
            {"magic": MAGIC, "version": FORMAT_VERSION, "kind": KIND_EXTRACTOR},
            extractor.embedder,
            extractor.segmenter,
        )
        with pytest.raises(ModelFormatError, match="classifier"):
            load_extractor(path)

    def test_wrong_object_in_stream(self, tmp_path, extractor):
        path = tmp_path / "model.dat"
        _write_pickles(
            path,
            {"magic": MAGIC, "version": FORMAT_VERSION, "kind": KIND_EXTRACTOR},
            "not an embedder",
        )
        with pytest.raises(ModelFormatError, match="word feature extractor"):
            load_extractor(path)

    def test_tag_names_must_be_strings(self, tmp_path, extractor):
        path = tmp_path / "model.dat"
        _write_pickles(
            path,
            {"magic": MAGIC, "version": FORMAT_VERSION, "kind": KIND_EXTRACTOR},
            extractor.embedder,
            extractor.segmenter,
            extractor.classifier,
            [0, 1, 2, 3],
        )
        with pytest.raises(ModelFormatError, match="strings"):
            load_extractor(path)

    def test_error_names_file(self, tmp_path):
        path = tmp_path / "garbage.dat"
        path.write_bytes(b"\x00")
        with pytest.raises(ModelFormatError) as excinfo:
            load_extractor(path)
        assert str(path) in str(excinfo.value)


def test_loaded_classifier_labels_are_entity_labels(tmp_path, extractor):
    path = tmp_path / "model.dat"
    save_extractor(path, extractor)
    labels = load_extractor(path).classifier.predict(np.eye(4))
    assert all(isinstance(label, EntityLabel) for label in labels)
