"""Unit tests for configuration parsing and validation."""

import math

import pytest

from span_ner.config import (
    C_RANGE,
    ChunkerConfig,
    ClassifierConfig,
    ComponentConfig,
    TrainingConfig,
    check_range,
)
from span_ner.errors import ConfigError


class TestChunkerConfig:
    def test_defaults(self):
        config = ChunkerConfig()
        assert config.C == 15.0
        assert config.eps == 0.01
        assert config.num_threads == 4
        assert config.cache_size == 5
        assert config.validate() is config

    def test_zero_cache_size_allowed(self):
        ChunkerConfig(cache_size=0).validate()

    @pytest.mark.parametrize(
        "params",
        [
            {"C": 0.0},
            {"C": -1.0},
            {"C": math.inf},
            {"eps": 0.0},
            {"eps": math.nan},
            {"num_threads": 0},
            {"cache_size": -1},
            {"max_iterations": 0},
        ],
    )
    def test_invalid_values_rejected(self, params):
        with pytest.raises(ConfigError):
            ChunkerConfig(**params).validate()


class TestClassifierConfig:
    def test_defaults(self):
        config = ClassifierConfig()
        assert config.C == 450.0
        assert config.eps == 0.001
        assert config.num_threads == 4

    @pytest.mark.parametrize("params", [{"C": -5.0}, {"eps": math.inf}, {"num_threads": 0}])
    def test_invalid_values_rejected(self, params):
        with pytest.raises(ConfigError):
            ClassifierConfig(**params).validate()


class TestTrainingConfig:
    def test_from_dict_minimal(self):
        config = TrainingConfig.from_dict({})
        assert config.embedder.name == "hashing"
        assert config.embedder.params == {}
        assert config.chunker == ChunkerConfig()
        assert config.classifier == ClassifierConfig()

    def test_from_dict_full(self):
        data = {
            "embedder": {"name": "spacy_vectors", "params": {"model_path": "/models/vectors"}},
            "chunker": {"C": 10.0, "cache_size": 0},
            "classifier": {"C": 100.0, "num_threads": 2},
        }
        config = TrainingConfig.from_dict(data)
        assert config.embedder == ComponentConfig(name="spacy_vectors", params={"model_path": "/models/vectors"})
        assert config.chunker.C == 10.0
        assert config.chunker.cache_size == 0
        assert config.classifier.num_threads == 2

    def test_from_dict_validates(self):
        with pytest.raises(ConfigError):
            TrainingConfig.from_dict({"chunker": {"num_threads": 0}})

    def test_from_dict_unknown_option(self):
        with pytest.raises(ConfigError):
            TrainingConfig.from_dict({"classifier": {"gamma": 1.0}})

    def test_to_dict_round_trip(self):
        config = TrainingConfig(chunker=ChunkerConfig(C=3.0))
        assert TrainingConfig.from_dict(config.to_dict()) == config


class TestCheckRange:
    def test_in_range(self):
        check_range("C", 1.0, C_RANGE)
        check_range("C", C_RANGE[0], C_RANGE)

    def test_out_of_range(self):
        with pytest.raises(ConfigError, match="C must be in range"):
            check_range("C", 2e9, C_RANGE)
