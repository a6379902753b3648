"""
Word feature extractors.

A word feature extractor maps one token string to a fixed-length float
vector. Two are provided:

- ``hashing``: hashed lexical/orthographic features, needs no resources.
- ``spacy_vectors``: pretrained word vectors from a spaCy pipeline plus the
  same orthographic flags.

Both are picklable so they can be stored inside a model stream.
"""

import json
import logging
import re
from pathlib import Path
from typing import List, Protocol, Union

import numpy as np
import spacy
from sklearn.feature_extraction import FeatureHasher

from span_ner.config import WORD_FEATURES_FILE, ComponentConfig
from span_ner.errors import ConfigError
from span_ner.registry import embedders

logger = logging.getLogger(__name__)

_SHAPE_PATTERNS = [
    (re.compile(r"[A-Z]+"), "X"),
    (re.compile(r"[a-z]+"), "x"),
    (re.compile(r"[0-9]+"), "d"),
]


class WordFeatureExtractor(Protocol):
    """Interface shared by all word feature extractors."""

    @property
    def dimensions(self) -> int:
        ...

    def embed(self, word: str) -> np.ndarray:
        ...


def word_shape(word: str) -> str:
    """Collapsed character-class shape, e.g. ``McDonald's`` -> ``XxXx'x``."""
    shape = word
    for pattern, repl in _SHAPE_PATTERNS:
        shape = pattern.sub(repl, shape)
    return shape


def orthographic_flags(word: str) -> np.ndarray:
    return np.array(
        [
            word.istitle(),
            word.isupper(),
            any(ch.isdigit() for ch in word),
            word.isalpha(),
            not any(ch.isalnum() for ch in word),
            "-" in word,
        ],
        dtype=np.float32,
    )


NUM_FLAGS = len(orthographic_flags(""))


@embedders.register("hashing")
class HashingEmbedder:
    """Signed feature hashing of lexical features into a fixed-width vector."""

    def __init__(self, dimensions: int = 256) -> None:
        if dimensions <= NUM_FLAGS:
            raise ValueError(f"dimensions must be greater than {NUM_FLAGS}, got {dimensions}")
        self._dimensions = dimensions
        self._hasher = FeatureHasher(n_features=dimensions - NUM_FLAGS, input_type="string", alternate_sign=True)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _lexical_features(self, word: str) -> List[str]:
        lower = word.lower()
        return [
            f"w={lower}",
            f"p3={lower[:3]}",
            f"s3={lower[-3:]}",
            f"s2={lower[-2:]}",
            f"shape={word_shape(word)}",
        ]

    def embed(self, word: str) -> np.ndarray:
        hashed = self._hasher.transform([self._lexical_features(word)]).toarray()[0].astype(np.float32)
        norm = np.linalg.norm(hashed)
        if norm > 0:
            hashed /= norm
        return np.concatenate([hashed, orthographic_flags(word)])

    def __repr__(self) -> str:
        return f"HashingEmbedder(dimensions={self._dimensions})"


@embedders.register("spacy_vectors")
class SpacyVectorEmbedder:
    """
    Pretrained word vectors from a spaCy pipeline.

    Only a reference to the pipeline (name or path) is pickled; the vectors
    are loaded again when a model stream is read.
    """

    def __init__(self, model_path: str = "en_core_web_md") -> None:
        self.model_path = model_path
        logger.info(f"Loading spaCy word vectors: {model_path}")
        self._vocab = spacy.load(model_path, exclude=["tagger", "parser", "ner", "lemmatizer"]).vocab
        self._width = self._vocab.vectors_length
        if self._width == 0:
            raise ValueError(f"spaCy pipeline '{model_path}' has no word vectors")
        logger.info(f"Loaded {len(self._vocab.vectors)} word vectors of width {self._width}")

    @property
    def dimensions(self) -> int:
        return self._width + NUM_FLAGS

    def embed(self, word: str) -> np.ndarray:
        vector = np.zeros(self._width, dtype=np.float32)
        for form in (word, word.lower()):
            if self._vocab.has_vector(form):
                vector = np.asarray(self._vocab.get_vector(form), dtype=np.float32)
                break
        return np.concatenate([vector, orthographic_flags(word)])

    def __getstate__(self):
        return {"model_path": self.model_path}

    def __setstate__(self, state):
        self.__init__(state["model_path"])

    def __repr__(self) -> str:
        return f"SpacyVectorEmbedder(model_path={self.model_path!r})"


def load_embedder(config: ComponentConfig) -> WordFeatureExtractor:
    return embedders.create(config)


def load_embedder_from_dir(directory: Union[str, Path]) -> WordFeatureExtractor:
    """
    Build the word feature extractor described by ``word_features.json``.

    The file holds a component config, e.g.
    ``{"name": "spacy_vectors", "params": {"model_path": "en_vectors"}}``.
    A relative ``model_path`` is resolved against ``directory``.
    """
    directory = Path(directory)
    spec_path = directory / WORD_FEATURES_FILE
    if not spec_path.is_file():
        raise FileNotFoundError(f"No {WORD_FEATURES_FILE} in models directory {directory}")
    data = json.loads(spec_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or "name" not in data:
        raise ConfigError(f"{spec_path} must be an object with a \"name\" key")
    params = dict(data.get("params", {}))
    model_path = params.get("model_path")
    if model_path and (directory / model_path).exists():
        params["model_path"] = str(directory / model_path)
    embedder = load_embedder(ComponentConfig(name=data["name"], params=params))
    logger.info(f"Word feature extractor from {spec_path}: {embedder!r} ({embedder.dimensions} dims)")
    return embedder
