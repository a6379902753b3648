"""
Two-stage named entity recognition for CoNLL corpora.

A chunker proposes entity chunks in a sentence and a classifier assigns
each one an entity type or rejects it.
"""

__all__ = [
    "NamedEntityExtractor",
    "TrainingConfig",
    "load_extractor",
    "save_extractor",
]

__version__ = "0.1.0"

from .config import TrainingConfig  # noqa: E402
from .extractor import NamedEntityExtractor  # noqa: E402
from .serialization import load_extractor, save_extractor  # noqa: E402
