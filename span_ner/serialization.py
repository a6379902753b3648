"""
Model stream format.

A stream is a sequence of pickles in fixed order:

1. header ``{"magic": ..., "version": ..., "kind": ...}``
2. word feature extractor
3. sequence segmenter
4. (kind ``extractor`` only) entity classifier, then the tag name list

Model files are pickles: only load files you trust.
"""

import logging
import pickle
from pathlib import Path
from typing import IO, Any, Tuple, Union

from span_ner.classifier import EntityClassifier
from span_ner.errors import ModelFormatError
from span_ner.extractor import NamedEntityExtractor
from span_ner.segmenter import SequenceSegmenter

logger = logging.getLogger(__name__)

MAGIC = "span_ner"
FORMAT_VERSION = 1
KIND_SEGMENTER = "segmenter"
KIND_EXTRACTOR = "extractor"

PathLike = Union[str, Path]


def _write_header(stream: IO[bytes], kind: str) -> None:
    pickle.dump({"magic": MAGIC, "version": FORMAT_VERSION, "kind": kind}, stream, protocol=pickle.HIGHEST_PROTOCOL)


def _read(stream: IO[bytes], path: PathLike, what: str) -> Any:
    try:
        return pickle.load(stream)
    except EOFError as exc:
        raise ModelFormatError(f"Truncated model stream while reading {what}", str(path)) from exc
    except (pickle.UnpicklingError, AttributeError, ImportError, IndexError, KeyError, OSError, TypeError, ValueError) as exc:
        raise ModelFormatError(f"Corrupt model stream while reading {what}: {exc}", str(path)) from exc


def _read_header(stream: IO[bytes], path: PathLike, kind: str) -> None:
    header = _read(stream, path, "header")
    if not isinstance(header, dict) or header.get("magic") != MAGIC:
        raise ModelFormatError("Not a span_ner model file", str(path))
    if header.get("version") != FORMAT_VERSION:
        raise ModelFormatError(f"Unsupported model format version {header.get('version')!r}", str(path))
    if header.get("kind") != kind:
        raise ModelFormatError(f"Expected model kind {kind!r}, found {header.get('kind')!r}", str(path))


def _expect(obj: Any, cls: type, path: PathLike, what: str) -> Any:
    if not isinstance(obj, cls):
        raise ModelFormatError(f"Expected {what}, found {type(obj).__name__}", str(path))
    return obj


def _expect_embedder(obj: Any, path: PathLike) -> Any:
    if not (hasattr(obj, "embed") and hasattr(obj, "dimensions")):
        raise ModelFormatError(f"Expected a word feature extractor, found {type(obj).__name__}", str(path))
    return obj


def save_segmenter(path: PathLike, embedder, segmenter: SequenceSegmenter) -> None:
    with Path(path).open("wb") as f:
        _write_header(f, KIND_SEGMENTER)
        pickle.dump(embedder, f, protocol=pickle.HIGHEST_PROTOCOL)
        pickle.dump(segmenter, f, protocol=pickle.HIGHEST_PROTOCOL)
    logger.info(f"Saved segmenter to {path}")


def load_segmenter(path: PathLike) -> Tuple[Any, SequenceSegmenter]:
    """Read ``(embedder, segmenter)``. Raises FileNotFoundError or ModelFormatError."""
    with Path(path).open("rb") as f:
        _read_header(f, path, KIND_SEGMENTER)
        embedder = _expect_embedder(_read(f, path, "word feature extractor"), path)
        segmenter = _expect(_read(f, path, "segmenter"), SequenceSegmenter, path, "segmenter")
    logger.info(f"Loaded segmenter from {path}")
    return embedder, segmenter


def save_extractor(path: PathLike, extractor: NamedEntityExtractor) -> None:
    with Path(path).open("wb") as f:
        _write_header(f, KIND_EXTRACTOR)
        for obj in (extractor.embedder, extractor.segmenter, extractor.classifier, list(extractor.tag_names)):
            pickle.dump(obj, f, protocol=pickle.HIGHEST_PROTOCOL)
    logger.info(f"Saved named entity extractor to {path}")


def load_extractor(path: PathLike) -> NamedEntityExtractor:
    """Read a composed model. Raises FileNotFoundError or ModelFormatError."""
    with Path(path).open("rb") as f:
        _read_header(f, path, KIND_EXTRACTOR)
        embedder = _expect_embedder(_read(f, path, "word feature extractor"), path)
        segmenter = _expect(_read(f, path, "segmenter"), SequenceSegmenter, path, "segmenter")
        classifier = _expect(_read(f, path, "classifier"), EntityClassifier, path, "classifier")
        tag_names = _expect(_read(f, path, "tag names"), list, path, "tag name list")
    if not all(isinstance(name, str) for name in tag_names):
        raise ModelFormatError("Tag names must be strings", str(path))
    logger.info(f"Loaded named entity extractor from {path} with tags {tag_names}")
    return NamedEntityExtractor(tag_names, embedder, segmenter, classifier)
