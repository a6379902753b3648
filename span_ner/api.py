"""
Handle-based extraction API for embedding callers.

Resource policy: only values documented as handles need releasing. A
handle from ``load_named_entity_extractor`` or ``extract_entities`` must
be given to ``release`` exactly once (or used as a context manager, which
releases it on exit). Every other return value is a plain Python value
owned by the caller.

Each handle carries a kind tag that ``release`` inspects to decide how to
free it; release resets the tag, so a second release is detected and
raises ``HandleReleasedError``. Loading and extraction never raise: they
return ``None`` on failure. Accessor preconditions (live handle of the
right kind, index below the reported count) are checked with ``assert``
only, so they vanish under ``python -O``.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional, Tuple

from span_ner.extractor import NamedEntityExtractor
from span_ner.errors import HandleError, HandleReleasedError
from span_ner.serialization import load_extractor
from span_ner.types import Detection

logger = logging.getLogger(__name__)


class HandleKind(IntEnum):
    NOT_A_HANDLE = 0
    NAMED_ENTITY_EXTRACTOR = 1234
    NAMED_ENTITY_DETECTIONS = 1235


class Handle:
    """Opaque, kind-tagged reference to a library object."""

    __slots__ = ("kind", "_impl")

    def __init__(self, kind: HandleKind, impl: Any) -> None:
        self.kind = kind
        self._impl = impl

    @property
    def released(self) -> bool:
        return self.kind == HandleKind.NOT_A_HANDLE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.released:
            release(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind.name}>"


class ExtractorHandle(Handle):
    __slots__ = ()


class DetectionsHandle(Handle):
    __slots__ = ()


@dataclass(frozen=True)
class _DetectionSet:
    detections: Tuple[Detection, ...]


def release(obj: Optional[Handle]) -> None:
    """Free any handle. ``None`` is ignored."""
    if obj is None:
        return
    kind = getattr(obj, "kind", None)
    if kind in (HandleKind.NAMED_ENTITY_EXTRACTOR, HandleKind.NAMED_ENTITY_DETECTIONS):
        obj.kind = HandleKind.NOT_A_HANDLE
        obj._impl = None
        return
    if isinstance(obj, Handle):
        raise HandleReleasedError("release() called twice on the same handle")
    raise HandleError(f"release() called on a non-handle object of type {type(obj).__name__}")


def _unwrap(handle: Handle, kind: HandleKind) -> Any:
    assert handle is not None, "handle must not be None"
    assert handle.kind == kind, f"expected a live {kind.name} handle, got {handle!r}"
    return handle._impl


# ----------------------------------------------------------------------------
# Extractor
# ----------------------------------------------------------------------------


def load_named_entity_extractor(filename: str) -> Optional[ExtractorHandle]:
    """Load a composed model file. Returns ``None`` if it can't be loaded; release the result."""
    try:
        extractor = load_extractor(filename)
    except FileNotFoundError:
        logger.warning(f"Error loading model file, file not found: {filename}")
        return None
    except Exception as e:
        logger.warning(f"Error loading model file {filename}: {e}")
        return None
    return ExtractorHandle(HandleKind.NAMED_ENTITY_EXTRACTOR, extractor)


def get_num_possible_ner_tags(ner: ExtractorHandle) -> int:
    """Number of tags the extractor can produce; tag ids are ``0 .. n-1``."""
    extractor: NamedEntityExtractor = _unwrap(ner, HandleKind.NAMED_ENTITY_EXTRACTOR)
    return len(extractor.tag_names)


def get_named_entity_tagstr(ner: ExtractorHandle, idx: int) -> str:
    extractor: NamedEntityExtractor = _unwrap(ner, HandleKind.NAMED_ENTITY_EXTRACTOR)
    assert 0 <= idx < len(extractor.tag_names), f"tag index {idx} out of range"
    return extractor.tag_names[idx]


def extract_entities(ner: ExtractorHandle, text: str) -> Optional[DetectionsHandle]:
    """Run the extractor on ``text``. Returns ``None`` on failure; release the result."""
    extractor: NamedEntityExtractor = _unwrap(ner, HandleKind.NAMED_ENTITY_EXTRACTOR)
    assert text is not None, "text must not be None"
    try:
        detections = extractor.extract(text)
    except Exception as e:
        logger.warning(f"Entity extraction failed: {e}")
        return None
    return DetectionsHandle(HandleKind.NAMED_ENTITY_DETECTIONS, _DetectionSet(tuple(detections)))


# ----------------------------------------------------------------------------
# Detections
# ----------------------------------------------------------------------------


def _detection(dets: DetectionsHandle, idx: int) -> Detection:
    detection_set: _DetectionSet = _unwrap(dets, HandleKind.NAMED_ENTITY_DETECTIONS)
    assert 0 <= idx < len(detection_set.detections), f"detection index {idx} out of range"
    return detection_set.detections[idx]


def get_num_detections(dets: DetectionsHandle) -> int:
    detection_set: _DetectionSet = _unwrap(dets, HandleKind.NAMED_ENTITY_DETECTIONS)
    return len(detection_set.detections)


def get_detection_position(dets: DetectionsHandle, idx: int) -> int:
    """
    Offset of the first character of the idx-th detection in the input text.

    Detections are stored in text order, so positions strictly increase
    with ``idx``.
    """
    return _detection(dets, idx).start


def get_detection_length(dets: DetectionsHandle, idx: int) -> int:
    return _detection(dets, idx).length


def get_detection_tag(dets: DetectionsHandle, idx: int) -> int:
    return _detection(dets, idx).tag


def get_detection_tagstr(dets: DetectionsHandle, idx: int) -> str:
    return _detection(dets, idx).tag_name
