from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List


class EntityLabel(IntEnum):
    """Entity types produced by the classifier.

    NOT_ENTITY is a valid training label (it teaches the classifier to reject
    chunker proposals) but never appears in a detection.
    """

    PERSON = 0
    LOCATION = 1
    ORGANIZATION = 2
    MISC = 3
    NOT_ENTITY = 4


ENTITY_LABELS = (
    EntityLabel.PERSON,
    EntityLabel.LOCATION,
    EntityLabel.ORGANIZATION,
    EntityLabel.MISC,
)

# Display names, indexed by label id
LABEL_NAMES = ["PERSON", "LOCATION", "ORGANIZATION", "MISC"]

# CoNLL-2003 tag suffixes
CONLL_CODES: Dict[str, EntityLabel] = {
    "PER": EntityLabel.PERSON,
    "LOC": EntityLabel.LOCATION,
    "ORG": EntityLabel.ORGANIZATION,
    "MISC": EntityLabel.MISC,
}
LABEL_CODES: Dict[EntityLabel, str] = {label: code for code, label in CONLL_CODES.items()}


@dataclass(frozen=True, order=True)
class Span:
    """Half-open token range [begin, end)."""

    begin: int
    end: int

    def __post_init__(self) -> None:
        if self.begin < 0 or self.begin >= self.end:
            raise ValueError(f"Invalid span [{self.begin}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.begin


@dataclass
class LabeledSentence:
    """One CoNLL sentence with its gold chunks."""

    tokens: List[str]
    spans: List[Span] = field(default_factory=list)
    labels: List[EntityLabel] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    preamble: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Detection:
    """Typed entity mention anchored to character offsets in the input text."""

    start: int
    length: int
    tag: int
    tag_name: str

    @property
    def end(self) -> int:
        return self.start + self.length
