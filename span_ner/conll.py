"""
CoNLL corpus reading and writing.

One token per line with whitespace separated columns; the first column is
the word and the last column its BIO tag (``B-PER``, ``I-ORG``, ``O``...).
Blank lines separate sentences and ``-DOCSTART-`` lines separate documents.
"""

import logging
from pathlib import Path
from typing import IO, Iterable, List, Optional, Sequence, Tuple, Union

from span_ner.errors import FormatError
from span_ner.types import CONLL_CODES, LABEL_CODES, EntityLabel, LabeledSentence, Span

logger = logging.getLogger(__name__)

DOCSTART = "-DOCSTART-"
OUTSIDE = "O"


def parse_tag(tag: str) -> Tuple[str, Optional[EntityLabel]]:
    """Split ``B-PER`` into ``("B", PERSON)``; ``O`` gives ``("O", None)``."""
    if tag == OUTSIDE:
        return OUTSIDE, None
    prefix, sep, code = tag.partition("-")
    if not sep or prefix not in ("B", "I") or code not in CONLL_CODES:
        raise FormatError(f"Unrecognized tag '{tag}'")
    return prefix, CONLL_CODES[code]


def bio_to_spans(tags: Sequence[str]) -> Tuple[List[Span], List[EntityLabel]]:
    """
    Decode a tag sequence into chunks and their labels.

    Accepts both IOB1 and IOB2: an ``I-X`` tag that does not continue an
    ``X`` chunk opens a new one.
    """
    spans: List[Span] = []
    labels: List[EntityLabel] = []
    begin: Optional[int] = None
    current: Optional[EntityLabel] = None

    for i, tag in enumerate(tags):
        prefix, label = parse_tag(tag)
        if prefix == "I" and label == current:
            continue
        if begin is not None:
            spans.append(Span(begin, i))
            labels.append(current)
        if prefix == OUTSIDE:
            begin, current = None, None
        else:
            begin, current = i, label

    if begin is not None:
        spans.append(Span(begin, len(tags)))
        labels.append(current)
    return spans, labels


def spans_to_bio(spans: Sequence[Span], labels: Sequence[int], length: int) -> List[str]:
    """
    Encode chunks as BIO tags, visiting them in the given order.

    A chunk's first token gets ``B-`` and the rest ``I-``, except when the
    chunk starts exactly where the previous chunk ended and has the same
    label: then its first token is ``I-`` too, so both read as one mention.
    Chunks of different labels are never merged. NOT_ENTITY chunks are
    skipped and do not count as the previous chunk.
    """
    if len(spans) != len(labels):
        raise ValueError("spans and labels must have the same length")
    tags = [OUTSIDE] * length
    previous: Optional[Tuple[Span, EntityLabel]] = None
    for span, label in zip(spans, labels):
        label = EntityLabel(label)
        if label == EntityLabel.NOT_ENTITY:
            continue
        if span.end > length:
            raise ValueError(f"Span {span} outside sentence of length {length}")
        code = LABEL_CODES[label]
        continues = previous is not None and previous[0].end == span.begin and previous[1] == label
        tags[span.begin] = f"{'I' if continues else 'B'}-{code}"
        for k in range(span.begin + 1, span.end):
            tags[k] = f"I-{code}"
        previous = (span, label)
    return tags


def _build_sentence(
    rows: List[List[str]],
    line_numbers: List[int],
    preamble: List[str],
    path: Optional[str],
) -> LabeledSentence:
    for row, lineno in zip(rows, line_numbers):
        try:
            parse_tag(row[-1])
        except FormatError as exc:
            raise FormatError(str(exc), path, lineno) from exc
    spans, labels = bio_to_spans([row[-1] for row in rows])
    return LabeledSentence(
        tokens=[row[0] for row in rows],
        spans=spans,
        labels=labels,
        rows=rows,
        preamble=preamble,
    )


def parse_conll_lines(lines: Iterable[str], path: Optional[str] = None) -> List[LabeledSentence]:
    sentences: List[LabeledSentence] = []
    rows: List[List[str]] = []
    line_numbers: List[int] = []
    preamble: List[str] = []
    num_columns: Optional[int] = None

    def flush() -> None:
        nonlocal rows, line_numbers, preamble
        if rows:
            sentences.append(_build_sentence(rows, line_numbers, preamble, path))
            rows, line_numbers, preamble = [], [], []

    for lineno, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        if not line.strip():
            flush()
            continue
        columns = line.split()
        if columns[0] == DOCSTART:
            flush()
            preamble.append(line)
            continue
        if len(columns) < 2:
            raise FormatError("Expected at least 2 columns (word and tag)", path, lineno)
        if num_columns is None:
            num_columns = len(columns)
        elif len(columns) != num_columns:
            raise FormatError(f"Expected {num_columns} columns, found {len(columns)}", path, lineno)
        rows.append(columns)
        line_numbers.append(lineno)
    flush()
    if preamble:
        # -DOCSTART- lines after the last sentence
        sentences.append(LabeledSentence(tokens=[], preamble=preamble))
    return sentences


def _decode_lines(stream: IO[bytes], path: str) -> Iterable[str]:
    for lineno, raw in enumerate(stream, start=1):
        try:
            yield raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FormatError(f"Invalid UTF-8: {exc.reason} at byte {exc.start}", path, lineno) from exc


def parse_conll_file(path: Union[str, Path]) -> List[LabeledSentence]:
    """Load every sentence of a CoNLL file with its gold chunks."""
    with Path(path).open("rb") as f:
        sentences = parse_conll_lines(_decode_lines(f, str(path)), path=str(path))
    logger.info(f"Loaded {len(sentences)} sentences from {path}")
    return sentences


def write_conll(
    sentences: Sequence[LabeledSentence],
    tags: Sequence[Sequence[str]],
    stream: IO[str],
) -> None:
    """Write sentences back out with their tag column replaced by ``tags``."""
    if len(sentences) != len(tags):
        raise ValueError("Need one tag sequence per sentence")
    for sentence, sentence_tags in zip(sentences, tags):
        if len(sentence_tags) != len(sentence.rows):
            raise ValueError("Tag sequence length does not match sentence length")
        for line in sentence.preamble:
            stream.write(line + "\n\n")
        for row, tag in zip(sentence.rows, sentence_tags):
            stream.write(" ".join(row[:-1] + [tag]) + "\n")
        if sentence.rows:
            stream.write("\n")
