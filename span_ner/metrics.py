"""
Precision/recall scoring for chunks and typed chunks.

A ratio with a zero denominator is undefined and reported as ``None``,
never as 0 or NaN.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from span_ner.reconcile import label_for_span
from span_ner.types import EntityLabel, Span


def _ratio(numerator: float, denominator: float) -> Optional[float]:
    if denominator == 0:
        return None
    return numerator / denominator


@dataclass(frozen=True)
class Score:
    """Counts behind a precision/recall/F1 triple."""

    true_positives: int = 0
    predicted: int = 0
    expected: int = 0

    @property
    def precision(self) -> Optional[float]:
        return _ratio(self.true_positives, self.predicted)

    @property
    def recall(self) -> Optional[float]:
        return _ratio(self.true_positives, self.expected)

    @property
    def f1(self) -> Optional[float]:
        p, r = self.precision, self.recall
        if p is None or r is None:
            return None
        return _ratio(2 * p * r, p + r)

    @property
    def is_defined(self) -> bool:
        return self.f1 is not None

    def __add__(self, other: "Score") -> "Score":
        return Score(
            self.true_positives + other.true_positives,
            self.predicted + other.predicted,
            self.expected + other.expected,
        )

    def summary(self) -> str:
        def fmt(value: Optional[float]) -> str:
            return "undefined" if value is None else f"{value:.4f}"

        return f"precision: {fmt(self.precision)}, recall: {fmt(self.recall)}, f1: {fmt(self.f1)}"


def score_spans(
    predicted: Iterable[Sequence[Span]],
    gold: Iterable[Sequence[Span]],
) -> Score:
    """Exact-match chunk scoring over parallel per-sentence chunk lists."""
    total = Score()
    for pred_spans, gold_spans in zip(predicted, gold):
        pred_set, gold_set = set(pred_spans), set(gold_spans)
        total = total + Score(len(pred_set & gold_set), len(pred_set), len(gold_set))
    return total


@dataclass
class LabelEvaluation:
    """Per-label and micro-averaged scores."""

    per_label: Dict[EntityLabel, Score] = field(default_factory=dict)

    @property
    def total(self) -> Score:
        total = Score()
        for score in self.per_label.values():
            total = total + score
        return total


def score_labels(
    predicted: Iterable[Tuple[Sequence[Span], Sequence[int]]],
    gold: Iterable[Tuple[Sequence[Span], Sequence[int]]],
    labels: Sequence[EntityLabel],
) -> LabelEvaluation:
    """
    Score typed detections against gold chunks, sentence by sentence.

    A detection counts for its predicted label; it is a true positive when
    its chunk exactly matches a gold chunk of that label. Every gold chunk
    counts as expected for its own label.
    """
    true_positives = {label: 0 for label in labels}
    detections = {label: 0 for label in labels}
    targets = {label: 0 for label in labels}

    for (pred_spans, pred_labels), (gold_spans, gold_labels) in zip(predicted, gold):
        for span, label in zip(pred_spans, pred_labels):
            label = EntityLabel(label)
            if label not in detections:
                continue
            detections[label] += 1
            if label == label_for_span(gold_spans, gold_labels, span):
                true_positives[label] += 1
        for label in gold_labels:
            label = EntityLabel(label)
            if label in targets:
                targets[label] += 1

    return LabelEvaluation(
        per_label={
            label: Score(true_positives[label], detections[label], targets[label])
            for label in labels
        }
    )


def format_label_evaluation(evaluation: LabelEvaluation, names: Sequence[str]) -> List[str]:
    lines = []
    for label, score in evaluation.per_label.items():
        lines.append(f"label: {int(label)} ({names[label]})")
        lines.append(f"   {score.summary()}")
    lines.append(f"total: {evaluation.total.summary()}")
    return lines
