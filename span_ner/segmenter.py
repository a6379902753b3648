"""
Sequence segmentation model and its structural SVM trainer.

A sentence is segmented by labelling every token Outside/Begin/Inside
with a linear chain model and reading chunks off the decoded tag path.
Decoding is constrained Viterbi: ``I`` may not start a sentence or follow
``O``, so every decoded path is a valid segmentation.

Training minimises ``0.5 * |w|^2 + C * mean_i max_y [loss(y_i, y) + w.psi(x_i, y) - w.psi(x_i, y_i)]``
with Hamming loss, using projected subgradient steps (Pegasos) and weight
averaging. The loss-augmented decodes of a pass run on a thread pool. A
bounded per-sample cache of previously found violating labellings is
replayed between oracle passes, so cheap extra steps are taken without
decoding again. Training stops when the objective changes by less than
``eps`` relative to its previous value.
"""

import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Deque, List, Optional, Sequence, Tuple

import numpy as np

from span_ner.config import ChunkerConfig
from span_ner.types import Span

logger = logging.getLogger(__name__)

TAG_OUTSIDE = 0
TAG_BEGIN = 1
TAG_INSIDE = 2
NUM_TAGS = 3

_TRANSITION_MASK = np.zeros((NUM_TAGS, NUM_TAGS))
_TRANSITION_MASK[TAG_OUTSIDE, TAG_INSIDE] = -np.inf
_START_MASK = np.zeros(NUM_TAGS)
_START_MASK[TAG_INSIDE] = -np.inf


def spans_to_tags(spans: Sequence[Span], length: int) -> np.ndarray:
    tags = np.full(length, TAG_OUTSIDE, dtype=np.intp)
    for span in spans:
        tags[span.begin] = TAG_BEGIN
        tags[span.begin + 1:span.end] = TAG_INSIDE
    return tags


def tags_to_spans(tags: Sequence[int]) -> List[Span]:
    spans: List[Span] = []
    begin: Optional[int] = None
    for i, tag in enumerate(tags):
        if tag == TAG_BEGIN or (tag == TAG_INSIDE and begin is None):
            if begin is not None:
                spans.append(Span(begin, i))
            begin = i
        elif tag == TAG_OUTSIDE and begin is not None:
            spans.append(Span(begin, i))
            begin = None
    if begin is not None:
        spans.append(Span(begin, len(tags)))
    return spans


def viterbi(emissions: np.ndarray, transition: np.ndarray, start: np.ndarray) -> np.ndarray:
    """Highest scoring valid tag path for an ``(n, NUM_TAGS)`` emission matrix."""
    n = emissions.shape[0]
    if n == 0:
        return np.zeros(0, dtype=np.intp)
    transition = transition + _TRANSITION_MASK
    score = start + _START_MASK + emissions[0]
    backpointers = np.zeros((n, NUM_TAGS), dtype=np.intp)
    for t in range(1, n):
        candidates = score[:, None] + transition
        backpointers[t] = candidates.argmax(axis=0)
        score = candidates.max(axis=0) + emissions[t]
    path = np.empty(n, dtype=np.intp)
    path[-1] = score.argmax()
    for t in range(n - 1, 0, -1):
        path[t - 1] = backpointers[t, path[t]]
    return path


@dataclass
class SegmenterWeights:
    """Parameters of the linear chain model (also used for joint feature vectors)."""

    emission: np.ndarray  # (NUM_TAGS, dim)
    bias: np.ndarray  # (NUM_TAGS,)
    transition: np.ndarray  # (NUM_TAGS, NUM_TAGS), [previous, current]
    start: np.ndarray  # (NUM_TAGS,)

    @classmethod
    def zeros(cls, dim: int) -> "SegmenterWeights":
        return cls(
            emission=np.zeros((NUM_TAGS, dim)),
            bias=np.zeros(NUM_TAGS),
            transition=np.zeros((NUM_TAGS, NUM_TAGS)),
            start=np.zeros(NUM_TAGS),
        )

    @classmethod
    def joint_feature(cls, features: np.ndarray, tags: np.ndarray) -> "SegmenterWeights":
        psi = cls.zeros(features.shape[1])
        np.add.at(psi.emission, tags, features)
        psi.bias += np.bincount(tags, minlength=NUM_TAGS)
        np.add.at(psi.transition, (tags[:-1], tags[1:]), 1.0)
        psi.start[tags[0]] = 1.0
        return psi

    @property
    def dimensions(self) -> int:
        return self.emission.shape[1]

    def _arrays(self) -> Tuple[np.ndarray, ...]:
        return (self.emission, self.bias, self.transition, self.start)

    def copy(self) -> "SegmenterWeights":
        return SegmenterWeights(*(a.copy() for a in self._arrays()))

    def add_(self, other: "SegmenterWeights", factor: float = 1.0) -> "SegmenterWeights":
        for mine, theirs in zip(self._arrays(), other._arrays()):
            mine += factor * theirs
        return self

    def scale_(self, factor: float) -> "SegmenterWeights":
        for a in self._arrays():
            a *= factor
        return self

    def squared_norm(self) -> float:
        return float(sum(np.sum(a * a) for a in self._arrays()))

    def emissions(self, features: np.ndarray) -> np.ndarray:
        return features @ self.emission.T + self.bias

    def score(self, features: np.ndarray, tags: np.ndarray) -> float:
        total = float(np.sum(self.emissions(features)[np.arange(len(tags)), tags]))
        total += float(np.sum(self.transition[tags[:-1], tags[1:]]))
        return total + float(self.start[tags[0]])


class SequenceSegmenter:
    """Trained chunker: proposes non-overlapping chunks for a sentence."""

    def __init__(self, weights: SegmenterWeights) -> None:
        self.weights = weights

    @property
    def num_dimensions(self) -> int:
        return self.weights.dimensions

    def tag(self, features: np.ndarray) -> np.ndarray:
        if len(features) and features.shape[1] != self.num_dimensions:
            raise ValueError(
                f"Expected {self.num_dimensions} features per token, got {features.shape[1]}"
            )
        w = self.weights
        return viterbi(w.emissions(features), w.transition, w.start)

    def __call__(self, features: np.ndarray) -> List[Span]:
        return tags_to_spans(self.tag(features))


@dataclass
class _Sample:
    features: np.ndarray
    gold: np.ndarray
    gold_psi: SegmenterWeights


def _violation(weights: SegmenterWeights, sample: _Sample, tags: np.ndarray) -> float:
    loss = float(np.sum(tags != sample.gold))
    return loss + weights.score(sample.features, tags) - weights.score(sample.features, sample.gold)


def _separation_oracle(weights: SegmenterWeights, sample: _Sample) -> Tuple[np.ndarray, float]:
    """Most violating labelling under Hamming-loss-augmented scores."""
    emissions = weights.emissions(sample.features) + 1.0
    emissions[np.arange(len(sample.gold)), sample.gold] -= 1.0
    tags = viterbi(emissions, weights.transition, weights.start)
    return tags, _violation(weights, sample, tags)


class StructuralSegmenterTrainer:
    """Trains a SequenceSegmenter from per-token features and gold chunks."""

    def __init__(self, config: Optional[ChunkerConfig] = None) -> None:
        self.config = (config or ChunkerConfig()).validate()

    def train(
        self,
        samples: Sequence[np.ndarray],
        chunks: Sequence[Sequence[Span]],
    ) -> SequenceSegmenter:
        if len(samples) != len(chunks):
            raise ValueError("Need one chunk list per sample")
        data = [
            _Sample(x, gold, SegmenterWeights.joint_feature(x, gold))
            for x, gold in (
                (np.asarray(x, dtype=np.float64), spans_to_tags(spans, len(x)))
                for x, spans in zip(samples, chunks)
            )
            if len(x)
        ]
        if not data:
            raise ValueError("No non-empty training samples")
        dims = {s.features.shape[1] for s in data}
        if len(dims) != 1:
            raise ValueError(f"Samples have inconsistent feature dimensions: {sorted(dims)}")

        cfg = self.config
        lam = 1.0 / cfg.C
        radius = 1.0 / np.sqrt(lam)
        weights = SegmenterWeights.zeros(dims.pop())
        averaged = weights.copy()
        caches: List[Deque[np.ndarray]] = [deque(maxlen=cfg.cache_size) for _ in data]
        step = 0
        previous: Optional[float] = None

        def take_step(violators: List[Tuple[int, np.ndarray]]) -> None:
            nonlocal step
            step += 1
            gradient = weights.copy().scale_(lam)
            for i, tags in violators:
                gradient.add_(SegmenterWeights.joint_feature(data[i].features, tags), 1.0 / len(data))
                gradient.add_(data[i].gold_psi, -1.0 / len(data))
            weights.add_(gradient, -1.0 / (lam * step))
            norm = np.sqrt(weights.squared_norm())
            if norm > radius:
                weights.scale_(radius / norm)
            averaged.add_(weights.copy().add_(averaged, -1.0), 1.0 / step)

        logger.info(
            f"Training segmenter on {len(data)} sentences "
            f"(C={cfg.C}, eps={cfg.eps}, threads={cfg.num_threads}, cache={cfg.cache_size})"
        )
        with ThreadPoolExecutor(max_workers=cfg.num_threads) as pool:
            for iteration in range(1, cfg.max_iterations + 1):
                results = list(pool.map(partial(_separation_oracle, weights), data))
                risk = sum(max(v, 0.0) for _, v in results) / len(data)
                objective = 0.5 * lam * weights.squared_norm() + risk
                violators = [(i, tags) for i, (tags, v) in enumerate(results) if v > 0]
                logger.debug(
                    f"iteration {iteration}: objective={objective:.6f} risk={risk:.6f} "
                    f"violators={len(violators)}"
                )
                if not violators:
                    logger.info(f"All samples separated with margin after {iteration} iterations")
                    break
                if previous is not None and abs(previous - objective) <= cfg.eps * previous:
                    logger.info(f"Converged after {iteration} iterations (objective={objective:.6f})")
                    break
                previous = objective

                for i, tags in violators:
                    if cfg.cache_size and not any(np.array_equal(tags, c) for c in caches[i]):
                        caches[i].append(tags)
                take_step(violators)

                if cfg.cache_size:
                    cached = []
                    for i, cache in enumerate(caches):
                        if not cache:
                            continue
                        best = max(cache, key=lambda tags: _violation(weights, data[i], tags))
                        if _violation(weights, data[i], best) > 0:
                            cached.append((i, best))
                    if cached:
                        take_step(cached)
            else:
                logger.warning(f"Segmenter training stopped at max_iterations={cfg.max_iterations}")

        final = averaged if step else weights
        return SequenceSegmenter(final)
