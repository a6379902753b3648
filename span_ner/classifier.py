"""
Chunk typing stage.

A multiclass linear SVM (one-vs-rest LinearSVC, one binary problem per
label trained in parallel) assigns each chunk an entity label or
NOT_ENTITY.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
from sklearn.metrics import confusion_matrix
from sklearn.multiclass import OneVsRestClassifier
from sklearn.svm import LinearSVC
from sklearn.utils import shuffle

from span_ner.config import ClassifierConfig
from span_ner.types import EntityLabel

logger = logging.getLogger(__name__)

ALL_LABELS = list(EntityLabel)


class EntityClassifier:
    """Trained chunk classifier. Prediction never mutates the estimator."""

    def __init__(self, estimator: OneVsRestClassifier, num_dimensions: int) -> None:
        self.estimator = estimator
        self.num_dimensions = num_dimensions

    def predict(self, features: np.ndarray) -> List[EntityLabel]:
        """Label for every row of a ``(num_chunks, num_dimensions)`` matrix."""
        if len(features) == 0:
            return []
        features = np.atleast_2d(features)
        if features.shape[1] != self.num_dimensions:
            raise ValueError(
                f"Expected {self.num_dimensions} chunk features, got {features.shape[1]}"
            )
        return [EntityLabel(int(label)) for label in self.estimator.predict(features)]

    def predict_one(self, vector: np.ndarray) -> EntityLabel:
        return self.predict(np.atleast_2d(vector))[0]


class ClassifierTrainer:
    """Fits an EntityClassifier on reconciled chunk samples."""

    def __init__(self, config: Optional[ClassifierConfig] = None) -> None:
        self.config = (config or ClassifierConfig()).validate()

    def train(self, features: np.ndarray, labels: Sequence[int]) -> EntityClassifier:
        cfg = self.config
        features = np.asarray(features, dtype=np.float64)
        labels = np.asarray(labels, dtype=int)
        if len(features) != len(labels):
            raise ValueError("Need one label per sample")
        if len(np.unique(labels)) < 2:
            raise ValueError("Classifier training needs samples of at least two labels")

        # Sample order must not bias the optimizer
        features, labels = shuffle(features, labels, random_state=cfg.random_state)

        logger.info(
            f"Training classifier on {len(labels)} samples "
            f"(C={cfg.C}, eps={cfg.eps}, threads={cfg.num_threads})"
        )
        estimator = OneVsRestClassifier(
            LinearSVC(C=cfg.C, tol=cfg.eps, max_iter=cfg.max_iter, random_state=cfg.random_state),
            n_jobs=cfg.num_threads,
        )
        estimator.fit(features, labels)
        logger.info(f"Classifier trained with classes {[int(c) for c in estimator.classes_]}")
        return EntityClassifier(estimator, features.shape[1])


@dataclass
class ConfusionReport:
    """Rows are true labels, columns predicted labels, both in EntityLabel order."""

    matrix: np.ndarray

    @property
    def accuracy(self) -> Optional[float]:
        total = self.matrix.sum()
        if total == 0:
            return None
        return float(np.trace(self.matrix) / total)


def evaluate_classifier(
    classifier: EntityClassifier,
    features: np.ndarray,
    labels: Sequence[int],
) -> ConfusionReport:
    predicted = [int(label) for label in classifier.predict(features)]
    matrix = confusion_matrix(
        [int(label) for label in labels],
        predicted,
        labels=[int(label) for label in ALL_LABELS],
    )
    return ConfusionReport(matrix)
