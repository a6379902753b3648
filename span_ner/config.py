import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple

from span_ner.errors import ConfigError

# Ranges enforced on command line options
C_RANGE: Tuple[float, float] = (1e-9, 1e9)
THREADS_RANGE: Tuple[int, int] = (1, 64)
CACHE_SIZE_RANGE: Tuple[int, int] = (0, 500)

# Environment variable naming the directory with the pretrained word features
MODELS_ENV_VAR = "SPAN_NER_MODELS"
WORD_FEATURES_FILE = "word_features.json"

DEFAULT_SEGMENTER_PATH = "trained_segmenter.dat"
DEFAULT_MODEL_PATH = "ner_model.dat"


def _check_positive_finite(name: str, value: float) -> None:
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        raise ConfigError(f"{name} must be a positive finite number, got {value!r}")


def _check_min(name: str, value: int, minimum: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
        raise ConfigError(f"{name} must be an integer >= {minimum}, got {value!r}")


def check_range(name: str, value: float, bounds: Tuple[float, float]) -> None:
    """Raise ConfigError unless bounds[0] <= value <= bounds[1]."""
    low, high = bounds
    if not (low <= value <= high):
        raise ConfigError(f"{name} must be in range [{low}, {high}], got {value!r}")


@dataclass
class ComponentConfig:
    """Generic component configuration."""

    name: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ChunkerConfig:
    """Knobs for the structural SVM that trains the chunker."""

    C: float = 15.0
    eps: float = 0.01
    num_threads: int = 4
    cache_size: int = 5
    max_iterations: int = 200

    def validate(self) -> "ChunkerConfig":
        _check_positive_finite("C", self.C)
        _check_positive_finite("eps", self.eps)
        _check_min("num_threads", self.num_threads, 1)
        _check_min("cache_size", self.cache_size, 0)
        _check_min("max_iterations", self.max_iterations, 1)
        return self


@dataclass
class ClassifierConfig:
    """Knobs for the multiclass linear SVM that types chunks."""

    C: float = 450.0
    eps: float = 0.001
    num_threads: int = 4
    max_iter: int = 10000
    random_state: Optional[int] = 0

    def validate(self) -> "ClassifierConfig":
        _check_positive_finite("C", self.C)
        _check_positive_finite("eps", self.eps)
        _check_min("num_threads", self.num_threads, 1)
        _check_min("max_iter", self.max_iter, 1)
        return self


@dataclass
class TrainingConfig:
    """Top-level training configuration."""

    embedder: ComponentConfig = field(default_factory=lambda: ComponentConfig(name="hashing"))
    chunker: ChunkerConfig = field(default_factory=ChunkerConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)

    def validate(self) -> "TrainingConfig":
        self.chunker.validate()
        self.classifier.validate()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "TrainingConfig":
        embedder = data.get("embedder") or {"name": "hashing"}
        try:
            config = TrainingConfig(
                embedder=ComponentConfig(name=embedder["name"], params=embedder.get("params", {})),
                chunker=ChunkerConfig(**(data.get("chunker") or {})),
                classifier=ClassifierConfig(**(data.get("classifier") or {})),
            )
        except (KeyError, TypeError) as exc:
            raise ConfigError(f"Invalid training config: {exc}") from exc
        return config.validate()
