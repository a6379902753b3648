"""
Named factories for pluggable components.

A model directory's ``word_features.json`` or a training config refers to
a word feature extractor by the name it registered under here.
"""

from typing import Any, Callable, Dict, List, TypeVar

from span_ner.config import ComponentConfig
from span_ner.errors import ConfigError

T = TypeVar("T")


class ComponentRegistry:
    """Maps component names to factories taking keyword parameters."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._factories: Dict[str, Callable[..., Any]] = {}

    def register(self, name: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
        def decorator(factory: Callable[..., T]) -> Callable[..., T]:
            if name in self._factories:
                raise ValueError(f"{self.kind} '{name}' already registered")
            self._factories[name] = factory
            return factory

        return decorator

    def names(self) -> List[str]:
        return sorted(self._factories)

    def get(self, name: str) -> Callable[..., Any]:
        if name not in self._factories:
            raise ConfigError(f"Unknown {self.kind} '{name}', expected one of {self.names()}")
        return self._factories[name]

    def create(self, config: ComponentConfig) -> Any:
        factory = self.get(config.name)
        try:
            return factory(**config.params)
        except TypeError as exc:
            raise ConfigError(f"Bad parameters for {self.kind} '{config.name}': {exc}") from exc


embedders = ComponentRegistry("word feature extractor")
