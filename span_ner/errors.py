"""Exception types raised by span_ner."""

from typing import Optional


class FormatError(ValueError):
    """Malformed corpus file or model stream."""

    def __init__(self, message: str, path: Optional[str] = None, line: Optional[int] = None):
        self.path = path
        self.line = line
        location = ""
        if path is not None:
            location = f"{path}:{line}: " if line is not None else f"{path}: "
        elif line is not None:
            location = f"line {line}: "
        super().__init__(f"{location}{message}")


class ModelFormatError(FormatError):
    """Model stream is truncated, corrupt or from an incompatible version."""


class ConfigError(ValueError):
    """Configuration value outside its allowed range."""


class HandleError(RuntimeError):
    """Boundary API called with something that is not a live handle."""


class HandleReleasedError(HandleError):
    """Handle was already released."""
