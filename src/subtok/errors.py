"""Error types raised by the tokenization pipeline."""

from __future__ import annotations

from typing import Any, Optional


class TokenizerError(Exception):
    """Base class for every error raised by subtok."""

    # input position within a batch, when known
    index: Optional[int] = None


class FormatError(TokenizerError, ValueError):
    """A vocab, merges or special-token definition could not be parsed."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class ConfigError(TokenizerError, ValueError):
    """Options that conflict or cannot be satisfied."""


class InputError(TokenizerError, ValueError):
    """An operation received input it cannot process."""

    def __init__(self, message: str, index: Optional[int] = None) -> None:
        if index is not None:
            message = f"input {index}: {message}"
        super().__init__(message)
        self.index = index


class StateError(TokenizerError, RuntimeError):
    """Internal invariant violated. Always a programming error."""

    def __init__(self, message: str, index: Optional[int] = None) -> None:
        if index is not None:
            message = f"input {index}: {message}"
        super().__init__(message)
        self.index = index


class IngestError(TokenizerError, OSError):
    """Training files could not be read."""

    def __init__(self, message: str, path: str, line: Optional[int] = None) -> None:
        location = path if line is None else f"{path}:{line}"
        super().__init__(f"{location}: {message}")
        self.path = path
        self.line = line


class BatchCancelled(TokenizerError):
    """Batch encoding stopped early; ``encodings`` holds the completed prefix."""

    def __init__(self, encodings: list[Any], total: int) -> None:
        super().__init__(f"batch cancelled after {len(encodings)} of {total} inputs")
        self.encodings = encodings
        self.total = total
