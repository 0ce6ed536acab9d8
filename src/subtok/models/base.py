"""Shared model types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from subtok.utils.registry import Registry


MODELS = Registry("model")


@dataclass(frozen=True)
class Token:
    id: int
    value: str
    offsets: tuple[int, int]

    def shifted(self, by: int) -> "Token":
        return Token(self.id, self.value, (self.offsets[0] + by, self.offsets[1] + by))


class Model(Protocol):
    unk_token: Optional[str]

    def tokenize(self, sequence: str) -> list[Token]: ...

    def token_to_id(self, token: str) -> Optional[int]: ...

    def id_to_token(self, id: int) -> Optional[str]: ...

    def get_vocab(self) -> dict[str, int]: ...

    def get_vocab_size(self) -> int: ...

    def save(self, directory: str, prefix: Optional[str] = None) -> list[str]: ...
