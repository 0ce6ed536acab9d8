"""Decoders turn token strings back into text."""

from __future__ import annotations

from typing import Protocol

from subtok.pretokenize.byte_level import ByteLevel
from subtok.utils.registry import Registry


DECODERS = Registry("decoder")

_CLEANUPS = (
    (" .", "."),
    (" ?", "?"),
    (" !", "!"),
    (" ,", ","),
    (" ' ", "'"),
    (" n't", "n't"),
    (" 'm", "'m"),
    (" 's", "'s"),
    (" 've", "'ve"),
    (" 're", "'re"),
)


class Decoder(Protocol):
    def decode(self, tokens: list[str]) -> str: ...


def cleanup_tokenization(text: str) -> str:
    for src, dst in _CLEANUPS:
        text = text.replace(src, dst)
    return text


@DECODERS.register("wordpiece")
class WordPieceDecoder:
    def __init__(self, prefix: str = "##", cleanup: bool = True) -> None:
        self.prefix = prefix
        self.cleanup = cleanup

    def decode(self, tokens: list[str]) -> str:
        text = " ".join(tokens).replace(" " + self.prefix, "")
        if text.startswith(self.prefix):
            text = text[len(self.prefix):]
        if self.cleanup:
            text = cleanup_tokenization(text)
        return text


@DECODERS.register("byte_level")
class ByteLevelDecoder:
    def decode(self, tokens: list[str]) -> str:
        return ByteLevel.decode(tokens)


@DECODERS.register("bpe")
class BPEDecoder:
    """End-of-word suffixes become spaces; the last one is dropped."""

    def __init__(self, suffix: str = "</w>") -> None:
        self.suffix = suffix

    def decode(self, tokens: list[str]) -> str:
        last = len(tokens) - 1
        return "".join(t.replace(self.suffix, "" if i == last else " ") for i, t in enumerate(tokens))
