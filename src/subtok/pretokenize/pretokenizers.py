"""Splitting pre-tokenizers.

Splitters work on code-point spans of the normalized text; ``pre_tokenize``
turns those spans into pre-tokens with byte offsets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Protocol

from subtok.normalize.chars import is_punctuation, is_whitespace
from subtok.normalize.normalized import NormalizedString
from subtok.utils.registry import Registry


PRE_TOKENIZERS = Registry("pre_tokenizer")

Span = tuple[int, int]


@dataclass(frozen=True)
class PreToken:
    value: str
    offsets: tuple[int, int]


class PreTokenizer(Protocol):
    def pre_tokenize(self, normalized: NormalizedString) -> list[PreToken]: ...


def spans_to_pretokens(normalized: NormalizedString, spans: Iterable[Span]) -> list[PreToken]:
    text = normalized.normalized
    return [
        PreToken(text[s:e], (normalized.char_to_byte(s), normalized.char_to_byte(e)))
        for s, e in spans
    ]


class _Splitter:
    def split(self, text: str) -> list[Span]:
        raise NotImplementedError

    def pre_tokenize(self, normalized: NormalizedString) -> list[PreToken]:
        return spans_to_pretokens(normalized, self.split(normalized.normalized))


@PRE_TOKENIZERS.register("whitespace_split", "whitespace")
class WhitespaceSplit(_Splitter):
    """Split on whitespace runs, dropping the whitespace."""

    def split(self, text: str) -> list[Span]:
        spans: list[Span] = []
        start = -1
        for i, ch in enumerate(text):
            if is_whitespace(ch) or ch.isspace():
                if start >= 0:
                    spans.append((start, i))
                    start = -1
            elif start < 0:
                start = i
        if start >= 0:
            spans.append((start, len(text)))
        return spans


@PRE_TOKENIZERS.register("punctuation")
class Punctuation(_Splitter):
    """Isolate every punctuation code point as its own pre-token."""

    def split(self, text: str) -> list[Span]:
        spans: list[Span] = []
        start = 0
        for i, ch in enumerate(text):
            if is_punctuation(ch):
                if start < i:
                    spans.append((start, i))
                spans.append((i, i + 1))
                start = i + 1
        if start < len(text):
            spans.append((start, len(text)))
        return spans


@PRE_TOKENIZERS.register("sequence")
class Sequence(_Splitter):
    """Apply splitters in order, each one to the pieces of the previous."""

    def __init__(self, pre_tokenizers: Iterable[Any]) -> None:
        self.pre_tokenizers = [
            PRE_TOKENIZERS.build(p) if isinstance(p, dict) else p for p in pre_tokenizers
        ]
        for p in self.pre_tokenizers:
            if not isinstance(p, _Splitter):
                raise TypeError(f"{type(p).__name__} cannot be chained in a sequence")

    def split(self, text: str) -> list[Span]:
        spans: list[Span] = [(0, len(text))] if text else []
        for splitter in self.pre_tokenizers:
            refined: list[Span] = []
            for s, e in spans:
                refined.extend((s + a, s + b) for a, b in splitter.split(text[s:e]))
            spans = refined
        return spans


@PRE_TOKENIZERS.register("bert")
class BertPreTokenizer(Sequence):
    def __init__(self) -> None:
        super().__init__([WhitespaceSplit(), Punctuation()])
