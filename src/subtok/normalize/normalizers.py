"""Normalizers. Each one rewrites a NormalizedString in place and returns it."""

from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol

from subtok.normalize.chars import is_chinese_char, is_control, is_whitespace
from subtok.normalize.normalized import NormalizedString
from subtok.utils.registry import Registry


NORMALIZERS = Registry("normalizer")


class Normalizer(Protocol):
    def normalize(self, normalized: NormalizedString) -> NormalizedString: ...


@NORMALIZERS.register("nfd")
class NFD:
    def normalize(self, normalized: NormalizedString) -> NormalizedString:
        normalized.nfd()
        return normalized


@NORMALIZERS.register("nfc")
class NFC:
    def normalize(self, normalized: NormalizedString) -> NormalizedString:
        normalized.nfc()
        return normalized


@NORMALIZERS.register("nfkd")
class NFKD:
    def normalize(self, normalized: NormalizedString) -> NormalizedString:
        normalized.nfkd()
        return normalized


@NORMALIZERS.register("nfkc")
class NFKC:
    def normalize(self, normalized: NormalizedString) -> NormalizedString:
        normalized.nfkc()
        return normalized


@NORMALIZERS.register("lowercase")
class Lowercase:
    def normalize(self, normalized: NormalizedString) -> NormalizedString:
        normalized.lowercase()
        return normalized


@NORMALIZERS.register("strip_accents")
class StripAccents:
    """NFD, then drop non-spacing marks."""

    def normalize(self, normalized: NormalizedString) -> NormalizedString:
        normalized.remove_accents()
        return normalized


@NORMALIZERS.register("strip")
class Strip:
    def __init__(self, left: bool = True, right: bool = True) -> None:
        self.left = left
        self.right = right

    def normalize(self, normalized: NormalizedString) -> NormalizedString:
        if self.left and self.right:
            normalized.strip()
        elif self.left:
            normalized.lstrip()
        elif self.right:
            normalized.rstrip()
        return normalized


@NORMALIZERS.register("bert")
class BertNormalizer:
    """BERT text cleanup: clean text, pad CJK, lowercase, strip accents.

    ``strip_accents=None`` follows ``lowercase``.
    """

    def __init__(
        self,
        clean_text: bool = True,
        handle_chinese_chars: bool = True,
        strip_accents: Optional[bool] = None,
        lowercase: bool = True,
    ) -> None:
        self.clean_text = clean_text
        self.handle_chinese_chars = handle_chinese_chars
        self.strip_accents = strip_accents
        self.lowercase = lowercase

    def normalize(self, normalized: NormalizedString) -> NormalizedString:
        if self.clean_text:
            _clean_text(normalized)
        if self.handle_chinese_chars:
            _pad_chinese_chars(normalized)
        if self.lowercase:
            normalized.lowercase()
        strip = self.lowercase if self.strip_accents is None else self.strip_accents
        if strip:
            normalized.remove_accents()
        return normalized


@NORMALIZERS.register("default")
class DefaultNormalizer:
    """Lowercase and collapse whitespace runs into one space."""

    def __init__(self, lowercase: bool = True, collapse_whitespace: bool = True) -> None:
        self.lowercase = lowercase
        self.collapse_whitespace = collapse_whitespace

    def normalize(self, normalized: NormalizedString) -> NormalizedString:
        if self.lowercase:
            normalized.lowercase()
        if self.collapse_whitespace:
            _collapse_whitespace(normalized)
        return normalized


@NORMALIZERS.register("sequence")
class Sequence:
    def __init__(self, normalizers: Iterable[Any]) -> None:
        self.normalizers = [
            NORMALIZERS.build(n) if isinstance(n, dict) else n for n in normalizers
        ]

    def normalize(self, normalized: NormalizedString) -> NormalizedString:
        for n in self.normalizers:
            normalized = n.normalize(normalized)
        return normalized


def _clean_text(normalized: NormalizedString) -> None:
    text = normalized.normalized
    changes: list[tuple[str, int]] = []
    pending = 0
    for i, ch in enumerate(text):
        if ch == "\x00" or ch == "\ufffd" or is_control(ch):
            pending += 1
            continue
        # CRLF becomes a single space
        if ch == "\r" and i + 1 < len(text) and text[i + 1] == "\n":
            pending += 1
            continue
        changes.append((" " if is_whitespace(ch) else ch, -pending))
        pending = 0
    normalized.transform(changes)


def _pad_chinese_chars(normalized: NormalizedString) -> None:
    text = normalized.normalized
    if not any(is_chinese_char(ch) for ch in text):
        return
    changes: list[tuple[str, int]] = []
    for i, ch in enumerate(text):
        if not is_chinese_char(ch):
            changes.append((ch, 0))
            continue
        if not changes or changes[-1][0] != " ":
            changes.append((" ", 1))
        changes.append((ch, 0))
        if i + 1 >= len(text) or text[i + 1] != " ":
            changes.append((" ", 1))
    normalized.transform(changes)


def _collapse_whitespace(normalized: NormalizedString) -> None:
    text = normalized.normalized
    changes: list[tuple[str, int]] = []
    run = 0
    for i, ch in enumerate(text):
        if ch.isspace():
            run += 1
            if i + 1 < len(text) and text[i + 1].isspace():
                continue
            # the last space of a run stands for the whole run
            changes.append((" ", -(run - 1)))
            run = 0
        else:
            changes.append((ch, 0))
    normalized.transform(changes)
