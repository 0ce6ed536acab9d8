"""GPT-2 style byte-level pre-tokenization."""

from __future__ import annotations

from functools import lru_cache

import regex as re

from subtok.normalize.normalized import NormalizedString
from subtok.pretokenize.pretokenizers import PRE_TOKENIZERS, PreToken, spans_to_pretokens


SPLIT_PATTERN = re.compile(
    r"""'s|'t|'re|'ve|'m|'ll|'d| ?\p{L}+| ?\p{N}+| ?[^\s\p{L}\p{N}]+|\s+(?!\S)|\s+"""
)


@lru_cache()
def bytes_to_unicode() -> dict[int, str]:
    """Map every byte to a printable code point.

    Printable Latin-1 bytes map to themselves; the rest are shifted into
    U+0100 and up, in byte order.
    """
    bs = (
        list(range(ord("!"), ord("~") + 1))
        + list(range(ord("¡"), ord("¬") + 1))
        + list(range(ord("®"), ord("ÿ") + 1))
    )
    cs = bs[:]
    n = 0
    for b in range(256):
        if b not in bs:
            bs.append(b)
            cs.append(256 + n)
            n += 1
    return dict(zip(bs, (chr(c) for c in cs)))


@lru_cache()
def unicode_to_bytes() -> dict[str, int]:
    return {v: k for k, v in bytes_to_unicode().items()}


@PRE_TOKENIZERS.register("byte_level")
class ByteLevel:
    """Split with the GPT-2 pattern, then rewrite every byte as a visible code point.

    The normalized string itself is rewritten, so pre-token offsets are byte
    ranges of the byte-level text.
    """

    def __init__(self, add_prefix_space: bool = True, use_regex: bool = True) -> None:
        self.add_prefix_space = add_prefix_space
        self.use_regex = use_regex

    @staticmethod
    def alphabet() -> list[str]:
        return sorted(bytes_to_unicode().values())

    def pre_tokenize(self, normalized: NormalizedString) -> list[PreToken]:
        text = normalized.normalized
        if self.add_prefix_space and text and not text.startswith(" "):
            normalized.transform([(" ", 1)] + [(ch, 0) for ch in text])
            text = normalized.normalized
        if self.use_regex:
            spans = [m.span() for m in SPLIT_PATTERN.finditer(text)]
        else:
            spans = [(0, len(text))] if text else []

        table = bytes_to_unicode()
        changes: list[tuple[str, int]] = []
        # positions[i] is where original char i lands in the byte-level text
        positions = [0]
        for ch in text:
            raw = ch.encode("utf-8", errors="surrogatepass")
            changes.append((table[raw[0]], 0))
            changes.extend((table[b], 1) for b in raw[1:])
            positions.append(positions[-1] + len(raw))
        normalized.transform(changes)
        return spans_to_pretokens(normalized, [(positions[s], positions[e]) for s, e in spans])

    @staticmethod
    def decode(tokens: list[str]) -> str:
        """Reverse the byte table and decode the bytes as UTF-8."""
        reverse = unicode_to_bytes()
        data = bytearray()
        for ch in "".join(tokens):
            if ch in reverse:
                data.append(reverse[ch])
            else:
                data.extend(ch.encode("utf-8"))
        return data.decode("utf-8", errors="replace")
