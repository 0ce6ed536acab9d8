"""Normalized string with alignments back to the original text.

Every code point of the normalized text carries an ``(orig_start, orig_end)``
range of original code-point positions. All normalizers rewrite the text
through :meth:`NormalizedString.transform`, which re-emits the alignment table
from a stream of ``(code_point, change)`` items:

* ``change == 1``: the code point was inserted,
* ``change == 0``: the code point replaces the current one at this position,
* ``change == -N``: the code point replaces the current one and absorbs the
  ``N`` positions removed right before it.
"""

from __future__ import annotations

import unicodedata
from bisect import bisect_left
from typing import Callable, Iterable, Optional

from subtok.errors import StateError
from subtok.normalize.chars import is_nonspacing_mark


Alignment = tuple[int, int]

FORMS = ("NFC", "NFD", "NFKC", "NFKD")


def utf8_len(ch: str) -> int:
    cp = ord(ch)
    if cp < 0x80:
        return 1
    if cp < 0x800:
        return 2
    if cp < 0x10000:
        return 3
    return 4


class NormalizedString:
    def __init__(self, original: str) -> None:
        self.original = original
        self.normalized = original
        self.alignments: list[Alignment] = [(i, i + 1) for i in range(len(original))]
        self._byte_starts: Optional[list[int]] = None

    @classmethod
    def from_parts(cls, original: str, normalized: str, alignments: list[Alignment]) -> "NormalizedString":
        if len(alignments) != len(normalized):
            raise StateError(
                f"alignments length {len(alignments)} != normalized length {len(normalized)}"
            )
        out = cls(original)
        out.normalized = normalized
        out.alignments = list(alignments)
        return out

    def copy(self) -> "NormalizedString":
        return NormalizedString.from_parts(self.original, self.normalized, self.alignments)

    def __len__(self) -> int:
        return len(self.normalized)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NormalizedString):
            return NotImplemented
        return (
            self.original == other.original
            and self.normalized == other.normalized
            and self.alignments == other.alignments
        )

    def __repr__(self) -> str:
        return f"NormalizedString(original={self.original!r}, normalized={self.normalized!r})"

    # -- core rewrite ---------------------------------------------------

    def transform(self, changes: Iterable[tuple[str, int]], initial_offset: int = 0) -> None:
        """Replace the normalized text, recomputing alignments from ``changes``.

        ``initial_offset`` counts positions removed at the very beginning; it is
        folded into the change of the first emitted code point.
        """
        old = self.alignments
        n_old = len(old)
        chars: list[str] = []
        aligns: list[Alignment] = []
        offset = 0
        remaining = initial_offset
        for k, (ch, change) in enumerate(changes):
            if remaining:
                change -= remaining
                remaining = 0
            change = min(change, 1)
            idx = k - offset
            if change > 0:
                if idx < 1:
                    align = (0, 0)
                elif idx - 1 < n_old:
                    align = old[idx - 1]
                else:
                    raise StateError(f"inserted code point at {k} has no preimage (index {idx})")
                offset += 1
            elif change == 0:
                if not 0 <= idx < n_old:
                    raise StateError(f"code point at {k} maps outside alignments (index {idx})")
                align = old[idx]
            else:
                stop = idx - change + 1
                if idx < 0 or stop > n_old:
                    raise StateError(f"removal of {-change} before {k} escapes alignments")
                window = old[idx:stop]
                align = (min(a[0] for a in window), max(a[1] for a in window))
                offset += change
            chars.append(ch)
            aligns.append(align)
        self.normalized = "".join(chars)
        self.alignments = aligns
        self._byte_starts = None

    def map(self, fn: Callable[[str], str]) -> None:
        """Rewrite each code point into zero or more code points.

        Extra output code points count as insertions; an empty output removes
        the code point and the next surviving one absorbs it.
        """
        self.transform(_expand(self.normalized, fn))

    def filter(self, keep: Callable[[str], bool]) -> None:
        self.map(lambda ch: ch if keep(ch) else "")

    # -- unicode operations ---------------------------------------------

    def nfd(self) -> None:
        self._normalize("NFD")

    def nfc(self) -> None:
        self._normalize("NFC")

    def nfkd(self) -> None:
        self._normalize("NFKD")

    def nfkc(self) -> None:
        self._normalize("NFKC")

    def lowercase(self) -> None:
        self.map(str.lower)

    def remove_accents(self) -> None:
        self.nfd()
        self.filter(lambda ch: not is_nonspacing_mark(ch))

    def lstrip(self) -> None:
        self._strip(left=True, right=False)

    def rstrip(self) -> None:
        self._strip(left=False, right=True)

    def strip(self) -> None:
        self._strip(left=True, right=True)

    def _strip(self, left: bool, right: bool) -> None:
        text = self.normalized
        start, end = 0, len(text)
        if left:
            while start < end and text[start].isspace():
                start += 1
        if right:
            while end > start and text[end - 1].isspace():
                end -= 1
        if start == 0 and end == len(text):
            return
        changes = [(ch, 0) for ch in text[start:end]]
        self.transform(changes, initial_offset=start)

    def _normalize(self, form: str) -> None:
        if form not in FORMS:
            raise ValueError(f"Unknown normalization form: {form}")
        text = self.normalized
        if unicodedata.is_normalized(form, text):
            return
        self.transform(_form_changes(text, form))

    # -- offsets ----------------------------------------------------------

    def _starts(self) -> list[int]:
        if self._byte_starts is None:
            starts = [0]
            total = 0
            for ch in self.normalized:
                total += utf8_len(ch)
                starts.append(total)
            self._byte_starts = starts
        return self._byte_starts

    @property
    def byte_len(self) -> int:
        return self._starts()[-1]

    def char_to_byte(self, index: int) -> int:
        return self._starts()[index]

    def byte_to_char(self, offset: int) -> int:
        starts = self._starts()
        i = bisect_left(starts, offset)
        if i >= len(starts) or starts[i] != offset:
            raise StateError(f"byte offset {offset} is not on a code point boundary")
        return i

    def original_range(self, start: int, end: int) -> Optional[Alignment]:
        """Original code-point range for the normalized range ``[start, end)``."""
        if start < 0 or end > len(self.alignments) or start > end:
            return None
        if start == end:
            if start < len(self.alignments):
                pos = self.alignments[start][0]
            elif self.alignments:
                pos = self.alignments[-1][1]
            else:
                pos = 0
            return (pos, pos)
        window = self.alignments[start:end]
        return (min(a[0] for a in window), max(a[1] for a in window))

    def original_range_from_bytes(self, start: int, end: int) -> Optional[Alignment]:
        return self.original_range(self.byte_to_char(start), self.byte_to_char(end))

    def merged_with(self, other: "NormalizedString") -> "NormalizedString":
        shift = len(self.original)
        aligns = self.alignments + [(s + shift, e + shift) for s, e in other.alignments]
        return NormalizedString.from_parts(
            self.original + other.original, self.normalized + other.normalized, aligns
        )


def _expand(text: str, fn: Callable[[str], str]) -> list[tuple[str, int]]:
    changes: list[tuple[str, int]] = []
    pending = 0
    for ch in text:
        out = fn(ch)
        if not out:
            pending += 1
            continue
        changes.append((out[0], -pending))
        pending = 0
        changes.extend((extra, 1) for extra in out[1:])
    return changes


def _independent(segment: str, ch: str, form: str) -> bool:
    if segment[-1] < "\x80" and ch < "\x80":
        return True
    joined = unicodedata.normalize(form, segment + ch)
    return joined == unicodedata.normalize(form, segment) + unicodedata.normalize(form, ch)


def _segments(text: str, form: str) -> list[str]:
    segments: list[str] = []
    current = ""
    for ch in text:
        if current and unicodedata.combining(ch) == 0 and _independent(current, ch, form):
            segments.append(current)
            current = ch
        else:
            current += ch
    if current:
        segments.append(current)
    return segments


def _form_changes(text: str, form: str) -> list[tuple[str, int]]:
    segments = _segments(text, form)
    outputs = [unicodedata.normalize(form, seg) for seg in segments]
    if "".join(outputs) != unicodedata.normalize(form, text):
        segments = [text]
        outputs = [unicodedata.normalize(form, text)]
    changes: list[tuple[str, int]] = []
    pending = 0
    for seg, out in zip(segments, outputs):
        m, n = len(seg), len(out)
        if n == 0:
            pending += m
            continue
        if n >= m:
            changes.append((out[0], -pending))
            changes.extend((ch, 0) for ch in out[1:m])
            changes.extend((ch, 1) for ch in out[m:])
        else:
            changes.append((out[0], -(m - n) - pending))
            changes.extend((ch, 0) for ch in out[1:])
        pending = 0
    return changes
