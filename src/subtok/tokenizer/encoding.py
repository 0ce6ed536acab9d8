"""Encoding container with truncation, padding and pair merging."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from subtok.errors import ConfigError, InputError
from subtok.models.base import Token
from subtok.normalize.normalized import NormalizedString


Offsets = tuple[int, int]


class TruncationStrategy(str, enum.Enum):
    LONGEST_FIRST = "longest_first"
    ONLY_FIRST = "only_first"
    ONLY_SECOND = "only_second"


class PaddingStrategy(str, enum.Enum):
    BATCH_LONGEST = "batch_longest"
    FIXED = "fixed"


class PaddingDirection(str, enum.Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass
class TruncationParams:
    max_length: int
    stride: int = 0
    strategy: TruncationStrategy = TruncationStrategy.LONGEST_FIRST

    def __post_init__(self) -> None:
        self.strategy = TruncationStrategy(self.strategy)
        if self.max_length < 0 or self.stride < 0:
            raise ConfigError("max_length and stride must be non-negative")
        if self.max_length and self.stride >= self.max_length:
            raise ConfigError(f"stride ({self.stride}) must be smaller than max_length ({self.max_length})")


@dataclass
class PaddingParams:
    strategy: PaddingStrategy = PaddingStrategy.BATCH_LONGEST
    fixed_length: Optional[int] = None
    direction: PaddingDirection = PaddingDirection.RIGHT
    pad_id: int = 0
    pad_type_id: int = 0
    pad_token: str = "[PAD]"

    def __post_init__(self) -> None:
        self.strategy = PaddingStrategy(self.strategy)
        self.direction = PaddingDirection(self.direction)
        if self.strategy is PaddingStrategy.FIXED and self.fixed_length is None:
            raise ConfigError("fixed padding needs fixed_length")


@dataclass
class Encoding:
    ids: list[int] = field(default_factory=list)
    type_ids: list[int] = field(default_factory=list)
    tokens: list[str] = field(default_factory=list)
    offsets: list[Offsets] = field(default_factory=list)
    special_tokens_mask: list[int] = field(default_factory=list)
    attention_mask: list[int] = field(default_factory=list)
    overflowing: list["Encoding"] = field(default_factory=list)
    normalized: Optional[NormalizedString] = None

    @classmethod
    def from_tokens(
        cls,
        tokens: Iterable[Token],
        type_id: int = 0,
        normalized: Optional[NormalizedString] = None,
        special: bool = False,
    ) -> "Encoding":
        enc = cls(normalized=normalized)
        for tok in tokens:
            enc.ids.append(tok.id)
            enc.tokens.append(tok.value)
            enc.offsets.append(tok.offsets)
        n = len(enc.ids)
        enc.type_ids = [type_id] * n
        enc.special_tokens_mask = [int(special)] * n
        enc.attention_mask = [1] * n
        return enc

    def __len__(self) -> int:
        return len(self.ids)

    def is_consistent(self) -> bool:
        n = len(self.ids)
        columns = (self.type_ids, self.tokens, self.offsets, self.special_tokens_mask, self.attention_mask)
        return all(len(col) == n for col in columns)

    def copy(self, with_overflowing: bool = True) -> "Encoding":
        return Encoding(
            ids=list(self.ids),
            type_ids=list(self.type_ids),
            tokens=list(self.tokens),
            offsets=list(self.offsets),
            special_tokens_mask=list(self.special_tokens_mask),
            attention_mask=list(self.attention_mask),
            overflowing=[o.copy() for o in self.overflowing] if with_overflowing else [],
            normalized=self.normalized,
        )

    def slice(self, start: int, end: int) -> "Encoding":
        return Encoding(
            ids=self.ids[start:end],
            type_ids=self.type_ids[start:end],
            tokens=self.tokens[start:end],
            offsets=self.offsets[start:end],
            special_tokens_mask=self.special_tokens_mask[start:end],
            attention_mask=self.attention_mask[start:end],
            normalized=self.normalized,
        )

    def truncate(self, max_length: int, stride: int = 0) -> None:
        """Keep the first ``max_length`` positions; the rest become overflow fragments.

        Fragments start every ``max_length - stride`` positions, so consecutive
        fragments share ``stride`` positions.
        """
        if max_length == 0:
            whole = self.copy(with_overflowing=False)
            for name in ("ids", "type_ids", "tokens", "offsets", "special_tokens_mask", "attention_mask"):
                setattr(self, name, [])
            self.overflowing = [whole]
            return
        if len(self) <= max_length:
            return
        if stride >= max_length:
            raise ConfigError(f"stride ({stride}) must be smaller than max_length ({max_length})")
        step = max_length - stride
        fragments = [self.slice(start, start + max_length) for start in range(step, len(self), step)]
        kept = self.slice(0, max_length)
        self.ids, self.type_ids, self.tokens = kept.ids, kept.type_ids, kept.tokens
        self.offsets, self.special_tokens_mask = kept.offsets, kept.special_tokens_mask
        self.attention_mask = kept.attention_mask
        self.overflowing = fragments

    def merge_with(self, pair: "Encoding", growing_offsets: bool = True) -> None:
        """Append ``pair``; overflow fragments combine as a cross product."""
        base = self.copy(with_overflowing=False)
        pair_base = pair.copy(with_overflowing=False)
        overflowing: list[Encoding] = []
        for self_o in self.overflowing:
            for other in [pair_base] + pair.overflowing:
                combined = self_o.copy(with_overflowing=False)
                combined.merge_with(other.copy(with_overflowing=False), growing_offsets)
                overflowing.append(combined)
        for other_o in pair.overflowing:
            combined = base.copy(with_overflowing=False)
            combined.merge_with(other_o.copy(with_overflowing=False), growing_offsets)
            overflowing.append(combined)

        shift = max((end for _, end in self.offsets), default=0) if growing_offsets else 0
        self.ids.extend(pair.ids)
        self.type_ids.extend(pair.type_ids)
        self.tokens.extend(pair.tokens)
        # (0, 0) on special positions marks added tokens and padding; left as is
        self.offsets.extend(
            (s, e) if special and (s, e) == (0, 0) else (s + shift, e + shift)
            for (s, e), special in zip(pair.offsets, pair.special_tokens_mask)
        )
        self.special_tokens_mask.extend(pair.special_tokens_mask)
        self.attention_mask.extend(pair.attention_mask)
        self.overflowing = overflowing

    def pad(
        self,
        target_length: int,
        pad_id: int = 0,
        pad_type_id: int = 0,
        pad_token: str = "[PAD]",
        direction: PaddingDirection = PaddingDirection.RIGHT,
    ) -> None:
        for o in self.overflowing:
            o.pad(target_length, pad_id, pad_type_id, pad_token, direction)
        missing = target_length - len(self)
        if missing <= 0:
            return
        if PaddingDirection(direction) is PaddingDirection.LEFT:
            self.ids = [pad_id] * missing + self.ids
            self.type_ids = [pad_type_id] * missing + self.type_ids
            self.tokens = [pad_token] * missing + self.tokens
            self.offsets = [(0, 0)] * missing + self.offsets
            self.special_tokens_mask = [1] * missing + self.special_tokens_mask
            self.attention_mask = [0] * missing + self.attention_mask
        else:
            self.ids += [pad_id] * missing
            self.type_ids += [pad_type_id] * missing
            self.tokens += [pad_token] * missing
            self.offsets += [(0, 0)] * missing
            self.special_tokens_mask += [1] * missing
            self.attention_mask += [0] * missing


def concat_encodings(parts: list[Encoding]) -> Encoding:
    """Join encodings of consecutive pieces of one input.

    Offsets of each piece shift by the byte length of the normalized text
    before it, and the normalized strings are merged.
    """
    out = Encoding()
    shift = 0
    for part in parts:
        out.ids.extend(part.ids)
        out.type_ids.extend(part.type_ids)
        out.tokens.extend(part.tokens)
        out.offsets.extend((s + shift, e + shift) for s, e in part.offsets)
        out.special_tokens_mask.extend(part.special_tokens_mask)
        out.attention_mask.extend(part.attention_mask)
        if part.normalized is not None:
            shift += part.normalized.byte_len
            out.normalized = (
                part.normalized if out.normalized is None else out.normalized.merged_with(part.normalized)
            )
    if out.normalized is None:
        out.normalized = NormalizedString("")
    return out


def truncate_encodings(
    encoding: Encoding, pair: Optional[Encoding], params: TruncationParams
) -> tuple[Encoding, Optional[Encoding]]:
    if params.max_length == 0:
        encoding.truncate(0)
        if pair is not None:
            pair.truncate(0)
        return encoding, pair

    total = len(encoding) + (len(pair) if pair is not None else 0)
    if total <= params.max_length:
        return encoding, pair
    to_remove = total - params.max_length

    if params.strategy is TruncationStrategy.LONGEST_FIRST:
        if pair is None:
            encoding.truncate(params.max_length, params.stride)
            return encoding, pair
        n1, n2 = len(encoding), len(pair)
        # trim the longer side, the second one on ties
        if n1 > n2:
            n1 = max(n2, n1 - to_remove)
            to_remove -= len(encoding) - n1
        elif n2 > n1:
            n2 = max(n1, n2 - to_remove)
            to_remove -= len(pair) - n2
        if to_remove > 0:
            n1 -= to_remove // 2
            n2 -= to_remove - to_remove // 2
        encoding.truncate(n1, _fit_stride(params.stride, n1))
        pair.truncate(n2, _fit_stride(params.stride, n2))
        return encoding, pair

    if params.strategy is TruncationStrategy.ONLY_FIRST:
        target = encoding
    elif pair is None:
        raise InputError("second sequence not provided")
    else:
        target = pair
    if len(target) <= to_remove:
        raise InputError(
            f"sequence of length {len(target)} is too short to remove {to_remove} tokens"
        )
    keep = len(target) - to_remove
    target.truncate(keep, _fit_stride(params.stride, keep))
    return encoding, pair


def pad_encodings(encodings: list[Encoding], params: PaddingParams) -> list[Encoding]:
    if not encodings:
        return encodings
    if params.strategy is PaddingStrategy.FIXED:
        target = int(params.fixed_length or 0)
    else:
        target = max(len(e) for e in encodings)
    for e in encodings:
        e.pad(target, params.pad_id, params.pad_type_id, params.pad_token, params.direction)
    return encodings


def _fit_stride(stride: int, max_length: int) -> int:
    # stride is dropped when the budget cannot hold it
    return stride if stride < max_length else 0


def with_max_length(params: TruncationParams, max_length: int) -> TruncationParams:
    return replace(params, max_length=max_length, stride=_fit_stride(params.stride, max_length))
