import pytest

from subtok.errors import ConfigError, InputError
from subtok.models.base import Token
from subtok.normalize.normalized import NormalizedString
from subtok.tokenizer.encoding import (
    Encoding,
    PaddingParams,
    TruncationParams,
    concat_encodings,
    pad_encodings,
    truncate_encodings,
)


def _make(n: int, start: int = 0) -> Encoding:
    return Encoding.from_tokens([Token(start + i, f"t{start + i}", (i, i + 1)) for i in range(n)])


def test_truncate_with_overflow() -> None:
    enc = _make(10)
    enc.truncate(4, stride=1)
    assert enc.ids == [0, 1, 2, 3]
    assert [o.ids for o in enc.overflowing] == [[3, 4, 5, 6], [6, 7, 8, 9], [9]]
    assert all(o.is_consistent() for o in enc.overflowing)
    assert enc.is_consistent()


def test_truncate_to_zero() -> None:
    enc = _make(3)
    enc.truncate(0)
    assert enc.ids == []
    assert enc.overflowing[0].ids == [0, 1, 2]


def test_truncate_stride_too_large() -> None:
    with pytest.raises(ConfigError):
        _make(10).truncate(4, stride=4)
    with pytest.raises(ConfigError):
        TruncationParams(max_length=4, stride=4)


def test_pad_right_and_left() -> None:
    enc = _make(3)
    enc.pad(5, pad_id=9, pad_token="[PAD]")
    assert enc.ids == [0, 1, 2, 9, 9]
    assert enc.attention_mask == [1, 1, 1, 0, 0]
    assert enc.special_tokens_mask == [0, 0, 0, 1, 1]
    assert enc.offsets[-1] == (0, 0)
    assert enc.tokens[-1] == "[PAD]"

    left = _make(2)
    left.pad(4, pad_id=9, direction="left")
    assert left.ids == [9, 9, 0, 1]
    assert left.attention_mask == [0, 0, 1, 1]
    assert left.is_consistent()


def test_pad_is_noop_when_long_enough() -> None:
    enc = _make(5)
    enc.pad(3)
    assert enc.ids == [0, 1, 2, 3, 4]


def test_pad_recurses_into_overflow() -> None:
    enc = _make(10)
    enc.truncate(4, stride=1)
    enc.pad(4, pad_id=7)
    assert enc.overflowing[-1].ids == [9, 7, 7, 7]
    assert sum(enc.overflowing[-1].attention_mask) == 1


def test_merge_with_shifts_offsets() -> None:
    enc = _make(2)
    enc.merge_with(_make(2, start=5))
    assert enc.ids == [0, 1, 5, 6]
    assert enc.offsets == [(0, 1), (1, 2), (2, 3), (3, 4)]


def test_merge_with_overflow_cross_product() -> None:
    first = _make(5)
    first.truncate(3)
    second = _make(4, start=10)
    second.truncate(2)
    first.merge_with(second)
    assert first.ids == [0, 1, 2, 10, 11]
    assert [o.ids for o in first.overflowing] == [
        [3, 4, 10, 11],
        [3, 4, 12, 13],
        [0, 1, 2, 12, 13],
    ]
    assert all(not o.overflowing for o in first.overflowing)


def test_truncate_pair_longest_first() -> None:
    enc, pair = truncate_encodings(_make(10), _make(6), TruncationParams(max_length=8))
    assert (len(enc), len(pair)) == (4, 4)

    enc, pair = truncate_encodings(_make(10), _make(3), TruncationParams(max_length=8))
    assert (len(enc), len(pair)) == (5, 3)


def test_truncate_only_second_requires_pair() -> None:
    params = TruncationParams(max_length=2, strategy="only_second")
    with pytest.raises(InputError, match="second sequence not provided"):
        truncate_encodings(_make(5), None, params)


def test_truncate_only_first_too_short() -> None:
    params = TruncationParams(max_length=5, strategy="only_first")
    with pytest.raises(InputError):
        truncate_encodings(_make(2), _make(10), params)


def test_pad_batch() -> None:
    batch = pad_encodings([_make(2), _make(5)], PaddingParams())
    assert [len(e) for e in batch] == [5, 5]
    assert sum(batch[0].attention_mask) == 2

    fixed = pad_encodings([_make(2)], PaddingParams(strategy="fixed", fixed_length=8))
    assert len(fixed[0]) == 8

    with pytest.raises(ConfigError):
        PaddingParams(strategy="fixed")


def test_concat_encodings() -> None:
    first = Encoding.from_tokens([Token(1, "ab", (0, 2))], normalized=NormalizedString("ab"))
    second = Encoding.from_tokens([Token(2, "\u00e9", (0, 2))], normalized=NormalizedString("\u00e9"))
    joined = concat_encodings([first, second])
    assert joined.offsets == [(0, 2), (2, 4)]
    assert joined.normalized.normalized == "ab\u00e9"
    assert joined.normalized.alignments == [(0, 1), (1, 2), (2, 3)]


def test_stride_dropped_when_side_is_too_short() -> None:
    params = TruncationParams(max_length=6, stride=4)
    enc, pair = truncate_encodings(_make(10), _make(10), params)
    assert (len(enc), len(pair)) == (3, 3)
    assert [o.ids for o in enc.overflowing] == [[3, 4, 5], [6, 7, 8], [9]]

    params = TruncationParams(max_length=6, stride=4, strategy="only_first")
    enc, pair = truncate_encodings(_make(5), _make(3), params)
    assert enc.ids == [0, 1, 2]
    assert [o.ids for o in enc.overflowing] == [[3, 4]]
    assert pair.ids == [0, 1, 2]
