import pytest

from subtok.errors import StateError
from subtok.normalize.normalized import NormalizedString


def test_identity_alignments() -> None:
    ns = NormalizedString("h\u00e9llo")
    assert ns.normalized == "h\u00e9llo"
    assert ns.alignments == [(0, 1), (1, 2), (2, 3), (3, 4), (4, 5)]
    assert ns.byte_len == 6


def test_transform_insert_and_remove() -> None:
    ns = NormalizedString("abc")
    ns.transform([("a", 0), ("X", 1), ("c", -1)])
    assert ns.normalized == "aXc"
    # inserted code point takes the previous alignment, "c" absorbs the removed "b"
    assert ns.alignments == [(0, 1), (0, 1), (1, 3)]


def test_transform_out_of_bounds() -> None:
    ns = NormalizedString("abc")
    with pytest.raises(StateError):
        ns.transform([("a", 0), ("b", 0), ("c", 0), ("d", 0)])


def test_transform_initial_offset() -> None:
    ns = NormalizedString("xxab")
    ns.transform([("a", 0), ("b", 0)], initial_offset=2)
    assert ns.normalized == "ab"
    assert ns.alignments == [(0, 3), (3, 4)]


def test_nfd_nfc_alignments() -> None:
    ns = NormalizedString("\u00e9")
    ns.nfd()
    assert ns.normalized == "e\u0301"
    assert ns.alignments == [(0, 1), (0, 1)]

    composed = NormalizedString("e\u0301x")
    composed.nfc()
    assert composed.normalized == "\u00e9x"
    assert composed.alignments == [(0, 2), (2, 3)]


def test_nfkc_expansion() -> None:
    ns = NormalizedString("\ufb01!")
    ns.nfkc()
    assert ns.normalized == "fi!"
    assert ns.alignments == [(0, 1), (0, 1), (1, 2)]


def test_forms_are_idempotent() -> None:
    text = "\uff23afe\u0301 \ufb01ance\u0301 A\u030a\u0301 \ud55c\uad6d\uc5b4"
    for form in ("nfc", "nfd", "nfkc", "nfkd"):
        once = NormalizedString(text)
        getattr(once, form)()
        twice = once.copy()
        getattr(twice, form)()
        assert twice.normalized == once.normalized
        assert twice.alignments == once.alignments
        assert len(once.alignments) == len(once.normalized)
        assert all(end <= len(text) for _, end in once.alignments)


def test_lowercase_expansion() -> None:
    ns = NormalizedString("\u0130A")
    ns.lowercase()
    assert ns.normalized == "i\u0307a"
    assert ns.alignments == [(0, 1), (0, 1), (1, 2)]


def test_filter_absorbs_into_next() -> None:
    ns = NormalizedString("a\x00b")
    ns.filter(lambda ch: ch != "\x00")
    assert ns.normalized == "ab"
    assert ns.alignments == [(0, 1), (1, 3)]


def test_strip() -> None:
    ns = NormalizedString("  ab ")
    ns.strip()
    assert ns.normalized == "ab"
    assert ns.alignments == [(0, 3), (3, 4)]

    right = NormalizedString("ab  ")
    right.rstrip()
    assert right.normalized == "ab"
    assert right.alignments == [(0, 1), (1, 2)]


def test_byte_char_conversion() -> None:
    ns = NormalizedString("a\u00e9\u4e2d")
    assert [ns.char_to_byte(i) for i in range(4)] == [0, 1, 3, 6]
    assert ns.byte_to_char(3) == 2
    with pytest.raises(StateError):
        ns.byte_to_char(2)


def test_original_range() -> None:
    ns = NormalizedString("e\u0301te\u0301")
    ns.nfc()
    assert ns.normalized == "\u00e9t\u00e9"
    assert ns.original_range(0, 1) == (0, 2)
    assert ns.original_range(1, 3) == (2, 5)
    assert ns.original_range_from_bytes(0, 2) == (0, 2)
    assert ns.original_range(5, 6) is None


def test_merged_with() -> None:
    left = NormalizedString("ab")
    right = NormalizedString("C")
    right.lowercase()
    merged = left.merged_with(right)
    assert merged.original == "abC"
    assert merged.normalized == "abc"
    assert merged.alignments == [(0, 1), (1, 2), (2, 3)]


def test_from_parts_checks_length() -> None:
    with pytest.raises(StateError):
        NormalizedString.from_parts("ab", "ab", [(0, 1)])
