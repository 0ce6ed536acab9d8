import pytest

from subtok.errors import ConfigError, FormatError
from subtok.models.base import Token
from subtok.models.wordpiece import WordPiece
from subtok.processors.processors import (
    BertProcessing,
    ByteLevelProcessing,
    RobertaProcessing,
    build_post_processor,
    trim_offsets,
)
from subtok.tokenizer.encoding import Encoding


def _enc(ids, start: int = 0) -> Encoding:
    return Encoding.from_tokens(
        [Token(i, f"t{i}", (start + 2 * n, start + 2 * n + 1)) for n, i in enumerate(ids)]
    )


def test_bert_single() -> None:
    out = BertProcessing().process(_enc([5, 6]))
    assert out.ids == [101, 5, 6, 102]
    assert out.tokens[0] == "[CLS]"
    assert out.special_tokens_mask == [1, 0, 0, 1]
    assert out.type_ids == [0, 0, 0, 0]
    assert out.offsets[0] == (0, 0)
    assert out.is_consistent()


def test_bert_pair() -> None:
    out = BertProcessing().process(_enc([5, 6]), _enc([7]))
    assert out.ids == [101, 5, 6, 102, 7, 102]
    assert out.type_ids == [0, 0, 0, 0, 1, 1]
    assert out.special_tokens_mask == [1, 0, 0, 1, 0, 1]
    assert out.offsets[-1] == (0, 0)
    assert out.offsets[4] == (3, 4)


def test_roberta_pair() -> None:
    out = RobertaProcessing().process(_enc([5, 6]), _enc([7]))
    assert out.ids == [0, 5, 6, 2, 2, 7, 2]
    assert out.type_ids == [0] * 7
    assert out.special_tokens_mask == [1, 0, 0, 1, 1, 0, 1]


def test_added_token_counts() -> None:
    assert BertProcessing().added_tokens(is_pair=False) == 2
    assert BertProcessing().added_tokens(is_pair=True) == 3
    assert RobertaProcessing().added_tokens(is_pair=False) == 2
    assert RobertaProcessing().added_tokens(is_pair=True) == 4


def test_overflow_fragments_are_wrapped() -> None:
    enc = _enc([1, 2, 3, 4, 5])
    enc.truncate(3)
    out = BertProcessing().process(enc)
    assert out.ids == [101, 1, 2, 3, 102]
    assert [o.ids for o in out.overflowing] == [[101, 4, 5, 102]]


def test_from_model() -> None:
    model = WordPiece({"[UNK]": 0, "[CLS]": 1, "[SEP]": 2})
    proc = BertProcessing.from_model(model)
    assert proc.cls == ("[CLS]", 1)
    assert proc.sep == ("[SEP]", 2)
    with pytest.raises(FormatError):
        RobertaProcessing.from_model(model)


def test_build_post_processor() -> None:
    model = WordPiece({"[UNK]": 0, "[CLS]": 1, "[SEP]": 2, "<eos>": 3})
    proc = build_post_processor({"type": "bert"}, model)
    assert isinstance(proc, BertProcessing)
    assert proc.sep == ("[SEP]", 2)

    proc = build_post_processor({"type": "bert", "sep": "<eos>"}, model)
    assert proc.sep == ("<eos>", 3)
    assert proc.cls == ("[CLS]", 1)

    proc = build_post_processor({"type": "roberta", "sep": ["</s>", 9], "cls": ["<s>", 8]}, model)
    assert proc.sep == ("</s>", 9)

    with pytest.raises(ConfigError):
        build_post_processor({"type": "bert", "extra": 1}, model)
    with pytest.raises(ConfigError):
        build_post_processor({"type": "t5"}, model)


def _byte_level_enc() -> Encoding:
    return Encoding.from_tokens(
        [Token(5, "\u0120Mi", (0, 4)), Token(6, "\u0120estas\u0120", (4, 13)), Token(7, ".", (13, 14))]
    )


def test_trim_offsets() -> None:
    enc = trim_offsets(_byte_level_enc())
    assert enc.offsets == [(2, 4), (6, 11), (13, 14)]
    assert enc.tokens[0] == "\u0120Mi"


def test_trim_offsets_only_markers() -> None:
    enc = trim_offsets(Encoding.from_tokens([Token(1, "\u0120\u0120", (3, 7))]))
    assert enc.offsets == [(7, 7)]


def test_byte_level_processing_pair() -> None:
    proc = ByteLevelProcessing()
    assert proc.added_tokens(is_pair=True) == 0
    first = _byte_level_enc()
    first.truncate(2)
    out = proc.process(first, Encoding.from_tokens([Token(8, "\u0120x", (0, 3))]))
    assert out.ids == [5, 6, 8]
    assert out.offsets == [(2, 4), (6, 11), (13, 14)]
    assert out.overflowing[0].offsets == [(13, 14), (16, 17)]

    untrimmed = ByteLevelProcessing(trim_offsets=False).process(_byte_level_enc())
    assert untrimmed.offsets[0] == (0, 4)


def test_roberta_trim_offsets() -> None:
    out = RobertaProcessing(trim_offsets=True).process(_byte_level_enc())
    assert out.ids == [0, 5, 6, 7, 2]
    assert out.offsets == [(0, 0), (2, 4), (6, 11), (13, 14), (0, 0)]
    assert RobertaProcessing().process(_byte_level_enc()).offsets[1] == (0, 4)


def test_build_byte_level_processor() -> None:
    model = WordPiece({"[UNK]": 0})
    proc = build_post_processor({"type": "byte_level", "trim_offsets": False}, model)
    assert isinstance(proc, ByteLevelProcessing)
    assert proc.trim_offsets is False
    with pytest.raises(ConfigError):
        build_post_processor({"type": "byte_level", "sep": ["</s>", 2]}, model)
