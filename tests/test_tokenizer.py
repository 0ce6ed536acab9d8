import threading

import pytest

from subtok.errors import BatchCancelled, IngestError, InputError
from subtok.models.bpe import BPE
from subtok.pretokenize.byte_level import ByteLevel
from subtok.pretokenize.pretokenizers import WhitespaceSplit
from subtok.tokenizer.decoders import ByteLevelDecoder
from subtok.processors.processors import ByteLevelProcessing
from subtok.tokenizer.presets import bert_tokenizer, roberta_tokenizer
from subtok.tokenizer.tokenizer import AddedToken, Tokenizer
from subtok.train.bpe_trainer import BpeTrainer


VOCAB = [
    "[PAD]", "[UNK]", "[CLS]", "[SEP]", "[MASK]",
    "hello", ",", "world", "!", "how", "are", "you", "?", "ing", "##s",
]


@pytest.fixture
def bert(tmp_path) -> Tokenizer:
    path = tmp_path / "vocab.txt"
    path.write_text("\n".join(VOCAB) + "\n", encoding="utf-8")
    return bert_tokenizer(path)


def test_bert_single(bert) -> None:
    enc = bert.encode("Hello, world!")
    assert enc.tokens == ["[CLS]", "hello", ",", "world", "!", "[SEP]"]
    assert enc.ids == [2, 5, 6, 7, 8, 3]
    assert enc.offsets == [(0, 0), (0, 5), (5, 6), (7, 12), (12, 13), (0, 0)]
    assert enc.special_tokens_mask == [1, 0, 0, 0, 0, 1]


def test_bert_pair(bert) -> None:
    enc = bert.encode("hello", "how are you?")
    assert enc.ids == [2, 5, 3, 9, 10, 11, 12, 3]
    assert enc.type_ids == [0, 0, 0, 1, 1, 1, 1, 1]


def test_decode(bert) -> None:
    ids = bert.encode("Hello, world!").ids
    assert bert.decode(ids) == "hello, world!"
    assert bert.decode(ids, skip_special_tokens=False) == "[CLS] hello, world! [SEP]"
    assert bert.decode([5, 99]) == "hello [UNK]"
    assert bert.decode_batch([[5], [7]]) == ["hello", "world"]


def test_truncation_keeps_overflow(bert) -> None:
    bert.enable_truncation(max_length=5)
    enc = bert.encode("hello, world! how are you?")
    assert enc.ids == [2, 5, 6, 7, 3]
    assert [o.ids for o in enc.overflowing] == [[2, 8, 9, 10, 3], [2, 11, 12, 3]]


def test_batch_padding(bert) -> None:
    bert.enable_padding(pad_id=0, pad_token="[PAD]")
    batch = bert.encode_batch(["hello", "hello, world!"])
    assert [len(e) for e in batch] == [6, 6]
    assert batch[0].attention_mask == [1, 1, 1, 0, 0, 0]
    assert batch[0].tokens[-1] == "[PAD]"


def test_batch_matches_single_encodes(bert) -> None:
    bert.num_threads = 4
    inputs = ["hello", ("hello", "world"), "how are you?", "hello, world!"] * 5
    batch = bert.encode_batch(inputs)
    single = [bert.encode(*x) if isinstance(x, tuple) else bert.encode(x) for x in inputs]
    assert [e.ids for e in batch] == [e.ids for e in single]
    assert [e.type_ids for e in batch] == [e.type_ids for e in single]


def test_batch_error_carries_index(bert) -> None:
    bert.enable_truncation(max_length=5, strategy="only_second")
    with pytest.raises(InputError) as excinfo:
        bert.encode_batch([("hello", "world"), "hello, world! how"])
    assert excinfo.value.index == 1


def test_batch_rejects_bad_input(bert) -> None:
    with pytest.raises(InputError) as excinfo:
        bert.encode_batch(["hello", ("a", "b", "c")])
    assert excinfo.value.index == 1


def test_batch_cancelled(bert) -> None:
    event = threading.Event()
    event.set()
    with pytest.raises(BatchCancelled) as excinfo:
        bert.encode_batch(["hello", "world"], cancel_event=event)
    assert excinfo.value.encodings == []
    assert excinfo.value.total == 2


def test_added_tokens(bert) -> None:
    assert bert.add_tokens(["<ent>"]) == 1
    assert bert.add_tokens(["<ent>"]) == 0
    enc = bert.encode("hello<ent>world", add_special_tokens=False)
    assert enc.tokens == ["hello", "<ent>", "world"]
    assert enc.ids == [5, 15, 7]
    assert enc.offsets == [(0, 5), (5, 10), (10, 15)]
    assert bert.get_vocab_size(with_added_tokens=False) == 15
    assert bert.get_vocab_size() == 16
    assert bert.token_to_id("<ent>") == 15
    assert bert.id_to_token(15) == "<ent>"


def test_single_word_added_token(bert) -> None:
    bert.add_tokens([AddedToken("ing", single_word=True)])
    enc = bert.encode("ing running", add_special_tokens=False)
    assert enc.tokens == ["ing", "[UNK]"]
    assert enc.ids == [13, 1]
    assert enc.offsets == [(0, 3), (4, 11)]


def test_special_added_tokens_are_skipped_in_decode(bert) -> None:
    bert.add_special_tokens(["<sep2>"])
    enc = bert.encode("hello <sep2>", add_special_tokens=False)
    assert enc.special_tokens_mask == [0, 1]
    assert bert.decode(enc.ids) == "hello"


def test_train_from_files(tmp_path) -> None:
    corpus = tmp_path / "corpus.txt"
    corpus.write_text("roses are red\nBERT is GPT-2\nare is\n", encoding="utf-8")
    tokenizer = Tokenizer(BPE({}, []), pre_tokenizer=WhitespaceSplit())
    trainer = BpeTrainer(vocab_size=100, min_frequency=2, special_tokens=["<unk>"])
    tokenizer.train(trainer, [corpus])
    assert tokenizer.token_to_id("<unk>") == 0
    enc = tokenizer.encode("are red")
    assert enc.tokens == ["are", "re", "d"]
    assert enc.special_tokens_mask == [0, 0, 0]


def test_train_missing_file(tmp_path) -> None:
    tokenizer = Tokenizer(BPE({}, []), pre_tokenizer=WhitespaceSplit())
    with pytest.raises(IngestError):
        tokenizer.train(BpeTrainer(vocab_size=50), [tmp_path / "missing.txt"])


def test_byte_level_round_trip(tmp_path) -> None:
    text = "h\u00e9llo w\u00f6rld \u2603 hello world"
    corpus = tmp_path / "corpus.txt"
    corpus.write_text((text + "\n") * 3, encoding="utf-8")
    tokenizer = Tokenizer(
        BPE({}, []),
        pre_tokenizer=ByteLevel(add_prefix_space=False),
        decoder=ByteLevelDecoder(),
    )
    trainer = BpeTrainer(vocab_size=300, initial_alphabet=ByteLevel.alphabet())
    tokenizer.train(trainer, [corpus])
    enc = tokenizer.encode(text)
    assert len(enc) < len(text.encode("utf-8"))
    assert tokenizer.decode(enc.ids) == text


def test_pair_truncation_with_stride(bert) -> None:
    bert.enable_truncation(max_length=8, stride=3)
    enc = bert.encode("hello " * 10, "hello " * 10)
    assert len(enc) == 8
    assert enc.type_ids == [0, 0, 0, 0, 1, 1, 1, 1]
    assert enc.overflowing
    assert all(len(o) <= 8 for o in enc.overflowing)


class _StopOn:
    def __init__(self, inner, word: str, event: threading.Event) -> None:
        self.inner = inner
        self.word = word
        self.event = event

    def normalize(self, normalized):
        if normalized.original == self.word:
            self.event.set()
        return self.inner.normalize(normalized)


def test_batch_cancelled_mid_way(bert) -> None:
    event = threading.Event()
    bert.num_threads = 1
    bert.normalizer = _StopOn(bert.normalizer, "stop", event)
    inputs = ["hello", "world", "stop", "how", "are"]
    with pytest.raises(BatchCancelled) as excinfo:
        bert.encode_batch(inputs, cancel_event=event)
    assert excinfo.value.total == 5
    done = excinfo.value.encodings
    assert [e.ids for e in done] == [bert.encode(x).ids for x in inputs[:3]]


BYTE_VOCAB = {"\u0120": 0, "h": 1, "i": 2, "\u0120h": 3, "\u0120hi": 4, "<s>": 5, "</s>": 6}
BYTE_MERGES = [("\u0120", "h"), ("\u0120h", "i")]


def test_byte_level_trim_offsets() -> None:
    tokenizer = Tokenizer(
        BPE(BYTE_VOCAB, BYTE_MERGES),
        pre_tokenizer=ByteLevel(add_prefix_space=True),
        post_processor=ByteLevelProcessing(),
    )
    enc = tokenizer.encode("hi hi")
    assert enc.tokens == ["\u0120hi", "\u0120hi"]
    assert enc.offsets == [(2, 4), (6, 8)]

    tokenizer.post_processor = ByteLevelProcessing(trim_offsets=False)
    assert tokenizer.encode("hi hi").offsets == [(0, 4), (4, 8)]


def test_roberta_preset_trims_offsets(tmp_path) -> None:
    vocab_path, merges_path = BPE(BYTE_VOCAB, BYTE_MERGES).save(tmp_path)
    tokenizer = roberta_tokenizer(vocab_path, merges_path, add_prefix_space=True)
    enc = tokenizer.encode("hi hi")
    assert enc.ids == [5, 4, 4, 6]
    assert enc.offsets == [(0, 0), (2, 4), (6, 8), (0, 0)]

    plain = roberta_tokenizer(vocab_path, merges_path, add_prefix_space=True, trim_offsets=False)
    assert plain.encode("hi hi").offsets[1] == (0, 4)
