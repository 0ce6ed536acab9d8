"""Ready-made BERT and RoBERTa pipelines over local vocab files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from subtok.models.bpe import BPE
from subtok.models.wordpiece import WordPiece
from subtok.normalize.normalizers import BertNormalizer
from subtok.pretokenize.byte_level import ByteLevel
from subtok.pretokenize.pretokenizers import BertPreTokenizer
from subtok.processors.processors import BertProcessing, RobertaProcessing
from subtok.tokenizer.decoders import ByteLevelDecoder, WordPieceDecoder
from subtok.tokenizer.tokenizer import Tokenizer


BERT_SPECIAL_TOKENS = ["[PAD]", "[UNK]", "[CLS]", "[SEP]", "[MASK]"]
ROBERTA_SPECIAL_TOKENS = ["<s>", "<pad>", "</s>", "<unk>", "<mask>"]


def bert_tokenizer(vocab_path: str | Path, lowercase: bool = True, **model_kwargs: Any) -> Tokenizer:
    model = WordPiece.from_file(vocab_path, **model_kwargs)
    tokenizer = Tokenizer(
        model,
        normalizer=BertNormalizer(lowercase=lowercase),
        pre_tokenizer=BertPreTokenizer(),
        post_processor=BertProcessing.from_model(model),
        decoder=WordPieceDecoder(),
    )
    tokenizer.add_special_tokens([t for t in BERT_SPECIAL_TOKENS if model.token_to_id(t) is not None])
    return tokenizer


def roberta_tokenizer(
    vocab_path: str | Path,
    merges_path: str | Path,
    add_prefix_space: bool = False,
    trim_offsets: bool = True,
    **model_kwargs: Any,
) -> Tokenizer:
    model = BPE.from_files(vocab_path, merges_path, **model_kwargs)
    tokenizer = Tokenizer(
        model,
        pre_tokenizer=ByteLevel(add_prefix_space=add_prefix_space),
        post_processor=RobertaProcessing.from_model(model, trim_offsets=trim_offsets),
        decoder=ByteLevelDecoder(),
    )
    tokenizer.add_special_tokens([t for t in ROBERTA_SPECIAL_TOKENS if model.token_to_id(t) is not None])
    return tokenizer
