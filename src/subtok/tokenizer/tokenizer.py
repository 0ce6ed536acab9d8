"""Tokenizer: normalizer, pre-tokenizer, model, post-processor and decoder."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Union

import regex as re

from subtok.errors import BatchCancelled, InputError, StateError, TokenizerError
from subtok.models.base import Token
from subtok.models.bpe import BPE
from subtok.normalize.normalized import NormalizedString
from subtok.pretokenize.pretokenizers import PreToken
from subtok.tokenizer.encoding import (
    Encoding,
    PaddingParams,
    TruncationParams,
    concat_encodings,
    pad_encodings,
    truncate_encodings,
    with_max_length,
)
from subtok.train.ingest import count_words
from subtok.utils.runtime import resolve_num_threads


logger = logging.getLogger("subtok.tokenizer")

InputSequence = Union[str, tuple[str, str], list[str]]


@dataclass(frozen=True)
class AddedToken:
    content: str
    single_word: bool = False
    special: bool = False


def _as_added(token: Union[str, AddedToken], special: bool = False) -> AddedToken:
    if isinstance(token, AddedToken):
        return AddedToken(token.content, token.single_word, token.special or special)
    return AddedToken(str(token), special=special)


def _with_index(exc: TokenizerError, index: int) -> TokenizerError:
    if isinstance(exc, (InputError, StateError)) and exc.index is None:
        wrapped = type(exc)(str(exc), index=index)
        wrapped.__cause__ = exc
        return wrapped
    exc.index = index
    return exc


class Tokenizer:
    def __init__(
        self,
        model: Any,
        normalizer: Any = None,
        pre_tokenizer: Any = None,
        post_processor: Any = None,
        decoder: Any = None,
    ) -> None:
        self.model = model
        self.normalizer = normalizer
        self.pre_tokenizer = pre_tokenizer
        self.post_processor = post_processor
        self.decoder = decoder
        self.truncation: Optional[TruncationParams] = None
        self.padding: Optional[PaddingParams] = None
        self.num_threads: Optional[int] = None
        self._added: list[AddedToken] = []
        self._added_ids: dict[str, int] = {}
        self._added_ids_r: dict[int, str] = {}
        self._special_ids: set[int] = set()
        self._split_re: Optional[Any] = None

    # -- configuration ----------------------------------------------------

    def enable_truncation(
        self, max_length: int, stride: int = 0, strategy: str = "longest_first"
    ) -> None:
        self.truncation = TruncationParams(max_length, stride, strategy)

    def no_truncation(self) -> None:
        self.truncation = None

    def enable_padding(self, **kwargs: Any) -> None:
        self.padding = PaddingParams(**kwargs)

    def no_padding(self) -> None:
        self.padding = None

    # -- added tokens -----------------------------------------------------

    def add_tokens(self, tokens: Iterable[Union[str, AddedToken]]) -> int:
        return self._add(tokens, special=False)

    def add_special_tokens(self, tokens: Iterable[Union[str, AddedToken]]) -> int:
        return self._add(tokens, special=True)

    def _add(self, tokens: Iterable[Union[str, AddedToken]], special: bool) -> int:
        added = 0
        for token in tokens:
            tok = _as_added(token, special)
            if not tok.content:
                continue
            known = {t.content: i for i, t in enumerate(self._added)}
            if tok.content in known:
                if tok.special and not self._added[known[tok.content]].special:
                    self._added[known[tok.content]] = tok
                continue
            self._added.append(tok)
            added += 1
        self._refresh_added_tokens()
        return added

    def _refresh_added_tokens(self) -> None:
        self._added_ids = {}
        next_id = self.model.get_vocab_size()
        taken = set(self.model.get_vocab().values())
        for tok in self._added:
            idx = self.model.token_to_id(tok.content)
            if idx is None:
                while next_id in taken:
                    next_id += 1
                idx = next_id
                taken.add(idx)
            self._added_ids[tok.content] = idx
        self._added_ids_r = {v: k for k, v in self._added_ids.items()}
        self._special_ids = {self._added_ids[t.content] for t in self._added if t.special}
        self._split_re = self._compile_split()

    def _compile_split(self) -> Optional[Any]:
        if not self._added:
            return None
        alternatives = []
        for tok in sorted(self._added, key=lambda t: (-len(t.content), t.content)):
            pattern = re.escape(tok.content)
            if tok.single_word:
                pattern = rf"(?<!\w){pattern}(?!\w)"
            alternatives.append(pattern)
        return re.compile("|".join(alternatives))

    def _split_added(self, text: str) -> list[tuple[str, bool]]:
        if self._split_re is None:
            return [(text, False)]
        pieces: list[tuple[str, bool]] = []
        last = 0
        for m in self._split_re.finditer(text):
            if m.start() > last:
                pieces.append((text[last : m.start()], False))
            pieces.append((m.group(0), True))
            last = m.end()
        if last < len(text):
            pieces.append((text[last:], False))
        return pieces

    # -- vocab --------------------------------------------------------------

    def get_vocab(self, with_added_tokens: bool = True) -> dict[str, int]:
        vocab = self.model.get_vocab()
        if with_added_tokens:
            vocab.update(self._added_ids)
        return vocab

    def get_vocab_size(self, with_added_tokens: bool = True) -> int:
        return len(self.get_vocab(with_added_tokens))

    def token_to_id(self, token: str) -> Optional[int]:
        if token in self._added_ids:
            return self._added_ids[token]
        return self.model.token_to_id(token)

    def id_to_token(self, id: int) -> Optional[str]:
        if id in self._added_ids_r:
            return self._added_ids_r[id]
        return self.model.id_to_token(id)

    # -- encoding ---------------------------------------------------------

    def _encode_piece(self, text: str, type_id: int) -> Encoding:
        normalized = NormalizedString(text)
        if self.normalizer is not None:
            normalized = self.normalizer.normalize(normalized)
        if self.pre_tokenizer is not None:
            pre_tokens = self.pre_tokenizer.pre_tokenize(normalized)
        elif normalized.normalized:
            pre_tokens = [_whole(normalized)]
        else:
            pre_tokens = []
        tokens: list[Token] = []
        for pre in pre_tokens:
            tokens.extend(t.shifted(pre.offsets[0]) for t in self.model.tokenize(pre.value))
        return Encoding.from_tokens(tokens, type_id=type_id, normalized=normalized)

    def _encode_sequence(self, sequence: str, type_id: int) -> Encoding:
        parts: list[Encoding] = []
        for text, is_added in self._split_added(sequence):
            if is_added:
                tok = Token(self._added_ids[text], text, (0, len(text.encode("utf-8"))))
                parts.append(
                    Encoding.from_tokens(
                        [tok],
                        type_id=type_id,
                        normalized=NormalizedString(text),
                        special=tok.id in self._special_ids,
                    )
                )
            else:
                parts.append(self._encode_piece(text, type_id))
        return concat_encodings(parts)

    def _encode(self, sequence: str, pair: Optional[str], add_special_tokens: bool) -> Encoding:
        encoding = self._encode_sequence(sequence, type_id=0)
        pair_encoding = self._encode_sequence(pair, type_id=1) if pair is not None else None

        if self.truncation is not None:
            params = self.truncation
            if add_special_tokens and self.post_processor is not None:
                added = self.post_processor.added_tokens(pair is not None)
                params = with_max_length(params, max(0, params.max_length - added))
            encoding, pair_encoding = truncate_encodings(encoding, pair_encoding, params)

        if add_special_tokens and self.post_processor is not None:
            result = self.post_processor.process(encoding, pair_encoding)
        else:
            result = encoding
            if pair_encoding is not None:
                result.merge_with(pair_encoding)
        if not result.is_consistent():
            raise StateError("encoding columns differ in length")
        return result

    def encode(
        self, sequence: str, pair: Optional[str] = None, add_special_tokens: bool = True
    ) -> Encoding:
        encoding = self._encode(sequence, pair, add_special_tokens)
        if self.padding is not None:
            pad_encodings([encoding], self.padding)
        return encoding

    def encode_batch(
        self,
        inputs: Sequence[InputSequence],
        add_special_tokens: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[Encoding]:
        """Encode inputs on worker threads; results keep the input order.

        Workers check ``cancel_event`` before each input. On cancellation
        :class:`BatchCancelled` carries the completed in-order prefix.
        """
        total = len(inputs)

        def work(index: int) -> Optional[Encoding]:
            if cancel_event is not None and cancel_event.is_set():
                return None
            sequence, pair = _unpack(inputs[index], index)
            try:
                return self._encode(sequence, pair, add_special_tokens)
            except TokenizerError as exc:
                raise _with_index(exc, index)

        results: list[Optional[Encoding]] = []
        workers = min(resolve_num_threads(self.num_threads), max(1, total))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(work, i) for i in range(total)]
            try:
                for future in futures:
                    results.append(future.result())
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        if any(r is None for r in results):
            prefix: list[Encoding] = []
            for r in results:
                if r is None:
                    break
                prefix.append(r)
            logger.info("encode_batch_cancelled done=%s total=%s", len(prefix), total)
            raise BatchCancelled(prefix, total)

        encodings = [r for r in results if r is not None]
        if self.padding is not None:
            pad_encodings(encodings, self.padding)
        return encodings

    # -- decoding ---------------------------------------------------------

    def decode(self, ids: Iterable[int], skip_special_tokens: bool = True) -> str:
        tokens: list[str] = []
        for idx in ids:
            if skip_special_tokens and idx in self._special_ids:
                continue
            token = self.id_to_token(idx)
            if token is None:
                if self.model.unk_token is None:
                    continue
                token = self.model.unk_token
            tokens.append(token)
        if self.decoder is not None:
            return self.decoder.decode(tokens)
        return " ".join(tokens)

    def decode_batch(self, sequences: Iterable[Iterable[int]], skip_special_tokens: bool = True) -> list[str]:
        return [self.decode(ids, skip_special_tokens) for ids in sequences]

    # -- training ---------------------------------------------------------

    def train(self, trainer: Any, files: Iterable[str | Path]) -> None:
        """Count words in ``files``, train a new model and swap it in."""
        word_counts = count_words(
            files,
            normalizer=self.normalizer,
            pre_tokenizer=self.pre_tokenizer,
            num_threads=getattr(trainer, "num_threads", None) or self.num_threads,
            show_progress=getattr(trainer, "show_progress", False),
        )
        model_kwargs: dict[str, Any] = {}
        if isinstance(self.model, BPE):
            model_kwargs["cache_capacity"] = self.model.cache.capacity
            model_kwargs["dropout"] = self.model.dropout
            if self.model.unk_token in trainer.special_tokens:
                model_kwargs["unk_token"] = self.model.unk_token
        self.model = trainer.train_model(word_counts, **model_kwargs)
        self.add_special_tokens(trainer.special_tokens)
        logger.info("tokenizer_trained vocab=%s", self.get_vocab_size())


def _whole(normalized: NormalizedString) -> PreToken:
    return PreToken(normalized.normalized, (0, normalized.byte_len))


def _unpack(item: InputSequence, index: int) -> tuple[str, Optional[str]]:
    if isinstance(item, str):
        return item, None
    if isinstance(item, (tuple, list)) and len(item) == 2:
        return str(item[0]), str(item[1])
    raise InputError("expected a string or a (sequence, pair) couple", index=index)
