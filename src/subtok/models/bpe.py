"""Byte-pair encoding model."""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Any, Iterable, Optional

from subtok.errors import ConfigError, FormatError
from subtok.models.base import MODELS, Token
from subtok.models.cache import DEFAULT_CACHE_CAPACITY, Cache
from subtok.models.word import MergeMap, Word
from subtok.normalize.normalized import utf8_len
from subtok.utils.io import load_json, save_json


logger = logging.getLogger("subtok.models.bpe")

MERGES_HEADER = "#version: 0.2"


class BPE:
    def __init__(
        self,
        vocab: Optional[dict[str, int]] = None,
        merges: Optional[Iterable[tuple[str, str]]] = None,
        cache_capacity: int = DEFAULT_CACHE_CAPACITY,
        dropout: Optional[float] = None,
        unk_token: Optional[str] = None,
        continuing_subword_prefix: Optional[str] = None,
        end_of_word_suffix: Optional[str] = None,
        max_word_length: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> None:
        if dropout is not None and not 0.0 <= dropout <= 1.0:
            raise ConfigError(f"dropout must be in [0, 1], got {dropout}")
        self.vocab: dict[str, int] = dict(vocab or {})
        self.vocab_r: dict[int, str] = {v: k for k, v in self.vocab.items()}
        self.dropout = dropout or None
        self.unk_token = unk_token
        self.continuing_subword_prefix = continuing_subword_prefix
        self.end_of_word_suffix = end_of_word_suffix
        self.max_word_length = max_word_length
        self.seed = seed
        self._rng = random.Random(seed)
        self.cache: Cache[str, list[Token]] = Cache(cache_capacity)
        if unk_token is not None and self.vocab and unk_token not in self.vocab:
            raise ConfigError(f"unk token {unk_token!r} is not in the vocab")
        self.merges: MergeMap = self._build_merges(merges or [])

    def _build_merges(self, merges: Iterable[tuple[str, str]]) -> MergeMap:
        prefix = self.continuing_subword_prefix
        out: MergeMap = {}
        for rank, (a, b) in enumerate(merges):
            new_token = a + (b[len(prefix):] if prefix and b.startswith(prefix) else b)
            ids = [self.vocab.get(t) for t in (a, b, new_token)]
            if None in ids:
                missing = [t for t, i in zip((a, b, new_token), ids) if i is None]
                raise FormatError(f"merge {a!r} {b!r} uses tokens missing from the vocab: {missing}")
            out[(ids[0], ids[1])] = (rank, ids[2])
        return out

    # -- file io ----------------------------------------------------------

    @staticmethod
    def read_vocab(path: str | Path) -> dict[str, int]:
        data = load_json(path)
        if not isinstance(data, dict):
            raise FormatError(f"{path}: vocab must be a JSON object")
        for token, idx in data.items():
            if not isinstance(idx, int) or isinstance(idx, bool) or idx < 0:
                raise FormatError(f"{path}: id for {token!r} must be a non-negative integer")
        return data

    @staticmethod
    def read_merges(path: str | Path) -> list[tuple[str, str]]:
        merges: list[tuple[str, str]] = []
        with Path(path).open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.rstrip("\r\n")
                if line.startswith("#version") or not line:
                    continue
                parts = line.split(" ")
                if len(parts) != 2 or not all(parts):
                    raise FormatError(f"{path}: expected two tokens, got {line!r}", line=lineno)
                merges.append((parts[0], parts[1]))
        return merges

    @classmethod
    def read_files(cls, vocab_path: str | Path, merges_path: str | Path) -> tuple[dict[str, int], list[tuple[str, str]]]:
        return cls.read_vocab(vocab_path), cls.read_merges(merges_path)

    @classmethod
    def from_files(cls, vocab_path: str | Path, merges_path: str | Path, **kwargs: Any) -> "BPE":
        vocab, merges = cls.read_files(vocab_path, merges_path)
        model = cls(vocab, merges, **kwargs)
        logger.info("bpe_loaded vocab=%s merges=%s", len(vocab), len(merges))
        return model

    def ordered_merges(self) -> list[tuple[str, str]]:
        ranked = sorted(self.merges.items(), key=lambda kv: kv[1][0])
        return [(self.vocab_r[a], self.vocab_r[b]) for (a, b), _ in ranked]

    def save(self, directory: str | Path, prefix: Optional[str] = None) -> list[str]:
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        stem = f"{prefix}-" if prefix else ""
        vocab_path = out_dir / f"{stem}vocab.json"
        merges_path = out_dir / f"{stem}merges.txt"
        save_json(vocab_path, dict(sorted(self.vocab.items(), key=lambda kv: kv[1])), sort_keys=False)
        with merges_path.open("w", encoding="utf-8") as f:
            f.write(MERGES_HEADER + "\n")
            for a, b in self.ordered_merges():
                f.write(f"{a} {b}\n")
        return [str(vocab_path), str(merges_path)]

    # -- vocab access -----------------------------------------------------

    def get_vocab(self) -> dict[str, int]:
        return dict(self.vocab)

    def get_vocab_size(self) -> int:
        return len(self.vocab)

    def token_to_id(self, token: str) -> Optional[int]:
        return self.vocab.get(token)

    def id_to_token(self, id: int) -> Optional[str]:
        return self.vocab_r.get(id)

    def clear_cache(self) -> None:
        self.cache.clear()

    # -- encoding ---------------------------------------------------------

    def _unk_id(self) -> Optional[int]:
        if self.unk_token is None:
            return None
        return self.vocab.get(self.unk_token)

    def _merge_word(self, w: str) -> Word:
        word = Word()
        unk_id = self._unk_id()
        prefix = self.continuing_subword_prefix
        suffix = self.end_of_word_suffix
        last = len(w) - 1
        start = 0
        for i, ch in enumerate(w):
            length = utf8_len(ch)
            s = ch
            if prefix and i > 0:
                s = prefix + s
            if suffix and i == last:
                s = s + suffix
            c = self.vocab.get(s)
            if c is None:
                c = unk_id
            if c is not None:
                word.add(c, start, length)
            start += length
        word.merge_all(self.merges, self.dropout, self._rng)
        return word

    def _word_to_tokens(self, word: Word) -> list[Token]:
        return [
            Token(c, self.vocab_r[c], offsets)
            for c, offsets in zip(word.ids(), word.offsets())
        ]

    def tokenize(self, sequence: str) -> list[Token]:
        """Tokens for one pre-token; offsets are bytes within ``sequence``."""
        if not sequence:
            return []
        if self.max_word_length is not None and len(sequence) > self.max_word_length:
            unk_id = self._unk_id()
            if unk_id is None:
                return []
            return [Token(unk_id, self.unk_token or "", (0, len(sequence.encode("utf-8"))))]
        if self.dropout is None:
            hit = self.cache.get(sequence)
            if hit is not None:
                return hit
        tokens = self._word_to_tokens(self._merge_word(sequence))
        if self.dropout is None:
            self.cache.set(sequence, tokens)
        return tokens


@MODELS.register("bpe")
def bpe_from_config(
    vocab: Optional[str | dict[str, int]] = None,
    merges: Optional[str | list[Any]] = None,
    **kwargs: Any,
) -> BPE:
    """Build a BPE model from file paths or inline vocab and merges."""
    if isinstance(vocab, str):
        if not isinstance(merges, str):
            raise ConfigError("bpe model with a vocab path needs a merges path")
        return BPE.from_files(vocab, merges, **kwargs)
    pairs: list[tuple[str, str]] = []
    for entry in merges or []:
        parts = entry.split(" ") if isinstance(entry, str) else list(entry)
        if len(parts) != 2:
            raise FormatError(f"inline merge must have two tokens, got {entry!r}")
        pairs.append((parts[0], parts[1]))
    return BPE(vocab, pairs, **kwargs)
