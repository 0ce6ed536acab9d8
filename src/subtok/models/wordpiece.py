"""WordPiece model: greedy longest-match-first subwords."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from subtok.errors import ConfigError
from subtok.models.base import MODELS, Token


logger = logging.getLogger("subtok.models.wordpiece")


class WordPiece:
    def __init__(
        self,
        vocab: dict[str, int],
        unk_token: str = "[UNK]",
        continuing_subword_prefix: str = "##",
        max_input_chars_per_word: int = 100,
    ) -> None:
        if unk_token not in vocab:
            raise ConfigError(f"unk token {unk_token!r} is not in the vocab")
        self.vocab = dict(vocab)
        self.vocab_r = {v: k for k, v in self.vocab.items()}
        self.unk_token = unk_token
        self.continuing_subword_prefix = continuing_subword_prefix
        self.max_input_chars_per_word = max_input_chars_per_word

    @staticmethod
    def read_file(path: str | Path) -> dict[str, int]:
        vocab: dict[str, int] = {}
        with Path(path).open("r", encoding="utf-8") as f:
            for idx, line in enumerate(f):
                vocab[line.rstrip("\r\n")] = idx
        return vocab

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> "WordPiece":
        vocab = cls.read_file(path)
        logger.info("wordpiece_loaded vocab=%s", len(vocab))
        return cls(vocab, **kwargs)

    def save(self, directory: str | Path, prefix: Optional[str] = None) -> list[str]:
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / (f"{prefix}-vocab.txt" if prefix else "vocab.txt")
        with path.open("w", encoding="utf-8") as f:
            for token, _ in sorted(self.vocab.items(), key=lambda kv: kv[1]):
                f.write(token + "\n")
        return [str(path)]

    def get_vocab(self) -> dict[str, int]:
        return dict(self.vocab)

    def get_vocab_size(self) -> int:
        return len(self.vocab)

    def token_to_id(self, token: str) -> Optional[int]:
        return self.vocab.get(token)

    def id_to_token(self, id: int) -> Optional[str]:
        return self.vocab_r.get(id)

    def tokenize(self, sequence: str) -> list[Token]:
        if not sequence:
            return []
        byte_pos = [0]
        for ch in sequence:
            byte_pos.append(byte_pos[-1] + len(ch.encode("utf-8")))
        unk = [Token(self.vocab[self.unk_token], self.unk_token, (0, byte_pos[-1]))]
        if len(sequence) > self.max_input_chars_per_word:
            return unk

        tokens: list[Token] = []
        start = 0
        n = len(sequence)
        while start < n:
            end = n
            found: Optional[Token] = None
            while start < end:
                piece = sequence[start:end]
                if start > 0:
                    piece = self.continuing_subword_prefix + piece
                if piece in self.vocab:
                    found = Token(self.vocab[piece], piece, (byte_pos[start], byte_pos[end]))
                    break
                end -= 1
            if found is None:
                return unk
            tokens.append(found)
            start = end
        return tokens


@MODELS.register("wordpiece")
def wordpiece_from_config(vocab: str | dict[str, int], **kwargs: Any) -> WordPiece:
    if isinstance(vocab, str):
        return WordPiece.from_file(vocab, **kwargs)
    return WordPiece(vocab, **kwargs)
