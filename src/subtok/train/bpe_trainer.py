"""BPE trainer: learn a vocab and an ordered merge table from word counts."""

from __future__ import annotations

import heapq
import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from rich.progress import Progress

from subtok.errors import ConfigError
from subtok.models.bpe import BPE
from subtok.models.word import Pair, Word
from subtok.normalize.normalized import utf8_len
from subtok.train.logging import Logger
from subtok.utils.runtime import resolve_num_threads


logger = logging.getLogger("subtok.train")

PAIR_COUNT_BATCH = 1_000_000

PairCounts = dict[Pair, int]
PairPositions = dict[Pair, set[int]]


@dataclass
class BpeTrainer:
    vocab_size: int = 30000
    min_frequency: int = 0
    special_tokens: list[str] = field(default_factory=list)
    limit_alphabet: Optional[int] = None
    initial_alphabet: list[str] = field(default_factory=list)
    continuing_subword_prefix: Optional[str] = None
    end_of_word_suffix: Optional[str] = None
    show_progress: bool = False
    num_threads: Optional[int] = None
    log_path: Optional[str] = None

    def __post_init__(self) -> None:
        chars: list[str] = []
        for entry in self.initial_alphabet:
            # only the first code point of each entry counts
            if entry and entry[0] not in chars:
                chars.append(entry[0])
        self.initial_alphabet = chars

    def train(self, word_counts: Mapping[str, int]) -> tuple[dict[str, int], list[tuple[str, str]]]:
        """Return ``(vocab, merges)`` with merges in rank order."""
        vocab: dict[str, int] = {}
        id_to_word: list[str] = []

        def add_token(token: str) -> int:
            if token not in vocab:
                vocab[token] = len(id_to_word)
                id_to_word.append(token)
            return vocab[token]

        for token in self.special_tokens:
            add_token(token)
        for ch in self.compute_alphabet(word_counts):
            add_token(ch)
        if self.vocab_size < len(vocab):
            raise ConfigError(
                f"vocab size too small: {self.vocab_size} < {len(vocab)} special and alphabet tokens"
            )

        words, counts = self._tokenize_words(word_counts, vocab, add_token)
        merges: list[tuple[Pair, int]] = []
        with Progress(disable=not self.show_progress, transient=True) as progress, Logger(
            self.log_path, echo=False
        ) as record:
            pair_counts, where = self._count_pairs(words, counts, progress)
            queue = [(-count, pair) for pair, count in pair_counts.items() if count > 0]
            heapq.heapify(queue)

            task = progress.add_task("merges", total=self.vocab_size - len(vocab))
            min_count = max(1, self.min_frequency)
            prefix = self.continuing_subword_prefix
            while queue and len(vocab) < self.vocab_size:
                neg, pair = heapq.heappop(queue)
                count = -neg
                current = pair_counts.get(pair, 0)
                if count != current:
                    if current > 0:
                        heapq.heappush(queue, (-current, pair))
                    continue
                if count < min_count:
                    break

                left, right = id_to_word[pair[0]], id_to_word[pair[1]]
                if prefix and right.startswith(prefix):
                    right = right[len(prefix):]
                new_token = left + right
                size_before = len(vocab)
                new_id = add_token(new_token)
                merges.append((pair, new_id))
                record.log(
                    {
                        "rank": len(merges) - 1,
                        "left": id_to_word[pair[0]],
                        "right": id_to_word[pair[1]],
                        "token": new_token,
                        "count": count,
                    }
                )
                progress.advance(task, len(vocab) - size_before)

                pair_counts[pair] = 0
                gained: set[Pair] = set()
                for i in sorted(where.pop(pair, ())):
                    for changed, delta in words[i].merge(pair[0], pair[1], new_id):
                        pair_counts[changed] = pair_counts.get(changed, 0) + delta * counts[i]
                        if delta > 0:
                            where.setdefault(changed, set()).add(i)
                            gained.add(changed)
                for changed in sorted(gained):
                    if pair_counts[changed] > 0:
                        heapq.heappush(queue, (-pair_counts[changed], changed))

            record.log(
                {"event": "bpe_train_done", "vocab": len(vocab), "merges": len(merges)},
                echo=self.show_progress,
            )

        logger.info("bpe_train_done vocab=%s merges=%s words=%s", len(vocab), len(merges), len(words))
        merge_pairs = [(id_to_word[a], id_to_word[b]) for (a, b), _ in merges]
        return vocab, merge_pairs

    def train_model(self, word_counts: Mapping[str, int], **model_kwargs: Any) -> BPE:
        vocab, merges = self.train(word_counts)
        return BPE(
            vocab,
            merges,
            continuing_subword_prefix=self.continuing_subword_prefix,
            end_of_word_suffix=self.end_of_word_suffix,
            **model_kwargs,
        )

    def compute_alphabet(self, word_counts: Mapping[str, int]) -> list[str]:
        """Alphabet in code point order, limited to the most frequent entries."""
        alphabet: dict[str, float] = defaultdict(float)
        for word, count in word_counts.items():
            for ch in word:
                alphabet[ch] += count
        for ch in self.initial_alphabet:
            alphabet[ch] = float("inf")
        kept = list(alphabet)
        if self.limit_alphabet is not None and len(kept) > self.limit_alphabet:
            kept.sort(key=lambda ch: (-alphabet[ch], ch))
            kept = kept[: self.limit_alphabet]
        return sorted(kept)

    def _tokenize_words(
        self, word_counts: Mapping[str, int], vocab: dict[str, int], add_token: Any
    ) -> tuple[list[Word], list[int]]:
        prefix = self.continuing_subword_prefix
        suffix = self.end_of_word_suffix
        words: list[Word] = []
        counts: list[int] = []
        for text in sorted(word_counts):
            word = Word()
            last = len(text) - 1
            start = 0
            for i, ch in enumerate(text):
                length = utf8_len(ch)
                if ch in vocab:
                    s = ch
                    if prefix and i > 0:
                        s = prefix + s
                    if suffix and i == last:
                        s = s + suffix
                    word.add(add_token(s), start, length)
                start += length
            words.append(word)
            counts.append(word_counts[text])
        return words, counts

    def _count_pairs(
        self, words: list[Word], counts: list[int], progress: Progress
    ) -> tuple[PairCounts, PairPositions]:
        n_threads = resolve_num_threads(self.num_threads)
        chunk = max(1, PAIR_COUNT_BATCH // n_threads)
        bounds = [(lo, min(lo + chunk, len(words))) for lo in range(0, len(words), chunk)]
        task = progress.add_task("count pairs", total=len(words))

        def count_chunk(bound: tuple[int, int]) -> tuple[PairCounts, PairPositions]:
            local_counts: PairCounts = defaultdict(int)
            local_where: PairPositions = defaultdict(set)
            for i in range(*bound):
                ids = words[i].ids()
                for pair in zip(ids, ids[1:]):
                    local_counts[pair] += counts[i]
                    local_where[pair].add(i)
            return local_counts, local_where

        pair_counts: PairCounts = defaultdict(int)
        where: PairPositions = defaultdict(set)
        with ThreadPoolExecutor(max_workers=n_threads) as pool:
            for (lo, hi), (local_counts, local_where) in zip(bounds, pool.map(count_chunk, bounds)):
                for pair, c in local_counts.items():
                    pair_counts[pair] += c
                for pair, positions in local_where.items():
                    where[pair].update(positions)
                progress.advance(task, hi - lo)
        return dict(pair_counts), dict(where)
