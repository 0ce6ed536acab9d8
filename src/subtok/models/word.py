"""Symbol lists shared by BPE encoding and training."""

from __future__ import annotations

import heapq
import random
from dataclasses import dataclass
from typing import Optional

from subtok.errors import StateError


Pair = tuple[int, int]
# (left id, right id) -> (rank, new id)
MergeMap = dict[Pair, tuple[int, int]]


@dataclass
class Symbol:
    c: int
    prev: int
    next: int
    start: int
    length: int

    def merge_with(self, other: "Symbol", new_c: int) -> None:
        self.c = new_c
        self.length = other.start + other.length - self.start
        self.next = other.next


class Word:
    """A word as a flat array of symbols linked through ``prev``/``next``.

    ``length == 0`` marks a symbol merged into its left neighbour.
    """

    def __init__(self) -> None:
        self.symbols: list[Symbol] = []

    def __len__(self) -> int:
        return len(self.symbols)

    def add(self, c: int, start: int, length: int) -> None:
        n = len(self.symbols)
        if n:
            self.symbols[-1].next = n
        self.symbols.append(Symbol(c=c, prev=n - 1, next=-1, start=start, length=length))

    def merge(self, c1: int, c2: int, replacement: int) -> list[tuple[Pair, int]]:
        """Merge every ``(c1, c2)`` occurrence left to right.

        Returns the pair count deltas this causes inside the word.
        """
        changes: list[tuple[Pair, int]] = []
        symbols = self.symbols
        i = 0
        while i < len(symbols):
            if symbols[i].c == c1 and i + 1 < len(symbols) and symbols[i + 1].c == c2:
                first = symbols[i]
                second = symbols[i + 1]
                new_s = Symbol(
                    c=replacement,
                    prev=first.prev,
                    next=second.next,
                    start=first.start,
                    length=second.start + second.length - first.start,
                )
                if i > 0:
                    changes.append(((symbols[i - 1].c, first.c), -1))
                    changes.append(((symbols[i - 1].c, replacement), 1))
                symbols[i : i + 2] = [new_s]
                if i < len(symbols) - 1:
                    changes.append(((second.c, symbols[i + 1].c), -1))
                    changes.append(((replacement, symbols[i + 1].c), 1))
            i += 1
        self._relink()
        return changes

    def merge_all(
        self,
        merges: MergeMap,
        dropout: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        symbols = self.symbols
        queue: list[tuple[int, int, int]] = []
        for pos in range(len(symbols) - 1):
            m = merges.get((symbols[pos].c, symbols[pos + 1].c))
            if m is not None:
                queue.append((m[0], pos, m[1]))
        heapq.heapify(queue)
        skip: list[tuple[int, int, int]] = []
        draw = (rng or random).random

        while queue:
            top = heapq.heappop(queue)
            if dropout and draw() < dropout:
                skip.append(top)
                continue
            for entry in skip:
                heapq.heappush(queue, entry)
            skip.clear()

            rank, pos, new_id = top
            current = symbols[pos]
            if current.length == 0 or current.next == -1:
                continue
            next_pos = current.next
            right = symbols[next_pos]
            if right.length == 0:
                raise StateError(f"symbol {pos} links to merged symbol {next_pos}")
            target = merges.get((current.c, right.c))
            if target is None or target[1] != new_id:
                continue

            current.merge_with(right, new_id)
            right.length = 0
            if 0 <= right.next < len(symbols):
                symbols[right.next].prev = pos

            if current.prev >= 0:
                m = merges.get((symbols[current.prev].c, current.c))
                if m is not None:
                    heapq.heappush(queue, (m[0], current.prev, m[1]))
            if 0 <= current.next < len(symbols):
                m = merges.get((current.c, symbols[current.next].c))
                if m is not None:
                    heapq.heappush(queue, (m[0], pos, m[1]))

        self.symbols = [s for s in symbols if s.length != 0]
        self._relink()

    def _relink(self) -> None:
        last = len(self.symbols) - 1
        for i, s in enumerate(self.symbols):
            s.prev = i - 1
            s.next = i + 1 if i < last else -1

    def ids(self) -> list[int]:
        return [s.c for s in self.symbols]

    def offsets(self) -> list[tuple[int, int]]:
        return [(s.start, s.start + s.length) for s in self.symbols]
