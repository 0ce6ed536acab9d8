"""Stream training files into a word-count map."""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterable, Optional

from rich.progress import Progress

from subtok.normalize.normalized import NormalizedString
from subtok.pretokenize.pretokenizers import WhitespaceSplit
from subtok.utils.io import iter_lines
from subtok.utils.runtime import resolve_num_threads


logger = logging.getLogger("subtok.train.ingest")


def count_line(line: str, normalizer: Any = None, pre_tokenizer: Any = None) -> list[str]:
    normalized = NormalizedString(line)
    if normalizer is not None:
        normalized = normalizer.normalize(normalized)
    splitter = pre_tokenizer if pre_tokenizer is not None else WhitespaceSplit()
    return [p.value for p in splitter.pre_tokenize(normalized) if p.value]


def count_file(path: str | Path, normalizer: Any = None, pre_tokenizer: Any = None) -> Counter[str]:
    counts: Counter[str] = Counter()
    for _, line in iter_lines(path):
        counts.update(count_line(line, normalizer, pre_tokenizer))
    return counts


def count_words(
    files: Iterable[str | Path],
    normalizer: Any = None,
    pre_tokenizer: Any = None,
    num_threads: Optional[int] = None,
    show_progress: bool = False,
) -> Counter[str]:
    """Count words over ``files``, one worker per file, merged in file order."""
    paths = [str(f) for f in files]
    total: Counter[str] = Counter()
    if not paths:
        return total
    workers = min(resolve_num_threads(num_threads), len(paths))
    with Progress(disable=not show_progress, transient=True) as progress:
        task = progress.add_task("read files", total=len(paths))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(count_file, p, normalizer, pre_tokenizer) for p in paths]
            for path, future in zip(paths, futures):
                counts = future.result()
                total.update(counts)
                progress.advance(task)
                logger.debug("ingest_file path=%s words=%s", path, len(counts))
    logger.info("ingest_done files=%s distinct_words=%s", len(paths), len(total))
    return total
