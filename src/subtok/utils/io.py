"""File helpers for configs, vocab files and training corpora."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator

import yaml

from subtok.errors import FormatError, IngestError


def load_yaml(path: str | Path) -> dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FormatError(f"{path}: expected a mapping at the top level")
    return data


def load_json(path: str | Path) -> Any:
    with Path(path).open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise FormatError(f"{path}: {exc.msg}", line=exc.lineno) from exc


def save_json(path: str | Path, data: Any, sort_keys: bool = True) -> None:
    with Path(path).open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2, sort_keys=sort_keys)


def load_jsonl(path: str | Path) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            rows.append(json.loads(line))
    return rows


def iter_lines(path: str | Path) -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, text)`` pairs, 1-based, without trailing newline."""
    lineno = 0
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                yield lineno, line.rstrip("\n")
    except UnicodeDecodeError as exc:
        raise IngestError(f"invalid utf-8 ({exc.reason})", str(path), lineno + 1) from exc
    except OSError as exc:
        raise IngestError(exc.strerror or str(exc), str(path)) from exc
