"""Training record logger: ``k=v`` console lines plus an optional JSONL file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from rich.console import Console


class Logger:
    def __init__(self, log_path: str | None = None, echo: bool = True, console: Optional[Console] = None) -> None:
        self.console = console or Console(stderr=True)
        self.echo = echo
        self.log_path = Path(log_path) if log_path else None
        if self.log_path:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._fp = self.log_path.open("w", encoding="utf-8")
        else:
            self._fp = None

    def log(self, data: dict[str, Any], echo: Optional[bool] = None) -> None:
        if self.echo if echo is None else echo:
            msg = " ".join(f"{k}={v}" for k, v in data.items())
            self.console.print(msg, markup=False, highlight=False)
        if self._fp:
            self._fp.write(json.dumps(data, ensure_ascii=False) + "\n")
            self._fp.flush()

    def close(self) -> None:
        if self._fp:
            self._fp.close()
            self._fp = None

    def __enter__(self) -> "Logger":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
