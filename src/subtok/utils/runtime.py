"""Runtime configuration and logging."""

from __future__ import annotations

import logging
import os
from typing import Optional


THREADS_ENV = "SUBTOK_NUM_THREADS"


def setup_logging(name: str = "subtok") -> logging.Logger:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    return logging.getLogger(name)


def resolve_num_threads(requested: Optional[int] = None) -> int:
    """Worker count for parallel regions: argument, then env, then CPU count."""
    if requested is not None:
        return max(1, int(requested))
    env = os.environ.get(THREADS_ENV)
    if env:
        try:
            return max(1, int(env))
        except ValueError:
            logging.getLogger("subtok.runtime").warning(
                "threads_env_invalid value=%s fallback=cpu_count", env
            )
    return max(1, os.cpu_count() or 1)
