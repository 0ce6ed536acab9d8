"""Collate encodings into model-ready tensors."""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np
import torch

from subtok.errors import ConfigError, InputError
from subtok.tokenizer.encoding import Encoding


_FIELDS = {
    "input_ids": "ids",
    "token_type_ids": "type_ids",
    "attention_mask": "attention_mask",
    "special_tokens_mask": "special_tokens_mask",
}


def collate_encodings(encodings: Sequence[Encoding], return_tensors: str = "pt") -> dict[str, Any]:
    """Stack equal-length encodings; pad them first if lengths differ."""
    if return_tensors not in ("pt", "np"):
        raise ConfigError(f"return_tensors must be 'pt' or 'np', got {return_tensors!r}")
    for idx, e in enumerate(encodings):
        if len(e) != len(encodings[0]):
            raise InputError(
                f"length {len(e)} differs from {len(encodings[0])}; enable padding first",
                index=idx,
            )
    batch: dict[str, Any] = {}
    for key, attr in _FIELDS.items():
        rows = [getattr(e, attr) for e in encodings]
        if return_tensors == "pt":
            batch[key] = torch.tensor(rows, dtype=torch.long) if rows else torch.zeros((0, 0), dtype=torch.long)
        else:
            batch[key] = np.asarray(rows, dtype=np.int64).reshape(len(rows), -1 if rows else 0)
    return batch
