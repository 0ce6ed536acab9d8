"""Smoke test for subtok."""

from __future__ import annotations

from subtok.data.collate import collate_encodings
from subtok.tokenizer.config import build_tokenizer
from subtok.utils.runtime import setup_logging


SMOKE_CFG = {
    "model": {
        "type": "bpe",
        "vocab": {"[PAD]": 0, "h": 1, "e": 2, "l": 3, "o": 4, "ll": 5, "w": 6, "r": 7, "d": 8},
        "merges": ["l l"],
    },
    "pre_tokenizer": {"type": "whitespace"},
    "padding": {"pad_id": 0},
    "special_tokens": ["[PAD]"],
}


def main() -> None:
    logger = setup_logging("subtok.smoke")
    tokenizer = build_tokenizer(SMOKE_CFG)
    batch = tokenizer.encode_batch(["hello world", "hello"])
    for enc in batch:
        logger.info("tokens=%s offsets=%s", enc.tokens, enc.offsets)
    tensors = collate_encodings(batch)
    logger.info("input_ids_shape=%s", tuple(tensors["input_ids"].shape))
    logger.info("decoded=%s", tokenizer.decode_batch([e.ids for e in batch]))


if __name__ == "__main__":
    main()
