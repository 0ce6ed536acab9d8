"""Encode text with a YAML-configured tokenizer."""

from __future__ import annotations

import argparse

from subtok.tokenizer.config import load_tokenizer
from subtok.utils.io import iter_lines
from subtok.utils.runtime import setup_logging


def main() -> None:
    logger = setup_logging("subtok.encode")
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", required=True)
    parser.add_argument("--text", action="append", default=[])
    parser.add_argument("--file", default=None)
    parser.add_argument("--pair", default=None)
    parser.add_argument("--no-special", action="store_true")
    args = parser.parse_args()

    tokenizer = load_tokenizer(args.config)
    texts = list(args.text)
    if args.file:
        texts.extend(line for _, line in iter_lines(args.file))
    if args.pair is not None:
        inputs = [(t, args.pair) for t in texts]
    else:
        inputs = texts
    encodings = tokenizer.encode_batch(inputs, add_special_tokens=not args.no_special)
    for enc in encodings:
        logger.info("ids=%s", enc.ids)
        logger.info("tokens=%s", enc.tokens)
        logger.info("offsets=%s overflow=%s", enc.offsets, len(enc.overflowing))


if __name__ == "__main__":
    main()
