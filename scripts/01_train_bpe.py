"""Train a BPE vocab from text files."""

from __future__ import annotations

import argparse
import os

from subtok.models.bpe import BPE
from subtok.pretokenize.byte_level import ByteLevel
from subtok.pretokenize.pretokenizers import WhitespaceSplit
from subtok.tokenizer.decoders import ByteLevelDecoder
from subtok.tokenizer.tokenizer import Tokenizer
from subtok.train.bpe_trainer import BpeTrainer
from subtok.utils.runtime import setup_logging


def main() -> None:
    logger = setup_logging("subtok.train_bpe")
    parser = argparse.ArgumentParser()
    parser.add_argument("files", nargs="+")
    parser.add_argument("--out", default=None)
    parser.add_argument("--prefix", default=None)
    parser.add_argument("--vocab-size", type=int, default=30000)
    parser.add_argument("--min-frequency", type=int, default=2)
    parser.add_argument("--special", nargs="*", default=[])
    parser.add_argument("--limit-alphabet", type=int, default=None)
    parser.add_argument("--byte-level", action="store_true")
    parser.add_argument("--threads", type=int, default=None)
    parser.add_argument("--log", default=None)
    parser.add_argument("--no-progress", action="store_true")
    args = parser.parse_args()

    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    out_dir = args.out or os.path.join(repo_root, "out", "bpe")
    os.makedirs(out_dir, exist_ok=True)

    if args.byte_level:
        tokenizer = Tokenizer(BPE({}, []), pre_tokenizer=ByteLevel(), decoder=ByteLevelDecoder())
        initial_alphabet = ByteLevel.alphabet()
    else:
        tokenizer = Tokenizer(BPE({}, []), pre_tokenizer=WhitespaceSplit())
        initial_alphabet = []
    trainer = BpeTrainer(
        vocab_size=args.vocab_size,
        min_frequency=args.min_frequency,
        special_tokens=list(args.special),
        limit_alphabet=args.limit_alphabet,
        initial_alphabet=initial_alphabet,
        show_progress=not args.no_progress,
        num_threads=args.threads,
        log_path=args.log,
    )
    tokenizer.train(trainer, args.files)
    vocab_path, merges_path = tokenizer.model.save(out_dir, prefix=args.prefix)
    logger.info("saved vocab=%s merges=%s", vocab_path, merges_path)


if __name__ == "__main__":
    main()
