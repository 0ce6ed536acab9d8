"""Build a tokenizer from a YAML mapping."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

# imported for their registrations
import subtok.models.bpe  # noqa: F401
import subtok.models.wordpiece  # noqa: F401
import subtok.pretokenize.byte_level  # noqa: F401
from subtok.errors import ConfigError
from subtok.models.base import MODELS
from subtok.normalize.normalizers import NORMALIZERS
from subtok.pretokenize.pretokenizers import PRE_TOKENIZERS
from subtok.processors.processors import build_post_processor
from subtok.tokenizer.decoders import DECODERS
from subtok.tokenizer.encoding import PaddingParams, TruncationParams
from subtok.tokenizer.tokenizer import AddedToken, Tokenizer
from subtok.utils.io import load_yaml


logger = logging.getLogger("subtok.config")

KNOWN_KEYS = {
    "model",
    "normalizer",
    "pre_tokenizer",
    "post_processor",
    "decoder",
    "truncation",
    "padding",
    "special_tokens",
    "added_tokens",
    "num_threads",
}

_PATH_KEYS = ("vocab", "merges")


def _added(entries: list[Any]) -> list[AddedToken]:
    out: list[AddedToken] = []
    for entry in entries:
        if isinstance(entry, str):
            out.append(AddedToken(entry))
        elif isinstance(entry, dict) and "content" in entry:
            out.append(
                AddedToken(
                    str(entry["content"]),
                    single_word=bool(entry.get("single_word", False)),
                    special=bool(entry.get("special", False)),
                )
            )
        else:
            raise ConfigError(f"cannot read added token entry: {entry!r}")
    return out


def _resolve_paths(spec: dict[str, Any], base_dir: Optional[Path]) -> dict[str, Any]:
    if base_dir is None:
        return spec
    spec = dict(spec)
    for key in _PATH_KEYS:
        value = spec.get(key)
        if isinstance(value, str) and not Path(value).is_absolute():
            spec[key] = str(base_dir / value)
    return spec


def _component(registry: Any, spec: Any) -> Any:
    if spec is None:
        return None
    if not isinstance(spec, dict):
        raise ConfigError(f"{registry.kind} must be a mapping with a 'type' key")
    try:
        return registry.build(spec)
    except TypeError as exc:
        raise ConfigError(f"bad {registry.kind} options {spec}: {exc}") from exc


def build_tokenizer(cfg: dict[str, Any], base_dir: Optional[str | Path] = None) -> Tokenizer:
    unknown = set(cfg) - KNOWN_KEYS
    if unknown:
        raise ConfigError(f"unknown tokenizer config keys: {sorted(unknown)}")
    if not isinstance(cfg.get("model"), dict):
        raise ConfigError("tokenizer config needs a 'model' mapping")
    root = Path(base_dir) if base_dir is not None else None

    model = _component(MODELS, _resolve_paths(cfg["model"], root))
    post_processor = None
    if cfg.get("post_processor") is not None:
        post_processor = build_post_processor(cfg["post_processor"], model)
    tokenizer = Tokenizer(
        model,
        normalizer=_component(NORMALIZERS, cfg.get("normalizer")),
        pre_tokenizer=_component(PRE_TOKENIZERS, cfg.get("pre_tokenizer")),
        post_processor=post_processor,
        decoder=_component(DECODERS, cfg.get("decoder")),
    )
    if cfg.get("truncation") is not None:
        tokenizer.truncation = TruncationParams(**cfg["truncation"])
    if cfg.get("padding") is not None:
        tokenizer.padding = PaddingParams(**cfg["padding"])
    if cfg.get("num_threads") is not None:
        tokenizer.num_threads = int(cfg["num_threads"])
    tokenizer.add_special_tokens(_added(cfg.get("special_tokens") or []))
    tokenizer.add_tokens(_added(cfg.get("added_tokens") or []))
    logger.info(
        "tokenizer_built model=%s vocab=%s",
        cfg["model"].get("type"),
        tokenizer.get_vocab_size(),
    )
    return tokenizer


def load_tokenizer(path: str | Path) -> Tokenizer:
    """Load a YAML tokenizer config; relative vocab/merges paths resolve against its directory."""
    path = Path(path)
    return build_tokenizer(load_yaml(path), base_dir=path.parent)
