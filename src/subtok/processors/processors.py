"""Post-processors that wrap encodings with special tokens."""

from __future__ import annotations

from typing import Any, Optional, Protocol

from subtok.errors import ConfigError, FormatError
from subtok.normalize.normalized import utf8_len
from subtok.pretokenize.byte_level import bytes_to_unicode
from subtok.tokenizer.encoding import Encoding
from subtok.utils.registry import Registry


POST_PROCESSORS = Registry("post_processor")

SpecialToken = tuple[str, int]


class PostProcessor(Protocol):
    def added_tokens(self, is_pair: bool) -> int: ...

    def process(self, encoding: Encoding, pair: Optional[Encoding] = None) -> Encoding: ...


def _lookup(model: Any, token: str) -> SpecialToken:
    idx = model.token_to_id(token)
    if idx is None:
        raise FormatError(f"special token {token!r} is missing from the vocab")
    return token, idx


def _wrap(
    encoding: Encoding,
    before: list[SpecialToken],
    after: list[SpecialToken],
    type_id: int,
) -> Encoding:
    """Surround ``encoding`` (and each overflow fragment) with special tokens."""
    out = Encoding(normalized=encoding.normalized)
    n = len(encoding)
    out.ids = [i for _, i in before] + encoding.ids + [i for _, i in after]
    out.tokens = [t for t, _ in before] + encoding.tokens + [t for t, _ in after]
    out.offsets = [(0, 0)] * len(before) + encoding.offsets + [(0, 0)] * len(after)
    out.special_tokens_mask = [1] * len(before) + encoding.special_tokens_mask + [1] * len(after)
    out.attention_mask = [1] * (len(before) + n + len(after))
    out.type_ids = [type_id] * len(out.ids)
    out.overflowing = [_wrap(o, before, after, type_id) for o in encoding.overflowing]
    return out


def trim_offsets(encoding: Encoding) -> Encoding:
    """Drop leading and trailing byte-level space markers from token offsets.

    Offsets are byte ranges of the byte-level text, so each marker accounts
    for its own UTF-8 width. Special positions are left alone.
    """
    space = bytes_to_unicode()[ord(" ")]
    width = utf8_len(space)
    offsets = []
    for token, (start, end), special in zip(encoding.tokens, encoding.offsets, encoding.special_tokens_mask):
        if not special:
            leading = len(token) - len(token.lstrip(space))
            trailing = len(token) - len(token.rstrip(space))
            if leading:
                start = min(start + leading * width, end)
            if trailing:
                end = max(end - trailing * width, start)
        offsets.append((start, end))
    encoding.offsets = offsets
    for o in encoding.overflowing:
        trim_offsets(o)
    return encoding


@POST_PROCESSORS.register("bert")
class BertProcessing:
    """``[CLS] A [SEP]`` or ``[CLS] A [SEP] B [SEP]``; type id 1 for the B span."""

    def __init__(self, sep: SpecialToken = ("[SEP]", 102), cls: SpecialToken = ("[CLS]", 101)) -> None:
        self.sep = (sep[0], int(sep[1]))
        self.cls = (cls[0], int(cls[1]))

    @classmethod
    def from_model(cls, model: Any, sep: str = "[SEP]", cls_token: str = "[CLS]") -> "BertProcessing":
        return cls(sep=_lookup(model, sep), cls=_lookup(model, cls_token))

    def added_tokens(self, is_pair: bool) -> int:
        return 3 if is_pair else 2

    def process(self, encoding: Encoding, pair: Optional[Encoding] = None) -> Encoding:
        out = _wrap(encoding, [self.cls], [self.sep], type_id=0)
        if pair is not None:
            out.merge_with(_wrap(pair, [], [self.sep], type_id=1))
        return out


@POST_PROCESSORS.register("roberta")
class RobertaProcessing:
    """``<s> A </s>`` or ``<s> A </s> </s> B </s>``; every type id is 0."""

    def __init__(
        self,
        sep: SpecialToken = ("</s>", 2),
        cls: SpecialToken = ("<s>", 0),
        trim_offsets: bool = False,
    ) -> None:
        self.sep = (sep[0], int(sep[1]))
        self.cls = (cls[0], int(cls[1]))
        self.trim_offsets = trim_offsets

    @classmethod
    def from_model(
        cls, model: Any, sep: str = "</s>", cls_token: str = "<s>", trim_offsets: bool = False
    ) -> "RobertaProcessing":
        return cls(sep=_lookup(model, sep), cls=_lookup(model, cls_token), trim_offsets=trim_offsets)

    def added_tokens(self, is_pair: bool) -> int:
        return 4 if is_pair else 2

    def process(self, encoding: Encoding, pair: Optional[Encoding] = None) -> Encoding:
        if self.trim_offsets:
            trim_offsets(encoding)
            if pair is not None:
                trim_offsets(pair)
        out = _wrap(encoding, [self.cls], [self.sep], type_id=0)
        if pair is not None:
            out.merge_with(_wrap(pair, [self.sep], [self.sep], type_id=0))
        return out


@POST_PROCESSORS.register("byte_level")
class ByteLevelProcessing:
    """No special tokens; only trims space markers from offsets."""

    def __init__(self, trim_offsets: bool = True) -> None:
        self.trim_offsets = trim_offsets

    def added_tokens(self, is_pair: bool) -> int:
        return 0

    def process(self, encoding: Encoding, pair: Optional[Encoding] = None) -> Encoding:
        if self.trim_offsets:
            trim_offsets(encoding)
            if pair is not None:
                trim_offsets(pair)
        if pair is not None:
            encoding.merge_with(pair)
        return encoding


def build_post_processor(spec: dict[str, Any], model: Any) -> Any:
    """Build from config; special tokens given by name resolve through ``model``."""
    params = dict(spec)
    factory = POST_PROCESSORS.get(str(params.pop("type", "")))
    kwargs: dict[str, Any] = {}
    for key in ("sep", "cls"):
        if key not in params:
            continue
        value = params.pop(key)
        kwargs[key] = _lookup(model, value) if isinstance(value, str) else tuple(value)
    if "trim_offsets" in params:
        kwargs["trim_offsets"] = bool(params.pop("trim_offsets"))
    if params:
        raise ConfigError(f"unknown post_processor options: {sorted(params)}")
    if hasattr(factory, "from_model") and not {"sep", "cls"} <= set(kwargs):
        defaults = factory.from_model(model)
        kwargs.setdefault("sep", defaults.sep)
        kwargs.setdefault("cls", defaults.cls)
    try:
        return factory(**kwargs)
    except TypeError as exc:
        raise ConfigError(f"bad post_processor options {spec}: {exc}") from exc
