import numpy as np
import pytest
import torch

from subtok.data.collate import collate_encodings
from subtok.errors import ConfigError, InputError
from subtok.models.base import Token
from subtok.tokenizer.encoding import Encoding, PaddingParams, pad_encodings


def _enc(n: int) -> Encoding:
    return Encoding.from_tokens([Token(i + 1, str(i), (i, i + 1)) for i in range(n)])


def test_collate_torch() -> None:
    batch = collate_encodings(pad_encodings([_enc(2), _enc(3)], PaddingParams()))
    assert batch["input_ids"].dtype == torch.long
    assert batch["input_ids"].tolist() == [[1, 2, 0], [1, 2, 3]]
    assert batch["attention_mask"].tolist() == [[1, 1, 0], [1, 1, 1]]
    assert set(batch) == {"input_ids", "token_type_ids", "attention_mask", "special_tokens_mask"}


def test_collate_numpy() -> None:
    batch = collate_encodings([_enc(2), _enc(2)], return_tensors="np")
    assert batch["input_ids"].dtype == np.int64
    assert batch["input_ids"].shape == (2, 2)


def test_unequal_lengths() -> None:
    with pytest.raises(InputError) as excinfo:
        collate_encodings([_enc(2), _enc(3)])
    assert excinfo.value.index == 1


def test_bad_tensor_type() -> None:
    with pytest.raises(ConfigError):
        collate_encodings([_enc(1)], return_tensors="tf")
