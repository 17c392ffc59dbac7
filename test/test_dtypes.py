"""Unit tests for tilegemm.dtypes."""

import numpy as np
import pytest
from ml_dtypes import bfloat16

from tilegemm.dtypes import accumulator_dtype, element_type, supported_types
from tilegemm.errors import UnsupportedTypeError

TYPE_TABLE = [
    (np.int8, np.int32, 4),
    (np.uint8, np.int32, 4),
    (bfloat16, np.float32, 2),
    (np.float16, np.float32, 2),
]


class TestElementTypes:
    """Tests for the narrow-input / wide-accumulator table."""

    @pytest.mark.parametrize("dtype,acc,pf", TYPE_TABLE, ids=["int8", "uint8", "bf16", "fp16"])
    def test_table(self, dtype: type, acc: type, pf: int) -> None:
        """Accumulator type and pack factor follow the 32-bit load granularity."""
        assert accumulator_dtype(dtype) == np.dtype(acc)
        assert element_type(dtype).pack_factor == pf

    @pytest.mark.parametrize("name", ["int8", "uint8", "bf16", "fp16"])
    def test_lookup_by_name(self, name: str) -> None:
        """Short names resolve to the same entries as dtypes."""
        assert element_type(name).name == name

    def test_integer_flag(self) -> None:
        """Integer inputs accumulate in an integer type."""
        assert element_type(np.int8).is_integer
        assert not element_type(bfloat16).is_integer

    @pytest.mark.parametrize("dtype", [np.float32, np.int32, np.int16, "fp8"])
    def test_unsupported(self, dtype: object) -> None:
        """Types outside the table raise UnsupportedTypeError."""
        with pytest.raises(UnsupportedTypeError):
            element_type(dtype)

    def test_supported_types(self) -> None:
        """All four narrow input types are listed."""
        assert [t.name for t in supported_types()] == ["int8", "uint8", "bf16", "fp16"]
