# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Narrow input element types, their accumulator types and VNNI pack factors."""

from dataclasses import dataclass

import numpy as np
from ml_dtypes import bfloat16

from tilegemm.errors import UnsupportedTypeError

LOAD_GRANULARITY_BYTES = 4


@dataclass(frozen=True)
class ElementType:
    """One row of the supported element type table.

    Attributes:
        name: Short name used in logs and CLI output.
        dtype: Numpy dtype of the narrow input operands.
        accumulator: Numpy dtype of the wide accumulator.
    """

    name: str
    dtype: np.dtype
    accumulator: np.dtype

    @property
    def pack_factor(self) -> int:
        """Number of elements grouped along K to fill one 32-bit load."""
        return LOAD_GRANULARITY_BYTES // self.dtype.itemsize

    @property
    def is_integer(self) -> bool:
        return np.issubdtype(self.accumulator, np.integer)


_ELEMENT_TYPES = (
    ElementType("int8", np.dtype(np.int8), np.dtype(np.int32)),
    ElementType("uint8", np.dtype(np.uint8), np.dtype(np.int32)),
    ElementType("bf16", np.dtype(bfloat16), np.dtype(np.float32)),
    ElementType("fp16", np.dtype(np.float16), np.dtype(np.float32)),
)

_BY_DTYPE: dict[np.dtype, ElementType] = {t.dtype: t for t in _ELEMENT_TYPES}
_BY_NAME: dict[str, ElementType] = {t.name: t for t in _ELEMENT_TYPES}


def element_type(dtype: np.dtype | type | str) -> ElementType:
    """Look up the table entry for a narrow input dtype.

    Args:
        dtype: A numpy dtype, scalar type, or a short name such as ``"bf16"``.

    Returns:
        The matching ElementType.

    Raises:
        UnsupportedTypeError: If the type is not a supported narrow input type.
    """
    if isinstance(dtype, str) and dtype in _BY_NAME:
        return _BY_NAME[dtype]
    try:
        key = np.dtype(dtype)
    except TypeError as e:
        raise UnsupportedTypeError(f"Unknown element type {dtype!r}") from e
    if key not in _BY_DTYPE:
        supported = ", ".join(t.name for t in supported_types())
        raise UnsupportedTypeError(f"Element type {key} is not supported. Supported input types: {supported}.")
    return _BY_DTYPE[key]


def accumulator_dtype(dtype: np.dtype | type | str) -> np.dtype:
    """Return the wide accumulator dtype for a narrow input dtype."""
    return element_type(dtype).accumulator


def supported_types() -> tuple[ElementType, ...]:
    return _ELEMENT_TYPES
