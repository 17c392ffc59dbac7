"""Tests for the reference oracle, comparison and write-region checks."""

import numpy as np
import pytest
from conftest import make_random_array
from ml_dtypes import bfloat16

from tilegemm.config import GemmShape, TileConfig
from tilegemm.errors import ShapeMismatchError
from tilegemm.layout import Layout
from tilegemm.reference import (
    check_coverage,
    check_disjoint,
    compare,
    reference_matmul,
    tile_write_regions,
    write_counts,
)


class TestReferenceMatmul:
    """Tests for reference_matmul()."""

    @pytest.mark.parametrize("dtype", [np.int8, np.uint8], ids=["int8", "uint8"])
    def test_integer_matches_numpy(self, dtype: type) -> None:
        a_t = make_random_array((16, 4), seed=1, dtype=dtype)
        b_t = make_random_array((3, 16), seed=2, dtype=dtype)
        d = reference_matmul(a_t, b_t)
        assert d.dtype == np.int32
        np.testing.assert_array_equal(d, a_t.T.astype(np.int32) @ b_t.T.astype(np.int32))

    def test_bf16_accumulates_in_float32(self) -> None:
        a_t = make_random_array((8, 2), seed=3, dtype=bfloat16)
        b_t = make_random_array((2, 8), seed=4, dtype=bfloat16)
        d = reference_matmul(a_t, b_t)
        assert d.dtype == np.float32
        np.testing.assert_array_equal(d, a_t.T.astype(np.float32) @ b_t.T.astype(np.float32))

    def test_no_overflow_in_narrow_type(self) -> None:
        """127 * 127 summed 32 times needs the wide type."""
        a_t = np.full((32, 1), 127, dtype=np.int8)
        b_t = np.full((1, 32), 127, dtype=np.int8)
        assert reference_matmul(a_t, b_t)[0, 0] == 127 * 127 * 32

    def test_contraction_mismatch(self) -> None:
        with pytest.raises(ShapeMismatchError):
            reference_matmul(np.zeros((8, 2), dtype=np.int8), np.zeros((2, 4), dtype=np.int8))


class TestCompare:
    """Tests for compare()."""

    def test_exact_match(self) -> None:
        values = np.arange(6, dtype=np.int32).reshape(2, 3)
        result = compare(values, values.copy())
        assert result.passed
        assert str(result) == "passed"
        assert result.mismatches == 0
        assert result.first_mismatch is None

    def test_reports_first_mismatch(self) -> None:
        expected = np.zeros((3, 3), dtype=np.int32)
        actual = expected.copy()
        actual[1, 2] = 5
        actual[2, 0] = -2
        result = compare(actual, expected)
        assert not result.passed
        assert str(result) == "failed"
        assert result.mismatches == 2
        assert result.first_mismatch == (1, 2)
        assert result.max_abs_error == 5.0

    def test_float_exact_by_default(self) -> None:
        expected = np.ones(4, dtype=np.float32)
        assert not compare(expected + np.float32(1e-6), expected).passed

    def test_float_tolerance(self) -> None:
        expected = np.ones(4, dtype=np.float32)
        assert compare(expected + np.float32(1e-6), expected, atol=1e-5).passed

    def test_shape_mismatch(self) -> None:
        with pytest.raises(ShapeMismatchError):
            compare(np.zeros((2, 2)), np.zeros((2, 3)))


class TestWriteRegions:
    """Static checks that output tiles partition C."""

    @pytest.mark.parametrize("layout", [Layout.ROW_MAJOR, Layout.COL_MAJOR])
    @pytest.mark.parametrize(
        "shape,config",
        [
            (GemmShape(8, 8, 32), TileConfig()),
            (GemmShape(24, 16, 32), TileConfig()),
            (GemmShape(12, 20, 8), TileConfig(tile_rows=4, tile_cols=5, tile_depth=8)),
        ],
    )
    def test_partition(self, shape: GemmShape, config: TileConfig, layout: Layout) -> None:
        regions = tile_write_regions(shape, config, layout)
        tiles_m, tiles_n = config.grid(shape)
        assert len(regions) == tiles_m * tiles_n
        assert check_disjoint(regions)
        assert check_coverage(regions, shape.m * shape.n)

    def test_overlap_detected(self) -> None:
        regions = {(0, 0): np.array([0, 1, 2]), (0, 1): np.array([2, 3])}
        assert not check_disjoint(regions)
        assert not check_coverage(regions, 4)
        np.testing.assert_array_equal(write_counts(regions, 4), [1, 1, 2, 1])

    def test_gap_detected(self) -> None:
        regions = {(0, 0): np.array([0, 1]), (0, 1): np.array([3])}
        assert check_disjoint(regions)
        assert not check_coverage(regions, 4)
