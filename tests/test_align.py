"""Tests for banded DTW and reference projection."""

import math

import numpy as np
import pytest

from tonetrace.align import band_width, dtw_band, dtw_band_features, path_mapping, project_reference
from tonetrace.align.dtw import scalar_costs

NAN = math.nan


def assert_valid_path(path: list[tuple[int, int]], n: int, m: int) -> None:
    """Helper to check a warping path's endpoints and step shape."""
    assert path[0] == (0, 0)
    assert path[-1] == (n - 1, m - 1)
    for (i0, j0), (i1, j1) in zip(path, path[1:]):
        assert (i1 - i0, j1 - j0) in {(1, 0), (0, 1), (1, 1)}


class TestBandWidth:
    """Tests for the band half-width."""

    def test_includes_length_difference(self) -> None:
        assert band_width(100, 80, 0.15) == 35

    def test_at_least_one(self) -> None:
        assert band_width(1, 1, 0.15) == 1
        assert band_width(5, 5, 0.0) == 1


class TestScalarCosts:
    """Tests for the NaN-aware local cost."""

    def test_costs(self) -> None:
        costs = scalar_costs(1.0, np.array([3.0, NAN]), nan_cost=0.7)
        np.testing.assert_allclose(costs, [4.0, 0.7])
        costs = scalar_costs(NAN, np.array([3.0, NAN]), nan_cost=0.7)
        np.testing.assert_allclose(costs, [0.7, 0.0])


class TestDtwBand:
    """Tests for scalar contour DTW."""

    def test_identical_contours(self) -> None:
        x = np.log(np.linspace(120.0, 240.0, 30))
        result = dtw_band(x, x)
        assert result.cost == 0.0
        assert result.path == [(i, i) for i in range(30)]

    def test_path_is_monotonic(self) -> None:
        rng = np.random.default_rng(7)
        a = rng.standard_normal(40)
        b = rng.standard_normal(55)
        a[5:9] = NAN
        b[20] = NAN
        result = dtw_band(a, b)
        assert result.ok
        assert_valid_path(result.path, 40, 55)

    def test_path_stays_in_band(self) -> None:
        rng = np.random.default_rng(3)
        a, b = rng.standard_normal(50), rng.standard_normal(60)
        band = band_width(50, 60, 0.15)
        result = dtw_band(a, b)
        assert all(abs(i - j) <= band for i, j in result.path)

    def test_cost_is_symmetric(self) -> None:
        rng = np.random.default_rng(11)
        a, b = rng.standard_normal(25), rng.standard_normal(31)
        a[3] = NAN
        assert dtw_band(a, b).cost == pytest.approx(dtw_band(b, a).cost)

    def test_absorbs_time_stretch(self) -> None:
        """A slowed-down copy aligns with zero cost."""
        a = np.array([1.0, 2.0, 3.0, 4.0])
        b = np.array([1.0, 1.0, 2.0, 2.0, 3.0, 4.0])
        assert dtw_band(a, b, band_ratio=0.5).cost == 0.0

    def test_rejects_feature_matrix(self) -> None:
        """A 2-D feature matrix is not flattened into a contour."""
        with pytest.raises(ValueError, match="1-D"):
            dtw_band(np.zeros((5, 12)), np.zeros(5))

    def test_empty_input_fails_softly(self) -> None:
        result = dtw_band(np.zeros(0), np.ones(4))
        assert math.isinf(result.cost)
        assert result.path == []
        assert not result.ok


class TestDtwBandFeatures:
    """Tests for feature sequence DTW."""

    def test_identical_sequences(self) -> None:
        rng = np.random.default_rng(5)
        a = rng.standard_normal((20, 12))
        result = dtw_band_features(a, a)
        assert result.cost == 0.0
        assert result.path == [(i, i) for i in range(20)]

    def test_different_lengths(self) -> None:
        rng = np.random.default_rng(6)
        a, b = rng.standard_normal((20, 4)), rng.standard_normal((33, 4))
        result = dtw_band_features(a, b)
        assert_valid_path(result.path, 20, 33)
        assert result.cost > 0.0

    def test_dimension_mismatch(self) -> None:
        with pytest.raises(ValueError, match="dimensionality"):
            dtw_band_features(np.zeros((5, 12)), np.zeros((5, 13)))

    def test_rejects_flat_input(self) -> None:
        with pytest.raises(ValueError, match="2-D"):
            dtw_band_features(np.zeros(5), np.zeros(5))

    def test_empty_input_fails_softly(self) -> None:
        result = dtw_band_features(np.zeros((0, 12)), np.zeros((5, 12)))
        assert not result.ok


class TestProjection:
    """Tests for projecting a reference onto user frames."""

    def test_path_mapping(self) -> None:
        path = [(0, 0), (1, 0), (2, 1)]
        assert path_mapping(path, by=0) == {0: [0], 1: [0], 2: [1]}
        assert path_mapping(path, by=1) == {0: [0, 1], 1: [2]}

    def test_mean_of_paired_frames(self) -> None:
        ref = np.array([1.0, 3.0, 5.0])
        out = project_reference(2, ref, [(0, 0), (1, 0), (2, 1)])
        np.testing.assert_allclose(out, [2.0, 5.0])

    def test_nan_and_unpaired_frames(self) -> None:
        """NaN reference values are skipped; frames with no finite partner are NaN."""
        ref = np.array([NAN, 3.0, NAN])
        out = project_reference(3, ref, [(0, 0), (1, 0), (2, 1)])
        assert out[0] == 3.0
        assert np.isnan(out[1])
        assert np.isnan(out[2])
