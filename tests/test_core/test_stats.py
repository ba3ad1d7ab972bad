"""Tests for the numeric helpers in tableside.core.stats."""

import math

import pytest

from tableside.core import stats


class TestZeroCases:
    """Every helper is total on empty or degenerate input."""

    @pytest.mark.unit
    def test_empty_input_yields_zero(self):
        assert stats.mean([]) == 0.0
        assert stats.variance([]) == 0.0
        assert stats.stdev([]) == 0.0
        assert stats.skewness([]) == 0.0
        assert stats.coefficient_of_variation([]) == 0.0
        assert stats.concentration_index([]) == 0.0

    @pytest.mark.unit
    def test_single_value_has_no_spread(self):
        assert stats.mean([4.0]) == 4.0
        assert stats.variance([4.0]) == 0.0
        assert stats.skewness([4.0]) == 0.0

    @pytest.mark.unit
    def test_constant_values_have_zero_skew(self):
        assert stats.skewness([0.3, 0.3, 0.3]) == 0.0

    @pytest.mark.unit
    def test_safe_ratio_zero_denominator(self):
        assert stats.safe_ratio(5, 0) == 0.0
        assert stats.safe_ratio(1, 4) == 0.25

    @pytest.mark.unit
    def test_cv_with_non_positive_mean(self):
        assert stats.coefficient_of_variation([-1.0, 1.0]) == 0.0


class TestMoments:
    """Population moments."""

    @pytest.mark.unit
    def test_population_variance(self):
        assert stats.variance([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(4.0)
        assert stats.stdev([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)

    @pytest.mark.unit
    def test_skew_sign(self):
        assert stats.skewness([1, 1, 1, 1, 10]) > 0
        assert stats.skewness([10, 10, 10, 10, 1]) < 0

    @pytest.mark.unit
    def test_concentration_index_bounds(self):
        assert stats.concentration_index([1.0]) == 1.0
        assert stats.concentration_index([0.25] * 4) == pytest.approx(0.25)

    @pytest.mark.unit
    def test_coefficient_of_variation(self):
        assert stats.coefficient_of_variation([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(0.4)


class TestLinearFit:
    """Least-squares fit against indices."""

    @pytest.mark.unit
    def test_perfect_line(self):
        fit = stats.linear_fit([1.0, 3.0, 5.0, 7.0])

        assert fit.slope == pytest.approx(2.0)
        assert fit.intercept == pytest.approx(1.0)
        assert fit.r_squared == pytest.approx(1.0)

    @pytest.mark.unit
    def test_flat_line_has_zero_r_squared(self):
        fit = stats.linear_fit([0.5, 0.5, 0.5])

        assert fit.slope == 0.0
        assert fit.r_squared == 0.0

    @pytest.mark.unit
    def test_fewer_than_two_points(self):
        fit = stats.linear_fit([0.7])

        assert fit.slope == 0.0
        assert fit.intercept == 0.7
        assert fit.r_squared == 0.0
        assert not math.isnan(stats.linear_fit([]).intercept)


class TestDirection:
    """Deadband sign helper."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0.2, 1), (-0.2, -1), (0.05, 0), (-0.05, 0), (0.0, 0)],
    )
    def test_direction(self, value, expected):
        assert stats.direction(value, 0.05) == expected


class TestNumericNoise:
    """Rounding noise in constant input is reported as zero spread."""

    @pytest.mark.unit
    def test_repeated_inexact_value(self):
        values = [0.1] * 30

        assert stats.variance(values) == 0.0
        assert stats.skewness(values) == 0.0
        assert stats.linear_fit(values).slope == 0.0

    @pytest.mark.unit
    def test_pooled_variance(self):
        groups = [[0.2, 0.4], [0.6, 0.8]]

        assert stats.pooled_variance(groups) == pytest.approx(0.01)
        assert stats.pooled_variance([[0.5, 0.5], [0.9]]) == 0.0
        assert stats.pooled_variance([]) == 0.0
        assert stats.pooled_variance([[]]) == 0.0

    @pytest.mark.unit
    def test_population_skewness_value(self):
        # deviations -1, -1, 2 around mean 1; sigma sqrt(2)
        expected = ((-1) ** 3 + (-1) ** 3 + 2**3) / 3 / (2 ** 0.5) ** 3

        assert stats.skewness([0, 0, 3]) == pytest.approx(expected)
