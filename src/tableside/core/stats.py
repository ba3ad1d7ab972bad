"""Small numeric helpers shared by the analyzers and views.

Every helper is total: empty input yields ``0.0`` rather than raising or
returning NaN, because the analyzers built on top of them have no error
channel.  Variances are population variances (divide by ``n``).

Moments and the least-squares fit are computed with numpy.  Spreads below
:data:`ZERO_VARIANCE` are floating-point noise and are reported as exactly
zero, so constant input gives a zero variance, skew and slope.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

ZERO_VARIANCE = 1e-12


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, ``0.0`` for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def variance(values: Sequence[float]) -> float:
    """Population variance, ``0.0`` for fewer than two values."""
    if len(values) < 2:
        return 0.0
    result = float(np.var(values))
    return result if result > ZERO_VARIANCE else 0.0


def pooled_variance(groups: Iterable[Sequence[float]]) -> float:
    """Mean squared deviation of every value from its own group's mean."""
    deviations = [np.asarray(g, dtype=float) - np.mean(g) for g in groups if len(g) > 0]
    if not deviations:
        return 0.0
    result = float(np.mean(np.concatenate(deviations) ** 2))
    return result if result > ZERO_VARIANCE else 0.0


def stdev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    return float(np.sqrt(variance(values)))


def skewness(values: Sequence[float]) -> float:
    """Third standardised moment; ``0.0`` when the spread is zero."""
    var = variance(values)
    if var == 0:
        return 0.0
    arr = np.asarray(values, dtype=float)
    return float(np.mean(((arr - arr.mean()) / np.sqrt(var)) ** 3))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """``stdev / mean``; ``0.0`` when the mean is not positive."""
    mu = mean(values)
    if mu <= 0:
        return 0.0
    return stdev(values) / mu


def concentration_index(shares: Iterable[float]) -> float:
    """Herfindahl-style sum of squared shares (0 = even, 1 = concentrated)."""
    arr = np.fromiter(shares, dtype=float)
    return float(np.sum(arr * arr))


def safe_ratio(numerator: float, denominator: float) -> float:
    """``numerator / denominator`` or ``0.0`` when the denominator is zero."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


@dataclass(frozen=True)
class LinearFit:
    """Ordinary-least-squares fit of ``y`` against ``x``."""

    slope: float
    intercept: float
    r_squared: float


def linear_fit(ys: Sequence[float]) -> LinearFit:
    """Fit ``ys`` against their indices ``0..n-1`` with ``np.polyfit``.

    Fewer than two points, or points with no spread, yield a flat fit with
    ``r_squared = 0``.
    """
    n = len(ys)
    if n < 2 or variance(ys) == 0:
        return LinearFit(slope=0.0, intercept=mean(ys), r_squared=0.0)

    xs = np.arange(n, dtype=float)
    y = np.asarray(ys, dtype=float)
    slope, intercept = np.polyfit(xs, y, deg=1)

    ss_total = float(np.sum((y - y.mean()) ** 2))
    ss_residual = float(np.sum((y - np.polyval((slope, intercept), xs)) ** 2))
    return LinearFit(
        slope=float(slope),
        intercept=float(intercept),
        r_squared=1 - ss_residual / ss_total,
    )


def direction(value: float, deadband: float) -> int:
    """Sign of ``value`` with a symmetric deadband: ``-1``, ``0`` or ``1``."""
    if value > deadband:
        return 1
    if value < -deadband:
        return -1
    return 0
