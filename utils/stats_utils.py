"""
Statistics Utilities Module
---------------------------
Provides the log-log scaling fit shared by DFA and the spectral beta exponent,
and trapezoidal band-power integration over a sampled spectrum.
"""
from dataclasses import dataclass
from typing import Tuple, Union, List

import numpy as np
from scipy.integrate import trapezoid


@dataclass(frozen=True)
class ScalingFit:
    """Least-squares line in log10-log10 space over a declared x range."""

    slope: float
    intercept: float
    x_range: Tuple[float, float]
    n_points: int

    @property
    def degenerate(self) -> bool:
        return self.n_points < 2 or not np.isfinite(self.slope)


def fit_loglog(x: Union[List[float], np.ndarray], y: Union[List[float], np.ndarray],
               x_range: Tuple[float, float]) -> ScalingFit:
    """
    Fits log10(y) = slope * log10(x) + intercept over points with x inside x_range.
    Args:
        x (array-like): Abscissa values (box sizes, frequencies).
        y (array-like): Ordinate values (fluctuations, power).
        x_range (tuple): Inclusive (low, high) bounds on x.
    Returns:
        ScalingFit: slope and intercept are NaN when fewer than two usable points
                    (finite and positive in both coordinates, distinct in x) fall in range.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    low, high = float(x_range[0]), float(x_range[1])
    in_range = (x >= low) & (x <= high) & np.isfinite(x) & np.isfinite(y) & (x > 0) & (y > 0)
    xs, ys = x[in_range], y[in_range]
    if len(np.unique(xs)) < 2:
        return ScalingFit(np.nan, np.nan, (low, high), int(len(np.unique(xs))))
    slope, intercept = np.polyfit(np.log10(xs), np.log10(ys), 1)
    return ScalingFit(float(slope), float(intercept), (low, high), int(len(xs)))


def band_power(freqs: np.ndarray, power: np.ndarray, band: Tuple[float, float]) -> float:
    """
    Integrates a PSD over [band[0], band[1]] with the trapezoidal rule.
    The PSD is linearly interpolated at both band edges so the integral does not
    depend on where the frequency grid happens to fall. Edges outside the frequency
    axis are clipped to it.
    """
    freqs = np.asarray(freqs, dtype=float)
    power = np.asarray(power, dtype=float)
    if len(freqs) < 2:
        return 0.0
    low = max(float(band[0]), freqs[0])
    high = min(float(band[1]), freqs[-1])
    if low >= high:
        return 0.0
    interior = (freqs > low) & (freqs < high)
    f_band = np.concatenate(([low], freqs[interior], [high]))
    p_band = np.concatenate(([np.interp(low, freqs, power)], power[interior], [np.interp(high, freqs, power)]))
    return float(trapezoid(p_band, f_band))
