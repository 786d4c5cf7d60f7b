from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view

from utils.errors import InsufficientDataError, InvalidParameterError, warn_degenerate
from utils.hrv_config import EntropyConfig

SPREAD_RTOL = 1e-10  # relative to the largest magnitude, below which a series counts as constant


@dataclass(frozen=True)
class SampleEntropyResult:
    value: float  # +inf when A == 0, NaN when B == 0
    a: int
    b: int
    m: int
    r: float  # fraction of the standard deviation
    r_abs: float
    n_samples: int

    @property
    def degenerate(self) -> bool:
        return not np.isfinite(self.value)


@dataclass(frozen=True)
class EntropyProfile:
    scales: np.ndarray
    values: np.ndarray
    m: int
    r: float
    r_abs: float  # tolerance shared by every scale
    n_samples: int

    @property
    def degenerate(self) -> np.ndarray:
        return ~np.isfinite(self.values)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({'scale': self.scales, 'sampen': self.values, 'degenerate': self.degenerate})


def count_template_matches(x, m, r_abs):
    """
    Counts template pairs closer than r_abs in Chebyshev distance.

    Templates start at the first N - m positions so that both counts use the same
    template set. Each template is compared with every later one, one row at a time,
    keeping memory linear in N.

    Args:
        x (np.ndarray): The series.
        m (int): Template length.
        r_abs (float): Absolute tolerance (strict inequality).
    Returns:
        tuple: (A, B), matches of length m + 1 and of length m.
    """
    x = np.asarray(x, dtype=float)
    n = len(x)
    templates = sliding_window_view(x, m + 1)
    a = b = 0
    for i in range(len(templates) - 1):
        diff = np.abs(templates[i + 1:] - templates[i])
        if m == 0:
            a += int(np.count_nonzero(diff[:, 0] < r_abs))
            continue
        dist_b = diff[:, :m].max(axis=1)
        dist_a = np.maximum(dist_b, diff[:, m])
        b += int(np.count_nonzero(dist_b < r_abs))
        a += int(np.count_nonzero(dist_a < r_abs))
    if m == 0:
        b = n * (n - 1) // 2
    return a, b


def _entropy_from_counts(a, b):
    if b == 0:
        return np.nan
    if a == 0:
        return np.inf
    return float(-np.log(a / b))


class EntropyAnalyzer:
    def __init__(self, logger):
        self.logger = logger
        self.logger.info("EntropyAnalyzer initialized.")

    def _check(self, x, m, r):
        EntropyConfig(m=m, r=r).validate()
        m = int(m)
        x = np.asarray(x, dtype=float)
        if len(x) < m + 1:
            raise InsufficientDataError(f"EntropyAnalyzer - need at least m+1={m + 1} points, got {len(x)}.")
        return x, m

    def sample_entropy(self, x, m=2, r=0.2):
        """
        Sample Entropy, -ln(A/B), with the tolerance given as a fraction of std(x).

        Args:
            x (array-like): The series.
            m (int): Template length.
            r (float): Tolerance as a fraction of the sample standard deviation.
        Returns:
            SampleEntropyResult: value is +inf when no (m+1)-matches exist and NaN when
                                 no m-matches exist; both cases are flagged degenerate.
        """
        x, m = self._check(x, m, r)
        r_abs = r * self._spread(x)
        a, b = count_template_matches(x, m, r_abs)
        result = SampleEntropyResult(_entropy_from_counts(a, b), a, b, m, r, r_abs, len(x))
        if result.degenerate:
            warn_degenerate(self.logger, f"EntropyAnalyzer - Sample Entropy undefined (A={a}, B={b}).")
        self.logger.debug(f"EntropyAnalyzer - SampEn(m={m}, r={r})={result.value:.4f} (A={a}, B={b}).")
        return result

    def multiscale_entropy(self, x, max_scale=20, m=2, r=0.2):
        """
        Multiscale entropy: Sample Entropy of non-overlapping block averages for scales
        1..max_scale. The absolute tolerance is taken once from the original series.

        Returns:
            EntropyProfile: Scales whose coarse series is too short get NaN.
        """
        if int(max_scale) != max_scale or max_scale < 1:
            raise InvalidParameterError(f"EntropyAnalyzer - max_scale must be an integer >= 1, got {max_scale}.")
        x, m = self._check(x, m, r)
        r_abs = r * self._spread(x)
        scales = np.arange(1, int(max_scale) + 1)
        values = np.full(len(scales), np.nan)
        for i, scale in enumerate(scales):
            n_blocks = len(x) // scale
            if n_blocks < m + 1:
                continue
            coarse = x[:n_blocks * scale].reshape(n_blocks, scale).mean(axis=1)
            values[i] = _entropy_from_counts(*count_template_matches(coarse, m, r_abs))

        profile = EntropyProfile(scales, values, m, r, r_abs, len(x))
        undefined = scales[profile.degenerate]
        if len(undefined):
            warn_degenerate(self.logger, f"EntropyAnalyzer - Sample Entropy undefined at scales {undefined.tolist()}.")
        self.logger.info(f"EntropyAnalyzer - MSE computed for {len(scales)} scales (m={m}, r={r}).")
        return profile

    @staticmethod
    def _spread(x):
        """Sample standard deviation, exactly 0 for a numerically constant series."""
        if len(x) < 2 or np.ptp(x) <= SPREAD_RTOL * np.max(np.abs(x)):
            return 0.0
        return float(np.std(x, ddof=1))
