from dataclasses import dataclass

import numpy as np

from utils.errors import InsufficientDataError, warn_degenerate
from utils.hrv_config import PoincareConfig


@dataclass(frozen=True)
class PoincareEllipse:
    center: tuple  # (mean RR(n), mean RR(n+1)) in seconds
    rotation: float  # radians, major axis along the line of identity
    semi_major: float  # sd2_factor * SD2
    semi_minor: float  # sd1_factor * SD1


@dataclass(frozen=True)
class PoincareResult:
    sd1: float
    sd2: float
    ellipse: PoincareEllipse
    outliers: np.ndarray  # indices into the analysed series (first interval of each pair)
    n_intervals: int
    config: PoincareConfig
    degenerate: bool = False


class PoincareAnalyzer:
    def __init__(self, logger):
        self.logger = logger
        self.logger.info("PoincareAnalyzer initialized.")

    def analyze(self, nni, config=None):
        """
        Computes SD1/SD2 of the Poincare plot RR(n) vs RR(n+1), the scaled ellipse and
        the pairs lying outside the deviation ellipse.

        Args:
            nni (array-like): NN intervals in seconds.
            config (PoincareConfig): Ellipse and outlier factors. Defaults are used if None.
        Returns:
            PoincareResult: SD1 and SD2 in seconds. With exactly two intervals the
                            sample variances are undefined and the result is flagged degenerate.
        """
        config = (config or PoincareConfig()).validate()
        rr = np.asarray(nni, dtype=float)
        if len(rr) < 2:
            raise InsufficientDataError(f"PoincareAnalyzer - need at least 2 intervals, got {len(rr)}.")

        x, y = rr[:-1], rr[1:]
        degenerate = len(rr) == 2
        if degenerate:
            sd1 = sd2 = np.nan
            warn_degenerate(self.logger, "PoincareAnalyzer - SD1/SD2 undefined for a single Poincare pair.")
        else:
            sd1_sq = 0.5 * np.var(x - y, ddof=1)
            sd2_sq = max(2.0 * np.var(rr, ddof=1) - sd1_sq, 0.0)
            sd1, sd2 = float(np.sqrt(sd1_sq)), float(np.sqrt(sd2_sq))

        ellipse = PoincareEllipse(
            center=(float(np.mean(x)), float(np.mean(y))),
            rotation=np.pi / 4,
            semi_major=config.sd2_factor * sd2,
            semi_minor=config.sd1_factor * sd1,
        )
        outliers = self._ellipse_outliers(x, y, sd1, sd2, config.deviation_factor)
        self.logger.info(f"PoincareAnalyzer - SD1={sd1:.4f}s, SD2={sd2:.4f}s, {len(outliers)} outlier pairs.")
        return PoincareResult(sd1, sd2, ellipse, outliers, len(rr), config, degenerate)

    def _ellipse_outliers(self, x, y, sd1, sd2, factor):
        if not (np.isfinite(sd1) and np.isfinite(sd2)):
            return np.array([], dtype=int)
        # A collapsed ellipse has no interior to be outside of.
        tol = 1e-12 * max(1.0, float(np.mean(np.abs(x))))
        if sd1 <= tol or sd2 <= tol:
            self.logger.debug("PoincareAnalyzer - ellipse collapsed, skipping outlier detection.")
            return np.array([], dtype=int)
        # Rotate onto the identity line: u along it, v perpendicular.
        u = (x + y) / np.sqrt(2)
        v = (y - x) / np.sqrt(2)
        r_u, r_v = factor * sd2, factor * sd1
        residual = (u - u.mean()) ** 2 / r_u ** 2 + (v - v.mean()) ** 2 / r_v ** 2
        return np.flatnonzero(residual > 1)
