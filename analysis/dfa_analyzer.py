from dataclasses import dataclass

import numpy as np
import pandas as pd

from utils.errors import InsufficientDataError, InvalidParameterError, warn_degenerate
from utils.hrv_config import DFAConfig
from utils.stats_utils import ScalingFit, fit_loglog

F_FLOOR = 1e-9  # fluctuations below this are treated as zero when fitting


@dataclass(frozen=True)
class DFAResult:
    box_sizes: np.ndarray
    fluctuations: np.ndarray  # F(n), NaN where a box size has no full window
    n_windows: np.ndarray
    alpha1: ScalingFit
    alpha2: ScalingFit
    n_samples: int
    config: DFAConfig
    degenerate: bool = False

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'n': self.box_sizes,
            'F': self.fluctuations,
            'n_windows': self.n_windows,
            'in_fit': self.n_windows >= 2,
        })


class DFAAnalyzer:
    def __init__(self, logger):
        self.logger = logger
        self.logger.info("DFAAnalyzer initialized.")

    @staticmethod
    def box_sizes(config):
        """Box sizes n_min..n_max, linear for n_incr >= 1, geometric (ratio 2**n_incr) otherwise."""
        if config.n_incr < 1:
            n_steps = int(np.floor(np.log2(config.n_max / config.n_min) / config.n_incr))
            sizes = np.floor(config.n_min * (2.0 ** config.n_incr) ** np.arange(n_steps + 1) + 0.5)
            return np.unique(sizes.astype(int))
        return np.arange(int(config.n_min), int(config.n_max) + 1, int(config.n_incr))

    @staticmethod
    def fluctuation_function(profile, t, box_sizes):
        """
        Detrended fluctuation of an integrated profile for each box size.

        Args:
            profile (np.ndarray): Integrated (cumulative-sum) series.
            t (np.ndarray): Time axis of the profile; each window is detrended by a
                            first-order least-squares fit against it.
            box_sizes (array-like): Window lengths in samples.
        Returns:
            tuple: (F, n_windows). F is the RMS residual over all samples covered by
                   full windows, NaN for box sizes longer than the series.
        """
        profile = np.asarray(profile, dtype=float)
        t = np.asarray(t, dtype=float)
        n_total = len(profile)
        fluctuations = np.full(len(box_sizes), np.nan)
        n_windows = np.zeros(len(box_sizes), dtype=int)
        for i, n in enumerate(box_sizes):
            num_win = n_total // n
            n_windows[i] = num_win
            if num_win == 0:
                continue
            y = profile[:num_win * n].reshape(num_win, n)
            x = t[:num_win * n].reshape(num_win, n)
            x_c = x - x.mean(axis=1, keepdims=True)
            y_c = y - y.mean(axis=1, keepdims=True)
            slope = np.sum(x_c * y_c, axis=1, keepdims=True) / np.sum(x_c ** 2, axis=1, keepdims=True)
            residual = y_c - slope * x_c
            fluctuations[i] = np.sqrt(np.mean(residual ** 2))
        return fluctuations, n_windows

    def analyze(self, nni, tnn=None, config=None):
        """
        Detrended fluctuation analysis with short-term (alpha1) and long-term (alpha2)
        scaling exponents.

        Args:
            nni (array-like): NN intervals in seconds.
            tnn (array-like): Interval timestamps in seconds. The sample index is used if None.
            config (DFAConfig): Box sizes and fit ranges. Defaults are used if None.
        Returns:
            DFAResult: The (n, F(n)) table and both log-log fits.
        """
        config = (config or DFAConfig()).validate()
        x = np.asarray(nni, dtype=float)
        if len(x) < config.n_min:
            raise InsufficientDataError(
                f"DFAAnalyzer - series of {len(x)} intervals is shorter than the smallest box ({config.n_min}).")
        t = np.arange(len(x), dtype=float) if tnn is None else np.asarray(tnn, dtype=float)
        if len(t) != len(x):
            raise InvalidParameterError(f"DFAAnalyzer - {len(x)} intervals but {len(t)} timestamps.")

        profile = np.cumsum(x - np.mean(x))
        sizes = self.box_sizes(config)
        fluctuations, n_windows = self.fluctuation_function(profile, t, sizes)

        fittable = (n_windows >= 2) & np.isfinite(fluctuations)
        f_fit = np.where(fittable, np.maximum(fluctuations, F_FLOOR), np.nan)
        alpha1 = fit_loglog(sizes, f_fit, config.alpha1_range)
        alpha2 = fit_loglog(sizes, f_fit, config.alpha2_range)

        degenerate = False
        if not np.any(fittable) or np.all(f_fit[fittable] <= F_FLOOR):
            degenerate = True
            warn_degenerate(self.logger, "DFAAnalyzer - F(n) is zero at every box size (no fluctuation left after detrending).")
        for name, fit in (('alpha1', alpha1), ('alpha2', alpha2)):
            if fit.degenerate:
                degenerate = True
                warn_degenerate(self.logger, f"DFAAnalyzer - {name} fit range {fit.x_range} holds {fit.n_points} usable box sizes.")

        self.logger.info(f"DFAAnalyzer - alpha1={alpha1.slope:.3f}, alpha2={alpha2.slope:.3f} over {len(sizes)} box sizes.")
        return DFAResult(sizes, fluctuations, n_windows, alpha1, alpha2, len(x), config, degenerate)
