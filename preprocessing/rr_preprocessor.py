import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

import numpy as np
import pandas as pd
from scipy import sparse
from scipy.sparse.linalg import spsolve

from analysis.poincare_analyzer import PoincareAnalyzer
from data_handling.interval_series import IntervalSeries
from utils.errors import InsufficientDataError, InvalidParameterError
from utils.hrv_config import FilterConfig


class OutlierCriterion(Enum):
    RANGE = 'range'
    QUOTIENT = 'quotient'
    LOWPASS = 'lowpass'
    POINCARE = 'poincare'


@dataclass(frozen=True)
class OutlierMask:
    """Outlier indices per criterion, always expressed against the raw (unfiltered) series."""

    n_raw: int
    flagged: Dict[OutlierCriterion, FrozenSet[int]] = field(default_factory=dict)

    def __getitem__(self, criterion) -> FrozenSet[int]:
        return self.flagged.get(OutlierCriterion(criterion), frozenset())

    def union(self) -> np.ndarray:
        indices = set()
        for flagged in self.flagged.values():
            indices |= flagged
        return np.array(sorted(indices), dtype=int)

    def tags(self, index: int) -> List[str]:
        """Names of the criteria that flagged one raw index."""
        return [c.value for c in OutlierCriterion if index in self.flagged.get(c, ())]

    def counts(self) -> Dict[str, int]:
        return {c.value: len(self.flagged.get(c, ())) for c in OutlierCriterion}

    def to_frame(self) -> pd.DataFrame:
        """Boolean table, one row per raw interval, one column per criterion."""
        frame = pd.DataFrame(False, index=pd.RangeIndex(self.n_raw, name='raw_index'),
                             columns=[c.value for c in OutlierCriterion])
        for criterion, indices in self.flagged.items():
            frame.loc[sorted(indices), criterion.value] = True
        return frame


@dataclass(frozen=True)
class WindowedStatistic:
    """(window start, window length, aggregate value) triples of a sliding-window pass."""

    starts: np.ndarray
    lengths: np.ndarray
    values: np.ndarray

    def __len__(self):
        return len(self.values)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({'start': self.starts, 'length': self.lengths, 'value': self.values})


@dataclass(frozen=True)
class FilterResult:
    nni: np.ndarray
    tnn: np.ndarray
    mask: OutlierMask
    kept_idx: np.ndarray
    moving_average: Optional[WindowedStatistic]
    config: FilterConfig

    @property
    def n_removed(self) -> int:
        return self.mask.n_raw - len(self.nni)

    def to_series(self) -> IntervalSeries:
        return IntervalSeries(self.nni, self.tnn)

    def require_sufficient(self, minimum: int = 2) -> 'FilterResult':
        if len(self.nni) < minimum:
            raise InsufficientDataError(
                f"RRPreprocessor - only {len(self.nni)} intervals survived filtering, need at least {minimum}.")
        return self


class RRPreprocessor:
    def __init__(self, logger):
        self.logger = logger
        self.poincare_analyzer = PoincareAnalyzer(logger)
        self.logger.info("RRPreprocessor initialized.")

    def filter_intervals(self, series, config=None):
        """
        Removes ectopic beats and artifacts from an RR-interval series.

        Range and quotient criteria are evaluated on the raw series. The low-pass
        criterion only sees the intervals that survived both, and the optional Poincare
        criterion only those that survived the low-pass stage. All flags are recorded
        against raw indices and removed in one pass, after which the timestamp axis is
        rebuilt from the surviving durations.

        Args:
            series (IntervalSeries): Raw RR intervals.
            config (FilterConfig): Filter options. Defaults are used if None.
        Returns:
            FilterResult: Cleaned intervals (nni), re-anchored timestamps (tnn) and the
                          per-criterion outlier mask.
        """
        config = (config or FilterConfig()).validate()
        if not isinstance(series, IntervalSeries):
            raise InvalidParameterError(
                f"RRPreprocessor - expected an IntervalSeries, got {type(series).__name__}.")
        rri = series.durations
        n_raw = len(rri)
        flagged = {}

        if config.filter_range:
            flagged[OutlierCriterion.RANGE] = self._range_outliers(rri, config.rr_min, config.rr_max)
        if config.filter_quotient:
            flagged[OutlierCriterion.QUOTIENT] = self._quotient_outliers(rri, config.rr_max_change)

        survivors = self._surviving(n_raw, flagged)
        moving_average = None
        if config.filter_lowpass:
            if len(survivors) >= 2:
                lp_positions, moving_average = self._lowpass_outliers(rri[survivors], config)
                flagged[OutlierCriterion.LOWPASS] = frozenset(int(i) for i in survivors[lp_positions])
            else:
                self.logger.warning("RRPreprocessor - fewer than 2 intervals left for the low-pass filter, skipping it.")
                flagged[OutlierCriterion.LOWPASS] = frozenset()

        if config.filter_poincare:
            survivors = self._surviving(n_raw, flagged)
            if len(survivors) >= 3:
                poincare = self.poincare_analyzer.analyze(rri[survivors], config.poincare)
                flagged[OutlierCriterion.POINCARE] = frozenset(int(i) for i in survivors[poincare.outliers])
            else:
                self.logger.warning("RRPreprocessor - fewer than 3 intervals left for the Poincare filter, skipping it.")
                flagged[OutlierCriterion.POINCARE] = frozenset()

        mask = OutlierMask(n_raw, flagged)
        kept_idx = np.setdiff1d(np.arange(n_raw), mask.union())
        nni = rri[kept_idx].copy()
        t0 = series.timestamps[0] if n_raw else 0.0
        tnn = t0 + np.concatenate(([0.0], np.cumsum(nni[:-1]))) if len(nni) else np.array([], dtype=float)

        self.logger.info(f"RRPreprocessor - kept {len(nni)}/{n_raw} intervals; flagged per criterion: {mask.counts()}.")
        return FilterResult(nni, tnn, mask, kept_idx, moving_average, config)

    def detrend_smoothness_priors(self, rri, lam=500.0):
        """
        Removes slow trends with the smoothness-priors method:
        detrended = rri - (I + lam^2 * D2' D2)^-1 rri, D2 being the second-difference operator.

        Args:
            rri (array-like): Interval values (any unit; the output keeps it).
            lam (float): Regularization parameter; larger values remove only slower trends.
        Returns:
            np.ndarray: The detrended series.
        """
        rri = np.asarray(rri, dtype=float)
        if not lam > 0:
            raise InvalidParameterError(f"RRPreprocessor - lambda must be positive, got {lam}.")
        n = len(rri)
        if n < 3:
            raise InsufficientDataError(f"RRPreprocessor - smoothness-priors detrending needs at least 3 points, got {n}.")
        identity = sparse.identity(n, format='csc')
        d2 = sparse.diags([1.0, -2.0, 1.0], [0, 1, 2], shape=(n - 2, n), format='csc')
        trend = spsolve(identity + lam ** 2 * (d2.T @ d2), rri)
        self.logger.info(f"RRPreprocessor - smoothness-priors detrending applied (lambda={lam}).")
        return rri - trend

    @staticmethod
    def _surviving(n_raw, flagged):
        excluded = set()
        for indices in flagged.values():
            excluded |= indices
        return np.array([i for i in range(n_raw) if i not in excluded], dtype=int)

    @staticmethod
    def _range_outliers(rri, rr_min, rr_max):
        return frozenset(int(i) for i in np.flatnonzero((rri < rr_min) | (rri > rr_max)))

    @staticmethod
    def _quotient_outliers(rri, rr_max_change):
        """
        An interior interval is an outlier when it disagrees with both neighbours, so a
        single artifact does not also take out its two valid neighbours. An end interval
        is an outlier when it disagrees with its only neighbour and that neighbour is not
        itself an outlier.
        """
        n = len(rri)
        if n < 2:
            return frozenset()
        change = rr_max_change / 100.0
        q_min, q_max = 1.0 - change, 1.0 + change
        forward = rri[:-1] / rri[1:]
        backward = rri[1:] / rri[:-1]
        pair_bad = (forward < q_min) | (forward > q_max) | (backward < q_min) | (backward > q_max)

        interior = np.zeros(n, dtype=bool)
        interior[1:-1] = pair_bad[:-1] & pair_bad[1:]
        outlier = interior.copy()
        outlier[0] = pair_bad[0] and not interior[1]
        outlier[-1] = pair_bad[-1] and not interior[-2]
        return frozenset(int(i) for i in np.flatnonzero(outlier))

    @staticmethod
    def _lowpass_outliers(values, config):
        """
        Centred moving average excluding the centre sample, truncated at the edges.
        Returns the flagged positions (into values) and the window statistics.
        """
        n = len(values)
        half = max(int(config.win_samples), int(math.ceil(config.win_length_percent / 100.0 * n)))
        positions = np.arange(n)
        lo = np.maximum(positions - half, 0)
        hi = np.minimum(positions + half + 1, n)
        csum = np.concatenate(([0.0], np.cumsum(values)))
        neighbours = hi - lo - 1
        average = (csum[hi] - csum[lo] - values) / neighbours
        flagged = np.flatnonzero(np.abs(values - average) > (config.win_threshold / 100.0) * average)
        return flagged, WindowedStatistic(lo, hi - lo, average)
