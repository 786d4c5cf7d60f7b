import numpy as np

from utils.errors import InsufficientDataError
from utils.hrv_config import TimeDomainConfig


class HRVAnalyzer:
    def __init__(self, logger):
        self.logger = logger
        self.logger.info("HRVAnalyzer initialized.")

    def _as_array(self, nni, what):
        nni = np.asarray(nni, dtype=float)
        if len(nni) < 2:
            raise InsufficientDataError(f"HRVAnalyzer - need at least 2 NN intervals for {what}, got {len(nni)}.")
        return nni

    def time_domain(self, nni, config=None):
        """
        Calculates the time-domain HRV metrics.
        Args:
            nni (array-like): NN intervals in seconds.
            config (TimeDomainConfig): pNNx threshold. Defaults are used if None.
        Returns:
            dict: AVNN, SDNN, RMSSD and SEM in milliseconds, pNNx in percent
                  (keyed e.g. 'pNN50' after the floored threshold).
        """
        config = (config or TimeDomainConfig()).validate()
        nni_ms = self._as_array(nni, 'time-domain metrics') * 1000.0
        diff_nn = np.diff(nni_ms)
        sdnn = float(np.std(nni_ms, ddof=1))
        metrics = {
            'AVNN': float(np.mean(nni_ms)),
            'SDNN': sdnn,
            'RMSSD': float(np.sqrt(np.mean(diff_nn ** 2))),
            f"pNN{int(np.floor(config.pnn_thresh_ms))}": 100.0 * np.count_nonzero(np.abs(diff_nn) > config.pnn_thresh_ms) / len(diff_nn),
            'SEM': sdnn / np.sqrt(len(nni_ms)),
        }
        self.logger.info(f"HRVAnalyzer - Calculated RMSSD: {metrics['RMSSD']:.2f} ms, SDNN: {sdnn:.2f} ms")
        return metrics

    def fragmentation(self, nni):
        """
        Calculates heart-rate fragmentation metrics from the inflection points of the
        NN series (sign changes of successive differences).
        Returns:
            dict: PIP, PSS, PAS in percent and IALS (inverse average segment length).
        """
        nni = self._as_array(nni, 'fragmentation metrics')
        n = len(nni)
        dnni = np.diff(nni)
        # Series ends count as inflection points so every segment is closed.
        inflection = np.concatenate(([-1.0], dnni[:-1] * dnni[1:], [-1.0])) < 0
        inflection_idx = np.flatnonzero(inflection)
        segment_lengths = np.diff(inflection_idx)

        short_segments = segment_lengths[segment_lengths < 3]
        boundaries = np.concatenate(([True], segment_lengths > 1, [True]))
        alternation_lengths = np.diff(np.flatnonzero(boundaries))

        metrics = {
            'PIP': 100.0 * (len(inflection_idx) - 2) / n,
            'IALS': float(1.0 / np.mean(segment_lengths)),
            'PSS': 100.0 * np.sum(short_segments) / n,
            'PAS': 100.0 * np.sum(alternation_lengths[alternation_lengths > 3]) / n,
        }
        self.logger.info(f"HRVAnalyzer - Fragmentation PIP: {metrics['PIP']:.1f}%, PAS: {metrics['PAS']:.1f}%")
        return metrics
