from dataclasses import dataclass, field
from typing import Dict

import numpy as np
import pandas as pd
from scipy.integrate import trapezoid
from scipy.interpolate import interp1d
from scipy.signal import lombscargle, welch
from statsmodels.regression.linear_model import yule_walker

from utils.errors import InsufficientDataError, InvalidParameterError, warn_degenerate
from utils.hrv_config import SpectralConfig
from utils.stats_utils import ScalingFit, band_power, fit_loglog

VARIANCE_RTOL = 1e-10  # relative to the mean interval, below which a series counts as constant


@dataclass(frozen=True)
class SpectralEstimate:
    """One-sided PSD (s^2/Hz) of a single method on its native frequency axis."""

    method: str
    freqs: np.ndarray
    power: np.ndarray
    resolution: float
    detrend_order: int
    fs: float  # uniform resampling rate, or the mean rate of the nonuniform series for Lomb
    n_samples: int
    variance: float  # time-domain variance of the series the estimate was computed from

    def total_power(self) -> float:
        return float(trapezoid(self.power, self.freqs))


@dataclass(frozen=True)
class BandPowers:
    ulf: float  # below the VLF band, down to the lowest resolved frequency
    vlf: float
    lf: float
    hf: float
    total: float  # lowest resolved frequency up to the top HF edge

    @property
    def ratios(self) -> Dict[str, float]:
        with np.errstate(divide='ignore', invalid='ignore'):
            return {
                'VLF_to_TOT': np.float64(self.vlf) / self.total,
                'LF_to_TOT': np.float64(self.lf) / self.total,
                'HF_to_TOT': np.float64(self.hf) / self.total,
                'LF_to_HF': np.float64(self.lf) / self.hf,
            }

    def as_dict(self) -> Dict[str, float]:
        metrics = {'TOT_PWR': self.total, 'ULF_PWR': self.ulf, 'VLF_PWR': self.vlf, 'LF_PWR': self.lf, 'HF_PWR': self.hf}
        metrics.update({k: float(v) for k, v in self.ratios.items()})
        return metrics


@dataclass(frozen=True)
class SpectralResult:
    freqs: np.ndarray  # common (Lomb) axis up to the highest band edge
    psd: Dict[str, np.ndarray]  # per method, on the common axis
    estimates: Dict[str, SpectralEstimate]  # per method, native axes
    band_powers: Dict[str, BandPowers]
    power_method: str
    beta: ScalingFit
    config: SpectralConfig
    degenerate: bool = False
    skipped_methods: Dict[str, str] = field(default_factory=dict)  # method -> reason

    def metrics(self) -> Dict[str, float]:
        """Band powers of the power method, then every method's band powers with a method suffix."""
        metrics = dict(self.band_powers[self.power_method].as_dict())
        metrics['BETA'] = self.beta.slope
        for method, powers in self.band_powers.items():
            metrics.update({f"{k}_{method.upper()}": v for k, v in powers.as_dict().items()})
        return metrics

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame({'f': self.freqs})
        for method, power in self.psd.items():
            frame[method] = power
        return frame


class PSDAnalyzer:
    def __init__(self, logger):
        self.logger = logger
        self.logger.info("PSDAnalyzer initialized.")

    # --- Preprocessing ---
    def _prepare(self, nni, tnn, config):
        x = np.asarray(nni, dtype=float)
        t = np.asarray(tnn, dtype=float)
        if len(x) != len(t):
            raise InvalidParameterError(f"PSDAnalyzer - {len(x)} intervals but {len(t)} timestamps.")
        minimum = max(3, config.detrend_order + 2)
        if len(x) < minimum:
            raise InsufficientDataError(f"PSDAnalyzer - need at least {minimum} intervals, got {len(x)}.")
        if not np.all(np.diff(t) > 0):
            raise InvalidParameterError("PSDAnalyzer - timestamps must be strictly increasing.")
        return self.detrend(x, t, config.detrend_order), t

    @staticmethod
    def detrend(x, t, order):
        """Removes the mean and a least-squares polynomial trend of the given order over t."""
        x = np.asarray(x, dtype=float) - np.mean(x)
        trend = np.polynomial.Polynomial.fit(t, x, int(order))
        return x - trend(t)

    def resample(self, x, t, fs):
        """
        Interpolates a nonuniform series onto a uniform grid at fs Hz.
        The interpolation order is limited by the number of points (cubic, quadratic, linear).
        """
        num_points = len(x)
        if num_points >= 4:
            interpolation_kind = 'cubic'
        elif num_points == 3:
            interpolation_kind = 'quadratic'
        else:
            interpolation_kind = 'linear'
        interp_func = interp1d(t, x, kind=interpolation_kind, fill_value="extrapolate")
        t_uni = np.arange(t[0], t[-1], 1.0 / fs)
        if len(t_uni) < 2:
            raise InsufficientDataError(
                f"PSDAnalyzer - series spans {t[-1] - t[0]:.2f}s, too short to resample at {fs} Hz.")
        self.logger.debug(f"PSDAnalyzer - '{interpolation_kind}' resampling of {num_points} points to {len(t_uni)} at {fs} Hz.")
        return interp_func(t_uni), t_uni

    @staticmethod
    def reference_axis(t, f_max=None):
        """
        Lomb frequency axis k / T for k >= 1, T = N / (mean sampling rate), up to the
        mean-rate Nyquist frequency or f_max, whichever is higher.
        """
        n = len(t)
        fs_avg = 1.0 / np.mean(np.diff(t))
        df = fs_avg / n
        f_top = fs_avg / 2.0 if f_max is None else max(fs_avg / 2.0, f_max)
        k_max = max(1, int(np.floor(f_top / df + 1e-9)))
        return df * np.arange(1, k_max + 1), fs_avg

    # --- Estimators ---
    def lomb(self, nni, tnn, config=None):
        """
        Lomb-Scargle periodogram of the nonuniform series, scaled so that integrating
        the PSD over frequency recovers the series variance.
        """
        config = (config or SpectralConfig()).validate()
        x, t = self._prepare(nni, tnn, config)
        freqs, fs_avg = self.reference_axis(t, config.f_max)
        # Unnormalized periodogram; 2 / fs_avg makes it a one-sided density.
        periodogram = lombscargle(t - t[0], x, 2 * np.pi * freqs)
        power = 2.0 * periodogram / fs_avg
        self.logger.info(f"PSDAnalyzer - Lomb periodogram over {len(freqs)} frequencies.")
        return SpectralEstimate('lomb', freqs, power, freqs[0], config.detrend_order, fs_avg, len(x), float(np.var(x)))

    def ar(self, nni, tnn, config=None):
        """
        Yule-Walker AR spectrum of the uniformly resampled series. The biased (MLE)
        autocovariance is used so that the model variance equals the sample variance.
        """
        config = (config or SpectralConfig()).validate()
        x, t = self._prepare(nni, tnn, config)
        x_uni, _ = self.resample(x, t, config.fs)
        n, fs = len(x_uni), config.fs
        if n <= config.ar_order:
            raise InsufficientDataError(
                f"PSDAnalyzer - {n} resampled points cannot fit an AR model of order {config.ar_order}.")
        n_fft = max(n, 512)
        freqs = np.arange(n_fft // 2 + 1) * fs / n_fft
        variance = float(np.var(x_uni))
        if variance <= (VARIANCE_RTOL * np.mean(np.abs(nni))) ** 2:
            warn_degenerate(self.logger, "PSDAnalyzer - zero-variance series, AR spectrum is identically zero.")
            power = np.zeros(len(freqs))
        else:
            rho, sigma = yule_walker(x_uni, order=int(config.ar_order), method='mle')
            lags = np.arange(1, len(rho) + 1)
            transfer = 1.0 - np.exp(-2j * np.pi * np.outer(freqs / fs, lags)) @ rho
            power = 2.0 * sigma ** 2 / (fs * np.abs(transfer) ** 2)
        self.logger.info(f"PSDAnalyzer - AR({config.ar_order}) spectrum from {n} resampled points.")
        return SpectralEstimate('ar', freqs, power, fs / n_fft, config.detrend_order, fs, n, variance)

    def welch(self, nni, tnn, config=None):
        """Welch averaged periodogram of the uniformly resampled series (Hamming segments)."""
        config = (config or SpectralConfig()).validate()
        x, t = self._prepare(nni, tnn, config)
        x_uni, _ = self.resample(x, t, config.fs)
        n, fs = len(x_uni), config.fs
        nperseg = min(int(round(config.window_minutes * 60 * fs)), n)
        noverlap = min(int(np.floor(nperseg * config.welch_overlap / 100.0)), nperseg - 1)
        if nperseg < int(round(config.window_minutes * 60 * fs)):
            self.logger.warning(f"PSDAnalyzer - series shorter than the {config.window_minutes} min Welch window, using a single {nperseg}-sample segment.")
        freqs, power = welch(x_uni, fs=fs, window='hamming', nperseg=nperseg, noverlap=noverlap,
                             detrend=self._segment_detrend(config.detrend_order), scaling='density')
        self.logger.info(f"PSDAnalyzer - Welch spectrum, {nperseg}-sample segments with {noverlap} overlap.")
        return SpectralEstimate('welch', freqs, power, fs / nperseg, config.detrend_order, fs, n, float(np.var(x_uni)))

    @staticmethod
    def _segment_detrend(order):
        if order == 0:
            return 'constant'
        if order == 1:
            return 'linear'

        def detrend_segments(segments):
            length = segments.shape[-1]
            basis = np.polynomial.polynomial.polyvander(np.linspace(-1.0, 1.0, length), order)
            flat = segments.reshape(-1, length).T
            coefs, _, _, _ = np.linalg.lstsq(basis, flat, rcond=None)
            return (flat - basis @ coefs).T.reshape(segments.shape)
        return detrend_segments

    # --- Full analysis ---
    def analyze(self, nni, tnn, config=None):
        """
        Runs every configured spectral method, maps the estimates onto the common Lomb
        axis, and integrates the frequency bands per method.

        Args:
            nni (array-like): NN intervals in seconds.
            tnn (array-like): Interval timestamps in seconds.
            config (SpectralConfig): Methods, bands and estimator options.
        Returns:
            SpectralResult: Per-method PSDs and band powers, plus beta from the power method.
                            Methods that lacked data are listed in skipped_methods.
        Raises:
            InsufficientDataError: If no configured method could be computed.
        """
        config = (config or SpectralConfig()).validate()
        estimators = {'lomb': self.lomb, 'ar': self.ar, 'welch': self.welch}
        estimates, skipped_methods = {}, {}
        for method in config.methods:
            try:
                estimates[method] = estimators[method](nni, tnn, config)
            except InsufficientDataError as e:
                self.logger.warning(f"PSDAnalyzer - {method} skipped: {e}")
                skipped_methods[method] = str(e)
        if not estimates:
            raise InsufficientDataError(f"PSDAnalyzer - no spectral method could be computed: {skipped_methods}")

        axis, _ = self.reference_axis(np.asarray(tnn, dtype=float), config.f_max)
        freqs = axis[axis <= config.f_max + 1e-12]
        psd = {}
        for method, estimate in estimates.items():
            if method == 'lomb':
                psd[method] = estimate.power[:len(freqs)]
            else:
                psd[method] = np.interp(freqs, estimate.freqs, estimate.power)

        # Bands starting at 0 Hz are clipped to the lowest resolved frequency.
        vlf_low = config.scaled_band('vlf')[0]
        band_powers = {}
        for method, power in psd.items():
            band_powers[method] = BandPowers(
                ulf=band_power(freqs, power, (0.0, vlf_low)),
                vlf=band_power(freqs, power, config.scaled_band('vlf')),
                lf=band_power(freqs, power, config.scaled_band('lf')),
                hf=band_power(freqs, power, config.scaled_band('hf')),
                total=band_power(freqs, power, (0.0, config.f_max)),
            )

        power_method = config.selected_power_method
        if power_method not in estimates:
            fallback = next(iter(estimates))
            self.logger.warning(f"PSDAnalyzer - power method '{power_method}' was skipped, using '{fallback}'.")
            power_method = fallback
        beta = fit_loglog(freqs, psd[power_method], config.beta_band)
        degenerate = False
        if beta.degenerate:
            degenerate = True
            warn_degenerate(self.logger, f"PSDAnalyzer - beta band {config.beta_band} holds {beta.n_points} usable frequencies.")
        scale = (VARIANCE_RTOL * np.mean(np.abs(np.asarray(nni, dtype=float)))) ** 2
        if all(estimate.variance <= scale for estimate in estimates.values()):
            degenerate = True
            warn_degenerate(self.logger, "PSDAnalyzer - series has no variance, band ratios are undefined.")

        self.logger.info(f"PSDAnalyzer - {power_method} band powers: {band_powers[power_method].as_dict()}")
        return SpectralResult(freqs, psd, estimates, band_powers, power_method, beta, config, degenerate,
                              skipped_methods)
