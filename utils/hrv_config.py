"""
HRV Configuration Module
------------------------
Provides explicit configuration objects for every HRV processing stage.
Each stage receives its own config instance; there is no process-wide defaults state.
"""
import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidParameterError

SPECTRAL_METHODS = ('lomb', 'ar', 'welch')


def _check_band(name: str, band: Tuple[float, float], allow_zero: bool = True) -> None:
    if band is None or len(band) != 2:
        raise InvalidParameterError(f"{name} must be a (low, high) pair, got {band!r}.")
    low, high = float(band[0]), float(band[1])
    if not (math.isfinite(low) and math.isfinite(high)):
        raise InvalidParameterError(f"{name} must contain finite values, got {band!r}.")
    if low < 0 or (low == 0 and not allow_zero):
        raise InvalidParameterError(f"{name} lower edge must be positive, got {low}.")
    if low >= high:
        raise InvalidParameterError(f"{name} lower edge must be below the upper edge, got {band!r}.")


# =============================================================================
# Stage configurations
# =============================================================================

@dataclass
class PoincareConfig:
    sd1_factor: float = 2.0  # ellipse semi-axis scaling
    sd2_factor: float = 2.0
    deviation_factor: float = 2.5  # outlier radius, in units of SD1/SD2

    def validate(self) -> 'PoincareConfig':
        for name in ('sd1_factor', 'sd2_factor', 'deviation_factor'):
            value = getattr(self, name)
            if not value > 0:
                raise InvalidParameterError(f"PoincareConfig.{name} must be positive, got {value}.")
        return self


@dataclass
class FilterConfig:
    """Options of the RR-interval outlier filter. Durations in seconds, changes in percent."""

    filter_range: bool = True
    rr_min: float = 0.32
    rr_max: float = 1.5

    filter_quotient: bool = True
    rr_max_change: float = 25.0

    filter_lowpass: bool = True
    win_samples: int = 10  # neighbours on each side of the centre interval
    win_length_percent: float = 0.0  # neighbours on each side, as percent of the surviving count
    win_threshold: float = 20.0

    filter_poincare: bool = False
    poincare: PoincareConfig = field(default_factory=PoincareConfig)

    def validate(self) -> 'FilterConfig':
        if not (0 < self.rr_min < self.rr_max):
            raise InvalidParameterError(
                f"FilterConfig requires 0 < rr_min < rr_max, got rr_min={self.rr_min}, rr_max={self.rr_max}.")
        if not (0 < self.rr_max_change <= 100):
            raise InvalidParameterError(f"FilterConfig.rr_max_change must be in (0, 100], got {self.rr_max_change}.")
        if int(self.win_samples) != self.win_samples or self.win_samples < 1:
            raise InvalidParameterError(f"FilterConfig.win_samples must be a positive integer, got {self.win_samples}.")
        if not (0 <= self.win_length_percent <= 100):
            raise InvalidParameterError(
                f"FilterConfig.win_length_percent must be in [0, 100], got {self.win_length_percent}.")
        if not (0 <= self.win_threshold <= 100):
            raise InvalidParameterError(f"FilterConfig.win_threshold must be in [0, 100], got {self.win_threshold}.")
        self.poincare.validate()
        return self


@dataclass
class DFAConfig:
    """
    Box sizes run from n_min to n_max in steps of n_incr. An n_incr below 1 selects
    geometrically spaced box sizes with 2**n_incr as the ratio between neighbours.
    """

    n_min: int = 4
    n_max: int = 128
    n_incr: float = 4
    alpha1_range: Tuple[float, float] = (4, 15)
    alpha2_range: Tuple[float, float] = (16, 128)

    def validate(self) -> 'DFAConfig':
        if int(self.n_min) != self.n_min or self.n_min < 3:
            raise InvalidParameterError(f"DFAConfig.n_min must be an integer >= 3, got {self.n_min}.")
        if self.n_max < self.n_min:
            raise InvalidParameterError(f"DFAConfig.n_max ({self.n_max}) must not be below n_min ({self.n_min}).")
        if not self.n_incr > 0:
            raise InvalidParameterError(f"DFAConfig.n_incr must be positive, got {self.n_incr}.")
        if self.n_incr >= 1 and int(self.n_incr) != self.n_incr:
            raise InvalidParameterError(f"DFAConfig.n_incr >= 1 must be an integer, got {self.n_incr}.")
        _check_band('DFAConfig.alpha1_range', self.alpha1_range)
        _check_band('DFAConfig.alpha2_range', self.alpha2_range)
        return self


@dataclass
class EntropyConfig:
    m: int = 2
    r: float = 0.2  # fraction of the series standard deviation
    max_scale: int = 20

    def validate(self) -> 'EntropyConfig':
        if int(self.m) != self.m or self.m < 0:
            raise InvalidParameterError(f"EntropyConfig.m must be a non-negative integer, got {self.m}.")
        if not (math.isfinite(self.r) and self.r >= 0):
            raise InvalidParameterError(f"EntropyConfig.r must be non-negative, got {self.r}.")
        if int(self.max_scale) != self.max_scale or self.max_scale < 1:
            raise InvalidParameterError(f"EntropyConfig.max_scale must be an integer >= 1, got {self.max_scale}.")
        return self


@dataclass
class SpectralConfig:
    """
    Frequency-domain options. Bands are in Hz before scaling by band_factor; overlap is in
    percent; resample_fs defaults to 10 times the highest band edge when left as None.
    """

    methods: List[str] = field(default_factory=lambda: list(SPECTRAL_METHODS))
    power_method: Optional[str] = None
    band_factor: float = 1.0
    vlf_band: Tuple[float, float] = (0.003, 0.04)
    lf_band: Tuple[float, float] = (0.04, 0.15)
    hf_band: Tuple[float, float] = (0.15, 0.4)
    beta_band: Tuple[float, float] = (0.003, 0.04)
    window_minutes: float = 5.0
    ar_order: int = 24
    welch_overlap: float = 50.0
    detrend_order: int = 1
    resample_fs: Optional[float] = None

    def scaled_band(self, name: str) -> Tuple[float, float]:
        band = getattr(self, f"{name}_band")
        return (band[0] * self.band_factor, band[1] * self.band_factor)

    @property
    def f_max(self) -> float:
        return self.scaled_band('hf')[1]

    @property
    def fs(self) -> float:
        return float(self.resample_fs) if self.resample_fs is not None else 10.0 * self.f_max

    @property
    def selected_power_method(self) -> str:
        return self.power_method if self.power_method is not None else self.methods[0]

    def validate(self) -> 'SpectralConfig':
        if not self.methods:
            raise InvalidParameterError("SpectralConfig.methods must name at least one method.")
        unknown = [m for m in self.methods if m not in SPECTRAL_METHODS]
        if unknown:
            raise InvalidParameterError(f"SpectralConfig - unknown methods {unknown}; valid: {SPECTRAL_METHODS}.")
        if self.power_method is not None and self.power_method not in self.methods:
            raise InvalidParameterError(
                f"SpectralConfig.power_method '{self.power_method}' is not among methods {self.methods}.")
        if not self.band_factor > 0:
            raise InvalidParameterError(f"SpectralConfig.band_factor must be positive, got {self.band_factor}.")
        for name in ('vlf', 'lf', 'hf'):
            _check_band(f"SpectralConfig.{name}_band", getattr(self, f"{name}_band"))
        _check_band('SpectralConfig.beta_band', self.beta_band, allow_zero=False)
        if not self.window_minutes > 0:
            raise InvalidParameterError(f"SpectralConfig.window_minutes must be positive, got {self.window_minutes}.")
        if int(self.ar_order) != self.ar_order or self.ar_order < 1:
            raise InvalidParameterError(f"SpectralConfig.ar_order must be a positive integer, got {self.ar_order}.")
        if not (0 <= self.welch_overlap < 100):
            raise InvalidParameterError(f"SpectralConfig.welch_overlap must be in [0, 100), got {self.welch_overlap}.")
        if int(self.detrend_order) != self.detrend_order or self.detrend_order < 0:
            raise InvalidParameterError(
                f"SpectralConfig.detrend_order must be a non-negative integer, got {self.detrend_order}.")
        if self.fs < 2 * self.f_max:
            raise InvalidParameterError(
                f"SpectralConfig - resampling rate {self.fs} Hz is below twice the highest band edge ({self.f_max} Hz).")
        return self


@dataclass
class TimeDomainConfig:
    pnn_thresh_ms: float = 50.0

    def validate(self) -> 'TimeDomainConfig':
        if not self.pnn_thresh_ms > 0:
            raise InvalidParameterError(f"TimeDomainConfig.pnn_thresh_ms must be positive, got {self.pnn_thresh_ms}.")
        return self


# =============================================================================
# Aggregate configuration
# =============================================================================

_SECTIONS = {
    'filter': FilterConfig,
    'poincare': PoincareConfig,
    'dfa': DFAConfig,
    'entropy': EntropyConfig,
    'spectral': SpectralConfig,
    'time_domain': TimeDomainConfig,
}


@dataclass
class HRVConfig:
    filter: FilterConfig = field(default_factory=FilterConfig)
    poincare: PoincareConfig = field(default_factory=PoincareConfig)
    dfa: DFAConfig = field(default_factory=DFAConfig)
    entropy: EntropyConfig = field(default_factory=EntropyConfig)
    spectral: SpectralConfig = field(default_factory=SpectralConfig)
    time_domain: TimeDomainConfig = field(default_factory=TimeDomainConfig)

    def validate(self) -> 'HRVConfig':
        for name in _SECTIONS:
            getattr(self, name).validate()
        return self

    @classmethod
    def from_dict(cls, config_dict: Optional[Dict[str, Any]]) -> 'HRVConfig':
        """
        Builds a configuration from a nested plain dictionary.
        Args:
            config_dict (dict): Mapping of section name ('filter', 'dfa', ...) to a dict of
                options. Missing sections and options keep their defaults. A 'preset' key
                selects the base profile ('human' or 'canine').
        Returns:
            HRVConfig: The validated configuration.
        """
        config_dict = dict(config_dict or {})
        config = cls.preset(config_dict.pop('preset', 'human'))
        for section, options in config_dict.items():
            if section not in _SECTIONS:
                raise InvalidParameterError(f"HRVConfig - unknown configuration section '{section}'.")
            if not isinstance(options, dict):
                raise InvalidParameterError(f"HRVConfig - section '{section}' must be a dict, got {type(options).__name__}.")
            setattr(config, section, _update_section(getattr(config, section), section, options))
        return config.validate()

    @classmethod
    def preset(cls, name: str = 'human') -> 'HRVConfig':
        """Returns the parameter profile for 'human' or 'canine' recordings."""
        if name == 'human':
            return cls()
        if name == 'canine':
            band_factor = 1.6
            return cls(
                filter=FilterConfig(rr_min=0.3, rr_max=1.2),
                time_domain=TimeDomainConfig(pnn_thresh_ms=32.0),
                spectral=SpectralConfig(band_factor=band_factor,
                                        beta_band=(0.003 * band_factor, 0.04 * band_factor)),
            )
        raise InvalidParameterError(f"HRVConfig - unknown preset '{name}'; valid: 'human', 'canine'.")


def _update_section(current, section: str, options: Dict[str, Any]):
    valid = {f.name for f in fields(current)}
    unknown = set(options) - valid
    if unknown:
        raise InvalidParameterError(f"HRVConfig - unknown options for '{section}': {sorted(unknown)}.")
    options = dict(options)
    if section == 'filter' and isinstance(options.get('poincare'), dict):
        options['poincare'] = _update_section(current.poincare, 'poincare', options['poincare'])
    for key, value in options.items():
        if isinstance(value, list) and key.endswith(('_band', '_range')):
            options[key] = tuple(value)
    return replace(current, **options)
