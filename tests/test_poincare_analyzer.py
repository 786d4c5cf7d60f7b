import numpy as np
import pytest

from analysis.poincare_analyzer import PoincareAnalyzer
from utils.errors import DegenerateResultWarning, InsufficientDataError
from utils.hrv_config import PoincareConfig


def test_sd1_sd2_recombine_to_variance(logger, rng):
    rri = 0.8 + 0.05 * rng.standard_normal(500)
    result = PoincareAnalyzer(logger).analyze(rri)
    assert (result.sd1 ** 2 + result.sd2 ** 2) / 2 == pytest.approx(np.var(rri, ddof=1), rel=1e-12)


def test_sd1_is_half_successive_difference_variance(logger, rng):
    rri = 0.8 + 0.05 * rng.standard_normal(300)
    result = PoincareAnalyzer(logger).analyze(rri)
    assert result.sd1 == pytest.approx(np.sqrt(0.5 * np.var(np.diff(rri), ddof=1)))


def test_ellipse_geometry_uses_factors(logger, rng):
    rri = 0.8 + 0.05 * rng.standard_normal(100)
    config = PoincareConfig(sd1_factor=1.5, sd2_factor=3.0)
    result = PoincareAnalyzer(logger).analyze(rri, config)
    assert result.ellipse.semi_minor == pytest.approx(1.5 * result.sd1)
    assert result.ellipse.semi_major == pytest.approx(3.0 * result.sd2)
    assert result.ellipse.rotation == pytest.approx(np.pi / 4)
    assert result.ellipse.center == pytest.approx((np.mean(rri[:-1]), np.mean(rri[1:])))


def test_constant_series_has_zero_spread(logger):
    result = PoincareAnalyzer(logger).analyze(np.full(100, 0.8))
    assert result.sd1 == pytest.approx(0.0, abs=1e-12)
    assert result.sd2 == pytest.approx(0.0, abs=1e-12)
    assert len(result.outliers) == 0
    assert not result.degenerate


def test_single_pair_is_degenerate(logger):
    with pytest.warns(DegenerateResultWarning):
        result = PoincareAnalyzer(logger).analyze([0.8, 0.9])
    assert result.degenerate
    assert np.isnan(result.sd1)


def test_single_interval_is_insufficient(logger):
    with pytest.raises(InsufficientDataError):
        PoincareAnalyzer(logger).analyze([0.8])
