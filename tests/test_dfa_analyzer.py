import numpy as np
import pytest

from analysis.dfa_analyzer import DFAAnalyzer, F_FLOOR
from utils.errors import DegenerateResultWarning, InsufficientDataError, InvalidParameterError
from utils.hrv_config import DFAConfig
from utils.stats_utils import fit_loglog


def test_linear_profile_is_fully_detrended():
    t = np.arange(256, dtype=float)
    sizes = np.arange(4, 65, 4)
    fluctuations, n_windows = DFAAnalyzer.fluctuation_function(3.0 * t + 2.0, t, sizes)
    assert np.all(fluctuations < F_FLOOR)
    assert np.all(n_windows == 256 // sizes)
    fit = fit_loglog(sizes, np.maximum(fluctuations, F_FLOOR), (4, 64))
    assert fit.slope == pytest.approx(0.0, abs=1e-9)


def test_constant_series_is_degenerate(logger):
    with pytest.warns(DegenerateResultWarning):
        result = DFAAnalyzer(logger).analyze(np.full(100, 0.8))
    assert result.degenerate
    assert result.alpha1.slope == pytest.approx(0.0, abs=1e-6)


def test_white_noise_scales_near_one_half(logger, rng):
    x = rng.standard_normal(4000)
    result = DFAAnalyzer(logger).analyze(x)
    assert 0.35 < result.alpha1.slope < 0.7
    assert 0.35 < result.alpha2.slope < 0.7
    assert not result.degenerate


def test_random_walk_scales_near_three_halves(logger, rng):
    x = np.cumsum(rng.standard_normal(4000))
    result = DFAAnalyzer(logger).analyze(x)
    assert 1.3 < result.alpha2.slope < 1.7


def test_geometric_box_sizes():
    sizes = DFAAnalyzer.box_sizes(DFAConfig(n_min=4, n_max=16, n_incr=0.5, alpha1_range=(4, 8), alpha2_range=(8, 16)))
    assert list(sizes) == [4, 6, 8, 11, 16]


def test_boxes_with_one_window_kept_in_table_but_not_fitted(logger, rng):
    x = rng.standard_normal(40)
    config = DFAConfig(n_min=4, n_max=36, n_incr=4, alpha1_range=(4, 12), alpha2_range=(16, 36))
    result = DFAAnalyzer(logger).analyze(x, config=config)
    frame = result.to_frame()
    assert list(frame['n']) == list(range(4, 37, 4))
    assert not frame.loc[frame['n'] == 24, 'in_fit'].item()
    assert np.isfinite(frame.loc[frame['n'] == 24, 'F'].item())
    assert result.alpha2.n_points == 2  # box sizes 16 and 20


def test_timestamps_used_as_regression_axis(logger, rng):
    x = 0.8 + 0.05 * rng.standard_normal(300)
    by_index = DFAAnalyzer(logger).analyze(x)
    by_time = DFAAnalyzer(logger).analyze(x, tnn=np.cumsum(x) - x[0])
    assert by_time.alpha1.slope == pytest.approx(by_index.alpha1.slope, abs=0.1)


def test_series_shorter_than_smallest_box(logger):
    with pytest.raises(InsufficientDataError):
        DFAAnalyzer(logger).analyze([0.8, 0.81, 0.79])


def test_invalid_box_configuration(logger):
    with pytest.raises(InvalidParameterError):
        DFAAnalyzer(logger).analyze(np.ones(50), config=DFAConfig(n_min=2))
