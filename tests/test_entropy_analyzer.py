import numpy as np
import pytest

from analysis.entropy_analyzer import EntropyAnalyzer, count_template_matches
from utils.errors import DegenerateResultWarning, InsufficientDataError, InvalidParameterError


def _brute_force_counts(x, m, r_abs):
    n_templates = len(x) - m
    a = b = 0
    for i in range(n_templates):
        for j in range(i + 1, n_templates):
            if m == 0 or np.max(np.abs(x[i:i + m] - x[j:j + m])) < r_abs:
                b += 1
                if abs(x[i + m] - x[j + m]) < r_abs:
                    a += 1
    return a, b


@pytest.mark.parametrize("m", [1, 2, 3])
def test_counts_match_double_loop(rng, m):
    x = rng.standard_normal(60)
    assert count_template_matches(x, m, 0.5) == _brute_force_counts(x, m, 0.5)


def test_m_zero_counts_every_pair(rng):
    x = rng.standard_normal(73)
    a, b = count_template_matches(x, 0, 0.3)
    assert b == 73 * 72 // 2
    assert a == _brute_force_counts(x, 0, 0.3)[0]


def test_sample_entropy_of_white_noise(logger, rng):
    x = rng.standard_normal(1000)
    result = EntropyAnalyzer(logger).sample_entropy(x, m=2, r=0.2)
    # Theoretical value for Gaussian white noise at r=0.2 is about 2.2.
    assert 1.9 < result.value < 2.5
    assert result.r_abs == pytest.approx(0.2 * np.std(x, ddof=1))
    assert not result.degenerate


def test_mse_scale_one_equals_sample_entropy(logger, rng):
    x = 0.8 + 0.05 * rng.standard_normal(500)
    analyzer = EntropyAnalyzer(logger)
    profile = analyzer.multiscale_entropy(x, max_scale=5, m=2, r=0.15)
    assert profile.values[0] == analyzer.sample_entropy(x, m=2, r=0.15).value
    assert list(profile.scales) == [1, 2, 3, 4, 5]


def test_mse_tolerance_fixed_across_scales(logger, rng):
    x = rng.standard_normal(600)
    profile = EntropyAnalyzer(logger).multiscale_entropy(x, max_scale=4)
    coarse = x[:600 // 3 * 3].reshape(-1, 3).mean(axis=1)
    a, b = count_template_matches(coarse, 2, profile.r_abs)
    assert profile.values[2] == pytest.approx(-np.log(a / b))


def test_constant_series_is_undefined(logger):
    with pytest.warns(DegenerateResultWarning):
        result = EntropyAnalyzer(logger).sample_entropy(np.full(100, 0.8))
    assert result.a == 0 and result.b == 0
    assert np.isnan(result.value)
    assert result.degenerate


def test_no_longer_matches_gives_infinity(logger):
    with pytest.warns(DegenerateResultWarning):
        result = EntropyAnalyzer(logger).sample_entropy([1.0, 2.0, 1.0, 3.0], m=1, r=0.1)
    assert (result.a, result.b) == (0, 1)
    assert result.value == np.inf


def test_mse_short_scales_are_nan(logger, rng):
    x = rng.standard_normal(30)
    with pytest.warns(DegenerateResultWarning):
        profile = EntropyAnalyzer(logger).multiscale_entropy(x, max_scale=20, m=2)
    assert np.all(np.isnan(profile.values[10:]))
    assert profile.to_frame()['degenerate'].iloc[-1]


@pytest.mark.parametrize("m, r", [(-1, 0.2), (2, -0.1)])
def test_invalid_parameters(logger, m, r):
    with pytest.raises(InvalidParameterError):
        EntropyAnalyzer(logger).sample_entropy(np.arange(10.0), m=m, r=r)


def test_too_short_for_template(logger):
    with pytest.raises(InsufficientDataError):
        EntropyAnalyzer(logger).sample_entropy([0.8, 0.9], m=2)


def test_constant_series_has_zero_tolerance_at_every_scale(logger):
    with pytest.warns(DegenerateResultWarning):
        profile = EntropyAnalyzer(logger).multiscale_entropy(np.full(100, 0.8), max_scale=3)
    assert profile.r_abs == 0.0
    assert np.all(np.isnan(profile.values))
    assert profile.degenerate.all()


def test_float_template_length_from_config_files(logger, rng):
    x = rng.standard_normal(200)
    analyzer = EntropyAnalyzer(logger)
    result = analyzer.sample_entropy(x, m=2.0)
    assert result.m == 2 and isinstance(result.m, int)
    assert result.value == analyzer.sample_entropy(x, m=2).value
    assert analyzer.multiscale_entropy(x, max_scale=2, m=2.0).m == 2
