import pytest

from utils.errors import InvalidParameterError
from utils.hrv_config import DFAConfig, EntropyConfig, HRVConfig, SpectralConfig


def test_defaults_are_valid():
    config = HRVConfig().validate()
    assert config.filter.rr_min == 0.32
    assert config.spectral.fs == pytest.approx(4.0)
    assert config.spectral.selected_power_method == 'lomb'


def test_canine_preset():
    config = HRVConfig.preset('canine').validate()
    assert (config.filter.rr_min, config.filter.rr_max) == (0.3, 1.2)
    assert config.time_domain.pnn_thresh_ms == 32.0
    assert config.spectral.scaled_band('hf') == pytest.approx((0.24, 0.64))
    assert config.spectral.beta_band == pytest.approx((0.0048, 0.064))


def test_from_dict_overrides_sections():
    config = HRVConfig.from_dict({
        'filter': {'rr_max_change': 20, 'poincare': {'deviation_factor': 3.0}},
        'dfa': {'alpha1_range': [4, 16]},
        'spectral': {'methods': ['lomb', 'welch']},
    })
    assert config.filter.rr_max_change == 20
    assert config.filter.poincare.deviation_factor == 3.0
    assert config.dfa.alpha1_range == (4, 16)
    assert config.spectral.methods == ['lomb', 'welch']
    assert config.entropy.m == 2


def test_from_dict_with_preset():
    config = HRVConfig.from_dict({'preset': 'canine', 'entropy': {'max_scale': 10}})
    assert config.filter.rr_max == 1.2
    assert config.entropy.max_scale == 10


@pytest.mark.parametrize("config_dict", [
    {'nonsense': {}},
    {'filter': {'no_such_option': 1}},
    {'filter': 'range'},
    {'preset': 'feline'},
    {'entropy': {'m': -1}},
])
def test_from_dict_rejects_bad_input(config_dict):
    with pytest.raises(InvalidParameterError):
        HRVConfig.from_dict(config_dict)


@pytest.mark.parametrize("section", [
    DFAConfig(n_max=2),
    DFAConfig(n_incr=2.5),
    EntropyConfig(r=-0.2),
    EntropyConfig(max_scale=0),
    SpectralConfig(methods=[]),
    SpectralConfig(welch_overlap=100),
    SpectralConfig(beta_band=(0.0, 0.04)),
])
def test_invalid_sections(section):
    with pytest.raises(InvalidParameterError):
        section.validate()
