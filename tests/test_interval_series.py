import numpy as np
import pytest

from data_handling.interval_series import IntervalSeries
from utils.errors import InvalidParameterError


def test_from_durations_stamps_interval_starts():
    series = IntervalSeries.from_durations([0.8, 0.82, 0.81], start_time=10.0)
    assert np.allclose(series.timestamps, [10.0, 10.8, 11.62])
    assert len(series) == 3
    assert series.duration_total == pytest.approx(2.43)


def test_from_beat_times():
    series = IntervalSeries.from_beat_times([1.0, 1.8, 2.7, 3.5])
    assert np.allclose(series.durations, [0.8, 0.9, 0.8])
    assert np.allclose(series.timestamps, [1.0, 1.8, 2.7])


def test_arrays_are_read_only():
    series = IntervalSeries.from_durations([0.8, 0.9])
    with pytest.raises(ValueError):
        series.durations[0] = 1.0


@pytest.mark.parametrize("durations, timestamps", [
    ([0.8, -0.1], [0.0, 0.8]),
    ([0.8, 0.9], [0.0, 0.0]),
    ([0.8, 0.9, 1.0], [0.0, 0.8]),
    ([0.8, np.nan], [0.0, 0.8]),
])
def test_malformed_series_rejected(durations, timestamps):
    with pytest.raises(InvalidParameterError):
        IntervalSeries(durations, timestamps)


def test_single_beat_time_rejected():
    with pytest.raises(InvalidParameterError):
        IntervalSeries.from_beat_times([1.0])
