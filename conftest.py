import logging
import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from data_handling.interval_series import IntervalSeries  # noqa: E402


@pytest.fixture
def logger():
    return logging.getLogger('HRVTestLogger')


@pytest.fixture
def rng():
    return np.random.default_rng(20240517)


@pytest.fixture
def rr_series(rng):
    """Five minutes of plausible resting RR intervals with respiratory modulation."""
    n = 400
    beats = np.arange(n)
    rri = 0.85 + 0.03 * np.sin(2 * np.pi * 0.25 * beats * 0.85) + 0.01 * rng.standard_normal(n)
    return IntervalSeries.from_durations(rri)
