"""
Interval Series Module
----------------------
Provides the immutable RR/NN interval series consumed by every HRV stage.
"""
from dataclasses import dataclass

import numpy as np

from utils.errors import InvalidParameterError


def _frozen_array(values, name):
    try:
        array = np.array(values, dtype=float).ravel()
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(f"IntervalSeries - {name} must be numeric: {e}") from e
    if not np.all(np.isfinite(array)):
        raise InvalidParameterError(f"IntervalSeries - {name} contain NaN or Inf values.")
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class IntervalSeries:
    """
    Ordered (timestamp, duration) pairs, in seconds.

    Each timestamp marks the start of its interval. Durations are positive and
    timestamps strictly increasing; both arrays are read-only.
    """

    durations: np.ndarray
    timestamps: np.ndarray

    def __post_init__(self):
        durations = _frozen_array(self.durations, 'durations')
        timestamps = _frozen_array(self.timestamps, 'timestamps')
        if len(durations) != len(timestamps):
            raise InvalidParameterError(
                f"IntervalSeries - {len(durations)} durations but {len(timestamps)} timestamps.")
        if np.any(durations <= 0):
            raise InvalidParameterError("IntervalSeries - interval durations must be positive.")
        if len(timestamps) > 1 and not np.all(np.diff(timestamps) > 0):
            raise InvalidParameterError("IntervalSeries - timestamps must be strictly increasing.")
        object.__setattr__(self, 'durations', durations)
        object.__setattr__(self, 'timestamps', timestamps)

    @classmethod
    def from_durations(cls, durations, start_time: float = 0.0) -> 'IntervalSeries':
        """Builds a series whose timestamps are the running sum of the durations."""
        durations = np.asarray(durations, dtype=float).ravel()
        timestamps = float(start_time) + np.concatenate(([0.0], np.cumsum(durations[:-1]))) if len(durations) else durations
        return cls(durations, timestamps)

    @classmethod
    def from_beat_times(cls, beat_times) -> 'IntervalSeries':
        """
        Builds a series from detected beat (R-peak) times in seconds.
        Each interval is stamped with the beat that opens it.
        """
        beat_times = np.asarray(beat_times, dtype=float).ravel()
        if len(beat_times) < 2:
            raise InvalidParameterError("IntervalSeries - at least two beat times are needed to form an interval.")
        return cls(np.diff(beat_times), beat_times[:-1])

    def __len__(self):
        return len(self.durations)

    @property
    def duration_total(self) -> float:
        return float(np.sum(self.durations))

    @property
    def mean_rate_hz(self) -> float:
        """Average sampling rate of the (nonuniform) series."""
        if len(self) < 2:
            return np.nan
        return 1.0 / float(np.mean(np.diff(self.timestamps)))
