"""
Weighting of the bias correction by an auxiliary variable.

The correction can be turned off where an auxiliary variable falls outside of a
range of values, for example where there is precipitation. Using a time window,
the weight is the fraction of time steps within the window for which the
auxiliary variable is inside the range.
"""

import numpy as np

from .utils import ConfigurationError, mask_missing


def _window_counts(mask: np.ndarray, window: int) -> np.ndarray:
    # Number of True values in [t - window, t + window] along the last axis,
    # clipped to the valid time range
    n_time = mask.shape[-1]
    cumsum = np.cumsum(mask, axis=-1, dtype=np.int64)
    cumsum = np.concatenate(
        [np.zeros(mask.shape[:-1] + (1,), dtype=np.int64), cumsum], axis=-1
    )
    t = np.arange(n_time)
    start = np.maximum(t - window, 0)
    end = np.minimum(t + window, n_time - 1)
    return cumsum[..., end + 1] - cumsum[..., start]


def auxiliary_weights(
    values: np.ndarray,
    lower: float,
    upper: float,
    window: int = 0,
) -> np.ndarray:
    """
    Compute the auxiliary weight for each grid cell, ensemble member and time.

    Parameters
    ----------
    values : numpy.ndarray
        Values of the auxiliary variable, time must be the last dimension,
        typically (n_lat, n_lon, n_ens, n_time). Missing values are NaN.
    lower : float
        Lower bound (inclusive) of the range where the correction is applied.
    upper : float
        Upper bound (inclusive) of the range where the correction is applied.
    window : int
        Half-width of the time window, in time steps. Use 0 for no window.

    Returns
    -------
    weights : numpy.ndarray
        Weights in [0, 1] with the same shape as the input. The weight is 1
        where there are no valid auxiliary values within the window.
    """
    if lower > upper:
        raise ConfigurationError(
            "The lower value must be less than the upper value of the range"
        )
    if int(window) != window:
        raise ConfigurationError("'window' must be an integer")
    window = int(window)
    if window < 0:
        raise ConfigurationError("'window' must be >= 0")
    values = mask_missing(values)
    valid = ~np.isnan(values)
    inside = valid & (values >= lower) & (values <= upper)

    num_valid = _window_counts(valid, window)
    num_inside = _window_counts(inside, window)
    return np.divide(
        num_inside,
        num_valid,
        out=np.ones(values.shape, dtype=np.float64),
        where=num_valid > 0,
    )
