r"""Utility functions for `bias_kriging`"""

import inspect
import logging
from collections.abc import Iterable
from itertools import islice
import numpy as np
import polars as pl

from .constants import MISSING_VALUE


class ColumnNotFoundError(Exception):
    """Error class for Column Not Being Found"""

    pass


class ConfigurationError(Exception):
    """Error class for an invalid calibration setup, raised before computing"""

    pass


def check_cols(
    df: pl.DataFrame,
    cols: list[str],
) -> None:
    """Check that all columns in a list of columns are in a DataFrame"""
    # Get name of function that is calling this
    calling_func = str(inspect.stack()[1][3])

    missing_cols = [c for c in cols if c not in df.columns]
    if missing_cols:
        raise ColumnNotFoundError(
            calling_func
            + ": DataFrame is missing required columns: "
            + ", ".join(missing_cols)
        )
    return None


def is_valid(value) -> bool:
    """True if a scalar value is finite and not the missing value"""
    if value is None:
        return False
    value = float(value)
    return bool(np.isfinite(value)) and value != MISSING_VALUE


def mask_missing(arr: np.ndarray) -> np.ndarray:
    """
    Convert missing values to NaN.

    Non-finite values and the `MISSING_VALUE` sentinel used by forecast and
    parameter files are both considered missing.

    Parameters
    ----------
    arr : numpy.ndarray
        Values to clean.

    Returns
    -------
    numpy.ndarray
        A float copy of the input where missing entries are NaN.
    """
    out = np.array(arr, dtype=np.float64)
    out[~np.isfinite(out) | (out == MISSING_VALUE)] = np.nan
    return out


def valid_locations(
    lats: np.ndarray,
    lons: np.ndarray,
    elevs: np.ndarray,
) -> np.ndarray:
    """
    Boolean mask of positions where latitude, longitude and elevation are all
    present.
    """
    return (
        np.isfinite(lats)
        & np.isfinite(lons)
        & np.isfinite(elevs)
        & (lats != MISSING_VALUE)
        & (lons != MISSING_VALUE)
        & (elevs != MISSING_VALUE)
    )


def batched(iterable: Iterable, n: int, *, strict: bool = False):
    """
    Implementation of itertools.batched for use if python version is < 3.12.

    Examples
    --------
    >>> list(batched("ABCDEFG", 3))
    [("A", "B", "C"), ("D", "E", "F"), ("G", )]
    """
    if n < 1:
        raise ValueError("'n' must be >= 1")
    iterator = iter(iterable)
    while batch := tuple(islice(iterator, n)):
        if strict and len(batch) != n:
            raise ValueError("batched(): incomplete batch")
        yield batch


def _get_logging_level(level: str) -> int:
    match level.lower():
        case "debug":
            level_i = 10
        case "info":
            level_i = 20
        case "warn":
            level_i = 30
        case "error":
            level_i = 40
        case "critical":
            level_i = 50
        case _:
            raise ValueError(f"Unknown logging level: {level}")
    return level_i


def init_logging(
    file: str | None = None,
    level: str = "DEBUG",
) -> None:
    """
    Initialise the logger

    Parameters
    ----------
    file : str
        File to send log messages to. If set to None (default) then print log
        messages to STDout
    level : str
        Level of logging, one of: "debug", "info", "warn", "error", "critical".

    Returns
    -------
    None
    """
    level_i: int = _get_logging_level(level)

    logging.basicConfig(
        filename=file,
        filemode="a",
        encoding="utf-8",
        format="%(levelname)s at %(asctime)s : %(message)s",
        level=level_i,
        force=True,
    )
    logging.captureWarnings(True)
    return None
