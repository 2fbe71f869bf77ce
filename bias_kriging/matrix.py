"""
Construction and inversion of the observation-to-observation covariance matrix.

The matrix is built once per calibration run from the locations of the
observations. Its inverse is shared read-only by every grid cell, except when
cross-validating, in which case each grid cell computes its own inverse with
its nearest observation held out.
"""

import logging
import numpy as np
import polars as pl
from scipy import linalg

from .constants import CONDITIONING_FACTOR
from .covariance import CovarianceModel
from .utils import ConfigurationError, check_cols


def build_covariance_matrix(
    model: CovarianceModel,
    locations: pl.DataFrame,
    factor: float = CONDITIONING_FACTOR,
) -> np.ndarray:
    """
    Compute the covariance matrix between all observation locations.

    The diagonal is 1, since the distance from a point to itself is 0. The
    off-diagonal terms are scaled by `factor`, which improves the conditioning
    of the matrix when two or more stations are very close.

    Parameters
    ----------
    model : CovarianceModel
        The covariance model used to compute pairwise covariances.
    locations : polars.DataFrame
        The observation locations, required columns are "lat", "lon" and
        "elev". The row order sets the row/column order of the matrix.
    factor : float
        Scaling applied to the off-diagonal terms.

    Returns
    -------
    matrix : numpy.ndarray
        Symmetric matrix of shape (N, N) with a unit diagonal.
    """
    check_cols(locations, ["lat", "lon", "elev"])
    lats, lons, elevs = (
        locations.get_column(c).cast(pl.Float64).to_numpy()
        for c in ("lat", "lon", "elev")
    )
    n = len(lats)
    cov = model.covariance_matrix(lats, lons, elevs, lats, lons, elevs)
    if np.isnan(cov).any():
        raise ConfigurationError(
            "Observation locations must all have valid lat, lon and elev values"
        )

    # Only use one of the halves so the matrix is exactly symmetric
    upper = np.triu(cov, k=1) * factor
    matrix = upper + upper.T
    matrix[np.diag_indices(n)] = 1.0
    return matrix


def invert(matrix: np.ndarray) -> np.ndarray:
    """
    General inverse of a square matrix.

    The matrix is not checked for positive-definiteness.

    Raises
    ------
    numpy.linalg.LinAlgError
        If the matrix is singular.
    """
    return linalg.inv(matrix)


def cross_validated_inverse(
    matrix: np.ndarray,
    exclude: int,
) -> np.ndarray:
    """
    Inverse of the covariance matrix with one observation held out.

    The row and column of the excluded observation are set to 0 in a copy of
    the input matrix, with its diagonal set to 1, before inverting. The input
    matrix is not modified.

    Parameters
    ----------
    matrix : numpy.ndarray
        The observation covariance matrix.
    exclude : int
        Index of the observation to hold out.

    Returns
    -------
    inverse : numpy.ndarray
        The inverse of the modified matrix.
    """
    cv_matrix = matrix.copy()
    cv_matrix[exclude, :] = 0.0
    cv_matrix[:, exclude] = 0.0
    cv_matrix[exclude, exclude] = 1.0
    return invert(cv_matrix)


def nearest_observation(
    indices: np.ndarray,
    covariances: np.ndarray,
) -> int:
    """
    Index of the observation with the highest covariance, the first one is
    returned for ties.
    """
    if len(indices) == 0:
        raise ValueError("Cannot find the nearest of no observations")
    return int(indices[np.argmax(covariances)])


def log_matrix_summary(matrix: np.ndarray) -> None:
    """Log the size and condition number of the covariance matrix"""
    logging.info(f"Point locations: {matrix.shape[0]}")
    if matrix.size:
        logging.debug(f"Condition number: {np.linalg.cond(matrix):.4g}")
    return None
