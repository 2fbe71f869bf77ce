"""
Grid-to-observation covariances and Kriging weights.

For a given grid cell:

.. math::
    S = C \\times w

    w = C^{-1} \\times S

    b_{cell} = w^T \\times b

Where :math:`C` is the observation-to-observation covariance matrix (N x N),
:math:`S` is the covariance between the observations and the grid cell
(N x 1), :math:`w` are the Kriging weights and :math:`b` is the bias at each
observation location (N x 1).

Most values in :math:`S` are zero since the kernels have compact support, so
only the non-zero values are stored. The weights still have the length of all
observations, since far away biases can covary with nearby observations
through the inverse.
"""

from dataclasses import dataclass
import logging
import numpy as np
import polars as pl
from scipy import sparse

from .covariance import CovarianceModel
from .matrix import cross_validated_inverse, nearest_observation
from .utils import batched, check_cols


@dataclass(frozen=True)
class SparseGridWeights:
    """
    The non-zero covariances between each grid cell and the observations.

    Parameters
    ----------
    grid_shape : tuple[int, int]
        Number of latitude rows and longitude columns of the grid.
    covariances : scipy.sparse.csr_array
        Array of shape (n_lat * n_lon, N). Row `i * n_lon + j` holds the
        covariances of cell (i, j), only values > 0 are stored.
    """

    grid_shape: tuple[int, int]
    covariances: sparse.csr_array

    def cell_index(self, i: int, j: int) -> int:
        """1d (row-major) index of the grid cell (i, j)"""
        return int(np.ravel_multi_index((i, j), self.grid_shape, order="C"))

    def support(self, i: int, j: int) -> tuple[np.ndarray, np.ndarray]:
        """
        The observation indices and covariances with non-zero covariance to
        grid cell (i, j), ordered by observation index.
        """
        cell = self.cell_index(i, j)
        start, end = self.covariances.indptr[cell : cell + 2]
        return (
            self.covariances.indices[start:end],
            self.covariances.data[start:end],
        )

    @property
    def support_size(self) -> np.ndarray:
        """Number of observations with non-zero covariance for each cell"""
        return np.diff(self.covariances.indptr).reshape(self.grid_shape)


def build_grid_weights(
    model: CovarianceModel,
    locations: pl.DataFrame,
    lats: np.ndarray,
    lons: np.ndarray,
    elevs: np.ndarray,
    batch_size: int = 4096,
) -> SparseGridWeights:
    """
    Compute the covariance between every grid cell and every observation,
    keeping only values greater than 0.

    Grid cells with an invalid location have no covariances.

    Parameters
    ----------
    model : CovarianceModel
        The covariance model.
    locations : polars.DataFrame
        Observation locations with columns "lat", "lon" and "elev".
    lats, lons, elevs : numpy.ndarray
        2d arrays (n_lat, n_lon) with the locations of the grid cells.
    batch_size : int
        Number of grid cells processed together, this limits the size of the
        intermediate dense covariance block.

    Returns
    -------
    SparseGridWeights
    """
    check_cols(locations, ["lat", "lon", "elev"])
    grid_shape = tuple(np.shape(lats))
    if len(grid_shape) != 2:
        raise ValueError("Grid locations must be 2d arrays")
    obs_lats, obs_lons, obs_elevs = (
        locations.get_column(c).cast(pl.Float64).to_numpy()
        for c in ("lat", "lon", "elev")
    )
    n_obs = len(obs_lats)
    flat_lats, flat_lons, flat_elevs = (
        np.asarray(a, dtype=np.float64).ravel() for a in (lats, lons, elevs)
    )
    n_cells = len(flat_lats)

    data: list[np.ndarray] = []
    indices: list[np.ndarray] = []
    counts = np.zeros(n_cells, dtype=np.int64)
    for batch in batched(range(n_cells), batch_size):
        cells = np.asarray(batch)
        cov = model.covariance_matrix(
            flat_lats[cells],
            flat_lons[cells],
            flat_elevs[cells],
            obs_lats,
            obs_lons,
            obs_elevs,
        )
        # NaN covariances (invalid cells) are not > 0
        rows, cols = np.nonzero(cov > 0)
        data.append(cov[rows, cols])
        indices.append(cols)
        counts[cells] = np.bincount(rows, minlength=len(cells))

    indptr = np.concatenate([[0], np.cumsum(counts)])
    covariances = sparse.csr_array(
        (
            np.concatenate(data) if data else np.empty(0),
            np.concatenate(indices) if indices else np.empty(0, np.int64),
            indptr,
        ),
        shape=(n_cells, n_obs),
    )
    logging.debug(
        f"{covariances.nnz} non-zero grid-to-observation covariances "
        + f"for {n_cells} grid cells"
    )
    return SparseGridWeights(grid_shape, covariances)  # type: ignore


def kriging_weights(
    inverse: np.ndarray,
    indices: np.ndarray,
    covariances: np.ndarray,
) -> np.ndarray:
    """
    Kriging weights of all observations for one grid cell.

    Only the columns of the inverse for the observations with non-zero
    covariance to the grid cell contribute.

    Parameters
    ----------
    inverse : numpy.ndarray
        Inverse of the observation covariance matrix (N x N).
    indices : numpy.ndarray
        Indices of the observations with non-zero covariance.
    covariances : numpy.ndarray
        The non-zero covariances between the grid cell and those observations.

    Returns
    -------
    weights : numpy.ndarray
        Vector of length N.
    """
    return inverse[:, indices] @ covariances


def cross_validated_weights(
    matrix: np.ndarray,
    indices: np.ndarray,
    covariances: np.ndarray,
) -> tuple[np.ndarray, int]:
    """
    Kriging weights for one grid cell without using the nearest observation.

    The observation with the highest covariance to the cell is held out of the
    covariance matrix, its covariance to the cell is ignored and its final
    weight is 0. The inverse is recomputed from the input matrix on every call.

    Parameters
    ----------
    matrix : numpy.ndarray
        The observation covariance matrix (N x N). Not modified.
    indices : numpy.ndarray
        Indices of the observations with non-zero covariance to the cell.
    covariances : numpy.ndarray
        The non-zero covariances between the grid cell and those observations.

    Returns
    -------
    weights : numpy.ndarray
        Vector of length N.
    held_out : int
        Index of the observation that was held out.
    """
    held_out = nearest_observation(indices, covariances)
    inverse = cross_validated_inverse(matrix, held_out)

    covariances = np.where(indices == held_out, 0.0, covariances)
    weights = kriging_weights(inverse, indices, covariances)
    weights[held_out] = 0.0
    return weights, held_out


def combine_bias(weights: np.ndarray, bias: np.ndarray) -> float:
    """
    Weighted sum of the biases at all observations.

    Returns NaN if any observation with a missing (NaN) bias has a non-zero
    weight.
    """
    missing = np.isnan(bias)
    if np.any(weights[missing] != 0):
        return np.nan
    return float(np.dot(weights[~missing], bias[~missing]))


def grid_biases(
    grid_weights: SparseGridWeights,
    inverse: np.ndarray,
    bias: np.ndarray,
) -> np.ndarray:
    """
    Spread the biases at the observations onto every grid cell.

    Equivalent to computing `combine_bias(kriging_weights(...), bias)` for each
    cell, computed for all cells at once as :math:`S (C^{-1})^T b`.

    Parameters
    ----------
    grid_weights : SparseGridWeights
        Non-zero grid-to-observation covariances.
    inverse : numpy.ndarray
        Inverse of the observation covariance matrix (N x N).
    bias : numpy.ndarray
        Bias at each observation (N), NaN where missing.

    Returns
    -------
    numpy.ndarray
        Array of shape (n_lat, n_lon) of biases. Cells without any nearby
        observation, or with non-zero weight on a missing bias, are NaN.
    """
    S = grid_weights.covariances
    missing = np.isnan(bias)
    out = S @ (inverse.T @ np.where(missing, 0.0, bias))

    if missing.any():
        # Weights of the missing observations for every cell
        missing_weights = S @ inverse[missing, :].T
        out[np.any(missing_weights != 0, axis=1)] = np.nan

    out[np.diff(S.indptr) == 0] = np.nan
    return out.reshape(grid_weights.grid_shape)
