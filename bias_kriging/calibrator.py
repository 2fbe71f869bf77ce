"""
Calibration of a forecast field by spreading biases in space using Kriging.

A parameter source with spatial information provides a bias at each
observation location for each time step. The biases are interpolated onto the
forecast grid and applied to each ensemble member using the configured
operator.

General procedure for a given grid cell:

.. math::
    w = C^{-1} \\times S

    b_{cell} = w^T \\times b

Where :math:`C` is the observation-to-observation covariance matrix (N x N),
:math:`S` is the covariance between the observations and the grid cell
(N x 1) and :math:`b` is the bias at each observation location (N x 1).

For the multiply and divide operators the biases are treated as fluctuations
around a mean of 1. Note that in this case there is no guarantee that the
linear system is well conditioned.
"""

from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
import logging
from time import perf_counter
from warnings import warn
import numpy as np
import polars as pl
import xarray as xr

from .config import KrigingConfig
from .gating import auxiliary_weights
from .grid import get_field, grid_locations, has_valid_gridpoint, set_field
from .matrix import build_covariance_matrix, invert, log_matrix_summary
from .parameters import LOCATION_COLS, ParameterSource
from .types import Operator
from .utils import ConfigurationError, check_cols, is_valid, mask_missing
from .weights import (
    SparseGridWeights,
    build_grid_weights,
    combine_bias,
    cross_validated_weights,
    grid_biases,
)


class KrigingCalibrator:
    """
    Spreads bias in space by using Kriging.

    Parameters
    ----------
    config : KrigingConfig | None
        The calibration settings, defaults are used if not set.
    """

    def __init__(self, config: KrigingConfig | None = None) -> None:
        self.config = config or KrigingConfig()
        self.model = self.config.covariance_model()
        return None

    @property
    def operator(self) -> Operator:
        """The configured Operator"""
        return Operator.from_name(self.config.operator)

    def calibrate(
        self,
        grid: xr.Dataset,
        parameters: ParameterSource,
        variable: str,
    ) -> bool:
        """
        Apply the Kriging bias correction to a variable in-place.

        Parameters
        ----------
        grid : xarray.Dataset
            The forecast grid, see `bias_kriging.grid`. The values of
            `variable` are overwritten.
        parameters : ParameterSource
            Source of the bias at each observation location, must be location
            dependent.
        variable : str
            Name of the forecast variable to correct.

        Returns
        -------
        bool
            False if no correction could be applied because no grid cell has a
            valid latitude, longitude and elevation, otherwise True.

        Raises
        ------
        ConfigurationError
            If the parameter source has no spatial information, or any
            observation location is invalid.
        """
        if not parameters.is_location_dependent:
            raise ConfigurationError(
                "Kriging requires a parameter file with spatial information"
            )
        if not has_valid_gridpoint(grid):
            warn(
                "There are no gridpoints with valid lat/lon/elev values. "
                + "Skipping kriging..."
            )
            return False

        locations = parameters.locations()
        values = get_field(grid, variable, mask=False)
        aux = self._aux_weights(grid, values.shape)
        n_time = values.shape[-1]

        if locations.height == 0:
            warn("No observation locations, no correction will be made.")
            return True
        if n_time == 0:
            return True

        # Computed once, independent of time
        matrix = build_covariance_matrix(self.model, locations)
        log_matrix_summary(matrix)
        grid_weights = self._grid_weights(grid, locations)

        biases = np.stack(
            [self.bias_vector(parameters, t) for t in range(n_time)]
        )

        if self.config.cross_validate:
            cell_biases = self.cross_validated_biases(
                matrix, grid_weights, biases
            )
        else:
            logging.info("Precomputing inverse of obs-to-obs covariance matrix")
            start = perf_counter()
            inverse = invert(matrix)
            elapsed = perf_counter() - start
            logging.info(f"Inverse computed in {elapsed:.3f} seconds")
            cell_biases = np.stack(
                [grid_biases(grid_weights, inverse, b) for b in biases],
                axis=-1,
            )

        set_field(grid, variable, self.apply_biases(values, cell_biases, aux))
        return True

    def _grid_weights(
        self,
        grid: xr.Dataset,
        locations: pl.DataFrame,
    ) -> SparseGridWeights:
        logging.info("Precomputing gridpoint-to-obs covariances")
        start = perf_counter()
        lats, lons, elevs = grid_locations(grid)
        grid_weights = build_grid_weights(
            self.model, locations, lats, lons, elevs
        )
        elapsed = perf_counter() - start
        logging.info(f"Covariances computed in {elapsed:.3f} seconds")
        return grid_weights

    def _aux_weights(
        self,
        grid: xr.Dataset,
        shape: tuple[int, ...],
    ) -> np.ndarray | None:
        if not self.config.use_aux:
            return None
        if self.config.aux_variable not in grid:
            raise ConfigurationError(
                f"Auxiliary variable {self.config.aux_variable} not found in "
                + "the grid"
            )
        aux_values = get_field(grid, self.config.aux_variable)  # type: ignore
        if aux_values.shape != shape:
            raise ConfigurationError(
                f"Auxiliary variable {self.config.aux_variable} must have the "
                + "same dimensions as the calibrated variable"
            )
        lower, upper = self.config.aux_range  # type: ignore
        return auxiliary_weights(aux_values, lower, upper, self.config.window)

    def bias_vector(self, parameters: ParameterSource, time: int) -> np.ndarray:
        """
        Arrange the biases for all observation locations at a time step into
        one vector. For multiply and divide, the fluctuations around a mean of
        1 are returned.
        """
        bias = mask_missing(parameters.bias_vector(time))
        if self.operator.is_multiplicative:
            bias = bias - 1
        return bias

    def cross_validated_biases(
        self,
        matrix: np.ndarray,
        grid_weights: SparseGridWeights,
        biases: np.ndarray,
    ) -> np.ndarray:
        """
        Compute the bias for each grid cell and time step without using the
        nearest observation to each cell.

        The inverse of the covariance matrix is recomputed for every grid cell.
        Grid cells are independent and can be processed in parallel, the
        result does not depend on the number of jobs.

        Parameters
        ----------
        matrix : numpy.ndarray
            The observation covariance matrix (N x N).
        grid_weights : SparseGridWeights
            Non-zero grid-to-observation covariances.
        biases : numpy.ndarray
            Bias at each observation for each time step (n_time x N).

        Returns
        -------
        numpy.ndarray
            Biases of shape (n_lat, n_lon, n_time), NaN where undefined.
        """
        n_lat, n_lon = grid_weights.grid_shape
        out = np.full((n_lat, n_lon, biases.shape[0]), np.nan)
        cells = list(zip(*np.nonzero(grid_weights.support_size > 0)))

        def _cell_biases(cell: tuple[int, int]) -> list[float]:
            indices, covariances = grid_weights.support(*cell)
            weights, _ = cross_validated_weights(matrix, indices, covariances)
            return [combine_bias(weights, bias) for bias in biases]

        if self.config.n_jobs > 1:
            with ThreadPoolExecutor(max_workers=self.config.n_jobs) as pool:
                results = list(pool.map(_cell_biases, cells))
        else:
            results = [_cell_biases(cell) for cell in cells]

        for (i, j), result in zip(cells, results):
            out[i, j, :] = result
        return out

    def apply_biases(
        self,
        values: np.ndarray,
        cell_biases: np.ndarray,
        aux: np.ndarray | None = None,
    ) -> np.ndarray:
        """
        Apply the biases to each ensemble member.

        Parameters
        ----------
        values : numpy.ndarray
            Raw forecast values (n_lat, n_lon, n_ens, n_time). Missing values
            (NaN or -999) are not modified.
        cell_biases : numpy.ndarray
            Kriged bias (or fluctuation around 1 for multiply and divide) for
            each grid cell and time step (n_lat, n_lon, n_time). Cells where
            the bias is NaN are not modified.
        aux : numpy.ndarray | None
            Optional auxiliary weights with the same shape as `values`. Biases
            are scaled by the weight for add and subtract, and raised to the
            power of the weight for multiply and divide.

        Returns
        -------
        numpy.ndarray
            The corrected values.
        """
        operator = self.operator
        bias = cell_biases[:, :, None, :]
        if operator.is_multiplicative:
            # Reconstruct the factor by adding the fluctuations onto 1
            bias = bias + 1
        bias = np.broadcast_to(bias, values.shape)

        if aux is not None:
            if operator.is_multiplicative:
                with np.errstate(invalid="ignore"):
                    bias = np.power(bias, aux)
            else:
                bias = bias * aux

        masked = mask_missing(values)
        with np.errstate(divide="ignore", invalid="ignore"):
            corrected = operator.apply(masked, bias)
        unchanged = np.isnan(bias) | np.isnan(masked)
        return np.where(unchanged, values, corrected)

    def train(self, samples: Iterable[tuple[float, Sequence[float]]]) -> float:
        """
        Compute the bias from pairs of observations and ensemble forecasts.

        Parameters
        ----------
        samples : Iterable[tuple[float, Sequence[float]]]
            Pairs of (observation, ensemble values). The ensemble mean is
            computed from the valid members.

        Returns
        -------
        bias : float
            For add: mean(obs) - mean(forecast). For subtract: mean(forecast)
            - mean(obs). For multiply: sum(obs) / sum(forecast). For divide:
            sum(forecast) / sum(obs). 0 if there are no valid samples.
        """
        total_obs = np.float64(0.0)
        total_fcst = np.float64(0.0)
        counter = 0
        for obs, ens in samples:
            ens = mask_missing(np.atleast_1d(ens))
            ens = ens[~np.isnan(ens)]
            if not is_valid(obs) or len(ens) == 0:
                continue
            total_obs += obs
            total_fcst += np.mean(ens)
            counter += 1

        if counter == 0:
            warn("No valid data, no correction will be made.")
            return 0.0

        with np.errstate(divide="ignore", invalid="ignore"):
            match self.operator:
                case Operator.ADD:
                    bias = (total_obs - total_fcst) / counter
                case Operator.SUBTRACT:
                    bias = (total_fcst - total_obs) / counter
                case Operator.MULTIPLY:
                    bias = total_obs / total_fcst
                case Operator.DIVIDE:
                    bias = total_fcst / total_obs
        return float(bias)

    def train_parameters(
        self,
        frame: pl.DataFrame,
        obs_col: str = "obs",
        ens_prefix: str = "ens",
    ) -> pl.DataFrame:
        """
        Train a bias for each location (and time step, if present).

        Parameters
        ----------
        frame : polars.DataFrame
            Training data, required columns are "lat", "lon", "elev", the
            observation column and one or more ensemble columns whose names
            start with `ens_prefix`. An optional "time" column gives the time
            step index.
        obs_col : str
            Name of the observation column.
        ens_prefix : str
            Prefix of the ensemble member columns.

        Returns
        -------
        polars.DataFrame
            Columns ("time",) "lat", "lon", "elev" and "bias". Can be used with
            `bias_kriging.parameters.LocationParameters`.
        """
        check_cols(frame, LOCATION_COLS + [obs_col])
        ens_cols = [c for c in frame.columns if c.startswith(ens_prefix)]
        if not ens_cols:
            raise ValueError(f"No ensemble columns with prefix '{ens_prefix}'")
        keys = (["time"] if "time" in frame.columns else []) + LOCATION_COLS

        rows = []
        for key, group in frame.group_by(keys, maintain_order=True):
            samples = zip(
                group.get_column(obs_col).to_list(),
                group.select(ens_cols).cast(pl.Float64).to_numpy(),
            )
            rows.append((*key, self.train(samples)))

        schema = {k: frame.schema[k] for k in keys} | {"bias": pl.Float64}
        return pl.DataFrame(rows, schema=schema, orient="row")
