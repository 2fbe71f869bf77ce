"""
Grid
----

Functions for creating and accessing the forecast grid. The grid is an
xarray.Dataset containing 2d latitude, longitude and elevation variables on the
(y, x) dimensions, and forecast variables on the (y, x, ensemble_member, time)
dimensions in any order.
"""

import numpy as np
import xarray as xr

from .utils import mask_missing, valid_locations

LAT: str = "lat"
LON: str = "lon"
ELEV: str = "elev"

Y_DIM: str = "y"
X_DIM: str = "x"
ENS_DIM: str = "ensemble_member"
TIME_DIM: str = "time"

# Order of dimensions used for computation
FIELD_DIMS: tuple[str, str, str, str] = (Y_DIM, X_DIM, ENS_DIM, TIME_DIM)


def grid_from_arrays(
    lats: np.ndarray,
    lons: np.ndarray,
    elevs: np.ndarray,
    variables: dict[str, np.ndarray] | None = None,
) -> xr.Dataset:
    """
    Create a grid Dataset from arrays of locations and forecast values.

    Parameters
    ----------
    lats, lons : numpy.ndarray
        Either 2d arrays (n_lat, n_lon) of positions, or 1d arrays of the
        latitude and longitude values of a regular grid.
    elevs : numpy.ndarray
        2d array (n_lat, n_lon) of elevations (m).
    variables : dict[str, numpy.ndarray] | None
        Forecast values keyed by variable name, each of shape
        (n_lat, n_lon, n_ens, n_time).

    Returns
    -------
    grid : xarray.Dataset
    """
    lats = np.asarray(lats, dtype=np.float64)
    lons = np.asarray(lons, dtype=np.float64)
    if lats.ndim == 1 and lons.ndim == 1:
        lons, lats = np.meshgrid(lons, lats)
    elevs = np.asarray(elevs, dtype=np.float64)
    if not (lats.shape == lons.shape == elevs.shape) or lats.ndim != 2:
        raise ValueError("lats, lons and elevs must have the same 2d shape")

    data_vars = {
        LAT: ((Y_DIM, X_DIM), lats),
        LON: ((Y_DIM, X_DIM), lons),
        ELEV: ((Y_DIM, X_DIM), elevs),
    }
    for name, values in (variables or {}).items():
        values = np.asarray(values)
        if values.ndim != 4 or values.shape[:2] != lats.shape:
            raise ValueError(
                f"Variable {name} must have shape (n_lat, n_lon, n_ens, n_time)"
            )
        data_vars[name] = (FIELD_DIMS, values)
    return xr.Dataset(data_vars)


def grid_locations(
    grid: xr.Dataset,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Get the latitude, longitude and elevation of each grid cell as 2d arrays
    on (y, x), with missing values set to NaN.
    """
    return tuple(  # type: ignore
        mask_missing(grid[name].transpose(Y_DIM, X_DIM).values)
        for name in (LAT, LON, ELEV)
    )


def has_valid_gridpoint(grid: xr.Dataset) -> bool:
    """Check that at least one grid cell has a valid lat, lon and elev"""
    lats, lons, elevs = grid_locations(grid)
    return bool(valid_locations(lats, lons, elevs).any())


def get_field(grid: xr.Dataset, name: str, mask: bool = True) -> np.ndarray:
    """
    Get the values of a variable as an array ordered (y, x, ensemble_member,
    time). Dimensions absent from the variable are added with size 1. Missing
    values are set to NaN, unless `mask` is False in which case the values are
    returned as stored.
    """
    if name not in grid:
        raise KeyError(f"Variable {name} not found in grid")
    da = grid[name]
    for dim in FIELD_DIMS:
        if dim not in da.dims:
            da = da.expand_dims(dim)
    values = da.transpose(*FIELD_DIMS).values
    return mask_missing(values) if mask else values


def set_field(grid: xr.Dataset, name: str, values: np.ndarray) -> None:
    """
    Overwrite the values of a variable in-place from an array ordered (y, x,
    ensemble_member, time), as returned by `get_field`. Integer variables are
    converted to float64 so that corrected values are not truncated.
    """
    original = grid[name]
    da = xr.DataArray(values, dims=FIELD_DIMS)
    for dim in FIELD_DIMS:
        if dim not in original.dims:
            da = da.isel({dim: 0})
    da = da.transpose(*original.dims)
    dtype = (
        original.dtype
        if np.issubdtype(original.dtype, np.floating)
        else np.float64
    )
    grid[name] = original.copy(data=da.values.astype(dtype))
    return None
