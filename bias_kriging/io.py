"""
Functions for loading forecast grids and parameters from files, using format
strings to find the file.
"""

import os
import polars as pl
import xarray as xr

from .parameters import LocationParameters


def _resolve_path(path: str, **kwargs) -> str:
    if os.path.isfile(path):
        return path
    if kwargs:
        if not os.path.isdir(os.path.dirname(path)):
            raise FileNotFoundError(f"Path: {path} not found")
        filename = path.format(**kwargs)
        if not os.path.isfile(filename):
            raise FileNotFoundError(f"File: {filename} not found")
        return filename
    raise FileNotFoundError("Cannot determine filename")


def load_dataset(
    path,
    **kwargs,
) -> xr.Dataset:
    """
    Load an xarray.Dataset from a netCDF file. Can input a filename or a
    string to format with keyword arguments.

    Parameters
    ----------
    path : str
        Full filename (including path), or filename with replacements using
        str.format with named replacements. For example:
            /path/to/forecast_{date:%Y%m%d}.nc
    **kwargs
        Keywords arguments matching the replacements in the input path.

    Returns
    -------
    arr : xarray.Dataset
        The netcdf dataset as an xarray.Dataset.
    """
    filename = _resolve_path(path, **kwargs)
    # Load into memory so the file can be overwritten by the output
    with xr.open_dataset(filename, engine="netcdf4") as ds:
        return ds.load()


def save_dataset(ds: xr.Dataset, path: str) -> None:
    """Write a Dataset to a netCDF file"""
    ds.to_netcdf(path, engine="netcdf4")
    return None


def load_parameters(
    path: str,
    bias_col: str = "bias",
    separator: str = ",",
    **kwargs,
) -> LocationParameters:
    """
    Load location dependent bias parameters from a delimited text file.

    Parameters
    ----------
    path : str
        Full filename (including path), or filename with replacements using
        str.format with named replacements.
    bias_col : str
        Name of the column containing the bias values.
    separator : str
        Column separator.
    **kwargs
        Keywords arguments matching the replacements in the input path.

    Returns
    -------
    LocationParameters
        The file must contain "lat", "lon", "elev" and bias columns, and
        optionally a "time" column. Values of -999 are treated as missing.
    """
    filename = _resolve_path(path, **kwargs)
    frame = pl.read_csv(
        filename,
        separator=separator,
        comment_prefix="#",
        null_values=["-999", "-999.0", "NA", "nan"],
    )
    return LocationParameters(frame, bias_col=bias_col)
