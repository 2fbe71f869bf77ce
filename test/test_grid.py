import pytest  # noqa: F401
import numpy as np
import xarray as xr

from bias_kriging.grid import (
    FIELD_DIMS,
    get_field,
    grid_from_arrays,
    grid_locations,
    has_valid_gridpoint,
    set_field,
)


def test_grid_from_1d_arrays():
    values = np.arange(2 * 3 * 2 * 4, dtype=np.float64).reshape(2, 3, 2, 4)
    grid = grid_from_arrays(
        [60.0, 61.0],
        [10.0, 11.0, 12.0],
        np.zeros((2, 3)),
        {"temperature": values},
    )
    lats, lons, elevs = grid_locations(grid)

    assert lats.shape == lons.shape == elevs.shape == (2, 3)
    assert (lats[:, 0] == [60.0, 61.0]).all()
    assert (lons[0] == [10.0, 11.0, 12.0]).all()
    assert grid["temperature"].dims == FIELD_DIMS
    assert np.array_equal(get_field(grid, "temperature"), values)


def test_grid_bad_shape():
    with pytest.raises(ValueError):
        grid_from_arrays(
            np.zeros((2, 3)),
            np.zeros((2, 3)),
            np.zeros((2, 3)),
            {"temperature": np.zeros((3, 2, 1, 1))},
        )


def test_has_valid_gridpoint():
    lats = np.array([[60.0, np.nan]])
    lons = np.array([[np.nan, 10.0]])
    elevs = np.array([[0.0, 0.0]])

    assert not has_valid_gridpoint(grid_from_arrays(lats, lons, elevs))

    lats[0, 1] = 60.0
    assert has_valid_gridpoint(grid_from_arrays(lats, lons, elevs))


def test_field_dim_order():
    values = np.random.rand(4, 2, 3, 5)  # time, ensemble_member, y, x
    grid = xr.Dataset(
        {
            "lat": (("y", "x"), np.zeros((3, 5))),
            "lon": (("y", "x"), np.zeros((3, 5))),
            "elev": (("y", "x"), np.zeros((3, 5))),
            "precip": (("time", "ensemble_member", "y", "x"), values),
        }
    )

    field = get_field(grid, "precip")
    assert field.shape == (3, 5, 2, 4)
    assert np.array_equal(field, np.transpose(values, (2, 3, 1, 0)))

    set_field(grid, "precip", field + 1)
    assert grid["precip"].dims == ("time", "ensemble_member", "y", "x")
    assert np.allclose(grid["precip"].values, values + 1)


def test_field_missing_dims():
    values = np.random.rand(3, 5).astype(np.float32)
    grid = xr.Dataset({"t2m": (("y", "x"), values)})

    field = get_field(grid, "t2m")
    assert field.shape == (3, 5, 1, 1)

    set_field(grid, "t2m", field * 2)
    assert grid["t2m"].dims == ("y", "x")
    assert grid["t2m"].dtype == np.float32
    assert np.allclose(grid["t2m"].values, values * 2)


def test_missing_values_masked():
    grid = xr.Dataset({"t2m": (("y", "x"), np.array([[1.0, -999.0]]))})

    field = get_field(grid, "t2m")

    assert np.isnan(field[0, 1, 0, 0])
    assert field[0, 0, 0, 0] == 1.0

    with pytest.raises(KeyError):
        get_field(grid, "unknown")


def test_get_field_unmasked():
    values = np.array([1.0, -999.0, np.nan]).reshape(1, 1, 1, 3)
    grid = grid_from_arrays([[0.0]], [[0.0]], [[0.0]], {"t": values})

    assert np.isnan(get_field(grid, "t")[0, 0, 0, 1])
    assert get_field(grid, "t", mask=False)[0, 0, 0, 1] == -999.0


def test_set_field_integer_promoted():
    values = np.full((1, 1, 1, 2), 5, dtype=np.int32)
    grid = grid_from_arrays([[0.0]], [[0.0]], [[0.0]], {"t": values})

    set_field(grid, "t", np.array([7.5, 5.0]).reshape(1, 1, 1, 2))

    assert grid["t"].dtype == np.float64
    assert grid["t"].values.ravel().tolist() == [7.5, 5.0]
