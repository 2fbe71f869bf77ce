import pytest  # noqa: F401
import numpy as np
import polars as pl

from bias_kriging.io import load_parameters
from bias_kriging.parameters import GlobalParameters, LocationParameters
from bias_kriging.utils import ColumnNotFoundError


def test_location_parameters():
    frame = pl.DataFrame(
        {
            "time": [0, 0, 1],
            "lat": [60.0, 61.0, 61.0],
            "lon": [10.0, 11.0, 11.0],
            "elev": [5.0, 20.0, 20.0],
            "bias": [1.0, 2.0, -999.0],
        }
    )
    parameters = LocationParameters(frame)

    assert parameters.is_location_dependent
    assert parameters.locations().rows() == [
        (60.0, 10.0, 5.0),
        (61.0, 11.0, 20.0),
    ]
    assert np.array_equal(parameters.bias_vector(0), [1.0, 2.0])
    # Missing in the file, and not present for the location
    assert np.isnan(parameters.bias_vector(1)).all()
    assert np.isnan(parameters.get_bias(7, 0))


def test_time_independent_parameters():
    frame = pl.DataFrame(
        {"lat": [60.0], "lon": [10.0], "elev": [5.0], "bias": [0.5]}
    )
    parameters = LocationParameters(frame)

    assert parameters.get_bias(0, 0) == 0.5
    assert parameters.get_bias(99, 0) == 0.5


def test_missing_columns():
    with pytest.raises(ColumnNotFoundError):
        LocationParameters(pl.DataFrame({"lat": [60.0], "bias": [1.0]}))


def test_global_parameters():
    parameters = GlobalParameters(1.5)

    assert not parameters.is_location_dependent
    assert parameters.locations().height == 0
    assert parameters.get_bias(0, 0) == 1.5


def test_load_parameters(tmp_path):
    path = tmp_path / "biases.csv"
    path.write_text(
        "# time,lat,lon,elev,bias\n"
        "time,lat,lon,elev,bias\n"
        "0,60.0,10.0,5.0,1.2\n"
        "0,61.0,11.0,20.0,-999\n"
    )

    parameters = load_parameters(str(path))

    assert parameters.locations().height == 2
    assert parameters.get_bias(0, 0) == 1.2
    assert np.isnan(parameters.get_bias(0, 1))


def test_load_parameters_format(tmp_path):
    path = tmp_path / "biases_20240101.csv"
    path.write_text("lat,lon,elev,bias\n1,2,3,4\n")

    parameters = load_parameters(
        str(tmp_path / "biases_{date}.csv"), date="20240101"
    )

    assert parameters.get_bias(0, 0) == 4.0

    with pytest.raises(FileNotFoundError):
        load_parameters(str(tmp_path / "biases_{date}.csv"), date="20240102")
