import pytest
import numpy as np
import polars as pl

from bias_kriging.types import Kernel, Location, Operator
from bias_kriging.utils import (
    ColumnNotFoundError,
    ConfigurationError,
    batched,
    check_cols,
    is_valid,
    mask_missing,
    valid_locations,
)


@pytest.mark.parametrize(
    "value, expected",
    [(1.0, True), (0, True), (np.nan, False), (np.inf, False), (-999, False),
     (None, False)],
)
def test_is_valid(value, expected):
    assert is_valid(value) == expected


def test_mask_missing():
    arr = np.array([1.0, -999.0, np.inf, 2.0])

    out = mask_missing(arr)

    assert np.isnan(out[[1, 2]]).all()
    assert out[0] == 1.0 and out[3] == 2.0
    assert arr[1] == -999.0


def test_valid_locations():
    lats = np.array([60.0, np.nan, 60.0, 60.0])
    lons = np.array([10.0, 10.0, -999.0, 10.0])
    elevs = np.array([0.0, 0.0, 0.0, np.nan])

    assert valid_locations(lats, lons, elevs).tolist() == [
        True,
        False,
        False,
        False,
    ]


def test_location():
    assert Location(60.0, 10.0, 0.0).is_valid
    assert not Location(60.0, 10.0, np.nan).is_valid
    assert not Location(-999.0, 10.0, 0.0).is_valid


def test_check_cols():
    df = pl.DataFrame({"lat": [1.0], "lon": [2.0]})
    check_cols(df, ["lat", "lon"])
    with pytest.raises(ColumnNotFoundError):
        check_cols(df, ["lat", "elev"])


def test_batched():
    assert list(batched("ABCDEFG", 3)) == [
        ("A", "B", "C"),
        ("D", "E", "F"),
        ("G",),
    ]
    with pytest.raises(ValueError):
        list(batched("ABC", 0))


def test_enums():
    assert Kernel.from_name("Barnes") == Kernel.BARNES
    assert Operator.from_name(Operator.DIVIDE) == Operator.DIVIDE
    assert Operator.MULTIPLY.is_multiplicative
    assert not Operator.SUBTRACT.is_multiplicative
    with pytest.raises(ConfigurationError):
        Operator.from_name("modulo")


@pytest.mark.parametrize(
    "operator, expected",
    [("add", 6.0), ("subtract", 2.0), ("multiply", 8.0), ("divide", 2.0)],
)
def test_operator_apply(operator, expected):
    result = Operator.from_name(operator).apply(
        np.array([4.0]), np.array([2.0])
    )
    assert result[0] == expected
