"""Tests of the covariance model and kernels"""

import pytest
import numpy as np

from bias_kriging.covariance import (
    BarnesKernel,
    CovarianceModel,
    CressmanKernel,
)
from bias_kriging.distances import horizontal_distance
from bias_kriging.types import Kernel, Location
from bias_kriging.utils import ConfigurationError


def _random_locations(n: int, seed: int = 3) -> list[Location]:
    rng = np.random.default_rng(seed)
    lats = 60 + 0.3 * rng.random(n)
    lons = 10 + 0.3 * rng.random(n)
    elevs = 500 * rng.random(n)
    return [Location(*loc) for loc in zip(lats, lons, elevs)]


@pytest.mark.parametrize("kernel", ["cressman", "barnes"])
@pytest.mark.parametrize("approx_dist", [True, False])
@pytest.mark.parametrize("max_elev_diff", [None, 300.0])
def test_symmetric(kernel, approx_dist, max_elev_diff):
    model = CovarianceModel(
        kernel=kernel,
        efold_dist=20000,
        radius=40000,
        max_elev_diff=max_elev_diff,
        approx_dist=approx_dist,
    )
    locations = _random_locations(20)

    for a in locations:
        for b in locations:
            cov = model.covariance(a, b)
            assert cov == model.covariance(b, a)
            assert 0.0 <= cov <= 1.0


@pytest.mark.parametrize("kernel", ["cressman", "barnes"])
def test_zero_outside_radius(kernel):
    model = CovarianceModel(kernel=kernel, efold_dist=100000, radius=30000)
    a = Location(60.0, 10.0, 0.0)
    far = Location(61.0, 10.0, 0.0)  # ~111 km
    near = Location(60.1, 10.0, 0.0)  # ~11 km

    assert model.covariance(a, far) == 0.0
    assert model.covariance(a, near) > 0.0


@pytest.mark.parametrize("kernel", ["cressman", "barnes"])
def test_zero_outside_elevation_limit(kernel):
    model = CovarianceModel(kernel=kernel, max_elev_diff=100.0)
    a = Location(60.0, 10.0, 0.0)

    assert model.covariance(a, Location(60.0, 10.0, 100.0)) == 0.0
    assert model.covariance(a, Location(60.0, 10.0, 150.0)) == 0.0
    assert model.covariance(a, Location(60.0, 10.0, 50.0)) > 0.0


@pytest.mark.parametrize("kernel", ["cressman", "barnes"])
def test_coincident(kernel):
    model = CovarianceModel(kernel=kernel, max_elev_diff=100.0)
    a = Location(60.0, 10.0, 10.0)

    assert model.covariance(a, a) == 1.0


def test_cressman_weight():
    d0 = 30000.0
    model = CovarianceModel(kernel="cressman", efold_dist=d0, radius=50000)
    a = Location(60.0, 10.0, 0.0)
    b = Location(60.1, 10.1, 0.0)
    d = horizontal_distance((a.lat, a.lon), (b.lat, b.lon))

    expected = (d0**2 - d**2) / (d0**2 + d**2)

    assert model.covariance(a, b) == pytest.approx(expected)
    # Cressman is 0 beyond the e-folding distance, inside the radius
    assert model.covariance(a, Location(60.35, 10.0, 0.0)) == 0.0


def test_cressman_vertical_weight():
    dv0 = 200.0
    model = CovarianceModel(kernel="cressman", max_elev_diff=dv0)
    a = Location(60.0, 10.0, 0.0)
    b = Location(60.0, 10.0, 50.0)

    expected = (dv0**2 - 50.0**2) / (dv0**2 + 50.0**2)

    assert model.covariance(a, b) == pytest.approx(expected)


def test_barnes_weight():
    d0 = 10000.0
    model = CovarianceModel(kernel="barnes", efold_dist=d0, radius=100000)
    a = Location(60.0, 10.0, 0.0)
    b = Location(60.2, 10.0, 0.0)  # ~22 km, beyond the e-folding distance
    d = horizontal_distance((a.lat, a.lon), (b.lat, b.lon))

    expected = np.exp(-(d**2) / (2 * d0**2))

    assert model.covariance(a, b) == pytest.approx(expected)
    assert model.covariance(a, b) > 0.0


def test_invalid_location():
    model = CovarianceModel()
    a = Location(60.0, 10.0, 0.0)

    assert np.isnan(model.covariance(a, Location(60.0, 10.0, np.nan)))
    assert np.isnan(model.covariance(Location(np.nan, 10.0, 0.0), a))
    assert np.isnan(model.covariance(a, Location(60.0, -999.0, 0.0)))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"efold_dist": -1.0},
        {"radius": -1.0},
        {"max_elev_diff": -1.0},
        {"kernel": "gaussian"},
    ],
)
def test_invalid_settings(kwargs):
    with pytest.raises(ConfigurationError):
        CovarianceModel(**kwargs)


def test_kernel_selection():
    assert isinstance(CovarianceModel(kernel="barnes")._kernel, BarnesKernel)
    assert isinstance(
        CovarianceModel(kernel=Kernel.CRESSMAN)._kernel, CressmanKernel
    )


@pytest.mark.parametrize("kernel", ["cressman", "barnes"])
def test_covariance_matrix_matches_pairs(kernel):
    model = CovarianceModel(kernel=kernel, efold_dist=20000, radius=40000)
    locations = _random_locations(6) + [Location(60.0, np.nan, 0.0)]
    lats, lons, elevs = map(np.array, zip(*locations))

    cov = model.covariance_matrix(lats, lons, elevs, lats, lons, elevs)

    assert cov.shape == (7, 7)
    assert np.isnan(cov[-1]).all()
    assert np.isnan(cov[:, -1]).all()
    for i, a in enumerate(locations[:-1]):
        expected = [model.covariance(a, b) for b in locations[:-1]]
        assert np.allclose(cov[i, :-1], expected)
