"""
Covariance Model
----------------

Kernel classes and the covariance model used to weight the influence of one
location on another. The covariance between two locations is a similarity
weight in [0, 1] which decays with horizontal distance and, optionally, with
the difference in elevation. Beyond the radius of influence the covariance is
always 0.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import numpy as np

from .constants import DEFAULT_EFOLD_DIST, DEFAULT_RADIUS
from .distances import distance_matrix, horizontal_distance
from .types import Kernel, KernelName, Location
from .utils import ConfigurationError, valid_locations


@dataclass()
class CovarianceKernel(ABC):
    """Generic Kernel Class - defines the abstract class"""

    efold_dist: float
    max_elev_diff: float | None = None

    @abstractmethod
    def fit(self, horiz_dist: np.ndarray, vert_dist: np.ndarray) -> np.ndarray:
        """Compute the kernel weight from horizontal and vertical distances"""
        raise NotImplementedError("Not implemented for base Kernel class")


def _cressman(dist: np.ndarray, scale: float) -> np.ndarray:
    num = scale**2 - dist**2
    den = scale**2 + dist**2
    # Coincident points with a zero scale have full weight
    weight = np.divide(num, den, out=np.ones_like(dist), where=den > 0)
    return np.where(dist > scale, 0.0, weight)


def _barnes(dist: np.ndarray, scale: float) -> np.ndarray:
    if scale == 0:
        return np.where(dist == 0, 1.0, 0.0)
    return np.exp(-(dist**2) / (2 * scale**2))


@dataclass()
class CressmanKernel(CovarianceKernel):
    r"""
    Cressman Kernel

    .. math::
        w(d) = \frac{d_0^2 - d^2}{d_0^2 + d^2}

    for :math:`d \leq d_0` and 0 otherwise. The weight decreases to 0 at the
    e-folding distance :math:`d_0`. The vertical weight has the same form with
    the maximum elevation difference as scale, or is 1 when no elevation limit
    is set.

    Parameters
    ----------
    efold_dist : float
        Distance (m) at which the horizontal weight reaches 0.
    max_elev_diff : float | None
        Elevation difference (m) at which the vertical weight reaches 0.
    """

    def fit(self, horiz_dist: np.ndarray, vert_dist: np.ndarray) -> np.ndarray:
        """Fit the CressmanKernel to distances"""
        weight = _cressman(horiz_dist, self.efold_dist)
        if self.max_elev_diff is not None:
            weight = weight * _cressman(vert_dist, self.max_elev_diff)
        return weight


@dataclass()
class BarnesKernel(CovarianceKernel):
    r"""
    Barnes Kernel

    .. math::
        w(d) = \exp\left(-\frac{d^2}{2 d_0^2}\right)

    There is no cut-off at the e-folding distance, only the radius of
    influence of the CovarianceModel applies.

    Parameters
    ----------
    efold_dist : float
        E-folding distance (m) of the horizontal weight.
    max_elev_diff : float | None
        E-folding elevation difference (m) of the vertical weight.
    """

    def fit(self, horiz_dist: np.ndarray, vert_dist: np.ndarray) -> np.ndarray:
        """Fit the BarnesKernel to distances"""
        weight = _barnes(horiz_dist, self.efold_dist)
        if self.max_elev_diff is not None:
            weight = weight * _barnes(vert_dist, self.max_elev_diff)
        return weight


KERNELS: dict[Kernel, type[CovarianceKernel]] = {
    Kernel.CRESSMAN: CressmanKernel,
    Kernel.BARNES: BarnesKernel,
}


@dataclass()
class CovarianceModel:
    """
    Covariance between pairs of locations.

    Parameters
    ----------
    kernel : Kernel | str
        The kernel used for weighting, one of "cressman" or "barnes".
    efold_dist : float
        Decay distance (m) of the kernel. Must be >= 0.
    radius : float
        Radius of influence (m). Locations at least this far apart have 0
        covariance. Must be >= 0.
    max_elev_diff : float | None
        Maximum elevation difference (m). Locations with at least this
        elevation difference have 0 covariance. Set to None for no vertical
        reduction. Must be >= 0.
    approx_dist : bool
        Use the equirectangular approximation for the horizontal distance.
    """

    kernel: Kernel | KernelName = Kernel.CRESSMAN
    efold_dist: float = DEFAULT_EFOLD_DIST
    radius: float = DEFAULT_RADIUS
    max_elev_diff: float | None = None
    approx_dist: bool = True
    _kernel: CovarianceKernel = field(init=False, repr=False)

    def __post_init__(self):
        self.kernel = Kernel.from_name(self.kernel)
        if self.efold_dist < 0:
            raise ConfigurationError("'efold_dist' must be >= 0")
        if self.radius < 0:
            raise ConfigurationError("'radius' must be >= 0")
        if self.max_elev_diff is not None and self.max_elev_diff < 0:
            raise ConfigurationError("'max_elev_diff' must be >= 0")
        self._kernel = KERNELS[self.kernel](
            efold_dist=self.efold_dist, max_elev_diff=self.max_elev_diff
        )
        return None

    def fit(self, horiz_dist: np.ndarray, vert_dist: np.ndarray) -> np.ndarray:
        """
        Compute covariances from horizontal and vertical distances, applying
        the hard cut-offs at the radius of influence and elevation limit.
        """
        horiz_dist = np.asarray(horiz_dist, dtype=np.float64)
        vert_dist = np.asarray(vert_dist, dtype=np.float64)
        outside = horiz_dist >= self.radius
        if self.max_elev_diff is not None:
            outside |= vert_dist >= self.max_elev_diff
        weight = self._kernel.fit(horiz_dist, vert_dist)
        return np.where(outside, 0.0, weight)

    def covariance(self, loc_a: Location, loc_b: Location) -> float:
        """
        Covariance between two locations.

        Returns NaN if either location is missing its latitude, longitude or
        elevation.
        """
        loc_a, loc_b = Location(*loc_a), Location(*loc_b)
        if not (loc_a.is_valid and loc_b.is_valid):
            return np.nan
        horiz = horizontal_distance(
            (loc_a.lat, loc_a.lon), (loc_b.lat, loc_b.lon), self.approx_dist
        )
        vert = abs(loc_a.elev - loc_b.elev)
        return float(self.fit(horiz, vert))

    def covariance_matrix(
        self,
        lats1: np.ndarray,
        lons1: np.ndarray,
        elevs1: np.ndarray,
        lats2: np.ndarray,
        lons2: np.ndarray,
        elevs2: np.ndarray,
    ) -> np.ndarray:
        """
        Covariances between two sets of locations.

        Parameters
        ----------
        lats1, lons1, elevs1 : numpy.ndarray
            The first set of locations, these form the rows of the output.
        lats2, lons2, elevs2 : numpy.ndarray
            The second set of locations, these form the columns of the output.

        Returns
        -------
        cov : numpy.ndarray
            Matrix of covariances with shape (len(lats1), len(lats2)). Entries
            involving an invalid location are NaN.
        """
        lats1, lons1, elevs1 = (
            np.asarray(a, dtype=np.float64).ravel()
            for a in (lats1, lons1, elevs1)
        )
        lats2, lons2, elevs2 = (
            np.asarray(a, dtype=np.float64).ravel()
            for a in (lats2, lons2, elevs2)
        )
        valid1 = valid_locations(lats1, lons1, elevs1)
        valid2 = valid_locations(lats2, lons2, elevs2)

        cov = np.full((len(lats1), len(lats2)), np.nan)
        if not (valid1.any() and valid2.any()):
            return cov

        horiz = distance_matrix(
            lats1[valid1],
            lons1[valid1],
            lats2[valid2],
            lons2[valid2],
            approx=self.approx_dist,
        )
        vert = np.abs(elevs1[valid1][:, None] - elevs2[valid2][None, :])
        cov[np.ix_(valid1, valid2)] = self.fit(horiz, vert)
        return cov
