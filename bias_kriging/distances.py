"""
Functions for calculating horizontal distances between locations.

Two metrics are available: the exact great-circle (haversine) distance and the
cheaper equirectangular approximation, which is accurate enough over the short
radii of influence used for spreading biases. All distances are in metres.
"""

import numpy as np
from sklearn.metrics.pairwise import haversine_distances

from .constants import RADIUS_OF_EARTH_M


def haversine_distance(
    loc1: tuple[float, float],
    loc2: tuple[float, float],
    radius: float = RADIUS_OF_EARTH_M,
) -> float:
    """
    Calculate the great circle distance in metres between two points
    on the earth (specified in decimal degrees)

    Parameters
    ----------
    loc1 : tuple[float, float]
        The first position
    loc2 : tuple[float, float]
        The second position
    radius : float
        The radius of the sphere used for the calculation. Defaults to the
        radius of the earth in m.

    Returns
    -------
    dist : float
        The haversine distance between the two input points on the sphere
        defined by the radius parameter.
    """
    lat1, lon1 = map(np.radians, loc1)
    lat2, lon2 = map(np.radians, loc2)

    # haversine formula
    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = (
        np.sin(dlat / 2) ** 2
        + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    )
    dist = radius * 2 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))
    return dist


def equirectangular_distance(
    loc1: tuple[float, float],
    loc2: tuple[float, float],
    radius: float = RADIUS_OF_EARTH_M,
) -> float:
    """
    Calculate the approximate distance in metres between two positions using
    the equirectangular projection.

    d = R * SQRT((dlon * cos(mean_lat))**2 + dlat**2)

    Parameters
    ----------
    loc1 : tuple[float, float]
        The first position
    loc2 : tuple[float, float]
        The second position
    radius : float
        The radius of the sphere used for the calculation. Defaults to the
        radius of the earth in m.

    Returns
    -------
    dist : float
        The approximate distance between the two input points.
    """
    lat1, lon1 = map(np.radians, loc1)
    lat2, lon2 = map(np.radians, loc2)

    # Wrap across the dateline
    dlon = lon2 - lon1
    dlon = np.where(
        np.abs(dlon) > np.pi, dlon - np.sign(dlon) * 2 * np.pi, dlon
    )
    dlat = lat2 - lat1
    dx = dlon * np.cos((lat1 + lat2) / 2)
    return radius * np.sqrt(dx**2 + dlat**2)


def horizontal_distance(
    loc1: tuple[float, float],
    loc2: tuple[float, float],
    approx: bool = True,
    radius: float = RADIUS_OF_EARTH_M,
) -> float:
    """
    Horizontal distance between two positions. Inputs can also be arrays of
    latitudes and longitudes that broadcast against each other.
    """
    if approx:
        return equirectangular_distance(loc1, loc2, radius)
    return haversine_distance(loc1, loc2, radius)


def distance_matrix(
    lats1: np.ndarray,
    lons1: np.ndarray,
    lats2: np.ndarray,
    lons2: np.ndarray,
    approx: bool = True,
    radius: float = RADIUS_OF_EARTH_M,
) -> np.ndarray:
    """
    Compute the matrix of horizontal distances between two sets of positions.

    Parameters
    ----------
    lats1, lons1 : numpy.ndarray
        Positions of the first set, these form the rows of the output.
    lats2, lons2 : numpy.ndarray
        Positions of the second set, these form the columns of the output.
    approx : bool
        Use the equirectangular approximation rather than the haversine
        distance.
    radius : float
        Radius of the sphere, defaults to the radius of the earth in m.

    Returns
    -------
    dist : numpy.ndarray
        Matrix of shape (len(lats1), len(lats2)).
    """
    lats1 = np.asarray(lats1, dtype=np.float64).ravel()
    lons1 = np.asarray(lons1, dtype=np.float64).ravel()
    lats2 = np.asarray(lats2, dtype=np.float64).ravel()
    lons2 = np.asarray(lons2, dtype=np.float64).ravel()
    if approx:
        return equirectangular_distance(
            (lats1[:, None], lons1[:, None]),
            (lats2[None, :], lons2[None, :]),
            radius,
        )
    pos1 = np.radians(np.column_stack([lats1, lons1]))
    pos2 = np.radians(np.column_stack([lats2, lons2]))
    return haversine_distances(pos1, pos2) * radius
