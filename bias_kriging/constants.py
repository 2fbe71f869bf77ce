"""Constants used by various functions and methods within the library"""

RADIUS_OF_EARTH_M: float = 6378137.0  # Equatorial radius of Earth (m)

# Scales the off-diagonal terms of the observation covariance matrix. Improves
# the conditioning of the matrix when two or more stations are very close.
CONDITIONING_FACTOR: float = 0.414 / 0.5

# Value used by parameter and forecast files to indicate a missing value
MISSING_VALUE: float = -999.0

DEFAULT_EFOLD_DIST: float = 30000.0  # (m)
DEFAULT_RADIUS: float = 30000.0  # (m)
