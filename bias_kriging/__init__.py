"""
Library for spreading biases at point observations onto a forecast grid using
Kriging, and applying them to each ensemble member of the forecast.
"""

from .calibrator import KrigingCalibrator
from .config import KrigingConfig
from .covariance import BarnesKernel, CovarianceModel, CressmanKernel
from .parameters import GlobalParameters, LocationParameters
from .types import Kernel, Location, Operator
from .utils import ConfigurationError

__all__ = [
    "BarnesKernel",
    "ConfigurationError",
    "CovarianceModel",
    "CressmanKernel",
    "GlobalParameters",
    "Kernel",
    "KrigingCalibrator",
    "KrigingConfig",
    "Location",
    "LocationParameters",
    "Operator",
]

__version__ = "1.0.0"
