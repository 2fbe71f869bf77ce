"""Types and enumerations used by bias_kriging functions and methods."""

from enum import Enum
from typing import Literal, NamedTuple
import numpy as np

from .utils import ConfigurationError, is_valid

KernelName = Literal["cressman", "barnes"]


class Kernel(Enum):
    """Covariance kernel used to weight the influence of one location"""

    CRESSMAN = "cressman"
    BARNES = "barnes"

    @classmethod
    def from_name(cls, name: "str | Kernel") -> "Kernel":
        """Resolve a kernel from its configuration name"""
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).lower())
        except ValueError:
            raise ConfigurationError(f"Kernel type '{name}' not recognized")


class Operator(Enum):
    """How a bias is combined with the raw forecast value"""

    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"

    @classmethod
    def from_name(cls, name: "str | Operator") -> "Operator":
        """Resolve an operator from its configuration name"""
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).lower())
        except ValueError:
            raise ConfigurationError(f"Operator '{name}' not recognized")

    @property
    def is_multiplicative(self) -> bool:
        """Whether the bias is a factor (centred on 1) rather than an offset"""
        return self in (Operator.MULTIPLY, Operator.DIVIDE)

    def apply(self, values: np.ndarray, bias: np.ndarray) -> np.ndarray:
        """Combine raw values with a (broadcastable) bias"""
        match self:
            case Operator.ADD:
                return values + bias
            case Operator.SUBTRACT:
                return values - bias
            case Operator.MULTIPLY:
                return values * bias
            case Operator.DIVIDE:
                return values / bias


class Location(NamedTuple):
    """A position on the earth, elevation in metres"""

    lat: float
    lon: float
    elev: float

    @property
    def is_valid(self) -> bool:
        """A location is only valid when all three fields are present"""
        return is_valid(self.lat) and is_valid(self.lon) and is_valid(self.elev)
