"""
Configuration of the Kriging calibration.

Options use the same keys as the key-value options of the calibrator, so a yaml
file can contain, for example:

.. code-block:: yaml

    type: barnes
    efoldDist: 20000
    radius: 50000
    maxElevDiff: 200
    operator: multiply
    auxVariable: precipitation_amount
    range: [0, 0.3]
    window: 1
"""

from dataclasses import dataclass
from numbers import Integral, Real
from typing import Any
import yaml

from .constants import DEFAULT_EFOLD_DIST, DEFAULT_RADIUS
from .covariance import CovarianceModel
from .types import Kernel, Operator
from .utils import ConfigurationError

# Option key -> KrigingConfig attribute
OPTION_KEYS: dict[str, str] = {
    "type": "kernel",
    "efoldDist": "efold_dist",
    "radius": "radius",
    "maxElevDiff": "max_elev_diff",
    "operator": "operator",
    "approxDist": "approx_dist",
    "crossValidate": "cross_validate",
    "auxVariable": "aux_variable",
    "range": "aux_range",
    "window": "window",
    "nJobs": "n_jobs",
}


def _integer_option(value: Any, key: str) -> int:
    # Integral floats, e.g. 1.0 from a yaml file, are accepted
    if isinstance(value, Real) and not isinstance(value, bool):
        if isinstance(value, Integral) or float(value).is_integer():
            return int(value)
    raise ConfigurationError(f"'{key}' must be an integer")


@dataclass()
class KrigingConfig:
    """
    Settings for spreading biases in space using Kriging.

    Parameters
    ----------
    kernel : Kernel | str
        Weighting function, one of "cressman" or "barnes".
    efold_dist : float
        For cressman: the weight linearly decreases to 0 at this distance (m).
        For barnes: the weight reduces to 1/e at this distance (m). Must be
        >= 0.
    radius : float
        Only use values from locations within this radius (m). Must be >= 0.
    max_elev_diff : float | None
        Maximum elevation difference (m) that bias can be spread to. None if no
        reduction of bias in the vertical is desired. Must be >= 0.
    operator : Operator | str
        How the bias is applied to the raw forecast. One of "add", "subtract",
        "multiply", "divide". For add/subtract, the mean of the field is
        assumed to be 0, and for multiply/divide, 1.
    approx_dist : bool
        Use the equirectangular approximation when computing distances.
    cross_validate : bool
        Don't use the nearest point in the kriging. The end result is a field
        that can be verified against observations at the kriging points.
    aux_variable : str | None
        Auxiliary variable used to turn off kriging, for example where there
        is precipitation.
    aux_range : tuple[float, float] | None
        Range of the auxiliary variable for which kriging is turned on.
        Required if `aux_variable` is set.
    window : int
        Half-width (in time steps) of the window used to weight the kriging by
        the fraction of time steps where the auxiliary variable is within the
        range. Use 0 for no window.
    n_jobs : int
        Number of threads used to process grid cells when cross-validating.
    """

    kernel: Kernel | str = Kernel.CRESSMAN
    efold_dist: float = DEFAULT_EFOLD_DIST
    radius: float = DEFAULT_RADIUS
    max_elev_diff: float | None = None
    operator: Operator | str = Operator.ADD
    approx_dist: bool = True
    cross_validate: bool = False
    aux_variable: str | None = None
    aux_range: tuple[float, float] | None = None
    window: int = 0
    n_jobs: int = 1

    def __post_init__(self):
        self.kernel = Kernel.from_name(self.kernel)
        self.operator = Operator.from_name(self.operator)
        if self.efold_dist < 0:
            raise ConfigurationError("'efoldDist' must be >= 0")
        if self.radius < 0:
            raise ConfigurationError("'radius' must be >= 0")
        if self.max_elev_diff is not None and self.max_elev_diff < 0:
            raise ConfigurationError("'maxElevDiff' must be >= 0")
        self.window = _integer_option(self.window, "window")
        self.n_jobs = _integer_option(self.n_jobs, "nJobs")
        if self.window < 0:
            raise ConfigurationError("'window' must be >= 0")
        if self.n_jobs < 1:
            raise ConfigurationError("'nJobs' must be >= 1")

        if self.aux_variable is not None:
            if self.aux_range is None:
                raise ConfigurationError(
                    "'range' required if using 'auxVariable'"
                )
            if len(self.aux_range) != 2:
                raise ConfigurationError(
                    "'range' must be of the form [lower, upper]"
                )
            lower, upper = map(float, self.aux_range)
            if lower > upper:
                raise ConfigurationError(
                    "The lower value must be less than upper value in 'range'"
                )
            self.aux_range = (lower, upper)
        return None

    @classmethod
    def from_dict(cls, options: dict[str, Any]) -> "KrigingConfig":
        """
        Create a configuration from a dictionary of options, using the option
        keys (e.g. "efoldDist") or attribute names (e.g. "efold_dist").

        Raises
        ------
        ConfigurationError
            If an option is not recognized.
        """
        attributes = set(OPTION_KEYS.values())
        kwargs = {}
        for key, value in options.items():
            if key in OPTION_KEYS:
                kwargs[OPTION_KEYS[key]] = value
            elif key in attributes:
                kwargs[key] = value
            else:
                raise ConfigurationError(f"Option '{key}' not recognized")
        if kwargs.get("aux_range") is not None:
            kwargs["aux_range"] = tuple(kwargs["aux_range"])
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str) -> "KrigingConfig":
        """Load the configuration from a yaml file"""
        with open(path, "r") as io:
            options: dict = yaml.safe_load(io) or {}
        return cls.from_dict(options)

    @property
    def use_aux(self) -> bool:
        """Whether the correction is weighted by an auxiliary variable"""
        return self.aux_variable is not None

    def covariance_model(self) -> CovarianceModel:
        """The CovarianceModel defined by this configuration"""
        return CovarianceModel(
            kernel=self.kernel,
            efold_dist=self.efold_dist,
            radius=self.radius,
            max_elev_diff=self.max_elev_diff,
            approx_dist=self.approx_dist,
        )
