"""
Sources of bias parameters.

A parameter source supplies the bias at a set of observation locations for
each time step. Kriging requires a source with spatial information, i.e. one
where the parameters depend on the location.
"""

from abc import ABC, abstractmethod
import numpy as np
import polars as pl

from .utils import check_cols, is_valid

LOCATION_COLS: list[str] = ["lat", "lon", "elev"]


class ParameterSource(ABC):
    """Generic Parameter Source - defines the abstract class"""

    @property
    @abstractmethod
    def is_location_dependent(self) -> bool:
        """Whether the parameters vary with location"""
        raise NotImplementedError("Not implemented for base ParameterSource")

    @abstractmethod
    def locations(self) -> pl.DataFrame:
        """
        The observation locations, a DataFrame with columns "lat", "lon" and
        "elev". The row order is fixed for the lifetime of the source.
        """
        raise NotImplementedError("Not implemented for base ParameterSource")

    @abstractmethod
    def get_bias(self, time: int, index: int) -> float:
        """Bias at a location (by row index) for a time step, NaN if missing"""
        raise NotImplementedError("Not implemented for base ParameterSource")

    def bias_vector(self, time: int) -> np.ndarray:
        """The bias at every observation location for a time step"""
        n = self.locations().height
        return np.array(
            [self.get_bias(time, k) for k in range(n)], dtype=np.float64
        )


class LocationParameters(ParameterSource):
    """
    Location dependent biases stored in a polars DataFrame.

    Parameters
    ----------
    frame : polars.DataFrame
        Required columns are "lat", "lon", "elev" and "bias". If the frame
        contains a "time" column (the time step index) then the biases are
        specific to that time step, otherwise each bias is used for all time
        steps. Locations are ordered by first appearance.
    bias_col : str
        Name of the column containing the bias values.
    """

    def __init__(self, frame: pl.DataFrame, bias_col: str = "bias") -> None:
        check_cols(frame, LOCATION_COLS + [bias_col])
        self.frame = frame
        self.time_dependent = "time" in frame.columns

        index: dict[tuple[float, float, float], int] = {}
        self._biases: dict[tuple[int | None, int], float] = {}
        times = (
            frame.get_column("time").to_list()
            if self.time_dependent
            else [None] * frame.height
        )
        for time, lat, lon, elev, bias in zip(
            times,
            frame.get_column("lat").to_list(),
            frame.get_column("lon").to_list(),
            frame.get_column("elev").to_list(),
            frame.get_column(bias_col).to_list(),
        ):
            loc = tuple(
                np.nan if v is None else float(v) for v in (lat, lon, elev)
            )
            k = index.setdefault(loc, len(index))  # type: ignore
            time = int(time) if time is not None else None
            self._biases[(time, k)] = float(bias) if is_valid(bias) else np.nan

        self._locations = pl.DataFrame(
            list(index.keys()),
            schema={c: pl.Float64 for c in LOCATION_COLS},
            orient="row",
        )
        return None

    @property
    def is_location_dependent(self) -> bool:  # noqa: D102
        return True

    def locations(self) -> pl.DataFrame:  # noqa: D102
        return self._locations

    def get_bias(self, time: int, index: int) -> float:  # noqa: D102
        key = (time, index) if self.time_dependent else (None, index)
        return self._biases.get(key, np.nan)


class GlobalParameters(ParameterSource):
    """A single bias value used everywhere, has no spatial information"""

    def __init__(self, bias: float) -> None:
        self.bias = bias
        return None

    @property
    def is_location_dependent(self) -> bool:  # noqa: D102
        return False

    def locations(self) -> pl.DataFrame:  # noqa: D102
        return pl.DataFrame(schema={c: pl.Float64 for c in LOCATION_COLS})

    def get_bias(self, time: int, index: int) -> float:  # noqa: D102
        return self.bias
