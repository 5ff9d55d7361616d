"""
Return Series Module

Immutable container for a percentage-return series with a datetime index,
plus the helpers that combine aligned series into a weighted portfolio.
All estimators in the risk package consume ReturnSeries objects.
"""

from dataclasses import dataclass
from typing import List, Mapping, Optional

import numpy as np
import pandas as pd
import structlog

from .errors import InputError

logger = structlog.get_logger(__name__)

WEIGHT_SUM_TOLERANCE = 1e-6


def _clean_returns(data, name: str) -> pd.Series:
    """Validate and normalise raw returns into a read-only float Series.

    NA rows are dropped. Infinite values, non-datetime indexes, duplicate or
    unsorted timestamps are rejected.
    """
    if not isinstance(data, pd.Series):
        raise InputError(f"Return series '{name}' must be a pandas Series, got {type(data).__name__}")

    index = data.index
    if not isinstance(index, pd.DatetimeIndex):
        if not (index.dtype == object or pd.api.types.is_string_dtype(index.dtype)):
            raise InputError(
                f"Return series '{name}' needs a datetime index, got {index.dtype} index"
            )
        try:
            index = pd.DatetimeIndex(pd.to_datetime(index))
        except (TypeError, ValueError) as e:
            raise InputError(f"Return series '{name}' index is not parseable as dates: {e}") from e

    try:
        values = pd.to_numeric(pd.Series(data.to_numpy(), index=index), errors="raise").astype(float)
    except (TypeError, ValueError) as e:
        raise InputError(f"Return series '{name}' contains non-numeric values: {e}") from e

    original_length = len(values)
    values = values.dropna()
    if len(values) < original_length:
        logger.info(
            "ReturnSeries: dropped NA rows",
            name=name,
            dropped_rows=original_length - len(values),
        )

    if np.isinf(values.to_numpy()).any():
        raise InputError(f"Infinite values detected in return series '{name}'")

    if not values.index.is_unique:
        duplicated = values.index[values.index.duplicated()].unique()
        raise InputError(
            f"Duplicate timestamps in return series '{name}': {list(duplicated[:5].astype(str))}"
        )

    if not values.index.is_monotonic_increasing:
        raise InputError(f"Timestamps of return series '{name}' must be strictly increasing")

    array = values.to_numpy(dtype=float, copy=True)
    array.flags.writeable = False
    return pd.Series(array, index=values.index.copy(), name=name, copy=False)


@dataclass(frozen=True, eq=False)
class ReturnSeries:
    """Ordered (timestamp, percentage return) pairs.

    Built once and never mutated: the wrapped Series is backed by a read-only
    array and accessors hand out copies.
    """

    data: pd.Series
    name: str = "returns"

    def __post_init__(self):
        object.__setattr__(self, "data", _clean_returns(self.data, self.name))

    @classmethod
    def from_values(cls, values, dates, name: str = "returns") -> "ReturnSeries":
        """Build a series from parallel sequences of returns and dates."""
        values = np.asarray(values, dtype=float)
        dates = pd.DatetimeIndex(pd.to_datetime(dates))
        if len(values) != len(dates):
            raise InputError(
                f"Values length {len(values)} doesn't match dates length {len(dates)}"
            )
        return cls(pd.Series(values, index=dates), name=name)

    def __len__(self) -> int:
        return len(self.data)

    @property
    def values(self) -> np.ndarray:
        return self.data.to_numpy(copy=True)

    @property
    def dates(self) -> pd.DatetimeIndex:
        return self.data.index

    def mean(self) -> float:
        return float(np.mean(self.data.to_numpy()))

    def std(self) -> float:
        """Sample standard deviation (ddof=1); NaN below two observations."""
        if len(self) < 2:
            return float("nan")
        return float(np.std(self.data.to_numpy(), ddof=1))

    def to_series(self) -> pd.Series:
        return self.data.copy()

    def with_values(self, values, name: Optional[str] = None) -> "ReturnSeries":
        """New series on the same dates with replaced return values."""
        values = np.asarray(values, dtype=float)
        if len(values) != len(self):
            raise InputError(
                f"Replacement length {len(values)} doesn't match series length {len(self)}"
            )
        return ReturnSeries(
            pd.Series(values, index=self.dates.copy()),
            name=name if name is not None else self.name,
        )


def require_aligned(*series: ReturnSeries) -> None:
    """Raise InputError unless all series share an identical timestamp index."""
    if len(series) < 2:
        return

    reference = series[0]
    for other in series[1:]:
        if len(other) != len(reference):
            raise InputError(
                f"Series '{other.name}' has {len(other)} observations, "
                f"'{reference.name}' has {len(reference)}"
            )
        if not other.dates.equals(reference.dates):
            raise InputError(
                f"Series '{other.name}' and '{reference.name}' are not aligned to identical timestamps"
            )


def returns_frame(constituents: Mapping[str, ReturnSeries]) -> pd.DataFrame:
    """Stack aligned constituent series into a T x N DataFrame."""
    if not constituents:
        raise InputError("No constituent series provided")

    series_list = list(constituents.values())
    require_aligned(*series_list)

    frame = pd.DataFrame(
        {symbol: s.data for symbol, s in constituents.items()},
        index=series_list[0].dates,
    )
    return frame


def validate_weights(
    weights: Mapping[str, float],
    symbols: List[str],
) -> np.ndarray:
    """Order weights by symbol and check they form a full allocation.

    Returns:
        Weight array aligned with `symbols`

    Raises:
        InputError: If symbols and weight keys differ or weights don't sum to 1
    """
    missing = [s for s in symbols if s not in weights]
    extra = [s for s in weights if s not in symbols]
    if missing or extra:
        raise InputError(
            f"Weights don't match constituents: missing={missing}, unexpected={extra}"
        )

    w = np.array([float(weights[s]) for s in symbols], dtype=float)
    if not np.all(np.isfinite(w)):
        raise InputError("Weights must be finite numbers")

    total = float(np.sum(w))
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise InputError(f"Weights must sum to 1, got {total:.8f}")

    return w


def portfolio_returns(
    constituents: Mapping[str, ReturnSeries],
    weights: Optional[Mapping[str, float]] = None,
    name: str = "portfolio",
) -> ReturnSeries:
    """Weighted portfolio return series from aligned constituents.

    r_p,t = sum_i w_i * r_i,t

    Args:
        constituents: Mapping symbol -> ReturnSeries, all on identical dates
        weights: Mapping symbol -> weight summing to 1 (equal weights if None)
        name: Name of the resulting series

    Returns:
        ReturnSeries of portfolio returns
    """
    frame = returns_frame(constituents)
    symbols = list(frame.columns)

    if weights is None:
        w = np.full(len(symbols), 1.0 / len(symbols))
    else:
        w = validate_weights(weights, symbols)

    port = frame.to_numpy() @ w

    logger.info(
        "portfolio_returns: portfolio built",
        num_constituents=len(symbols),
        num_periods=len(frame),
        equal_weighted=weights is None,
    )

    return ReturnSeries(pd.Series(port, index=frame.index), name=name)
