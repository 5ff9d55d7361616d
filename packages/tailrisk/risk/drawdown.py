"""
Drawdown & Recovery Module

Wealth index, running peak and percentage drawdown of a return series, the
longest gap between all-time highs, and a threshold filter comparing the
drawdown paths of two aligned series.

Returns are percentages: wealth_t = prod_{s<=t} (1 + r_s / 100), i.e. the
value at t of one unit invested before the first period.
"""

from typing import Optional

import numpy as np
import pandas as pd
import structlog
from pydantic import BaseModel, ConfigDict

from .errors import InputError, InsufficientDataError
from .series import ReturnSeries

logger = structlog.get_logger(__name__)

DEFAULT_DIVERGENCE_THRESHOLD = 20.0  # percentage points


class DrawdownPath(BaseModel):
    """Drawdown path of one series.

    `path` has a DatetimeIndex aligned with the returns and columns
    wealth_index, running_max, drawdown_pct (always <= 0), backed by a
    read-only array.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    path: pd.DataFrame
    max_drawdown: float
    max_drawdown_date: pd.Timestamp

    @property
    def drawdown(self) -> pd.Series:
        return self.path["drawdown_pct"]


class RecoveryGap(BaseModel):
    """Longest stretch between consecutive all-time highs."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    gap_months: int
    start_date: pd.Timestamp
    end_date: pd.Timestamp


class DrawdownComparison(BaseModel):
    """Dates where one drawdown path sits at least `threshold` points above the other."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name_a: str
    name_b: str
    threshold: float
    a_exceeds_b: pd.DataFrame
    b_exceeds_a: pd.DataFrame
    common_zero_drawdown_dates: pd.DatetimeIndex


def compute_drawdown(series: ReturnSeries) -> DrawdownPath:
    """Wealth index, running maximum and drawdown path.

    drawdown_t = (wealth_t - running_max_t) / running_max_t * 100

    Args:
        series: Return series (percent)

    Returns:
        DrawdownPath with the full path and the global minimum drawdown

    Raises:
        InsufficientDataError: Empty series
        InputError: A return of -100% or worse (wealth wiped out)
    """
    if len(series) == 0:
        raise InsufficientDataError("Need at least 1 observation, got 0")

    returns = series.data.to_numpy()
    growth = 1.0 + returns / 100.0
    if np.any(growth <= 0):
        raise InputError(
            f"Series '{series.name}' has a return of -100% or worse; drawdown is undefined"
        )

    wealth = np.cumprod(growth)
    running_max = np.maximum.accumulate(wealth)
    drawdown = (wealth - running_max) / running_max * 100.0
    # Guard -0.0 from the subtraction at new highs
    drawdown[wealth == running_max] = 0.0

    values = np.column_stack([wealth, running_max, drawdown])
    values.flags.writeable = False
    path = pd.DataFrame(
        values,
        index=series.dates.copy(),
        columns=["wealth_index", "running_max", "drawdown_pct"],
        copy=False,
    )

    idx = int(np.argmin(drawdown))
    result = DrawdownPath(
        name=series.name,
        path=path,
        max_drawdown=float(drawdown[idx]),
        max_drawdown_date=series.dates[idx],
    )

    logger.info(
        "compute_drawdown: path computed",
        series=series.name,
        num_periods=len(path),
        max_drawdown=result.max_drawdown,
        max_drawdown_date=str(result.max_drawdown_date.date()),
    )

    return result


def zero_drawdown_dates(path: DrawdownPath) -> pd.DatetimeIndex:
    """Dates on which wealth sits at its running maximum."""
    dd = path.drawdown
    return dd.index[dd.to_numpy() == 0.0]


def months_between(start: pd.Timestamp, end: pd.Timestamp) -> int:
    """Calendar-month difference, ignoring the day of month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def max_recovery_gap(dates: pd.DatetimeIndex) -> Optional[RecoveryGap]:
    """Largest calendar-month gap between consecutive dates; None below two dates."""
    if len(dates) <= 1:
        return None

    gaps = [months_between(dates[i], dates[i + 1]) for i in range(len(dates) - 1)]
    idx = int(np.argmax(gaps))

    return RecoveryGap(
        gap_months=int(gaps[idx]),
        start_date=dates[idx],
        end_date=dates[idx + 1],
    )


def find_recovery_gaps(series: ReturnSeries) -> Optional[RecoveryGap]:
    """Longest calendar-month gap between consecutive zero-drawdown dates.

    Returns:
        RecoveryGap, or None (N/A) when the series is at an all-time high on
        fewer than two dates. This is not an error.
    """
    path = compute_drawdown(series)
    dates = zero_drawdown_dates(path)
    gap = max_recovery_gap(dates)

    if gap is None:
        logger.warning(
            "find_recovery_gaps: fewer than two zero-drawdown dates, gap undefined",
            series=series.name,
            zero_drawdown_dates=len(dates),
        )
        return None

    logger.info(
        "find_recovery_gaps: max gap found",
        series=series.name,
        gap_months=gap.gap_months,
        start=str(gap.start_date.date()),
        end=str(gap.end_date.date()),
    )

    return gap


def compare_drawdowns(
    path_a: DrawdownPath,
    path_b: DrawdownPath,
    threshold: float = DEFAULT_DIVERGENCE_THRESHOLD,
) -> DrawdownComparison:
    """Filter dates where the drawdowns of two aligned paths diverge.

    a_exceeds_b holds dates with drawdown_a - drawdown_b >= threshold,
    b_exceeds_a the reverse. Both frames have columns drawdown_a,
    drawdown_b, difference.

    Raises:
        InputError: Paths are not aligned or threshold is negative
    """
    if threshold < 0:
        raise InputError(f"Threshold must be non-negative, got {threshold}")
    if not path_a.path.index.equals(path_b.path.index):
        raise InputError(
            f"Drawdown paths '{path_a.name}' and '{path_b.name}' are not aligned to identical timestamps"
        )

    dd_a = path_a.drawdown
    dd_b = path_b.drawdown

    def _filter(diff: pd.Series) -> pd.DataFrame:
        mask = diff >= threshold
        return pd.DataFrame(
            {
                "drawdown_a": dd_a[mask],
                "drawdown_b": dd_b[mask],
                "difference": diff[mask],
            }
        )

    a_exceeds_b = _filter(dd_a - dd_b)
    b_exceeds_a = _filter(dd_b - dd_a)
    both_zero = dd_a.index[(dd_a.to_numpy() == 0.0) & (dd_b.to_numpy() == 0.0)]

    logger.info(
        "compare_drawdowns: compared",
        series_a=path_a.name,
        series_b=path_b.name,
        threshold=threshold,
        a_exceeds_b=len(a_exceeds_b),
        b_exceeds_a=len(b_exceeds_a),
        common_zero_drawdown=len(both_zero),
    )

    return DrawdownComparison(
        name_a=path_a.name,
        name_b=path_b.name,
        threshold=threshold,
        a_exceeds_b=a_exceeds_b,
        b_exceeds_a=b_exceeds_a,
        common_zero_drawdown_dates=both_zero,
    )
