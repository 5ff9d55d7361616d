"""
Descriptive Statistics Module

Moments, annualized performance and downside measures of a periodic
(monthly by default) percentage return series. Risk-free rate is zero.
"""

from typing import Mapping, Optional

import numpy as np
import pandas as pd
import structlog
from pydantic import BaseModel, ConfigDict

from .drawdown import compute_drawdown
from .errors import InputError, InsufficientDataError
from .series import ReturnSeries

logger = structlog.get_logger(__name__)

DEFAULT_PERIODS_PER_YEAR = 12


class DescriptiveStats(BaseModel):
    """Summary statistics of one return series."""

    model_config = ConfigDict(frozen=True)

    name: str
    n_observations: int
    mean: float
    std: float
    skewness: float
    excess_kurtosis: float
    annualized_return: float
    annualized_volatility: float
    sharpe_ratio: Optional[float]
    downside_deviation: float
    sortino_ratio: Optional[float]
    cumulative_return_pct: float
    max_drawdown_pct: float


def sample_moments(returns: np.ndarray):
    """Mean, sample std (ddof=1), skewness and excess kurtosis.

    Third and fourth central moments (population means) are divided by the
    cubed and fourth power of the sample std.
    """
    returns = np.asarray(returns, dtype=float)
    mean = float(np.mean(returns))
    std = float(np.std(returns, ddof=1))
    if std == 0:
        return mean, std, float("nan"), float("nan")

    deviations = returns - mean
    skewness = float(np.mean(deviations ** 3) / std ** 3)
    excess_kurtosis = float(np.mean(deviations ** 4) / std ** 4 - 3.0)
    return mean, std, skewness, excess_kurtosis


def downside_deviation(returns: np.ndarray) -> float:
    """Root mean square of min(r, 0) over all periods."""
    returns = np.asarray(returns, dtype=float)
    return float(np.sqrt(np.mean(np.minimum(returns, 0.0) ** 2)))


def cumulative_return(returns: np.ndarray) -> float:
    """Compounded total return in percent."""
    returns = np.asarray(returns, dtype=float)
    return float((np.prod(1.0 + returns / 100.0) - 1.0) * 100.0)


def describe_returns(
    series: ReturnSeries,
    periods_per_year: int = DEFAULT_PERIODS_PER_YEAR,
) -> DescriptiveStats:
    """Descriptive and performance statistics of a return series.

    Args:
        series: Return series (percent)
        periods_per_year: Annualization factor (12 for monthly data)

    Returns:
        DescriptiveStats. Sharpe and Sortino are None when volatility or
        downside deviation is zero; skewness and kurtosis are NaN for a
        constant series.

    Raises:
        InsufficientDataError: Fewer than 2 observations
        InputError: Non-positive periods_per_year
    """
    if periods_per_year <= 0:
        raise InputError(f"periods_per_year must be positive, got {periods_per_year}")

    n_obs = len(series)
    if n_obs < 2:
        raise InsufficientDataError(f"Need at least 2 observations, got {n_obs}")

    returns = series.data.to_numpy()
    mean, std, skewness, excess_kurtosis = sample_moments(returns)

    annual_return = mean * periods_per_year
    annual_vol = std * np.sqrt(periods_per_year)
    sharpe = annual_return / annual_vol if annual_vol > 0 else None

    dd = downside_deviation(returns)
    annual_dd = dd * np.sqrt(periods_per_year)
    sortino = annual_return / annual_dd if annual_dd > 0 else None

    stats = DescriptiveStats(
        name=series.name,
        n_observations=n_obs,
        mean=mean,
        std=std,
        skewness=skewness,
        excess_kurtosis=excess_kurtosis,
        annualized_return=float(annual_return),
        annualized_volatility=float(annual_vol),
        sharpe_ratio=None if sharpe is None else float(sharpe),
        downside_deviation=dd,
        sortino_ratio=None if sortino is None else float(sortino),
        cumulative_return_pct=cumulative_return(returns),
        max_drawdown_pct=compute_drawdown(series).max_drawdown,
    )

    logger.info(
        "describe_returns: computed",
        series=series.name,
        num_observations=n_obs,
        annualized_return=stats.annualized_return,
        annualized_volatility=stats.annualized_volatility,
        sharpe_ratio=stats.sharpe_ratio,
    )

    return stats


def performance_table(
    series_by_name: Mapping[str, ReturnSeries],
    periods_per_year: int = DEFAULT_PERIODS_PER_YEAR,
) -> pd.DataFrame:
    """Periodic and annualized mean/volatility plus Sharpe ratio per series.

    Columns: mean, std (periodic), annual_return, annual_vol, sharpe.
    Sharpe is NaN for zero-volatility series.
    """
    if not series_by_name:
        raise InputError("No series provided")

    rows = {}
    for name, series in series_by_name.items():
        stats = describe_returns(series, periods_per_year=periods_per_year)
        rows[name] = {
            "mean": stats.mean,
            "std": stats.std,
            "annual_return": stats.annualized_return,
            "annual_vol": stats.annualized_volatility,
            "sharpe": np.nan if stats.sharpe_ratio is None else stats.sharpe_ratio,
        }

    frame = pd.DataFrame.from_dict(rows, orient="index")
    frame.index.name = "series"
    return frame
