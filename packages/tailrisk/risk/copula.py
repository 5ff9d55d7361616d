"""
Clayton Copula Module

Rank-based (inversion of Kendall's tau) estimation of a bivariate Clayton
copula and its lower tail dependence coefficient.

    tau      = theta / (theta + 2)   =>   theta = 2 * tau / (1 - tau)
    lambda_L = 2 ** (-1 / theta)

Closed form, no iterative solver. Clayton only models positive dependence,
so tau <= 0 is rejected rather than coerced into a spurious theta.
"""

import numpy as np
import pandas as pd
import structlog
from pydantic import BaseModel, ConfigDict
from scipy import stats

from .errors import DegenerateDependenceError, InputError, InsufficientDataError
from .series import ReturnSeries, require_aligned

logger = structlog.get_logger(__name__)

# tau this close to 1 is perfect comonotonicity up to rounding
TAU_TOLERANCE = 1e-12


class CopulaFit(BaseModel):
    """Clayton copula fit of two aligned return series."""

    model_config = ConfigDict(frozen=True)

    theta: float
    lower_tail_dependence: float
    kendall_tau: float
    linear_correlation: float
    n_observations: int


def pseudo_observations(values) -> np.ndarray:
    """Rank-based pseudo-observations rank(x) / (n + 1), strictly inside (0, 1).

    Ties receive their average rank.
    """
    values = np.asarray(values, dtype=float)
    n = len(values)
    return stats.rankdata(values) / (n + 1)


def clayton_theta_from_tau(tau: float) -> float:
    """Invert tau = theta / (theta + 2).

    Raises:
        DegenerateDependenceError: If tau is not in (0, 1)
    """
    if not np.isfinite(tau) or tau <= 0:
        raise DegenerateDependenceError(
            f"Kendall's tau must be positive for a Clayton copula, got {tau}"
        )
    if tau >= 1 - TAU_TOLERANCE:
        raise DegenerateDependenceError(
            f"Kendall's tau of {tau} implies perfect comonotonicity (theta is infinite)"
        )
    return 2.0 * tau / (1.0 - tau)


def clayton_lower_tail_dependence(theta: float) -> float:
    """lambda_L = 2^(-1/theta); tends to 0 as theta -> 0 and to 1 as theta -> inf."""
    if not theta > 0:
        raise InputError(f"Clayton theta must be positive, got {theta}")
    return float(2.0 ** (-1.0 / theta))


def fit_clayton_copula(series_a: ReturnSeries, series_b: ReturnSeries) -> CopulaFit:
    """Fit a Clayton copula to two aligned return series by tau inversion.

    Args:
        series_a: First return series (e.g. portfolio)
        series_b: Second return series on identical timestamps (e.g. benchmark)

    Returns:
        CopulaFit with theta, lower tail dependence, Kendall's tau and
        Pearson correlation

    Raises:
        InputError: Series are not aligned
        InsufficientDataError: Fewer than 2 paired observations
        DegenerateDependenceError: Kendall's tau <= 0 or undefined
    """
    require_aligned(series_a, series_b)

    n_obs = len(series_a)
    if n_obs < 2:
        raise InsufficientDataError(f"Need at least 2 paired observations, got {n_obs}")

    a = series_a.data.to_numpy()
    b = series_b.data.to_numpy()

    tau, _ = stats.kendalltau(a, b)
    tau = float(tau)
    if np.isnan(tau):
        raise DegenerateDependenceError(
            f"Kendall's tau between '{series_a.name}' and '{series_b.name}' is undefined "
            "(constant series)"
        )

    theta = clayton_theta_from_tau(tau)
    lambda_l = clayton_lower_tail_dependence(theta)
    correlation = float(np.corrcoef(a, b)[0, 1])

    fit = CopulaFit(
        theta=theta,
        lower_tail_dependence=lambda_l,
        kendall_tau=tau,
        linear_correlation=correlation,
        n_observations=n_obs,
    )

    logger.info(
        "fit_clayton_copula: fitted",
        series_a=series_a.name,
        series_b=series_b.name,
        kendall_tau=tau,
        theta=theta,
        lower_tail_dependence=lambda_l,
    )

    return fit


def pseudo_observation_frame(series_a: ReturnSeries, series_b: ReturnSeries) -> pd.DataFrame:
    """Paired U(0,1) pseudo-observations of two aligned series, indexed by date."""
    require_aligned(series_a, series_b)

    return pd.DataFrame(
        {
            series_a.name: pseudo_observations(series_a.data.to_numpy()),
            series_b.name: pseudo_observations(series_b.data.to_numpy()),
        },
        index=series_a.dates,
    )
