"""
Tail Risk Metrics Module

Value-at-Risk and Expected Shortfall under three methodologies:
- Historical: empirical quantile of the observed returns
- Parametric: closed form under a Normal(mu, sigma) assumption
- Monte Carlo: empirical quantile of a seeded Normal(mu, sigma) sample

Returns are percentages and losses are negative numbers, so VaR and ES are
reported on the return scale (e.g. -7.9 means a 7.9% loss) and ES <= VaR.
Pure computation functions; randomness is always driven by an explicit seed.
"""

import math
from enum import Enum
from typing import Iterable, List, Tuple, Union

import numpy as np
import pandas as pd
import structlog
from pydantic import BaseModel, ConfigDict
from scipy import stats

from .errors import InputError, InsufficientDataError
from .series import ReturnSeries

logger = structlog.get_logger(__name__)

SUPPORTED_CONFIDENCE_LEVELS = (0.95, 0.99)
DEFAULT_MC_SIMULATIONS = 10_000
DEFAULT_MC_SEED = 42


class VarMethod(str, Enum):
    """VaR/ES estimation methodology."""
    HISTORICAL = "historical"
    PARAMETRIC = "parametric"
    MONTE_CARLO = "monte_carlo"


class VarEsResult(BaseModel):
    """VaR and ES of one series at one confidence level and method."""

    model_config = ConfigDict(frozen=True)

    confidence_level: float
    method: VarMethod
    var: float
    es: float
    n_observations: int
    low_confidence: bool = False  # tail holds fewer points than 1/(1-confidence)


def validate_confidence(confidence: float) -> float:
    """Return the canonical confidence level or raise InputError."""
    for level in SUPPORTED_CONFIDENCE_LEVELS:
        if math.isclose(confidence, level, rel_tol=0.0, abs_tol=1e-12):
            return level
    raise InputError(
        f"Confidence must be one of {SUPPORTED_CONFIDENCE_LEVELS}, got {confidence}"
    )


def min_tail_observations(confidence: float) -> int:
    """Smallest sample size whose (1 - confidence) tail holds a full observation.

    ceil(1 / (1 - confidence)): 20 for 95%, 100 for 99%.
    """
    # round() strips float noise: 1/(1-0.99) evaluates to 99.99999999999991
    return int(math.ceil(round(1.0 / (1.0 - confidence), 9)))


def _coerce_method(method: Union[VarMethod, str]) -> VarMethod:
    try:
        return VarMethod(method)
    except ValueError:
        valid = [m.value for m in VarMethod]
        raise InputError(f"Unknown VaR method: {method}. Use one of {valid}") from None


def historical_var_es(returns: np.ndarray, confidence: float = 0.95) -> Tuple[float, float]:
    """Historical-simulation VaR and ES.

    VaR = (1 - confidence) empirical quantile (linear interpolation between
    order statistics). ES = mean of all observations <= VaR.

    Args:
        returns: 1-D array of returns
        confidence: Confidence level (0.95 or 0.99)

    Returns:
        Tuple (var, es) on the return scale
    """
    returns = np.asarray(returns, dtype=float)
    if returns.size == 0:
        raise InsufficientDataError("Need at least 1 observation, got 0")

    var = float(np.quantile(returns, 1.0 - confidence))
    tail = returns[returns <= var]
    es = float(tail.mean())

    return var, es


def parametric_var_es(
    mu: float,
    sigma: float,
    confidence: float = 0.95,
) -> Tuple[float, float]:
    """Normal-distribution VaR and closed-form ES.

    VaR = mu - z * sigma
    ES  = mu - sigma * phi(z) / (1 - confidence)

    where z = norm.ppf(confidence) (1.645 at 95%, 2.326 at 99%) and phi is the
    standard normal pdf.

    Args:
        mu: Mean return
        sigma: Standard deviation of returns
        confidence: Confidence level (0.95 or 0.99)

    Returns:
        Tuple (var, es) on the return scale
    """
    if sigma < 0:
        raise InputError(f"Sigma must be non-negative, got {sigma}")

    z_score = stats.norm.ppf(confidence)
    phi_z = stats.norm.pdf(z_score)

    var = mu - z_score * sigma
    es = mu - sigma * phi_z / (1.0 - confidence)

    return float(var), float(es)


def simulate_normal_returns(
    mu: float,
    sigma: float,
    n_simulations: int = DEFAULT_MC_SIMULATIONS,
    seed: int = DEFAULT_MC_SEED,
) -> np.ndarray:
    """Draw a reproducible Normal(mu, sigma) sample."""
    if n_simulations < 1:
        raise InputError(f"Number of simulations must be >= 1, got {n_simulations}")

    rng = np.random.default_rng(seed)
    return rng.normal(loc=mu, scale=sigma, size=n_simulations)


def monte_carlo_var_es(
    mu: float,
    sigma: float,
    confidence: float = 0.95,
    n_simulations: int = DEFAULT_MC_SIMULATIONS,
    seed: int = DEFAULT_MC_SEED,
) -> Tuple[float, float]:
    """Monte Carlo VaR and ES from a seeded Normal(mu, sigma) sample.

    The simulated sample is scored exactly like the historical method.
    """
    simulated = simulate_normal_returns(mu, sigma, n_simulations=n_simulations, seed=seed)
    return historical_var_es(simulated, confidence)


def estimate_var_es(
    series: ReturnSeries,
    confidence: float = 0.95,
    method: Union[VarMethod, str] = VarMethod.HISTORICAL,
    n_simulations: int = DEFAULT_MC_SIMULATIONS,
    seed: int = DEFAULT_MC_SEED,
) -> VarEsResult:
    """Estimate VaR and ES of a return series.

    Args:
        series: Return series (percent)
        confidence: Confidence level, 0.95 or 0.99
        method: Historical, Parametric or MonteCarlo
        n_simulations: Monte Carlo sample size
        seed: Monte Carlo seed

    Returns:
        VarEsResult. `low_confidence` is set when the scored sample holds
        fewer than ceil(1/(1-confidence)) observations.

    Raises:
        InputError: Unsupported confidence level or method
        InsufficientDataError: Fewer than 2 observations
    """
    confidence = validate_confidence(confidence)
    method = _coerce_method(method)

    n_obs = len(series)
    if n_obs < 2:
        raise InsufficientDataError(f"Need at least 2 observations, got {n_obs}")

    returns = series.data.to_numpy()
    mu = float(np.mean(returns))
    sigma = float(np.std(returns, ddof=1))

    if method == VarMethod.HISTORICAL:
        var, es = historical_var_es(returns, confidence)
        scored = n_obs
    elif method == VarMethod.PARAMETRIC:
        var, es = parametric_var_es(mu, sigma, confidence)
        scored = None
    else:
        var, es = monte_carlo_var_es(
            mu, sigma, confidence, n_simulations=n_simulations, seed=seed
        )
        scored = n_simulations

    low_confidence = scored is not None and scored < min_tail_observations(confidence)
    if low_confidence:
        logger.warning(
            "estimate_var_es: too few observations for a reliable tail average",
            series=series.name,
            method=method.value,
            confidence=confidence,
            scored_observations=scored,
            required=min_tail_observations(confidence),
        )

    result = VarEsResult(
        confidence_level=confidence,
        method=method,
        var=var,
        es=es,
        n_observations=n_obs,
        low_confidence=low_confidence,
    )

    logger.info(
        "estimate_var_es: estimated",
        series=series.name,
        method=method.value,
        confidence=confidence,
        var=var,
        es=es,
    )

    return result


def build_var_es_table(
    series: ReturnSeries,
    confidence_levels: Iterable[float] = SUPPORTED_CONFIDENCE_LEVELS,
    methods: Iterable[Union[VarMethod, str]] = tuple(VarMethod),
    n_simulations: int = DEFAULT_MC_SIMULATIONS,
    seed: int = DEFAULT_MC_SEED,
) -> List[VarEsResult]:
    """VaR/ES for every (confidence level, method) combination.

    Every Monte Carlo entry reuses the same seed, so the 95% and 99% figures
    come from one simulated sample.
    """
    results = [
        estimate_var_es(
            series,
            confidence=confidence,
            method=method,
            n_simulations=n_simulations,
            seed=seed,
        )
        for method in methods
        for confidence in confidence_levels
    ]

    logger.info(
        "build_var_es_table: table built",
        series=series.name,
        num_results=len(results),
    )

    return results


def var_es_frame(results: Iterable[VarEsResult]) -> pd.DataFrame:
    """Pivot VaR/ES results to one row per metric and one column per method.

    Rows are labelled "VaR (95%)", "ES (95%)", ...
    """
    rows = {}
    for r in results:
        pct = f"{r.confidence_level:.0%}"
        rows.setdefault(f"VaR ({pct})", {})[r.method.value] = r.var
        rows.setdefault(f"ES ({pct})", {})[r.method.value] = r.es

    frame = pd.DataFrame.from_dict(rows, orient="index")
    frame.index.name = "metric"
    return frame
