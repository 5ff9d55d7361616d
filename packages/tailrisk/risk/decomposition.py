"""
Risk Decomposition Module

Covariance-based attribution of portfolio volatility to its constituents:

    sigma_p  = sqrt(w' * Sigma * w)
    beta_i   = (Sigma * w)_i / sigma_p          marginal contribution
    total_i  = w_i * beta_i                     sums to sigma_p
    pct_i    = total_i / sigma_p * 100          sums to 100
"""

from typing import Dict, Mapping

import numpy as np
import structlog
from pydantic import BaseModel, ConfigDict

from .covariance import estimate_covariance
from .errors import InputError
from .series import ReturnSeries, returns_frame, validate_weights

logger = structlog.get_logger(__name__)


class RiskContribution(BaseModel):
    """Contribution of one constituent to portfolio volatility."""

    model_config = ConfigDict(frozen=True)

    asset: str
    weight: float
    marginal_beta: float
    total_contribution: float
    risk_contribution_pct: float


def _check_dimensions(weights: np.ndarray, cov: np.ndarray) -> np.ndarray:
    weights = np.asarray(weights, dtype=float).flatten()
    if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
        raise InputError(f"Covariance must be a square matrix, got shape {cov.shape}")
    if weights.shape[0] != cov.shape[0]:
        raise InputError(
            f"Weights dimension {weights.shape[0]} doesn't match covariance {cov.shape[0]}"
        )
    return weights


def portfolio_volatility(weights: np.ndarray, cov: np.ndarray) -> float:
    """Portfolio volatility sqrt(w' * Sigma * w) in the units of the returns."""
    weights = _check_dimensions(weights, cov)

    portfolio_var = float(weights @ cov @ weights)

    if portfolio_var < -1e-10:
        raise InputError(
            f"Negative portfolio variance ({portfolio_var:.6e}). "
            "Covariance matrix is not positive semi-definite."
        )
    # Clamp tiny negative values from numerical noise to zero
    portfolio_var = max(portfolio_var, 0.0)

    return float(np.sqrt(portfolio_var))


def marginal_contribution_to_risk(weights: np.ndarray, cov: np.ndarray) -> np.ndarray:
    """Marginal contribution beta_i = (Sigma * w)_i / sigma_p per constituent.

    Returns zeros (with a warning) when portfolio volatility is zero.
    """
    weights = _check_dimensions(weights, cov)

    port_vol = portfolio_volatility(weights, cov)

    if port_vol == 0:
        logger.warning("marginal_contribution_to_risk: zero portfolio volatility")
        return np.zeros_like(weights)

    return (cov @ weights) / port_vol


def component_contribution_to_risk(weights: np.ndarray, cov: np.ndarray) -> np.ndarray:
    """Total contribution w_i * beta_i; sums to portfolio volatility."""
    weights = _check_dimensions(weights, cov)
    return weights * marginal_contribution_to_risk(weights, cov)


def pct_contribution_to_risk(weights: np.ndarray, cov: np.ndarray) -> np.ndarray:
    """Percentage contribution to portfolio risk; sums to 100.

    w_i * (Sigma * w)_i / (w' * Sigma * w) * 100, which equals
    total_i / sigma_p * 100.
    """
    weights = _check_dimensions(weights, cov)

    port_var = float(weights @ cov @ weights)

    if port_var == 0:
        logger.warning("pct_contribution_to_risk: zero portfolio variance")
        return np.zeros_like(weights)

    return weights * (cov @ weights) / port_var * 100


def decompose_risk(
    constituent_returns: Mapping[str, ReturnSeries],
    weights: Mapping[str, float],
    covariance_method: str = "sample",
) -> Dict[str, RiskContribution]:
    """Attribute portfolio volatility to each constituent.

    Args:
        constituent_returns: Mapping asset -> ReturnSeries on identical dates
        weights: Mapping asset -> weight, summing to 1
        covariance_method: 'sample' (unbiased) or 'lw' (Ledoit-Wolf)

    Returns:
        Mapping asset -> RiskContribution, in constituent order

    Raises:
        InputError: Misaligned series, weights not summing to 1 or naming
            other assets, or zero portfolio variance
        InsufficientDataError: Fewer than 2 observations
    """
    frame = returns_frame(constituent_returns)
    symbols = list(frame.columns)
    w = validate_weights(weights, symbols)

    cov = estimate_covariance(frame, method=covariance_method)

    port_vol = portfolio_volatility(w, cov)
    if port_vol == 0:
        raise InputError("Portfolio variance is zero; risk contributions are undefined")

    marginal = marginal_contribution_to_risk(w, cov)
    total = component_contribution_to_risk(w, cov)
    pct = pct_contribution_to_risk(w, cov)

    contributions = {
        symbol: RiskContribution(
            asset=symbol,
            weight=float(w[i]),
            marginal_beta=float(marginal[i]),
            total_contribution=float(total[i]),
            risk_contribution_pct=float(pct[i]),
        )
        for i, symbol in enumerate(symbols)
    }

    top = max(contributions.values(), key=lambda c: c.risk_contribution_pct)
    logger.info(
        "decompose_risk: decomposed",
        num_assets=len(symbols),
        num_observations=len(frame),
        portfolio_volatility=port_vol,
        covariance_method=covariance_method,
        top_contributor=top.asset,
        top_contribution_pct=top.risk_contribution_pct,
    )

    return contributions
