"""
Covariance Estimation Module

Covariance matrix estimators for constituent risk decomposition.
Unbiased sample covariance is the default; Ledoit-Wolf shrinkage is
available for short histories relative to the number of constituents.
"""

import numpy as np
import pandas as pd
import structlog
from sklearn.covariance import LedoitWolf

from .errors import InputError, InsufficientDataError

logger = structlog.get_logger(__name__)

COVARIANCE_METHODS = ("sample", "lw")


def _check_returns(returns: pd.DataFrame, caller: str) -> np.ndarray:
    if returns.empty:
        raise InsufficientDataError("Cannot estimate covariance from empty returns DataFrame")

    if len(returns) < 2:
        raise InsufficientDataError(f"Need at least 2 observations, got {len(returns)}")

    returns_array = returns.to_numpy(dtype=float)

    if not np.all(np.isfinite(returns_array)):
        bad_counts = (~np.isfinite(returns_array)).sum(axis=0)
        affected = [returns.columns[i] for i, count in enumerate(bad_counts) if count > 0]
        logger.error(f"{caller}: non-finite values in returns", affected_assets=affected)
        raise InputError(f"Non-finite values detected in returns for assets: {affected}")

    return returns_array


def sample_cov(returns: pd.DataFrame) -> np.ndarray:
    """Unbiased (ddof=1) sample covariance matrix.

    Args:
        returns: DataFrame of returns (T x N)

    Returns:
        N x N covariance matrix as numpy array
    """
    returns_array = _check_returns(returns, "sample_cov")

    cov_matrix = np.atleast_2d(np.cov(returns_array, rowvar=False, ddof=1))

    logger.info(
        "sample_cov: covariance estimated",
        num_assets=cov_matrix.shape[0],
        num_observations=len(returns),
    )

    return cov_matrix


def ledoit_wolf_cov(returns: pd.DataFrame) -> np.ndarray:
    """Estimate covariance matrix using Ledoit-Wolf shrinkage.

    The shrinkage intensity is chosen automatically by sklearn. The result is
    symmetrized and negative eigenvalues are clamped to keep it PSD.

    Args:
        returns: DataFrame of returns (T x N)

    Returns:
        N x N covariance matrix as numpy array
    """
    returns_array = _check_returns(returns, "ledoit_wolf_cov")

    lw = LedoitWolf()
    cov_matrix = lw.fit(returns_array).covariance_

    eigenvalues = np.linalg.eigvalsh(cov_matrix)
    min_eigenvalue = float(np.min(eigenvalues))

    if min_eigenvalue < -1e-8:
        logger.warning(
            "ledoit_wolf_cov: non-PSD matrix, clamping negative eigenvalues",
            min_eigenvalue=min_eigenvalue,
        )
        eigvals, eigvecs = np.linalg.eigh(cov_matrix)
        cov_matrix = eigvecs @ np.diag(np.maximum(eigvals, 0)) @ eigvecs.T
        cov_matrix = (cov_matrix + cov_matrix.T) / 2

    logger.info(
        "ledoit_wolf_cov: covariance estimated",
        num_assets=cov_matrix.shape[0],
        num_observations=len(returns),
        shrinkage=float(lw.shrinkage_),
    )

    return cov_matrix


def estimate_covariance(returns: pd.DataFrame, method: str = "sample") -> np.ndarray:
    """Unified interface for covariance estimation.

    Args:
        returns: DataFrame of returns (T x N)
        method: 'sample' for unbiased sample covariance, 'lw' for Ledoit-Wolf

    Returns:
        N x N covariance matrix as numpy array

    Raises:
        InputError: If method is unknown or returns contain non-finite values
        InsufficientDataError: Fewer than 2 observations
    """
    method = method.lower()

    if method == "sample":
        return sample_cov(returns)
    elif method == "lw":
        return ledoit_wolf_cov(returns)
    else:
        raise InputError(
            f"Unknown covariance estimation method: {method}. Use one of {list(COVARIANCE_METHODS)}"
        )
