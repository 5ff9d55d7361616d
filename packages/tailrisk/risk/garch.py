"""
GARCH(1,1) Volatility Module

Maximum-likelihood estimation of a constant-mean GARCH(1,1) model with
Gaussian innovations:

    r_t       = mu + eps_t
    sigma2_t  = omega + alpha * eps_{t-1}^2 + beta * sigma2_{t-1}

sigma2_0 is seeded with the sample variance of the returns. Constraints
(omega > 0, alpha >= 0, beta >= 0, alpha + beta < 1) are enforced by
optimizing over an unconstrained reparameterization:

    omega       = exp(w)
    persistence = (1 - margin) * logistic(p)       alpha + beta
    alpha       = persistence * logistic(s)
    beta        = persistence - alpha

so every point the optimizer visits is a stationary model. Annualization is
a presentation concern and lives in summarize_garch_volatility().
"""

from typing import Optional

import numpy as np
import pandas as pd
import structlog
from pydantic import BaseModel, ConfigDict
from scipy import optimize, signal
from scipy.special import expit, logit

from .errors import ConvergenceError, InputError, InsufficientDataError
from .series import ReturnSeries

logger = structlog.get_logger(__name__)

MIN_GARCH_OBSERVATIONS = 10
DEFAULT_MAX_ITER = 5000
DEFAULT_TOLERANCE = 1e-6
STATIONARITY_MARGIN = 1e-6

# Starting point of the optimizer
INITIAL_ALPHA = 0.05
INITIAL_BETA = 0.90


class GarchFit(BaseModel):
    """Fitted GARCH(1,1) parameters and in-sample conditional volatility."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    mu: float
    omega: float
    alpha: float
    beta: float
    log_likelihood: float
    n_observations: int
    n_iterations: int
    conditional_volatility: pd.Series  # sigma_t, same dates as the input

    @property
    def persistence(self) -> float:
        return self.alpha + self.beta

    @property
    def unconditional_variance(self) -> float:
        return self.omega / (1.0 - self.persistence)


class GarchVolatilitySummary(BaseModel):
    """Summary of a conditional-volatility path, periodic and annualized."""

    model_config = ConfigDict(frozen=True)

    mean_sigma: float
    mean_sigma_annualized: float
    max_sigma_annualized: float
    min_sigma_annualized: float
    periods_per_year: int


def garch_variance_path(
    residuals: np.ndarray,
    omega: float,
    alpha: float,
    beta: float,
    initial_variance: float,
) -> np.ndarray:
    """Conditional variance recursion sigma2_t for t = 0..T-1.

    sigma2_0 = initial_variance
    sigma2_t = omega + alpha * eps_{t-1}^2 + beta * sigma2_{t-1}

    Evaluated as a first-order IIR filter over the shocks.
    """
    residuals = np.asarray(residuals, dtype=float)
    n = len(residuals)
    sigma2 = np.empty(n)
    sigma2[0] = initial_variance
    if n == 1:
        return sigma2

    shocks = omega + alpha * residuals[:-1] ** 2
    sigma2[1:], _ = signal.lfilter([1.0], [1.0, -beta], shocks, zi=[beta * initial_variance])
    return sigma2


def gaussian_log_likelihood(residuals: np.ndarray, sigma2: np.ndarray) -> float:
    """Sum of per-period Gaussian log densities log f(eps_t | sigma2_t)."""
    return float(-0.5 * np.sum(np.log(2.0 * np.pi) + np.log(sigma2) + residuals ** 2 / sigma2))


def _to_params(x: np.ndarray, margin: float):
    mu, w, p, s = x
    omega = float(np.exp(w))
    persistence = (1.0 - margin) * float(expit(p))
    alpha = persistence * float(expit(s))
    beta = persistence - alpha
    return mu, omega, alpha, beta


def _from_params(mu: float, omega: float, alpha: float, beta: float, margin: float) -> np.ndarray:
    persistence = alpha + beta
    return np.array([
        mu,
        np.log(omega),
        logit(persistence / (1.0 - margin)),
        logit(alpha / persistence),
    ])


def _negative_log_likelihood(
    x: np.ndarray,
    returns: np.ndarray,
    initial_variance: float,
    margin: float,
) -> float:
    mu, omega, alpha, beta = _to_params(x, margin)
    residuals = returns - mu
    sigma2 = garch_variance_path(residuals, omega, alpha, beta, initial_variance)
    if not np.all(np.isfinite(sigma2)) or np.any(sigma2 <= 0):
        return np.inf
    nll = -gaussian_log_likelihood(residuals, sigma2)
    return nll if np.isfinite(nll) else np.inf


def fit_garch(
    series: ReturnSeries,
    max_iter: int = DEFAULT_MAX_ITER,
    tol: float = DEFAULT_TOLERANCE,
) -> GarchFit:
    """Fit GARCH(1,1) by maximum likelihood.

    Starts from alpha=0.05, beta=0.90, omega = var * (1 - alpha - beta),
    mu = sample mean and runs Nelder-Mead over the reparameterized space.

    Args:
        series: Return series (percent)
        max_iter: Iteration budget of the optimizer
        tol: Convergence tolerance on parameters and likelihood

    Returns:
        GarchFit with (mu, omega, alpha, beta) and conditional volatility

    Raises:
        InsufficientDataError: Fewer than MIN_GARCH_OBSERVATIONS observations
        InputError: Constant series (zero variance) or invalid budget
        ConvergenceError: Optimizer exhausted its iteration budget or
            violated the constraints
    """
    n_obs = len(series)
    if n_obs < MIN_GARCH_OBSERVATIONS:
        raise InsufficientDataError(
            f"Need at least {MIN_GARCH_OBSERVATIONS} observations for GARCH, got {n_obs}"
        )
    if max_iter < 1:
        raise InputError(f"max_iter must be >= 1, got {max_iter}")
    if tol <= 0:
        raise InputError(f"tol must be positive, got {tol}")

    returns = series.data.to_numpy()
    sample_mean = float(np.mean(returns))
    sample_var = float(np.var(returns, ddof=1))
    if sample_var <= 0:
        raise InputError(f"Series '{series.name}' has zero variance; GARCH is undefined")

    margin = STATIONARITY_MARGIN
    x0 = _from_params(
        sample_mean,
        sample_var * (1.0 - INITIAL_ALPHA - INITIAL_BETA),
        INITIAL_ALPHA,
        INITIAL_BETA,
        margin,
    )
    args = (returns, sample_var, margin)

    result = optimize.minimize(
        _negative_log_likelihood,
        x0,
        args=args,
        method="Nelder-Mead",
        options={
            "maxiter": max_iter,
            "maxfev": 2 * max_iter,
            "xatol": tol,
            "fatol": tol,
        },
    )

    # Nelder-Mead never ends above its starting likelihood, so a stalled fit
    # shows up as an exhausted iteration budget
    if not result.success:
        logger.error(
            "fit_garch: optimizer did not converge",
            series=series.name,
            message=result.message,
            iterations=int(result.nit),
        )
        raise ConvergenceError(
            f"GARCH fit for '{series.name}' did not converge within {max_iter} iterations: {result.message}"
        )

    mu, omega, alpha, beta = _to_params(result.x, margin)
    if not (omega > 0 and alpha >= 0 and beta >= 0 and alpha + beta < 1):
        logger.error(
            "fit_garch: constraints violated",
            series=series.name,
            omega=omega,
            alpha=alpha,
            beta=beta,
        )
        raise ConvergenceError(
            f"GARCH fit for '{series.name}' violates constraints: "
            f"omega={omega}, alpha={alpha}, beta={beta}"
        )

    volatility = conditional_volatility(series, mu, omega, alpha, beta, initial_variance=sample_var)

    fit = GarchFit(
        mu=float(mu),
        omega=omega,
        alpha=alpha,
        beta=beta,
        log_likelihood=float(-result.fun),
        n_observations=n_obs,
        n_iterations=int(result.nit),
        conditional_volatility=volatility,
    )

    logger.info(
        "fit_garch: converged",
        series=series.name,
        mu=fit.mu,
        omega=fit.omega,
        alpha=fit.alpha,
        beta=fit.beta,
        persistence=fit.persistence,
        log_likelihood=fit.log_likelihood,
        iterations=fit.n_iterations,
    )

    return fit


def annualize_volatility(volatility, periods_per_year: int = 12):
    """Scale periodic volatility by sqrt(periods_per_year)."""
    if periods_per_year <= 0:
        raise InputError(f"periods_per_year must be positive, got {periods_per_year}")
    return volatility * np.sqrt(periods_per_year)


def summarize_garch_volatility(
    fit: GarchFit,
    periods_per_year: int = 12,
) -> GarchVolatilitySummary:
    """Mean periodic sigma plus mean/max/min annualized sigma."""
    sigma = fit.conditional_volatility.to_numpy()
    sigma_annual = annualize_volatility(sigma, periods_per_year)

    return GarchVolatilitySummary(
        mean_sigma=float(np.mean(sigma)),
        mean_sigma_annualized=float(np.mean(sigma_annual)),
        max_sigma_annualized=float(np.max(sigma_annual)),
        min_sigma_annualized=float(np.min(sigma_annual)),
        periods_per_year=periods_per_year,
    )


def conditional_volatility(
    series: ReturnSeries,
    mu: float,
    omega: float,
    alpha: float,
    beta: float,
    initial_variance: Optional[float] = None,
) -> pd.Series:
    """Conditional volatility path of a series under given GARCH parameters.

    The returned Series is backed by a read-only array.
    """
    if omega <= 0 or alpha < 0 or beta < 0 or alpha + beta >= 1:
        raise InputError(
            f"Parameters must satisfy omega>0, alpha>=0, beta>=0, alpha+beta<1; "
            f"got omega={omega}, alpha={alpha}, beta={beta}"
        )
    if len(series) < 2:
        raise InsufficientDataError(f"Need at least 2 observations, got {len(series)}")

    returns = series.data.to_numpy()
    if initial_variance is None:
        initial_variance = float(np.var(returns, ddof=1))

    sigma2 = garch_variance_path(returns - mu, omega, alpha, beta, initial_variance)
    sigma = np.sqrt(sigma2)
    sigma.flags.writeable = False
    return pd.Series(sigma, index=series.dates.copy(), name=series.name, copy=False)
