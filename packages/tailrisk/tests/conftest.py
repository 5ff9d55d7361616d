"""
Shared test fixtures for the tail-risk test suite.

Provides consistent synthetic monthly data across all test modules:
- Monthly date indexes
- Correlated constituent return series and a benchmark
- A GARCH(1,1)-simulated return series with known parameters
- A GARCH-driven factor universe for end-to-end runs
"""

import pytest
import numpy as np
import pandas as pd

from tailrisk.risk.series import ReturnSeries


GARCH_TRUE_PARAMS = {
    'mu': 0.5,
    'omega': 0.2,
    'alpha': 0.10,
    'beta': 0.85,
}


def monthly_dates(n, start='2000-01-01'):
    """Month-start DatetimeIndex of length n."""
    return pd.date_range(start, periods=n, freq='MS')


def simulate_garch(n, mu, omega, alpha, beta, seed):
    """Simulate r_t = mu + sigma_t * z_t under GARCH(1,1) with N(0,1) shocks."""
    rng = np.random.default_rng(seed)
    z = rng.standard_normal(n)
    sigma2 = np.empty(n)
    returns = np.empty(n)
    sigma2[0] = omega / (1 - alpha - beta)
    for t in range(n):
        if t > 0:
            eps_prev = returns[t - 1] - mu
            sigma2[t] = omega + alpha * eps_prev ** 2 + beta * sigma2[t - 1]
        returns[t] = mu + np.sqrt(sigma2[t]) * z[t]
    return returns


@pytest.fixture
def constituent_returns():
    """Three correlated monthly constituent series over 20 years.

    Returns:
        Dict[str, ReturnSeries]: symbol -> series (percent returns)
            META and NVDA load on AAPL's shocks
    """
    np.random.seed(42)
    dates = monthly_dates(240)
    symbols = ['AAPL', 'META', 'NVDA']

    data = np.random.normal(1.0, 5.0, (len(dates), len(symbols)))
    data[:, 1] = 0.6 * data[:, 0] + 0.4 * data[:, 1]
    data[:, 2] = 0.5 * data[:, 0] + 0.5 * data[:, 2]

    return {
        sym: ReturnSeries(pd.Series(data[:, i], index=dates), name=sym)
        for i, sym in enumerate(symbols)
    }


@pytest.fixture
def benchmark_returns(constituent_returns):
    """Benchmark correlated with the equal-weighted constituents.

    Returns:
        ReturnSeries: 240 monthly benchmark returns named 'NASDAQ'
    """
    np.random.seed(7)
    frame = pd.DataFrame({s: r.data for s, r in constituent_returns.items()})
    noise = np.random.normal(0.0, 2.0, len(frame))
    values = 0.8 * frame.mean(axis=1).to_numpy() + noise
    return ReturnSeries(pd.Series(values, index=frame.index), name='NASDAQ')


@pytest.fixture
def garch_returns():
    """GARCH(1,1)-simulated monthly returns with GARCH_TRUE_PARAMS.

    Returns:
        ReturnSeries: 1500 observations
    """
    values = simulate_garch(1500, seed=42, **GARCH_TRUE_PARAMS)
    return ReturnSeries(pd.Series(values, index=monthly_dates(1500, start='1880-01-01')), name='garch')


@pytest.fixture
def garch_universe():
    """Constituents and benchmark sharing one GARCH-driven market factor.

    Returns:
        Tuple[Dict[str, ReturnSeries], ReturnSeries]: constituents, benchmark
            over 600 months
    """
    n = 600
    dates = monthly_dates(n, start='1970-01-01')
    factor = simulate_garch(n, seed=11, **GARCH_TRUE_PARAMS)

    rng = np.random.default_rng(12)
    loadings = {'AAPL': 1.2, 'MSFT': 1.0, 'AMZN': 0.8}
    constituents = {
        sym: ReturnSeries(
            pd.Series(beta * factor + rng.normal(0.0, 0.5, n), index=dates),
            name=sym,
        )
        for sym, beta in loadings.items()
    }
    benchmark = ReturnSeries(
        pd.Series(factor + rng.normal(0.0, 0.3, n), index=dates),
        name='NASDAQ',
    )
    return constituents, benchmark


@pytest.fixture
def alternating_returns():
    """12 months alternating +5% / -5%."""
    values = np.array([5.0, -5.0] * 6)
    return ReturnSeries.from_values(values, monthly_dates(12), name='alternating')
