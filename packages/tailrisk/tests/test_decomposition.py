"""
Unit tests for covariance.py and decomposition.py

Tests cover:
- Sample and Ledoit-Wolf covariance estimation
- Portfolio volatility and marginal / component / percentage contributions
- decompose_risk over aligned constituent series
"""

import pytest
import numpy as np
import pandas as pd
from numpy.testing import assert_allclose

from tailrisk.risk.covariance import sample_cov, ledoit_wolf_cov, estimate_covariance
from tailrisk.risk.decomposition import (
    portfolio_volatility,
    marginal_contribution_to_risk,
    component_contribution_to_risk,
    pct_contribution_to_risk,
    decompose_risk,
)
from tailrisk.risk.errors import InputError, InsufficientDataError
from tailrisk.risk.series import ReturnSeries, returns_frame


WEIGHTS = {'AAPL': 0.5, 'META': 0.3, 'NVDA': 0.2}


class TestCovariance:
    """Tests for covariance estimators."""

    def test_sample_matches_pandas(self, constituent_returns):
        """Sample covariance is the unbiased ddof=1 estimator."""
        frame = returns_frame(constituent_returns)

        cov = sample_cov(frame)

        assert_allclose(cov, frame.cov().to_numpy(), rtol=1e-12)

    def test_single_asset_is_2d(self):
        """One asset still gives a 1x1 matrix."""
        frame = pd.DataFrame({'A': [1.0, 2.0, 4.0]})

        cov = sample_cov(frame)

        assert cov.shape == (1, 1)
        assert_allclose(cov[0, 0], np.var([1.0, 2.0, 4.0], ddof=1))

    def test_ledoit_wolf_symmetric_psd(self, constituent_returns):
        """Shrunk covariance is symmetric positive semi-definite."""
        cov = ledoit_wolf_cov(returns_frame(constituent_returns))

        assert cov.shape == (3, 3)
        assert_allclose(cov, cov.T)
        assert np.linalg.eigvalsh(cov).min() > -1e-10

    def test_estimate_covariance_dispatch(self, constituent_returns):
        """Method names route to the matching estimator."""
        frame = returns_frame(constituent_returns)

        assert_allclose(estimate_covariance(frame, 'sample'), sample_cov(frame))
        assert_allclose(estimate_covariance(frame, 'LW'), ledoit_wolf_cov(frame))

    def test_unknown_method_raises(self, constituent_returns):
        """Unknown estimators are an InputError."""
        with pytest.raises(InputError, match="Unknown covariance estimation method"):
            estimate_covariance(returns_frame(constituent_returns), 'ewma')

    def test_non_finite_raises(self):
        """NaN in the returns matrix is rejected."""
        frame = pd.DataFrame({'A': [1.0, np.nan, 2.0], 'B': [1.0, 2.0, 3.0]})

        with pytest.raises(InputError, match="Non-finite"):
            sample_cov(frame)

    def test_single_observation_raises(self):
        """At least two observations are needed."""
        with pytest.raises(InsufficientDataError, match="at least 2"):
            sample_cov(pd.DataFrame({'A': [1.0]}))


class TestContributionFunctions:
    """Tests for the array-level contribution functions."""

    def test_two_uncorrelated_assets(self):
        """Hand-computed contributions for a diagonal covariance."""
        cov = np.diag([4.0, 1.0])
        w = np.array([0.5, 0.5])

        vol = portfolio_volatility(w, cov)
        mcr = marginal_contribution_to_risk(w, cov)
        ccr = component_contribution_to_risk(w, cov)
        pct = pct_contribution_to_risk(w, cov)

        assert_allclose(vol, np.sqrt(1.25))
        assert_allclose(mcr, np.array([2.0, 0.5]) / np.sqrt(1.25))
        assert_allclose(ccr.sum(), vol)
        assert_allclose(pct, [80.0, 20.0])

    def test_dimension_mismatch_raises(self):
        """Weights and covariance must agree in size."""
        with pytest.raises(InputError, match="doesn't match covariance"):
            portfolio_volatility(np.array([0.5, 0.5]), np.eye(3))

    def test_zero_covariance_returns_zeros(self):
        """Zero portfolio volatility gives zero contributions."""
        w = np.array([0.5, 0.5])
        cov = np.zeros((2, 2))

        assert_allclose(marginal_contribution_to_risk(w, cov), [0.0, 0.0])
        assert_allclose(pct_contribution_to_risk(w, cov), [0.0, 0.0])


class TestDecomposeRisk:
    """Tests for decompose_risk function."""

    def test_percentages_sum_to_100(self, constituent_returns):
        """Percentage contributions add up to 100."""
        result = decompose_risk(constituent_returns, WEIGHTS)

        total = sum(c.risk_contribution_pct for c in result.values())
        assert_allclose(total, 100.0, rtol=1e-10)

    def test_totals_sum_to_portfolio_vol(self, constituent_returns):
        """Total contributions add up to sigma_p of the weighted portfolio."""
        result = decompose_risk(constituent_returns, WEIGHTS)

        frame = returns_frame(constituent_returns)
        w = np.array([WEIGHTS[s] for s in frame.columns])
        port_vol = np.std(frame.to_numpy() @ w, ddof=1)
        total = sum(c.total_contribution for c in result.values())
        assert_allclose(total, port_vol, rtol=1e-10)

    def test_matches_formulas(self, constituent_returns):
        """beta_i = (Sigma w)_i / sigma_p with the sample covariance."""
        result = decompose_risk(constituent_returns, WEIGHTS)

        frame = returns_frame(constituent_returns)
        cov = frame.cov().to_numpy()
        w = np.array([WEIGHTS[s] for s in frame.columns])
        sigma_p = np.sqrt(w @ cov @ w)
        beta = cov @ w / sigma_p

        for i, symbol in enumerate(frame.columns):
            c = result[symbol]
            assert c.asset == symbol
            assert c.weight == WEIGHTS[symbol]
            assert_allclose(c.marginal_beta, beta[i], rtol=1e-10)
            assert_allclose(c.total_contribution, w[i] * beta[i], rtol=1e-10)

    def test_agrees_with_contribution_functions(self, constituent_returns):
        """Per-asset fields equal the array-level contribution functions."""
        result = decompose_risk(constituent_returns, WEIGHTS, covariance_method='lw')

        frame = returns_frame(constituent_returns)
        cov = estimate_covariance(frame, method='lw')
        w = np.array([WEIGHTS[s] for s in frame.columns])

        assert_allclose(
            [result[s].total_contribution for s in frame.columns],
            component_contribution_to_risk(w, cov),
            rtol=1e-12,
        )
        assert_allclose(
            [result[s].risk_contribution_pct for s in frame.columns],
            pct_contribution_to_risk(w, cov),
            rtol=1e-12,
        )

    def test_constituent_order_kept(self, constituent_returns):
        """Result follows constituent order."""
        result = decompose_risk(constituent_returns, WEIGHTS)

        assert list(result) == ['AAPL', 'META', 'NVDA']

    def test_ledoit_wolf_option(self, constituent_returns):
        """Shrinkage covariance also decomposes to 100%."""
        result = decompose_risk(constituent_returns, WEIGHTS, covariance_method='lw')

        total = sum(c.risk_contribution_pct for c in result.values())
        assert_allclose(total, 100.0, rtol=1e-10)

    def test_single_asset_carries_all_risk(self):
        """A single asset contributes 100%."""
        dates = pd.date_range('2020-01-01', periods=4, freq='MS')
        series = ReturnSeries.from_values([1.0, -2.0, 3.0, 0.5], dates, name='A')

        result = decompose_risk({'A': series}, {'A': 1.0})

        assert_allclose(result['A'].risk_contribution_pct, 100.0)

    def test_weights_not_summing_to_one_raise(self, constituent_returns):
        """Weights must sum to 1."""
        with pytest.raises(InputError, match="sum to 1"):
            decompose_risk(constituent_returns, {'AAPL': 0.5, 'META': 0.3, 'NVDA': 0.1})

    def test_missing_weight_raises(self, constituent_returns):
        """Every constituent needs a weight."""
        with pytest.raises(InputError, match="missing"):
            decompose_risk(constituent_returns, {'AAPL': 0.5, 'META': 0.5})

    def test_zero_variance_raises(self):
        """Constant constituents make contributions undefined."""
        dates = pd.date_range('2020-01-01', periods=5, freq='MS')
        flat = {
            'A': ReturnSeries.from_values(np.full(5, 1.0), dates, name='A'),
            'B': ReturnSeries.from_values(np.full(5, 2.0), dates, name='B'),
        }

        with pytest.raises(InputError, match="variance is zero"):
            decompose_risk(flat, {'A': 0.5, 'B': 0.5})
