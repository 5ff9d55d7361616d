"""
Unit tests for drawdown.py - Drawdown & Recovery Module

Tests cover:
- Wealth index, running max and drawdown path
- Maximum drawdown and its date
- Recovery gaps between all-time highs
- Drawdown divergence between two series
"""

import pytest
import numpy as np
import pandas as pd
from numpy.testing import assert_allclose

from tailrisk.risk.drawdown import (
    compute_drawdown,
    zero_drawdown_dates,
    months_between,
    max_recovery_gap,
    find_recovery_gaps,
    compare_drawdowns,
)
from tailrisk.risk.errors import InputError, InsufficientDataError
from tailrisk.risk.series import ReturnSeries


def _series(values, name='s', start='2020-01-01'):
    dates = pd.date_range(start, periods=len(values), freq='MS')
    return ReturnSeries.from_values(values, dates, name=name)


class TestComputeDrawdown:
    """Tests for compute_drawdown function."""

    def test_known_path(self):
        """Three -5% months after a +10% month: max drawdown 0.95^3 - 1."""
        path = compute_drawdown(_series([10.0, -5.0, -5.0, -5.0, 20.0]))

        assert_allclose(
            path.path['wealth_index'].to_numpy(),
            np.cumprod([1.10, 0.95, 0.95, 0.95, 1.20]),
        )
        assert_allclose(
            path.drawdown.to_numpy(),
            [0.0, -5.0, -9.75, -14.2625, 0.0],
            atol=1e-10,
        )
        assert_allclose(path.max_drawdown, -14.2625, atol=1e-10)
        assert path.max_drawdown_date == pd.Timestamp('2020-04-01')

    def test_alternating_series(self, alternating_returns):
        """+5/-5 never regains the first peak; the trough is the last month."""
        path = compute_drawdown(alternating_returns)

        expected = (0.9975 ** 6 / 1.05 - 1) * 100
        assert_allclose(path.max_drawdown, expected, rtol=1e-12)
        assert path.max_drawdown_date == alternating_returns.dates[-1]

    def test_drawdown_never_positive(self, constituent_returns):
        """Drawdown is always <= 0."""
        path = compute_drawdown(constituent_returns['NVDA'])

        assert (path.drawdown <= 0).all()

    def test_running_max_is_prefix_max(self, constituent_returns):
        """Running max equals the cumulative max of the wealth index."""
        path = compute_drawdown(constituent_returns['AAPL'])

        assert_allclose(
            path.path['running_max'].to_numpy(),
            path.path['wealth_index'].cummax().to_numpy(),
        )

    def test_first_period_is_zero(self):
        """The first period is its own running maximum."""
        path = compute_drawdown(_series([-10.0, 5.0, -3.0]))

        assert path.drawdown.iloc[0] == 0.0

    def test_monotonic_rise_has_no_drawdown(self):
        """Strictly positive returns never draw down."""
        path = compute_drawdown(_series([1.0, 2.0, 0.5, 3.0]))

        assert (path.drawdown == 0.0).all()
        assert path.max_drawdown == 0.0

    def test_path_aligned_with_input(self, constituent_returns):
        """Path index equals the input dates."""
        series = constituent_returns['META']

        path = compute_drawdown(series)

        assert path.path.index.equals(series.dates)
        assert list(path.path.columns) == ['wealth_index', 'running_max', 'drawdown_pct']

    def test_path_is_read_only(self):
        """The drawdown path cannot be written in place."""
        path = compute_drawdown(_series([10.0, -5.0, 3.0]))

        with pytest.raises(ValueError, match="read-only"):
            path.path.to_numpy()[0, 0] = 0.0

    def test_total_loss_raises(self):
        """A -100% return makes drawdown undefined."""
        with pytest.raises(InputError, match="-100%"):
            compute_drawdown(_series([5.0, -100.0, 3.0]))

    def test_empty_raises(self):
        """An empty series has no drawdown."""
        series = ReturnSeries(pd.Series([], dtype=float, index=pd.DatetimeIndex([])))

        with pytest.raises(InsufficientDataError):
            compute_drawdown(series)


class TestRecoveryGaps:
    """Tests for find_recovery_gaps and helpers."""

    def test_longest_gap(self):
        """All-time highs at months 0, 3, 7, 8: longest gap is 4 months."""
        series = _series([1.0, -2.0, 1.0, 5.0, -1.0, -1.0, -1.0, 10.0, 1.0])

        gap = find_recovery_gaps(series)

        assert gap.gap_months == 4
        assert gap.start_date == pd.Timestamp('2020-04-01')
        assert gap.end_date == pd.Timestamp('2020-08-01')

    def test_zero_drawdown_dates(self):
        """Dates at an all-time high."""
        series = _series([1.0, -2.0, 1.0, 5.0, -1.0, -1.0, -1.0, 10.0, 1.0])

        dates = zero_drawdown_dates(compute_drawdown(series))

        assert list(dates) == [series.dates[i] for i in (0, 3, 7, 8)]

    def test_declining_series_is_na(self):
        """A monotonically declining series has no recovery gap."""
        gap = find_recovery_gaps(_series([-1.0, -2.0, -1.5, -3.0]))

        assert gap is None

    def test_months_between_across_years(self):
        """Calendar months ignore the day of month."""
        assert months_between(pd.Timestamp('2019-11-30'), pd.Timestamp('2020-02-01')) == 3

    def test_max_recovery_gap_single_date(self):
        """One date has no gap."""
        assert max_recovery_gap(pd.DatetimeIndex(['2020-01-01'])) is None


class TestCompareDrawdowns:
    """Tests for compare_drawdowns function."""

    def test_divergence_filter(self):
        """Only dates beyond the threshold are kept, in the right direction."""
        path_a = compute_drawdown(_series([0.0, -30.0, 40.0], name='port'))
        path_b = compute_drawdown(_series([0.0, 0.0, 0.0], name='bench'))

        result = compare_drawdowns(path_a, path_b, threshold=20.0)

        assert result.a_exceeds_b.empty
        assert len(result.b_exceeds_a) == 1
        row = result.b_exceeds_a.iloc[0]
        assert result.b_exceeds_a.index[0] == pd.Timestamp('2020-02-01')
        assert_allclose(row['drawdown_a'], -30.0)
        assert_allclose(row['drawdown_b'], 0.0)
        assert_allclose(row['difference'], 30.0)

    def test_lower_threshold_keeps_more(self):
        """Lowering the threshold admits the smaller divergence too."""
        path_a = compute_drawdown(_series([0.0, -30.0, 40.0], name='port'))
        path_b = compute_drawdown(_series([0.0, 0.0, 0.0], name='bench'))

        result = compare_drawdowns(path_a, path_b, threshold=1.5)

        assert len(result.b_exceeds_a) == 2

    def test_common_zero_drawdown_dates(self):
        """Dates where both series sit at their highs."""
        path_a = compute_drawdown(_series([0.0, -30.0, 40.0], name='port'))
        path_b = compute_drawdown(_series([0.0, 0.0, 0.0], name='bench'))

        result = compare_drawdowns(path_a, path_b)

        assert list(result.common_zero_drawdown_dates) == [pd.Timestamp('2020-01-01')]
        assert result.threshold == 20.0

    def test_misaligned_paths_raise(self):
        """Paths must share dates."""
        path_a = compute_drawdown(_series([1.0, 2.0], start='2020-01-01'))
        path_b = compute_drawdown(_series([1.0, 2.0], start='2021-01-01'))

        with pytest.raises(InputError, match="not aligned"):
            compare_drawdowns(path_a, path_b)

    def test_negative_threshold_raises(self):
        """Threshold is a non-negative number of percentage points."""
        path = compute_drawdown(_series([1.0, 2.0]))

        with pytest.raises(InputError, match="non-negative"):
            compare_drawdowns(path, path, threshold=-1.0)
