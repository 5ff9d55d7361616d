"""Portfolio-versus-benchmark tail-risk analysis orchestration.

Wires the tailrisk.risk estimators into one end-to-end run over in-memory
return series. Data retrieval and export happen outside this module; every
estimator error propagates to the caller unchanged.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

import pandas as pd
import structlog
from pydantic import BaseModel, ConfigDict

from tailrisk.config import Settings, get_settings
from tailrisk.risk.copula import CopulaFit, fit_clayton_copula
from tailrisk.risk.decomposition import RiskContribution, decompose_risk
from tailrisk.risk.drawdown import (
    DrawdownComparison,
    DrawdownPath,
    RecoveryGap,
    compare_drawdowns,
    compute_drawdown,
    find_recovery_gaps,
)
from tailrisk.risk.garch import GarchFit, GarchVolatilitySummary, fit_garch, summarize_garch_volatility
from tailrisk.risk.metrics import VarEsResult, build_var_es_table
from tailrisk.risk.series import ReturnSeries, portfolio_returns, require_aligned
from tailrisk.risk.statistics import DescriptiveStats, describe_returns, performance_table
from tailrisk.risk.stress import STRESS_SCENARIOS, StressResult, run_stress_scenarios

logger = structlog.get_logger()


class SeriesReport(BaseModel):
    """Single-series results for the portfolio or the benchmark."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    statistics: DescriptiveStats
    var_es: List[VarEsResult]
    garch: GarchFit
    garch_summary: GarchVolatilitySummary
    drawdown: DrawdownPath
    recovery_gap: Optional[RecoveryGap]


class TailRiskReport(BaseModel):
    """Every structured result of one analysis run."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    portfolio: SeriesReport
    benchmark: SeriesReport
    copula: CopulaFit
    drawdown_comparison: DrawdownComparison
    risk_contributions: Dict[str, RiskContribution]
    stress: List[StressResult]
    performance: pd.DataFrame


def _analyze_series(series: ReturnSeries, settings: Settings) -> SeriesReport:
    var_es = build_var_es_table(
        series,
        confidence_levels=settings.CONFIDENCE_LEVELS,
        n_simulations=settings.MC_SIMULATIONS,
        seed=settings.MC_SEED,
    )
    garch = fit_garch(series, max_iter=settings.GARCH_MAX_ITER, tol=settings.GARCH_TOLERANCE)

    return SeriesReport(
        name=series.name,
        statistics=describe_returns(series, periods_per_year=settings.PERIODS_PER_YEAR),
        var_es=var_es,
        garch=garch,
        garch_summary=summarize_garch_volatility(garch, periods_per_year=settings.PERIODS_PER_YEAR),
        drawdown=compute_drawdown(series),
        recovery_gap=find_recovery_gaps(series),
    )


def run_tail_risk_analysis(
    constituents: Mapping[str, ReturnSeries],
    benchmark: ReturnSeries,
    weights: Optional[Mapping[str, float]] = None,
    settings: Optional[Settings] = None,
) -> TailRiskReport:
    """Run the full portfolio-versus-benchmark tail-risk analysis.

    Args:
        constituents: Mapping symbol -> ReturnSeries, all on the benchmark's dates
        benchmark: Benchmark ReturnSeries
        weights: Mapping symbol -> weight summing to 1 (equal weights if None)
        settings: Analysis settings (read from the environment if None)

    Returns:
        TailRiskReport bundling per-series and joint results

    Raises:
        RiskEngineError subclasses from any estimator
    """
    if settings is None:
        settings = get_settings()

    portfolio = portfolio_returns(constituents, weights=weights, name="portfolio")
    require_aligned(portfolio, benchmark)

    if weights is None:
        weights = {symbol: 1.0 / len(constituents) for symbol in constituents}

    logger.info(
        "tail_risk_analysis_started",
        num_constituents=len(constituents),
        num_observations=len(portfolio),
        benchmark=benchmark.name,
    )

    portfolio_report = _analyze_series(portfolio, settings)
    benchmark_report = _analyze_series(benchmark, settings)

    copula = fit_clayton_copula(portfolio, benchmark)
    comparison = compare_drawdowns(
        portfolio_report.drawdown,
        benchmark_report.drawdown,
        threshold=settings.DRAWDOWN_DIVERGENCE_THRESHOLD,
    )
    contributions = decompose_risk(
        constituents,
        weights,
        covariance_method=settings.COVARIANCE_METHOD,
    )

    scenarios = [
        scenario.model_copy(update={"seed": settings.STRESS_SEED})
        for scenario in STRESS_SCENARIOS.values()
    ]
    stress = run_stress_scenarios(
        portfolio,
        scenarios=scenarios,
        confidence_levels=settings.CONFIDENCE_LEVELS,
    )

    performance = performance_table(
        {**constituents, portfolio.name: portfolio, benchmark.name: benchmark},
        periods_per_year=settings.PERIODS_PER_YEAR,
    )

    report = TailRiskReport(
        portfolio=portfolio_report,
        benchmark=benchmark_report,
        copula=copula,
        drawdown_comparison=comparison,
        risk_contributions=contributions,
        stress=stress,
        performance=performance,
    )

    logger.info(
        "tail_risk_analysis_complete",
        lower_tail_dependence=copula.lower_tail_dependence,
        portfolio_max_drawdown=portfolio_report.drawdown.max_drawdown,
        benchmark_max_drawdown=benchmark_report.drawdown.max_drawdown,
    )

    return report
