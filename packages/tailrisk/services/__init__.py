"""Orchestration services built on the tailrisk.risk estimators."""

from .analysis_service import SeriesReport, TailRiskReport, run_tail_risk_analysis

__all__ = ["SeriesReport", "TailRiskReport", "run_tail_risk_analysis"]
