"""
Stress Testing Module

Deterministic scenario transforms of a return series, re-evaluated through
the historical VaR/ES estimator:

- Rescale: every return r_t becomes r_t * volatility_multiplier + mean_shift,
  preserving the realized shape and timing of the series
- Resample: a fresh Normal(mu + mean_shift, sigma * volatility_multiplier)
  sample of the same length, drawn with a fixed seed

A multiplier of 1 with zero shift under rescale reproduces the input exactly.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd
import structlog
from pydantic import BaseModel, ConfigDict

from .errors import InputError, InsufficientDataError
from .metrics import SUPPORTED_CONFIDENCE_LEVELS, VarEsResult, VarMethod, estimate_var_es
from .series import ReturnSeries

logger = structlog.get_logger(__name__)

DEFAULT_STRESS_SEED = 123


class StressMode(str, Enum):
    """How a scenario transforms the base series."""
    RESCALE = "rescale"
    RESAMPLE = "resample"


class StressScenario(BaseModel):
    """Named volatility/mean stress applied to a base series."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    volatility_multiplier: float = 1.0
    mean_shift: float = 0.0
    mode: StressMode = StressMode.RESCALE
    seed: int = DEFAULT_STRESS_SEED


BASE_SCENARIO = StressScenario(name="base", description="Unstressed base series")

STRESS_SCENARIOS: Dict[str, StressScenario] = {
    "tech_crash": StressScenario(
        name="tech_crash",
        description="Tech crash: every return amplified x1.5",
        volatility_multiplier=1.5,
        mean_shift=0.0,
        mode=StressMode.RESCALE,
    ),
    "rate_shock": StressScenario(
        name="rate_shock",
        description="Rate shock: mean -0.5pp, volatility x1.3, resampled",
        volatility_multiplier=1.3,
        mean_shift=-0.5,
        mode=StressMode.RESAMPLE,
        seed=DEFAULT_STRESS_SEED,
    ),
}


class StressResult(BaseModel):
    """VaR/ES of a stressed series next to the unstressed base."""

    model_config = ConfigDict(frozen=True)

    scenario: StressScenario
    stressed: List[VarEsResult]
    base: List[VarEsResult]

    def var_change(self, confidence: float) -> float:
        """Stressed minus base VaR at the given confidence (negative = worse)."""
        return _at_confidence(self.stressed, confidence).var - _at_confidence(self.base, confidence).var


def _at_confidence(results: List[VarEsResult], confidence: float) -> VarEsResult:
    for r in results:
        if np.isclose(r.confidence_level, confidence):
            return r
    raise InputError(f"No result at confidence {confidence}")


def _coerce_mode(mode: Union[StressMode, str]) -> StressMode:
    try:
        return StressMode(mode)
    except ValueError:
        valid = [m.value for m in StressMode]
        raise InputError(f"Unknown stress mode: {mode}. Use one of {valid}") from None


def apply_stress_scenario(
    series: ReturnSeries,
    volatility_multiplier: float,
    mean_shift: float,
    mode: Union[StressMode, str] = StressMode.RESCALE,
    seed: int = DEFAULT_STRESS_SEED,
    name: Optional[str] = None,
) -> ReturnSeries:
    """Transform a return series under a stress scenario.

    Args:
        series: Base return series (percent)
        volatility_multiplier: Scale applied to returns (rescale) or to sigma
            (resample); must be positive
        mean_shift: Added to every return (rescale) or to mu (resample)
        mode: StressMode.RESCALE or StressMode.RESAMPLE
        seed: Seed for the resample draw
        name: Name of the stressed series (defaults to the base name)

    Returns:
        Stressed ReturnSeries on the same dates

    Raises:
        InputError: Non-positive or non-finite multiplier, unknown mode
        InsufficientDataError: Resampling a series with fewer than 2 observations
    """
    mode = _coerce_mode(mode)

    if not np.isfinite(volatility_multiplier) or volatility_multiplier <= 0:
        raise InputError(f"Volatility multiplier must be positive, got {volatility_multiplier}")
    if not np.isfinite(mean_shift):
        raise InputError(f"Mean shift must be finite, got {mean_shift}")

    returns = series.data.to_numpy()

    if mode == StressMode.RESCALE:
        stressed = returns * volatility_multiplier + mean_shift
    else:
        if len(series) < 2:
            raise InsufficientDataError(
                f"Need at least 2 observations to resample, got {len(series)}"
            )
        mu = float(np.mean(returns))
        sigma = float(np.std(returns, ddof=1))
        rng = np.random.default_rng(seed)
        stressed = rng.normal(
            loc=mu + mean_shift,
            scale=sigma * volatility_multiplier,
            size=len(returns),
        )

    logger.info(
        "apply_stress_scenario: applied",
        series=series.name,
        mode=mode.value,
        volatility_multiplier=volatility_multiplier,
        mean_shift=mean_shift,
    )

    return series.with_values(stressed, name=name)


def run_stress_scenario(
    series: ReturnSeries,
    scenario: StressScenario,
    confidence_levels: Iterable[float] = SUPPORTED_CONFIDENCE_LEVELS,
) -> StressResult:
    """Historical VaR/ES of the base and the stressed series."""
    confidence_levels = tuple(confidence_levels)

    stressed_series = apply_stress_scenario(
        series,
        volatility_multiplier=scenario.volatility_multiplier,
        mean_shift=scenario.mean_shift,
        mode=scenario.mode,
        seed=scenario.seed,
        name=f"{series.name}:{scenario.name}",
    )

    base = [estimate_var_es(series, c, VarMethod.HISTORICAL) for c in confidence_levels]
    stressed = [
        estimate_var_es(stressed_series, c, VarMethod.HISTORICAL) for c in confidence_levels
    ]

    return StressResult(scenario=scenario, stressed=stressed, base=base)


def run_stress_scenarios(
    series: ReturnSeries,
    scenarios: Optional[Iterable[StressScenario]] = None,
    confidence_levels: Iterable[float] = SUPPORTED_CONFIDENCE_LEVELS,
) -> List[StressResult]:
    """Run the base case followed by every scenario.

    Args:
        series: Base return series
        scenarios: Scenarios to run (defaults to STRESS_SCENARIOS)
        confidence_levels: Confidence levels to evaluate

    Returns:
        List of StressResult, the unstressed base case first
    """
    if scenarios is None:
        scenarios = STRESS_SCENARIOS.values()
    confidence_levels = tuple(confidence_levels)

    logger.info("run_stress_scenarios: starting all scenarios", series=series.name)

    results = [
        run_stress_scenario(series, scenario, confidence_levels)
        for scenario in [BASE_SCENARIO, *scenarios]
    ]

    logger.info(
        "run_stress_scenarios: complete",
        series=series.name,
        num_scenarios=len(results),
    )

    return results


def stress_frame(results: Iterable[StressResult]) -> pd.DataFrame:
    """One row per scenario with stressed VaR/ES columns ("VaR (95%)", ...)."""
    rows = {}
    for result in results:
        row = {}
        for r in result.stressed:
            pct = f"{r.confidence_level:.0%}"
            row[f"VaR ({pct})"] = r.var
            row[f"ES ({pct})"] = r.es
        rows[result.scenario.name] = row

    frame = pd.DataFrame.from_dict(rows, orient="index")
    frame.index.name = "scenario"
    return frame
