"""
Risk Engine Errors

Error taxonomy shared by every estimator in the risk package. None of these
are retried internally; they propagate to the caller, who decides whether to
skip the asset/period or abort the run.
"""


class RiskEngineError(Exception):
    """Base class for all risk engine failures."""


class InputError(RiskEngineError, ValueError):
    """Malformed, misaligned or otherwise invalid input (caller bug)."""


class InsufficientDataError(RiskEngineError, ValueError):
    """Too few observations for the requested estimate."""


class ConvergenceError(RiskEngineError, RuntimeError):
    """Optimizer failed to reach a constrained likelihood maximum within budget."""


class DegenerateDependenceError(RiskEngineError, ValueError):
    """Non-positive dependence: the Clayton copula does not apply."""
