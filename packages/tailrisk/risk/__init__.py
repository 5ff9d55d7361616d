"""
Tail Risk Analytics Engine

Tail-risk, volatility-clustering and dependence analytics for a portfolio
against a benchmark. Pure computation modules operating on ReturnSeries,
pandas DataFrames and numpy arrays.

Modules:
- errors: Error taxonomy
- series: ReturnSeries container, alignment checks, weighted portfolios
- metrics: Historical, parametric and Monte Carlo VaR / ES
- garch: GARCH(1,1) maximum-likelihood fit and volatility summary
- copula: Clayton copula and lower tail dependence
- drawdown: Drawdown paths, recovery gaps, drawdown divergence
- covariance: Sample and Ledoit-Wolf covariance estimation
- decomposition: Marginal and percentage risk contributions
- stress: Volatility / mean stress scenarios
- statistics: Descriptive and performance statistics
"""

# Errors
from .errors import (
    RiskEngineError,
    InputError,
    InsufficientDataError,
    ConvergenceError,
    DegenerateDependenceError,
)

# Series module
from .series import (
    ReturnSeries,
    require_aligned,
    returns_frame,
    validate_weights,
    portfolio_returns,
)

# Metrics module
from .metrics import (
    VarMethod,
    VarEsResult,
    historical_var_es,
    parametric_var_es,
    monte_carlo_var_es,
    estimate_var_es,
    build_var_es_table,
    var_es_frame,
)

# GARCH module
from .garch import (
    GarchFit,
    GarchVolatilitySummary,
    fit_garch,
    conditional_volatility,
    annualize_volatility,
    summarize_garch_volatility,
)

# Copula module
from .copula import (
    CopulaFit,
    pseudo_observations,
    pseudo_observation_frame,
    clayton_theta_from_tau,
    clayton_lower_tail_dependence,
    fit_clayton_copula,
)

# Drawdown module
from .drawdown import (
    DrawdownPath,
    RecoveryGap,
    DrawdownComparison,
    compute_drawdown,
    zero_drawdown_dates,
    find_recovery_gaps,
    compare_drawdowns,
)

# Covariance module
from .covariance import (
    sample_cov,
    ledoit_wolf_cov,
    estimate_covariance,
)

# Decomposition module
from .decomposition import (
    RiskContribution,
    portfolio_volatility,
    marginal_contribution_to_risk,
    component_contribution_to_risk,
    pct_contribution_to_risk,
    decompose_risk,
)

# Stress testing module
from .stress import (
    StressMode,
    StressScenario,
    StressResult,
    STRESS_SCENARIOS,
    apply_stress_scenario,
    run_stress_scenario,
    run_stress_scenarios,
    stress_frame,
)

# Statistics module
from .statistics import (
    DescriptiveStats,
    describe_returns,
    performance_table,
)

__all__ = [
    # Errors
    'RiskEngineError',
    'InputError',
    'InsufficientDataError',
    'ConvergenceError',
    'DegenerateDependenceError',
    # Series
    'ReturnSeries',
    'require_aligned',
    'returns_frame',
    'validate_weights',
    'portfolio_returns',
    # Metrics
    'VarMethod',
    'VarEsResult',
    'historical_var_es',
    'parametric_var_es',
    'monte_carlo_var_es',
    'estimate_var_es',
    'build_var_es_table',
    'var_es_frame',
    # GARCH
    'GarchFit',
    'GarchVolatilitySummary',
    'fit_garch',
    'conditional_volatility',
    'annualize_volatility',
    'summarize_garch_volatility',
    # Copula
    'CopulaFit',
    'pseudo_observations',
    'pseudo_observation_frame',
    'clayton_theta_from_tau',
    'clayton_lower_tail_dependence',
    'fit_clayton_copula',
    # Drawdown
    'DrawdownPath',
    'RecoveryGap',
    'DrawdownComparison',
    'compute_drawdown',
    'zero_drawdown_dates',
    'find_recovery_gaps',
    'compare_drawdowns',
    # Covariance
    'sample_cov',
    'ledoit_wolf_cov',
    'estimate_covariance',
    # Decomposition
    'RiskContribution',
    'portfolio_volatility',
    'marginal_contribution_to_risk',
    'component_contribution_to_risk',
    'pct_contribution_to_risk',
    'decompose_risk',
    # Stress testing
    'StressMode',
    'StressScenario',
    'StressResult',
    'STRESS_SCENARIOS',
    'apply_stress_scenario',
    'run_stress_scenario',
    'run_stress_scenarios',
    'stress_frame',
    # Statistics
    'DescriptiveStats',
    'describe_returns',
    'performance_table',
]
