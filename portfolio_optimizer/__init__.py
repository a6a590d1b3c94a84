from portfolio_optimizer.classification import DEFAULT_POLICY, ClassificationPolicy
from portfolio_optimizer.diagnostics import DiagnosticEvent, Diagnostics
from portfolio_optimizer.exceptions import (
    AllocationIntegrityError,
    InvalidAssetError,
    PortfolioOptimizerError,
)
from portfolio_optimizer.models import (
    Asset,
    OptimizationResult,
    Portfolio,
    QualityScore,
    ReturnCapAdjustment,
    ValidationIssue,
    ValidationResult,
)
from portfolio_optimizer.portfolio_engine import (
    PortfolioEngine,
    calculate_quality_score,
    get_correlation_matrix,
    optimize_all_portfolios,
)

__all__ = [
    "DEFAULT_POLICY",
    "AllocationIntegrityError",
    "Asset",
    "ClassificationPolicy",
    "DiagnosticEvent",
    "Diagnostics",
    "InvalidAssetError",
    "OptimizationResult",
    "Portfolio",
    "PortfolioEngine",
    "PortfolioOptimizerError",
    "QualityScore",
    "ReturnCapAdjustment",
    "ValidationIssue",
    "ValidationResult",
    "calculate_quality_score",
    "get_correlation_matrix",
    "optimize_all_portfolios",
]
