"""
portfolio_optimizer/validation_engine.py
----------------------------------------
Cross-portfolio validation and the allocation-integrity gate.

``validate`` never raises: correlation alerts and ordering inconsistencies
come back as :class:`ValidationIssue` data.  ``check_allocation_integrity``
is the one blocking check.  It raises :class:`AllocationIntegrityError`
when a portfolio's allocations do not sum to 100 or when assets with
distinct metrics ended up on identical displayed allocations.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from portfolio_optimizer.config import (
    ALLOCATION_SUM_TOLERANCE,
    EXTREME_CORRELATION,
    HIGH_CORRELATION,
    MODERATE_CORRELATION,
    RETURN_ORDER_TOLERANCE,
    RISK_FREE_RATE,
    RISK_ORDER_TOLERANCE,
    SHARPE_ORDER_TOLERANCE,
)
from portfolio_optimizer.constraint_engine import allocation_key
from portfolio_optimizer.diagnostics import Diagnostics
from portfolio_optimizer.enums import Severity
from portfolio_optimizer.exceptions import AllocationIntegrityError
from portfolio_optimizer.models import Asset, Portfolio, ValidationIssue, ValidationResult

logger = logging.getLogger(__name__)

# Spreads below these make the asset set too homogeneous to diversify
LOW_DIVERSITY_RETURN_SPREAD = 2.0
LOW_DIVERSITY_RISK_SPREAD = 5.0


class ValidationEngine:
    """Stateless validator for a finished optimization run."""

    @staticmethod
    def validate(
        optimal: Portfolio,
        minimum_variance: Portfolio,
        maximum_return: Portfolio,
        assets: Sequence[Asset],
        avg_correlation: float,
    ) -> ValidationResult:
        """
        Tiered correlation alerts plus non-blocking consistency checks.

        Only average correlation above 0.75 yields a critical error; it
        disables the frontier comparison but not the portfolios themselves.
        """
        result = ValidationResult()
        pct = f"{avg_correlation * 100:.0f}%"

        if avg_correlation > EXTREME_CORRELATION:
            result.critical_errors.append(ValidationIssue(
                type="extreme_correlation",
                message="Efficient frontier disabled due to extreme asset similarity",
                severity=Severity.CRITICAL,
                detail=(
                    f"Average correlation: {pct}. MPT requires diversification. "
                    "You can still view individual metrics, projections, and scenario analysis."
                ),
                recoverable=False,
            ))
        elif avg_correlation > HIGH_CORRELATION:
            result.warnings.append(ValidationIssue(
                type="high_correlation",
                message=(
                    f"High asset correlation ({pct}). Stabilization applied - "
                    "results should be interpreted with caution."
                ),
                severity=Severity.HIGH,
            ))
        elif avg_correlation >= MODERATE_CORRELATION:
            result.warnings.append(ValidationIssue(
                type="moderate_correlation",
                message=f"Moderate asset correlation ({pct}). Diversification benefits are limited.",
                severity=Severity.MEDIUM,
            ))

        portfolios = (optimal, minimum_variance, maximum_return)
        min_risk = min(p.risk for p in portfolios)
        max_ret = max(p.expected_return for p in portfolios)
        max_sharpe = max(p.sharpe_ratio for p in portfolios)

        if minimum_variance.risk > min_risk + RISK_ORDER_TOLERANCE:
            result.warnings.append(ValidationIssue(
                type="risk_ordering",
                message=(
                    f"Minimum Variance portfolio risk ({minimum_variance.risk:.1f}%) is not the "
                    "absolute minimum. This can occur with highly correlated assets."
                ),
                severity=Severity.MEDIUM,
            ))

        if maximum_return.expected_return < max_ret - RETURN_ORDER_TOLERANCE:
            result.warnings.append(ValidationIssue(
                type="return_ordering",
                message=(
                    f"Maximum Return portfolio ({maximum_return.expected_return:.1f}%) may not be "
                    "fully optimized. Consider reviewing allocations."
                ),
                severity=Severity.MEDIUM,
            ))

        if optimal.sharpe_ratio < max_sharpe - SHARPE_ORDER_TOLERANCE:
            result.warnings.append(ValidationIssue(
                type="sharpe_ordering",
                message="Sharpe ratio ordering suggests portfolio constraints may be affecting optimization.",
                severity=Severity.LOW,
            ))

        returns = [a.expected_return for a in assets]
        risks = [a.risk for a in assets]
        return_spread = max(returns) - min(returns)
        risk_spread = max(risks) - min(risks)
        if return_spread < LOW_DIVERSITY_RETURN_SPREAD or risk_spread < LOW_DIVERSITY_RISK_SPREAD:
            result.warnings.append(ValidationIssue(
                type="low_diversity",
                message=(
                    f"Assets show limited variation (return spread: {return_spread:.1f}%, "
                    f"risk spread: {risk_spread:.1f}%). Diversification potential is "
                    "constrained by asset selection."
                ),
                severity=Severity.MEDIUM,
            ))

        return result

    # ------------------------------------------------------------------ #
    #  Allocation integrity (blocking)
    # ------------------------------------------------------------------ #

    @staticmethod
    def check_allocation_integrity(
        portfolio: Portfolio,
        assets: Sequence[Asset],
        portfolio_name: str = "Portfolio",
        risk_free_rate: float = RISK_FREE_RATE,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        """
        Raise unless *portfolio* is safe to display.

        Raises
        ------
        AllocationIntegrityError
            * allocations sum outside ``100 ± 0.1``
            * every asset has a distinct (return, risk, Sharpe) signature
              but two or more allocations coincide at 1-decimal precision.
              A single-asset 100% portfolio is exempt from this half.
        """
        symbols = list(portfolio.allocations)
        values = list(portfolio.allocations.values())

        total = sum(values)
        if abs(total - 100.0) > ALLOCATION_SUM_TOLERANCE:
            raise AllocationIntegrityError(
                portfolio_name,
                f"allocations sum to {total:.2f}% (expected 100%)",
            )

        if any(abs(v - 100.0) < 0.01 for v in values):
            return

        groups: Dict[str, List[str]] = {}
        for symbol, value in zip(symbols, values):
            groups.setdefault(allocation_key(value), []).append(symbol)

        signatures = {a.signature(risk_free_rate) for a in assets}
        if len(groups) < len(values) and len(signatures) == len(values):
            duplicates = {k: v for k, v in groups.items() if len(v) > 1}
            raise AllocationIntegrityError(
                portfolio_name,
                f"{len(values) - len(groups)} duplicate allocations despite unique asset metrics",
                duplicate_groups=duplicates,
            )

        ValidationEngine._check_top_sharpe(portfolio, assets, portfolio_name, risk_free_rate, diagnostics)

    @staticmethod
    def _check_top_sharpe(portfolio, assets, portfolio_name, risk_free_rate, diagnostics) -> None:
        """Soft check: the two best-Sharpe assets should hold sizeable positions."""
        if len(assets) < 2:
            return
        ranked = sorted(assets, key=lambda a: a.sharpe(risk_free_rate), reverse=True)
        second_largest = sorted(portfolio.allocations.values(), reverse=True)[1]

        for asset in ranked[:2]:
            allocation = portfolio.allocations.get(asset.symbol, 0.0)
            if allocation < second_largest * 0.7:
                message = (
                    f"{portfolio_name}: {asset.symbol} has Sharpe {asset.sharpe(risk_free_rate):.3f} "
                    f"but allocation {allocation:.1f}% is low"
                )
                if diagnostics is not None:
                    diagnostics.warning("integrity", message, portfolio=portfolio_name, symbol=asset.symbol)
                else:
                    logger.warning(message)
