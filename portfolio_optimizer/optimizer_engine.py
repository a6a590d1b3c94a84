"""
portfolio_optimizer/optimizer_engine.py
---------------------------------------
Closed-form mean-variance optimizers.

    tangency          w ∝ Σ⁻¹(μ − r_f·1)     (maximum Sharpe)
    minimum_variance  w ∝ Σ⁻¹·1              (global minimum variance)
    maximum_return    100% in the highest-return asset (corner solution)

The analytic solves never raise on bad numerics.  Each one produces a
:class:`SolveOutcome`; a degraded outcome switches the optimizer to its
fallback weighting (equal weight for tangency, inverse-risk for minimum
variance) and marks the returned ``Portfolio`` as ``degraded``.

Portfolio risk is always measured against the *unshrunk* estimated
correlation matrix, so the three portfolios stay comparable even when the
tangency solve ran on a regularized covariance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from portfolio_optimizer.classification import DEFAULT_POLICY, ClassificationPolicy
from portfolio_optimizer.config import MAX_SINGLE_ASSET, RISK_FREE_RATE
from portfolio_optimizer.constraint_engine import ConstraintEngine
from portfolio_optimizer.correlation_engine import CorrelationEngine
from portfolio_optimizer.diagnostics import Diagnostics
from portfolio_optimizer.enums import CorrelationTier
from portfolio_optimizer.financial_math import (
    portfolio_expected_return,
    portfolio_risk,
    sharpe_ratio,
)
from portfolio_optimizer.linalg import gauss_jordan
from portfolio_optimizer.models import Asset, Portfolio

logger = logging.getLogger(__name__)

_NORMALIZER_EPS = 1e-12


@dataclass(frozen=True)
class SolveOutcome:
    """
    Result of one analytic solve.

    ``weights`` is ``None`` exactly when ``degraded`` is True; ``reason``
    then says why the closed form could not be trusted.
    """
    weights: Optional[np.ndarray]
    degraded: bool = False
    reason: Optional[str] = None

    @classmethod
    def failed(cls, reason: str) -> "SolveOutcome":
        logger.debug("Analytic solve degraded: %s", reason)
        return cls(weights=None, degraded=True, reason=reason)


class OptimizerEngine:
    """Stateless optimizers returning :class:`Portfolio` objects."""

    # ------------------------------------------------------------------ #
    #  Tangency (maximum Sharpe)
    # ------------------------------------------------------------------ #

    @staticmethod
    def tangency(
        assets: Sequence[Asset],
        policy: ClassificationPolicy = DEFAULT_POLICY,
        risk_free_rate: float = RISK_FREE_RATE,
        max_single_asset: float = MAX_SINGLE_ASSET,
        correlation_tier: CorrelationTier = CorrelationTier.LOW,
        apply_constraints: bool = True,
        correlation: Optional[np.ndarray] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> Portfolio:
        """
        Maximum-Sharpe portfolio.

        When *correlation_tier* is ``HIGH`` the solve runs on a shrunk copy
        of the covariance matrix and the result is always flagged
        ``constraints_applied``.
        """
        trace = diagnostics if diagnostics is not None else Diagnostics()
        if correlation is None:
            correlation = CorrelationEngine.correlation_matrix(assets, policy)
        covariance = CorrelationEngine.covariance_matrix(assets, policy, correlation)

        stabilized = correlation_tier is CorrelationTier.HIGH
        if stabilized:
            trace.info("tangency", "Applying covariance shrinkage for high correlation")
            covariance = CorrelationEngine.shrink(covariance)

        excess = np.array(
            [(a.expected_return - risk_free_rate) / 100.0 for a in assets], dtype=float
        )
        outcome = OptimizerEngine.solve(covariance, excess)

        if outcome.degraded:
            trace.warning(
                "fallback",
                f"Tangency solve degraded ({outcome.reason}); using equal weights",
                portfolio="tangency",
                reason=outcome.reason,
            )
            weights = np.full(len(assets), 1.0 / len(assets))
        else:
            weights = outcome.weights

        weights, constrained = OptimizerEngine._constrain(
            weights, assets, apply_constraints, max_single_asset, risk_free_rate
        )

        return OptimizerEngine._build_portfolio(
            assets,
            weights,
            correlation,
            risk_free_rate,
            constraints_applied=constrained or stabilized,
            degraded=outcome.degraded,
        )

    # ------------------------------------------------------------------ #
    #  Global minimum variance
    # ------------------------------------------------------------------ #

    @staticmethod
    def minimum_variance(
        assets: Sequence[Asset],
        policy: ClassificationPolicy = DEFAULT_POLICY,
        risk_free_rate: float = RISK_FREE_RATE,
        max_single_asset: float = MAX_SINGLE_ASSET,
        apply_constraints: bool = True,
        correlation: Optional[np.ndarray] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> Portfolio:
        """Global minimum-variance portfolio; inverse-risk weights on failure."""
        trace = diagnostics if diagnostics is not None else Diagnostics()
        if correlation is None:
            correlation = CorrelationEngine.correlation_matrix(assets, policy)
        covariance = CorrelationEngine.covariance_matrix(assets, policy, correlation)

        outcome = OptimizerEngine.solve(covariance, np.ones(len(assets)))

        if outcome.degraded:
            trace.warning(
                "fallback",
                f"Minimum-variance solve degraded ({outcome.reason}); using inverse-risk weights",
                portfolio="minimum_variance",
                reason=outcome.reason,
            )
            inverse_risk = np.array([1.0 / a.risk for a in assets], dtype=float)
            weights = inverse_risk / inverse_risk.sum()
        else:
            weights = outcome.weights

        weights, constrained = OptimizerEngine._constrain(
            weights, assets, apply_constraints, max_single_asset, risk_free_rate,
            preference="low_risk",
        )

        return OptimizerEngine._build_portfolio(
            assets,
            weights,
            correlation,
            risk_free_rate,
            constraints_applied=constrained,
            degraded=outcome.degraded,
        )

    # ------------------------------------------------------------------ #
    #  Maximum return (corner solution)
    # ------------------------------------------------------------------ #

    @staticmethod
    def maximum_return(
        assets: Sequence[Asset],
        policy: ClassificationPolicy = DEFAULT_POLICY,
        risk_free_rate: float = RISK_FREE_RATE,
        correlation: Optional[np.ndarray] = None,
    ) -> Portfolio:
        """
        100% in the highest expected return.

        Ties go to the riskier asset; a full tie keeps the first one listed.
        Every other symbol is present with a 0% allocation.
        """
        if correlation is None:
            correlation = CorrelationEngine.correlation_matrix(assets, policy)

        best = OptimizerEngine.top_return_index(assets)
        weights = np.zeros(len(assets))
        weights[best] = 1.0

        return OptimizerEngine._build_portfolio(assets, weights, correlation, risk_free_rate)

    @staticmethod
    def top_return_index(assets: Sequence[Asset]) -> int:
        best = 0
        for i in range(1, len(assets)):
            candidate, leader = assets[i], assets[best]
            if candidate.expected_return > leader.expected_return or (
                candidate.expected_return == leader.expected_return
                and candidate.risk > leader.risk
            ):
                best = i
        return best

    # ------------------------------------------------------------------ #
    #  Analytic solve
    # ------------------------------------------------------------------ #

    @staticmethod
    def solve(covariance: np.ndarray, rhs: np.ndarray) -> SolveOutcome:
        """
        Normalized, long-only ``Σ⁻¹ · rhs``.

        Steps
        -----
        1. Invert Σ; any skipped pivot makes the outcome degraded.
        2. ``w = Σ⁻¹·rhs / Σ(Σ⁻¹·rhs)``.
        3. Floor negatives at 0 and renormalize.
        """
        inverse, skipped = gauss_jordan(covariance)
        if skipped:
            return SolveOutcome.failed(f"near-singular pivot in column(s) {skipped}")

        product = inverse @ np.asarray(rhs, dtype=float)
        if not np.all(np.isfinite(product)):
            return SolveOutcome.failed("non-finite weights")

        normalizer = float(product.sum())
        if abs(normalizer) < _NORMALIZER_EPS:
            return SolveOutcome.failed("vanishing normalizer")

        weights = np.maximum(product / normalizer, 0.0)
        total = float(weights.sum())
        if total <= 0 or not np.isfinite(total):
            return SolveOutcome.failed("all weights floored to zero")

        return SolveOutcome(weights=weights / total)

    # ------------------------------------------------------------------ #
    #  Private helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _constrain(
        weights, assets, apply_constraints, max_single_asset, risk_free_rate, preference="sharpe"
    ):
        if not apply_constraints or len(assets) < 2:
            return np.asarray(weights, dtype=float), False
        result = ConstraintEngine.apply(
            list(weights),
            assets,
            max_single_asset=max_single_asset,
            risk_free_rate=risk_free_rate,
            preference=preference,
        )
        return np.array(result.weights, dtype=float), result.constraints_applied

    @staticmethod
    def _build_portfolio(
        assets: Sequence[Asset],
        weights: np.ndarray,
        correlation: np.ndarray,
        risk_free_rate: float,
        constraints_applied: bool = False,
        degraded: bool = False,
    ) -> Portfolio:
        returns = [a.expected_return for a in assets]
        risks = [a.risk for a in assets]

        expected_return = portfolio_expected_return(weights, returns)
        risk = portfolio_risk(weights, risks, correlation)

        return Portfolio(
            allocations={a.symbol: float(w) * 100.0 for a, w in zip(assets, weights)},
            expected_return=expected_return,
            risk=risk,
            sharpe_ratio=sharpe_ratio(expected_return, risk, risk_free_rate),
            constraints_applied=constraints_applied,
            degraded=degraded,
        )
