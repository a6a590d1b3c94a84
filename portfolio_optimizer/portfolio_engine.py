"""
portfolio_optimizer/portfolio_engine.py
---------------------------------------
Orchestration: candidate assets → three portfolios + quality + validation.

Pipeline (one call, no shared state)::

    input check → return caps → quality score / correlation tier
        → tangency, minimum variance, maximum return
        → max-return verification → validation → rationale
        → allocation integrity (raises on failure)

Every stage is recorded on a :class:`Diagnostics` trace that is returned
with the result.

Design contract:
  - The caller's assets are never mutated (return caps work on copies)
  - Deterministic: identical input gives identical allocations
  - Only malformed input and integrity failures raise
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from portfolio_optimizer.classification import DEFAULT_POLICY, ClassificationPolicy
from portfolio_optimizer.config import MAX_SINGLE_ASSET, RISK_FREE_RATE
from portfolio_optimizer.correlation_engine import CorrelationEngine
from portfolio_optimizer.diagnostics import Diagnostics
from portfolio_optimizer.enums import CorrelationTier
from portfolio_optimizer.exceptions import AllocationIntegrityError, InvalidAssetError
from portfolio_optimizer.models import Asset, OptimizationResult, Portfolio, QualityScore
from portfolio_optimizer.optimizer_engine import OptimizerEngine
from portfolio_optimizer.quality_engine import QualityEngine
from portfolio_optimizer.rationale_engine import RationaleEngine
from portfolio_optimizer.return_caps import apply_return_caps
from portfolio_optimizer.validation_engine import ValidationEngine

logger = logging.getLogger(__name__)

AssetInput = Union[Asset, Mapping]

# Below these spreads the asset set is flagged as near-identical
SIMILARITY_RETURN_SPREAD = 2.0
SIMILARITY_RISK_SPREAD = 3.0

_METHOD_LABELS = {
    CorrelationTier.HIGH:     "Constrained (High Correlation)",
    CorrelationTier.MODERATE: "Standard (Moderate Correlation)",
}


def coerce_assets(assets: Iterable[AssetInput]) -> List[Asset]:
    """
    Normalise input records to ``Asset`` objects and reject unusable lists.

    Raises
    ------
    InvalidAssetError
        Empty list, duplicate symbol, non-finite return/risk or risk <= 0.
    """
    result = [a if isinstance(a, Asset) else Asset.from_dict(a) for a in assets]
    if not result:
        raise InvalidAssetError("At least one asset is required.")

    seen = set()
    for asset in result:
        if asset.symbol in seen:
            raise InvalidAssetError(f"Duplicate symbol: {asset.symbol}")
        seen.add(asset.symbol)

        if not math.isfinite(asset.expected_return) or not math.isfinite(asset.risk):
            raise InvalidAssetError(f"{asset.symbol}: expected_return and risk must be finite.")
        if asset.risk <= 0:
            raise InvalidAssetError(f"{asset.symbol}: risk must be positive (got {asset.risk}).")
    return result


class PortfolioEngine:
    """
    Stateless optimizer front-end bound to a policy and risk-free rate.

    Usage::

        engine = PortfolioEngine()
        result = engine.optimize(assets)
        frame = engine.correlation_frame(assets)
    """

    def __init__(
        self,
        policy: ClassificationPolicy = DEFAULT_POLICY,
        risk_free_rate: float = RISK_FREE_RATE,
        max_single_asset: float = MAX_SINGLE_ASSET,
    ):
        self.policy = policy
        self.risk_free_rate = risk_free_rate
        self.max_single_asset = max_single_asset

    # ------------------------------------------------------------------ #
    #  Public entry points
    # ------------------------------------------------------------------ #

    def optimize(
        self,
        assets: Iterable[AssetInput],
        diagnostics: Optional[Diagnostics] = None,
    ) -> OptimizationResult:
        """
        Run the full pipeline.

        Raises
        ------
        InvalidAssetError
            If the asset list is unusable.
        AllocationIntegrityError
            If a finished portfolio fails the integrity check; the result
            must not be shown.
        """
        trace = diagnostics if diagnostics is not None else Diagnostics()
        rf = self.risk_free_rate
        originals = coerce_assets(assets)
        logger.debug("Optimizing %d assets", len(originals))

        for i, a in enumerate(originals, start=1):
            trace.record(
                "input",
                f"{i}. {a.symbol}: Return={a.expected_return:.3f}%, Risk={a.risk:.3f}%, "
                f"Sharpe={a.sharpe(rf):.4f}",
                symbol=a.symbol,
            )

        capped, adjustments = apply_return_caps(originals, self.policy)
        for adj in adjustments:
            trace.info(
                "return_caps",
                f"{adj.symbol} ({adj.asset_class}): {adj.original:.1f}% -> {adj.capped:.1f}%",
                symbol=adj.symbol,
            )

        quality = QualityEngine.score(capped, policy=self.policy, risk_free_rate=rf)
        self._check_similarity(capped, trace)

        tier = quality.correlation_tier
        trace.info(
            "tier",
            f"Correlation tier {tier.value.upper()} ({quality.avg_correlation * 100:.0f}%), "
            f"confidence {quality.confidence_level.value.upper()}",
            tier=tier.value,
            avg_correlation=quality.avg_correlation,
        )

        correlation = CorrelationEngine.correlation_matrix(capped, self.policy)
        optimal = OptimizerEngine.tangency(
            capped,
            policy=self.policy,
            risk_free_rate=rf,
            max_single_asset=self.max_single_asset,
            correlation_tier=tier,
            correlation=correlation,
            diagnostics=trace,
        )
        minimum_variance = OptimizerEngine.minimum_variance(
            capped,
            policy=self.policy,
            risk_free_rate=rf,
            max_single_asset=self.max_single_asset,
            correlation=correlation,
            diagnostics=trace,
        )
        maximum_return = self._verified_maximum_return(capped, correlation, trace)

        validation = ValidationEngine.validate(
            optimal, minimum_variance, maximum_return, capped, quality.avg_correlation
        )

        if tier in _METHOD_LABELS:
            optimal.optimization_method = _METHOD_LABELS[tier]
        optimal.stabilization_applied = tier is CorrelationTier.HIGH

        self._log_uniqueness(optimal, trace)
        rationale = RationaleEngine.explain(capped, optimal, rf)

        for name, p in (("Optimal", optimal), ("Min Var", minimum_variance), ("Max Ret", maximum_return)):
            trace.info(
                "result",
                f"{name}: Return={p.expected_return:.2f}%, Risk={p.risk:.2f}%, Sharpe={p.sharpe_ratio:.3f}",
                portfolio=name,
                degraded=p.degraded,
            )
        for issue in validation.critical_errors:
            trace.warning("validation", f"{issue.type}: {issue.message}", severity=issue.severity.value)
        for issue in validation.warnings:
            trace.info("validation", f"[{issue.severity.value}] {issue.message}", severity=issue.severity.value)

        self._check_integrity(
            (
                ("Optimal Portfolio", optimal),
                ("Minimum Variance Portfolio", minimum_variance),
                ("Maximum Return Portfolio", maximum_return),
            ),
            capped,
            trace,
        )

        return OptimizationResult(
            optimal_portfolio=optimal,
            minimum_variance_portfolio=minimum_variance,
            maximum_return_portfolio=maximum_return,
            validation=validation,
            portfolio_quality=quality,
            return_cap_adjustments=adjustments,
            allocation_rationale=rationale,
            diagnostics=trace,
        )

    def correlation_matrix(self, assets: Iterable[AssetInput]) -> np.ndarray:
        """Estimated correlation matrix (no return caps applied)."""
        return CorrelationEngine.correlation_matrix(coerce_assets(assets), self.policy)

    def correlation_frame(self, assets: Iterable[AssetInput]) -> pd.DataFrame:
        """Correlation matrix labelled by symbol, for display."""
        items = coerce_assets(assets)
        return CorrelationEngine.to_frame(items, CorrelationEngine.correlation_matrix(items, self.policy))

    def quality(
        self,
        assets: Iterable[AssetInput],
        weights: Optional[Sequence[float]] = None,
    ) -> QualityScore:
        """What-if quality score for *assets* under *weights* (equal if omitted)."""
        return QualityEngine.score(
            coerce_assets(assets), weights, policy=self.policy, risk_free_rate=self.risk_free_rate
        )

    # ------------------------------------------------------------------ #
    #  Pipeline stages
    # ------------------------------------------------------------------ #

    @staticmethod
    def _check_similarity(assets: Sequence[Asset], trace: Diagnostics) -> None:
        returns = [a.expected_return for a in assets]
        risks = [a.risk for a in assets]
        return_spread = max(returns) - min(returns)
        risk_spread = max(risks) - min(risks)
        if return_spread < SIMILARITY_RETURN_SPREAD or risk_spread < SIMILARITY_RISK_SPREAD:
            trace.warning(
                "similarity",
                f"Asset similarity detected (no auto-adjustment): return spread "
                f"{return_spread:.2f}%, risk spread {risk_spread:.2f}%",
                return_spread=return_spread,
                risk_spread=risk_spread,
            )

    def _verified_maximum_return(
        self,
        assets: Sequence[Asset],
        correlation: np.ndarray,
        trace: Diagnostics,
    ) -> Portfolio:
        portfolio = OptimizerEngine.maximum_return(
            assets, policy=self.policy, risk_free_rate=self.risk_free_rate, correlation=correlation
        )
        highest = max(a.expected_return for a in assets)
        if portfolio.expected_return < highest - 0.01:
            trace.warning("max_return", "Maximum Return validation failed - forcing 100% allocation to top asset")
            top = assets[OptimizerEngine.top_return_index(assets)]
            portfolio = OptimizerEngine.maximum_return(
                [top], policy=self.policy, risk_free_rate=self.risk_free_rate
            )
            portfolio.allocations = {a.symbol: (100.0 if a is top else 0.0) for a in assets}
        return portfolio

    @staticmethod
    def _log_uniqueness(optimal: Portfolio, trace: Diagnostics) -> None:
        values = list(optimal.allocations.values())
        unique = {f"{v:.3f}" for v in values}
        trace.record(
            "uniqueness",
            f"{len(unique)}/{len(values)} unique allocations: "
            + ", ".join(f"{v:.2f}%" for v in values),
        )

    def _check_integrity(self, portfolios, assets: Sequence[Asset], trace: Diagnostics) -> None:
        for name, portfolio in portfolios:
            try:
                ValidationEngine.check_allocation_integrity(
                    portfolio, assets, name, self.risk_free_rate, diagnostics=trace
                )
            except AllocationIntegrityError as exc:
                trace.record(
                    "integrity",
                    f"Allocation integrity failure: {exc}",
                    logging.ERROR,
                    duplicate_groups=exc.duplicate_groups,
                )
                raise
            trace.record("integrity", f"{name}: allocation integrity validated")


# ---------------------------------------------------------------------------
# Module-level API
# ---------------------------------------------------------------------------

def optimize_all_portfolios(
    assets: Iterable[AssetInput],
    policy: ClassificationPolicy = DEFAULT_POLICY,
    risk_free_rate: float = RISK_FREE_RATE,
    max_single_asset: float = MAX_SINGLE_ASSET,
    diagnostics: Optional[Diagnostics] = None,
) -> OptimizationResult:
    """Optimal, minimum-variance and maximum-return portfolios for *assets*."""
    engine = PortfolioEngine(policy, risk_free_rate, max_single_asset)
    return engine.optimize(assets, diagnostics=diagnostics)


def get_correlation_matrix(
    assets: Iterable[AssetInput],
    policy: ClassificationPolicy = DEFAULT_POLICY,
) -> np.ndarray:
    return PortfolioEngine(policy).correlation_matrix(assets)


def calculate_quality_score(
    assets: Iterable[AssetInput],
    weights: Optional[Sequence[float]] = None,
    policy: ClassificationPolicy = DEFAULT_POLICY,
    risk_free_rate: float = RISK_FREE_RATE,
) -> QualityScore:
    return PortfolioEngine(policy, risk_free_rate).quality(assets, weights)
