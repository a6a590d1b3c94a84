"""
portfolio_optimizer/quality_engine.py
-------------------------------------
Composite 0–95 portfolio quality score.

Four sub-scores, each on a 0–100 scale, are blended with
``QUALITY_WEIGHTS``:

    Component         Weight   Driven by
    ---------------   ------   ------------------------------------------
    Sharpe            0.40     mean per-asset Sharpe, spread adjustment
    Correlation       0.30     mean pairwise estimated correlation
    Diversification   0.20     sector / cap-tier / asset-type HHI, liquidity
    Maturity          0.10     weight in speculative assets, diversifiers

The composite is rounded half-up and clamped to ``[0, 95]``.  Warnings are
returned as data, in a fixed order: Sharpe, correlation, speculative
exposure, concentration, asset count, single sector.

Design contract:
  - Stateless; every call rebuilds its own correlation matrix
  - Never raises on well-formed assets; NaN never leaks into the result
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from portfolio_optimizer.classification import (
    DEFAULT_POLICY,
    ClassificationPolicy,
    asset_type_bucket,
    is_diversifier,
    is_highly_liquid,
    is_speculative,
    market_cap_tier,
)
from portfolio_optimizer.config import (
    DIVERSIFICATION_WEIGHTS,
    EXTREME_CORRELATION,
    HIGH_CORRELATION,
    MODERATE_CORRELATION,
    QUALITY_SCORE_CEILING,
    QUALITY_WEIGHTS,
    RISK_FREE_RATE,
)
from portfolio_optimizer.correlation_engine import CorrelationEngine
from portfolio_optimizer.enums import ConfidenceLevel, CorrelationTier, QualityBand
from portfolio_optimizer.financial_math import average_correlation, herfindahl_index, sharpe_ratio
from portfolio_optimizer.models import Asset, QualityScore

# Score → band, checked top-down
_BANDS = [
    (80, QualityBand.EXCEPTIONAL, "Institutional-quality diversification and risk management"),
    (65, QualityBand.STRONG,      "Well-constructed with good diversification"),
    (45, QualityBand.ACCEPTABLE,  "Moderate quality with room for improvement"),
    (25, QualityBand.WEAK,        "Significant risks - consider rebalancing"),
    (0,  QualityBand.POOR,        "High-risk portfolio - educational exploration only"),
]

# Diversifier weight at or above this earns the maturity bonus
_DIVERSIFIER_BONUS_WEIGHT = 0.15


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def correlation_tier(avg_correlation: float) -> Tuple[CorrelationTier, ConfidenceLevel]:
    """Bucket an average correlation into (tier, confidence)."""
    if avg_correlation > EXTREME_CORRELATION:
        return CorrelationTier.EXTREME, ConfidenceLevel.BLOCKED
    if avg_correlation > HIGH_CORRELATION:
        return CorrelationTier.HIGH, ConfidenceLevel.LOW
    if avg_correlation >= MODERATE_CORRELATION:
        return CorrelationTier.MODERATE, ConfidenceLevel.MEDIUM
    return CorrelationTier.LOW, ConfidenceLevel.HIGH


def quality_band(score: int) -> Tuple[QualityBand, str]:
    for threshold, band, explanation in _BANDS:
        if score >= threshold:
            return band, explanation
    return _BANDS[-1][1], _BANDS[-1][2]


class QualityEngine:
    """
    Score an asset set, optionally under a specific weighting.

    Entry point::

        quality = QualityEngine.score(assets)                 # equal weight
        quality = QualityEngine.score(assets, [0.5, 0.3, 0.2])
    """

    # ------------------------------------------------------------------ #
    #  Public entry point
    # ------------------------------------------------------------------ #

    @staticmethod
    def score(
        assets: Sequence[Asset],
        weights: Optional[Sequence[float]] = None,
        policy: ClassificationPolicy = DEFAULT_POLICY,
        risk_free_rate: float = RISK_FREE_RATE,
    ) -> QualityScore:
        """
        Parameters
        ----------
        assets:
            Non-empty asset list.
        weights:
            Fractions aligned with *assets*.  Ignored (equal weight used)
            when missing or of the wrong length.
        """
        n = len(assets)
        if n == 0:
            raise ValueError("Cannot score an empty asset list.")

        if weights is not None and len(weights) == n:
            w = [float(x) for x in weights]
        else:
            w = [1.0 / n] * n

        sharpes = [sharpe_ratio(a.expected_return, a.risk, risk_free_rate) for a in assets]
        avg_sharpe = sum(sharpes) / n
        min_sharpe, max_sharpe = min(sharpes), max(sharpes)

        avg_corr = average_correlation(CorrelationEngine.correlation_matrix(assets, policy))

        sharpe_score = QualityEngine._sharpe_score(avg_sharpe, max_sharpe - min_sharpe)
        corr_score = QualityEngine._correlation_score(avg_corr)
        diversification, diversity = QualityEngine._diversification(assets, w, policy)
        speculative_ratio = sum(wi for a, wi in zip(assets, w) if is_speculative(a, policy))
        diversifier_weight = sum(wi for a, wi in zip(assets, w) if is_diversifier(a, policy))
        maturity = QualityEngine._maturity_score(speculative_ratio, diversifier_weight)

        raw = (
            sharpe_score * QUALITY_WEIGHTS["sharpe"]
            + corr_score * QUALITY_WEIGHTS["correlation"]
            + diversification * QUALITY_WEIGHTS["diversification"]
            + maturity * QUALITY_WEIGHTS["maturity"]
        )
        final = max(0, min(QUALITY_SCORE_CEILING, round_half_up(raw)))

        band, explanation = quality_band(final)
        tier, confidence = correlation_tier(avg_corr)

        warnings, justification = QualityEngine._warnings(
            assets,
            w,
            avg_sharpe=avg_sharpe,
            avg_correlation=avg_corr,
            speculative_ratio=speculative_ratio,
            scores=(sharpe_score, corr_score, diversification, maturity),
        )

        return QualityScore(
            quality_score=final,
            quality_band=band,
            band_explanation=explanation,
            avg_sharpe=avg_sharpe,
            avg_correlation=avg_corr,
            correlation_tier=tier,
            confidence_level=confidence,
            sharpe_range=(min_sharpe, max_sharpe),
            speculative_ratio=speculative_ratio,
            warnings=warnings,
            score_justification=justification,
            components={
                "sharpe":          round_half_up(sharpe_score),
                "correlation":     round_half_up(corr_score),
                "diversification": round_half_up(diversification),
                "maturity":        round_half_up(maturity),
            },
            diversity_metrics=diversity,
        )

    # ------------------------------------------------------------------ #
    #  Sub-scores
    # ------------------------------------------------------------------ #

    @staticmethod
    def _sharpe_score(avg_sharpe: float, spread: float) -> float:
        if avg_sharpe < -0.2:
            score = 5
        elif avg_sharpe < -0.1:
            score = 15
        elif avg_sharpe < 0:
            score = 30
        elif avg_sharpe < 0.2:
            score = 45
        elif avg_sharpe < 0.4:
            score = 60
        elif avg_sharpe < 0.6:
            score = 75
        elif avg_sharpe < 0.8:
            score = 85
        else:
            score = 95

        # Dispersion gives the optimizer something to work with
        if spread > 0.5:
            score += 5
        elif spread < 0.15:
            score -= 10
        return float(max(0, min(100, score)))

    @staticmethod
    def _correlation_score(avg_correlation: float) -> float:
        for bound, score in ((0.2, 100), (0.3, 90), (0.4, 80), (0.5, 65),
                             (0.6, 45), (0.7, 25), (0.75, 10)):
            if avg_correlation < bound:
                return float(score)
        return 0.0

    @staticmethod
    def _diversification(
        assets: Sequence[Asset],
        w: List[float],
        policy: ClassificationPolicy,
    ) -> Tuple[float, Dict[str, int]]:
        sectors: Dict[str, float] = defaultdict(float)
        tiers: Dict[str, float] = defaultdict(float)
        types: Dict[str, float] = defaultdict(float)
        liquid = 0.0

        for asset, weight in zip(assets, w):
            sectors[asset.sector or "Unknown"] += weight
            tiers[market_cap_tier(asset).value] += weight
            types[asset_type_bucket(asset, policy)] += weight
            if is_highly_liquid(asset, policy):
                liquid += weight

        sector_div = (1 - herfindahl_index(list(sectors.values()))) * 100
        cap_div = (1 - herfindahl_index(list(tiers.values()))) * 100
        type_div = (1 - herfindahl_index(list(types.values()))) * 100
        liquidity = 40 + liquid * 60

        score = (
            sector_div * DIVERSIFICATION_WEIGHTS["sector"]
            + cap_div * DIVERSIFICATION_WEIGHTS["market_cap"]
            + type_div * DIVERSIFICATION_WEIGHTS["asset_type"]
            + liquidity * DIVERSIFICATION_WEIGHTS["liquidity"]
        )
        metrics = {
            "sector_diversity":     round_half_up(sector_div),
            "market_cap_diversity": round_half_up(cap_div),
            "asset_type_diversity": round_half_up(type_div),
            "unique_sectors":       len(sectors),
            "unique_market_caps":   sum(1 for v in tiers.values() if v > 0),
        }
        return score, metrics

    @staticmethod
    def _maturity_score(speculative_ratio: float, diversifier_weight: float) -> float:
        if speculative_ratio > 0.8:
            score = 10
        elif speculative_ratio > 0.6:
            score = 30
        elif speculative_ratio > 0.4:
            score = 50
        elif speculative_ratio > 0.2:
            score = 70
        elif speculative_ratio > 0.1:
            score = 85
        else:
            score = 95

        if diversifier_weight >= _DIVERSIFIER_BONUS_WEIGHT:
            score = min(100, score + 10)
        return float(score)

    # ------------------------------------------------------------------ #
    #  Warnings and justification
    # ------------------------------------------------------------------ #

    @staticmethod
    def _warnings(
        assets: Sequence[Asset],
        w: List[float],
        avg_sharpe: float,
        avg_correlation: float,
        speculative_ratio: float,
        scores: Tuple[float, float, float, float],
    ) -> Tuple[List[str], str]:
        sharpe_score, corr_score, diversification, maturity = scores
        warnings: List[str] = []
        reasons: List[str] = []

        def penalty(score: float, weight: float) -> int:
            return round_half_up((100 - score) * weight)

        # Sharpe
        if avg_sharpe < 0:
            warnings.append("Negative risk-adjusted returns - portfolio expected to underperform risk-free rate")
            warnings.append("CRITICAL: Reconsider asset selection or reduce speculative exposure")
            reasons.append(f"Negative Sharpe (-{penalty(sharpe_score, 0.4)} pts)")
        elif avg_sharpe < 0.15:
            warnings.append("Low Sharpe ratio (<0.15) - poor risk-adjusted performance")
            reasons.append(f"Low Sharpe (-{penalty(sharpe_score, 0.4)} pts)")

        # Correlation
        if avg_correlation > 0.85:
            warnings.append("Extreme correlation (>85%) - assets move nearly in lockstep, eliminating diversification")
            warnings.append("STRONG RECOMMENDATION: Add uncorrelated assets (bonds, gold, utilities, international)")
            reasons.append(f"Extreme correlation (-{penalty(corr_score, 0.3)} pts)")
        elif avg_correlation > EXTREME_CORRELATION:
            warnings.append("Very high correlation (>75%) - limited diversification benefit")
            warnings.append("Consider adding uncorrelated assets to improve risk-adjusted returns")
            reasons.append(f"Very high correlation (-{penalty(corr_score, 0.3)} pts)")
        elif avg_correlation > HIGH_CORRELATION:
            warnings.append("High correlation - diversification benefits are reduced")
            reasons.append(f"High correlation (-{penalty(corr_score, 0.3)} pts)")

        # Speculative exposure
        if speculative_ratio >= 0.95:
            warnings.append("Portfolio dominated by speculative/unprofitable assets (>95%)")
            warnings.append("High volatility expected - risk of severe drawdowns")
            warnings.append("Consider balancing with established blue-chip stocks or index funds")
            reasons.append(f"100% speculative (-{penalty(maturity, 0.1)} pts)")
        elif speculative_ratio >= 0.70:
            warnings.append(
                f"High speculative exposure ({speculative_ratio * 100:.0f}%) increases portfolio fragility"
            )
            warnings.append("Recommend adding profitable companies with proven business models")
            reasons.append(f"High speculative exposure (-{penalty(maturity, 0.1)} pts)")
        elif speculative_ratio >= 0.50:
            warnings.append(
                f"Moderate speculative allocation ({speculative_ratio * 100:.0f}%) - monitor closely"
            )

        # Concentration
        if diversification < 40:
            hhi = herfindahl_index(w)
            if hhi > 0.60:
                warnings.append("Severe concentration risk - single-asset outcomes dominate portfolio")
            elif hhi > 0.40:
                warnings.append("High concentration - portfolio heavily dependent on few positions")
            reasons.append(f"Poor diversification (-{penalty(diversification, 0.2)} pts)")

        # Asset count
        n = len(assets)
        if n < 3:
            warnings.append("Fewer than 3 assets - insufficient diversification")
        else:
            known = {a.sector for a in assets if a.sector and a.sector != "Unknown"}
            if len(known) == 1:
                warnings.append(f"All assets from {next(iter(known))} sector - sector concentration risk")

        if reasons:
            justification = ", ".join(reasons)
        else:
            justification = (
                "Score reflects balance of all factors: "
                f"Sharpe={round_half_up(sharpe_score)}, "
                f"Correlation={round_half_up(corr_score)}, "
                f"Diversification={round_half_up(diversification)}, "
                f"Maturity={round_half_up(maturity)}"
            )
        return warnings, justification
