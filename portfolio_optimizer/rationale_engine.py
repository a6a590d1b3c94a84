"""
portfolio_optimizer/rationale_engine.py
---------------------------------------
Plain-language explanations for an optimization result.

Design contract:
  - Does NOT compute weights or metrics
  - Does NOT mutate the result
  - Only interprets ``OptimizationResult`` / ``Portfolio`` output
  - Fully stateless (all methods are @staticmethod)
"""

from __future__ import annotations

from typing import Dict, List, Sequence

import pandas as pd

from portfolio_optimizer.classification import parse_market_cap
from portfolio_optimizer.config import RISK_FREE_RATE
from portfolio_optimizer.models import Asset, OptimizationResult, Portfolio


class RationaleEngine:
    """
    Per-asset allocation rationale and the CLI report.

    Entry points::

        notes = RationaleEngine.explain(assets, result.optimal_portfolio)
        print(RationaleEngine.format_for_cli(result))
    """

    # ------------------------------------------------------------------ #
    #  Per-asset rationale
    # ------------------------------------------------------------------ #

    @staticmethod
    def explain(
        assets: Sequence[Asset],
        portfolio: Portfolio,
        risk_free_rate: float = RISK_FREE_RATE,
    ) -> Dict[str, str]:
        """Map each symbol to a ``" • "``-joined rationale string."""
        return {
            asset.symbol: RationaleEngine.rationale(
                asset, portfolio.allocations.get(asset.symbol, 0.0), risk_free_rate
            )
            for asset in assets
        }

    @staticmethod
    def rationale(asset: Asset, allocation: float, risk_free_rate: float = RISK_FREE_RATE) -> str:
        """
        Explain one position.

        Parts, in order: Sharpe band, market-cap stability, beta
        sensitivity, position size (*allocation* is in percent).
        """
        parts: List[str] = []

        sharpe = asset.sharpe(risk_free_rate)
        if sharpe > 0.5:
            parts.append(f"Strong risk-adjusted returns (Sharpe: {sharpe:.2f})")
        elif sharpe > 0.2:
            parts.append(f"Moderate risk-adjusted returns (Sharpe: {sharpe:.2f})")
        else:
            parts.append(f"Lower risk-adjusted returns (Sharpe: {sharpe:.2f})")

        billions = parse_market_cap(asset.market_cap)
        if billions is not None and billions > 50:
            parts.append(f"Mega/large-cap stability ({asset.market_cap})")
        elif billions is None or billions < 1:
            parts.append(f"Small/micro-cap higher risk ({asset.market_cap or 'unknown'})")

        if asset.beta > 1.5:
            parts.append(f"High market sensitivity (β={asset.beta:.2f})")
        elif asset.beta < 0.8:
            parts.append(f"Defensive characteristics (β={asset.beta:.2f})")

        if allocation >= 25:
            parts.append("Major position for diversification balance")
        elif allocation >= 15:
            parts.append("Substantial allocation for portfolio contribution")
        elif allocation >= 8:
            parts.append("Meaningful allocation for diversification")

        return " • ".join(parts)

    # ------------------------------------------------------------------ #
    #  CLI report
    # ------------------------------------------------------------------ #

    @staticmethod
    def allocation_frame(result: OptimizationResult) -> pd.DataFrame:
        """Allocations (%) with one column per portfolio, indexed by symbol."""
        frame = pd.DataFrame({
            "Optimal":  pd.Series(result.optimal_portfolio.allocations),
            "Min Var":  pd.Series(result.minimum_variance_portfolio.allocations),
            "Max Ret":  pd.Series(result.maximum_return_portfolio.allocations),
        })
        frame.index.name = "Symbol"
        return frame.round(1)

    @staticmethod
    def format_for_cli(result: OptimizationResult) -> str:
        """
        Render the whole result as a printable report.

        Example::

            print(RationaleEngine.format_for_cli(result))
        """
        quality = result.portfolio_quality
        sections = [
            "=== Portfolio Optimization Summary ===",
            RationaleEngine._metrics_table(result),
            "",
            "--- Allocations (%) ---",
            RationaleEngine.allocation_frame(result).to_string(),
            "",
            "--- Quality ---",
            f"Score: {quality.quality_score}/100 ({quality.quality_band.value}) - {quality.band_explanation}",
            f"Correlation tier: {quality.correlation_tier.value} "
            f"(avg {quality.avg_correlation * 100:.0f}%), confidence: {quality.confidence_level.value}",
            quality.score_justification,
        ]

        if result.return_cap_adjustments:
            sections += ["", "--- Return Caps ---"]
            sections += [
                f"{adj.symbol} ({adj.asset_class}): {adj.original:.1f}% -> {adj.capped:.1f}%"
                for adj in result.return_cap_adjustments
            ]

        if result.allocation_rationale:
            sections += ["", "--- Allocation Rationale ---"]
            sections += [f"{symbol:<8} {text}" for symbol, text in result.allocation_rationale.items()]

        caveats = RationaleEngine._caveats(result)
        if caveats:
            sections += ["", "--- Warnings ---"] + caveats

        return "\n".join(sections)

    @staticmethod
    def _metrics_table(result: OptimizationResult) -> str:
        """Fixed-width table: Portfolio | Return | Risk | Sharpe."""
        lines = ["Portfolio          Return     Risk   Sharpe"]
        for name, p in (
            ("Optimal", result.optimal_portfolio),
            ("Minimum Variance", result.minimum_variance_portfolio),
            ("Maximum Return", result.maximum_return_portfolio),
        ):
            lines.append(
                f"{name:<17} {p.expected_return:>6.2f}%  {p.risk:>6.2f}%  {p.sharpe_ratio:>6.3f}"
            )
        method = result.optimal_portfolio.optimization_method
        if method:
            lines.append(f"Optimal method: {method}")
        return "\n".join(lines)

    @staticmethod
    def _caveats(result: OptimizationResult) -> List[str]:
        lines = [f"[critical] {e.message}" for e in result.validation.critical_errors]
        lines += [f"[{w.severity.value}] {w.message}" for w in result.validation.warnings]
        lines += [f"- {text}" for text in result.portfolio_quality.warnings]
        return lines
