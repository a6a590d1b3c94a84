"""
portfolio_optimizer/models.py
-----------------------------
Plain data containers passed between the engines.

Every object here is created fresh per optimization call.  ``Asset`` is
frozen: return caps produce adjusted copies instead of mutating the
caller's records.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from portfolio_optimizer.config import RISK_FREE_RATE
from portfolio_optimizer.enums import ConfidenceLevel, CorrelationTier, QualityBand, Severity
from portfolio_optimizer.exceptions import InvalidAssetError

if TYPE_CHECKING:
    from portfolio_optimizer.diagnostics import Diagnostics


def _optional_float(value, name: str, symbol: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise InvalidAssetError(f"{symbol}: {name} must be numeric (got {value!r}).")
    if math.isnan(result):
        return None
    return result


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Asset:
    """
    One candidate asset.

    ``expected_return`` and ``risk`` are annual percentages (``12.0`` means
    12%).  ``market_cap`` keeps its display encoding (``"750M"``,
    ``"45.2B"``, ``"2.9T"``); it is only parsed for tiering.
    """
    symbol: str
    expected_return: float
    risk: float
    beta: float = 1.0
    sector: str = "Unknown"
    market_cap: Optional[str] = None
    pe_ratio: Optional[float] = None
    is_index_fund: bool = False

    @classmethod
    def from_dict(cls, record: Dict) -> "Asset":
        """
        Build an ``Asset`` from a loosely-typed record.

        Accepts ``isIndexFund`` as an alias of ``is_index_fund``.  Missing
        beta defaults to 1.0 and a missing sector to ``"Unknown"``.

        Raises
        ------
        InvalidAssetError
            If ``symbol``, ``expected_return`` or ``risk`` is missing or
            non-numeric.
        """
        symbol = str(record.get("symbol") or "").strip()
        if not symbol:
            raise InvalidAssetError(f"Asset record has no symbol: {record!r}")

        expected_return = _optional_float(record.get("expected_return"), "expected_return", symbol)
        risk = _optional_float(record.get("risk"), "risk", symbol)
        if expected_return is None or risk is None:
            raise InvalidAssetError(f"{symbol}: expected_return and risk are required.")

        beta = _optional_float(record.get("beta"), "beta", symbol)
        market_cap = record.get("market_cap")
        is_index_fund = record.get("is_index_fund", record.get("isIndexFund", False))

        return cls(
            symbol=symbol,
            expected_return=expected_return,
            risk=risk,
            beta=1.0 if beta is None else beta,
            sector=str(record.get("sector") or "Unknown"),
            market_cap=None if market_cap in (None, "") else str(market_cap),
            pe_ratio=_optional_float(record.get("pe_ratio"), "pe_ratio", symbol),
            is_index_fund=_as_bool(is_index_fund),
        )

    def sharpe(self, risk_free_rate: float = RISK_FREE_RATE) -> float:
        """Stand-alone Sharpe Ratio ``(return - rf) / risk``."""
        if self.risk == 0:
            return 0.0
        return (self.expected_return - risk_free_rate) / self.risk

    def signature(self, risk_free_rate: float = RISK_FREE_RATE) -> Tuple[str, str, str]:
        """
        Return / risk / Sharpe fingerprint used to tell assets apart.

        Return and risk are compared at 2 decimals and Sharpe at 3, so
        assets differing only beyond that count as the same profile and may
        keep identical allocations.
        """
        return (
            f"{self.expected_return:.2f}",
            f"{self.risk:.2f}",
            f"{self.sharpe(risk_free_rate):.3f}",
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class Portfolio:
    """
    One optimized allocation.

    ``allocations`` maps symbol → weight in percentage points (sum 100).
    ``degraded`` is True when the analytic solve failed and a fallback
    weighting was used instead.
    """
    allocations: Dict[str, float]
    expected_return: float
    risk: float
    sharpe_ratio: float
    constraints_applied: bool = False
    degraded: bool = False
    optimization_method: Optional[str] = None
    stabilization_applied: bool = False

    def weights(self) -> List[float]:
        """Allocations as fractions in insertion (asset) order."""
        return [v / 100.0 for v in self.allocations.values()]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ReturnCapAdjustment:
    """Record of one expected return clamped to its asset-class cap."""
    symbol: str
    original: float
    capped: float
    asset_class: str
    reason: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class QualityScore:
    """Composite 0–95 portfolio quality diagnostics."""
    quality_score: int
    quality_band: QualityBand
    band_explanation: str
    avg_sharpe: float
    avg_correlation: float
    correlation_tier: CorrelationTier
    confidence_level: ConfidenceLevel
    sharpe_range: Tuple[float, float]
    speculative_ratio: float
    warnings: List[str]
    score_justification: str
    components: Dict[str, int]
    diversity_metrics: Dict[str, int]

    def to_dict(self) -> dict:
        return {
            "qualityScore":       self.quality_score,
            "qualityBand":        self.quality_band.value,
            "bandExplanation":    self.band_explanation,
            "avgSharpe":          self.avg_sharpe,
            "avgCorrelation":     self.avg_correlation,
            "correlationTier":    self.correlation_tier.value,
            "confidenceLevel":    self.confidence_level.value,
            "sharpeRange":        list(self.sharpe_range),
            "speculativeRatio":   self.speculative_ratio,
            "warnings":           list(self.warnings),
            "scoreJustification": self.score_justification,
            "components":         dict(self.components),
            "diversityMetrics":   dict(self.diversity_metrics),
        }


@dataclass
class ValidationIssue:
    type: str
    message: str
    severity: Severity
    detail: Optional[str] = None
    recoverable: bool = True

    def to_dict(self) -> dict:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data


@dataclass
class ValidationResult:
    """Cross-portfolio validation output."""
    critical_errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.critical_errors

    @property
    def can_show_frontier(self) -> bool:
        """Presentation hint: False when the frontier comparison is unreliable."""
        return not self.critical_errors

    def to_dict(self) -> dict:
        return {
            "criticalErrors":  [e.to_dict() for e in self.critical_errors],
            "warnings":        [w.to_dict() for w in self.warnings],
            "isValid":         self.is_valid,
            "canShowFrontier": self.can_show_frontier,
        }


@dataclass
class OptimizationResult:
    """Bundle returned by :func:`optimize_all_portfolios`."""
    optimal_portfolio: Portfolio
    minimum_variance_portfolio: Portfolio
    maximum_return_portfolio: Portfolio
    validation: ValidationResult
    portfolio_quality: QualityScore
    return_cap_adjustments: List[ReturnCapAdjustment]
    allocation_rationale: Dict[str, str] = field(default_factory=dict)
    diagnostics: Optional["Diagnostics"] = None

    def to_dict(self) -> dict:
        return {
            "optimal_portfolio":          self.optimal_portfolio.to_dict(),
            "minimum_variance_portfolio": self.minimum_variance_portfolio.to_dict(),
            "maximum_return_portfolio":   self.maximum_return_portfolio.to_dict(),
            "validation":                 self.validation.to_dict(),
            "portfolio_quality":          self.portfolio_quality.to_dict(),
            "return_cap_adjustments":     [a.to_dict() for a in self.return_cap_adjustments],
            "allocation_rationale":       dict(self.allocation_rationale),
        }
