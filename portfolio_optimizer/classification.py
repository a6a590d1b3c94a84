"""
portfolio_optimizer/classification.py
-------------------------------------
Asset classification policy.

The symbol whitelists, the empirical pairwise correlation table and the
per-class return caps are *data*.  They are bundled into an immutable
:class:`ClassificationPolicy` that every engine accepts as a parameter, so
the policy can be swapped or updated without touching the algorithms::

    policy = dataclasses.replace(
        DEFAULT_POLICY,
        bond_funds=DEFAULT_POLICY.bond_funds | {"BNDX"},
    )
    optimize_all_portfolios(assets, policy=policy)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional

from portfolio_optimizer.enums import AssetClass, AssetType, MarketCapTier
from portfolio_optimizer.models import Asset

# ---------------------------------------------------------------------------
# Default tables
# ---------------------------------------------------------------------------

_T = AssetType

# Unordered type pair → base correlation (empirically calibrated)
_DEFAULT_CORRELATIONS = {
    # Fund vs fund
    (_T.BROAD_MARKET_FUND, _T.BROAD_MARKET_FUND):     0.95,
    (_T.BROAD_MARKET_FUND, _T.BOND_FUND):            -0.10,
    (_T.BROAD_MARKET_FUND, _T.COMMODITY_FUND):        0.05,
    (_T.BROAD_MARKET_FUND, _T.REAL_ESTATE_FUND):      0.60,
    (_T.BOND_FUND, _T.BOND_FUND):                     0.90,
    (_T.BOND_FUND, _T.COMMODITY_FUND):               -0.15,
    (_T.BOND_FUND, _T.REAL_ESTATE_FUND):              0.10,
    (_T.COMMODITY_FUND, _T.COMMODITY_FUND):           0.85,
    (_T.COMMODITY_FUND, _T.REAL_ESTATE_FUND):         0.15,
    (_T.REAL_ESTATE_FUND, _T.REAL_ESTATE_FUND):       0.80,

    # Fund vs stock
    (_T.BROAD_MARKET_FUND, _T.LARGE_CAP_STOCK):       0.35,
    (_T.BROAD_MARKET_FUND, _T.MID_SMALL_CAP_STOCK):   0.30,
    (_T.BROAD_MARKET_FUND, _T.SPECULATIVE_STOCK):     0.20,
    (_T.BOND_FUND, _T.LARGE_CAP_STOCK):              -0.05,
    (_T.BOND_FUND, _T.MID_SMALL_CAP_STOCK):          -0.10,
    (_T.BOND_FUND, _T.SPECULATIVE_STOCK):            -0.15,
    (_T.COMMODITY_FUND, _T.LARGE_CAP_STOCK):          0.10,
    (_T.COMMODITY_FUND, _T.MID_SMALL_CAP_STOCK):      0.15,
    (_T.COMMODITY_FUND, _T.SPECULATIVE_STOCK):        0.20,
    (_T.REAL_ESTATE_FUND, _T.LARGE_CAP_STOCK):        0.40,
    (_T.REAL_ESTATE_FUND, _T.MID_SMALL_CAP_STOCK):    0.35,
    (_T.REAL_ESTATE_FUND, _T.SPECULATIVE_STOCK):      0.30,

    # Stock vs stock
    (_T.LARGE_CAP_STOCK, _T.LARGE_CAP_STOCK):         0.50,
    (_T.LARGE_CAP_STOCK, _T.MID_SMALL_CAP_STOCK):     0.45,
    (_T.LARGE_CAP_STOCK, _T.SPECULATIVE_STOCK):       0.40,
    (_T.MID_SMALL_CAP_STOCK, _T.MID_SMALL_CAP_STOCK): 0.55,
    (_T.MID_SMALL_CAP_STOCK, _T.SPECULATIVE_STOCK):   0.50,
    (_T.SPECULATIVE_STOCK, _T.SPECULATIVE_STOCK):     0.65,
}

_DEFAULT_RETURN_CAPS = {
    AssetClass.BROAD_MARKET_FUND: 12.0,   # long-run S&P 500 average
    AssetClass.BOND_FUND:          6.0,
    AssetClass.COMMODITY_FUND:     8.0,
    AssetClass.REAL_ESTATE_FUND:  10.0,   # REIT average
    AssetClass.BLUE_CHIP_STOCK:   14.0,
    AssetClass.SPECULATIVE_STOCK: 20.0,
    AssetClass.GROWTH_STOCK:      16.0,
}


def _pair_table(pairs: dict) -> Mapping[FrozenSet[AssetType], float]:
    return MappingProxyType({frozenset(k): v for k, v in pairs.items()})


@dataclass(frozen=True)
class ClassificationPolicy:
    """
    Classification data used by the correlation estimator, the return caps
    and the quality scorer.

    Market-cap thresholds are in **billions**.
    """
    broad_market_funds: FrozenSet[str] = frozenset({"SPY", "QQQ", "VTI", "VOO", "IVV", "DIA", "IWM"})
    bond_funds: FrozenSet[str] = frozenset({"BND", "AGG", "TLT", "LQD", "SHY"})
    commodity_funds: FrozenSet[str] = frozenset({"GLD", "SLV", "IAU", "DBC"})
    real_estate_funds: FrozenSet[str] = frozenset({"VNQ", "IYR"})

    # Highly liquid instruments (in addition to index funds and > 10B caps)
    liquid_symbols: FrozenSet[str] = frozenset({"SPY", "QQQ", "VTI", "VOO", "BND", "AGG", "GLD"})
    # Low-correlation diversifiers rewarded by the maturity score
    diversifier_symbols: FrozenSet[str] = frozenset({"BND", "AGG", "TLT", "GLD", "VNQ", "VXUS"})

    pair_correlations: Mapping[FrozenSet[AssetType], float] = field(
        default_factory=lambda: _pair_table(_DEFAULT_CORRELATIONS)
    )
    return_caps: Mapping[AssetClass, float] = field(
        default_factory=lambda: MappingProxyType(dict(_DEFAULT_RETURN_CAPS))
    )

    large_cap_threshold: float = 50.0        # > this → large-cap / blue-chip
    speculative_cap_threshold: float = 1.0   # < this → speculative
    liquid_cap_threshold: float = 10.0       # > this → highly liquid
    speculative_beta: float = 1.8            # |beta| > this → speculative (return caps)

    def base_correlation(self, first: AssetType, second: AssetType, default: float) -> float:
        return self.pair_correlations.get(frozenset((first, second)), default)

    def return_cap(self, asset_class: AssetClass) -> Optional[float]:
        return self.return_caps.get(asset_class)


DEFAULT_POLICY = ClassificationPolicy()


# ---------------------------------------------------------------------------
# Market capitalization
# ---------------------------------------------------------------------------

_CAP_PATTERN = re.compile(r"^\s*\$?\s*([0-9]*\.?[0-9]+)\s*([KMBT]?)", re.IGNORECASE)
_CAP_UNITS = {"": 1.0, "K": 1e-6, "M": 1e-3, "B": 1.0, "T": 1e3}


def parse_market_cap(market_cap: Optional[str]) -> Optional[float]:
    """
    Parse a display market cap into **billions**.

    ``"750M"`` → 0.75, ``"45.2B"`` → 45.2, ``"2.9T"`` → 2900.0.
    A bare number is read as billions.  Returns ``None`` when the value is
    missing or unparseable.
    """
    if market_cap is None:
        return None
    match = _CAP_PATTERN.match(str(market_cap))
    if not match:
        return None
    return float(match.group(1)) * _CAP_UNITS[match.group(2).upper()]


def market_cap_tier(asset: Asset) -> MarketCapTier:
    billions = parse_market_cap(asset.market_cap)
    if billions is None:
        return MarketCapTier.UNKNOWN
    if billions < 0.3:
        return MarketCapTier.MICRO
    if billions < 2:
        return MarketCapTier.SMALL
    if billions < 10:
        return MarketCapTier.MID
    if billions < 50:
        return MarketCapTier.LARGE
    return MarketCapTier.MEGA


# ---------------------------------------------------------------------------
# Asset classification
# ---------------------------------------------------------------------------

def is_profitable(asset: Asset) -> bool:
    return asset.pe_ratio is not None and asset.pe_ratio > 0


def fund_type(asset: Asset, policy: ClassificationPolicy = DEFAULT_POLICY) -> Optional[AssetType]:
    """Return the fund ``AssetType`` for *asset*, or ``None`` for a stock."""
    symbol = asset.symbol.upper()
    if asset.is_index_fund or symbol in policy.broad_market_funds:
        return AssetType.BROAD_MARKET_FUND
    if symbol in policy.bond_funds:
        return AssetType.BOND_FUND
    if symbol in policy.commodity_funds:
        return AssetType.COMMODITY_FUND
    if symbol in policy.real_estate_funds:
        return AssetType.REAL_ESTATE_FUND
    return None


def is_speculative(asset: Asset, policy: ClassificationPolicy = DEFAULT_POLICY) -> bool:
    """
    Unprofitable (P/E absent or <= 0) or sub-billion stock.

    Funds are never speculative.
    """
    if fund_type(asset, policy) is not None:
        return False
    billions = parse_market_cap(asset.market_cap)
    small = billions is not None and billions < policy.speculative_cap_threshold
    return not is_profitable(asset) or small


def classify_asset(asset: Asset, policy: ClassificationPolicy = DEFAULT_POLICY) -> AssetType:
    """Coarse type used to look up base correlations."""
    kind = fund_type(asset, policy)
    if kind is not None:
        return kind
    if is_speculative(asset, policy):
        return AssetType.SPECULATIVE_STOCK
    billions = parse_market_cap(asset.market_cap)
    if billions is not None and billions > policy.large_cap_threshold:
        return AssetType.LARGE_CAP_STOCK
    return AssetType.MID_SMALL_CAP_STOCK


def asset_class(asset: Asset, policy: ClassificationPolicy = DEFAULT_POLICY) -> AssetClass:
    """Asset class used for return caps."""
    kind = fund_type(asset, policy)
    if kind is not None:
        return AssetClass[kind.name]

    billions = parse_market_cap(asset.market_cap)
    if billions is not None and billions > policy.large_cap_threshold and is_profitable(asset):
        return AssetClass.BLUE_CHIP_STOCK
    if is_speculative(asset, policy) or abs(asset.beta) > policy.speculative_beta:
        return AssetClass.SPECULATIVE_STOCK
    return AssetClass.GROWTH_STOCK


def asset_type_bucket(asset: Asset, policy: ClassificationPolicy = DEFAULT_POLICY) -> str:
    """``"bond"``, ``"fund"`` or ``"stock"`` for the asset-type diversity index."""
    kind = fund_type(asset, policy)
    if kind is AssetType.BOND_FUND:
        return "bond"
    if kind is not None:
        return "fund"
    return "stock"


def is_highly_liquid(asset: Asset, policy: ClassificationPolicy = DEFAULT_POLICY) -> bool:
    if asset.is_index_fund or asset.symbol.upper() in policy.liquid_symbols:
        return True
    billions = parse_market_cap(asset.market_cap)
    return billions is not None and billions > policy.liquid_cap_threshold


def is_diversifier(asset: Asset, policy: ClassificationPolicy = DEFAULT_POLICY) -> bool:
    return asset.symbol.upper() in policy.diversifier_symbols
