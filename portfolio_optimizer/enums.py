from enum import Enum


class AssetType(Enum):
    """Coarse asset type used for correlation estimation."""
    BROAD_MARKET_FUND = "broad_market_fund"
    BOND_FUND = "bond_fund"
    COMMODITY_FUND = "commodity_fund"
    REAL_ESTATE_FUND = "real_estate_fund"
    SPECULATIVE_STOCK = "speculative_stock"
    LARGE_CAP_STOCK = "large_cap_stock"
    MID_SMALL_CAP_STOCK = "mid_small_cap_stock"

    @property
    def is_fund(self) -> bool:
        return self in _FUND_TYPES


_FUND_TYPES = frozenset({
    AssetType.BROAD_MARKET_FUND,
    AssetType.BOND_FUND,
    AssetType.COMMODITY_FUND,
    AssetType.REAL_ESTATE_FUND,
})


class AssetClass(Enum):
    """Asset class used for return caps (long-term mean reversion)."""
    BROAD_MARKET_FUND = "Broad Market Fund"
    BOND_FUND = "Bond Fund"
    COMMODITY_FUND = "Commodity Fund"
    REAL_ESTATE_FUND = "Real Estate Fund"
    BLUE_CHIP_STOCK = "Blue-chip Stock"
    SPECULATIVE_STOCK = "Speculative Stock"
    GROWTH_STOCK = "Growth Stock"


class MarketCapTier(Enum):
    """Market-capitalization bucket used by the diversification score."""
    MICRO = "micro"   # < 300M
    SMALL = "small"   # 300M – 2B
    MID = "mid"       # 2B – 10B
    LARGE = "large"   # 10B – 50B
    MEGA = "mega"     # >= 50B
    UNKNOWN = "unknown"


class CorrelationTier(Enum):
    """Bucketed average pairwise correlation."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    EXTREME = "extreme"


class ConfidenceLevel(Enum):
    """How far optimizer output can be trusted for a correlation tier."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    BLOCKED = "blocked"


class QualityBand(Enum):
    """Qualitative label for the composite quality score."""
    EXCEPTIONAL = "Exceptional"
    STRONG = "Strong"
    ACCEPTABLE = "Acceptable"
    WEAK = "Weak"
    POOR = "Poor"


class Severity(Enum):
    """Validation issue severity."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
