"""
portfolio_optimizer/config.py
-----------------------------
Shared financial configuration constants.

Tunable parameters for the optimizers, the constraint enforcer and the
quality scorer live here.  Classification tables (which symbols count as
bond funds, the pairwise correlation table, return caps) are data, not
parameters, and live in :mod:`portfolio_optimizer.classification`.
"""

# ---------------------------------------------------------------------------
# Risk-free rate
# ---------------------------------------------------------------------------
# Annual risk-free rate in percent, used as the Sharpe Ratio hurdle.
# Approximate 3-month US T-Bill yield.

RISK_FREE_RATE: float = 4.5   # 4.5% p.a.

# ---------------------------------------------------------------------------
# Constraint enforcer
# ---------------------------------------------------------------------------
# Per-asset bounds applied to the analytic optimizer weights.
#
#   * Portfolios of up to SMALL_PORTFOLIO_SIZE assets get a 10% floor,
#     larger ones 8%.
#   * MAX_SINGLE_ASSET caps any single position of the optimal and
#     minimum-variance portfolios.

MAX_SINGLE_ASSET: float = 0.40
MIN_ALLOCATION_SMALL: float = 0.10
MIN_ALLOCATION_LARGE: float = 0.08
SMALL_PORTFOLIO_SIZE: int = 4
MAX_CONSTRAINT_ITERATIONS: int = 15

# Merit used to redistribute clipped excess weight:
#   max(MERIT_SHARPE_FLOOR, sharpe) * 10000 + return * 100 + index**2 * 0.1
MERIT_SHARPE_FLOOR: float = 0.01

# Uniqueness defense: alternating nudge per rank position.
UNIQUENESS_NUDGE: float = 0.003
MAX_UNIQUENESS_PASSES: int = 5
# Closest two distinct-profile weights may sit after the final spacing pass
# (fraction; just over one displayed 0.1% step).
UNIQUENESS_MIN_GAP: float = 0.0011

# ---------------------------------------------------------------------------
# Covariance regularization
# ---------------------------------------------------------------------------
# Applied to the optimal-portfolio covariance when the asset set falls in
# the "high" correlation tier.

SHRINKAGE_FACTOR: float = 0.3            # off-diagonal multiplier
SHRINKAGE_IDENTITY_SCALAR: float = 0.01  # diagonal multiplier is 1 + this

# Pivots smaller than this are skipped by the Gauss-Jordan kernel.
SINGULAR_PIVOT_EPS: float = 1e-10

# ---------------------------------------------------------------------------
# Correlation bounds and tiers
# ---------------------------------------------------------------------------

CORRELATION_FLOOR: float = -0.30
CORRELATION_CEILING: float = 0.95
DEFAULT_PAIR_CORRELATION: float = 0.40
SAME_SECTOR_BONUS: float = 0.20
SIMILAR_BETA_BONUS: float = 0.05
SIMILAR_BETA_THRESHOLD: float = 0.3

MODERATE_CORRELATION: float = 0.50   # >= this → moderate
HIGH_CORRELATION: float = 0.60       # >  this → high
EXTREME_CORRELATION: float = 0.75    # >  this → extreme (frontier blocked)

# ---------------------------------------------------------------------------
# Quality score
# ---------------------------------------------------------------------------
# No real portfolio is perfect: the composite never exceeds the ceiling.

QUALITY_SCORE_CEILING: int = 95

QUALITY_WEIGHTS: dict = {
    "sharpe":          0.40,
    "correlation":     0.30,
    "diversification": 0.20,
    "maturity":        0.10,
}

DIVERSIFICATION_WEIGHTS: dict = {
    "sector":     0.35,
    "market_cap": 0.25,
    "asset_type": 0.25,
    "liquidity":  0.15,
}

# ---------------------------------------------------------------------------
# Validation tolerances
# ---------------------------------------------------------------------------

ALLOCATION_SUM_TOLERANCE: float = 0.1   # percentage points
RISK_ORDER_TOLERANCE: float = 0.5       # percentage points
RETURN_ORDER_TOLERANCE: float = 0.5     # percentage points
SHARPE_ORDER_TOLERANCE: float = 0.1     # Sharpe units
ALLOCATION_DISPLAY_DECIMALS: int = 1    # percent precision for uniqueness
