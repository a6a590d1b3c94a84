"""
portfolio_optimizer/financial_math.py
-------------------------------------
Portfolio-level numerics shared by the optimizers and the quality scorer.

Conventions
-----------
* Returns, risks and the risk-free rate are **percentages** (12.0 = 12%).
* Weights are **fractions** summing to 1.
* ``portfolio_risk`` takes a *correlation* matrix, not a covariance matrix.

Non-finite intermediate values are sanitised to neutral fallbacks so that
these helpers never return NaN.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from portfolio_optimizer.config import RISK_FREE_RATE


def sanitize(value: float, fallback: float = 0.0) -> float:
    """Return *value*, or *fallback* when it is None, NaN or infinite."""
    if value is None:
        return fallback
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return fallback
    return value


def safe_divide(numerator: float, denominator: float, fallback: float = 0.0) -> float:
    """Division that returns *fallback* for a (near-)zero denominator."""
    num = sanitize(numerator)
    den = sanitize(denominator)
    if abs(den) < 1e-10:
        return fallback
    return sanitize(num / den, fallback)


def portfolio_expected_return(weights: Sequence[float], returns: Sequence[float]) -> float:
    """
    Weighted expected return ``E[Rp] = Σ wᵢ · rᵢ``.

    Raises
    ------
    ValueError
        If *weights* and *returns* differ in length.
    """
    if len(weights) != len(returns):
        raise ValueError(
            f"Weights and returns must have the same length "
            f"({len(weights)} vs {len(returns)})."
        )
    w = np.nan_to_num(np.asarray(weights, dtype=float))
    r = np.nan_to_num(np.asarray(returns, dtype=float))
    return sanitize(float(w @ r))


def portfolio_variance(
    weights: Sequence[float],
    risks: Sequence[float],
    correlation_matrix,
) -> float:
    """
    Portfolio variance ``σp² = Σᵢ Σⱼ wᵢ wⱼ σᵢ σⱼ ρᵢⱼ`` (in %²).
    """
    w = np.nan_to_num(np.asarray(weights, dtype=float))
    s = np.nan_to_num(np.asarray(risks, dtype=float), nan=1.0)
    rho = np.nan_to_num(np.asarray(correlation_matrix, dtype=float))
    ws = w * s
    return sanitize(float(ws @ rho @ ws))


def portfolio_risk(
    weights: Sequence[float],
    risks: Sequence[float],
    correlation_matrix,
) -> float:
    """Portfolio volatility in percent: √(portfolio variance)."""
    variance = portfolio_variance(weights, risks, correlation_matrix)
    # Floating-point error can produce tiny negative variances
    return math.sqrt(max(0.0, variance))


def sharpe_ratio(
    expected_return: float,
    risk: float,
    risk_free_rate: float = RISK_FREE_RATE,
) -> float:
    """``(return - rf) / risk``; 0.0 when risk is effectively zero."""
    return safe_divide(sanitize(expected_return) - sanitize(risk_free_rate), risk, 0.0)


def herfindahl_index(weights: Sequence[float]) -> float:
    """Concentration ``HHI = Σ wᵢ²`` (1.0 = single asset)."""
    w = np.asarray(weights, dtype=float)
    return float(np.sum(w * w))


def average_correlation(correlation_matrix) -> float:
    """Mean of the strictly upper-triangular entries; 0.0 below two assets."""
    rho = np.asarray(correlation_matrix, dtype=float)
    n = rho.shape[0] if rho.ndim == 2 else 0
    if n <= 1:
        return 0.0
    upper = rho[np.triu_indices(n, k=1)]
    return float(upper.mean())
