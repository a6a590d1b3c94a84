"""
portfolio_optimizer/correlation_engine.py
-----------------------------------------
Correlation estimation and covariance construction from asset metadata.

No return history is available to the engine, so pairwise correlation is
*estimated*: each asset is classified into a coarse type, a base
correlation is looked up for the type pair, then nudged for sector and
beta similarity.

Design contract:
  - Deterministic and stateless (all methods are @staticmethod)
  - Matrices are returned as fresh ``numpy`` arrays; nothing is cached
    or mutated after construction
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from portfolio_optimizer.classification import DEFAULT_POLICY, ClassificationPolicy, classify_asset
from portfolio_optimizer.config import (
    CORRELATION_CEILING,
    CORRELATION_FLOOR,
    DEFAULT_PAIR_CORRELATION,
    SAME_SECTOR_BONUS,
    SHRINKAGE_FACTOR,
    SHRINKAGE_IDENTITY_SCALAR,
    SIMILAR_BETA_BONUS,
    SIMILAR_BETA_THRESHOLD,
)
from portfolio_optimizer.models import Asset


class CorrelationEngine:
    """
    Pairwise correlation estimator and covariance builder.

    ``estimate``            – one pair, in [-0.30, 0.95]
    ``correlation_matrix``  – n×n, exactly 1.0 on the diagonal
    ``covariance_matrix``   – n×n, (σ/100)² on the diagonal
    ``shrink``              – regularized *copy* of a covariance matrix
    """

    # ------------------------------------------------------------------ #
    #  Pairwise estimate
    # ------------------------------------------------------------------ #

    @staticmethod
    def estimate(
        first: Asset,
        second: Asset,
        policy: ClassificationPolicy = DEFAULT_POLICY,
    ) -> float:
        """
        Estimate the correlation between two distinct assets.

        Steps
        -----
        1. Base correlation from the type-pair table (0.40 if unseen).
        2. +0.20 when both are stocks in the same known sector.
        3. +0.05 when ``|beta_1 - beta_2| < 0.3``.
        4. Clamp to ``[-0.30, 0.95]``.
        """
        type1 = classify_asset(first, policy)
        type2 = classify_asset(second, policy)

        correlation = policy.base_correlation(type1, type2, DEFAULT_PAIR_CORRELATION)

        # Sector similarity only matters between individual stocks
        if not type1.is_fund and not type2.is_fund:
            if first.sector == second.sector and first.sector not in ("Unknown", ""):
                correlation += SAME_SECTOR_BONUS

        if abs(first.beta - second.beta) < SIMILAR_BETA_THRESHOLD:
            correlation += SIMILAR_BETA_BONUS

        return max(CORRELATION_FLOOR, min(CORRELATION_CEILING, correlation))

    # ------------------------------------------------------------------ #
    #  Matrices
    # ------------------------------------------------------------------ #

    @staticmethod
    def correlation_matrix(
        assets: Sequence[Asset],
        policy: ClassificationPolicy = DEFAULT_POLICY,
    ) -> np.ndarray:
        """Symmetric n×n estimated correlation matrix with a unit diagonal."""
        n = len(assets)
        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                value = CorrelationEngine.estimate(assets[i], assets[j], policy)
                corr[i, j] = value
                corr[j, i] = value
        return corr

    @staticmethod
    def covariance_matrix(
        assets: Sequence[Asset],
        policy: ClassificationPolicy = DEFAULT_POLICY,
        correlation: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Covariance matrix in decimal units.

        ``cov[i][i] = (σᵢ/100)²`` and ``cov[i][j] = ρᵢⱼ · σᵢ/100 · σⱼ/100``
        where σ is the asset's ``risk`` percentage.  Pass a precomputed
        *correlation* matrix to avoid estimating it twice.
        """
        if correlation is None:
            correlation = CorrelationEngine.correlation_matrix(assets, policy)
        sigma = np.array([a.risk / 100.0 for a in assets], dtype=float)
        cov = correlation * np.outer(sigma, sigma)
        np.fill_diagonal(cov, sigma ** 2)
        return cov

    @staticmethod
    def shrink(
        covariance: np.ndarray,
        shrinkage_factor: float = SHRINKAGE_FACTOR,
        identity_scalar: float = SHRINKAGE_IDENTITY_SCALAR,
    ) -> np.ndarray:
        """
        Ridge-style regularization for nearly collinear assets.

        Returns a new matrix: off-diagonal entries × *shrinkage_factor*,
        diagonal entries × (1 + *identity_scalar*).  The input is untouched.
        """
        shrunk = np.array(covariance, dtype=float) * shrinkage_factor
        np.fill_diagonal(shrunk, np.diag(covariance) * (1.0 + identity_scalar))
        return shrunk

    @staticmethod
    def correlation_from_covariance(covariance: np.ndarray) -> np.ndarray:
        """Normalise a covariance matrix back to correlations (unit diagonal)."""
        cov = np.asarray(covariance, dtype=float)
        sigma = np.sqrt(np.diag(cov))
        corr = cov / np.outer(sigma, sigma)
        np.fill_diagonal(corr, 1.0)
        return corr

    # ------------------------------------------------------------------ #
    #  Display helper
    # ------------------------------------------------------------------ #

    @staticmethod
    def to_frame(assets: Sequence[Asset], matrix: np.ndarray) -> pd.DataFrame:
        """Label an n×n matrix with the asset symbols on both axes."""
        symbols: List[str] = [a.symbol for a in assets]
        return pd.DataFrame(matrix, index=symbols, columns=symbols)
