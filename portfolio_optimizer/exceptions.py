"""
portfolio_optimizer/exceptions.py
---------------------------------
Error taxonomy.

Only structural problems raise.  Numerical degradation is recovered inside
the optimizers and quality / correlation warnings are returned as data.
"""

from __future__ import annotations

from typing import Dict, List, Optional


class PortfolioOptimizerError(Exception):
    """Base class for every error raised by the engine."""


class InvalidAssetError(PortfolioOptimizerError, ValueError):
    """The asset list cannot be optimized (empty, duplicate symbol, risk <= 0...)."""


class AllocationIntegrityError(PortfolioOptimizerError):
    """
    A finished portfolio failed the allocation-integrity check.

    The caller must not display the portfolio.  ``duplicate_groups`` maps a
    display allocation (e.g. ``"12.3"``) to the symbols that share it.
    """

    def __init__(
        self,
        portfolio_name: str,
        message: str,
        duplicate_groups: Optional[Dict[str, List[str]]] = None,
    ):
        super().__init__(f"{portfolio_name}: {message}")
        self.portfolio_name = portfolio_name
        self.duplicate_groups = duplicate_groups or {}
