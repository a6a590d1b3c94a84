"""
portfolio_optimizer/return_caps.py
----------------------------------
Long-term mean-reversion caps on expected returns.

Every asset is bucketed into an ``AssetClass``; an expected return above
that class's cap is clamped.  Adjusted assets are *copies*; each clamp is
reported as a :class:`ReturnCapAdjustment` so the caller can show it.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import List, Sequence, Tuple

from portfolio_optimizer.classification import DEFAULT_POLICY, ClassificationPolicy, asset_class
from portfolio_optimizer.models import Asset, ReturnCapAdjustment

logger = logging.getLogger(__name__)


def apply_return_caps(
    assets: Sequence[Asset],
    policy: ClassificationPolicy = DEFAULT_POLICY,
) -> Tuple[List[Asset], List[ReturnCapAdjustment]]:
    """
    Clamp expected returns to their asset-class caps.

    Returns
    -------
    (adjusted_assets, adjustments)
        ``adjusted_assets`` keeps the input order; untouched assets are
        returned as-is (they are immutable).
    """
    adjusted: List[Asset] = []
    adjustments: List[ReturnCapAdjustment] = []

    for asset in assets:
        klass = asset_class(asset, policy)
        cap = policy.return_cap(klass)

        if cap is None or asset.expected_return <= cap:
            adjusted.append(asset)
            continue

        adjustments.append(
            ReturnCapAdjustment(
                symbol=asset.symbol,
                original=asset.expected_return,
                capped=cap,
                asset_class=klass.value,
                reason=f"{klass.value} max: {cap:g}% (long-term mean reversion)",
            )
        )
        adjusted.append(dataclasses.replace(asset, expected_return=cap))
        logger.debug("Capped %s return %.2f%% -> %g%%", asset.symbol, asset.expected_return, cap)

    return adjusted, adjustments
