"""
portfolio_optimizer/constraint_engine.py
----------------------------------------
Realism bounds for analytic optimizer weights.

Unconstrained mean-variance solutions routinely put 0% or 90% into a single
asset.  The enforcer applies, in order:

  1. **Floor**   – every asset gets at least ``min_allocation``
                   (10% for ≤ 4 assets, 8% otherwise).
  2. **Cap**     – weights above ``max_single_asset`` are clipped and the
                   excess is redistributed to assets still below the cap,
                   in proportion to a *merit* score rather than current
                   weight (proportional redistribution hands identical
                   increments to assets with similar weights).  Skipped
                   when ``n * max_single_asset < 1``.
  3. **Uniqueness defense** – groups of assets with different risk/return
                   profiles that still end on the same allocation are
                   pulled apart with small alternating nudges.  If ties
                   survive the nudge passes and every asset has its own
                   profile, a final spacing pass puts neighbouring weights
                   more than one display step apart.  Genuinely identical
                   assets keep identical allocations.

Design contract:
  - Never mutates the caller's weight list
  - Deterministic (tie-breaks use the asset index, never randomness)
  - Output weights are non-negative and sum to exactly 1
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence

from portfolio_optimizer.config import (
    ALLOCATION_DISPLAY_DECIMALS,
    MAX_CONSTRAINT_ITERATIONS,
    MAX_SINGLE_ASSET,
    MAX_UNIQUENESS_PASSES,
    MERIT_SHARPE_FLOOR,
    MIN_ALLOCATION_LARGE,
    MIN_ALLOCATION_SMALL,
    RISK_FREE_RATE,
    SMALL_PORTFOLIO_SIZE,
    UNIQUENESS_MIN_GAP,
    UNIQUENESS_NUDGE,
)
from portfolio_optimizer.models import Asset

_EPS = 1e-12

# Which assets win a uniqueness tie: best Sharpe, or lowest risk
_PREFERENCES = ("sharpe", "low_risk")


def allocation_key(percent: float, decimals: int = ALLOCATION_DISPLAY_DECIMALS) -> str:
    """Display form of an allocation in percent, e.g. ``12.3``."""
    return f"{percent:.{decimals}f}"


@dataclass
class ConstraintResult:
    weights: List[float]
    constraints_applied: bool


class ConstraintEngine:
    """
    Apply floor / cap / uniqueness constraints to a weight vector.

    All methods are static; the engine has no state.
    """

    # ------------------------------------------------------------------ #
    #  Public entry point
    # ------------------------------------------------------------------ #

    @staticmethod
    def apply(
        weights: Sequence[float],
        assets: Sequence[Asset],
        max_single_asset: float = MAX_SINGLE_ASSET,
        risk_free_rate: float = RISK_FREE_RATE,
        enforce_uniqueness: bool = True,
        preference: str = "sharpe",
    ) -> ConstraintResult:
        """
        Constrain *weights* (fractions, aligned with *assets*).

        The floor only holds after phase 1.  Cap redistribution, uniqueness
        nudges and the final renormalization can leave a weight below
        ``min_allocation`` (or a little above the cap); outputs are only
        guaranteed non-negative and summing to 1.

        Parameters
        ----------
        weights:
            Raw optimizer weights; expected to be non-negative.
        assets:
            The assets the weights belong to, same order.
        max_single_asset:
            Cap for any single position.  When ``n * cap < 1`` the cap is
            infeasible and phase 2 is skipped, keeping the floored weights.
        risk_free_rate:
            Percent, used for the merit Sharpe.
        enforce_uniqueness:
            Run phase 3.  Disable to observe the raw floor/cap result.
        preference:
            ``"sharpe"`` gives the larger share of a broken tie to the
            better risk-adjusted asset; ``"low_risk"`` to the less volatile
            one (used for minimum variance).

        Returns
        -------
        ConstraintResult
            ``weights`` summing to 1 and ``constraints_applied`` set when any
            phase changed the input.

        Raises
        ------
        ValueError
            If *weights* and *assets* differ in length, or *preference* is
            unknown.
        """
        n = len(weights)
        if n != len(assets):
            raise ValueError(
                f"Got {n} weights for {len(assets)} assets."
            )
        if preference not in _PREFERENCES:
            raise ValueError(f"Unknown preference {preference!r}; use one of {_PREFERENCES}.")
        if n == 0:
            return ConstraintResult([], False)

        w = [float(x) for x in weights]

        w, floored = ConstraintEngine._apply_floor(w)
        capped = False
        if n * max_single_asset >= 1.0 - _EPS:
            w, capped = ConstraintEngine._apply_cap(w, assets, max_single_asset, risk_free_rate)

        nudged = False
        if enforce_uniqueness:
            rank = ConstraintEngine._rank_key(assets, risk_free_rate, preference)
            w, nudged = ConstraintEngine._enforce_uniqueness(w, assets, risk_free_rate, rank)

        w = ConstraintEngine._normalize([max(0.0, x) for x in w])
        return ConstraintResult(w, floored or capped or nudged)

    @staticmethod
    def min_allocation(n: int) -> float:
        """Per-asset floor for a portfolio of *n* assets."""
        return MIN_ALLOCATION_SMALL if n <= SMALL_PORTFOLIO_SIZE else MIN_ALLOCATION_LARGE

    @staticmethod
    def merit(asset: Asset, index: int, risk_free_rate: float = RISK_FREE_RATE) -> float:
        """
        Compound merit used to share out clipped excess weight.

        Sharpe dominates, expected return breaks near-ties, and the
        ``index²`` term guarantees a deterministic ordering.
        """
        sharpe = max(MERIT_SHARPE_FLOOR, asset.sharpe(risk_free_rate))
        compound = sharpe * 10000 + asset.expected_return * 100 + index * index * 0.1
        # Large negative returns can push the compound below zero
        return max(compound, 1e-6)

    # ------------------------------------------------------------------ #
    #  Phases
    # ------------------------------------------------------------------ #

    @staticmethod
    def _apply_floor(w: List[float]):
        floor = ConstraintEngine.min_allocation(len(w))
        changed = False
        for i, value in enumerate(w):
            if value < floor:
                w[i] = floor
                changed = True
        return ConstraintEngine._normalize(w), changed

    @staticmethod
    def _apply_cap(
        w: List[float],
        assets: Sequence[Asset],
        cap: float,
        risk_free_rate: float,
    ):
        n = len(w)
        changed = False

        for _ in range(MAX_CONSTRAINT_ITERATIONS):
            needs_adjustment = False

            for i in range(n):
                if w[i] <= cap + _EPS:
                    continue

                needs_adjustment = True
                changed = True
                excess = w[i] - cap
                w[i] = cap

                eligible = [j for j in range(n) if j != i and w[j] < cap - _EPS]
                if not eligible:
                    continue

                merits = [ConstraintEngine.merit(assets[j], j, risk_free_rate) for j in eligible]
                total_merit = sum(merits)
                for j, m in zip(eligible, merits):
                    w[j] += excess * m / total_merit

                total = sum(w)
                if abs(total - 1.0) > 1e-4:
                    w = [x / total for x in w]

            if not needs_adjustment:
                break

        return w, changed

    @staticmethod
    def _enforce_uniqueness(
        w: List[float],
        assets: Sequence[Asset],
        risk_free_rate: float,
        rank: Callable[[int], float],
    ):
        signatures = [a.signature(risk_free_rate) for a in assets]
        changed = False

        for _ in range(MAX_UNIQUENESS_PASSES):
            groups = ConstraintEngine._distinct_tie_groups(w, signatures)
            if not groups:
                break

            for group in groups:
                ranked = sorted(group, key=rank, reverse=True)
                for position, idx in enumerate(ranked):
                    adjustment = UNIQUENESS_NUDGE * (position + 1)
                    w[idx] += adjustment if position % 2 == 0 else -adjustment

            w = ConstraintEngine._normalize([max(0.0, x) for x in w])
            changed = True

        # Nudges can open new collisions; spacing settles them for good
        if len(set(signatures)) == len(w) and ConstraintEngine._distinct_tie_groups(w, signatures):
            w = ConstraintEngine._space_allocations(w, rank)
            changed = True

        return w, changed

    @staticmethod
    def _space_allocations(w: List[float], rank: Callable[[int], float]) -> List[float]:
        """
        Lift weights so sorted neighbours differ by ``UNIQUENESS_MIN_GAP``.

        Walking up in (weight, rank) order, each weight is raised to at
        least ``gap`` above the one before it, then everything is
        renormalized.  Lifting adds at most ``gap * n(n-1)/2`` in total, so
        ``gap`` is widened by that much up front and the spacing still
        clears ``UNIQUENESS_MIN_GAP`` after renormalization.  Returns *w*
        unchanged when ``n`` is too large for distinct display keys.
        """
        n = len(w)
        slack = 1.0 - UNIQUENESS_MIN_GAP * n * (n - 1) / 2
        if slack <= 0:
            return w
        gap = UNIQUENESS_MIN_GAP / slack

        spaced = list(w)
        previous = None
        for i in sorted(range(n), key=lambda j: (w[j], rank(j))):
            if previous is not None:
                spaced[i] = max(spaced[i], spaced[previous] + gap)
            previous = i
        return ConstraintEngine._normalize(spaced)

    @staticmethod
    def _rank_key(
        assets: Sequence[Asset],
        risk_free_rate: float,
        preference: str,
    ) -> Callable[[int], float]:
        """Score by asset index; within a tie the higher score gets more weight."""
        if preference == "low_risk":
            return lambda i: -assets[i].risk * 1000 + assets[i].sharpe(risk_free_rate) + i * 0.001
        return lambda i: (
            assets[i].sharpe(risk_free_rate) * 1000
            + assets[i].expected_return * 10
            + i * 0.001
        )

    # ------------------------------------------------------------------ #
    #  Private helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _tie_groups(w: Sequence[float]) -> List[List[int]]:
        """
        Indices sharing an allocation at 4-decimal precision *or* at the
        1-decimal percent precision the integrity check compares.
        """
        parent = list(range(len(w)))

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        for key_of in (lambda x: f"{x:.4f}", lambda x: allocation_key(x * 100)):
            first_seen: Dict[str, int] = {}
            for i, value in enumerate(w):
                key = key_of(value)
                if key in first_seen:
                    parent[find(i)] = find(first_seen[key])
                else:
                    first_seen[key] = i

        groups: Dict[int, List[int]] = {}
        for i in range(len(w)):
            groups.setdefault(find(i), []).append(i)
        return [g for g in groups.values() if len(g) > 1]

    @staticmethod
    def _distinct_tie_groups(w: Sequence[float], signatures: Sequence[tuple]) -> List[List[int]]:
        """Tie groups holding at least two different asset profiles."""
        return [
            g for g in ConstraintEngine._tie_groups(w)
            if len({signatures[i] for i in g}) > 1
        ]

    @staticmethod
    def _normalize(values: List[float]) -> List[float]:
        """Scale *values* so they sum to 1.0. Falls back to equal weight."""
        total = sum(values)
        if total <= 0:
            return [1 / len(values)] * len(values)
        return [v / total for v in values]
