"""
tests/test_portfolio_engine.py
-------------------------------
Unit tests for PortfolioEngine and the module-level API.

Test coverage:
    Output invariants across scenarios (sum, non-negative, max return)
    Correlation tiers → method labels, stabilization, validation
    Return caps flowing into the portfolios
    Single-asset and two-asset portfolios
    Determinism and dict input
    Invalid input
    Diagnostics trace stages
    Integrity failure propagation
    get_correlation_matrix / calculate_quality_score / correlation_frame
    Distinct allocations for crowded and randomized sets
    Two-asset minimum variance tilted to the calmer asset
"""

import logging
import math
import random
import unittest
from unittest.mock import patch

from portfolio_optimizer.constraint_engine import allocation_key
from portfolio_optimizer.data_loader import DataLoader
from portfolio_optimizer.diagnostics import Diagnostics
from portfolio_optimizer.enums import CorrelationTier
from portfolio_optimizer.exceptions import AllocationIntegrityError, InvalidAssetError
from portfolio_optimizer.models import Asset, Portfolio
from portfolio_optimizer.optimizer_engine import OptimizerEngine
from portfolio_optimizer.portfolio_engine import (
    PortfolioEngine,
    calculate_quality_score,
    coerce_assets,
    get_correlation_matrix,
    optimize_all_portfolios,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _run(assets, **kwargs):
    return optimize_all_portfolios(assets, diagnostics=Diagnostics(sink=None), **kwargs)


def _portfolios(result):
    return (
        result.optimal_portfolio,
        result.minimum_variance_portfolio,
        result.maximum_return_portfolio,
    )


def _large_tech(symbol, ret, risk):
    return Asset(symbol, ret, risk, beta=1.1, sector="Technology", market_cap="2.0T", pe_ratio=30.0)


def _mid_tech(symbol, ret, risk):
    return Asset(symbol, ret, risk, beta=1.2, sector="Technology", market_cap="20B", pe_ratio=25.0)


HIGH_SET = [
    _large_tech("T1", 10.0, 18.0),
    _large_tech("T2", 11.0, 20.0),
    _large_tech("T3", 12.0, 22.0),
    _large_tech("T4", 13.0, 24.0),
    _large_tech("T5", 14.0, 26.0),
]

EXTREME_SET = [
    _mid_tech("M1", 11.0, 22.0),
    _mid_tech("M2", 12.0, 24.0),
    _mid_tech("M3", 13.0, 26.0),
    _mid_tech("M4", 14.0, 28.0),
    _mid_tech("M5", 15.0, 30.0),
]

MODERATE_SET = [
    Asset("AAPL", 13.5, 24.0, sector="Technology", market_cap="2.9T", pe_ratio=29.5),
    Asset("JNJ", 8.2, 15.5, sector="Healthcare", market_cap="380B", pe_ratio=15.1),
    Asset("XOM", 10.4, 27.0, sector="Energy", market_cap="460B", pe_ratio=12.8),
]

DOMINANT_SET = [
    Asset("A", 8.0, 12.0, market_cap="20B", pe_ratio=20.0),
    Asset("B", 10.0, 15.0, market_cap="20B", pe_ratio=20.0),
    Asset("C", 25.0, 40.0),
]

BOND_AND_INDEX = [
    Asset("BND", 10.0, 15.0),
    Asset("SPY", 10.0, 15.0, is_index_fund=True),
]


# ===========================================================================
# 1. Invariants across scenarios
# ===========================================================================

class TestInvariants(unittest.TestCase):

    SCENARIOS = {
        "sample": DataLoader().load_assets(),
        "high": HIGH_SET,
        "extreme": EXTREME_SET,
        "moderate": MODERATE_SET,
        "dominant": DOMINANT_SET,
        "bond_index": BOND_AND_INDEX,
    }

    def test_allocations_sum_to_100(self):
        for name, assets in self.SCENARIOS.items():
            for p in _portfolios(_run(assets)):
                with self.subTest(scenario=name):
                    self.assertAlmostEqual(sum(p.allocations.values()), 100.0, delta=0.1)

    def test_allocations_non_negative_and_complete(self):
        for name, assets in self.SCENARIOS.items():
            symbols = [a.symbol for a in assets]
            for p in _portfolios(_run(assets)):
                with self.subTest(scenario=name):
                    self.assertEqual(list(p.allocations), symbols)
                    self.assertTrue(all(v >= 0 for v in p.allocations.values()))

    def test_metrics_finite(self):
        for name, assets in self.SCENARIOS.items():
            for p in _portfolios(_run(assets)):
                with self.subTest(scenario=name):
                    self.assertTrue(math.isfinite(p.expected_return))
                    self.assertTrue(p.risk > 0)
                    self.assertTrue(math.isfinite(p.sharpe_ratio))

    def test_max_return_hits_highest_capped_return(self):
        for name, assets in self.SCENARIOS.items():
            result = _run(assets)
            capped = {a.symbol: a.expected_return for a in assets}
            for adj in result.return_cap_adjustments:
                capped[adj.symbol] = adj.capped
            with self.subTest(scenario=name):
                self.assertAlmostEqual(
                    result.maximum_return_portfolio.expected_return, max(capped.values()), places=6
                )

    def test_quality_score_in_range(self):
        for name, assets in self.SCENARIOS.items():
            with self.subTest(scenario=name):
                score = _run(assets).portfolio_quality.quality_score
                self.assertTrue(0 <= score <= 95)


# ===========================================================================
# 2. Correlation tiers
# ===========================================================================

class TestCorrelationTiers(unittest.TestCase):

    def test_high_tier_is_stabilized(self):
        result = _run(HIGH_SET)
        self.assertEqual(result.portfolio_quality.correlation_tier, CorrelationTier.HIGH)
        optimal = result.optimal_portfolio
        self.assertEqual(optimal.optimization_method, "Constrained (High Correlation)")
        self.assertTrue(optimal.stabilization_applied)
        self.assertTrue(optimal.constraints_applied)
        self.assertIn("high_correlation", [w.type for w in result.validation.warnings])

    def test_extreme_tier_disables_frontier(self):
        result = _run(EXTREME_SET)
        self.assertEqual(result.portfolio_quality.correlation_tier, CorrelationTier.EXTREME)
        self.assertFalse(result.validation.can_show_frontier)
        self.assertEqual(result.validation.critical_errors[0].type, "extreme_correlation")
        self.assertFalse(result.optimal_portfolio.stabilization_applied)

    def test_moderate_tier_label(self):
        result = _run(MODERATE_SET)
        self.assertEqual(result.portfolio_quality.correlation_tier, CorrelationTier.MODERATE)
        self.assertEqual(result.optimal_portfolio.optimization_method, "Standard (Moderate Correlation)")
        self.assertFalse(result.optimal_portfolio.stabilization_applied)

    def test_low_tier_has_no_label(self):
        result = _run(BOND_AND_INDEX)
        self.assertEqual(result.portfolio_quality.correlation_tier, CorrelationTier.LOW)
        self.assertIsNone(result.optimal_portfolio.optimization_method)


# ===========================================================================
# 3. Scenarios
# ===========================================================================

class TestScenarios(unittest.TestCase):

    def test_single_asset(self):
        result = _run([MODERATE_SET[0]])
        for p in _portfolios(result):
            self.assertEqual(p.allocations, {"AAPL": 100.0})
            self.assertAlmostEqual(p.risk, 24.0)
        self.assertIn(
            "Fewer than 3 assets - insufficient diversification",
            result.portfolio_quality.warnings,
        )

    def test_bond_and_index(self):
        result = _run(BOND_AND_INDEX)
        self.assertEqual([a.symbol for a in result.return_cap_adjustments], ["BND"])
        self.assertEqual(result.return_cap_adjustments[0].capped, 6.0)

        min_var = result.minimum_variance_portfolio
        self.assertLess(min_var.risk, 15.0)
        self.assertAlmostEqual(min_var.risk, 10.34, delta=0.05)
        self.assertEqual(result.maximum_return_portfolio.allocations, {"BND": 0.0, "SPY": 100.0})
        self.assertIn("low_diversity", [w.type for w in result.validation.warnings])

    def test_dominant_asset(self):
        result = _run(DOMINANT_SET)
        self.assertEqual(result.maximum_return_portfolio.allocations, {"A": 0.0, "B": 0.0, "C": 100.0})
        self.assertAlmostEqual(result.maximum_return_portfolio.expected_return, 20.0)
        self.assertEqual([a.symbol for a in result.return_cap_adjustments], ["C"])

    def test_rationale_for_every_asset(self):
        result = _run(MODERATE_SET)
        self.assertEqual(list(result.allocation_rationale), ["AAPL", "JNJ", "XOM"])

    def test_to_dict(self):
        data = _run(MODERATE_SET).to_dict()
        self.assertIn("qualityScore", data["portfolio_quality"])
        self.assertEqual(
            set(data["optimal_portfolio"]["allocations"]), {"AAPL", "JNJ", "XOM"}
        )


# ===========================================================================
# 4. Determinism and input handling
# ===========================================================================

class TestInputHandling(unittest.TestCase):

    def test_deterministic(self):
        first = _run(MODERATE_SET)
        second = _run(MODERATE_SET)
        for a, b in zip(_portfolios(first), _portfolios(second)):
            self.assertEqual(a.allocations, b.allocations)

    def test_dict_input_matches_assets(self):
        records = [
            {"symbol": a.symbol, "expected_return": a.expected_return, "risk": a.risk,
             "sector": a.sector, "market_cap": a.market_cap, "pe_ratio": a.pe_ratio}
            for a in MODERATE_SET
        ]
        from_dicts = _run(records)
        from_assets = _run(MODERATE_SET)
        self.assertEqual(from_dicts.optimal_portfolio.allocations, from_assets.optimal_portfolio.allocations)

    def test_caller_assets_untouched(self):
        _run(BOND_AND_INDEX)
        self.assertEqual(BOND_AND_INDEX[0].expected_return, 10.0)

    def test_empty_raises(self):
        with self.assertRaises(InvalidAssetError):
            _run([])

    def test_duplicate_symbol_raises(self):
        with self.assertRaises(InvalidAssetError):
            coerce_assets([Asset("A", 8, 12), Asset("A", 9, 14)])

    def test_non_positive_risk_raises(self):
        with self.assertRaises(InvalidAssetError):
            coerce_assets([Asset("A", 8, 0)])

    def test_non_finite_return_raises(self):
        with self.assertRaises(InvalidAssetError):
            coerce_assets([Asset("A", float("inf"), 12)])

    def test_custom_risk_free_rate(self):
        result = _run(MODERATE_SET, risk_free_rate=2.0)
        p = result.optimal_portfolio
        self.assertAlmostEqual(p.sharpe_ratio, (p.expected_return - 2.0) / p.risk)


# ===========================================================================
# 5. Diagnostics
# ===========================================================================

class TestDiagnostics(unittest.TestCase):

    def test_stages_recorded(self):
        trace = Diagnostics(sink=None)
        result = optimize_all_portfolios(BOND_AND_INDEX, diagnostics=trace)
        self.assertIs(result.diagnostics, trace)
        stages = {e.stage for e in trace.events}
        for stage in ("input", "return_caps", "similarity", "tier", "uniqueness", "result", "integrity"):
            self.assertIn(stage, stages)
        self.assertEqual(len(trace.by_stage("input")), 2)

    def test_default_trace_created(self):
        with self.assertLogs("portfolio_optimizer.diagnostics", level="INFO"):
            result = optimize_all_portfolios(MODERATE_SET)
        self.assertGreater(len(result.diagnostics), 0)

    def test_integrity_failure_propagates(self):
        broken = Portfolio({"AAPL": 40.0, "JNJ": 30.0, "XOM": 20.0}, 10.0, 15.0, 0.37)
        trace = Diagnostics(sink=None)
        with patch.object(OptimizerEngine, "tangency", return_value=broken):
            with self.assertRaises(AllocationIntegrityError) as ctx:
                optimize_all_portfolios(MODERATE_SET, diagnostics=trace)
        self.assertEqual(ctx.exception.portfolio_name, "Optimal Portfolio")
        errors = [e for e in trace.by_stage("integrity") if e.level == logging.ERROR]
        self.assertEqual(len(errors), 1)


# ===========================================================================
# 6. Module API and helpers
# ===========================================================================

class TestModuleApi(unittest.TestCase):

    def test_get_correlation_matrix(self):
        matrix = get_correlation_matrix(MODERATE_SET)
        self.assertEqual(matrix.shape, (3, 3))
        self.assertAlmostEqual(matrix[0, 1], 0.55)

    def test_calculate_quality_score_with_weights(self):
        equal = calculate_quality_score(MODERATE_SET)
        skewed = calculate_quality_score(MODERATE_SET, [0.9, 0.05, 0.05])
        self.assertLess(
            skewed.components["diversification"], equal.components["diversification"]
        )

    def test_correlation_frame(self):
        frame = PortfolioEngine().correlation_frame(MODERATE_SET)
        self.assertEqual(list(frame.columns), ["AAPL", "JNJ", "XOM"])
        self.assertEqual(frame.loc["JNJ", "JNJ"], 1.0)


# ===========================================================================
# 7. Allocation uniqueness and low-risk tilt
# ===========================================================================

# Ten assets whose nudged minimum-variance weights used to collide at 5.1%
CROWDED_SET = [
    Asset("EEE", -3.51, 13.07),
    Asset("GLD", 19.34, 13.06),
    Asset("DDD", 10.71, 4.07),
    Asset("SPY", 4.48, 54.36),
    Asset("GGG", 3.48, 33.01),
    Asset("CCC", -1.81, 51.22),
    Asset("AAA", 13.86, 7.19),
    Asset("BND", 23.47, 33.73),
    Asset("BBB", 3.04, 10.2),
    Asset("TLT", 14.36, 17.83),
]

SYMBOL_POOL = ["AAA", "BBB", "CCC", "DDD", "EEE", "FFF", "GGG", "SPY", "QQQ", "BND", "TLT", "GLD"]


class TestAllocationUniqueness(unittest.TestCase):

    def _assert_distinct(self, portfolio):
        keys = [allocation_key(v) for v in portfolio.allocations.values()]
        self.assertEqual(len(set(keys)), len(keys), portfolio.allocations)

    def test_crowded_set_validates(self):
        result = _run(CROWDED_SET)
        self._assert_distinct(result.minimum_variance_portfolio)
        self._assert_distinct(result.optimal_portfolio)

    def test_random_sets_never_raise(self):
        rng = random.Random(1017)
        for trial in range(150):
            n = rng.randint(1, 10)
            assets = [
                Asset(symbol, round(rng.uniform(-5.0, 25.0), 2), round(rng.uniform(3.0, 60.0), 2))
                for symbol in rng.sample(SYMBOL_POOL, n)
            ]
            with self.subTest(trial=trial, assets=[(a.symbol, a.expected_return, a.risk) for a in assets]):
                result = _run(assets)
                for p in _portfolios(result):
                    self.assertAlmostEqual(sum(p.allocations.values()), 100.0, delta=0.1)

    def test_two_asset_min_variance_leans_on_bond(self):
        bond = Asset("BND", 5.0, 6.0)
        mid = Asset("MID", 12.0, 20.0, market_cap="20B", pe_ratio=20.0)
        min_var = _run([bond, mid]).minimum_variance_portfolio
        self.assertGreater(min_var.allocations["BND"], min_var.allocations["MID"])
        self.assertLess(min_var.risk, bond.risk)

    def test_two_asset_min_variance_not_forced_to_halves(self):
        min_var = _run([Asset("BND", 5.0, 5.0), Asset("AAA", 12.0, 40.0)]).minimum_variance_portfolio
        self.assertGreater(min_var.allocations["BND"], 85.0)
        # The 10% floor on AAA keeps risk a little above the bond's own
        self.assertLess(min_var.risk, 6.0)


if __name__ == "__main__":
    unittest.main()
