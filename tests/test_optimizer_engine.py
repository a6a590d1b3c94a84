"""
tests/test_optimizer_engine.py
------------------------------
Unit tests for OptimizerEngine.

Test coverage:
    solve(): closed form, degraded outcomes (singular, vanishing normalizer)
    Tangency: single asset, constraints, high-tier shrinkage flag
    Minimum variance: 2-asset diversification, risk ordering, constrained pair
    Degraded fallbacks (equal / inverse-risk) with diagnostics
    Maximum return: corner solution and tie-breaks
"""

import unittest

import numpy as np

from portfolio_optimizer.diagnostics import Diagnostics
from portfolio_optimizer.enums import CorrelationTier
from portfolio_optimizer.models import Asset
from portfolio_optimizer.optimizer_engine import OptimizerEngine, SolveOutcome


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SPY = Asset("SPY", 10.0, 16.0, is_index_fund=True)
BND = Asset("BND", 4.8, 6.0, beta=0.05)
GLD = Asset("GLD", 6.5, 14.0, beta=0.1)
AAPL = Asset("AAPL", 13.5, 24.0, beta=1.2, sector="Technology", market_cap="2.9T", pe_ratio=29.5)


def _quiet():
    return Diagnostics(sink=None)


def _total(portfolio):
    return sum(portfolio.allocations.values())


# ===========================================================================
# 1. Analytic solve
# ===========================================================================

class TestSolve(unittest.TestCase):

    def test_diagonal_min_variance(self):
        outcome = OptimizerEngine.solve(np.diag([0.01, 0.04]), np.ones(2))
        self.assertFalse(outcome.degraded)
        self.assertTrue(np.allclose(outcome.weights, [0.8, 0.2]))

    def test_negative_weights_floored(self):
        outcome = OptimizerEngine.solve(np.eye(2), np.array([1.0, -2.0]))
        self.assertTrue(np.allclose(outcome.weights, [0.0, 1.0]))

    def test_singular_is_degraded(self):
        outcome = OptimizerEngine.solve(np.array([[1.0, 2.0], [2.0, 4.0]]), np.ones(2))
        self.assertTrue(outcome.degraded)
        self.assertIsNone(outcome.weights)
        self.assertIn("pivot", outcome.reason)

    def test_vanishing_normalizer_is_degraded(self):
        outcome = OptimizerEngine.solve(np.eye(2), np.array([1.0, -1.0]))
        self.assertTrue(outcome.degraded)
        self.assertIn("normalizer", outcome.reason)

    def test_failed_constructor(self):
        outcome = SolveOutcome.failed("x")
        self.assertEqual((outcome.weights, outcome.degraded, outcome.reason), (None, True, "x"))


# ===========================================================================
# 2. Tangency
# ===========================================================================

class TestTangency(unittest.TestCase):

    def test_single_asset(self):
        p = OptimizerEngine.tangency([AAPL], diagnostics=_quiet())
        self.assertEqual(p.allocations, {"AAPL": 100.0})
        self.assertFalse(p.constraints_applied)
        self.assertAlmostEqual(p.risk, 24.0)
        self.assertAlmostEqual(p.expected_return, 13.5)

    def test_sums_to_100_non_negative(self):
        p = OptimizerEngine.tangency([SPY, BND, GLD, AAPL], diagnostics=_quiet())
        self.assertAlmostEqual(_total(p), 100.0, places=6)
        self.assertTrue(all(v >= 0 for v in p.allocations.values()))

    def test_unconstrained_exposes_analytic_weights(self):
        p = OptimizerEngine.tangency(
            [SPY, BND, GLD, AAPL], apply_constraints=False, diagnostics=_quiet()
        )
        self.assertAlmostEqual(_total(p), 100.0, places=6)
        self.assertFalse(p.constraints_applied)
        self.assertTrue(all(v >= 0 for v in p.allocations.values()))

    def test_high_tier_marks_constraints(self):
        trace = _quiet()
        p = OptimizerEngine.tangency(
            [SPY, BND, GLD],
            correlation_tier=CorrelationTier.HIGH,
            apply_constraints=False,
            diagnostics=trace,
        )
        self.assertTrue(p.constraints_applied)
        self.assertEqual(len(trace.by_stage("tangency")), 1)

    def test_sharpe_consistent_with_metrics(self):
        p = OptimizerEngine.tangency([SPY, BND, GLD], diagnostics=_quiet())
        self.assertAlmostEqual(p.sharpe_ratio, (p.expected_return - 4.5) / p.risk)


# ===========================================================================
# 3. Minimum variance
# ===========================================================================

class TestMinimumVariance(unittest.TestCase):

    def test_two_asset_risk_below_each(self):
        p = OptimizerEngine.minimum_variance([SPY, BND], apply_constraints=False, diagnostics=_quiet())
        self.assertLessEqual(p.risk, min(SPY.risk, BND.risk))

    def test_lower_risk_asset_weighted_more(self):
        p = OptimizerEngine.minimum_variance([SPY, BND], apply_constraints=False, diagnostics=_quiet())
        self.assertGreater(p.allocations["BND"], p.allocations["SPY"])

    def test_two_asset_constrained_keeps_low_risk_tilt(self):
        mid = Asset("MID", 12.0, 20.0, market_cap="20B", pe_ratio=20.0)
        p = OptimizerEngine.minimum_variance([BND, mid], diagnostics=_quiet())
        self.assertGreater(p.allocations["BND"], 80.0)
        self.assertLess(p.risk, BND.risk)

    def test_constrained_sum(self):
        p = OptimizerEngine.minimum_variance([SPY, BND, GLD, AAPL], diagnostics=_quiet())
        self.assertAlmostEqual(_total(p), 100.0, places=6)
        self.assertLessEqual(max(p.allocations.values()), 40.0 + 1.5)


# ===========================================================================
# 4. Degraded fallbacks
# ===========================================================================

class TestFallbacks(unittest.TestCase):

    def setUp(self):
        # Variances of 1e-12 sit below the pivot threshold
        self.assets = [Asset("P", 8.0, 0.0001), Asset("Q", 8.0, 0.0001)]

    def test_tangency_equal_weights(self):
        trace = _quiet()
        p = OptimizerEngine.tangency(self.assets, diagnostics=trace)
        self.assertTrue(p.degraded)
        self.assertAlmostEqual(p.allocations["P"], 50.0)
        self.assertAlmostEqual(p.allocations["Q"], 50.0)
        self.assertEqual(len(trace.by_stage("fallback")), 1)
        self.assertTrue(trace.has_warnings())

    def test_minimum_variance_inverse_risk(self):
        trace = _quiet()
        p = OptimizerEngine.minimum_variance(self.assets, diagnostics=trace)
        self.assertTrue(p.degraded)
        self.assertAlmostEqual(_total(p), 100.0)
        self.assertEqual(trace.by_stage("fallback")[0].data["portfolio"], "minimum_variance")


# ===========================================================================
# 5. Maximum return
# ===========================================================================

class TestMaximumReturn(unittest.TestCase):

    def test_dominant_return_asset(self):
        assets = [Asset("A", 8.0, 12.0), Asset("B", 10.0, 15.0), Asset("C", 25.0, 40.0)]
        p = OptimizerEngine.maximum_return(assets)
        self.assertEqual(p.allocations, {"A": 0.0, "B": 0.0, "C": 100.0})
        self.assertAlmostEqual(p.expected_return, 25.0)
        self.assertAlmostEqual(p.risk, 40.0)
        self.assertFalse(p.constraints_applied)

    def test_tie_prefers_higher_risk(self):
        assets = [Asset("LOW", 10.0, 15.0), Asset("HIGH", 10.0, 20.0)]
        self.assertEqual(OptimizerEngine.maximum_return(assets).allocations["HIGH"], 100.0)

    def test_full_tie_keeps_first(self):
        assets = [Asset("FIRST", 10.0, 15.0), Asset("SECOND", 10.0, 15.0)]
        self.assertEqual(OptimizerEngine.top_return_index(assets), 0)

    def test_single_asset(self):
        self.assertEqual(OptimizerEngine.maximum_return([BND]).allocations, {"BND": 100.0})


if __name__ == "__main__":
    unittest.main()
