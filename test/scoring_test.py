"""
Tests for the energy scoring function.
"""

import math
import random
import unittest

from gridbrain.config import SCORE
from gridbrain.scoring import (
    UnscorableRecordError,
    apply_suffix_affinity,
    blend_score,
    compute_score,
    generate_reasoning,
    renewable_score,
)
from gridbrain.telemetry_schema import LocationRecord


def record(renewable=120.0, load=100.0, battery=80.0, location="aalborg", unmet=0.0):
    return LocationRecord(
        location=location,
        renewable_output=renewable,
        primary_load=load,
        battery_charge=battery,
        unmet_load=unmet,
        time="2024-03-01T12:00:00Z",
    )


class TestComputeScore(unittest.TestCase):

    def test_reference_record(self):
        """renew_diff=0.2 -> 73.1 -> 73; 36.5 + 30 = 66.5 rounds half-to-even to 66."""
        self.assertAlmostEqual(renewable_score(120.0, 100.0), 100 / (1 + math.exp(-1)))
        self.assertEqual(blend_score(record()), 66.5)
        self.assertEqual(compute_score(record()), 66)

    def test_deterministic(self):
        rec = record(renewable=87.3, load=64.1, battery=41.9)
        self.assertEqual({compute_score(rec) for _ in range(20)}, {compute_score(rec)})

    def test_balanced_grid(self):
        # Sigmoid midpoint: 50 * 0.5 + (60 - 20) * 0.5
        self.assertEqual(compute_score(record(renewable=100.0, load=100.0, battery=60.0)), 45)

    def test_half_rounds_to_even_at_bottom(self):
        # 100 / (1 + e^5) rounds to 1 -> 0.5 + 0 -> 0
        self.assertEqual(compute_score(record(renewable=0.0, load=100.0, battery=20.0)), 0)

    def test_clamped_high(self):
        self.assertEqual(compute_score(record(renewable=300.0, load=100.0, battery=200.0)), SCORE.MAX_SCORE)

    def test_clamped_low(self):
        self.assertEqual(compute_score(record(renewable=0.0, load=100.0, battery=-50.0)), SCORE.MIN_SCORE)

    def test_zero_load_is_fallback(self):
        score = compute_score(record(load=0.0))
        self.assertEqual(score, SCORE.FALLBACK_SCORE)
        with self.assertRaises(UnscorableRecordError):
            blend_score(record(load=0.0))

    def test_non_finite_is_fallback(self):
        for rec in (
            record(renewable=float("inf")),
            record(load=float("nan")),
            record(battery=float("inf")),
        ):
            self.assertEqual(compute_score(rec), SCORE.FALLBACK_SCORE)

    def test_extreme_ratios_saturate(self):
        self.assertEqual(renewable_score(1e308, 1e-300), 100.0)
        self.assertEqual(renewable_score(-1e308, 1e-300), 0.0)

    def test_fuzz_stays_in_band(self):
        rng = random.Random(1234)
        magnitudes = [0.0, 1e-9, 1.0, 100.0, 1e6, 1e300]
        for _ in range(2000):
            rec = record(
                renewable=rng.choice([-1, 1]) * rng.choice(magnitudes) * rng.random(),
                load=rng.choice([-1, 1]) * rng.choice(magnitudes) * rng.random(),
                battery=rng.uniform(-1e6, 1e6),
            )
            score = compute_score(rec)
            self.assertIsInstance(score, int)
            self.assertGreaterEqual(score, SCORE.MIN_SCORE)
            self.assertLessEqual(score, SCORE.MAX_SCORE)


class TestSuffixAffinity(unittest.TestCase):

    def test_matching_digit_adds_bonus(self):
        self.assertEqual(apply_suffix_affinity(66, 3, "worker-3"), 66 + SCORE.SUFFIX_MATCH_BONUS)

    def test_bonus_is_clamped(self):
        self.assertEqual(apply_suffix_affinity(95, 7, "worker7"), SCORE.MAX_SCORE)

    def test_no_change_without_match(self):
        self.assertEqual(apply_suffix_affinity(66, 3, "worker-4"), 66)
        self.assertEqual(apply_suffix_affinity(66, 3, "worker-a"), 66)
        self.assertEqual(apply_suffix_affinity(66, None, "worker-3"), 66)
        self.assertEqual(apply_suffix_affinity(66, 3, ""), 66)


class TestReasoning(unittest.TestCase):

    def test_mentions_surplus_and_battery(self):
        text = generate_reasoning("worker-1", 66, record())
        self.assertIn("renewable surplus", text)
        self.assertIn("battery well charged", text)
        self.assertIn("aalborg", text)

    def test_deficit_and_unmet_load(self):
        text = generate_reasoning("worker-1", 10, record(renewable=10.0, battery=5.0, unmet=3.0))
        self.assertIn("renewable deficit", text)
        self.assertIn("battery depleted", text)
        self.assertIn("unmet load reported", text)


if __name__ == "__main__":
    unittest.main()
