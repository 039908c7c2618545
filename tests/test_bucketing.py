from __future__ import annotations

import random
import unittest
import uuid
from collections import Counter
from types import SimpleNamespace

from applypass.services.bucketing import (
    CONTROL_VARIANT,
    assign_variant,
    stable_hash,
    stable_hash_32,
)

M32 = 0xFFFFFFFF


def _experiment(experiment_id="exp-1", variants=("A", "B"), traffic_pct=100):
    return SimpleNamespace(id=experiment_id, variants=list(variants), traffic_pct=traffic_pct)


def _subjects(n: int, seed: int = 7) -> list[str]:
    rng = random.Random(seed)
    return [str(uuid.UUID(int=rng.getrandbits(128))) for _ in range(n)]


class StableHashTestCase(unittest.TestCase):
    def test_empty_string_is_seed(self) -> None:
        self.assertEqual(stable_hash_32(""), 5381)

    def test_single_character(self) -> None:
        # (5381 * 33) ^ ord("a")
        self.assertEqual(stable_hash_32("a"), 177604)

    def test_multiply_xor_wraps_at_32_bits(self) -> None:
        value = "subject-0123456789:experiment-abcdefghij"
        expected = 5381
        for ch in value:
            expected = ((expected * 33) ^ ord(ch)) & M32
        self.assertEqual(stable_hash_32(value), expected)
        self.assertLess(stable_hash_32(value * 50), 2**32)

    def test_astral_characters_hash_as_utf16_code_units(self) -> None:
        expected = (((5381 * 33) ^ 0xD83D) & M32) * 33 ^ 0xDE00
        self.assertEqual(stable_hash_32("\U0001F600"), expected & M32)

    def test_normalised_range(self) -> None:
        for subject in _subjects(200):
            h = stable_hash(subject)
            self.assertGreaterEqual(h, 0.0)
            self.assertLess(h, 1.0)


class AssignVariantTestCase(unittest.TestCase):
    def test_deterministic(self) -> None:
        experiment = _experiment(traffic_pct=60)
        for subject in _subjects(500):
            self.assertEqual(assign_variant(subject, experiment), assign_variant(subject, experiment))

    def test_empty_variant_list_falls_back_to_control(self) -> None:
        experiment = _experiment(experiment_id="x", variants=[], traffic_pct=100)
        for subject in _subjects(50):
            self.assertEqual(assign_variant(subject, experiment), CONTROL_VARIANT)

    def test_single_variant_full_traffic_always_that_variant(self) -> None:
        experiment = _experiment(variants=["only"], traffic_pct=100)
        self.assertEqual({assign_variant(s, experiment) for s in _subjects(300)}, {"only"})

    def test_traffic_gating_fraction(self) -> None:
        subjects = _subjects(10_000)
        for pct in (10, 30, 75):
            experiment = _experiment(experiment_id=f"gate-{pct}", variants=["A", "B"], traffic_pct=pct)
            control = sum(1 for s in subjects if assign_variant(s, experiment) == CONTROL_VARIANT)
            self.assertAlmostEqual(control / len(subjects), 1 - pct / 100, delta=0.03)

    def test_full_traffic_splits_uniformly(self) -> None:
        counts = Counter(assign_variant(s, _experiment(variants=["A", "B"])) for s in _subjects(10_000))
        self.assertEqual(set(counts), {"A", "B"})
        for variant in ("A", "B"):
            share = counts[variant] / 10_000
            self.assertGreater(share, 0.4)
            self.assertLess(share, 0.6)

    def test_enrolled_subjects_spread_over_all_variants(self) -> None:
        experiment = _experiment(variants=["v1", "v2", "v3"], traffic_pct=50)
        counts = Counter(assign_variant(s, experiment) for s in _subjects(9_000))
        enrolled = sum(counts[v] for v in ("v1", "v2", "v3"))
        for variant in ("v1", "v2", "v3"):
            self.assertAlmostEqual(counts[variant] / enrolled, 1 / 3, delta=0.05)

    def test_matches_manual_computation(self) -> None:
        experiment = _experiment(experiment_id="landing-cta-v1", variants=["control", "treatment"], traffic_pct=40)
        for subject in _subjects(100):
            bucket = stable_hash_32(f"{subject}:landing-cta-v1") / 2**32
            if bucket * 100 >= 40:
                expected = "control"
            else:
                expected = ["control", "treatment"][int((bucket * 100) / 40 * 2)]
            self.assertEqual(assign_variant(subject, experiment), expected)


if __name__ == "__main__":
    unittest.main()
