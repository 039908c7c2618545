"""
Deterministic variant bucketing for experiments.

A user's variant is a pure function of (user_id, experiment id, variants,
traffic_pct): no randomness, no clock, no I/O. Persisted assignments are only
a cache of this result, so the hash must stay bit-for-bit stable or previously
stored assignments stop matching.
"""
import math
from typing import Protocol, Sequence

CONTROL_VARIANT = "control"

_HASH_SEED = 5381
_UINT32_MASK = 0xFFFFFFFF
_UINT32_RANGE = 0x100000000


class BucketableExperiment(Protocol):
    id: str
    variants: Sequence[str]
    traffic_pct: int


def _utf16_code_units(value: str):
    data = value.encode("utf-16-le")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def stable_hash_32(value: str) -> int:
    """djb2-xor over UTF-16 code units with an explicit 32-bit accumulator."""
    h = _HASH_SEED
    for code_unit in _utf16_code_units(value):
        h = ((h * 33) ^ code_unit) & _UINT32_MASK
    return h


def stable_hash(value: str) -> float:
    """Hash normalised to a float in [0, 1)."""
    return stable_hash_32(value) / _UINT32_RANGE


def assign_variant(user_id: str, experiment: BucketableExperiment) -> str:
    """
    Assign a user to a variant of the given experiment.

    Users whose bucket falls outside traffic_pct get "control". Enrolled users
    are spread uniformly over the variant list by rescaling the bucket to the
    enrolled sub-range.
    """
    bucket = stable_hash(f"{user_id}:{experiment.id}")
    if bucket * 100 >= experiment.traffic_pct:
        return CONTROL_VARIANT

    enrolled = (bucket * 100) / experiment.traffic_pct
    variants = list(experiment.variants or [])
    variant_idx = math.floor(enrolled * len(variants))
    if 0 <= variant_idx < len(variants):
        return variants[variant_idx]
    return CONTROL_VARIANT
