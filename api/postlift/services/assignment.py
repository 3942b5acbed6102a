"""Deterministic variant assignment using FNV-1a hash.

The bucket for a subject depends only on the subject id, the experiment id
and the stored variant order and weights, so a subject keeps its variant
for the life of an experiment and across process restarts.
"""

from __future__ import annotations

from collections.abc import Sequence

from postlift.schemas.experiment import Variant

# FNV-1a constants (32-bit)
FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
MASK_32 = 0xFFFFFFFF


def fnv1a(data: str) -> int:
    """Compute 32-bit FNV-1a hash of a string."""
    h = FNV_OFFSET_BASIS
    for byte in data.encode("utf-8"):
        h ^= byte
        h = (h * FNV_PRIME) & MASK_32
    return h


def assignment_bucket(subject_id: str, experiment_id: str) -> int:
    """Bucket 0-99 for ``fnv1a(subject_id + experiment_id)``."""
    return fnv1a(f"{subject_id}{experiment_id}") % 100


def pick_variant(variants: Sequence[Variant], bucket: int) -> Variant | None:
    """Walk ``variants`` in stored order until the cumulative weight exceeds ``bucket``.

    Falls back to the first variant when rounding leaves the bucket
    uncovered.
    """
    if not variants:
        return None
    cumulative = 0.0
    for variant in variants:
        cumulative += variant.weight
        if bucket < cumulative:
            return variant
    return variants[0]
