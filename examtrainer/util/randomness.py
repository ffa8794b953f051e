from __future__ import annotations

"""Randomness helpers for exam ordering and seeding."""

import os
import random
from typing import List, Optional, Sequence, TypeVar

import numpy as np

T = TypeVar("T")


def seed_if_needed() -> None:
    """Seed RNGs if SEED env var is set."""
    seed = os.environ.get("SEED")
    if seed is not None:
        try:
            s = int(seed)
        except ValueError:
            return
        random.seed(s)
        np.random.seed(s)


def shuffled(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a shuffled copy; the input is left untouched."""
    out = list(items)
    (rng or random).shuffle(out)
    return out


def sample(n: int, items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Shuffle the whole sequence, then keep the first min(n, len) items."""
    return shuffled(items, rng)[: max(0, min(int(n), len(items)))]
