"""
crl/continual/replay.py
=======================
Replacement and sampling policies for the experience memory buffer.

Replay prevents catastrophic forgetting by keeping examples from past
tasks available for rehearsal and for forgetting assessment.

Three policies:

1. **UniformReplay** — keeps the first ``capacity`` experiences and
   drops later ones; samples uniformly without replacement.

2. **ReservoirReplay** — classic reservoir sampling (Vitter's
   Algorithm R). For the n-th experience seen (n > k):

       j ~ U{0, …, n−1};  if j < k: replace slot j

   Every experience of the stream is retained with probability k/n.
   Samples uniformly without replacement.

3. **PrioritisedReplay** — when full, replaces the single
   lowest-priority stored experience if the newcomer's priority is
   strictly greater. Samples with replacement by roulette wheel:

       P(i) = pᵢ / Σⱼ pⱼ
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from crl.core.types import Experience, SamplingStrategy

logger = logging.getLogger(__name__)

__all__ = [
    "ReplayPolicy",
    "UniformReplay",
    "ReservoirReplay",
    "PrioritisedReplay",
    "make_replay_policy",
]


# ─────────────────────────────────────────────
#  ABSTRACT BASE
# ─────────────────────────────────────────────


class ReplayPolicy(ABC):
    """Decides which slot a new experience takes once the buffer is full,
    and which stored experiences a replay batch contains."""

    strategy: SamplingStrategy

    @abstractmethod
    def replacement_index(
        self,
        stored: Sequence[Experience],
        incoming: Experience,
        total_seen: int,
        rng: random.Random,
    ) -> Optional[int]:
        """Slot to overwrite with ``incoming``, or None to drop it.

        Called only when the buffer is at capacity. ``total_seen``
        includes ``incoming``.
        """

    @abstractmethod
    def sample_indices(
        self,
        stored: Sequence[Experience],
        n: int,
        rng: random.Random,
    ) -> List[int]:
        """Indices of ``n`` stored experiences (``0 < n ≤ len(stored)``)."""


def _uniform_indices(size: int, n: int, rng: random.Random) -> List[int]:
    return rng.sample(range(size), n)


# ─────────────────────────────────────────────
#  UNIFORM
# ─────────────────────────────────────────────


class UniformReplay(ReplayPolicy):
    strategy = SamplingStrategy.UNIFORM

    def replacement_index(self, stored, incoming, total_seen, rng) -> Optional[int]:
        return None

    def sample_indices(self, stored, n, rng) -> List[int]:
        return _uniform_indices(len(stored), n, rng)


# ─────────────────────────────────────────────
#  RESERVOIR
# ─────────────────────────────────────────────


class ReservoirReplay(ReplayPolicy):
    strategy = SamplingStrategy.RESERVOIR

    def replacement_index(self, stored, incoming, total_seen, rng) -> Optional[int]:
        j = rng.randrange(total_seen)
        return j if j < len(stored) else None

    def sample_indices(self, stored, n, rng) -> List[int]:
        return _uniform_indices(len(stored), n, rng)


# ─────────────────────────────────────────────
#  PRIORITISED
# ─────────────────────────────────────────────


class PrioritisedReplay(ReplayPolicy):
    strategy = SamplingStrategy.PRIORITIZED

    @staticmethod
    def lowest_priority_index(stored: Sequence[Experience]) -> int:
        """First index holding the minimum priority."""
        min_idx = 0
        for i in range(1, len(stored)):
            if stored[i].priority < stored[min_idx].priority:
                min_idx = i
        return min_idx

    def replacement_index(self, stored, incoming, total_seen, rng) -> Optional[int]:
        min_idx = self.lowest_priority_index(stored)
        if incoming.priority > stored[min_idx].priority:
            return min_idx
        return None

    def sample_indices(self, stored, n, rng) -> List[int]:
        priorities = [exp.priority for exp in stored]
        total = sum(priorities)
        if total <= 0:
            logger.warning("Prioritised replay: total priority is 0; sampling uniformly")
            return [rng.randrange(len(stored)) for _ in range(n)]

        last_positive = max(j for j, p in enumerate(priorities) if p > 0)
        chosen: List[int] = []
        for _ in range(n):
            remaining = rng.random() * total
            idx = last_positive    # floating-point fallback
            for j, p in enumerate(priorities):
                remaining -= p
                if remaining <= 0 and p > 0:
                    idx = j
                    break
            chosen.append(idx)
        return chosen


def make_replay_policy(strategy: SamplingStrategy) -> ReplayPolicy:
    policies = {
        SamplingStrategy.UNIFORM:     UniformReplay,
        SamplingStrategy.RESERVOIR:   ReservoirReplay,
        SamplingStrategy.PRIORITIZED: PrioritisedReplay,
    }
    return policies[SamplingStrategy(strategy)]()
