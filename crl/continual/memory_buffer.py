"""
crl/continual/memory_buffer.py
==============================
Bounded experience memory for continual learning.

Stores representative transitions from past tasks. They are rehearsed
while new tasks are trained and they are the data on which forgetting
is measured: a task with no buffered experiences cannot be assessed.

Invariant: size ≤ capacity, always. Once ``capacity`` experiences have
been added, size == capacity.

Replacement and sampling behaviour is delegated to a ``ReplayPolicy``
(see ``crl.continual.replay``): uniform, reservoir or prioritised.
"""

from __future__ import annotations

import logging
import random
from typing import Dict, Iterable, List, Optional

from crl.continual.replay import ReplayPolicy, make_replay_policy
from crl.core.exceptions import MemoryBufferError, wrap_errors
from crl.core.types import Experience, SamplingStrategy
from crl.core.validators import assert_valid_experiences

logger = logging.getLogger(__name__)


class MemoryBuffer:
    """Fixed-capacity experience store.

    Usage:
        buffer = MemoryBuffer(capacity=1000, sampling_strategy="reservoir", rng=rng)
        buffer.add_batch(experiences)
        batch = buffer.sample(32)
    """

    def __init__(
        self,
        capacity: int = 1000,
        sampling_strategy: SamplingStrategy = SamplingStrategy.RESERVOIR,
        rng: Optional[random.Random] = None,
    ):
        if not isinstance(capacity, int) or capacity < 1:
            raise MemoryBufferError(
                f"capacity = {capacity!r} must be an integer ≥ 1",
                context={"capacity": capacity},
            )
        self.capacity = capacity
        self._policy: ReplayPolicy = make_replay_policy(SamplingStrategy(sampling_strategy))
        self._rng = rng or random.Random()
        self._experiences: List[Experience] = []
        self._total_seen: int = 0

    # ─── ADD / UPDATE ──────────────────────────────────────────────

    def add(self, exp: Experience) -> None:
        self._total_seen += 1
        if len(self._experiences) < self.capacity:
            self._experiences.append(exp)
            return
        idx = self._policy.replacement_index(self._experiences, exp, self._total_seen, self._rng)
        if idx is not None:
            self._experiences[idx] = exp

    def add_batch(self, experiences: Iterable[Experience]) -> None:
        """Validate the whole batch, then add it item by item."""
        batch = list(experiences)
        with wrap_errors(MemoryBufferError, "Failed to add to memory buffer"):
            if not batch:
                return
            assert_valid_experiences(batch)
            for exp in batch:
                self.add(exp)
        logger.debug(f"Memory buffer: +{len(batch)} → {self.size}/{self.capacity}")

    def update_priority(self, index: int, priority: float) -> None:
        """Set the priority of the experience stored at ``index``."""
        if not 0 <= index < len(self._experiences):
            raise MemoryBufferError(
                f"index {index} out of range for buffer of size {self.size}",
                context={"index": index, "size": self.size},
            )
        if priority < 0:
            raise MemoryBufferError(f"priority {priority} must be ≥ 0", context={"priority": priority})
        self._experiences[index].priority = priority

    # ─── SAMPLING ──────────────────────────────────────────────────

    def sample(self, batch_size: int) -> List[Experience]:
        """Sample up to ``batch_size`` stored experiences.

        Uniform/reservoir buffers sample without replacement; prioritised
        buffers draw with replacement proportional to priority.
        """
        if batch_size < 0:
            raise MemoryBufferError(f"batch_size {batch_size} must be ≥ 0")
        n = min(batch_size, len(self._experiences))
        if n == 0:
            return []
        indices = self._policy.sample_indices(self._experiences, n, self._rng)
        return [self._experiences[i] for i in indices]

    def get_by_task(self, task_id: str) -> List[Experience]:
        return [exp for exp in self._experiences if exp.task_id == task_id]

    def clear(self) -> None:
        self._experiences = []
        self._total_seen = 0

    # ─── PROPERTIES ────────────────────────────────────────────────

    @property
    def sampling_strategy(self) -> SamplingStrategy:
        return self._policy.strategy

    @property
    def experiences(self) -> List[Experience]:
        return list(self._experiences)

    @property
    def size(self) -> int:
        return len(self._experiences)

    @property
    def total_seen(self) -> int:
        return self._total_seen

    @property
    def task_distribution(self) -> Dict[str, int]:
        dist: Dict[str, int] = {}
        for exp in self._experiences:
            dist[exp.task_id] = dist.get(exp.task_id, 0) + 1
        return dist

    def __len__(self) -> int:
        return len(self._experiences)
