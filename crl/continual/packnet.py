"""
crl/continual/packnet.py
========================
PackNet — partition a fixed parameter budget into disjoint,
per-task subsets.

Allocation (task order):
    free_k    = { i : i not owned by any mask of tasks 1..k−1 }
    |mask_k|  = ⌊ |free_k| · r ⌋     (r = pruning rate)
    mask_k    = the |mask_k| lowest indices of free_k

Training task k applies its gradient only on mask_k, so parameters
owned by earlier tasks receive a zero update by construction.

Once every index is owned, a new task's mask is all-false: it can
make no parameter-local updates. That is a valid boundary, not an
error.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from crl.core.types import PackNetMask

logger = logging.getLogger(__name__)


class PackNetAllocator:
    """Builds and tracks mutually exclusive PackNet masks.

    Usage:
        packnet = PackNetAllocator(policy_size=10, pruning_rate=0.5)
        mask_a = packnet.allocate("task_a")   # 5 indices
        mask_b = packnet.allocate("task_b")   # 2 of the remaining 5
        grad   = packnet.apply(mask_b, grad)
    """

    def __init__(self, policy_size: int, pruning_rate: float = 0.5):
        self.policy_size = policy_size
        self.pruning_rate = pruning_rate
        self._masks: Dict[str, PackNetMask] = {}

    def get(self, task_id: str) -> Optional[PackNetMask]:
        return self._masks.get(task_id)

    def free_indices(self) -> List[int]:
        owned = [False] * self.policy_size
        for mask in self._masks.values():
            for i, bit in enumerate(mask.mask):
                if bit:
                    owned[i] = True
        return [i for i, taken in enumerate(owned) if not taken]

    def build_mask(self, task_id: str) -> PackNetMask:
        """Compute the mask ``task_id`` would receive, without storing it."""
        free = self.free_indices()
        n_allocate = int(len(free) * self.pruning_rate)
        bits = [False] * self.policy_size
        for i in free[:n_allocate]:
            bits[i] = True
        if n_allocate == 0:
            logger.warning(
                f"PackNet: no free capacity for task '{task_id}' "
                f"({len(free)} free of {self.policy_size}); mask is empty"
            )
        return PackNetMask(
            task_id=task_id,
            mask=bits,
            pruning_rate=self.pruning_rate,
            active_parameters=n_allocate,
        )

    def register(self, mask: PackNetMask) -> None:
        self._masks[mask.task_id] = mask
        logger.info(
            f"PackNet: task '{mask.task_id}' owns {mask.active_parameters} "
            f"of {self.policy_size} parameters"
        )

    def allocate(self, task_id: str) -> PackNetMask:
        """Return the task's mask, building and storing it on first use."""
        mask = self._masks.get(task_id)
        if mask is None:
            mask = self.build_mask(task_id)
            self.register(mask)
        return mask

    @staticmethod
    def apply(mask: PackNetMask, gradient: Sequence[float]) -> List[float]:
        return [g if owned else 0.0 for g, owned in zip(gradient, mask.mask)]

    def copy(self) -> "PackNetAllocator":
        clone = PackNetAllocator(self.policy_size, self.pruning_rate)
        clone._masks = dict(self._masks)
        return clone

    @property
    def masks(self) -> Dict[str, PackNetMask]:
        return dict(self._masks)
