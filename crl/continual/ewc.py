"""
crl/continual/ewc.py
====================
Elastic Weight Consolidation — standalone module.

EWC prevents catastrophic forgetting by penalising changes to
parameters that were important for previously learned tasks.

Mathematical basis:
    L_total(θ) = L_B(θ) + Σ_t Σᵢ (λ/2) F_t,ᵢ (θᵢ − θ*_t,ᵢ)²

    Where:
        L_B(θ):   loss on the task being trained
        F_t,ᵢ:    diagonal Fisher information of task t for parameter i
        θ*_t,ᵢ:   parameter value snapshotted for task t
        λ:        consolidation strength (higher = protect more)

    The update step adds the penalty's gradient directly:

        pᵢ = Σ_t λ · F_t,ᵢ · (θᵢ − θ*_t,ᵢ)
        θᵢ ← θᵢ − η (gᵢ + pᵢ)

    Fisher diagonal approximation:
        F_t,ᵢ ≈ (1/n) Σₙ (∂L(θ; eₙ)/∂θᵢ)²
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from crl.continual.gradients import GradientProvider, fisher_diagonal
from crl.core.types import Experience, FisherInformation

logger = logging.getLogger(__name__)


class EWCRegularizer:
    """Pure EWC bookkeeping — Fisher diagonals keyed by task id.

    The θ* anchors are owned by the ContinualLearner (they double as
    forgetting baselines) and are passed in on every penalty call.
    Tasks with a Fisher matrix but no anchor are skipped.
    """

    def __init__(self, lambda_ewc: float = 400.0):
        self.lambda_ewc = lambda_ewc
        self._fisher: Dict[str, FisherInformation] = {}

    def consolidate(self, fisher: FisherInformation) -> None:
        """Record (or replace) the Fisher diagonal of ``fisher.task_id``."""
        self._fisher[fisher.task_id] = fisher
        logger.info(
            f"EWC: consolidated task '{fisher.task_id}' "
            f"({len(fisher.diagonal)} params, {fisher.sample_size} samples)"
        )

    def has_task(self, task_id: str) -> bool:
        return task_id in self._fisher

    def penalty_vector(
        self,
        params: Sequence[float],
        anchors: Mapping[str, Sequence[float]],
        exclude_task: Optional[str] = None,
    ) -> List[float]:
        """Compute pᵢ = Σ_t λ F_t,ᵢ (θᵢ − θ*_t,ᵢ) over consolidated tasks.

        ``exclude_task`` leaves out a task registered by the current
        update, whose snapshot is still its pre-training parameters.
        """
        penalty = [0.0] * len(params)
        for task_id, fisher in self._fisher.items():
            if task_id == exclude_task:
                continue
            theta_star = anchors.get(task_id)
            if theta_star is None:
                continue
            for i in range(len(penalty)):
                penalty[i] += self.lambda_ewc * fisher.diagonal[i] * (params[i] - theta_star[i])
        return penalty

    def penalty(
        self,
        params: Sequence[float],
        anchors: Mapping[str, Sequence[float]],
        exclude_task: Optional[str] = None,
    ) -> float:
        """Scalar Σ (λ/2) F (θ − θ*)² whose gradient is ``penalty_vector``."""
        total = 0.0
        for task_id, fisher in self._fisher.items():
            if task_id == exclude_task:
                continue
            theta_star = anchors.get(task_id)
            if theta_star is None:
                continue
            for i, theta in enumerate(params):
                delta = theta - theta_star[i]
                total += fisher.diagonal[i] * delta * delta
        return (self.lambda_ewc / 2.0) * total

    @staticmethod
    def estimate_fisher(
        task_id: str,
        provider: GradientProvider,
        params: Sequence[float],
        experiences: Sequence[Experience],
        n_samples: int = 200,
    ) -> FisherInformation:
        """Estimate the diagonal Fisher of ``task_id`` at ``params``."""
        diagonal = fisher_diagonal(provider, params, experiences, n_samples)
        return FisherInformation(
            task_id=task_id,
            diagonal=diagonal,
            sample_size=min(n_samples, len(experiences)),
        )

    def copy(self) -> "EWCRegularizer":
        """Shallow copy for staging; FisherInformation records are
        replaced, never mutated, so sharing them is safe."""
        clone = EWCRegularizer(self.lambda_ewc)
        clone._fisher = dict(self._fisher)
        return clone

    @property
    def fisher_matrices(self) -> Dict[str, FisherInformation]:
        return dict(self._fisher)

    @property
    def consolidated_tasks(self) -> List[str]:
        return list(self._fisher)
