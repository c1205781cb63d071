"""
crl/continual/learner.py
========================
ContinualLearner — learns a sequence of tasks into one flat policy
vector without forgetting the earlier ones.

Three forgetting-mitigation strategies share one policy model
(``f(θ, s) = tanh(θ · s)``, squared error against the reward):

    EWC            θᵢ ← θᵢ − η ( gᵢ + Σ_t λ F_t,ᵢ (θᵢ − θ*_t,ᵢ) )
    PackNet        θᵢ ← θᵢ − η gᵢ · mask_k,ᵢ
    Progressive NN new column θ_k trained alone; earlier columns frozen

Task lifecycle:

    Unseen ──update──▶ Training (N epochs) ──▶ Snapshotted / Frozen

Every update is atomic. The learner's state (policy, Fisher diagonals,
θ* snapshots, PackNet masks, Progressive columns, task sequence) is
copied into a staging record, the whole run including forgetting
assessment works on the copy, and the copy replaces the live state
only when the run succeeds. A failure or cancellation leaves every
piece of state at its pre-call value.

The experience memory buffer is not part of an update: callers fill it
with ``add_to_memory_buffer``, and forgetting is measured on it.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from crl.continual.ewc import EWCRegularizer
from crl.continual.forgetting import assess_forgetting
from crl.continual.gradients import (
    FiniteDifferenceGradient,
    GradientProvider,
    batch_gradient,
    evaluate_policy,
)
from crl.continual.memory_buffer import MemoryBuffer
from crl.continual.packnet import PackNetAllocator
from crl.continual.progressive import ProgressiveNetwork
from crl.core.config import ContinualConfig, coerce_enum
from crl.core.exceptions import ConfigurationError, ContinualUpdateError, UpdateCancelled, wrap_errors
from crl.core.types import (
    ContinualResult,
    ContinualStrategy,
    Experience,
    FisherInformation,
    PackNetMask,
    PolicyVector,
    ProgressiveColumn,
    Task,
)
from crl.core.validators import (
    assert_positive,
    assert_valid_continual_config,
    assert_valid_experiences,
    assert_valid_task,
)

logger = logging.getLogger(__name__)

StopCheck = Callable[[], bool]

BYTES_PER_PARAMETER = 8
BYTES_PER_EXPERIENCE = 100


@dataclass
class _LearnerState:
    """Everything an update may change. Replaced as a whole on commit."""

    policy: PolicyVector
    ewc: EWCRegularizer
    packnet: PackNetAllocator
    progressive: ProgressiveNetwork
    optimal: Dict[str, Tuple[float, ...]] = field(default_factory=dict)
    task_sequence: List[str] = field(default_factory=list)

    def stage(self) -> "_LearnerState":
        return _LearnerState(
            policy=list(self.policy),
            ewc=self.ewc.copy(),
            packnet=self.packnet.copy(),
            progressive=self.progressive.copy(),
            optimal=dict(self.optimal),
            task_sequence=list(self.task_sequence),
        )


class ContinualLearner:
    """Continual RL policy learner with EWC, PackNet and Progressive NN.

    Usage:
        learner = ContinualLearner(policy_size=10, config=ContinualConfig(seed=7))
        learner.add_to_memory_buffer(experiences_a)
        result = learner.update_with_ewc(task_a, experiences_a)
        result.forgetting_metrics.retention_rates   # {"task_a": 1.0}
    """

    def __init__(
        self,
        policy_size: int = 10,
        config: Optional[ContinualConfig] = None,
        rng: Optional[random.Random] = None,
        gradient_provider: Optional[GradientProvider] = None,
    ):
        self.config = config or ContinualConfig()
        assert_valid_continual_config(self.config)
        if not isinstance(policy_size, int) or policy_size < 1:
            raise ConfigurationError(
                f"policy_size = {policy_size!r} must be an integer ≥ 1",
                context={"policy_size": policy_size},
            )

        self._rng = rng or random.Random(self.config.seed)
        self._gradients = gradient_provider or FiniteDifferenceGradient(
            self.config.finite_difference_epsilon
        )
        self._state = _LearnerState(
            policy=[(self._rng.random() - 0.5) * 0.1 for _ in range(policy_size)],
            ewc=EWCRegularizer(self.config.ewc_lambda),
            packnet=PackNetAllocator(policy_size, self.config.packnet_pruning_rate),
            progressive=ProgressiveNetwork(),
        )
        self._buffer = MemoryBuffer(
            capacity=self.config.memory_buffer_size,
            sampling_strategy=self.config.memory_sampling_strategy,
            rng=self._rng,
        )

    @classmethod
    def from_task(
        cls,
        task: Task,
        config: Optional[ContinualConfig] = None,
        rng: Optional[random.Random] = None,
        gradient_provider: Optional[GradientProvider] = None,
    ) -> "ContinualLearner":
        """Build a learner whose initial policy is ``task.initial_policy``."""
        assert_valid_task(task)
        if not task.initial_policy:
            raise ConfigurationError(
                f"Task '{task.task_id}' has no initial_policy",
                context={"task_id": task.task_id},
            )
        learner = cls(len(task.initial_policy), config, rng, gradient_provider)
        learner._state.policy = list(task.initial_policy)
        return learner

    # ─── DISPATCH ──────────────────────────────────────────────────

    def update(
        self,
        task: Task,
        experiences: Sequence[Experience],
        epochs: int = 10,
        should_stop: Optional[StopCheck] = None,
        strategy: Optional[Union[ContinualStrategy, str]] = None,
    ) -> ContinualResult:
        """Run ``strategy``, or the one named by ``config.strategy``."""
        if strategy is None:
            strategy = self.config.strategy
        strategy = coerce_enum(ContinualStrategy, strategy, "strategy")
        if strategy == ContinualStrategy.EWC:
            return self.update_with_ewc(task, experiences, epochs, should_stop)
        if strategy == ContinualStrategy.PACKNET:
            return self.update_with_packnet(task, experiences, epochs, should_stop)
        if strategy == ContinualStrategy.PROGRESSIVE_NN:
            return self.update_with_progressive_nn(task, experiences, epochs, should_stop)
        raise ConfigurationError(
            f"Continual strategy '{strategy.value}' is not implemented",
            context={
                "strategy": strategy.value,
                "available": [s.value for s in (
                    ContinualStrategy.EWC, ContinualStrategy.PACKNET, ContinualStrategy.PROGRESSIVE_NN,
                )],
            },
        )

    # ─── EWC ───────────────────────────────────────────────────────

    def update_with_ewc(
        self,
        task: Task,
        experiences: Sequence[Experience],
        epochs: int = 10,
        should_stop: Optional[StopCheck] = None,
    ) -> ContinualResult:
        """Train on ``task`` with the EWC penalty of every registered task.

        A task registered by this call is not anchored to the snapshot
        it was just given, so the first task trains exactly as it would
        without EWC. A revisited task is pulled toward its earlier θ*.
        """
        strategy = ContinualStrategy.EWC.value
        with wrap_errors(ContinualUpdateError, "EWC update failed", strategy=strategy):
            start = time.perf_counter()
            experiences = self._check_inputs(task, experiences, epochs)
            staged = self._state.stage()
            cfg = self.config

            newly_registered = not staged.ewc.has_task(task.task_id)
            if newly_registered:
                staged.ewc.consolidate(self._fisher(task.task_id, staged.policy, experiences))
                staged.optimal[task.task_id] = tuple(staged.policy)

            performance: List[float] = []
            regularization: List[float] = []
            for epoch in range(epochs):
                self._check_stop(should_stop, strategy, task, epoch)
                grad = batch_gradient(self._gradients, staged.policy, experiences, cfg.batch_size)
                penalty = staged.ewc.penalty_vector(
                    staged.policy, staged.optimal,
                    exclude_task=task.task_id if newly_registered else None,
                )
                staged.policy = [
                    theta - cfg.learning_rate * (g + p)
                    for theta, g, p in zip(staged.policy, grad, penalty)
                ]
                performance.append(evaluate_policy(staged.policy, experiences))
                regularization.append(math.sqrt(sum(p * p for p in penalty)))
                logger.debug(
                    f"EWC '{task.task_id}' epoch {epoch + 1}/{epochs}: "
                    f"acc={performance[-1]:.4f} |penalty|={regularization[-1]:.4f}"
                )

            staged.ewc.consolidate(self._fisher(task.task_id, staged.policy, experiences))
            staged.optimal[task.task_id] = tuple(staged.policy)
            return self._commit(staged, task, strategy, performance, start, regularization)

    # ─── PACKNET ───────────────────────────────────────────────────

    def update_with_packnet(
        self,
        task: Task,
        experiences: Sequence[Experience],
        epochs: int = 10,
        should_stop: Optional[StopCheck] = None,
    ) -> ContinualResult:
        """Train only the parameters ``task`` owns under its PackNet mask."""
        strategy = ContinualStrategy.PACKNET.value
        with wrap_errors(ContinualUpdateError, "PackNet update failed", strategy=strategy):
            start = time.perf_counter()
            experiences = self._check_inputs(task, experiences, epochs)
            staged = self._state.stage()
            cfg = self.config

            mask = staged.packnet.allocate(task.task_id)
            owned = mask.indices

            performance: List[float] = []
            for epoch in range(epochs):
                self._check_stop(should_stop, strategy, task, epoch)
                grad = batch_gradient(
                    self._gradients, staged.policy, experiences, cfg.batch_size, indices=owned
                )
                grad = PackNetAllocator.apply(mask, grad)
                staged.policy = [theta - cfg.learning_rate * g for theta, g in zip(staged.policy, grad)]
                performance.append(evaluate_policy(staged.policy, experiences))
                logger.debug(
                    f"PackNet '{task.task_id}' epoch {epoch + 1}/{epochs}: "
                    f"acc={performance[-1]:.4f} ({len(owned)} trainable)"
                )

            staged.optimal[task.task_id] = tuple(staged.policy)
            return self._commit(staged, task, strategy, performance, start)

    # ─── PROGRESSIVE NN ────────────────────────────────────────────

    def update_with_progressive_nn(
        self,
        task: Task,
        experiences: Sequence[Experience],
        epochs: int = 10,
        should_stop: Optional[StopCheck] = None,
    ) -> ContinualResult:
        """Add a column for ``task``, train it alone, then freeze it.

        The current policy becomes the new column's parameter vector.
        """
        strategy = ContinualStrategy.PROGRESSIVE_NN.value
        with wrap_errors(ContinualUpdateError, "Progressive NN update failed", strategy=strategy):
            start = time.perf_counter()
            experiences = self._check_inputs(task, experiences, epochs)
            staged = self._state.stage()
            cfg = self.config

            column = staged.progressive.new_column(task.task_id, len(staged.policy), self._rng)
            forward = staged.progressive.column_forward(column)
            params = list(column.parameters)

            performance: List[float] = []
            for epoch in range(epochs):
                self._check_stop(should_stop, strategy, task, epoch)
                grad = batch_gradient(self._gradients, params, experiences, cfg.batch_size, forward)
                params = [theta - cfg.learning_rate * g for theta, g in zip(params, grad)]
                performance.append(evaluate_policy(params, experiences, forward))
                logger.debug(
                    f"Progressive '{task.task_id}' column {column.column_id} "
                    f"epoch {epoch + 1}/{epochs}: acc={performance[-1]:.4f}"
                )

            staged.progressive.append(column, params)
            staged.policy = list(params)
            staged.optimal[task.task_id] = tuple(params)
            return self._commit(staged, task, strategy, performance, start)

    # ─── MEMORY BUFFER ─────────────────────────────────────────────

    def add_to_memory_buffer(self, experiences: Sequence[Experience]) -> None:
        self._buffer.add_batch(experiences)

    def sample_memory_buffer(self, batch_size: int) -> List[Experience]:
        return self._buffer.sample(batch_size)

    # ─── DIAGNOSTICS ───────────────────────────────────────────────

    def estimate_memory_usage(self) -> int:
        """Approximate bytes held: 8 per stored float, 100 per experience."""
        state = self._state
        n_params = len(state.policy)
        n_params += sum(len(v) for v in state.optimal.values())
        n_params += sum(len(f.diagonal) for f in state.ewc.fisher_matrices.values())
        for column in state.progressive.columns:
            n_params += len(column.parameters)
            n_params += sum(len(w) for w in column.lateral_connections.values())
        return BYTES_PER_PARAMETER * n_params + BYTES_PER_EXPERIENCE * self._buffer.size

    def export_state(self) -> Dict[str, Any]:
        """JSON-serialisable view of policy, Fisher matrices and task order."""
        return {
            "policy": list(self._state.policy),
            "fisher_matrices": [
                [task_id, fisher.to_dict()]
                for task_id, fisher in self._state.ewc.fisher_matrices.items()
            ],
            "task_sequence": list(self._state.task_sequence),
        }

    @property
    def current_policy(self) -> PolicyVector:
        return list(self._state.policy)

    @property
    def policy_size(self) -> int:
        return len(self._state.policy)

    @property
    def task_sequence(self) -> List[str]:
        return list(self._state.task_sequence)

    @property
    def fisher_matrices(self) -> Dict[str, FisherInformation]:
        return self._state.ewc.fisher_matrices

    @property
    def optimal_parameters(self) -> Dict[str, Tuple[float, ...]]:
        return dict(self._state.optimal)

    @property
    def packnet_masks(self) -> Dict[str, PackNetMask]:
        return self._state.packnet.masks

    @property
    def progressive_columns(self) -> List[ProgressiveColumn]:
        return self._state.progressive.columns

    @property
    def memory_buffer(self) -> MemoryBuffer:
        return self._buffer

    # ─── INTERNALS ─────────────────────────────────────────────────

    def _check_inputs(
        self,
        task: Task,
        experiences: Sequence[Experience],
        epochs: int,
    ) -> List[Experience]:
        """Task, experiences and epochs must fit the policy: a state of
        another length is a configuration error, not a truncation."""
        policy_size = len(self._state.policy)
        assert_valid_task(task, policy_size=policy_size)
        experiences = list(experiences)
        assert_valid_experiences(experiences, state_dim=policy_size)
        assert_positive(epochs, "epochs")
        return experiences

    @staticmethod
    def _check_stop(should_stop: Optional[StopCheck], strategy: str, task: Task, epoch: int) -> None:
        if should_stop is not None and should_stop():
            raise UpdateCancelled(
                f"{strategy} update of '{task.task_id}' cancelled before epoch {epoch + 1}",
                strategy=strategy,
                context={"task_id": task.task_id, "epoch": epoch},
            )

    def _fisher(
        self,
        task_id: str,
        params: Sequence[float],
        experiences: Sequence[Experience],
    ) -> FisherInformation:
        return EWCRegularizer.estimate_fisher(
            task_id, self._gradients, params, experiences, self.config.fisher_samples
        )

    def _commit(
        self,
        staged: _LearnerState,
        task: Task,
        strategy: str,
        performance: List[float],
        start: float,
        regularization: Optional[List[float]] = None,
    ) -> ContinualResult:
        """Assess forgetting on the staged state, then make it live."""
        staged.task_sequence.append(task.task_id)
        metrics = assess_forgetting(
            current_task_id=task.task_id,
            policy=staged.policy,
            optimal_parameters=staged.optimal,
            task_sequence=staged.task_sequence,
            buffer=self._buffer,
            plasticity_parameter=self.config.plasticity_parameter,
            stability_parameter=self.config.stability_parameter,
        )
        self._state = staged

        elapsed = time.perf_counter() - start
        logger.info(
            f"{strategy} update of '{task.task_id}' done in {elapsed:.3f}s: "
            f"BWT={metrics.backward_transfer:.4f}, {len(staged.task_sequence)} updates so far"
        )
        return ContinualResult(
            task_id=task.task_id,
            updated_policy=list(staged.policy),
            performance_history=performance,
            forgetting_metrics=metrics,
            memory_usage=self.estimate_memory_usage(),
            training_time=elapsed,
            strategy=strategy,
            regularization_history=regularization or [],
        )
