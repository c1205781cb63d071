"""
crl/continual/gradients.py
==========================
Gradient providers for the continual learning strategies.

EWC, PackNet and Progressive NN never differentiate anything
themselves; they hand a scalar loss closure to a ``GradientProvider``.
The default provider uses forward finite differences:

    ∂L/∂θᵢ ≈ ( L(θ + ε·eᵢ) − L(θ) ) / ε,     ε = 1e-5

which costs |θ| + 1 loss evaluations per call. An analytic or autodiff
provider can be dropped in without touching the strategies.

Policy model (shared by EWC and PackNet):

    f(θ, s) = tanh( Σ_{i < min(|θ|,|s|)} θᵢ sᵢ )
    L(θ; e) = ( f(θ, e.state) − e.reward )²

Diagonal Fisher information over a task's experiences:

    Fᵢ = (1/n) Σₙ ( ∂L(θ; eₙ)/∂θᵢ )²,   n = min(fisher_samples, |E|)
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Optional, Sequence

from crl.core.types import Experience

LossFn = Callable[[Sequence[float]], float]
ForwardFn = Callable[[Sequence[float], Sequence[float]], float]


# ─────────────────────────────────────────────
#  PROVIDERS
# ─────────────────────────────────────────────


class GradientProvider(ABC):
    """Computes ∂loss/∂params for a scalar loss closure."""

    @abstractmethod
    def gradient(
        self,
        loss_fn: LossFn,
        params: Sequence[float],
        indices: Optional[Iterable[int]] = None,
    ) -> List[float]:
        """Return a gradient vector the length of ``params``.

        When ``indices`` is given only those entries are computed;
        every other entry is 0.0.
        """


class FiniteDifferenceGradient(GradientProvider):
    """Forward-difference gradient estimate."""

    def __init__(self, epsilon: float = 1e-5):
        assert epsilon > 0, "epsilon must be positive"
        self.epsilon = epsilon

    def gradient(
        self,
        loss_fn: LossFn,
        params: Sequence[float],
        indices: Optional[Iterable[int]] = None,
    ) -> List[float]:
        grad = [0.0] * len(params)
        base_loss = loss_fn(params)
        probe = list(params)
        targets = range(len(params)) if indices is None else indices
        for i in targets:
            original = probe[i]
            probe[i] = original + self.epsilon
            grad[i] = (loss_fn(probe) - base_loss) / self.epsilon
            probe[i] = original
        return grad


# ─────────────────────────────────────────────
#  POLICY MODEL
# ─────────────────────────────────────────────


def linear_tanh(params: Sequence[float], state: Sequence[float]) -> float:
    total = 0.0
    for i in range(min(len(params), len(state))):
        total += params[i] * state[i]
    return math.tanh(total)


def squared_error(
    params: Sequence[float],
    exp: Experience,
    forward: ForwardFn = linear_tanh,
) -> float:
    return (forward(params, exp.state) - exp.reward) ** 2


def batch_gradient(
    provider: GradientProvider,
    params: Sequence[float],
    experiences: Sequence[Experience],
    batch_size: int = 32,
    forward: ForwardFn = linear_tanh,
    indices: Optional[Sequence[int]] = None,
) -> List[float]:
    """Mean per-experience gradient over the first ``batch_size`` experiences."""
    batch = experiences[:batch_size]
    total = [0.0] * len(params)
    if not batch:
        return total
    for exp in batch:
        grad = provider.gradient(lambda p, e=exp: squared_error(p, e, forward), params, indices)
        for j, g in enumerate(grad):
            total[j] += g
    n = len(batch)
    return [g / n for g in total]


def fisher_diagonal(
    provider: GradientProvider,
    params: Sequence[float],
    experiences: Sequence[Experience],
    n_samples: int,
    forward: ForwardFn = linear_tanh,
) -> List[float]:
    """Mean squared per-experience gradient; every entry is ≥ 0."""
    sample_size = min(n_samples, len(experiences))
    diagonal = [0.0] * len(params)
    if sample_size == 0:
        return diagonal
    for i in range(sample_size):
        exp = experiences[i % len(experiences)]
        grad = provider.gradient(lambda p, e=exp: squared_error(p, e, forward), params)
        for j, g in enumerate(grad):
            diagonal[j] += g * g
    return [d / sample_size for d in diagonal]


def evaluate_policy(
    params: Sequence[float],
    experiences: Sequence[Experience],
    forward: ForwardFn = linear_tanh,
) -> float:
    """Prediction accuracy of ``params`` on ``experiences``.

        acc(θ) = (1/|E|) Σₑ 1 / (1 + (f(θ, sₑ) − rₑ)²)   ∈ (0, 1]

    1.0 means every reward is predicted exactly. Returns 0.0 for an
    empty batch.
    """
    if not experiences:
        return 0.0
    total = 0.0
    for exp in experiences:
        err = forward(params, exp.state) - exp.reward
        total += 1.0 / (1.0 + err * err)
    return total / len(experiences)
