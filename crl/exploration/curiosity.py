"""
crl/exploration/curiosity.py
============================
Forward / inverse dynamics models for curiosity-driven exploration.

Both models are single linear projections squashed by tanh, over a
fixed weight array that is reused cyclically across input dimensions:

    forward:  ŝ'ᵢ = tanh( Σⱼ W_f[(i·|x| + j) mod |W_f|] · xⱼ ),  x = s ⊕ [a]
    inverse:  â   = tanh( Σⱼ W_i[j mod |W_i|] · zⱼ ),           z = s ⊕ s'

    prediction error  e = √( (1/d) Σᵢ (ŝ'ᵢ − s'ᵢ)² )

Update rules (one step per observed transition):

    W_f[k] ← W_f[k] − η · e · x[k mod |x|]
    W_i[k] ← W_i[k] + η · (a − â) · z[k mod |z|]
"""

from __future__ import annotations

import math
from typing import List, Sequence

from crl.exploration.state import CuriosityState


def forward_predict(cs: CuriosityState, state: Sequence[float], action: int) -> List[float]:
    model = cs.forward_model
    x = list(state) + [float(action)]
    prediction = []
    for i in range(len(state)):
        total = 0.0
        for j, xj in enumerate(x):
            total += model[(i * len(x) + j) % len(model)] * xj
        prediction.append(math.tanh(total))
    return prediction


def inverse_predict(cs: CuriosityState, state: Sequence[float], next_state: Sequence[float]) -> float:
    model = cs.inverse_model
    z = list(state) + list(next_state)
    total = 0.0
    for i, zi in enumerate(z):
        total += model[i % len(model)] * zi
    return math.tanh(total)


def prediction_error(predicted: Sequence[float], actual: Sequence[float]) -> float:
    """Root-mean-square error over the predicted dimensions."""
    sq = sum((p - a) ** 2 for p, a in zip(predicted, actual))
    return math.sqrt(sq / len(predicted))


def update_forward_model(
    cs: CuriosityState,
    state: Sequence[float],
    action: int,
    error: float,
    learning_rate: float,
) -> None:
    x = list(state) + [float(action)]
    model = cs.forward_model
    for k in range(len(model)):
        model[k] -= learning_rate * error * x[k % len(x)]


def update_inverse_model(
    cs: CuriosityState,
    state: Sequence[float],
    next_state: Sequence[float],
    action: int,
    learning_rate: float,
) -> None:
    z = list(state) + list(next_state)
    residual = action - inverse_predict(cs, state, next_state)
    model = cs.inverse_model
    for k in range(len(model)):
        model[k] += learning_rate * residual * z[k % len(z)]


def learning_progress(errors: Sequence[float], window: int = 10) -> float:
    """Drop in mean prediction error between the previous and the most
    recent ``window`` calls, floored at 0.

    0.0 until more than ``window`` errors exist; between ``window + 1``
    and ``2 * window`` errors the previous window is partial.
    """
    if len(errors) <= window:
        return 0.0
    recent = errors[-window:]
    older = errors[-2 * window:-window]
    return max(0.0, sum(older) / len(older) - sum(recent) / window)
