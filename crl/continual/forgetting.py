"""
crl/continual/forgetting.py
===========================
Catastrophic-forgetting assessment, run at the end of every update.

For every distinct task t seen so far that has a θ* snapshot and at
least one buffered experience:

    perf_t      = acc(θ_current ; E_t)
    optimal_t   = acc(θ*_t      ; E_t)
    retention_t = perf_t / optimal_t      (1.0 when optimal_t = 0)

    interference_t = 1 − retention_t      (older tasks only, t ≠ current)

    backward_transfer = mean_{t ≠ current} retention_t   (1.0 if none)
    average_accuracy  = mean_t perf_t

acc(·) is ``evaluate_policy`` and E_t are the buffered experiences of t.
Retention is not clamped: a value above 1.0 means the task improved.

``plasticity`` and ``stability`` are configured placeholders:
    plasticity = plasticity_parameter
    stability  = backward_transfer × stability_parameter
``forward_transfer`` is not measured and is always 0.0.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Sequence

from crl.continual.gradients import ForwardFn, evaluate_policy, linear_tanh
from crl.continual.memory_buffer import MemoryBuffer
from crl.core.types import ForgettingMetrics

logger = logging.getLogger(__name__)


def retention_rate(current_perf: float, optimal_perf: float) -> float:
    if optimal_perf > 0:
        return current_perf / optimal_perf
    return 1.0


def assess_forgetting(
    current_task_id: str,
    policy: Sequence[float],
    optimal_parameters: Mapping[str, Sequence[float]],
    task_sequence: Sequence[str],
    buffer: MemoryBuffer,
    plasticity_parameter: float = 0.7,
    stability_parameter: float = 0.3,
    forward: ForwardFn = linear_tanh,
) -> ForgettingMetrics:
    """Measure how well ``policy`` still performs on every seen task.

    Tasks without buffered experiences or without a snapshot are
    skipped; they have nothing to be measured on.
    """
    retention: Dict[str, float] = {}
    interference: List[float] = []
    accuracies: List[float] = []

    for task_id in dict.fromkeys(task_sequence):
        theta_star = optimal_parameters.get(task_id)
        experiences = buffer.get_by_task(task_id)
        if theta_star is None or not experiences:
            continue
        current = evaluate_policy(policy, experiences, forward)
        optimal = evaluate_policy(theta_star, experiences, forward)
        rate = retention_rate(current, optimal)
        retention[task_id] = rate
        accuracies.append(current)
        if task_id != current_task_id:
            interference.append(1.0 - rate)

    previous = [rate for task_id, rate in retention.items() if task_id != current_task_id]
    backward_transfer = sum(previous) / len(previous) if previous else 1.0
    average_accuracy = sum(accuracies) / len(accuracies) if accuracies else 0.0

    logger.debug(
        f"Forgetting after '{current_task_id}': {len(retention)} tasks assessed, "
        f"BWT={backward_transfer:.4f}, ACC={average_accuracy:.4f}"
    )

    return ForgettingMetrics(
        backward_transfer=backward_transfer,
        forward_transfer=0.0,
        average_accuracy=average_accuracy,
        task_interference=interference,
        retention_rates=retention,
        plasticity=plasticity_parameter,
        stability=backward_transfer * stability_parameter,
    )
