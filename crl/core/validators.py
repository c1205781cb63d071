"""
crl/core/validators.py
======================
Input validation utilities for CRL-Core.

Validates:
    - Numeric vectors (non-empty, finite, matching lengths)
    - Probabilities and positive scalars
    - ExplorationConfig / ContinualConfig hyperparameters
    - Tasks and experience batches handed to the ContinualLearner

``validate_*`` functions return a list of error strings;
``assert_*`` functions raise **ConfigurationError** with structured
context. Engines call the ``assert_*`` variants at their public
boundary, before any state is touched.
"""
from __future__ import annotations

import math
from typing import List, Optional, Sequence

from crl.core.config import ContinualConfig, ExplorationConfig
from crl.core.exceptions import ConfigurationError
from crl.core.types import Experience, ExplorationStrategy, Task


# ─── VECTORS ──────────────────────────────────────────────────────

def validate_vector(
    values: Sequence[float],
    label: str = "vector",
    expected_length: Optional[int] = None,
    allow_empty: bool = False,
) -> List[str]:
    """Check that ``values`` is a sequence of finite numbers."""
    errors: List[str] = []
    if values is None:
        return [f"{label} is missing"]
    if len(values) == 0 and not allow_empty:
        errors.append(f"{label} is empty")
    if expected_length is not None and len(values) != expected_length:
        errors.append(f"{label} has length {len(values)}, expected {expected_length}")
    for i, v in enumerate(values):
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            errors.append(f"{label}[{i}] = {v!r} is not a number")
        elif not math.isfinite(v):
            errors.append(f"{label}[{i}] = {v} is not finite")
    return errors


def validate_probability(value: float, label: str = "probability") -> List[str]:
    if not isinstance(value, (int, float)) or math.isnan(value):
        return [f"{label} = {value!r} is not a number"]
    if not (0.0 <= value <= 1.0):
        return [f"{label} = {value} not in [0, 1]"]
    return []


def validate_positive(value: float, label: str) -> List[str]:
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        return [f"{label} = {value!r} must be a positive number"]
    return []


def validate_non_negative(value: float, label: str) -> List[str]:
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        return [f"{label} = {value!r} must be a non-negative number"]
    return []


# ─── CONFIGS ──────────────────────────────────────────────────────

def validate_exploration_config(cfg: ExplorationConfig) -> List[str]:
    errors: List[str] = []
    strategies = [s.value for s in ExplorationStrategy]
    if cfg.strategy not in strategies:
        errors.append(f"strategy = {cfg.strategy!r} not one of {strategies}")
    errors += validate_probability(cfg.epsilon, "epsilon")
    errors += validate_non_negative(cfg.ucb_constant, "ucb_constant")
    if len(cfg.thompson_prior) != 2:
        errors.append(f"thompson_prior must be an (alpha, beta) pair, got {cfg.thompson_prior!r}")
    else:
        errors += validate_positive(cfg.thompson_prior[0], "thompson_prior.alpha")
        errors += validate_positive(cfg.thompson_prior[1], "thompson_prior.beta")
    errors += validate_non_negative(cfg.curiosity_coefficient, "curiosity_coefficient")
    errors += validate_non_negative(cfg.intrinsic_reward_weight, "intrinsic_reward_weight")
    errors += validate_probability(cfg.decay_rate, "decay_rate")
    errors += validate_non_negative(cfg.count_bonus_coefficient, "count_bonus_coefficient")
    errors += validate_positive(cfg.model_learning_rate, "model_learning_rate")
    return errors


def validate_continual_config(cfg: ContinualConfig) -> List[str]:
    errors: List[str] = []
    errors += validate_non_negative(cfg.ewc_lambda, "ewc_lambda")
    if not isinstance(cfg.fisher_samples, int) or cfg.fisher_samples < 1:
        errors.append(f"fisher_samples = {cfg.fisher_samples!r} must be an integer ≥ 1")
    errors += validate_probability(cfg.packnet_pruning_rate, "packnet_pruning_rate")
    if not isinstance(cfg.memory_buffer_size, int) or cfg.memory_buffer_size < 1:
        errors.append(f"memory_buffer_size = {cfg.memory_buffer_size!r} must be an integer ≥ 1")
    errors += validate_non_negative(cfg.plasticity_parameter, "plasticity_parameter")
    errors += validate_non_negative(cfg.stability_parameter, "stability_parameter")
    errors += validate_positive(cfg.learning_rate, "learning_rate")
    if not isinstance(cfg.batch_size, int) or cfg.batch_size < 1:
        errors.append(f"batch_size = {cfg.batch_size!r} must be an integer ≥ 1")
    errors += validate_positive(cfg.finite_difference_epsilon, "finite_difference_epsilon")
    return errors


# ─── TASKS / EXPERIENCES ──────────────────────────────────────────

def validate_task(task: Task, policy_size: Optional[int] = None) -> List[str]:
    errors: List[str] = []
    if not isinstance(task, Task):
        return [f"task must be a Task, got {type(task).__name__}"]
    if not task.task_id:
        errors.append("Task task_id is empty")
    if task.initial_policy and policy_size is not None and len(task.initial_policy) != policy_size:
        errors.append(
            f"Task '{task.task_id}' initial_policy has length "
            f"{len(task.initial_policy)}, expected {policy_size}"
        )
    return errors


def validate_experiences(
    experiences: Sequence[Experience],
    label: str = "experiences",
    state_dim: Optional[int] = None,
) -> List[str]:
    errors: List[str] = []
    if not experiences:
        return [f"{label} is empty"]
    for i, exp in enumerate(experiences):
        if not isinstance(exp, Experience):
            errors.append(f"{label}[{i}] must be an Experience, got {type(exp).__name__}")
            continue
        errors.extend(validate_vector(exp.state, f"{label}[{i}].state", expected_length=state_dim))
        if not math.isfinite(exp.reward):
            errors.append(f"{label}[{i}].reward = {exp.reward} is not finite")
        if not math.isfinite(exp.priority) or exp.priority < 0:
            errors.append(f"{label}[{i}].priority = {exp.priority} must be ≥ 0")
    return errors


# ─── CONVENIENCE VALIDATORS ──────────────────────────────────────

def _raise_if(errors: List[str], what: str, **context) -> None:
    if errors:
        raise ConfigurationError(
            f"Invalid {what}: {'; '.join(errors)}",
            context={"error_count": len(errors), **context},
        )


def assert_valid_vector(
    values: Sequence[float],
    label: str = "vector",
    expected_length: Optional[int] = None,
) -> None:
    _raise_if(validate_vector(values, label, expected_length), label, label=label)


def assert_valid_probability(value: float, label: str = "probability") -> None:
    _raise_if(validate_probability(value, label), label, label=label)


def assert_positive(value: float, label: str) -> None:
    _raise_if(validate_positive(value, label), label, label=label)


def assert_valid_exploration_config(cfg: ExplorationConfig) -> None:
    _raise_if(validate_exploration_config(cfg), "exploration config")


def assert_valid_continual_config(cfg: ContinualConfig) -> None:
    _raise_if(validate_continual_config(cfg), "continual config")


def assert_valid_task(task: Task, policy_size: Optional[int] = None) -> None:
    _raise_if(validate_task(task, policy_size), "task")


def assert_valid_experiences(
    experiences: Sequence[Experience],
    label: str = "experiences",
    state_dim: Optional[int] = None,
) -> None:
    _raise_if(validate_experiences(experiences, label, state_dim), label, count=len(experiences or []))
