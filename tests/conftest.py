"""
tests/conftest.py
=================
Shared pytest fixtures for all CRL-Core tests.
"""

import math
import random

import pytest
from crl.continual.learner import ContinualLearner
from crl.core.config import ContinualConfig, ExplorationConfig
from crl.core.types import Experience, Task
from crl.exploration.engine import ExplorationEngine


def make_experiences(task_id, weights, n, seed=0, priority=1.0):
    """n transitions with s ~ U[-1, 1]^d and r = tanh(w · s)."""
    rng = random.Random(seed)
    experiences = []
    for _ in range(n):
        state = [rng.uniform(-1.0, 1.0) for _ in weights]
        reward = math.tanh(sum(w * s for w, s in zip(weights, state)))
        experiences.append(Experience(
            task_id=task_id,
            state=state,
            action=0,
            reward=reward,
            next_state=state,
            priority=priority,
        ))
    return experiences


# ─── TASKS / EXPERIENCES ──────────────────────────────────────────


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def task_a():
    return Task(task_id="task_a", environment="synthetic", state_space=4, action_space=1)


@pytest.fixture
def task_b():
    return Task(task_id="task_b", environment="synthetic", state_space=4, action_space=1)


@pytest.fixture
def experiences_a():
    return make_experiences("task_a", [0.9, -0.4, 0.5, 0.2], 24, seed=1)


@pytest.fixture
def experiences_b():
    return make_experiences("task_b", [-0.7, 0.6, -0.3, 0.8], 24, seed=2)


# ─── ENGINES ──────────────────────────────────────────────────────


@pytest.fixture
def engine():
    return ExplorationEngine(ExplorationConfig(), seed=7)


@pytest.fixture
def continual_config():
    return ContinualConfig(learning_rate=0.05, fisher_samples=16, seed=7)


@pytest.fixture
def learner(continual_config):
    return ContinualLearner(policy_size=4, config=continual_config)


@pytest.fixture
def experience_factory():
    return make_experiences
