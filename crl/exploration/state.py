"""
crl/exploration/state.py
========================
Per-strategy exploration state.

Each strategy's state block is created lazily the first time the
strategy runs. ``StrategyStates`` is the single record holding all
four optional blocks; ``ExplorationEngine.reset`` replaces the whole
record at once, so no block can survive a reset.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from crl.exploration.state_keys import StateKey


@dataclass
class UCBState:
    action_counts: List[float]
    action_values: List[float]
    total_steps:   int
    confidence:    List[float]
    ucb_values:    List[float]

    @classmethod
    def initial(cls, num_actions: int) -> "UCBState":
        return cls(
            action_counts=[0.0] * num_actions,
            action_values=[0.0] * num_actions,
            total_steps=0,
            confidence=[math.inf] * num_actions,
            ucb_values=[math.inf] * num_actions,
        )


@dataclass
class ThompsonState:
    alpha_beta:          List[List[float]]    # per action [alpha, beta]
    posterior_means:     List[float]
    posterior_variances: List[float]
    samples:             List[float]

    @classmethod
    def initial(cls, num_actions: int, prior: Tuple[float, float]) -> "ThompsonState":
        return cls(
            alpha_beta=[[float(prior[0]), float(prior[1])] for _ in range(num_actions)],
            posterior_means=[0.5] * num_actions,
            posterior_variances=[0.25] * num_actions,
            samples=[0.0] * num_actions,
        )


@dataclass
class CuriosityState:
    state_dim:         int
    forward_model:     List[float]
    inverse_model:     List[float]
    prediction_errors: List[float] = field(default_factory=list)
    intrinsic_rewards: List[float] = field(default_factory=list)
    novelty_scores:    Dict[StateKey, float] = field(default_factory=dict)

    @classmethod
    def initial(cls, state_dim: int, rng: random.Random) -> "CuriosityState":
        size = state_dim * 2
        return cls(
            state_dim=state_dim,
            forward_model=[(rng.random() - 0.5) * 0.1 for _ in range(size)],
            inverse_model=[(rng.random() - 0.5) * 0.1 for _ in range(size)],
        )


@dataclass
class CountBasedState:
    bonus_coefficient:   float
    state_counts:        Dict[StateKey, int] = field(default_factory=dict)
    state_action_counts: Dict[Tuple[StateKey, int], int] = field(default_factory=dict)


@dataclass
class StrategyStates:
    """All lazily-initialised strategy blocks; ``None`` until first use."""
    ucb:         Optional[UCBState] = None
    thompson:    Optional[ThompsonState] = None
    curiosity:   Optional[CuriosityState] = None
    count_based: Optional[CountBasedState] = None

    @property
    def initialised(self) -> List[str]:
        return [
            name for name in ("ucb", "thompson", "curiosity", "count_based")
            if getattr(self, name) is not None
        ]
