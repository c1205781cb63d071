"""
crl/core/types.py
=================
Foundation type system for CRL-Core.
Every module imports from here. No circular dependencies.

Shapes shared by both engines:
  - Task        — immutable descriptor of one learning phase
  - Experience  — one environment transition (s, a, r, s', done)
  - PolicyVector — plain List[float] owned by the ContinualLearner;
                   snapshots are tuples so they cannot be written through
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

PolicyVector = List[float]


# ─────────────────────────────────────────────
#  ENUMERATIONS
# ─────────────────────────────────────────────

class ContinualStrategy(Enum):
    """Forgetting-mitigation strategies.

    GEM and A-GEM are recognised tags with no implementation;
    the learner rejects them with a ConfigurationError.
    """
    EWC            = "EWC"
    PACKNET        = "PackNet"
    PROGRESSIVE_NN = "ProgressiveNN"
    GEM            = "GEM"
    A_GEM          = "A-GEM"


class SamplingStrategy(Enum):
    """Replacement/sampling policy of the experience memory buffer."""
    UNIFORM     = "uniform"
    RESERVOIR   = "reservoir"
    PRIORITIZED = "prioritized"


class ExplorationStrategy(Enum):
    EPSILON_GREEDY = "epsilon-greedy"
    UCB            = "ucb"
    THOMPSON       = "thompson"
    CURIOSITY      = "curiosity"
    ENTROPY        = "entropy"
    COUNT_BASED    = "count-based"
    SOFTMAX        = "softmax"


# ─────────────────────────────────────────────
#  TASKS AND EXPERIENCES
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class Task:
    """One learning phase. Created once by the caller, never mutated.

    ``initial_policy`` is a hint only; see ``ContinualLearner.from_task``.
    """
    task_id:        str
    environment:    str = ""
    state_space:    int = 0
    action_space:   int = 0
    difficulty:     float = 0.0
    initial_policy: Tuple[float, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "initial_policy", tuple(float(x) for x in self.initial_policy))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Build from a caller mapping; accepts camelCase keys."""
        return cls(
            task_id=str(data.get("task_id", data.get("taskId", ""))),
            environment=data.get("environment", ""),
            state_space=int(data.get("state_space", data.get("stateSpace", 0))),
            action_space=int(data.get("action_space", data.get("actionSpace", 0))),
            difficulty=float(data.get("difficulty", 0.0)),
            initial_policy=tuple(data.get("initial_policy", data.get("initialPolicy", ()))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id":        self.task_id,
            "environment":    self.environment,
            "state_space":    self.state_space,
            "action_space":   self.action_space,
            "difficulty":     self.difficulty,
            "initial_policy": list(self.initial_policy),
        }


@dataclass
class Experience:
    """A single environment transition.

    State vectors are stored as tuples. ``priority`` is the only field
    callers are expected to change after creation (e.g. after a new
    TD-error is known); use ``MemoryBuffer.update_priority`` for
    buffered experiences.
    """
    task_id:    str
    state:      Tuple[float, ...]
    action:     int
    reward:     float
    next_state: Tuple[float, ...] = field(default_factory=tuple)
    done:       bool  = False
    priority:   float = 1.0
    timestamp:  float = field(default_factory=time.time)

    def __post_init__(self):
        self.state = tuple(float(x) for x in self.state)
        self.next_state = tuple(float(x) for x in self.next_state)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Experience":
        kwargs: Dict[str, Any] = {
            "task_id":    str(data.get("task_id", data.get("taskId", ""))),
            "state":      data.get("state", ()),
            "action":     int(data.get("action", 0)),
            "reward":     float(data.get("reward", 0.0)),
            "next_state": data.get("next_state", data.get("nextState", ())),
            "done":       bool(data.get("done", False)),
            "priority":   float(data.get("priority", 1.0)),
        }
        if "timestamp" in data:
            kwargs["timestamp"] = float(data["timestamp"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id":    self.task_id,
            "state":      list(self.state),
            "action":     self.action,
            "reward":     self.reward,
            "next_state": list(self.next_state),
            "done":       self.done,
            "priority":   self.priority,
            "timestamp":  self.timestamp,
        }


# ─────────────────────────────────────────────
#  CONTINUAL LEARNING STATE
# ─────────────────────────────────────────────

@dataclass
class FisherInformation:
    """Diagonal Fisher approximation for one task.

    Fᵢ ≈ (1/n) Σₙ (∂L/∂θᵢ)²  — every entry is ≥ 0.
    """
    task_id:     str
    diagonal:    List[float]
    sample_size: int
    computed_on: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id":     self.task_id,
            "diagonal":    list(self.diagonal),
            "sample_size": self.sample_size,
            "computed_on": self.computed_on,
        }


@dataclass
class PackNetMask:
    """Indices of the policy vector owned exclusively by one task."""
    task_id:           str
    mask:              List[bool]
    pruning_rate:      float
    active_parameters: int

    @property
    def indices(self) -> List[int]:
        return [i for i, owned in enumerate(self.mask) if owned]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id":           self.task_id,
            "mask":              list(self.mask),
            "pruning_rate":      self.pruning_rate,
            "active_parameters": self.active_parameters,
        }


@dataclass
class ProgressiveColumn:
    """One Progressive NN column.

    Columns are append-only. A frozen column stores its parameters and
    lateral weights as tuples, so nothing can write them again.
    """
    column_id:           int
    task_id:             str
    parameters:          Tuple[float, ...]
    lateral_connections: Dict[int, Tuple[float, ...]] = field(default_factory=dict)
    frozen:              bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column_id":  self.column_id,
            "task_id":    self.task_id,
            "parameters": list(self.parameters),
            "lateral_connections": {
                str(k): list(v) for k, v in self.lateral_connections.items()
            },
            "frozen":     self.frozen,
        }


@dataclass
class ForgettingMetrics:
    """Catastrophic-forgetting summary computed after every update.

    ``retention_rates`` are unclamped: > 1.0 means the task improved.
    ``plasticity`` and ``stability`` are configured placeholders, not
    measurements (plasticity_parameter and
    backward_transfer × stability_parameter).
    """
    backward_transfer: float = 1.0
    forward_transfer:  float = 0.0
    average_accuracy:  float = 0.0
    task_interference: List[float] = field(default_factory=list)
    retention_rates:   Dict[str, float] = field(default_factory=dict)
    plasticity:        float = 0.0
    stability:         float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backward_transfer": self.backward_transfer,
            "forward_transfer":  self.forward_transfer,
            "average_accuracy":  self.average_accuracy,
            "task_interference": list(self.task_interference),
            "retention_rates":   dict(self.retention_rates),
            "plasticity":        self.plasticity,
            "stability":         self.stability,
        }


@dataclass
class ContinualResult:
    """Outcome of one continual update call."""
    task_id:                str
    updated_policy:         PolicyVector
    performance_history:    List[float]
    forgetting_metrics:     ForgettingMetrics
    memory_usage:           int
    training_time:          float
    strategy:               str = ContinualStrategy.EWC.value
    regularization_history: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id":                self.task_id,
            "strategy":               self.strategy,
            "updated_policy":         list(self.updated_policy),
            "performance_history":    list(self.performance_history),
            "forgetting_metrics":     self.forgetting_metrics.to_dict(),
            "memory_usage":           self.memory_usage,
            "training_time":          self.training_time,
            "regularization_history": list(self.regularization_history),
        }


# ─────────────────────────────────────────────
#  EXPLORATION RESULTS
# ─────────────────────────────────────────────

@dataclass
class IntrinsicMotivation:
    novelty:           float
    surprise:          float
    learning_progress: float
    empowerment:       float
    curiosity_reward:  float

    def to_dict(self) -> Dict[str, float]:
        return {
            "novelty":           self.novelty,
            "surprise":          self.surprise,
            "learning_progress": self.learning_progress,
            "empowerment":       self.empowerment,
            "curiosity_reward":  self.curiosity_reward,
        }


@dataclass
class EntropyMetrics:
    policy_entropy:           float
    state_visitation_entropy: float
    action_entropy:           List[float]
    diversity_score:          float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy_entropy":           self.policy_entropy,
            "state_visitation_entropy": self.state_visitation_entropy,
            "action_entropy":           list(self.action_entropy),
            "diversity_score":          self.diversity_score,
        }


@dataclass
class ExplorationResult:
    """Action chosen by a strategy plus its diagnostics.

    ``regret`` is reported as 0.0 by strategies where it is not
    defined (curiosity, entropy).
    """
    strategy:             str
    action:               int
    exploration_rate:     float
    performance:          float
    actions_explored:     int
    regret:               float
    coverage_score:       float
    intrinsic_motivation: Optional[IntrinsicMotivation] = None
    entropy_metrics:      Optional[EntropyMetrics] = None

    @property
    def was_exploration(self) -> bool:
        return self.actions_explored > 0

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "strategy":         self.strategy,
            "action":           self.action,
            "exploration_rate": self.exploration_rate,
            "performance":      self.performance,
            "actions_explored": self.actions_explored,
            "regret":           self.regret,
            "coverage_score":   self.coverage_score,
        }
        if self.intrinsic_motivation is not None:
            out["intrinsic_motivation"] = self.intrinsic_motivation.to_dict()
        if self.entropy_metrics is not None:
            out["entropy_metrics"] = self.entropy_metrics.to_dict()
        return out


@dataclass
class ExplorationEntry:
    """One step of an agent's exploration history."""
    step:             int
    state:            Sequence[float]
    action:           int
    reward:           float
    intrinsic_reward: float = 0.0
    was_exploration:  bool  = False
    uncertainty:      float = 0.0
