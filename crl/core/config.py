"""
crl/core/config.py
==================
Global configuration for CRL-Core.
All hyperparameters in one place — validated when an engine is built.

Callers coming from the embedding application send camelCase keys
(``ewcLambda``, ``packNetPruningRate``); ``from_mapping`` accepts
those as well as the snake_case field names.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple

from crl.core.exceptions import ConfigurationError
from crl.core.types import ContinualStrategy, SamplingStrategy


@dataclass
class ExplorationConfig:
    strategy:                str   = "epsilon-greedy"
    epsilon:                 float = 0.1
    ucb_constant:            float = 2.0
    thompson_prior:          Tuple[float, float] = (1.0, 1.0)
    curiosity_coefficient:   float = 0.5
    intrinsic_reward_weight: float = 0.1
    decay_rate:              float = 0.99    # novelty decay per revisit
    count_bonus_coefficient: float = 1.0
    model_learning_rate:     float = 0.01    # forward / inverse model step
    seed:                    Optional[int] = None

    _ALIASES = {
        "ucbConstant":           "ucb_constant",
        "thompsonPrior":         "thompson_prior",
        "curiosityCoefficient":  "curiosity_coefficient",
        "intrinsicRewardWeight": "intrinsic_reward_weight",
        "decayRate":             "decay_rate",
        "bonusCoefficient":      "count_bonus_coefficient",
    }

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None) -> "ExplorationConfig":
        kwargs = _normalise_keys(cls, data or {}, cls._ALIASES)
        if "thompson_prior" in kwargs:
            kwargs["thompson_prior"] = tuple(kwargs["thompson_prior"])
        return cls(**kwargs)


@dataclass
class ContinualConfig:
    strategy:                 ContinualStrategy = ContinualStrategy.EWC
    ewc_lambda:               float = 400.0
    fisher_samples:           int   = 200
    packnet_pruning_rate:     float = 0.5
    memory_buffer_size:       int   = 1000
    memory_sampling_strategy: SamplingStrategy = SamplingStrategy.RESERVOIR
    plasticity_parameter:     float = 0.7
    stability_parameter:      float = 0.3
    learning_rate:            float = 0.001
    batch_size:               int   = 32     # experiences per gradient estimate
    finite_difference_epsilon: float = 1e-5
    seed:                     Optional[int] = None

    _ALIASES = {
        "ewcLambda":           "ewc_lambda",
        "fisherSamples":       "fisher_samples",
        "packNetPruningRate":  "packnet_pruning_rate",
        "memoryBufferSize":    "memory_buffer_size",
        "samplingStrategy":    "memory_sampling_strategy",
        "plasticityParameter": "plasticity_parameter",
        "stabilityParameter":  "stability_parameter",
        "learningRate":        "learning_rate",
        "batchSize":           "batch_size",
    }

    def __post_init__(self):
        self.strategy = coerce_enum(ContinualStrategy, self.strategy, "strategy")
        self.memory_sampling_strategy = coerce_enum(
            SamplingStrategy, self.memory_sampling_strategy, "memory_sampling_strategy"
        )

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None) -> "ContinualConfig":
        return cls(**_normalise_keys(cls, data or {}, cls._ALIASES))


@dataclass
class CRLConfig:
    profile:     str               = "balanced"
    exploration: ExplorationConfig = field(default_factory=ExplorationConfig)
    continual:   ContinualConfig   = field(default_factory=ContinualConfig)

    @classmethod
    def for_profile(cls, profile: str) -> "CRLConfig":
        """Pre-tuned configs per stability/plasticity trade-off."""
        cfg = cls(profile=profile)
        if profile == "stable":
            cfg.continual.ewc_lambda = 1000.0           # protect old tasks harder
            cfg.continual.stability_parameter = 0.6
            cfg.continual.plasticity_parameter = 0.4
            cfg.continual.memory_sampling_strategy = SamplingStrategy.PRIORITIZED
            cfg.exploration.epsilon = 0.05
        elif profile == "plastic":
            cfg.continual.ewc_lambda = 100.0
            cfg.continual.packnet_pruning_rate = 0.7
            cfg.continual.plasticity_parameter = 0.9
            cfg.continual.stability_parameter = 0.1
            cfg.exploration.epsilon = 0.2
        elif profile != "balanced":
            raise ConfigurationError(
                f"Unknown profile '{profile}'",
                context={"profile": profile, "available": ["balanced", "stable", "plastic"]},
            )
        return cfg


def _normalise_keys(cls, data: Mapping[str, Any], aliases: Dict[str, str]) -> Dict[str, Any]:
    known = {f.name for f in fields(cls)}
    out: Dict[str, Any] = {}
    for key, value in data.items():
        name = aliases.get(key, key)
        if name not in known:
            raise ConfigurationError(
                f"Unknown {cls.__name__} key '{key}'",
                context={"key": key},
            )
        out[name] = value
    return out


def coerce_enum(enum_cls, value: Any, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ConfigurationError(
            f"Invalid {label} '{value}': expected one of {[m.value for m in enum_cls]}",
            context={"label": label, "value": str(value)},
        ) from None


# Singleton default config
DEFAULT_CONFIG = CRLConfig()
