"""crl/continual — Continual learning without catastrophic forgetting."""

from crl.continual.learner import ContinualLearner
from crl.continual.ewc import EWCRegularizer
from crl.continual.packnet import PackNetAllocator
from crl.continual.progressive import ProgressiveNetwork
from crl.continual.memory_buffer import MemoryBuffer
from crl.continual.forgetting import assess_forgetting, retention_rate
from crl.continual.gradients import (
    FiniteDifferenceGradient,
    GradientProvider,
    evaluate_policy,
    linear_tanh,
)
from crl.continual.replay import (
    ReplayPolicy,
    UniformReplay,
    ReservoirReplay,
    PrioritisedReplay,
    make_replay_policy,
)

__all__ = [
    "ContinualLearner",
    "EWCRegularizer",
    "PackNetAllocator",
    "ProgressiveNetwork",
    "MemoryBuffer",
    "assess_forgetting",
    "retention_rate",
    "GradientProvider",
    "FiniteDifferenceGradient",
    "evaluate_policy",
    "linear_tanh",
    "ReplayPolicy",
    "UniformReplay",
    "ReservoirReplay",
    "PrioritisedReplay",
    "make_replay_policy",
]
