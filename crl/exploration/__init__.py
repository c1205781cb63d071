"""crl/exploration — Action selection under uncertainty."""

from crl.exploration.engine import ExplorationEngine
from crl.exploration.sampling import (
    argmax,
    beta_sample,
    entropy,
    gamma_sample,
    normal_sample,
    sample_categorical,
    softmax,
)
from crl.exploration.state import (
    CountBasedState,
    CuriosityState,
    StrategyStates,
    ThompsonState,
    UCBState,
)
from crl.exploration.state_keys import state_action_key, state_key

__all__ = [
    "ExplorationEngine",
    "StrategyStates",
    "UCBState",
    "ThompsonState",
    "CuriosityState",
    "CountBasedState",
    "argmax",
    "softmax",
    "entropy",
    "sample_categorical",
    "normal_sample",
    "gamma_sample",
    "beta_sample",
    "state_key",
    "state_action_key",
]
