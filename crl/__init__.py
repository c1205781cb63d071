"""
crl/__init__.py — Public API exports
"""

from crl.continual.learner import ContinualLearner
from crl.continual.memory_buffer import MemoryBuffer
from crl.core.config import (
    DEFAULT_CONFIG,
    ContinualConfig,
    CRLConfig,
    ExplorationConfig,
)
from crl.core.exceptions import (
    ConfigurationError,
    ContinualUpdateError,
    CRLError,
    ExplorationError,
    MemoryBufferError,
    UpdateCancelled,
)
from crl.core.types import (
    ContinualResult,
    ContinualStrategy,
    EntropyMetrics,
    Experience,
    ExplorationEntry,
    ExplorationResult,
    ExplorationStrategy,
    FisherInformation,
    ForgettingMetrics,
    IntrinsicMotivation,
    PackNetMask,
    ProgressiveColumn,
    SamplingStrategy,
    Task,
)
from crl.exploration.engine import ExplorationEngine
from crl.version import __version__

__all__ = [
    "ExplorationEngine",
    "ContinualLearner",
    "MemoryBuffer",
    "CRLConfig",
    "ExplorationConfig",
    "ContinualConfig",
    "DEFAULT_CONFIG",
    "Task",
    "Experience",
    "FisherInformation",
    "PackNetMask",
    "ProgressiveColumn",
    "ForgettingMetrics",
    "ContinualResult",
    "ExplorationResult",
    "ExplorationEntry",
    "IntrinsicMotivation",
    "EntropyMetrics",
    "ContinualStrategy",
    "SamplingStrategy",
    "ExplorationStrategy",
    "CRLError",
    "ConfigurationError",
    "ExplorationError",
    "ContinualUpdateError",
    "UpdateCancelled",
    "MemoryBufferError",
    "__version__",
]
