"""
crl/core/exceptions.py
======================
Custom exception hierarchy for CRL-Core.

All exceptions carry structured context so callers can
programmatically handle different failure modes.

Failure model:
    (a) configuration errors — bad vectors, probabilities, strategy tags —
        are detected explicitly and raised as ConfigurationError;
    (b) anything failing inside a public engine operation is re-raised as
        the operation's strategy error, prefixed with the strategy name
        ("UCB exploration failed: ...", "EWC update failed: ...");
    (c) nothing is retried — retries are the caller's decision.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Type


class CRLError(Exception):
    """Base exception for all CRL-Core errors."""

    def __init__(self, message: str, context: Optional[dict] = None):
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(CRLError):
    """Raised when inputs or configuration violate a precondition:
    empty vectors, mismatched lengths, probabilities outside [0, 1],
    unknown strategy tags."""

    pass


class ExplorationError(CRLError):
    """Raised when an exploration strategy fails.

    ``strategy`` names the strategy that failed ("ucb", "thompson", ...).
    The underlying exception is available as ``__cause__``.
    """

    def __init__(self, message: str, strategy: str, context: Optional[dict] = None):
        super().__init__(message, context)
        self.strategy = strategy


class ContinualUpdateError(CRLError):
    """Raised when a continual learning update fails.

    The learner's policy, Fisher matrices, snapshots, masks and columns
    still hold their pre-call values when this is raised.
    """

    def __init__(self, message: str, strategy: str, context: Optional[dict] = None):
        super().__init__(message, context)
        self.strategy = strategy


class UpdateCancelled(ContinualUpdateError):
    """Raised when a caller-supplied stop check ends an update early.
    Nothing from the cancelled run is committed."""

    pass


class MemoryBufferError(CRLError):
    """Raised when the experience memory buffer rejects an operation."""

    pass


@contextmanager
def wrap_errors(
    error_cls: Type[CRLError],
    prefix: str,
    **kwargs,
) -> Iterator[None]:
    """Re-raise any exception from the block as ``error_cls``.

    Exceptions already of ``error_cls`` pass through untouched so nested
    guards do not stack prefixes.

    Usage:
        with wrap_errors(ExplorationError, "UCB exploration failed", strategy="ucb"):
            ...
    """
    try:
        yield
    except error_cls:
        raise
    except Exception as exc:
        raise error_cls(f"{prefix}: {exc}", **kwargs) from exc
