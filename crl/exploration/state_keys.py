"""
crl/exploration/state_keys.py
=============================
Discretised keys for continuous state vectors.

Novelty and visit tables are keyed by a fixed-point integer tuple:
each component is rounded half-up to 3 decimals and scaled by 1000.
States that agree to 3 decimals alias to the same bucket, e.g.

    state_key([0.1234, -1.0]) == state_key([0.1231, -1.0004]) == (123, -1000)
"""

from __future__ import annotations

import math
from typing import Hashable, Sequence, Tuple

StateKey = Tuple[int, ...]

KEY_SCALE = 1000


def state_key(state: Sequence[float]) -> StateKey:
    return tuple(int(math.floor(x * KEY_SCALE + 0.5)) for x in state)


def state_action_key(state: Sequence[float], action: int) -> Tuple[StateKey, int]:
    return (state_key(state), int(action))


def key_to_state(key: Hashable) -> Tuple[float, ...]:
    """Bucket centre of a state key (inverse of ``state_key`` up to rounding)."""
    return tuple(k / KEY_SCALE for k in key)
