"""
crl/continual/progressive.py
============================
Progressive Neural Networks — one new column per task.

Forward pass of column k on state s:

    y_k(s) = tanh( Σᵢ θ_k,ᵢ sᵢ  +  Σ_{j<k} Σᵢ u_k←j,ᵢ · θ_j,ᵢ · sᵢ )

    θ_k       — the column's own parameters (trained)
    θ_j       — parameters of earlier, frozen columns (read only)
    u_k←j     — small lateral weights from column j into column k

Only θ_k is trained. Earlier columns are frozen: their parameters are
stored as tuples and never written again, so old tasks keep exactly
the behaviour they had when their column was frozen.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Callable, Dict, List, Sequence, Tuple

from crl.core.types import ProgressiveColumn

logger = logging.getLogger(__name__)

PARAM_INIT_SCALE = 0.1
LATERAL_INIT_SCALE = 0.01


class ProgressiveNetwork:
    """Append-only stack of Progressive NN columns."""

    def __init__(self):
        self._columns: List[ProgressiveColumn] = []

    def new_column(self, task_id: str, size: int, rng: random.Random) -> ProgressiveColumn:
        """Create an unfrozen column wired to every existing column.

        The column is not part of the network until ``append`` is called.
        """
        params = [(rng.random() - 0.5) * PARAM_INIT_SCALE for _ in range(size)]
        lateral: Dict[int, Sequence[float]] = {}
        for prev in self._columns:
            lateral[prev.column_id] = tuple(
                (rng.random() - 0.5) * LATERAL_INIT_SCALE for _ in range(len(prev.parameters))
            )
        return ProgressiveColumn(
            column_id=len(self._columns),
            task_id=task_id,
            parameters=params,
            lateral_connections=lateral,
            frozen=False,
        )

    def lateral_input(self, column: ProgressiveColumn, state: Sequence[float]) -> float:
        """Σ_j Σᵢ u_k←j,ᵢ θ_j,ᵢ sᵢ — constant while column k trains."""
        total = 0.0
        for col_id, weights in column.lateral_connections.items():
            prev = self._columns[col_id].parameters
            for i in range(min(len(weights), len(state))):
                total += weights[i] * prev[i] * state[i]
        return total

    def forward(
        self,
        column: ProgressiveColumn,
        params: Sequence[float],
        state: Sequence[float],
    ) -> float:
        """Column output with ``params`` standing in for the column's own θ."""
        total = 0.0
        for i in range(min(len(params), len(state))):
            total += params[i] * state[i]
        return math.tanh(total + self.lateral_input(column, state))

    def column_forward(self, column: ProgressiveColumn) -> Callable[[Sequence[float], Sequence[float]], float]:
        """Forward function for training ``column``.

        The lateral term does not depend on the column's own parameters,
        so it is computed once per distinct state and reused across
        finite-difference probes.
        """
        lateral_cache: Dict[Tuple[float, ...], float] = {}

        def forward(params: Sequence[float], state: Sequence[float]) -> float:
            key = tuple(state)
            lateral = lateral_cache.get(key)
            if lateral is None:
                lateral = lateral_cache[key] = self.lateral_input(column, state)
            total = 0.0
            for i in range(min(len(params), len(state))):
                total += params[i] * state[i]
            return math.tanh(total + lateral)

        return forward

    def append(self, column: ProgressiveColumn, trained: Sequence[float]) -> ProgressiveColumn:
        """Freeze ``column`` with its trained parameters and add it."""
        frozen = ProgressiveColumn(
            column_id=column.column_id,
            task_id=column.task_id,
            parameters=tuple(trained),
            lateral_connections={k: tuple(v) for k, v in column.lateral_connections.items()},
            frozen=True,
        )
        self._columns.append(frozen)
        logger.info(
            f"Progressive NN: froze column {frozen.column_id} for task '{frozen.task_id}' "
            f"({len(frozen.lateral_connections)} lateral links)"
        )
        return frozen

    def copy(self) -> "ProgressiveNetwork":
        clone = ProgressiveNetwork()
        clone._columns = list(self._columns)
        return clone

    @property
    def columns(self) -> List[ProgressiveColumn]:
        return list(self._columns)

    def __len__(self) -> int:
        return len(self._columns)
