"""
crl/exploration/engine.py
=========================
ExplorationEngine — action selection under uncertainty.

Strategies:

    ε-greedy     a = random action with prob. ε, else argmax Q
    UCB          a = argmax [ Qᵢ + c·√( ln(t+1) / max(nᵢ, 1) ) ]
                 (a count of 0 is treated as 1, so unvisited actions get
                 a finite bonus)
    Thompson     θᵢ ~ Beta(αᵢ, βᵢ),  a = argmax θᵢ
                 r > 0 → αᵢ += r,   r ≤ 0 → βᵢ += 1 − r
    Curiosity    r_total = r_ext + w · κ · e(ŝ', s')
    Count-based  Q⁺(s,a) = Q(s,a) + β / √N(s,a)
    Entropy      a ~ softmax(logits),  H(π) and H(state visits) reported
    Softmax      a ~ softmax(Q / T)

Every argmax resolves ties to the lowest index.

Each public operation validates its inputs and re-raises any failure as
an ``ExplorationError`` prefixed with the strategy name. Nothing is
retried.
"""

from __future__ import annotations

import copy
import logging
import math
import random
from typing import Dict, List, Optional, Sequence, Tuple

from crl.core.config import ExplorationConfig
from crl.core.exceptions import ConfigurationError, ExplorationError, wrap_errors
from crl.core.types import (
    EntropyMetrics,
    ExplorationEntry,
    ExplorationResult,
    ExplorationStrategy,
    IntrinsicMotivation,
)
from crl.core.validators import (
    assert_positive,
    assert_valid_exploration_config,
    assert_valid_probability,
    assert_valid_vector,
)
from crl.exploration import curiosity as dynamics
from crl.exploration.sampling import (
    argmax,
    beta_sample,
    entropy,
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
from crl.exploration.state_keys import key_to_state, state_action_key, state_key

logger = logging.getLogger(__name__)


class ExplorationEngine:
    """Stateful exploration strategies for one agent.

    Usage:
        engine = ExplorationEngine(ExplorationConfig(epsilon=0.1), seed=7)
        result = engine.epsilon_greedy([1.0, 5.0, 3.0])
        result = engine.ucb(q_values, action_counts, total_steps=t)
        engine.reset()

    The engine owns its strategy states and history exclusively; use
    one engine per agent.
    """

    def __init__(
        self,
        config: Optional[ExplorationConfig] = None,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
    ):
        """
        Args:
            config: exploration hyperparameters (defaults if omitted).
            rng:    random source shared by every strategy.
            seed:   used to build a private ``random.Random`` when no
                    ``rng`` is given; falls back to ``config.seed``.
        """
        self.config = config or ExplorationConfig()
        assert_valid_exploration_config(self.config)
        if rng is None:
            rng = random.Random(seed if seed is not None else self.config.seed)
        self._rng = rng
        self._states = StrategyStates()
        self._history: List[ExplorationEntry] = []
        self._current_step = 0

    # ─── ε-GREEDY ──────────────────────────────────────────────────

    def epsilon_greedy(
        self,
        q_values: Sequence[float],
        epsilon: Optional[float] = None,
    ) -> ExplorationResult:
        with wrap_errors(ExplorationError, "Epsilon-greedy exploration failed",
                         strategy=ExplorationStrategy.EPSILON_GREEDY.value):
            assert_valid_vector(q_values, "q_values")
            eps = self.config.epsilon if epsilon is None else epsilon
            assert_valid_probability(eps, "epsilon")

            explored = False
            if self._rng.random() < eps:
                action = self._rng.randrange(len(q_values))
                explored = True
            else:
                action = argmax(q_values)

            performance = q_values[action]
            return ExplorationResult(
                strategy=ExplorationStrategy.EPSILON_GREEDY.value,
                action=action,
                exploration_rate=eps,
                performance=performance,
                actions_explored=1 if explored else 0,
                regret=max(q_values) - performance,
                coverage_score=self._history_coverage(),
            )

    # ─── UCB ───────────────────────────────────────────────────────

    def ucb(
        self,
        q_values: Sequence[float],
        action_counts: Sequence[float],
        total_steps: int,
    ) -> ExplorationResult:
        with wrap_errors(ExplorationError, "UCB exploration failed",
                         strategy=ExplorationStrategy.UCB.value):
            assert_valid_vector(q_values, "q_values")
            assert_valid_vector(action_counts, "action_counts", expected_length=len(q_values))
            if any(n < 0 for n in action_counts):
                raise ConfigurationError("action_counts must be non-negative")
            if total_steps < 0:
                raise ConfigurationError(f"total_steps = {total_steps} must be ≥ 0")

            state = self._states.ucb
            if state is None or len(state.action_values) != len(q_values):
                state = UCBState.initial(len(q_values))
                self._states.ucb = state

            c = self.config.ucb_constant
            log_t = math.log(total_steps + 1)
            confidence = [c * math.sqrt(log_t / max(n, 1)) for n in action_counts]
            ucb_values = [q + b for q, b in zip(q_values, confidence)]

            state.ucb_values = ucb_values
            state.action_values = list(q_values)
            state.action_counts = list(action_counts)
            state.total_steps = total_steps
            state.confidence = confidence

            action = argmax(ucb_values)
            performance = q_values[action]
            return ExplorationResult(
                strategy=ExplorationStrategy.UCB.value,
                action=action,
                exploration_rate=confidence[action],
                performance=performance,
                actions_explored=1,
                regret=max(q_values) - performance,
                coverage_score=_count_coverage(action_counts),
            )

    # ─── THOMPSON SAMPLING ─────────────────────────────────────────

    def thompson_sampling(self, action_rewards: Sequence[Sequence[float]]) -> ExplorationResult:
        """Update each action's Beta posterior with its new rewards, then
        pick the action whose posterior sample is largest.

        Args:
            action_rewards: one sequence of newly observed rewards per
                            action (may be empty for an action).
        """
        with wrap_errors(ExplorationError, "Thompson sampling failed",
                         strategy=ExplorationStrategy.THOMPSON.value):
            if not action_rewards:
                raise ConfigurationError("action_rewards is empty")
            for a, rewards in enumerate(action_rewards):
                if rewards:
                    assert_valid_vector(rewards, f"action_rewards[{a}]")

            state = self._states.thompson
            if state is None or len(state.alpha_beta) != len(action_rewards):
                state = ThompsonState.initial(len(action_rewards), self.config.thompson_prior)
                self._states.thompson = state

            for a, rewards in enumerate(action_rewards):
                for reward in rewards:
                    if reward > 0:
                        state.alpha_beta[a][0] += reward
                    else:
                        state.alpha_beta[a][1] += 1.0 - reward

            samples = [beta_sample(alpha, beta, self._rng) for alpha, beta in state.alpha_beta]
            state.samples = samples
            state.posterior_means = [
                alpha / (alpha + beta) for alpha, beta in state.alpha_beta
            ]
            state.posterior_variances = [
                (alpha * beta) / ((alpha + beta) ** 2 * (alpha + beta + 1))
                for alpha, beta in state.alpha_beta
            ]

            action = argmax(samples)
            performance = samples[action]
            avg_variance = sum(state.posterior_variances) / len(state.posterior_variances)
            return ExplorationResult(
                strategy=ExplorationStrategy.THOMPSON.value,
                action=action,
                exploration_rate=math.sqrt(state.posterior_variances[action]),
                performance=performance,
                actions_explored=1,
                regret=max(state.posterior_means) - performance,
                coverage_score=1.0 / (1.0 + avg_variance),
            )

    @property
    def posterior_means(self) -> List[float]:
        state = self._states.thompson
        return list(state.posterior_means) if state else []

    @property
    def posterior_variances(self) -> List[float]:
        state = self._states.thompson
        return list(state.posterior_variances) if state else []

    # ─── CURIOSITY ─────────────────────────────────────────────────

    def curiosity_driven(
        self,
        state: Sequence[float],
        next_state: Sequence[float],
        action: int,
        extrinsic_reward: float,
    ) -> ExplorationResult:
        with wrap_errors(ExplorationError, "Curiosity-driven exploration failed",
                         strategy=ExplorationStrategy.CURIOSITY.value):
            assert_valid_vector(state, "state")
            assert_valid_vector(next_state, "next_state", expected_length=len(state))
            if not math.isfinite(extrinsic_reward):
                raise ConfigurationError(f"extrinsic_reward = {extrinsic_reward} is not finite")

            cs = self._states.curiosity
            if cs is None:
                cs = CuriosityState.initial(len(state), self._rng)
                self._states.curiosity = cs
                logger.debug(f"Curiosity models initialised for {len(state)}-d states")
            elif cs.state_dim != len(state):
                raise ConfigurationError(
                    f"state has {len(state)} dimensions; curiosity models were "
                    f"initialised for {cs.state_dim}. Call reset() to change dimensionality."
                )

            predicted_next = dynamics.forward_predict(cs, state, action)
            error = dynamics.prediction_error(predicted_next, next_state)
            intrinsic = self.config.curiosity_coefficient * error

            lr = self.config.model_learning_rate
            dynamics.update_forward_model(cs, state, action, error, lr)
            dynamics.update_inverse_model(cs, state, next_state, action, lr)

            key = state_key(state)
            previous = cs.novelty_scores.get(key)
            novelty = 1.0 if previous is None else previous * self.config.decay_rate
            cs.novelty_scores[key] = novelty
            cs.prediction_errors.append(error)
            cs.intrinsic_rewards.append(intrinsic)

            motivation = IntrinsicMotivation(
                novelty=novelty,
                surprise=error,
                learning_progress=dynamics.learning_progress(cs.prediction_errors),
                empowerment=0.5 + self._rng.random() * 0.5,
                curiosity_reward=intrinsic,
            )
            total = extrinsic_reward + self.config.intrinsic_reward_weight * intrinsic
            return ExplorationResult(
                strategy=ExplorationStrategy.CURIOSITY.value,
                action=int(action),
                exploration_rate=novelty,
                performance=total,
                actions_explored=1,
                regret=0.0,
                coverage_score=len(cs.novelty_scores) / 100.0,
                intrinsic_motivation=motivation,
            )

    @property
    def novelty_table(self) -> Dict[Tuple[float, ...], float]:
        """Current novelty per visited state, keyed by bucket centre."""
        cs = self._states.curiosity
        if cs is None:
            return {}
        return {key_to_state(key): novelty for key, novelty in cs.novelty_scores.items()}

    # ─── COUNT-BASED ───────────────────────────────────────────────

    def count_based(
        self,
        state: Sequence[float],
        action: int,
        q_values: Sequence[float],
    ) -> ExplorationResult:
        with wrap_errors(ExplorationError, "Count-based exploration failed",
                         strategy=ExplorationStrategy.COUNT_BASED.value):
            assert_valid_vector(state, "state")
            assert_valid_vector(q_values, "q_values")
            if not 0 <= action < len(q_values):
                raise ConfigurationError(
                    f"action {action} out of range for {len(q_values)} actions"
                )

            cs = self._states.count_based
            if cs is None:
                cs = CountBasedState(bonus_coefficient=self.config.count_bonus_coefficient)
                self._states.count_based = cs

            s_key = state_key(state)
            sa_key = state_action_key(state, action)
            cs.state_counts[s_key] = cs.state_counts.get(s_key, 0) + 1
            sa_count = cs.state_action_counts.get(sa_key, 0) + 1
            cs.state_action_counts[sa_key] = sa_count

            beta = cs.bonus_coefficient
            bonus = beta / math.sqrt(sa_count)
            augmented = [
                q + beta / math.sqrt(cs.state_action_counts.get((s_key, a), 1))
                for a, q in enumerate(q_values)
            ]

            selected = argmax(augmented)
            performance = q_values[selected]
            return ExplorationResult(
                strategy=ExplorationStrategy.COUNT_BASED.value,
                action=selected,
                exploration_rate=bonus,
                performance=performance,
                actions_explored=1,
                regret=max(q_values) - performance,
                coverage_score=len(cs.state_counts) / 100.0,
            )

    def visit_count(self, state: Sequence[float], action: Optional[int] = None) -> int:
        """Visits recorded by ``count_based`` for a state (or state-action)."""
        cs = self._states.count_based
        if cs is None:
            return 0
        if action is None:
            return cs.state_counts.get(state_key(state), 0)
        return cs.state_action_counts.get(state_action_key(state, action), 0)

    # ─── ENTROPY / SOFTMAX ─────────────────────────────────────────

    def entropy_based(
        self,
        policy_logits: Sequence[float],
        state_history: Sequence[Sequence[float]],
    ) -> ExplorationResult:
        with wrap_errors(ExplorationError, "Entropy-based exploration failed",
                         strategy=ExplorationStrategy.ENTROPY.value):
            assert_valid_vector(policy_logits, "policy_logits")
            probs = softmax(policy_logits)
            policy_entropy = entropy(probs)

            visits: Dict[tuple, int] = {}
            for s in state_history:
                key = state_key(s)
                visits[key] = visits.get(key, 0) + 1
            total_visits = len(state_history)
            visitation_entropy = entropy([n / total_visits for n in visits.values()])

            metrics = EntropyMetrics(
                policy_entropy=policy_entropy,
                state_visitation_entropy=visitation_entropy,
                action_entropy=[-p * math.log(p) if p > 0 else 0.0 for p in probs],
                diversity_score=(policy_entropy + visitation_entropy) / 2.0,
            )

            action = sample_categorical(probs, self._rng)
            return ExplorationResult(
                strategy=ExplorationStrategy.ENTROPY.value,
                action=action,
                exploration_rate=policy_entropy,
                performance=probs[action],
                actions_explored=1,
                regret=0.0,
                coverage_score=metrics.diversity_score,
                entropy_metrics=metrics,
            )

    def softmax(self, q_values: Sequence[float], temperature: float = 1.0) -> List[float]:
        """Boltzmann distribution over ``q_values``; sums to 1."""
        with wrap_errors(ExplorationError, "Softmax failed",
                         strategy=ExplorationStrategy.SOFTMAX.value):
            assert_valid_vector(q_values, "q_values")
            assert_positive(temperature, "temperature")
            return softmax(q_values, temperature)

    def softmax_exploration(
        self,
        q_values: Sequence[float],
        temperature: float = 1.0,
    ) -> ExplorationResult:
        with wrap_errors(ExplorationError, "Softmax exploration failed",
                         strategy=ExplorationStrategy.SOFTMAX.value):
            assert_valid_vector(q_values, "q_values")
            assert_positive(temperature, "temperature")
            probs = softmax(q_values, temperature)
            action = sample_categorical(probs, self._rng)
            performance = q_values[action]
            n = len(q_values)
            coverage = entropy(probs) / math.log(n) if n > 1 else 1.0
            return ExplorationResult(
                strategy=ExplorationStrategy.SOFTMAX.value,
                action=action,
                exploration_rate=temperature,
                performance=performance,
                actions_explored=1,
                regret=max(q_values) - performance,
                coverage_score=coverage,
            )

    # ─── DISPATCH ──────────────────────────────────────────────────

    def select(self, q_values: Sequence[float], **kwargs) -> ExplorationResult:
        """Run the configured default strategy on ``q_values``.

        Only strategies that need nothing but Q-values can be defaults:
        ``epsilon-greedy`` (kwarg ``epsilon``) and ``softmax``
        (kwarg ``temperature``).
        """
        strategy = self.config.strategy
        if strategy == ExplorationStrategy.EPSILON_GREEDY.value:
            return self.epsilon_greedy(q_values, **kwargs)
        if strategy == ExplorationStrategy.SOFTMAX.value:
            return self.softmax_exploration(q_values, **kwargs)
        raise ExplorationError(
            f"Strategy '{strategy}' needs more than Q-values; call it directly",
            strategy=strategy,
        )

    # ─── HISTORY / RESET ───────────────────────────────────────────

    def record_exploration(self, entry: ExplorationEntry) -> None:
        self._history.append(entry)
        self._current_step += 1

    @property
    def history(self) -> List[ExplorationEntry]:
        return list(self._history)

    @property
    def current_step(self) -> int:
        return self._current_step

    @property
    def states(self) -> StrategyStates:
        """Deep copy of the strategy states, for inspection."""
        return copy.deepcopy(self._states)

    def reset(self) -> None:
        """Drop every strategy state and the history in one step."""
        self._states = StrategyStates()
        self._history = []
        self._current_step = 0
        logger.debug("Exploration state reset")

    def _history_coverage(self) -> float:
        unique = len({state_key(e.state) for e in self._history})
        return unique / (unique + 100.0)


def _count_coverage(action_counts: Sequence[float]) -> float:
    """Normalised entropy of the visit distribution over actions."""
    total = sum(action_counts)
    if total == 0:
        return 0.0
    if len(action_counts) == 1:
        return 1.0
    h = entropy([n / total for n in action_counts])
    return h / math.log(len(action_counts))
