"""
tests/unit/test_exploration.py
==============================
Tests for ExplorationEngine: every strategy, dispatch, history and reset.
"""

import math

import pytest
from crl.core.config import ExplorationConfig
from crl.core.exceptions import ConfigurationError, ExplorationError
from crl.core.types import ExplorationEntry
from crl.exploration.engine import ExplorationEngine


# ─── ε-GREEDY ──────────────────────────────────────────────────


class TestEpsilonGreedy:
    def test_greedy_picks_argmax(self, engine):
        """q = [1, 5, 3, 2], ε = 0 → action 1, perf 5, regret 0."""
        result = engine.epsilon_greedy([1.0, 5.0, 3.0, 2.0], epsilon=0.0)
        assert result.action == 1
        assert result.performance == 5.0
        assert result.regret == 0.0
        assert result.actions_explored == 0
        assert not result.was_exploration

    def test_ties_resolve_to_lowest_index(self, engine):
        for _ in range(20):
            assert engine.epsilon_greedy([3.0, 3.0, 1.0], epsilon=0.0).action == 0

    def test_full_exploration_is_random(self, engine):
        actions = {engine.epsilon_greedy([1.0, 5.0, 3.0, 2.0], epsilon=1.0).action for _ in range(200)}
        assert actions == {0, 1, 2, 3}

    def test_regret_of_random_action(self, engine):
        for _ in range(50):
            result = engine.epsilon_greedy([1.0, 5.0, 3.0], epsilon=1.0)
            assert result.regret == pytest.approx(5.0 - result.performance)
            assert result.regret >= 0.0

    def test_default_epsilon_from_config(self):
        engine = ExplorationEngine(ExplorationConfig(epsilon=0.0), seed=1)
        assert engine.epsilon_greedy([0.0, 2.0]).exploration_rate == 0.0

    def test_empty_q_values_raises_wrapped(self, engine):
        with pytest.raises(ExplorationError) as exc_info:
            engine.epsilon_greedy([])
        assert str(exc_info.value).startswith("Epsilon-greedy exploration failed")
        assert exc_info.value.strategy == "epsilon-greedy"
        assert isinstance(exc_info.value.__cause__, ConfigurationError)

    def test_invalid_epsilon_raises(self, engine):
        with pytest.raises(ExplorationError):
            engine.epsilon_greedy([1.0, 2.0], epsilon=1.5)

    def test_coverage_from_history(self, engine):
        assert engine.epsilon_greedy([1.0]).coverage_score == 0.0
        engine.record_exploration(ExplorationEntry(step=0, state=[0.1, 0.2], action=0, reward=1.0))
        engine.record_exploration(ExplorationEntry(step=1, state=[0.1, 0.2], action=1, reward=0.0))
        assert engine.epsilon_greedy([1.0]).coverage_score == pytest.approx(1.0 / 101.0)

    def test_seeded_runs_are_reproducible(self):
        a = ExplorationEngine(ExplorationConfig(epsilon=0.5), seed=99)
        b = ExplorationEngine(ExplorationConfig(epsilon=0.5), seed=99)
        q = [0.1, 0.4, 0.3, 0.2]
        assert [a.epsilon_greedy(q).action for _ in range(50)] == [b.epsilon_greedy(q).action for _ in range(50)]


# ─── UCB ───────────────────────────────────────────────────────


class TestUCB:
    def test_least_visited_action_wins_on_equal_values(self, engine):
        result = engine.ucb([0.0, 0.0, 0.0], [10, 1, 4], total_steps=15)
        assert result.action == 1
        assert result.exploration_rate == pytest.approx(2.0 * math.sqrt(math.log(16)))

    def test_zero_count_treated_as_one(self, engine):
        """Counts 0 and 1 give the same bonus → tie → lowest index."""
        result = engine.ucb([0.0, 0.0], [0, 1], total_steps=1)
        assert result.action == 0
        assert math.isfinite(result.exploration_rate)

    def test_large_value_gap_beats_bonus(self, engine):
        result = engine.ucb([10.0, 0.0], [100, 1], total_steps=101)
        assert result.action == 0
        assert result.regret == 0.0

    def test_state_resized_with_action_count(self, engine):
        engine.ucb([0.0, 1.0], [1, 1], total_steps=2)
        assert len(engine.states.ucb.action_values) == 2
        engine.ucb([0.0, 1.0, 2.0], [1, 1, 1], total_steps=3)
        assert len(engine.states.ucb.action_values) == 3

    def test_coverage_is_normalised_count_entropy(self, engine):
        assert engine.ucb([0.0, 0.0], [5, 5], total_steps=10).coverage_score == pytest.approx(1.0)
        assert engine.ucb([0.0, 0.0], [0, 0], total_steps=0).coverage_score == 0.0

    def test_mismatched_counts_raise(self, engine):
        with pytest.raises(ExplorationError) as exc_info:
            engine.ucb([0.0, 1.0], [1], total_steps=1)
        assert str(exc_info.value).startswith("UCB exploration failed")
        assert exc_info.value.strategy == "ucb"

    def test_negative_counts_raise(self, engine):
        with pytest.raises(ExplorationError):
            engine.ucb([0.0, 1.0], [1, -1], total_steps=1)


# ─── THOMPSON ──────────────────────────────────────────────────


class TestThompsonSampling:
    def test_posterior_update(self, engine):
        engine.thompson_sampling([[1.0, 1.0, 1.0], [], [0.0]])
        means = engine.posterior_means
        assert means[0] == pytest.approx(4.0 / 5.0)
        assert means[1] == pytest.approx(0.5)
        assert means[2] == pytest.approx(1.0 / 3.0)

    def test_negative_reward_adds_to_beta(self, engine):
        engine.thompson_sampling([[-1.0]])
        state = engine.states.thompson
        assert state.alpha_beta[0] == [1.0, 3.0]

    def test_samples_in_unit_interval(self, engine):
        for _ in range(50):
            result = engine.thompson_sampling([[], [], []])
            assert 0.0 <= result.performance <= 1.0
        assert all(0.0 <= s <= 1.0 for s in engine.states.thompson.samples)

    def test_prefers_well_rewarded_arm(self, engine):
        engine.thompson_sampling([[1.0] * 200, [0.0] * 200])
        picks = [engine.thompson_sampling([[], []]).action for _ in range(50)]
        assert picks.count(0) == 50

    def test_exploration_rate_is_posterior_std(self, engine):
        result = engine.thompson_sampling([[], []])
        assert result.exploration_rate == pytest.approx(math.sqrt(engine.posterior_variances[result.action]))
        # Beta(1, 1): variance 1/12
        assert engine.posterior_variances[0] == pytest.approx(1.0 / 12.0)

    def test_custom_prior(self):
        engine = ExplorationEngine(ExplorationConfig(thompson_prior=(2.0, 8.0)), seed=3)
        engine.thompson_sampling([[]])
        assert engine.posterior_means == [pytest.approx(0.2)]

    def test_empty_raises(self, engine):
        with pytest.raises(ExplorationError) as exc_info:
            engine.thompson_sampling([])
        assert str(exc_info.value).startswith("Thompson sampling failed")


# ─── CURIOSITY ─────────────────────────────────────────────────


class TestCuriosityDriven:
    def test_novelty_decays_on_revisit(self, engine):
        first = engine.curiosity_driven([0.1, 0.2], [0.2, 0.3], 1, 0.0)
        second = engine.curiosity_driven([0.1, 0.2], [0.2, 0.3], 1, 0.0)
        assert first.intrinsic_motivation.novelty == 1.0
        assert second.intrinsic_motivation.novelty == pytest.approx(0.99)

    def test_reward_combination(self, engine):
        result = engine.curiosity_driven([0.5, -0.5], [0.4, -0.2], 0, 2.0)
        m = result.intrinsic_motivation
        assert m.curiosity_reward == pytest.approx(0.5 * m.surprise)
        assert result.performance == pytest.approx(2.0 + 0.1 * m.curiosity_reward)
        assert 0.5 <= m.empowerment <= 1.0
        assert result.regret == 0.0

    def test_learning_progress_needs_more_than_ten_errors(self, engine):
        for _ in range(10):
            result = engine.curiosity_driven([0.1, 0.1], [0.1, 0.1], 0, 0.0)
            assert result.intrinsic_motivation.learning_progress == 0.0
        result = engine.curiosity_driven([0.1, 0.1], [0.1, 0.1], 0, 0.0)
        assert result.intrinsic_motivation.learning_progress >= 0.0

    def test_coverage_counts_distinct_states(self, engine):
        engine.curiosity_driven([0.0], [0.1], 0, 0.0)
        engine.curiosity_driven([0.5], [0.6], 0, 0.0)
        result = engine.curiosity_driven([0.0], [0.1], 0, 0.0)
        assert result.coverage_score == pytest.approx(2 / 100.0)

    def test_novelty_table_decays_on_revisit(self, engine):
        assert engine.novelty_table == {}
        engine.curiosity_driven([0.25, -0.5], [0.3, -0.4], 0, 0.0)
        engine.curiosity_driven([0.25, -0.5], [0.3, -0.4], 0, 0.0)
        engine.curiosity_driven([0.75, 0.0], [0.7, 0.1], 1, 0.0)
        table = engine.novelty_table
        assert table[(0.25, -0.5)] == pytest.approx(0.99)
        assert table[(0.75, 0.0)] == 1.0

    def test_models_have_twice_state_dim_weights(self, engine):
        engine.curiosity_driven([0.1, 0.2, 0.3], [0.1, 0.2, 0.3], 0, 0.0)
        cs = engine.states.curiosity
        assert len(cs.forward_model) == 6
        assert len(cs.inverse_model) == 6

    def test_dimension_change_requires_reset(self, engine):
        engine.curiosity_driven([0.1, 0.2], [0.1, 0.2], 0, 0.0)
        with pytest.raises(ExplorationError) as exc_info:
            engine.curiosity_driven([0.1, 0.2, 0.3], [0.1, 0.2, 0.3], 0, 0.0)
        assert str(exc_info.value).startswith("Curiosity-driven exploration failed")
        engine.reset()
        engine.curiosity_driven([0.1, 0.2, 0.3], [0.1, 0.2, 0.3], 0, 0.0)

    def test_next_state_length_mismatch_raises(self, engine):
        with pytest.raises(ExplorationError):
            engine.curiosity_driven([0.1, 0.2], [0.1], 0, 0.0)


# ─── COUNT-BASED ───────────────────────────────────────────────


class TestCountBased:
    def test_bonus_decays_with_visits(self, engine):
        first = engine.count_based([0.0, 1.0], 0, [0.0, 0.0])
        second = engine.count_based([0.0, 1.0], 0, [0.0, 0.0])
        assert first.exploration_rate == pytest.approx(1.0)
        assert second.exploration_rate == pytest.approx(1.0 / math.sqrt(2.0))

    def test_less_visited_action_selected(self, engine):
        assert engine.count_based([0.0, 1.0], 0, [0.0, 0.0]).action == 0
        # (s, 0) now visited twice; (s, 1) unvisited counts as 1
        assert engine.count_based([0.0, 1.0], 0, [0.0, 0.0]).action == 1

    def test_reports_original_q_value(self, engine):
        result = engine.count_based([0.3], 1, [0.5, 0.2])
        assert result.performance in (0.5, 0.2)
        assert result.regret == pytest.approx(0.5 - result.performance)

    def test_visit_counts_use_state_buckets(self, engine):
        engine.count_based([0.1234], 0, [0.0])
        engine.count_based([0.1231], 0, [0.0])
        assert engine.visit_count([0.123]) == 2
        assert engine.visit_count([0.123], 0) == 2
        assert engine.visit_count([0.5]) == 0

    def test_action_out_of_range_raises(self, engine):
        with pytest.raises(ExplorationError) as exc_info:
            engine.count_based([0.0], 3, [0.0, 0.0])
        assert str(exc_info.value).startswith("Count-based exploration failed")


# ─── ENTROPY / SOFTMAX ─────────────────────────────────────────


class TestEntropyAndSoftmax:
    def test_softmax_normalised(self, engine):
        probs = engine.softmax([1.0, 2.0, 3.0])
        assert sum(probs) == pytest.approx(1.0)
        assert probs[2] > probs[1] > probs[0]

    def test_softmax_shift_invariant(self, engine):
        a = engine.softmax([1.0, 2.0, 3.0], temperature=0.5)
        b = engine.softmax([1001.0, 1002.0, 1003.0], temperature=0.5)
        assert a == pytest.approx(b)

    def test_softmax_large_values_stay_finite(self, engine):
        probs = engine.softmax([1e6, 1e6 - 1.0])
        assert all(math.isfinite(p) for p in probs)

    def test_softmax_zero_temperature_raises(self, engine):
        with pytest.raises(ExplorationError):
            engine.softmax([1.0, 2.0], temperature=0.0)

    def test_softmax_exploration(self, engine):
        result = engine.softmax_exploration([0.0, 0.0, 10.0], temperature=0.1)
        assert result.action == 2
        assert result.regret == 0.0
        assert 0.0 <= result.coverage_score <= 1.0

    def test_entropy_metrics(self, engine):
        result = engine.entropy_based([0.0, 0.0, 0.0, 0.0], [[0.0], [1.0], [0.0], [1.0]])
        m = result.entropy_metrics
        assert m.policy_entropy == pytest.approx(math.log(4))
        assert m.state_visitation_entropy == pytest.approx(math.log(2))
        assert m.diversity_score == pytest.approx((math.log(4) + math.log(2)) / 2)
        assert len(m.action_entropy) == 4
        assert result.performance == pytest.approx(0.25)

    def test_entropy_empty_history(self, engine):
        result = engine.entropy_based([1.0, 2.0], [])
        assert result.entropy_metrics.state_visitation_entropy == 0.0


# ─── DISPATCH / HISTORY / RESET ────────────────────────────────


class TestEngineLifecycle:
    def test_select_uses_configured_strategy(self):
        engine = ExplorationEngine(ExplorationConfig(strategy="softmax"), seed=5)
        assert engine.select([0.0, 1.0], temperature=1.0).strategy == "softmax"
        engine = ExplorationEngine(ExplorationConfig(strategy="epsilon-greedy"), seed=5)
        assert engine.select([0.0, 1.0], epsilon=0.0).action == 1

    def test_select_rejects_context_strategies(self):
        engine = ExplorationEngine(ExplorationConfig(strategy="ucb"), seed=5)
        with pytest.raises(ExplorationError):
            engine.select([0.0, 1.0])

    def test_unknown_strategy_rejected_at_construction(self):
        with pytest.raises(ConfigurationError):
            ExplorationEngine(ExplorationConfig(strategy="boltzmann-ish"))

    def test_history_and_step(self, engine):
        engine.record_exploration(ExplorationEntry(step=0, state=[0.0], action=1, reward=0.5))
        assert engine.current_step == 1
        history = engine.history
        history.clear()
        assert len(engine.history) == 1

    def test_reset_clears_everything(self, engine):
        engine.ucb([0.0, 1.0], [1, 1], total_steps=2)
        engine.thompson_sampling([[1.0], []])
        engine.curiosity_driven([0.1], [0.2], 0, 0.0)
        engine.count_based([0.1], 0, [0.0])
        engine.record_exploration(ExplorationEntry(step=0, state=[0.1], action=0, reward=0.0))
        assert engine.states.initialised == ["ucb", "thompson", "curiosity", "count_based"]

        engine.reset()
        assert engine.states.initialised == []
        assert engine.history == []
        assert engine.current_step == 0
        assert engine.posterior_means == []

    def test_states_is_a_copy(self, engine):
        engine.count_based([0.1], 0, [0.0])
        engine.states.count_based.state_counts.clear()
        assert engine.visit_count([0.1]) == 1
