"""
tests/unit/test_learner.py
==========================
Tests for ContinualLearner: EWC, PackNet, Progressive NN, atomic
commits, cancellation, dispatch and diagnostics.
"""

import random

import pytest
from crl.continual.gradients import FiniteDifferenceGradient
from crl.continual.learner import ContinualLearner
from crl.core.config import ContinualConfig
from crl.core.exceptions import ConfigurationError, ContinualUpdateError, UpdateCancelled
from crl.core.types import Task


class FlakyGradient(FiniteDifferenceGradient):
    """Raises once more than ``fail_after`` gradients have been requested."""

    def __init__(self, fail_after=10 ** 9):
        super().__init__()
        self.calls = 0
        self.fail_after = fail_after

    def gradient(self, loss_fn, params, indices=None):
        self.calls += 1
        if self.calls > self.fail_after:
            raise RuntimeError("gradient exploded")
        return super().gradient(loss_fn, params, indices)


def snapshot(learner):
    return (
        learner.current_policy,
        {k: list(v.diagonal) for k, v in learner.fisher_matrices.items()},
        learner.optimal_parameters,
        learner.packnet_masks,
        learner.progressive_columns,
        learner.task_sequence,
    )


# ─── CONSTRUCTION ──────────────────────────────────────────────


class TestConstruction:
    def test_initial_policy(self, learner):
        assert len(learner.current_policy) == 4
        assert all(abs(p) <= 0.05 for p in learner.current_policy)

    def test_seeded_initial_policy(self, continual_config):
        assert ContinualLearner(4, continual_config).current_policy == \
            ContinualLearner(4, continual_config).current_policy

    def test_from_task(self, continual_config):
        task = Task(task_id="seed", initial_policy=(0.1, 0.2, 0.3))
        learner = ContinualLearner.from_task(task, continual_config)
        assert learner.current_policy == [0.1, 0.2, 0.3]
        with pytest.raises(ConfigurationError):
            ContinualLearner.from_task(Task(task_id="empty"), continual_config)

    def test_invalid_config_rejected(self):
        with pytest.raises(ConfigurationError):
            ContinualLearner(4, ContinualConfig(learning_rate=-1.0))
        with pytest.raises(ConfigurationError):
            ContinualLearner(0)

    def test_current_policy_is_a_copy(self, learner):
        policy = learner.current_policy
        policy[0] = 99.0
        assert learner.current_policy[0] != 99.0


# ─── EWC ───────────────────────────────────────────────────────


class TestEWC:
    def test_first_task_neutral(self, task_a, experiences_a):
        """λ has no effect on the very first task."""
        with_ewc = ContinualLearner(4, ContinualConfig(ewc_lambda=400.0, learning_rate=0.05, seed=3))
        without = ContinualLearner(4, ContinualConfig(ewc_lambda=0.0, learning_rate=0.05, seed=3))
        a = with_ewc.update_with_ewc(task_a, experiences_a, epochs=5)
        b = without.update_with_ewc(task_a, experiences_a, epochs=5)
        assert a.updated_policy == b.updated_policy
        assert a.regularization_history == [0.0] * 5

    def test_records_fisher_and_snapshot(self, learner, task_a, experiences_a):
        result = learner.update_with_ewc(task_a, experiences_a, epochs=3)
        fisher = learner.fisher_matrices["task_a"]
        assert len(fisher.diagonal) == 4
        assert all(f >= 0.0 for f in fisher.diagonal)
        assert fisher.sample_size == 16
        assert learner.optimal_parameters["task_a"] == tuple(result.updated_policy)
        assert learner.task_sequence == ["task_a"]

    def test_training_improves_accuracy(self, learner, task_a, experiences_a):
        result = learner.update_with_ewc(task_a, experiences_a, epochs=15)
        assert len(result.performance_history) == 15
        assert result.performance_history[-1] > result.performance_history[0]

    def test_second_task_is_regularised(self, learner, task_a, task_b, experiences_a, experiences_b):
        learner.update_with_ewc(task_a, experiences_a, epochs=3)
        result = learner.update_with_ewc(task_b, experiences_b, epochs=5)
        assert result.regularization_history[0] == pytest.approx(0.0)
        assert result.regularization_history[-1] > 0.0
        assert sorted(learner.fisher_matrices) == ["task_a", "task_b"]

    def test_revisited_task_is_anchored_to_its_snapshot(self, task_a, experiences_a, experience_factory):
        learner = ContinualLearner(4, ContinualConfig(ewc_lambda=5.0, learning_rate=0.05,
                                                      fisher_samples=16, seed=7))
        learner.update_with_ewc(task_a, experiences_a, epochs=5)
        anchor = learner.optimal_parameters["task_a"]
        conflicting = experience_factory("task_a", [-0.9, 0.4, -0.5, -0.2], 24, seed=5)
        result = learner.update_with_ewc(task_a, conflicting, epochs=3)
        assert result.regularization_history[0] == pytest.approx(0.0)
        assert result.regularization_history[-1] > 0.0
        # retraining replaces the anchor
        assert learner.optimal_parameters["task_a"] != anchor

    def test_interference_only_for_older_tasks(self, learner, task_a, task_b, experiences_a, experiences_b):
        learner.add_to_memory_buffer(experiences_a + experiences_b)
        first = learner.update_with_ewc(task_a, experiences_a, epochs=2)
        assert first.forgetting_metrics.task_interference == []
        second = learner.update_with_ewc(task_b, experiences_b, epochs=2)
        m = second.forgetting_metrics
        assert m.task_interference == [pytest.approx(1.0 - m.retention_rates["task_a"])]

    def test_policy_length_invariant(self, learner, task_a, experiences_a):
        for _ in range(3):
            assert len(learner.update_with_ewc(task_a, experiences_a, epochs=2).updated_policy) == 4


# ─── PACKNET ───────────────────────────────────────────────────


class TestPackNet:
    def test_only_owned_parameters_change(self, learner, task_a, task_b, experiences_a, experiences_b):
        before = learner.current_policy
        learner.update_with_packnet(task_a, experiences_a, epochs=5)
        after_a = learner.current_policy
        assert learner.packnet_masks["task_a"].indices == [0, 1]
        assert after_a[2:] == before[2:]

        learner.update_with_packnet(task_b, experiences_b, epochs=5)
        after_b = learner.current_policy
        assert learner.packnet_masks["task_b"].indices == [2]
        assert after_b[:2] == after_a[:2]
        assert after_b[3] == before[3]

    def test_exhausted_capacity_is_not_an_error(self, task_a, experience_factory):
        learner = ContinualLearner(1, ContinualConfig(seed=1))
        experiences = experience_factory("task_a", [0.5], 8)
        first = learner.update_with_packnet(task_a, experiences, epochs=2)
        assert learner.packnet_masks["task_a"].active_parameters == 0
        assert first.updated_policy == learner.current_policy

    def test_snapshot_after_training(self, learner, task_a, experiences_a):
        result = learner.update_with_packnet(task_a, experiences_a, epochs=2)
        assert learner.optimal_parameters["task_a"] == tuple(result.updated_policy)


# ─── PROGRESSIVE NN ────────────────────────────────────────────


class TestProgressive:
    def test_new_column_per_task(self, learner, task_a, task_b, experiences_a, experiences_b):
        learner.update_with_progressive_nn(task_a, experiences_a, epochs=3)
        first = learner.progressive_columns[0]
        result = learner.update_with_progressive_nn(task_b, experiences_b, epochs=3)
        columns = learner.progressive_columns
        assert [c.task_id for c in columns] == ["task_a", "task_b"]
        assert columns[0] == first
        assert all(c.frozen for c in columns)
        assert list(columns[1].lateral_connections) == [0]
        assert learner.current_policy == list(columns[1].parameters)
        assert result.updated_policy == learner.current_policy


# ─── ATOMICITY / CANCELLATION ──────────────────────────────────


class TestAtomicUpdates:
    @pytest.mark.parametrize("method", ["update_with_ewc", "update_with_packnet", "update_with_progressive_nn"])
    def test_failure_mid_training_commits_nothing(self, method, task_a, task_b, experiences_a, experiences_b):
        provider = FlakyGradient()
        learner = ContinualLearner(4, ContinualConfig(learning_rate=0.05, fisher_samples=8, seed=2),
                                   gradient_provider=provider)
        getattr(learner, method)(task_a, experiences_a, epochs=2)
        before = snapshot(learner)

        provider.fail_after = provider.calls + 30
        with pytest.raises(ContinualUpdateError) as exc_info:
            getattr(learner, method)(task_b, experiences_b, epochs=5)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert snapshot(learner) == before

    def test_error_prefix_per_strategy(self, learner, task_a):
        for method, prefix in [
            ("update_with_ewc", "EWC update failed"),
            ("update_with_packnet", "PackNet update failed"),
            ("update_with_progressive_nn", "Progressive NN update failed"),
        ]:
            with pytest.raises(ContinualUpdateError) as exc_info:
                getattr(learner, method)(task_a, [], epochs=1)
            assert str(exc_info.value).startswith(prefix)

    def test_state_length_must_match_policy(self, learner, task_a, experience_factory):
        before = learner.current_policy
        short = experience_factory("task_a", [0.5, -0.5, 0.2], 6)
        with pytest.raises(ContinualUpdateError) as exc_info:
            learner.update_with_ewc(task_a, short, epochs=1)
        assert isinstance(exc_info.value.__cause__, ConfigurationError)
        assert "expected 4" in str(exc_info.value)
        assert learner.current_policy == before
        assert learner.task_sequence == []

    def test_initial_policy_length_must_match(self, learner, experiences_a):
        task = Task(task_id="task_x", initial_policy=[0.0, 0.0])
        with pytest.raises(ContinualUpdateError) as exc_info:
            learner.update_with_packnet(task, experiences_a, epochs=1)
        assert "initial_policy" in str(exc_info.value)

    def test_cancellation(self, learner, task_a, experiences_a):
        epochs_seen = []

        def stop():
            epochs_seen.append(1)
            return len(epochs_seen) > 2

        before = snapshot(learner)
        with pytest.raises(UpdateCancelled) as exc_info:
            learner.update_with_ewc(task_a, experiences_a, epochs=10, should_stop=stop)
        assert exc_info.value.context["epoch"] == 2
        assert snapshot(learner) == before

    def test_cancelled_packnet_releases_mask(self, learner, task_a, experiences_a):
        with pytest.raises(UpdateCancelled):
            learner.update_with_packnet(task_a, experiences_a, should_stop=lambda: True)
        assert learner.packnet_masks == {}


# ─── DISPATCH / DIAGNOSTICS ────────────────────────────────────


class TestDispatchAndDiagnostics:
    def test_update_dispatches_on_config(self, task_a, experiences_a):
        for tag in ("EWC", "PackNet", "ProgressiveNN"):
            learner = ContinualLearner(4, ContinualConfig(strategy=tag, seed=1))
            assert learner.update(task_a, experiences_a, epochs=1).strategy == tag

    def test_strategy_override(self, learner, task_a, experiences_a):
        assert learner.update(task_a, experiences_a, epochs=1, strategy="PackNet").strategy == "PackNet"

    def test_gem_not_implemented(self, task_a, experiences_a):
        learner = ContinualLearner(4, ContinualConfig(strategy="GEM", seed=1))
        with pytest.raises(ConfigurationError):
            learner.update(task_a, experiences_a)

    def test_memory_buffer_roundtrip(self, learner, experiences_a):
        learner.add_to_memory_buffer(experiences_a)
        assert learner.memory_buffer.size == 24
        assert len(learner.sample_memory_buffer(5)) == 5

    def test_memory_usage_estimate(self, learner, task_a, experiences_a):
        assert learner.estimate_memory_usage() == 8 * 4
        learner.add_to_memory_buffer(experiences_a[:3])
        assert learner.estimate_memory_usage() == 8 * 4 + 300
        result = learner.update_with_ewc(task_a, experiences_a, epochs=1)
        # policy + snapshot + Fisher diagonal
        assert result.memory_usage == 8 * 12 + 300

    def test_forgetting_metrics_after_two_tasks(self, learner, task_a, task_b, experiences_a, experiences_b):
        learner.add_to_memory_buffer(experiences_a + experiences_b)
        learner.update_with_ewc(task_a, experiences_a, epochs=3)
        result = learner.update_with_ewc(task_b, experiences_b, epochs=3)
        m = result.forgetting_metrics
        assert set(m.retention_rates) == {"task_a", "task_b"}
        assert m.backward_transfer == pytest.approx(m.retention_rates["task_a"])
        assert m.plasticity == 0.7
        assert m.forward_transfer == 0.0

    def test_task_sequence_records_every_call(self, learner, task_a, experiences_a):
        learner.update_with_ewc(task_a, experiences_a, epochs=1)
        learner.update_with_ewc(task_a, experiences_a, epochs=1)
        assert learner.task_sequence == ["task_a", "task_a"]

    def test_export_state(self, learner, task_a, experiences_a):
        learner.update_with_ewc(task_a, experiences_a, epochs=1)
        state = learner.export_state()
        assert set(state) == {"policy", "fisher_matrices", "task_sequence"}
        assert state["fisher_matrices"][0][0] == "task_a"
        assert state["task_sequence"] == ["task_a"]

    def test_result_to_dict(self, learner, task_a, experiences_a):
        result = learner.update_with_ewc(task_a, experiences_a, epochs=2)
        data = result.to_dict()
        assert data["strategy"] == "EWC"
        assert data["training_time"] >= 0.0
        assert len(data["performance_history"]) == 2
