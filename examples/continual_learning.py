"""
examples/continual_learning.py
==============================
Demonstrates CRL-Core continual learning:
  - Learn Task A with EWC
  - Learn Task B (Task A's important parameters are protected)
  - Check how much of Task A is retained
  - Learn the same two tasks with PackNet and Progressive NN
"""
import math
import random
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from crl.continual.learner import ContinualLearner
from crl.core.config import ContinualConfig
from crl.core.types import Experience, Task


def make_experiences(task_id, weights, n, rng):
    experiences = []
    for _ in range(n):
        state = [rng.uniform(-1.0, 1.0) for _ in weights]
        reward = math.tanh(sum(w * s for w, s in zip(weights, state)))
        experiences.append(Experience(task_id=task_id, state=state, action=0, reward=reward))
    return experiences


def main():
    rng = random.Random(42)
    task_a = Task(task_id="task_a", environment="synthetic", state_space=6, action_space=1)
    task_b = Task(task_id="task_b", environment="synthetic", state_space=6, action_space=1)
    exp_a = make_experiences("task_a", [0.8, -0.5, 0.3, 0.0, 0.6, -0.2], 64, rng)
    exp_b = make_experiences("task_b", [-0.6, 0.4, 0.7, -0.3, 0.1, 0.5], 64, rng)

    # EWC: Task A first
    learner = ContinualLearner(policy_size=6, config=ContinualConfig(learning_rate=0.05, seed=1))
    learner.add_to_memory_buffer(exp_a)
    result_a = learner.update_with_ewc(task_a, exp_a, epochs=20)
    print(f"EWC Task A — final accuracy: {result_a.performance_history[-1]:.4f}")

    # Task B — Task A is anchored to its snapshot
    learner.add_to_memory_buffer(exp_b)
    result_b = learner.update_with_ewc(task_b, exp_b, epochs=20)
    metrics = result_b.forgetting_metrics
    print(f"EWC Task B — final accuracy: {result_b.performance_history[-1]:.4f}")
    print(f"Task A retention:  {metrics.retention_rates['task_a']:.4f}")
    print(f"Backward transfer: {metrics.backward_transfer:.4f}")

    # PackNet: disjoint parameter subsets
    packnet = ContinualLearner(policy_size=6, config=ContinualConfig(strategy="PackNet", learning_rate=0.05, seed=1))
    packnet.add_to_memory_buffer(exp_a + exp_b)
    packnet.update(task_a, exp_a, epochs=20)
    packnet.update(task_b, exp_b, epochs=20)
    for task_id, mask in packnet.packnet_masks.items():
        print(f"PackNet {task_id} owns parameters {mask.indices}")

    # Progressive NN: one frozen column per task
    progressive = ContinualLearner(policy_size=6, config=ContinualConfig(strategy="ProgressiveNN", learning_rate=0.05, seed=1))
    progressive.update(task_a, exp_a, epochs=20)
    progressive.update(task_b, exp_b, epochs=20)
    for column in progressive.progressive_columns:
        print(f"Column {column.column_id} ({column.task_id}): "
              f"{len(column.lateral_connections)} lateral links, frozen={column.frozen}")

    print(f"\nMemory estimate: {learner.estimate_memory_usage()} bytes")
    print("✓ Continual learning demo finished.")


if __name__ == "__main__":
    main()
