"""
examples/exploration_strategies.py
==================================
Runs every CRL-Core exploration strategy on a 4-armed Bernoulli bandit
and prints how often each one pulls the best arm.
"""
import random
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from crl.core.config import ExplorationConfig
from crl.exploration.engine import ExplorationEngine

ARM_PROBS = [0.2, 0.5, 0.8, 0.35]
STEPS = 300


def run_bandit(name, choose, rng):
    counts = [0.0] * len(ARM_PROBS)
    totals = [0.0] * len(ARM_PROBS)
    for t in range(STEPS):
        q = [totals[a] / counts[a] if counts[a] else 0.0 for a in range(len(ARM_PROBS))]
        action = choose(q, counts, t)
        reward = 1.0 if rng.random() < ARM_PROBS[action] else 0.0
        counts[action] += 1
        totals[action] += reward
    best = max(range(len(ARM_PROBS)), key=lambda a: ARM_PROBS[a])
    print(f"{name:<16} best arm pulled {counts[best] / STEPS:6.1%}  counts={[int(c) for c in counts]}")


def main():
    rng = random.Random(0)
    engine = ExplorationEngine(ExplorationConfig(epsilon=0.1), seed=0)

    run_bandit("epsilon-greedy", lambda q, n, t: engine.epsilon_greedy(q).action, rng)
    run_bandit("ucb", lambda q, n, t: engine.ucb(q, n, t).action, rng)
    run_bandit("softmax (T=0.2)", lambda q, n, t: engine.softmax_exploration(q, 0.2).action, rng)

    # Thompson sampling feeds each step's reward back into the posterior
    pending = [[] for _ in ARM_PROBS]

    def thompson(q, n, t):
        result = engine.thompson_sampling(pending)
        for rewards in pending:
            rewards.clear()
        return result.action

    def thompson_with_feedback(q, n, t):
        action = thompson(q, n, t)
        pending[action].append(1.0 if rng.random() < ARM_PROBS[action] else 0.0)
        return action

    run_bandit("thompson", thompson_with_feedback, rng)
    print(f"  posterior means: {[round(m, 3) for m in engine.posterior_means]}")

    # Curiosity and count bonuses on a short random walk
    engine.reset()
    state = [0.0, 0.0]
    for step in range(5):
        action = rng.randrange(4)
        next_state = [state[0] + rng.choice([-0.1, 0.1]), state[1] + rng.choice([-0.1, 0.1])]
        result = engine.curiosity_driven(state, next_state, action, extrinsic_reward=0.0)
        bonus = engine.count_based(state, action, [0.0, 0.0, 0.0, 0.0])
        m = result.intrinsic_motivation
        print(f"step {step}: surprise={m.surprise:.4f} novelty={m.novelty:.3f} "
              f"count bonus={bonus.exploration_rate:.3f}")
        state = next_state

    print("✓ Exploration demo finished.")


if __name__ == "__main__":
    main()
