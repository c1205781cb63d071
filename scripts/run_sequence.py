#!/usr/bin/env python3
"""
scripts/run_sequence.py
=======================
Train a ContinualLearner on a sequence of synthetic tasks and report
how much of each earlier task it retains.

Each task t has its own target weights w_t; its experiences are
    s ~ U[-1, 1]^d,   r = tanh(w_t · s)

Usage:
    python scripts/run_sequence.py --strategy EWC --tasks 3
    python scripts/run_sequence.py --strategy PackNet --epochs 20 --json
    python scripts/run_sequence.py --compare --seed 11
"""
import argparse
import json
import logging
import math
import random
import sys
from dataclasses import replace
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from crl.continual.learner import ContinualLearner
from crl.core.config import CRLConfig
from crl.core.types import Experience, Task

logger = logging.getLogger(__name__)


def make_task(index: int, size: int, n_experiences: int, rng: random.Random):
    task = Task(task_id=f"task_{index}", environment="synthetic", state_space=size, action_space=1)
    weights = [rng.uniform(-1.0, 1.0) for _ in range(size)]
    experiences = []
    for _ in range(n_experiences):
        state = [rng.uniform(-1.0, 1.0) for _ in range(size)]
        reward = math.tanh(sum(w * s for w, s in zip(weights, state)))
        experiences.append(Experience(task_id=task.task_id, state=state, action=0, reward=reward))
    return task, experiences


def run(strategy: str, args) -> dict:
    cfg = replace(
        CRLConfig.for_profile(args.profile).continual,
        strategy=strategy,
        learning_rate=args.lr,
        seed=args.seed,
    )
    learner = ContinualLearner(policy_size=args.size, config=cfg)

    data_rng = random.Random(args.seed)
    results = []
    for i in range(args.tasks):
        task, experiences = make_task(i, args.size, args.experiences, data_rng)
        learner.add_to_memory_buffer(experiences)
        result = learner.update(task, experiences, epochs=args.epochs)
        results.append(result.to_dict())
        m = result.forgetting_metrics
        logger.info(
            f"[{strategy}] {task.task_id}: final acc={result.performance_history[-1]:.4f} "
            f"BWT={m.backward_transfer:.4f} ACC={m.average_accuracy:.4f}"
        )
    return {
        "strategy": strategy,
        "updates": results,
        "memory_usage": learner.estimate_memory_usage(),
    }


def print_summary(report: dict) -> None:
    print(f"\n=== {report['strategy']} ===")
    for update in report["updates"]:
        metrics = update["forgetting_metrics"]
        print(f"  {update['task_id']:<10} time={update['training_time']:.3f}s "
              f"BWT={metrics['backward_transfer']:.4f} ACC={metrics['average_accuracy']:.4f}")
        for task_id, rate in metrics["retention_rates"].items():
            print(f"      retention[{task_id}] = {rate:.4f}")
    print(f"  memory ≈ {report['memory_usage']} bytes")


def main():
    parser = argparse.ArgumentParser(description="CRL-Core synthetic task sequence")
    parser.add_argument("--strategy",    default="EWC", choices=["EWC", "PackNet", "ProgressiveNN"])
    parser.add_argument("--compare",     action="store_true", help="Run all three strategies")
    parser.add_argument("--profile",     default="balanced", choices=["balanced", "stable", "plastic"])
    parser.add_argument("--tasks",       default=3, type=int)
    parser.add_argument("--size",        default=8, type=int, help="Policy / state dimension")
    parser.add_argument("--experiences", default=64, type=int, help="Experiences per task")
    parser.add_argument("--epochs",      default=10, type=int)
    parser.add_argument("--lr",          default=0.05, type=float, help="Learning rate")
    parser.add_argument("--seed",        default=0, type=int)
    parser.add_argument("--json",        action="store_true", help="Print JSON instead of a table")
    parser.add_argument("--verbose",     action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    strategies = ["EWC", "PackNet", "ProgressiveNN"] if args.compare else [args.strategy]
    reports = [run(s, args) for s in strategies]

    if args.json:
        print(json.dumps(reports, indent=2))
    else:
        for report in reports:
            print_summary(report)


if __name__ == "__main__":
    main()
