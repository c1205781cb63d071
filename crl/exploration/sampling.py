"""
crl/exploration/sampling.py
===========================
Random-variate and distribution helpers shared by the exploration
strategies. Every sampler takes the caller's ``random.Random`` so runs
are reproducible under a fixed seed.

Mathematical basis:

    Box–Muller:        z = √(−2 ln u₁) · cos(2π u₂),  u₁ ∈ (0, 1]
    Marsaglia–Tsang:   for shape k ≥ 1,  d = k − 1/3,  c = 1/√(9d)
                       draw z ~ N(0,1), v = (1 + c z)³  (v > 0)
                       accept d·v if  u < 1 − 0.0331 z⁴
                               or  ln u < z²/2 + d(1 − v + ln v)
                       for k < 1: Gamma(k) = Gamma(k+1) · u^(1/k)
    Beta(α, β):        X/(X+Y),  X ~ Gamma(α), Y ~ Gamma(β)
    Softmax:           pᵢ = exp((qᵢ − max q)/T) / Σⱼ exp((qⱼ − max q)/T)
"""

from __future__ import annotations

import math
import random
from typing import List, Sequence


def argmax(values: Sequence[float]) -> int:
    """Index of the first maximum. Raises ValueError on empty input."""
    if len(values) == 0:
        raise ValueError("argmax of an empty sequence is undefined")
    best_idx = 0
    best = values[0]
    for i in range(1, len(values)):
        if values[i] > best:
            best = values[i]
            best_idx = i
    return best_idx


def softmax(values: Sequence[float], temperature: float = 1.0) -> List[float]:
    if len(values) == 0:
        raise ValueError("softmax of an empty sequence is undefined")
    if temperature <= 0:
        raise ValueError(f"temperature must be > 0, got {temperature}")
    max_v = max(values)
    exps = [math.exp((v - max_v) / temperature) for v in values]
    total = sum(exps)
    return [e / total for e in exps]


def entropy(probs: Sequence[float]) -> float:
    """Shannon entropy in nats; zero-probability terms contribute 0."""
    return -sum(p * math.log(p) for p in probs if p > 0)


def sample_categorical(probs: Sequence[float], rng: random.Random) -> int:
    """Cumulative-sum inversion. Falls back to the last index when
    floating-point round-off leaves the cumulative sum short of u."""
    u = rng.random()
    cumulative = 0.0
    for i, p in enumerate(probs):
        cumulative += p
        if u <= cumulative:
            return i
    return len(probs) - 1


def normal_sample(rng: random.Random) -> float:
    u1 = 1.0 - rng.random()    # (0, 1] keeps log finite
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def gamma_sample(shape: float, rng: random.Random, scale: float = 1.0) -> float:
    if shape <= 0:
        raise ValueError(f"gamma shape must be > 0, got {shape}")
    if shape < 1.0:
        u = 1.0 - rng.random()
        return gamma_sample(shape + 1.0, rng, scale) * u ** (1.0 / shape)

    d = shape - 1.0 / 3.0
    c = 1.0 / math.sqrt(9.0 * d)
    while True:
        x = normal_sample(rng)
        v = 1.0 + c * x
        while v <= 0:
            x = normal_sample(rng)
            v = 1.0 + c * x
        v = v * v * v
        u = 1.0 - rng.random()
        if u < 1.0 - 0.0331 * x ** 4:
            return d * v * scale
        if math.log(u) < 0.5 * x * x + d * (1.0 - v + math.log(v)):
            return d * v * scale


def beta_sample(alpha: float, beta: float, rng: random.Random) -> float:
    """Draw from Beta(alpha, beta); the result lies in [0, 1]."""
    x = gamma_sample(alpha, rng)
    y = gamma_sample(beta, rng)
    total = x + y
    if total == 0.0:
        # both draws underflowed (tiny shapes); the mean is the best guess
        return alpha / (alpha + beta)
    return x / total
