"""
crl/deployment/server/routes.py
===============================
REST API routes for the CRL-Core server.

Engine errors (``CRLError``) are turned into HTTP 422 responses by the
handler registered in ``middleware.py``.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional
from fastapi import APIRouter
from pydantic import BaseModel

from crl.continual.learner import ContinualLearner
from crl.core.config import ContinualConfig, ExplorationConfig
from crl.core.types import Experience, Task
from crl.exploration.engine import ExplorationEngine

router = APIRouter()

# ─── Request/Response Models ────────────────────────────────────

class EpsilonGreedyRequest(BaseModel):
    q_values: List[float]
    epsilon:  Optional[float] = None

class UCBRequest(BaseModel):
    q_values:      List[float]
    action_counts: List[float]
    total_steps:   int

class ThompsonRequest(BaseModel):
    action_rewards: List[List[float]]    # newly observed rewards, one list per action

class SoftmaxRequest(BaseModel):
    q_values:    List[float]
    temperature: float = 1.0

class CountBasedRequest(BaseModel):
    state:    List[float]
    action:   int
    q_values: List[float]

class ExplorationResponse(BaseModel):
    strategy:         str
    action:           int
    exploration_rate: float
    performance:      float
    actions_explored: int
    regret:           float
    coverage_score:   float

class ExperienceModel(BaseModel):
    task_id:    str
    state:      List[float]
    action:     int
    reward:     float
    next_state: List[float] = []
    done:       bool = False
    priority:   float = 1.0

class MemoryRequest(BaseModel):
    experiences: List[ExperienceModel]

class UpdateRequest(BaseModel):
    task:        Dict[str, Any]          # {"task_id": "t1", "environment": "grid", ...}
    experiences: List[ExperienceModel]
    epochs:      int = 10
    strategy:    Optional[str] = None    # overrides the configured strategy for this call

class UpdateResponse(BaseModel):
    task_id:             str
    strategy:            str
    updated_policy:      List[float]
    performance_history: List[float]
    forgetting_metrics:  Dict[str, Any]
    memory_usage:        int
    training_time:       float

# ─── Global engine instances ────────────────────────────────────
# In production: inject via dependency injection
_engine: Optional[ExplorationEngine] = None
_learner: Optional[ContinualLearner] = None

def get_engine() -> ExplorationEngine:
    global _engine
    if _engine is None:
        _engine = ExplorationEngine(ExplorationConfig())
    return _engine

def get_learner() -> ContinualLearner:
    global _learner
    if _learner is None:
        _learner = ContinualLearner(policy_size=10, config=ContinualConfig())
    return _learner

def configure(
    engine: Optional[ExplorationEngine] = None,
    learner: Optional[ContinualLearner] = None,
) -> None:
    """Replace the served engine instances (None = rebuild lazily)."""
    global _engine, _learner
    _engine = engine
    _learner = learner

def _to_experiences(items: List[ExperienceModel]) -> List[Experience]:
    return [Experience.from_dict(item.model_dump()) for item in items]

def _exploration_response(result) -> ExplorationResponse:
    return ExplorationResponse(
        strategy=result.strategy,
        action=result.action,
        exploration_rate=result.exploration_rate,
        performance=result.performance,
        actions_explored=result.actions_explored,
        regret=result.regret,
        coverage_score=result.coverage_score,
    )

# ─── Exploration routes ─────────────────────────────────────────

@router.post("/explore/epsilon-greedy", response_model=ExplorationResponse)
async def explore_epsilon_greedy(request: EpsilonGreedyRequest):
    result = get_engine().epsilon_greedy(request.q_values, request.epsilon)
    return _exploration_response(result)

@router.post("/explore/ucb", response_model=ExplorationResponse)
async def explore_ucb(request: UCBRequest):
    result = get_engine().ucb(request.q_values, request.action_counts, request.total_steps)
    return _exploration_response(result)

@router.post("/explore/thompson", response_model=ExplorationResponse)
async def explore_thompson(request: ThompsonRequest):
    engine = get_engine()
    result = engine.thompson_sampling(request.action_rewards)
    return _exploration_response(result)

@router.post("/explore/softmax", response_model=ExplorationResponse)
async def explore_softmax(request: SoftmaxRequest):
    result = get_engine().softmax_exploration(request.q_values, request.temperature)
    return _exploration_response(result)

@router.post("/explore/count-based", response_model=ExplorationResponse)
async def explore_count_based(request: CountBasedRequest):
    result = get_engine().count_based(request.state, request.action, request.q_values)
    return _exploration_response(result)

@router.post("/explore/reset")
async def explore_reset():
    get_engine().reset()
    return {"status": "reset"}

# ─── Continual learning routes ──────────────────────────────────

@router.post("/continual/memory")
async def add_memory(request: MemoryRequest):
    learner = get_learner()
    learner.add_to_memory_buffer(_to_experiences(request.experiences))
    buffer = learner.memory_buffer
    return {
        "status":            "stored",
        "size":              buffer.size,
        "capacity":          buffer.capacity,
        "task_distribution": buffer.task_distribution,
    }

@router.post("/continual/update", response_model=UpdateResponse)
async def continual_update(request: UpdateRequest):
    learner = get_learner()
    task = Task.from_dict(request.task)
    experiences = _to_experiences(request.experiences)
    result = learner.update(task, experiences, request.epochs, strategy=request.strategy)
    return UpdateResponse(
        task_id=result.task_id,
        strategy=result.strategy,
        updated_policy=result.updated_policy,
        performance_history=result.performance_history,
        forgetting_metrics=result.forgetting_metrics.to_dict(),
        memory_usage=result.memory_usage,
        training_time=result.training_time,
    )

@router.get("/continual/state")
async def continual_state():
    learner = get_learner()
    state = learner.export_state()
    state["memory_usage"] = learner.estimate_memory_usage()
    state["buffer_size"] = learner.memory_buffer.size
    return state
