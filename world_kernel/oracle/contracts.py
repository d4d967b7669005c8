"""
Oracle contracts — the decision-making capability the kernel consumes.

Five operations, all coroutines:
  collect_decision     one Decision per leader per tick
  overseer_analysis    subjective read of world order
  thinker_commentary   optional philosophical commentary
  strategist_analysis  optional military analysis
  resolve              outcome of one Decision

A backend may return the tagged models or plain mappings; mappings are
validated here and any failure is surfaced as OracleFailure /
ResolutionFailure so callers can take their fallback path.
"""

from __future__ import annotations

from typing import Any, List, Optional, Protocol, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from world_kernel.errors import OracleFailure, ResolutionFailure
from world_kernel.models.analysis import (
    OverseerAnalysis,
    StrategistAnalysis,
    ThinkerCommentary,
)
from world_kernel.models.config import AgentConfig
from world_kernel.models.decision import ActionCategory, Decision, Resolution
from world_kernel.models.event import Event
from world_kernel.models.world import Country, WorldState

M = TypeVar("M", bound=BaseModel)


class Oracle(Protocol):
    """Protocol for the decision-making capability — pluggable backend."""

    async def collect_decision(
        self, country: Country, world: WorldState, agent: AgentConfig
    ) -> Union[Decision, dict]: ...

    async def overseer_analysis(
        self, world: WorldState
    ) -> Union[OverseerAnalysis, dict]: ...

    async def thinker_commentary(
        self, world: WorldState, recent_events: List[Event]
    ) -> Union[ThinkerCommentary, dict, None]: ...

    async def strategist_analysis(
        self, world: WorldState, active_conflicts: List[dict]
    ) -> Union[StrategistAnalysis, dict, None]: ...

    async def resolve(
        self, decision: Decision, world: WorldState, actor_config: AgentConfig
    ) -> Union[Resolution, dict]: ...


def _coerce(model: Type[M], payload: Any, capability: str) -> M:
    if isinstance(payload, model):
        return payload
    if not isinstance(payload, dict):
        raise OracleFailure(
            capability, f"expected {model.__name__}, got {type(payload).__name__}"
        )
    if payload.get("error"):
        raise OracleFailure(capability, str(payload["error"]))
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise OracleFailure(capability, f"invalid payload: {e}") from e


def coerce_decision(payload: Any, actor_id: str, agent_id: Optional[str] = None) -> Decision:
    """Validate a decision payload and pin it to the faction that produced it."""
    if isinstance(payload, dict):
        payload = {"agent_id": agent_id, **payload, "actor_id": actor_id}
    decision = _coerce(Decision, payload, "decision")
    if decision.actor_id != actor_id:
        decision = decision.model_copy(update={"actor_id": actor_id})
    return decision


def coerce_overseer(payload: Any) -> OverseerAnalysis:
    return _coerce(OverseerAnalysis, payload, "overseer")


def coerce_thinker(payload: Any) -> Optional[ThinkerCommentary]:
    if payload is None:
        return None
    return _coerce(ThinkerCommentary, payload, "thinker")


def coerce_strategist(payload: Any) -> Optional[StrategistAnalysis]:
    if payload is None:
        return None
    return _coerce(StrategistAnalysis, payload, "strategist")


def coerce_resolution(payload: Any, actor_id: str) -> Resolution:
    try:
        return _coerce(Resolution, payload, "resolution")
    except OracleFailure as e:
        raise ResolutionFailure(actor_id, str(e)) from e


# --- Fallbacks ---

def fallback_decision(actor_id: str, agent_id: Optional[str] = None) -> Decision:
    """Safe default when a leader cannot decide."""
    return Decision(
        actor_id=actor_id,
        agent_id=agent_id,
        action=ActionCategory.INTERNAL.value,
        specific_action="stabilize",
        target=None,
        details="Emergency stabilization measures",
        reasoning="Decision capability unavailable, default action",
        expected_outcome="Maintain status quo",
        risks="None",
    )


def fallback_overseer(explanation: str) -> OverseerAnalysis:
    return OverseerAnalysis(
        stability_index=50,
        explanation=explanation,
        emerging_patterns=[],
        predictions=[],
        hidden_costs="Unknown",
    )
