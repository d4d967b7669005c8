"""End-of-run report built from the final world state and the event log."""

from typing import List, Optional

from pydantic import BaseModel

from world_kernel.metrics.engine import TICK_SUMMARY
from world_kernel.models.event import Event
from world_kernel.models.world import WorldState
from world_kernel.world_model.mutator import dominant_power, surviving_countries

MAJOR_EVENT_TYPES = ("WAR", "COLLAPSE", "ALLIANCE", "REBELLION", "INNOVATION")
MAJOR_EVENT_LIMIT = 20
PHILOSOPHY_WINDOW = 5


class CountryOutcome(BaseModel):
    name: str
    ideology: str
    survived: bool
    final_power: float
    final_stability: float
    final_technology: float


class MajorEvent(BaseModel):
    year: int
    type: str
    description: str


class FinalState(BaseModel):
    stability_index: int
    explanation: str
    survivors: int
    total_countries: int
    dominant_power: str
    dominant_ideology: str


class SimulationReport(BaseModel):
    simulation_id: str
    world_name: str
    status: str
    years: int
    ticks: int
    final_state: FinalState
    countries: List[CountryOutcome]
    major_events: List[MajorEvent]
    philosophical_summary: List[str]


def major_events(events: List[Event], limit: int = MAJOR_EVENT_LIMIT) -> List[Event]:
    """The first `limit` events of a major type, in the order given."""
    return [e for e in events if e.type in MAJOR_EVENT_TYPES][:limit]


def _philosophical_summary(events: List[Event]) -> List[str]:
    insights = []
    for event in events:
        if event.type != TICK_SUMMARY:
            continue
        thinker: Optional[dict] = event.insights.get("thinker")
        if thinker:
            insights.append(
                thinker.get("moral_analysis") or thinker.get("philosophical_question", "")
            )
    return insights[-PHILOSOPHY_WINDOW:]


def build_report(state: WorldState, events: List[Event]) -> SimulationReport:
    """
    Summarize a run. `events` is the run's event log, oldest first.
    """
    survivors = surviving_countries(state)
    dominant = dominant_power(survivors)
    survivor_ids = {c.id for c in survivors}

    return SimulationReport(
        simulation_id=state.simulation_id,
        world_name=state.world_name,
        status=state.status.value,
        years=state.year,
        ticks=state.tick,
        final_state=FinalState(
            stability_index=state.metrics.stability_index,
            explanation=state.metrics.explanation,
            survivors=len(survivors),
            total_countries=len(state.countries),
            dominant_power=dominant.name if dominant else "None",
            dominant_ideology=dominant.ideology if dominant else "None",
        ),
        countries=[
            CountryOutcome(
                name=c.name,
                ideology=c.ideology,
                survived=c.id in survivor_ids,
                final_power=c.power,
                final_stability=c.stability,
                final_technology=c.technology,
            )
            for c in state.countries
        ],
        major_events=[
            MajorEvent(
                year=e.year,
                type=e.type,
                description=e.description or e.insights.get("content", ""),
            )
            for e in major_events(events)
        ],
        philosophical_summary=_philosophical_summary(events),
    )
