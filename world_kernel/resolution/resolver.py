"""
Action Resolver — turns a tick's decisions into events and deltas.

Behavioral Contract:
- Decisions are resolved in priority order (MILITARY, DIPLOMACY, ESPIONAGE,
  INTERNAL, then anything else), ties kept in collection order
- One oracle resolution per decision, strictly sequential
- Stat deltas are summed per country; tension deltas overwrite per
  (actor, target)
- Special actions (alliances) take effect immediately, so later decisions in
  the same tick see them
- A failed resolution becomes a FAILED_ACTION event; it never aborts the batch
"""

import logging
import warnings
from typing import Dict, List, Optional

from world_kernel.errors import DataIntegrityWarning
from world_kernel.models.config import SimulationAgents
from world_kernel.models.decision import Decision, Resolution
from world_kernel.models.event import Event
from world_kernel.models.world import WorldState
from world_kernel.oracle.contracts import Oracle, coerce_resolution
from world_kernel.world_model.mutator import AllianceAction, WorldStateMutator

logger = logging.getLogger(__name__)

ACTION_PRIORITY = {
    "MILITARY": 1,
    "DIPLOMACY": 2,
    "ESPIONAGE": 3,
    "INTERNAL": 4,
}
UNKNOWN_PRIORITY = 99

EVENT_TYPE_MAP = {
    "declare_war": "WAR",
    "ceasefire": "PEACE",
    "form_alliance": "ALLIANCE",
    "break_alliance": "ALLIANCE_BROKEN",
    "invest_technology": "INNOVATION",
    "stabilize": "INTERNAL_REFORM",
    "reform_policy": "REFORM",
    "sabotage": "ESPIONAGE",
    "steal_technology": "ESPIONAGE",
    "gather_intel": "INTELLIGENCE",
}

ALLY_JOIN_STABILITY = 40


def prioritize_actions(decisions: List[Decision]) -> List[Decision]:
    """Stable sort by action category rank."""
    return sorted(
        decisions, key=lambda d: ACTION_PRIORITY.get(d.action, UNKNOWN_PRIORITY)
    )


def map_action_to_event_type(action: str, specific_action: str) -> str:
    """Event type tag for a decision; unmapped verbs fall back to the category."""
    return EVENT_TYPE_MAP.get(specific_action, action)


class ResolutionBatch:
    """Result of resolving one tick's decisions."""

    def __init__(
        self,
        events: List[Event],
        changes: Dict[str, Dict[str, float]],
        tension_changes: Dict[str, Dict[str, float]],
        world: WorldState,
        war_participants: Optional[Dict[str, List[str]]] = None,
    ):
        self.events = events
        self.changes = changes
        self.tension_changes = tension_changes
        self.world = world                      # State after special actions
        self.war_participants = war_participants or {}


class ActionResolver:
    """Prioritizes and resolves per-actor decisions via the oracle."""

    def __init__(
        self,
        oracle: Oracle,
        mutator: Optional[WorldStateMutator] = None,
    ):
        self.oracle = oracle
        self.mutator = mutator or WorldStateMutator()

    async def resolve_actions(
        self,
        state: WorldState,
        decisions: List[Decision],
        agents: SimulationAgents,
    ) -> ResolutionBatch:
        """Resolve every decision in priority order against a working copy of state."""
        world = state
        events: List[Event] = []
        all_changes: Dict[str, Dict[str, float]] = {}
        all_tensions: Dict[str, Dict[str, float]] = {}
        war_participants: Dict[str, List[str]] = {}

        for decision in prioritize_actions(decisions):
            actor_config = agents.for_country(decision.actor_id)
            if actor_config is None:
                warnings.warn(
                    f"No config found for actor {decision.actor_id}",
                    DataIntegrityWarning,
                    stacklevel=2,
                )
                continue

            try:
                payload = await self.oracle.resolve(decision, world, actor_config)
                resolution = coerce_resolution(payload, decision.actor_id)
            except Exception as e:
                # OracleFailure, ResolutionFailure or a raw backend error
                logger.error(
                    "Error resolving action for %s: %s", decision.actor_id, e
                )
                events.append(Event(
                    type="FAILED_ACTION",
                    actors=[decision.actor_id],
                    description=(
                        f"{decision.actor_id}'s attempt to "
                        f"{decision.specific_action} failed unexpectedly"
                    ),
                    impact={},
                    success=False,
                ))
                continue

            events.append(self._build_event(decision, resolution))
            self._merge_changes(all_changes, resolution.changes)

            actor_tensions = all_tensions.setdefault(decision.actor_id, {})
            for target_id, delta in resolution.new_tensions.items():
                actor_tensions[target_id] = delta

            world = self._handle_special_actions(
                world, decision, resolution, war_participants
            )

        return ResolutionBatch(
            events=events,
            changes=all_changes,
            tension_changes={k: v for k, v in all_tensions.items() if v},
            world=world,
            war_participants=war_participants,
        )

    def _build_event(self, decision: Decision, resolution: Resolution) -> Event:
        actors = [decision.actor_id]
        if decision.target:
            actors.append(decision.target)
        return Event(
            type=map_action_to_event_type(decision.action, decision.specific_action),
            actors=actors,
            description=resolution.description,
            impact=resolution.changes,
            unintended_consequences=resolution.unintended_consequences,
            success=resolution.success,
            success_level=resolution.success_level,
        )

    def _merge_changes(
        self,
        all_changes: Dict[str, Dict[str, float]],
        changes: Dict[str, Dict[str, float]],
    ) -> None:
        for country_id, deltas in changes.items():
            merged = all_changes.setdefault(country_id, {})
            for stat, value in deltas.items():
                merged[stat] = merged.get(stat, 0) + value

    def _handle_special_actions(
        self,
        world: WorldState,
        decision: Decision,
        resolution: Resolution,
        war_participants: Dict[str, List[str]],
    ) -> WorldState:
        """
        Alliance formation needs a successful resolution; breaking an
        alliance applies whatever the outcome.
        """
        if decision.specific_action == "form_alliance" and decision.target:
            if resolution.success:
                world = self.mutator.update_alliances(
                    world, decision.actor_id, decision.target, AllianceAction.FORM
                )
        elif decision.specific_action == "break_alliance" and decision.target:
            world = self.mutator.update_alliances(
                world, decision.actor_id, decision.target, AllianceAction.BREAK
            )

        if decision.specific_action == "declare_war" and decision.target:
            actor = world.get_country(decision.actor_id)
            target = world.get_country(decision.target)
            if actor is not None and target is not None:
                logger.info("WAR: %s declares war on %s", actor.name, target.name)
                joining = []
                for ally_id in target.alliances:
                    ally = world.get_country(ally_id)
                    if ally is not None and ally.stability > ALLY_JOIN_STABILITY:
                        logger.info(
                            "%s joins the war to defend %s", ally.name, target.name
                        )
                        joining.append(ally.id)
                war_participants[target.id] = joining

        return world
