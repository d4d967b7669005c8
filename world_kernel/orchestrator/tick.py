"""
Tick Orchestrator — the heartbeat of a simulation run.

Drives one tick through a fixed phase order:

  LOAD → ENVIRONMENT → DECIDE → RESOLVE → APPLY → ANALYZE → COMMENTARY
       → PERSIST → ADVANCE → TERMINATION

Per-faction and per-decision failures are absorbed with safe defaults.
Anything else is caught at the top of execute_tick(): the run is marked
FAILED and scheduling stops. Errors never reach the trigger.
"""

import asyncio
import logging
import random
import warnings
from enum import Enum
from typing import List, Optional

from world_kernel.errors import DataIntegrityWarning, InvalidTransitionError, TickFailure
from world_kernel.metrics.engine import (
    TICK_SUMMARY,
    calculate_stability_index,
    generate_random_event,
    should_terminate,
)
from world_kernel.models.analysis import (
    OverseerAnalysis,
    StrategistAnalysis,
    ThinkerCommentary,
    WorldMetrics,
)
from world_kernel.models.config import AgentConfig, AgentRole, EngineConfig, SimulationAgents
from world_kernel.models.decision import Decision
from world_kernel.models.event import Event
from world_kernel.models.world import SimulationStatus, WorldState
from world_kernel.oracle.contracts import (
    Oracle,
    coerce_decision,
    coerce_overseer,
    coerce_strategist,
    coerce_thinker,
    fallback_decision,
    fallback_overseer,
)
from world_kernel.persistence.store import SimulationStore
from world_kernel.resolution.resolver import ActionResolver
from world_kernel.scheduling.trigger import ManualTrigger, TickTrigger, TriggerHandle
from world_kernel.world_model.mutator import (
    WorldStateMutator,
    dominant_power,
    surviving_countries,
)

logger = logging.getLogger(__name__)

COLLAPSED_STABILITY = 10
COLLAPSED_POWER = 10
CONFLICT_WINDOW_TICKS = 10


class OrchestratorState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TickOrchestrator:
    """
    Runs the phase sequence for one simulation.

    States:
      IDLE → RUNNING ⇄ PAUSED
      RUNNING → (COMPLETED | FAILED)
    """

    def __init__(
        self,
        simulation_id: str,
        store: SimulationStore,
        oracle: Oracle,
        trigger: Optional[TickTrigger] = None,
        config: Optional[EngineConfig] = None,
        mutator: Optional[WorldStateMutator] = None,
        rng: Optional[random.Random] = None,
    ):
        self.simulation_id = simulation_id
        self.store = store
        self.oracle = oracle
        self.trigger = trigger or ManualTrigger()
        self.config = config or EngineConfig()
        self.mutator = mutator or WorldStateMutator()
        self.resolver = ActionResolver(oracle, self.mutator)
        self.rng = rng or random.Random(self.config.seed)

        self._state = OrchestratorState.IDLE
        self._handle: Optional[TriggerHandle] = None
        self._tick_lock = asyncio.Lock()
        self.last_failure: Optional[TickFailure] = None
        self.last_thinker: Optional[ThinkerCommentary] = None
        self.last_strategist: Optional[StrategistAnalysis] = None

    @property
    def status(self) -> OrchestratorState:
        """Current orchestrator state."""
        return self._state

    @property
    def tick_lock(self) -> asyncio.Lock:
        """Held for the whole of a tick. Only one tick of a run executes at a time."""
        return self._tick_lock

    def get_status(self) -> dict:
        return {
            "simulation_id": self.simulation_id,
            "state": self._state.value,
            "scheduled": self._handle is not None and self._handle.active,
        }

    # --- Lifecycle ---

    async def start(self, interval_seconds: Optional[float] = None) -> None:
        """Run one tick immediately, then hand periodic ticks to the trigger."""
        if self._state == OrchestratorState.RUNNING:
            logger.warning("Simulation %s already running", self.simulation_id)
            return
        if self._state in (OrchestratorState.COMPLETED, OrchestratorState.FAILED):
            raise InvalidTransitionError(
                f"Simulation {self.simulation_id} is {self._state.value}; "
                f"it cannot be started again"
            )

        world = self.store.load_latest_state(self.simulation_id)
        if world.status == SimulationStatus.PAUSED:
            world = self.mutator.transition_status(world, SimulationStatus.RUNNING)
            self.store.upsert_state(world)
        elif world.status != SimulationStatus.RUNNING:
            raise InvalidTransitionError(
                f"Simulation {self.simulation_id} is {world.status.value}"
            )

        interval = interval_seconds or self.config.tick_interval_seconds
        self._state = OrchestratorState.RUNNING
        logger.info(
            "Starting simulation %s with %ss interval", self.simulation_id, interval
        )

        await self.execute_tick()

        if self._state == OrchestratorState.RUNNING:
            self._handle = self.trigger.schedule(self.execute_tick, interval)

    def pause(self, mark_paused: bool = False) -> None:
        """
        Cancel the next scheduled tick. A tick already in progress finishes.
        With mark_paused, the persisted run also moves RUNNING → PAUSED and
        a tick in progress is abandoned before it writes.
        """
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._state == OrchestratorState.RUNNING:
            self._state = OrchestratorState.PAUSED

        if mark_paused:
            world = self.store.load_latest_state(self.simulation_id)
            if world.status == SimulationStatus.RUNNING:
                world = self.mutator.transition_status(world, SimulationStatus.PAUSED)
                self.store.upsert_state(world)
        logger.info("Simulation %s paused", self.simulation_id)

    async def complete(self, reason: str) -> WorldState:
        """Stop scheduling, mark the run COMPLETED and log the end-of-run summary."""
        self.pause()

        world = self.store.load_latest_state(self.simulation_id)
        if world.status != SimulationStatus.RUNNING:
            # A paused run is resumed only to be closed
            world = self.mutator.transition_status(world, SimulationStatus.RUNNING)
        world = self.mutator.transition_status(world, SimulationStatus.COMPLETED)
        world = self.store.upsert_state(world)
        self._state = OrchestratorState.COMPLETED

        summary = self._build_end_summary(world, reason)
        self.store.append_event(self.simulation_id, summary)
        logger.info(
            "Simulation %s completed: %s after %d years (stability %d/100)",
            self.simulation_id,
            reason,
            world.year,
            world.metrics.stability_index,
        )
        return world

    # --- Tick ---

    async def execute_tick(self) -> Optional[WorldState]:
        """
        Run one full tick. Returns the persisted state, or None when the run
        is not RUNNING, left RUNNING mid-tick, or the tick failed.
        A tick requested while another is in flight waits for it.
        """
        async with self._tick_lock:
            return await self._run_tick()

    def _still_running(self, phase: str) -> bool:
        """
        False once a pause or completion has been persisted since the tick
        loaded its state. The tick is then abandoned without writing.
        """
        status = self.store.load_latest_state(self.simulation_id).status
        if status == SimulationStatus.RUNNING:
            return True
        logger.info(
            "Simulation %s became %s during the tick, abandoning before %s",
            self.simulation_id,
            status.value,
            phase,
        )
        return False

    async def _run_tick(self) -> Optional[WorldState]:
        tick = None
        try:
            # PHASE 1: Load
            world = self.store.load_latest_state(self.simulation_id)
            if world.status != SimulationStatus.RUNNING:
                logger.info(
                    "Simulation %s status is %s, stopping",
                    self.simulation_id,
                    world.status.value,
                )
                self.pause()
                return None
            tick = world.tick
            logger.info("Year %d | Tick %d", world.year, world.tick)

            # PHASE 2: Environment
            random_event = generate_random_event(
                world, world.tick, self.rng, self.config.random_event_probability
            )
            if random_event is not None:
                logger.info("Random event: %s", random_event.description)
                world = self.mutator.add_event(world, random_event)
                world = self.mutator.apply_changes(world, random_event.impact)

            # PHASE 3: Decide
            agents = self.store.get_agent_config(self.simulation_id)
            decisions = await self.collect_decisions(world, agents)
            logger.info("Collected %d decisions", len(decisions))

            # PHASE 4: Resolve
            batch = await self.resolver.resolve_actions(world, decisions, agents)
            logger.info("Resolved %d events", len(batch.events))

            # PHASE 5: Apply
            world = self.mutator.apply_changes(batch.world, batch.changes)
            world = self.mutator.apply_tension_changes(world, batch.tension_changes)
            for event in batch.events:
                world = self.mutator.add_event(world, event)

            # PHASE 6: Analyze
            overseer = await self._overseer_analysis(world, agents)
            objective = calculate_stability_index(world)
            world = world.model_copy(update={
                "metrics": WorldMetrics(**{**overseer.model_dump(), **objective}),
            })
            logger.info("Stability Index: %d/100", world.metrics.stability_index)

            # PHASE 7: Commentary
            self.last_thinker = await self._thinker_commentary(
                world, batch.events, agents
            )
            self.last_strategist = None
            if world.tick % self.config.strategist_every_n_ticks == 0:
                self.last_strategist = await self._strategist_analysis(world, agents)

            # PHASE 8: Persist
            if not self._still_running("persist"):
                return None
            world = self.store.upsert_state(world)
            logged = [random_event] if random_event is not None else []
            for event in logged + batch.events:
                self.store.append_event(
                    self.simulation_id,
                    event.model_copy(update={"tick": world.tick, "year": world.year}),
                )
            self.store.append_event(
                self.simulation_id, self._build_tick_summary(world, batch.events, overseer)
            )

            # PHASE 9: Advance
            if not self._still_running("advance"):
                return None
            world = world.model_copy(update={
                "tick": world.tick + 1,
                "year": world.year + 1,
            })
            world = self.store.upsert_state(world)

            # PHASE 10: Termination
            termination = should_terminate(
                world,
                self.config.max_years,
                self.store.recent_tick_summaries(self.simulation_id),
            )
            if termination.terminate:
                logger.info(
                    "Termination condition met: %s (%s)",
                    termination.reason.value,
                    termination.message,
                )
                return await self.complete(termination.reason.value)

            return world

        except Exception as e:
            logger.exception("Fatal error in tick execution for %s", self.simulation_id)
            self.last_failure = TickFailure(
                self.simulation_id, tick if tick is not None else -1, str(e)
            )
            self.last_failure.__cause__ = e
            self._mark_failed(f"{type(e).__name__}: {e}")
            return None

    async def collect_decisions(
        self, world: WorldState, agents: SimulationAgents
    ) -> List[Decision]:
        """One decision per eligible leader, in roster order."""
        eligible = []
        for agent in agents.leaders:
            country = world.get_country(agent.country_id) if agent.country_id else None
            if country is None:
                warnings.warn(
                    f"Country {agent.country_id} not found for agent {agent.id}",
                    DataIntegrityWarning,
                    stacklevel=2,
                )
                continue
            if country.stability < COLLAPSED_STABILITY and country.power < COLLAPSED_POWER:
                logger.info("Skipping %s - nation has collapsed", country.name)
                continue
            eligible.append(agent)

        if self.config.concurrent_decisions:
            # gather keeps the argument order, so roster order is preserved
            return list(await asyncio.gather(
                *(self._collect_one(world, agent) for agent in eligible)
            ))

        decisions = []
        for agent in eligible:
            decisions.append(await self._collect_one(world, agent))
        return decisions

    async def _collect_one(self, world: WorldState, agent: AgentConfig) -> Decision:
        country = world.get_country(agent.country_id)
        try:
            payload = await self.oracle.collect_decision(country, world, agent)
            decision = coerce_decision(payload, country.id, agent.id)
        except Exception as e:
            logger.error(
                "Agent %s (%s) failed to make decision: %s", agent.id, country.name, e
            )
            return fallback_decision(country.id, agent.id)

        target = f" -> {decision.target}" if decision.target else ""
        logger.info("%s: %s%s", country.name, decision.specific_action, target)
        return decision

    # --- Analysis phases ---

    async def _overseer_analysis(
        self, world: WorldState, agents: SimulationAgents
    ) -> OverseerAnalysis:
        if not agents.has_role(AgentRole.OVERSEER):
            logger.warning("No overseer agent configured")
            return fallback_overseer("No overseer analysis available")
        try:
            return coerce_overseer(await self.oracle.overseer_analysis(world))
        except Exception as e:
            logger.error("Overseer analysis failed: %s", e)
            return fallback_overseer("Overseer analysis failed")

    async def _thinker_commentary(
        self, world: WorldState, events: List[Event], agents: SimulationAgents
    ) -> Optional[ThinkerCommentary]:
        if not agents.has_role(AgentRole.THINKER):
            return None
        try:
            commentary = coerce_thinker(await self.oracle.thinker_commentary(world, events))
        except Exception as e:
            logger.error("Thinker commentary failed: %s", e)
            return None
        if commentary is not None:
            logger.info("Philosophical insight: %s", commentary.philosophical_question)
        return commentary

    async def _strategist_analysis(
        self, world: WorldState, agents: SimulationAgents
    ) -> Optional[StrategistAnalysis]:
        if not agents.has_role(AgentRole.STRATEGIST):
            return None
        try:
            return coerce_strategist(
                await self.oracle.strategist_analysis(world, active_conflicts(world))
            )
        except Exception as e:
            logger.error("Strategist analysis failed: %s", e)
            return None

    # --- Helpers ---

    def _build_tick_summary(
        self, world: WorldState, events: List[Event], overseer: OverseerAnalysis
    ) -> Event:
        survivors = surviving_countries(world)
        insights = {"overseer": overseer.model_dump(mode="json")}
        if self.last_thinker is not None:
            insights["thinker"] = self.last_thinker.model_dump(mode="json")
        if self.last_strategist is not None:
            insights["strategist"] = self.last_strategist.model_dump(mode="json")
        insights["surviving_countries"] = len(survivors)
        insights["total_countries"] = len(world.countries)
        return Event(
            tick=world.tick,
            year=world.year,
            type=TICK_SUMMARY,
            actors=[],
            description=f"Tick {world.tick} complete ({len(events)} events)",
            stability_index=world.metrics.stability_index,
            insights=insights,
        )

    def _build_end_summary(self, world: WorldState, reason: str) -> Event:
        survivors = surviving_countries(world)
        dominant = dominant_power(survivors)
        names = ", ".join(c.name for c in survivors) or "none"
        return Event(
            tick=world.tick,
            year=world.year,
            type="SIMULATION_END",
            description=f"Simulation ended: {reason}",
            stability_index=world.metrics.stability_index,
            insights={
                "reason": reason,
                "content": (
                    f"After {world.year} years, the simulation concludes. "
                    f"Surviving nations: {names}"
                ),
                "survivors": len(survivors),
                "total_years": world.year,
                "dominant_ideology": (
                    dominant.ideology if dominant else "None - Total Collapse"
                ),
            },
        )

    def _mark_failed(self, error: str) -> None:
        """Best effort: persist FAILED and stop scheduling. Never raises."""
        self.pause()
        self._state = OrchestratorState.FAILED
        try:
            world = self.store.load_latest_state(self.simulation_id)
            if world.status == SimulationStatus.RUNNING:
                world = self.mutator.transition_status(
                    world, SimulationStatus.FAILED, error=error
                )
                self.store.upsert_state(world)
        except Exception:
            logger.exception(
                "Failed to update simulation status for %s", self.simulation_id
            )


def active_conflicts(world: WorldState) -> List[dict]:
    """Wars declared within the last 10 ticks."""
    return [
        {
            "attacker": e.actors[0],
            "defender": e.actors[1] if len(e.actors) > 1 else None,
            "start_year": e.year,
        }
        for e in world.global_events
        if e.type == "WAR" and world.tick - e.tick < CONFLICT_WINDOW_TICKS and e.actors
    ]
