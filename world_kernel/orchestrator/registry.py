"""
Simulation Registry — service-owned map of run id → TickOrchestrator.

Creates runs (validated world + roster), keeps one orchestrator per live run,
re-creates orchestrators from persisted state on resume, and enforces the
optional per-run duration limit.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set
from uuid import uuid4

from world_kernel.errors import (
    ConfigurationError,
    InvalidTransitionError,
    SimulationNotFound,
)
from world_kernel.models.analysis import TerminationReason
from world_kernel.models.config import (
    AgentRole,
    EngineConfig,
    SimulationAgents,
    SimulationRequest,
)
from world_kernel.models.event import Event
from world_kernel.models.world import SimulationStatus, WorldState
from world_kernel.oracle.contracts import Oracle
from world_kernel.orchestrator.tick import OrchestratorState, TickOrchestrator
from world_kernel.persistence.store import SimulationStore
from world_kernel.scheduling.trigger import TickTrigger
from world_kernel.world_model.seed import default_agents, default_world

logger = logging.getLogger(__name__)


def new_simulation_id() -> str:
    return f"sim_{int(time.time() * 1000)}_{uuid4().hex[:9]}"


def validate_roster(world: WorldState, agents: SimulationAgents) -> None:
    """Reject runs the orchestrator could never tick meaningfully."""
    if not world.countries:
        raise ConfigurationError("A simulation needs at least one country")
    if not agents.has_role(AgentRole.OVERSEER):
        raise ConfigurationError("A simulation needs an overseer agent")
    if not agents.leaders:
        raise ConfigurationError("A simulation needs at least one leader agent")

    country_ids = {c.id for c in world.countries}
    if len(country_ids) != len(world.countries):
        raise ConfigurationError("Country ids must be unique")
    for leader in agents.leaders:
        if leader.country_id not in country_ids:
            raise ConfigurationError(
                f"Leader {leader.id} governs unknown country {leader.country_id}"
            )


class SimulationRegistry:
    """Owns the store, oracle and trigger shared by every run it manages."""

    def __init__(
        self,
        store: SimulationStore,
        oracle: Oracle,
        trigger: TickTrigger,
        config: Optional[EngineConfig] = None,
    ):
        self.store = store
        self.oracle = oracle
        self.trigger = trigger
        self.config = config or EngineConfig()
        self._orchestrators: Dict[str, TickOrchestrator] = {}
        self._deadlines: Dict[str, datetime] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._limit_tasks: Set[asyncio.Task] = set()

    # --- Creation ---

    async def create(self, request: Optional[SimulationRequest] = None) -> WorldState:
        """Validate, persist and (unless told otherwise) start a new run."""
        request = request or SimulationRequest()
        simulation_id = new_simulation_id()

        world = default_world(simulation_id, request.countries)
        updates = {}
        if request.world_name:
            updates["world_name"] = request.world_name
        if request.description:
            updates["description"] = request.description
        if updates:
            world = world.model_copy(update=updates)

        if request.agents is not None:
            agents = SimulationAgents(simulation_id=simulation_id, agents=request.agents)
        else:
            agents = default_agents(
                simulation_id,
                world.countries,
                with_thinker=request.with_thinker,
                with_strategist=request.with_strategist,
            )

        validate_roster(world, agents)
        self.store.create_simulation(world, agents)
        self.store.append_event(simulation_id, Event(
            type="SIMULATION_START",
            description="World simulation has begun",
            insights={
                "content": (
                    f"The world of {world.world_name} awakens. "
                    f"Nations prepare their strategies."
                ),
            },
        ))
        logger.info(
            "Simulation created: %s (%d countries, %d agents)",
            simulation_id,
            len(world.countries),
            len(agents.agents),
        )

        orchestrator = self._new_orchestrator(simulation_id)
        if request.start:
            await orchestrator.start(request.tick_interval_minutes * 60)
        if request.duration_hours:
            self.set_duration_limit(simulation_id, timedelta(hours=request.duration_hours))

        return self.store.load_latest_state(simulation_id)

    # --- Lookup ---

    def get(self, simulation_id: str) -> TickOrchestrator:
        """Live orchestrator of a run, re-created from the store when needed."""
        orchestrator = self._orchestrators.get(simulation_id)
        if orchestrator is not None:
            return orchestrator
        if not self.store.exists(simulation_id):
            raise SimulationNotFound(simulation_id)
        return self._new_orchestrator(simulation_id)

    def remove(self, simulation_id: str) -> None:
        """Stop scheduling a run and forget its orchestrator. Persisted data stays."""
        orchestrator = self._orchestrators.pop(simulation_id, None)
        if orchestrator is not None:
            orchestrator.pause()
        self._clear_duration_limit(simulation_id)

    def active_ids(self) -> List[str]:
        return [
            sim_id for sim_id, o in self._orchestrators.items()
            if o.status == OrchestratorState.RUNNING
        ]

    def __len__(self) -> int:
        return len(self._orchestrators)

    # --- Control ---

    def pause(self, simulation_id: str) -> WorldState:
        """Cancel the next tick and persist PAUSED."""
        orchestrator = self.get(simulation_id)
        world = self.store.load_latest_state(simulation_id)
        if world.status not in (SimulationStatus.RUNNING, SimulationStatus.PAUSED):
            raise InvalidTransitionError(
                f"Simulation {simulation_id} is {world.status.value}; it cannot be paused"
            )
        orchestrator.pause(mark_paused=True)
        return self.store.load_latest_state(simulation_id)

    async def resume(self, simulation_id: str, interval_seconds: Optional[float] = None) -> WorldState:
        """Restart ticking, re-creating the orchestrator from persisted state if needed."""
        orchestrator = self.get(simulation_id)
        await orchestrator.start(interval_seconds)
        return self.store.load_latest_state(simulation_id)

    async def tick(self, simulation_id: str) -> WorldState:
        """Execute one tick on demand, after any tick already in flight."""
        orchestrator = self.get(simulation_id)
        world = self.store.load_latest_state(simulation_id)
        if world.status != SimulationStatus.RUNNING:
            raise InvalidTransitionError(
                f"Simulation {simulation_id} is {world.status.value}; it cannot tick"
            )
        await orchestrator.execute_tick()
        return self.store.load_latest_state(simulation_id)

    def pause_all(self) -> None:
        """Cancel scheduling of every live run, e.g. on shutdown. Persisted status is kept."""
        for simulation_id, orchestrator in self._orchestrators.items():
            logger.info("Pausing simulation %s", simulation_id)
            orchestrator.pause()
        for simulation_id in list(self._timers):
            self._clear_duration_limit(simulation_id)

    # --- Duration limit ---

    def set_duration_limit(self, simulation_id: str, duration: timedelta) -> None:
        """
        Complete the run with DURATION_LIMIT once `duration` has elapsed.
        With a running event loop a timer fires on its own; otherwise
        expire_overdue() has to be called.
        """
        self._clear_duration_limit(simulation_id)
        self._deadlines[simulation_id] = datetime.utcnow() + duration
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timers[simulation_id] = loop.call_later(
            duration.total_seconds(),
            self._spawn_limit_task,
            loop,
            simulation_id,
        )

    def _spawn_limit_task(self, loop: asyncio.AbstractEventLoop, simulation_id: str) -> None:
        task = loop.create_task(self._complete_on_limit(simulation_id))
        self._limit_tasks.add(task)
        task.add_done_callback(self._limit_task_done)

    def _limit_task_done(self, task: asyncio.Task) -> None:
        self._limit_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Duration limit completion failed: %s", error)

    async def expire_overdue(self, now: Optional[datetime] = None) -> List[str]:
        """Complete every run past its deadline. Returns the completed ids."""
        now = now or datetime.utcnow()
        expired = [
            sim_id for sim_id, deadline in self._deadlines.items() if deadline <= now
        ]
        for simulation_id in expired:
            await self._complete_on_limit(simulation_id)
        return expired

    async def _complete_on_limit(self, simulation_id: str) -> None:
        self._clear_duration_limit(simulation_id)
        orchestrator = self.get(simulation_id)
        # Let a tick in flight finish first; it may end the run itself
        async with orchestrator.tick_lock:
            world = self.store.load_latest_state(simulation_id)
            if world.status not in (SimulationStatus.RUNNING, SimulationStatus.PAUSED):
                return
            logger.info("Duration limit reached for %s", simulation_id)
            await orchestrator.complete(TerminationReason.DURATION_LIMIT.value)

    def _clear_duration_limit(self, simulation_id: str) -> None:
        self._deadlines.pop(simulation_id, None)
        timer = self._timers.pop(simulation_id, None)
        if timer is not None:
            timer.cancel()

    def _new_orchestrator(self, simulation_id: str) -> TickOrchestrator:
        orchestrator = TickOrchestrator(
            simulation_id,
            self.store,
            self.oracle,
            trigger=self.trigger,
            config=self.config,
        )
        self._orchestrators[simulation_id] = orchestrator
        return orchestrator
