"""
World Kernel API — FastAPI endpoints.

Exposes run management over REST:
- Creating and listing simulations
- Pause / resume / manual tick control
- State, event log and end-of-run report inspection
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query

from world_kernel.errors import (
    ConfigurationError,
    InvalidTransitionError,
    SimulationNotFound,
)
from world_kernel.models.config import EngineConfig, SimulationRequest
from world_kernel.oracle.contracts import Oracle
from world_kernel.oracle.rule_based import RuleBasedOracle
from world_kernel.orchestrator.registry import SimulationRegistry
from world_kernel.persistence.store import SimulationStore
from world_kernel.reporting.report import build_report
from world_kernel.scheduling.trigger import IntervalTrigger, TickTrigger


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, SimulationNotFound):
        return HTTPException(404, "Simulation not found")
    if isinstance(e, ConfigurationError):
        return HTTPException(400, str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(409, str(e))
    return HTTPException(500, str(e))


# --- Application Factory ---

def create_app(
    store: Optional[SimulationStore] = None,
    oracle: Optional[Oracle] = None,
    trigger: Optional[TickTrigger] = None,
    config: Optional[EngineConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    st = store or SimulationStore()
    registry = SimulationRegistry(
        store=st,
        oracle=oracle or RuleBasedOracle(),
        trigger=trigger or IntervalTrigger(),
        config=config or EngineConfig(),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        registry.pause_all()

    app = FastAPI(
        title="World Kernel API",
        description="Tick-driven world simulation kernel",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store components on app state for access in endpoints
    app.state.store = st
    app.state.registry = registry

    # === HEALTH ===

    @app.get("/health")
    def health():
        return {
            "status": "alive",
            "active_simulations": len(registry.active_ids()),
            "timestamp": datetime.utcnow().isoformat(),
        }

    # === SIMULATIONS ===

    @app.post("/simulations")
    async def create_simulation(req: Optional[SimulationRequest] = None):
        """Create a run from the seed world (or the given countries) and start it."""
        req = req or SimulationRequest()
        try:
            world = await registry.create(req)
        except ConfigurationError as e:
            raise _http_error(e)
        return {
            "simulation_id": world.simulation_id,
            "status": world.status.value,
            "world_name": world.world_name,
            "countries": len(world.countries),
            "tick_interval_minutes": req.tick_interval_minutes,
            "duration_hours": req.duration_hours,
        }

    @app.get("/simulations")
    def list_simulations(limit: int = Query(50, ge=1, le=500)):
        return {"simulations": st.list_simulations(limit)}

    @app.post("/simulations/{simulation_id}/pause")
    def pause_simulation(simulation_id: str):
        try:
            world = registry.pause(simulation_id)
        except (SimulationNotFound, InvalidTransitionError) as e:
            raise _http_error(e)
        return {"simulation_id": simulation_id, "status": world.status.value}

    @app.post("/simulations/{simulation_id}/resume")
    async def resume_simulation(simulation_id: str):
        try:
            world = await registry.resume(simulation_id)
        except (SimulationNotFound, InvalidTransitionError) as e:
            raise _http_error(e)
        return {"simulation_id": simulation_id, "status": world.status.value}

    @app.post("/simulations/{simulation_id}/tick")
    async def tick_simulation(simulation_id: str):
        """Run one tick now, independent of the schedule."""
        try:
            world = await registry.tick(simulation_id)
        except (SimulationNotFound, InvalidTransitionError) as e:
            raise _http_error(e)
        return {
            "simulation_id": simulation_id,
            "status": world.status.value,
            "tick": world.tick,
            "year": world.year,
            "stability_index": world.metrics.stability_index,
            "error": world.error,
        }

    # === INSPECTION ===

    @app.get("/simulations/{simulation_id}/state")
    def get_state(simulation_id: str):
        try:
            world = st.load_latest_state(simulation_id)
        except SimulationNotFound as e:
            raise _http_error(e)
        return world.model_dump(mode="json")

    @app.get("/simulations/{simulation_id}/logs")
    def get_logs(
        simulation_id: str,
        limit: int = Query(100, ge=1, le=1000),
        event_type: Optional[str] = Query(None, alias="type"),
    ):
        """Event log, newest first."""
        if not st.exists(simulation_id):
            raise _http_error(SimulationNotFound(simulation_id))
        logs = st.query_events(simulation_id, limit=limit, event_type=event_type)
        return {
            "simulation_id": simulation_id,
            "count": len(logs),
            "logs": [e.model_dump(mode="json") for e in logs],
        }

    @app.get("/simulations/{simulation_id}/report")
    def get_report(simulation_id: str):
        try:
            world = st.load_latest_state(simulation_id)
        except SimulationNotFound as e:
            raise _http_error(e)
        events = st.query_events(
            simulation_id, limit=st.count_events(simulation_id), newest_first=False
        )
        return build_report(world, events).model_dump(mode="json")

    return app


# Default app instance
app = create_app()
