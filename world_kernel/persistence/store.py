"""
Simulation Store — persisted world states, agent rosters and the event log.

Behavioral Contract:
- One world-state row per run, replaced on every upsert
- The event log is append-only and ordered by tick, then insertion
- Keyed by simulation id; runs never see each other's rows
"""

import json
import sqlite3
from datetime import datetime
from typing import List, Optional

from world_kernel.errors import ConfigurationError, SimulationNotFound
from world_kernel.models.config import SimulationAgents
from world_kernel.models.event import Event
from world_kernel.models.world import WorldState


class SimulationStore:
    """
    Run persistence.
    Prototype: SQLite. Any document store with the same operations will do.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the tables if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS world_states (
                simulation_id TEXT PRIMARY KEY,
                world_name TEXT NOT NULL,
                status TEXT NOT NULL,
                tick INTEGER NOT NULL,
                year INTEGER NOT NULL,
                stability_index INTEGER,
                state_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS agent_configs (
                simulation_id TEXT PRIMARY KEY,
                config_json TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS event_log (
                simulation_id TEXT NOT NULL,
                tick INTEGER NOT NULL,
                year INTEGER NOT NULL,
                event_type TEXT NOT NULL,
                event_json TEXT NOT NULL,
                logged_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_event_log_sim_tick
            ON event_log(simulation_id, tick)
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_event_log_sim_type
            ON event_log(simulation_id, event_type)
        """)
        self._conn.commit()

    # --- World state ---

    def create_simulation(
        self, state: WorldState, agents: SimulationAgents
    ) -> WorldState:
        """Persist a brand-new run and its agent roster."""
        if agents.simulation_id != state.simulation_id:
            raise ConfigurationError(
                f"Agent roster belongs to {agents.simulation_id}, "
                f"not {state.simulation_id}"
            )
        if self.exists(state.simulation_id):
            raise ConfigurationError(
                f"Simulation {state.simulation_id} already exists"
            )
        self.save_agent_config(agents)
        return self.upsert_state(state)

    def exists(self, simulation_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM world_states WHERE simulation_id = ?", (simulation_id,)
        ).fetchone()
        return row is not None

    def load_latest_state(self, simulation_id: str) -> WorldState:
        """Load the current world state of a run."""
        row = self._conn.execute(
            "SELECT state_json FROM world_states WHERE simulation_id = ?",
            (simulation_id,),
        ).fetchone()
        if row is None:
            raise SimulationNotFound(simulation_id)
        return WorldState.model_validate_json(row["state_json"])

    def upsert_state(self, state: WorldState) -> WorldState:
        """Insert or replace the world state of a run."""
        state = state.model_copy(update={"updated_at": datetime.utcnow()})
        self._conn.execute(
            """
            INSERT INTO world_states (
                simulation_id, world_name, status, tick, year,
                stability_index, state_json, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(simulation_id) DO UPDATE SET
                world_name = excluded.world_name,
                status = excluded.status,
                tick = excluded.tick,
                year = excluded.year,
                stability_index = excluded.stability_index,
                state_json = excluded.state_json,
                updated_at = excluded.updated_at
            """,
            (
                state.simulation_id,
                state.world_name,
                state.status.value,
                state.tick,
                state.year,
                state.metrics.stability_index,
                state.model_dump_json(),
                state.created_at.isoformat(),
                state.updated_at.isoformat(),
            ),
        )
        self._conn.commit()
        return state

    def list_simulations(self, limit: int = 50) -> List[dict]:
        """Summaries of the most recently created runs."""
        rows = self._conn.execute(
            "SELECT simulation_id, world_name, status, tick, year, "
            "stability_index, created_at, updated_at FROM world_states "
            "ORDER BY created_at DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]

    # --- Agent configuration ---

    def save_agent_config(self, agents: SimulationAgents) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO agent_configs (simulation_id, config_json) "
            "VALUES (?, ?)",
            (agents.simulation_id, agents.model_dump_json()),
        )
        self._conn.commit()

    def get_agent_config(self, simulation_id: str) -> SimulationAgents:
        """Agent roster of a run."""
        row = self._conn.execute(
            "SELECT config_json FROM agent_configs WHERE simulation_id = ?",
            (simulation_id,),
        ).fetchone()
        if row is None:
            raise ConfigurationError(
                f"No agent configuration found for simulation {simulation_id}"
            )
        return SimulationAgents.model_validate_json(row["config_json"])

    # --- Event log ---

    def append_event(self, simulation_id: str, event: Event) -> None:
        """Append one entry to a run's event log."""
        self._conn.execute(
            "INSERT INTO event_log (simulation_id, tick, year, event_type, event_json) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                simulation_id,
                event.tick,
                event.year,
                event.type,
                json.dumps(event.model_dump(mode="json"), default=str),
            ),
        )
        self._conn.commit()

    def query_events(
        self,
        simulation_id: str,
        limit: int = 100,
        event_type: Optional[str] = None,
        newest_first: bool = True,
    ) -> List[Event]:
        """Event log entries of a run, optionally filtered by type."""
        order = "DESC" if newest_first else "ASC"
        query = "SELECT event_json FROM event_log WHERE simulation_id = ?"
        params: list = [simulation_id]
        if event_type:
            query += " AND event_type = ?"
            params.append(event_type)
        query += f" ORDER BY tick {order}, rowid {order} LIMIT ?"
        params.append(limit)
        rows = self._conn.execute(query, params).fetchall()
        return [Event.model_validate_json(r["event_json"]) for r in rows]

    def recent_tick_summaries(self, simulation_id: str, limit: int = 20) -> List[Event]:
        """The most recent TICK_SUMMARY entries, oldest first."""
        events = self.query_events(
            simulation_id, limit=limit, event_type="TICK_SUMMARY"
        )
        return list(reversed(events))

    def count_events(self, simulation_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) as cnt FROM event_log WHERE simulation_id = ?",
            (simulation_id,),
        ).fetchone()
        return row["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
