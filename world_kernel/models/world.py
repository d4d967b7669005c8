"""World State — the shared value every tick reads and rewrites."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from world_kernel.models.analysis import WorldMetrics
from world_kernel.models.event import Event


BOUNDED_STATS = ("power", "stability", "technology", "resources")


class SimulationStatus(str, Enum):
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Legal status edges. Anything else is rejected by the mutator.
STATUS_TRANSITIONS = {
    SimulationStatus.RUNNING: {
        SimulationStatus.PAUSED,
        SimulationStatus.COMPLETED,
        SimulationStatus.FAILED,
    },
    SimulationStatus.PAUSED: {SimulationStatus.RUNNING},
    SimulationStatus.COMPLETED: set(),
    SimulationStatus.FAILED: set(),
}


class Country(BaseModel):
    """A single faction tracked in the world."""

    id: str                                 # Stable key
    name: str
    ideology: str                           # Free-form tag
    description: str = ""
    power: float = Field(ge=0, le=100, default=50)
    stability: float = Field(ge=0, le=100, default=50)
    technology: float = Field(ge=0, le=100, default=50)
    resources: float = Field(ge=0, le=100, default=50)
    population: float = Field(ge=0, default=0)
    alliances: List[str] = []               # Symmetric relation
    tensions: Dict[str, float] = {}         # country_id -> [-100, 100]
    history: List[str] = []                 # Most recent 10 entries
    collapsing: bool = False                # Derived, recomputed every pass


class WorldState(BaseModel):
    """One simulation run. The orchestrator is its only writer."""

    simulation_id: str
    world_name: str = "Terra Novus"
    description: str = ""
    tick: int = 0
    year: int = 0
    countries: List[Country] = []
    global_events: List[Event] = []
    metrics: WorldMetrics = WorldMetrics()
    status: SimulationStatus = SimulationStatus.RUNNING
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def get_country(self, country_id: str) -> Optional[Country]:
        """Look up a country by id."""
        return next((c for c in self.countries if c.id == country_id), None)
