"""Engine configuration and the per-run agent roster."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from world_kernel.models.world import Country


class EngineConfig(BaseModel):
    """Configuration for the tick orchestrator."""

    tick_interval_seconds: int = 300
    max_years: int = 1000
    random_event_probability: float = Field(ge=0.0, le=1.0, default=0.10)
    strategist_every_n_ticks: int = 5
    concurrent_decisions: bool = False
    seed: Optional[int] = None


class AgentRole(str, Enum):
    OVERSEER = "OVERSEER"
    LEADER = "LEADER"
    THINKER = "THINKER"
    STRATEGIST = "STRATEGIST"


class AgentConfig(BaseModel):
    """One decision-making agent attached to a run."""

    id: str                                 # e.g., "overseer", "leader_0"
    role: AgentRole
    country_id: Optional[str] = None        # Only leaders govern a country
    personality: str = ""
    memory: List[str] = []


class SimulationAgents(BaseModel):
    """Agent roster for a run, in decision-collection order."""

    simulation_id: str
    agents: List[AgentConfig]

    @property
    def leaders(self) -> List[AgentConfig]:
        return [a for a in self.agents if a.role == AgentRole.LEADER]

    def has_role(self, role: AgentRole) -> bool:
        return any(a.role == role for a in self.agents)

    def for_country(self, country_id: str) -> Optional[AgentConfig]:
        """Leader agent governing a country, if any."""
        return next(
            (a for a in self.leaders if a.country_id == country_id), None
        )


class SimulationRequest(BaseModel):
    """Parameters for creating a run. Omitted countries/agents use the seed world."""

    world_name: Optional[str] = None
    description: Optional[str] = None
    countries: Optional[List[Country]] = None
    agents: Optional[List[AgentConfig]] = None
    with_thinker: bool = True
    with_strategist: bool = True
    tick_interval_minutes: int = Field(ge=1, default=5)
    duration_hours: Optional[float] = Field(gt=0, default=None)
    start: bool = True

