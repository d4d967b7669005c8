"""World Kernel data models."""

from world_kernel.models.analysis import (
    OverseerAnalysis,
    StrategistAnalysis,
    TerminationReason,
    TerminationResult,
    ThinkerCommentary,
    WorldMetrics,
)
from world_kernel.models.config import (
    AgentConfig,
    AgentRole,
    EngineConfig,
    SimulationAgents,
    SimulationRequest,
)
from world_kernel.models.decision import ActionCategory, Decision, Resolution
from world_kernel.models.event import Event
from world_kernel.models.world import (
    BOUNDED_STATS,
    STATUS_TRANSITIONS,
    Country,
    SimulationStatus,
    WorldState,
)

__all__ = [
    "ActionCategory",
    "AgentConfig",
    "AgentRole",
    "BOUNDED_STATS",
    "Country",
    "Decision",
    "EngineConfig",
    "Event",
    "OverseerAnalysis",
    "Resolution",
    "STATUS_TRANSITIONS",
    "SimulationAgents",
    "SimulationRequest",
    "SimulationStatus",
    "StrategistAnalysis",
    "TerminationReason",
    "TerminationResult",
    "ThinkerCommentary",
    "WorldMetrics",
    "WorldState",
]
