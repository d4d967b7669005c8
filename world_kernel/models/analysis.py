"""Oracle analyses and the blended world metrics snapshot."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class OverseerAnalysis(BaseModel):
    """Subjective read of the world from the overseer agent."""

    stability_index: int = Field(ge=0, le=100, default=50)
    explanation: str = ""
    emerging_patterns: List[str] = []
    predictions: List[str] = []
    hidden_costs: str = "Unknown"


class ThinkerCommentary(BaseModel):
    """Philosophical commentary on the latest events."""

    philosophical_question: str
    moral_analysis: Optional[str] = None
    observations: List[str] = []


class StrategistAnalysis(BaseModel):
    """Military analysis of active conflicts."""

    assessment: str
    conflict_outlook: List[str] = []
    recommendations: List[str] = []


class WorldMetrics(BaseModel):
    """Metrics snapshot stored on the world state after each tick."""

    stability_index: int = 50
    explanation: str = "Initial state"
    emerging_patterns: List[str] = []
    predictions: List[str] = []
    hidden_costs: str = "Unknown"
    ideological_diversity: int = 100
    conflict_level: int = 0
    survival_rate: int = 100
    avg_stability: int = 0
    power_imbalance: int = 0


class TerminationReason(str, Enum):
    TIME_LIMIT = "TIME_LIMIT"
    HEGEMONY = "HEGEMONY"
    TOTAL_COLLAPSE = "TOTAL_COLLAPSE"
    PERFECT_ORDER = "PERFECT_ORDER"
    DURATION_LIMIT = "DURATION_LIMIT"


class TerminationResult(BaseModel):
    """Outcome of a termination check."""

    terminate: bool
    reason: Optional[TerminationReason] = None
    message: str = ""
