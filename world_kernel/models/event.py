"""Event — one entry of the global event log."""

from typing import Dict, List, Optional

from pydantic import BaseModel


class Event(BaseModel):
    """Something that happened in the world during a tick."""

    tick: int = 0
    year: int = 0
    type: str                               # e.g., "WAR", "REBELLION", "TICK_SUMMARY"
    actors: List[str] = []                  # Involved country ids, actor first
    description: str = ""
    impact: Dict[str, Dict[str, float]] = {}  # country_id -> stat -> delta
    unintended_consequences: Optional[str] = None
    success: Optional[bool] = None
    success_level: Optional[str] = None

    # Log-only fields, used by TICK_SUMMARY / SIMULATION_* entries
    stability_index: Optional[int] = None
    insights: dict = {}
