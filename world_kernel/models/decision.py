"""Decision and Resolution — what a faction wants, and what actually happened."""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel


class ActionCategory(str, Enum):
    MILITARY = "MILITARY"
    DIPLOMACY = "DIPLOMACY"
    ESPIONAGE = "ESPIONAGE"
    INTERNAL = "INTERNAL"


class Decision(BaseModel):
    """A faction's chosen action for one tick."""

    actor_id: str                           # Country acting
    agent_id: Optional[str] = None          # Leader agent that decided
    action: str                             # Coarse category, see ActionCategory
    specific_action: str                    # e.g., "declare_war", "stabilize"
    target: Optional[str] = None            # Country id or None
    details: Optional[str] = None
    reasoning: Optional[str] = None
    expected_outcome: Optional[str] = None
    risks: Optional[str] = None


class Resolution(BaseModel):
    """The oracle's ruling on a single Decision."""

    success: bool
    success_level: Optional[str] = None     # e.g., "PARTIAL", "FAILURE"
    changes: Dict[str, Dict[str, float]] = {}   # country_id -> stat -> delta
    new_tensions: Dict[str, float] = {}         # target_id -> delta for the actor
    description: str = ""
    unintended_consequences: Optional[str] = None
