"""
World State Mutator — pure transforms over a WorldState value.

Applied by: Tick Orchestrator + Action Resolver
Persisted by: the caller

Every transform deep-copies the state it is given and returns the new value.
The input is never modified.
"""

import logging
import warnings
from typing import Dict, List, Optional

from world_kernel.errors import DataIntegrityWarning, InvalidTransitionError
from world_kernel.models.event import Event
from world_kernel.models.world import (
    BOUNDED_STATS,
    STATUS_TRANSITIONS,
    Country,
    SimulationStatus,
    WorldState,
)

logger = logging.getLogger(__name__)

MAX_GLOBAL_EVENTS = 100
MAX_COUNTRY_HISTORY = 10
RECIPROCAL_TENSION_FACTOR = 0.7

COLLAPSE_STABILITY = 20
COLLAPSE_POWER = 30
HARD_COLLAPSE_STABILITY = 5
HARD_COLLAPSE_POWER_CEILING = 20
SURVIVAL_STABILITY = 20


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    """Clamp a value into [low, high]."""
    return max(low, min(high, value))


class AllianceAction:
    FORM = "FORM"
    BREAK = "BREAK"


class WorldStateMutator:
    """
    Stateless set of state transforms. Holds no reference to any world;
    each call works on the value passed in.
    """

    def apply_changes(
        self, state: WorldState, changes: Dict[str, Dict[str, float]]
    ) -> WorldState:
        """Apply per-country stat deltas with clamping and collapse rules."""
        new_state = state.model_copy(deep=True)

        for country_id, deltas in changes.items():
            country = new_state.get_country(country_id)
            if country is None:
                warnings.warn(
                    f"Country {country_id} not found when applying changes",
                    DataIntegrityWarning,
                    stacklevel=2,
                )
                continue

            for stat in BOUNDED_STATS:
                if stat in deltas:
                    setattr(country, stat, clamp(getattr(country, stat) + deltas[stat]))
            if "population" in deltas:
                country.population = max(0, country.population + deltas["population"])

            # Absolute collapse caps power; it never raises it
            if country.stability < HARD_COLLAPSE_STABILITY:
                if country.power > HARD_COLLAPSE_POWER_CEILING:
                    logger.info("%s has completely collapsed", country.name)
                    self._append_history(
                        country, f"Year {new_state.year}: completely collapsed"
                    )
                country.power = min(country.power, HARD_COLLAPSE_POWER_CEILING)

            was_collapsing = country.collapsing
            country.collapsing = (
                country.stability < COLLAPSE_STABILITY
                and country.power < COLLAPSE_POWER
            )
            if country.collapsing and not was_collapsing:
                logger.warning("%s is on the brink of collapse", country.name)
                self._append_history(
                    country, f"Year {new_state.year}: on the brink of collapse"
                )

        return new_state

    def apply_tension_changes(
        self, state: WorldState, tension_changes: Dict[str, Dict[str, float]]
    ) -> WorldState:
        """
        Adjust actor->target tension by delta and target->actor by 70% of it.
        Both sides are clamped to [-100, 100].
        """
        new_state = state.model_copy(deep=True)

        for actor_id, tensions in tension_changes.items():
            actor = new_state.get_country(actor_id)
            if actor is None:
                warnings.warn(
                    f"Actor {actor_id} not found when applying tensions",
                    DataIntegrityWarning,
                    stacklevel=2,
                )
                continue

            for target_id, delta in tensions.items():
                current = actor.tensions.get(target_id, 0)
                actor.tensions[target_id] = clamp(current + delta, -100, 100)

                target = new_state.get_country(target_id)
                if target is not None:
                    reciprocal = target.tensions.get(actor_id, 0)
                    target.tensions[actor_id] = clamp(
                        reciprocal + delta * RECIPROCAL_TENSION_FACTOR, -100, 100
                    )

        return new_state

    def add_event(self, state: WorldState, event: Event) -> WorldState:
        """Append an event stamped with the current tick/year; keep the last 100."""
        new_state = state.model_copy(deep=True)
        stamped = event.model_copy(update={"tick": state.tick, "year": state.year})
        new_state.global_events.append(stamped)
        new_state.global_events = new_state.global_events[-MAX_GLOBAL_EVENTS:]
        return new_state

    def add_country_history(
        self, state: WorldState, country_id: str, entry: str
    ) -> WorldState:
        """Append a narrative line to a country's history; keep the last 10."""
        new_state = state.model_copy(deep=True)
        country = new_state.get_country(country_id)
        if country is None:
            warnings.warn(
                f"Country {country_id} not found when adding history",
                DataIntegrityWarning,
                stacklevel=2,
            )
            return new_state
        self._append_history(country, entry)
        return new_state

    def update_alliances(
        self, state: WorldState, country1_id: str, country2_id: str, action: str
    ) -> WorldState:
        """Form or break a symmetric alliance. Both directions are idempotent."""
        new_state = state.model_copy(deep=True)
        country1 = new_state.get_country(country1_id)
        country2 = new_state.get_country(country2_id)

        if country1 is None or country2 is None or country1.id == country2.id:
            return new_state

        if action == AllianceAction.FORM:
            if country2.id not in country1.alliances:
                country1.alliances.append(country2.id)
            if country1.id not in country2.alliances:
                country2.alliances.append(country1.id)
            logger.info("Alliance formed: %s <-> %s", country1.name, country2.name)
        elif action == AllianceAction.BREAK:
            country1.alliances = [a for a in country1.alliances if a != country2.id]
            country2.alliances = [a for a in country2.alliances if a != country1.id]
            logger.info("Alliance broken: %s x %s", country1.name, country2.name)
        else:
            raise ValueError(f"Unknown alliance action: {action}")

        return new_state

    def transition_status(
        self,
        state: WorldState,
        new_status: SimulationStatus,
        error: Optional[str] = None,
    ) -> WorldState:
        """Move the run to a new status along an allowed edge."""
        if new_status not in STATUS_TRANSITIONS[state.status]:
            raise InvalidTransitionError(
                f"Cannot move simulation {state.simulation_id} "
                f"from {state.status.value} to {new_status.value}"
            )
        return state.model_copy(
            deep=True, update={"status": new_status, "error": error}
        )

    def _append_history(self, country: Country, entry: str) -> None:
        country.history.append(entry)
        country.history = country.history[-MAX_COUNTRY_HISTORY:]


# --- Queries ---

def find_country(state: WorldState, name_or_id: str) -> Optional[Country]:
    """Find a country by id or case-insensitive name."""
    key = name_or_id.lower()
    return next(
        (c for c in state.countries if c.id.lower() == key or c.name.lower() == key),
        None,
    )


def surviving_countries(state: WorldState) -> List[Country]:
    """Countries whose stability is above the survival line."""
    return [c for c in state.countries if c.stability > SURVIVAL_STABILITY]


def dominant_power(countries: List[Country]) -> Optional[Country]:
    """Most powerful country; the first one encountered wins ties."""
    dominant = None
    for country in countries:
        if dominant is None or country.power > dominant.power:
            dominant = country
    return dominant


def average_stat(state: WorldState, stat: str) -> float:
    """Mean of a numeric country attribute, 0 for an empty world."""
    if not state.countries:
        return 0.0
    return sum(getattr(c, stat) for c in state.countries) / len(state.countries)
