"""
Metrics Engine — objective world metrics, termination rules and
environmental events.

All functions are pure with respect to the world state: they read it and
return new values. Randomness comes from the `random.Random` passed in.
"""

import random
from typing import Dict, List, Optional

from world_kernel.models.analysis import TerminationReason, TerminationResult
from world_kernel.models.event import Event
from world_kernel.models.world import Country, WorldState
from world_kernel.world_model.mutator import clamp

RANDOM_EVENT_PROBABILITY = 0.10
PERFECT_ORDER_WINDOW = 20
PERFECT_ORDER_THRESHOLD = 95
TICK_SUMMARY = "TICK_SUMMARY"


def calculate_stability_index(state: WorldState) -> dict:
    """
    Composite 0-100 score of world order.

    stabilityIndex = 0.4 * avg stability
                   + 0.3 * survival rate
                   + 0.2 * (100 - conflict level)
                   + 0.1 * (100 - normalized power variance)
    """
    countries = state.countries

    if not countries:
        return {
            "stability_index": 0,
            "explanation": "No countries exist",
            "ideological_diversity": 0,
            "conflict_level": 0,
            "survival_rate": 0,
            "avg_stability": 0,
            "power_imbalance": 0,
        }

    count = len(countries)
    avg_stability = sum(c.stability for c in countries) / count

    avg_power = sum(c.power for c in countries) / count
    power_variance = sum((c.power - avg_power) ** 2 for c in countries) / count
    normalized_power_variance = min(100, power_variance / 400 * 100)

    # Only hostile (negative) tensions count toward conflict
    hostile = [
        abs(t) for c in countries for t in c.tensions.values() if t < 0
    ]
    avg_tension = sum(hostile) / len(hostile) if hostile else 0
    conflict_level = clamp(avg_tension, 0, 100)

    ideological_diversity = len({c.ideology for c in countries}) / count * 100
    survival_rate = len([c for c in countries if c.stability > 20]) / count * 100

    stability_index = clamp(
        avg_stability * 0.4
        + survival_rate * 0.3
        + (100 - conflict_level) * 0.2
        + (100 - normalized_power_variance) * 0.1,
        0,
        100,
    )

    return {
        "stability_index": round(stability_index),
        "ideological_diversity": round(ideological_diversity),
        "conflict_level": round(conflict_level),
        "survival_rate": round(survival_rate),
        "avg_stability": round(avg_stability),
        "power_imbalance": round(normalized_power_variance),
    }


def should_terminate(
    state: WorldState,
    max_years: int = 1000,
    tick_summaries: Optional[List[Event]] = None,
) -> TerminationResult:
    """
    Evaluate the end conditions in priority order; the first match wins.

    `tick_summaries` is the persisted TICK_SUMMARY log, oldest first. When
    omitted, summaries are read from the state's global event log.
    """
    if state.year >= max_years:
        return TerminationResult(
            terminate=True,
            reason=TerminationReason.TIME_LIMIT,
            message=f"Reached {max_years} year limit",
        )

    powerful = [c for c in state.countries if c.power > 50 and c.stability > 30]
    if len(powerful) == 1 and len(state.countries) > 1:
        return TerminationResult(
            terminate=True,
            reason=TerminationReason.HEGEMONY,
            message=f"{powerful[0].name} has achieved global hegemony",
        )

    if not any(c.stability > 20 for c in state.countries):
        return TerminationResult(
            terminate=True,
            reason=TerminationReason.TOTAL_COLLAPSE,
            message="All nations have collapsed into chaos",
        )

    if tick_summaries is None:
        tick_summaries = [e for e in state.global_events if e.type == TICK_SUMMARY]
    recent = [e.stability_index or 0 for e in tick_summaries[-PERFECT_ORDER_WINDOW:]]
    if len(recent) >= PERFECT_ORDER_WINDOW and all(
        s >= PERFECT_ORDER_THRESHOLD for s in recent
    ):
        return TerminationResult(
            terminate=True,
            reason=TerminationReason.PERFECT_ORDER,
            message="Perfect stability achieved and maintained - but at what cost?",
        )

    return TerminationResult(terminate=False)


# --- Environmental events ---

def _natural_disaster(victim: Country) -> Event:
    return Event(
        type="NATURAL_DISASTER",
        actors=[victim.id],
        description=(
            f"A catastrophic natural disaster strikes {victim.name}, "
            f"devastating infrastructure and economy"
        ),
        impact={victim.id: {"stability": -15, "resources": -20, "power": -10}},
    )


def _technological_breakthrough(beneficiary: Country) -> Event:
    return Event(
        type="INNOVATION",
        actors=[beneficiary.id],
        description=(
            f"Scientists in {beneficiary.name} achieve a major technological "
            f"breakthrough, advancing their capabilities"
        ),
        impact={beneficiary.id: {"technology": 15, "power": 10}},
    )


def _popular_uprising(victim: Country) -> Event:
    return Event(
        type="REBELLION",
        actors=[victim.id],
        description=(
            f"Popular uprising in {victim.name}! Citizens demand change "
            f"and challenge government authority"
        ),
        impact={victim.id: {"stability": -25, "power": -15}},
    )


def _resource_discovery(lucky: Country) -> Event:
    return Event(
        type="RESOURCE_DISCOVERY",
        actors=[lucky.id],
        description=(
            f"Major resource deposits discovered in {lucky.name}, "
            f"boosting their economic potential"
        ),
        impact={lucky.id: {"resources": 20, "power": 5}},
    )


# event class -> (candidate filter, builder)
_EVENT_CLASSES: Dict[str, tuple] = {
    "NATURAL_DISASTER": (lambda c: True, _natural_disaster),
    "TECHNOLOGICAL_BREAKTHROUGH": (lambda c: True, _technological_breakthrough),
    "POPULAR_UPRISING": (lambda c: c.stability < 60, _popular_uprising),
    "RESOURCE_DISCOVERY": (lambda c: True, _resource_discovery),
}


def generate_random_event(
    state: WorldState,
    tick: int,
    rng: Optional[random.Random] = None,
    probability: float = RANDOM_EVENT_PROBABILITY,
) -> Optional[Event]:
    """
    With the given probability, pick one of four environmental event classes
    uniformly and apply it to a uniformly chosen eligible country.
    """
    rng = rng or random.Random()

    if rng.random() >= probability:
        return None

    event_class = rng.choice(list(_EVENT_CLASSES))
    eligible, build = _EVENT_CLASSES[event_class]

    candidates = [c for c in state.countries if eligible(c)]
    if not candidates:
        return None

    event = build(rng.choice(candidates))
    event.tick = tick
    event.year = state.year
    return event
