"""
Rule-based oracle — deterministic stand-in for the language-model agents.

Leaders pick actions from an ordered rule list (first match wins) and
resolutions are scored from the relative strength of actor and target.
Used as the default backend and in tests.
"""

from typing import Callable, Dict, List, Optional

from world_kernel.metrics.engine import calculate_stability_index
from world_kernel.models.analysis import (
    OverseerAnalysis,
    StrategistAnalysis,
    ThinkerCommentary,
)
from world_kernel.models.config import AgentConfig
from world_kernel.models.decision import ActionCategory, Decision, Resolution
from world_kernel.models.event import Event
from world_kernel.models.world import Country, WorldState

# specific_action -> (changes on success, changes on failure, tension delta)
# "actor"/"target" are substituted with the real country ids.
_OUTCOMES: Dict[str, tuple] = {
    "declare_war": (
        {"actor": {"power": -5, "stability": -5},
         "target": {"power": -15, "stability": -10, "population": -50000}},
        {"actor": {"power": -10, "stability": -10},
         "target": {"power": -5}},
        -30,
    ),
    "ceasefire": (
        {"actor": {"stability": 5}, "target": {"stability": 5}},
        {"actor": {"stability": -2}},
        20,
    ),
    "form_alliance": (
        {"actor": {"stability": 3}, "target": {"stability": 3}},
        {},
        25,
    ),
    "break_alliance": (
        {"actor": {"stability": -2}},
        {"actor": {"stability": -2}},
        -20,
    ),
    "invest_technology": (
        {"actor": {"technology": 8, "resources": -5}},
        {"actor": {"resources": -5}},
        0,
    ),
    "stabilize": (
        {"actor": {"stability": 8, "power": -2}},
        {"actor": {"stability": 2, "power": -2}},
        0,
    ),
    "reform_policy": (
        {"actor": {"stability": 4, "resources": -2}},
        {"actor": {"stability": -4}},
        0,
    ),
    "sabotage": (
        {"target": {"stability": -8, "resources": -5}},
        {"actor": {"stability": -3}},
        -15,
    ),
    "steal_technology": (
        {"actor": {"technology": 6}, "target": {"technology": -2}},
        {"actor": {"stability": -3}},
        -10,
    ),
    "gather_intel": (
        {},
        {"actor": {"stability": -1}},
        -3,
    ),
}


def _strength(country: Country) -> float:
    return country.power + country.technology / 2 + country.stability / 4


class RuleBasedOracle:
    """
    Rule-based oracle for offline runs.
    Every answer is a pure function of the world state it is shown.
    """

    def __init__(self):
        self._rules: List[Callable] = []
        self._register_default_rules()

    def _register_default_rules(self) -> None:
        """Leader rules, most urgent first."""
        self._rules = [
            self._rule_stabilize_when_fragile,
            self._rule_attack_weaker_rival,
            self._rule_break_hostile_alliance,
            self._rule_invest_when_behind,
            self._rule_steal_from_leader,
            self._rule_seek_alliance,
            self._rule_reform,
        ]

    # --- Decision collection ---

    async def collect_decision(
        self, country: Country, world: WorldState, agent: AgentConfig
    ) -> Decision:
        for rule in self._rules:
            decision = rule(country, world)
            if decision is not None:
                return decision.model_copy(update={"agent_id": agent.id})
        return self._rule_reform(country, world)

    def _rule_stabilize_when_fragile(
        self, country: Country, world: WorldState
    ) -> Optional[Decision]:
        if country.stability >= 30:
            return None
        return Decision(
            actor_id=country.id,
            action=ActionCategory.INTERNAL.value,
            specific_action="stabilize",
            reasoning=f"Stability at {country.stability:.0f} threatens the state",
        )

    def _rule_attack_weaker_rival(
        self, country: Country, world: WorldState
    ) -> Optional[Decision]:
        rivals = [
            c for c in world.countries
            if c.id != country.id
            and country.tensions.get(c.id, 0) <= -50
            and country.power > c.power + 10
        ]
        if not rivals:
            return None
        target = min(rivals, key=lambda c: country.tensions.get(c.id, 0))
        return Decision(
            actor_id=country.id,
            action=ActionCategory.MILITARY.value,
            specific_action="declare_war",
            target=target.id,
            reasoning=f"{target.name} is hostile and weaker",
            risks="Allies of the target may intervene",
        )

    def _rule_break_hostile_alliance(
        self, country: Country, world: WorldState
    ) -> Optional[Decision]:
        for ally_id in country.alliances:
            if country.tensions.get(ally_id, 0) < -40:
                return Decision(
                    actor_id=country.id,
                    action=ActionCategory.DIPLOMACY.value,
                    specific_action="break_alliance",
                    target=ally_id,
                    reasoning="Alliance no longer serves national interest",
                )
        return None

    def _rule_invest_when_behind(
        self, country: Country, world: WorldState
    ) -> Optional[Decision]:
        if country.technology >= 40 or country.resources < 40:
            return None
        return Decision(
            actor_id=country.id,
            action=ActionCategory.INTERNAL.value,
            specific_action="invest_technology",
            reasoning="Technological gap must be closed",
        )

    def _rule_steal_from_leader(
        self, country: Country, world: WorldState
    ) -> Optional[Decision]:
        others = [c for c in world.countries if c.id != country.id]
        if not others:
            return None
        leader = max(others, key=lambda c: c.technology)
        if leader.technology < country.technology + 20 or leader.id in country.alliances:
            return None
        return Decision(
            actor_id=country.id,
            action=ActionCategory.ESPIONAGE.value,
            specific_action="steal_technology",
            target=leader.id,
            reasoning=f"{leader.name} holds technology we lack",
        )

    def _rule_seek_alliance(
        self, country: Country, world: WorldState
    ) -> Optional[Decision]:
        if country.alliances:
            return None
        candidates = [
            c for c in world.countries
            if c.id != country.id and country.tensions.get(c.id, 0) >= 0
        ]
        if not candidates:
            return None
        partner = max(candidates, key=lambda c: country.tensions.get(c.id, 0))
        return Decision(
            actor_id=country.id,
            action=ActionCategory.DIPLOMACY.value,
            specific_action="form_alliance",
            target=partner.id,
            reasoning=f"{partner.name} is a natural partner",
        )

    def _rule_reform(self, country: Country, world: WorldState) -> Decision:
        return Decision(
            actor_id=country.id,
            action=ActionCategory.INTERNAL.value,
            specific_action="reform_policy",
            reasoning="No pressing threats; improve governance",
        )

    # --- Resolution ---

    async def resolve(
        self, decision: Decision, world: WorldState, actor_config: AgentConfig
    ) -> Resolution:
        actor = world.get_country(decision.actor_id)
        target = world.get_country(decision.target) if decision.target else None
        outcome = _OUTCOMES.get(decision.specific_action)

        if actor is None or outcome is None:
            return Resolution(
                success=False,
                success_level="FAILURE",
                description=(
                    f"{decision.actor_id}'s {decision.specific_action} had no effect"
                ),
            )

        if target is not None:
            success = _strength(actor) >= _strength(target) * 0.8
        else:
            success = actor.stability >= 15

        on_success, on_failure, tension = outcome
        template = on_success if success else on_failure
        ids = {"actor": actor.id, "target": target.id if target else None}
        changes = {
            ids[role]: dict(deltas)
            for role, deltas in template.items()
            if ids[role] is not None
        }
        new_tensions = {target.id: tension} if target is not None and tension else {}

        verb = decision.specific_action.replace("_", " ")
        object_name = f" against {target.name}" if target else ""
        return Resolution(
            success=success,
            success_level="SUCCESS" if success else "FAILURE",
            changes=changes,
            new_tensions=new_tensions,
            description=(
                f"{actor.name}'s attempt to {verb}{object_name} "
                f"{'succeeds' if success else 'falters'}"
            ),
        )

    # --- Analysis ---

    async def overseer_analysis(self, world: WorldState) -> OverseerAnalysis:
        metrics = calculate_stability_index(world)
        collapsing = [c.name for c in world.countries if c.collapsing]
        alliances = sum(len(c.alliances) for c in world.countries) // 2

        patterns = []
        if collapsing:
            patterns.append(f"Nations near collapse: {', '.join(collapsing)}")
        if alliances:
            patterns.append(f"{alliances} alliance(s) bind the world together")
        if metrics.get("conflict_level", 0) > 50:
            patterns.append("Hostility is widespread")

        return OverseerAnalysis(
            stability_index=metrics["stability_index"],
            explanation=(
                f"Average stability {metrics.get('avg_stability', 0)}, "
                f"conflict level {metrics.get('conflict_level', 0)}"
            ),
            emerging_patterns=patterns,
            predictions=[],
            hidden_costs="Order is bought with constant internal stabilization",
        )

    async def thinker_commentary(
        self, world: WorldState, recent_events: List[Event]
    ) -> Optional[ThinkerCommentary]:
        if not recent_events:
            return None
        wars = [e for e in recent_events if e.type == "WAR"]
        question = (
            "Can a peace enforced by force ever be called peace?"
            if wars
            else "Is a quiet year a sign of harmony or of exhaustion?"
        )
        return ThinkerCommentary(
            philosophical_question=question,
            observations=[e.description for e in recent_events[:3]],
        )

    async def strategist_analysis(
        self, world: WorldState, active_conflicts: List[dict]
    ) -> StrategistAnalysis:
        if not active_conflicts:
            return StrategistAnalysis(assessment="No active conflicts")
        outlook = [
            f"{c['attacker']} vs {c['defender']} since year {c['start_year']}"
            for c in active_conflicts
        ]
        return StrategistAnalysis(
            assessment=f"{len(active_conflicts)} active conflict(s)",
            conflict_outlook=outlook,
        )
