"""Shared fixtures: a scripted oracle whose answers each test can override."""

import asyncio

import pytest

from world_kernel.models.analysis import (
    OverseerAnalysis,
    StrategistAnalysis,
    ThinkerCommentary,
)
from world_kernel.models.decision import Decision, Resolution


class ScriptedOracle:
    """
    Oracle with canned answers.

    decisions:   country_id -> Decision | dict | Exception
    resolutions: specific_action -> Resolution | dict | Exception
    Every call is recorded in `calls` as (capability, key).
    """

    def __init__(self):
        self.decisions = {}
        self.resolutions = {}
        self.overseer = OverseerAnalysis(stability_index=70, explanation="Scripted overseer")
        self.thinker = ThinkerCommentary(philosophical_question="Is order worth its price?")
        self.strategist = StrategistAnalysis(assessment="Quiet borders")
        self.calls = []
        self.gate = None
        self.waiting = None

    @staticmethod
    def _answer(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def collect_decision(self, country, world, agent):
        self.calls.append(("decision", country.id))
        if self.gate is not None:
            self.waiting.set()
            await self.gate.wait()
        default = Decision(
            actor_id=country.id, action="INTERNAL", specific_action="reform_policy"
        )
        return self._answer(self.decisions.get(country.id, default))

    async def resolve(self, decision, world, actor_config):
        self.calls.append(("resolve", decision.actor_id))
        default = Resolution(
            success=True,
            description=f"{decision.actor_id} carries out {decision.specific_action}",
        )
        return self._answer(self.resolutions.get(decision.specific_action, default))

    async def overseer_analysis(self, world):
        self.calls.append(("overseer", None))
        return self._answer(self.overseer)

    async def thinker_commentary(self, world, recent_events):
        self.calls.append(("thinker", None))
        return self._answer(self.thinker)

    async def strategist_analysis(self, world, active_conflicts):
        self.calls.append(("strategist", len(active_conflicts)))
        return self._answer(self.strategist)

    def hold_decisions(self):
        """Block decisions until `gate` is set. Call from inside the running loop."""
        self.gate = asyncio.Event()
        self.waiting = asyncio.Event()
        return self.gate

    def called(self, capability):
        return [key for cap, key in self.calls if cap == capability]


@pytest.fixture
def oracle():
    return ScriptedOracle()
