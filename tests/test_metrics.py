"""Tests for the Metrics Engine."""

from world_kernel.metrics.engine import (
    TICK_SUMMARY,
    calculate_stability_index,
    generate_random_event,
    should_terminate,
)
from world_kernel.models.analysis import TerminationReason
from world_kernel.models.event import Event
from world_kernel.models.world import Country, WorldState


def _make_country(country_id: str, **stats) -> Country:
    return Country(
        id=country_id,
        name=country_id.title(),
        ideology=stats.pop("ideology", "Democracy"),
        **stats,
    )


def _make_world(*countries: Country, **fields) -> WorldState:
    return WorldState(simulation_id="sim_test", countries=list(countries), **fields)


def _summaries(*indices: int) -> list:
    return [
        Event(tick=i, type=TICK_SUMMARY, stability_index=s)
        for i, s in enumerate(indices)
    ]


class _FixedRng:
    """random.Random stand-in: fixed random() value, scripted choice() indices."""

    def __init__(self, value: float, picks=(0, 0)):
        self.value = value
        self.picks = list(picks)

    def random(self) -> float:
        return self.value

    def choice(self, seq):
        return seq[self.picks.pop(0)]


class TestStabilityIndex:
    def test_empty_world(self):
        metrics = calculate_stability_index(_make_world())
        assert metrics["stability_index"] == 0
        assert metrics["explanation"] == "No countries exist"
        assert metrics["survival_rate"] == 0
        assert metrics["ideological_diversity"] == 0

    def test_balanced_peaceful_world(self):
        world = _make_world(
            _make_country("a", power=50, stability=50),
            _make_country("b", power=50, stability=50),
        )
        metrics = calculate_stability_index(world)
        # 0.4*50 + 0.3*100 + 0.2*100 + 0.1*100
        assert metrics["stability_index"] == 80
        assert metrics["ideological_diversity"] == 50
        assert metrics["conflict_level"] == 0
        assert metrics["power_imbalance"] == 0
        assert "explanation" not in metrics

    def test_only_hostile_tensions_count(self):
        world = _make_world(
            _make_country("a", tensions={"b": -60, "c": 40}),
            _make_country("b", tensions={"a": -20}),
            _make_country("c"),
        )
        assert calculate_stability_index(world)["conflict_level"] == 40

    def test_survival_rate(self):
        world = _make_world(
            _make_country("a", stability=80),
            _make_country("b", stability=10),
        )
        assert calculate_stability_index(world)["survival_rate"] == 50

    def test_power_variance_is_capped(self):
        world = _make_world(
            _make_country("a", power=100),
            _make_country("b", power=0),
        )
        assert calculate_stability_index(world)["power_imbalance"] == 100


class TestShouldTerminate:
    def test_running_world_continues(self):
        world = _make_world(
            _make_country("a", power=60, stability=60),
            _make_country("b", power=60, stability=60),
        )
        result = should_terminate(world)
        assert result.terminate is False
        assert result.reason is None

    def test_time_limit(self):
        world = _make_world(_make_country("a"), _make_country("b"), year=1000)
        result = should_terminate(world)
        assert result.terminate
        assert result.reason == TerminationReason.TIME_LIMIT

    def test_hegemony(self):
        world = _make_world(
            _make_country("a", power=80, stability=90),
            _make_country("b", power=40, stability=50),
            _make_country("c", power=40, stability=50),
        )
        result = should_terminate(world)
        assert result.reason == TerminationReason.HEGEMONY
        assert "A" in result.message

    def test_single_country_is_not_hegemony(self):
        world = _make_world(_make_country("a", power=80, stability=90))
        assert should_terminate(world).terminate is False

    def test_total_collapse(self):
        world = _make_world(
            _make_country("a", power=10, stability=10),
            _make_country("b", power=10, stability=10),
        )
        result = should_terminate(world)
        assert result.reason == TerminationReason.TOTAL_COLLAPSE

    def test_time_limit_takes_priority(self):
        world = _make_world(
            _make_country("a", power=80, stability=90),
            _make_country("b", power=40, stability=50),
            year=1000,
        )
        assert should_terminate(world).reason == TerminationReason.TIME_LIMIT

    def test_custom_year_limit(self):
        world = _make_world(_make_country("a"), _make_country("b"), year=5)
        assert should_terminate(world, max_years=5).reason == TerminationReason.TIME_LIMIT

    def test_perfect_order(self):
        world = _make_world(
            _make_country("a", power=60, stability=90),
            _make_country("b", power=60, stability=90),
        )
        result = should_terminate(world, tick_summaries=_summaries(*[96] * 20))
        assert result.reason == TerminationReason.PERFECT_ORDER

    def test_perfect_order_needs_full_window(self):
        world = _make_world(
            _make_country("a", power=60, stability=90),
            _make_country("b", power=60, stability=90),
        )
        assert should_terminate(world, tick_summaries=_summaries(*[99] * 19)).terminate is False

    def test_perfect_order_uses_latest_window(self):
        world = _make_world(
            _make_country("a", power=60, stability=90),
            _make_country("b", power=60, stability=90),
        )
        old_dip = _summaries(*([50] + [95] * 20))
        assert should_terminate(world, tick_summaries=old_dip).terminate is True
        recent_dip = _summaries(*([95] * 19 + [94]))
        assert should_terminate(world, tick_summaries=recent_dip).terminate is False

    def test_perfect_order_from_global_events(self):
        world = _make_world(
            _make_country("a", power=60, stability=90),
            _make_country("b", power=60, stability=90),
            global_events=_summaries(*[97] * 20),
        )
        assert should_terminate(world).reason == TerminationReason.PERFECT_ORDER


class TestRandomEvents:
    def setup_method(self):
        self.world = _make_world(
            _make_country("a", stability=70),
            _make_country("b", stability=40),
        )

    def test_no_event_above_probability(self):
        assert generate_random_event(self.world, 3, _FixedRng(0.5)) is None

    def test_probability_zero_never_fires(self):
        assert generate_random_event(self.world, 3, _FixedRng(0.0), probability=0.0) is None

    def test_natural_disaster(self):
        event = generate_random_event(self.world, 3, _FixedRng(0.05, picks=(0, 1)))
        assert event.type == "NATURAL_DISASTER"
        assert event.actors == ["b"]
        assert event.impact == {"b": {"stability": -15, "resources": -20, "power": -10}}
        assert event.tick == 3

    def test_breakthrough(self):
        event = generate_random_event(self.world, 0, _FixedRng(0.05, picks=(1, 0)))
        assert event.type == "INNOVATION"
        assert event.impact == {"a": {"technology": 15, "power": 10}}

    def test_uprising_only_hits_unstable_countries(self):
        # "a" is stable, so the only candidate is "b"
        event = generate_random_event(self.world, 0, _FixedRng(0.05, picks=(2, 0)))
        assert event.type == "REBELLION"
        assert event.actors == ["b"]
        assert event.impact == {"b": {"stability": -25, "power": -15}}

    def test_uprising_without_candidates(self):
        world = _make_world(_make_country("a", stability=60), _make_country("b", stability=90))
        assert generate_random_event(world, 0, _FixedRng(0.05, picks=(2,))) is None

    def test_resource_discovery(self):
        event = generate_random_event(self.world, 0, _FixedRng(0.05, picks=(3, 0)))
        assert event.type == "RESOURCE_DISCOVERY"
        assert event.impact == {"a": {"resources": 20, "power": 5}}
