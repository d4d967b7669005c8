"""Default world used when a run is created without its own countries."""

from typing import List, Optional

from world_kernel.models.config import AgentConfig, AgentRole, SimulationAgents
from world_kernel.models.world import Country, WorldState

WORLD_NAME = "Terra Novus"
WORLD_DESCRIPTION = (
    "A continent of five nations with competing ideologies, "
    "bound together by trade and divided by history."
)


def default_countries() -> List[Country]:
    return [
        Country(
            id="aurelia",
            name="Aurelian Republic",
            ideology="Liberal Democracy",
            description="Wealthy maritime republic ruled by an elected senate",
            power=60, stability=70, technology=65, resources=55,
            population=12_000_000,
            tensions={"drakmor": -30, "sylvara": 20, "kesh": 0, "orinth": 10},
        ),
        Country(
            id="drakmor",
            name="Drakmor Dominion",
            ideology="Military Autocracy",
            description="Highland empire built on conscription and iron",
            power=75, stability=55, technology=45, resources=60,
            population=18_000_000,
            tensions={"aurelia": -30, "sylvara": -20, "kesh": 15, "orinth": -10},
        ),
        Country(
            id="sylvara",
            name="Sylvaran Commune",
            ideology="Agrarian Collectivism",
            description="Forest federation of self-governing communes",
            power=35, stability=65, technology=40, resources=75,
            population=9_000_000,
            tensions={"aurelia": 20, "drakmor": -20, "kesh": 5, "orinth": 0},
        ),
        Country(
            id="kesh",
            name="Keshite Theocracy",
            ideology="Theocracy",
            description="Desert realm governed by a council of priests",
            power=50, stability=60, technology=35, resources=45,
            population=14_000_000,
            tensions={"aurelia": 0, "drakmor": 15, "sylvara": 5, "orinth": -25},
        ),
        Country(
            id="orinth",
            name="Orinth Technocracy",
            ideology="Technocracy",
            description="Island state run by engineers and scientists",
            power=45, stability=50, technology=80, resources=30,
            population=6_000_000,
            tensions={"aurelia": 10, "drakmor": -10, "sylvara": 0, "kesh": -25},
        ),
    ]


def default_world(simulation_id: str, countries: Optional[List[Country]] = None) -> WorldState:
    """A fresh run at tick 0, year 0."""
    return WorldState(
        simulation_id=simulation_id,
        world_name=WORLD_NAME,
        description=WORLD_DESCRIPTION,
        countries=countries if countries is not None else default_countries(),
    )


def default_agents(
    simulation_id: str,
    countries: List[Country],
    with_thinker: bool = True,
    with_strategist: bool = True,
) -> SimulationAgents:
    """Overseer, one leader per country in order, then the optional observers."""
    agents = [
        AgentConfig(id="overseer", role=AgentRole.OVERSEER, personality="Neutral observer"),
    ]
    for idx, country in enumerate(countries):
        agents.append(AgentConfig(
            id=f"leader_{idx}",
            role=AgentRole.LEADER,
            country_id=country.id,
            personality=f"Leader of {country.name}",
        ))
    if with_thinker:
        agents.append(AgentConfig(
            id="thinker", role=AgentRole.THINKER, personality="Philosophical observer"
        ))
    if with_strategist:
        agents.append(AgentConfig(
            id="strategist", role=AgentRole.STRATEGIST, personality="Military analyst"
        ))
    return SimulationAgents(simulation_id=simulation_id, agents=agents)
