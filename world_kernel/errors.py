"""Error taxonomy for the World Kernel."""


class WorldKernelError(Exception):
    """Base for all kernel errors."""
    pass


class ConfigurationError(WorldKernelError):
    """Missing or invalid run / faction configuration. Fatal to run creation."""
    pass


class SimulationNotFound(WorldKernelError):
    """No persisted run exists for the given id."""

    def __init__(self, simulation_id: str):
        self.simulation_id = simulation_id
        super().__init__(f"No world state found for simulation {simulation_id}")


class InvalidTransitionError(WorldKernelError):
    """A status change outside the allowed edges was requested."""
    pass


class OracleFailure(WorldKernelError):
    """The decision/analysis capability failed or returned unusable output."""

    def __init__(self, capability: str, message: str):
        self.capability = capability
        super().__init__(f"{capability}: {message}")


class ResolutionFailure(OracleFailure):
    """The resolution capability failed for one decision."""

    def __init__(self, actor_id: str, message: str):
        self.actor_id = actor_id
        super().__init__("resolution", f"{actor_id}: {message}")


class TickFailure(WorldKernelError):
    """Unexpected error while executing a tick. The run is marked FAILED."""

    def __init__(self, simulation_id: str, tick: int, message: str):
        self.simulation_id = simulation_id
        self.tick = tick
        super().__init__(
            f"Tick {tick} of simulation {simulation_id} failed: {message}"
        )


class DataIntegrityWarning(UserWarning):
    """A referenced country or actor is absent from state. The operation is skipped."""
    pass
