class SimulationError(Exception):
    """Base class for everything the engine raises on purpose."""


class InvalidRequestError(SimulationError, ValueError):
    """A request field is out of range; raised before any run starts."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class ConfigurationError(SimulationError):
    """The fixed market configuration cannot be used (e.g. non-PSD correlation)."""


class SimulationCancelled(SimulationError):
    """A batch was abandoned because a newer request superseded it."""
