"""Error taxonomy shared by the experiment manager, the bandit and the agent."""


class EngineError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(EngineError):
    """A malformed experiment, variant, reward or task definition."""


class NotFoundError(EngineError):
    """An operation referenced an unknown experiment, variant or arm."""


class PersistenceError(EngineError):
    """A required store or cache call failed."""


class AgentInactiveError(EngineError):
    """A task was submitted to an optimization agent that is not started."""
