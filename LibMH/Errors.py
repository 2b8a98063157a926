class MCMCError(Exception):
    """Base class for errors raised by LibMH."""


class ConfigurationError(MCMCError, ValueError):
    """
    A sampler, proposal or runner was set up with values it cannot run with.
    Always raised before the first iteration.
    """


class SamplingError(MCMCError):
    """The random source failed and the chain cannot continue."""
