"""Exception types raised by pledge."""


class PledgeError(Exception):
    """Base class for pledge errors."""
    pass


class ChannelError(PledgeError):
    """The channel could not send a payload."""
    pass


class ConfigError(PledgeError, ValueError):
    """Invalid configuration value."""
    pass
