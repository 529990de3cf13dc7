"""Exception hierarchy for dryroom."""


class DryroomError(Exception):
    """Base exception for dryroom."""

    pass


class ConfigurationError(DryroomError):
    """A required deployment setting is missing or invalid."""

    pass


class SensorReadError(DryroomError):
    """The sensor returned no usable reading."""

    pass


class DeliveryError(DryroomError):
    """An outbound report could not be handed to the remote channel."""

    pass
