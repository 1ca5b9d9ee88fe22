class MonitorError(Exception):
    """Base class for link monitor failures."""


class TransportError(MonitorError):
    """The backend could not be reached or answered with an HTTP error."""


class MalformedDataError(MonitorError):
    """The backend answered, but the payload is missing its expected shape."""
