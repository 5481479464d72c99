# errors.py
# Exception types raised by the navigation engine.


class NavigationError(Exception):
    """Base class for all navigation engine errors."""


class SensorDataInvalid(NavigationError):
    """A fix is missing or carries garbage values; it is ignored."""


class RouteMalformed(NavigationError):
    """A route cannot be navigated (empty, zero length or non-contiguous steps)."""


class RouteUnavailable(NavigationError):
    """The route provider could not produce an initial route."""


class RecalculationFailed(NavigationError):
    """Re-routing kept failing after the configured number of attempts."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts
