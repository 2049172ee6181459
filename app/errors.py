"""Error taxonomy for the generation service.

Each error maps onto exactly one HTTP status at the API boundary
(see ``app.api.errors``). Errors raised inside a background generation
never reach a client directly; they end up as a ``failed`` job record.
"""


class RestyleError(Exception):
    """Base class for all service errors."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class AdmissionDenied(RestyleError):
    """Caller exceeded the rate limit for the current window."""

    status_code = 429

    def __init__(self, limit: int, remaining: int, message: str = ""):
        super().__init__(
            message or "Too many uploads in 1 day. Please try again in 24 hours."
        )
        self.limit = limit
        self.remaining = remaining


class ValidationError(RestyleError):
    """Malformed submission body or missing query parameter."""

    status_code = 400


class NotFound(RestyleError):
    """No job record exists under the requested id."""

    status_code = 404


class UpstreamFailure(RestyleError):
    """Start or poll call failed, returned garbage, or never finished."""

    status_code = 502


class InternalError(RestyleError):
    """Store unavailable or an unexpected exception."""

    status_code = 500


class InvalidTransition(RestyleError):
    """A write tried to move a job out of a terminal status."""

    status_code = 500
