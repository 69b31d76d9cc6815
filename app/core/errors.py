"""
Error taxonomy.

Services raise these; the handlers registered in app.main turn them into
the standard {"success": false, "message": ...} envelope with the status
code carried by the class.
"""


class PlacementError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PlacementError):
    """Missing or malformed input."""
    status_code = 400


class AuthenticationError(PlacementError):
    """Missing, invalid or expired token."""
    status_code = 401


class AuthorizationError(PlacementError):
    """Authenticated, but the role or ownership does not allow the action."""
    status_code = 403


class NotFoundError(PlacementError):
    status_code = 404


class StateConflictError(PlacementError):
    """Invalid transition: re-reviewing a job, duplicate application, ..."""
    status_code = 409
