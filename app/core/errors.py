"""
Error taxonomy for the access-control core.

Services raise these; `app.main` turns them into JSON responses.
"""


class AccessControlError(Exception):
    """Base class for caller-visible failures."""
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AccessControlError):
    """Missing or malformed identifiers and inputs."""
    status_code = 400


class NotFoundError(AccessControlError):
    """Referenced user, role, team or permission is absent."""
    status_code = 404


class AuthorityError(AccessControlError):
    """Rank or scope check failed."""
    status_code = 403


class StoreError(AccessControlError):
    """Persistence collaborator failure."""
    status_code = 503


class ConflictError(AccessControlError):
    """Write collides with an existing record (e.g. a duplicate email)."""
    status_code = 409
