"""Exception hierarchy for the orgcal_lite timeline engine.

Each surfaced error carries a machine-readable ``code`` and the HTTP status the
API layer responds with. Per-source adapter failures are deliberately NOT part
of this hierarchy: they are recovered values (see ``AdapterError`` in
``orgcal_lite.domain.adapters``) and never propagate to the caller.
"""


class OrgCalError(Exception):
    """Base exception for all surfaced timeline engine errors.

    Attributes:
        code: Machine-readable error code returned in the ``error`` field
        http_status: HTTP status code the API layer responds with
    """

    code = "internal_error"
    http_status = 500

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, str]:
        """Serialize to the ``{"error", "message"}`` response body."""
        return {"error": self.code, "message": self.message}


class InvalidRequestError(OrgCalError):
    """Request parameters are missing or malformed.

    Should result in HTTP 400 Bad Request response.
    """

    code = "invalid_request"
    http_status = 400


class InvalidWindowError(InvalidRequestError):
    """The query window could not be parsed, or start is after end."""

    code = "invalid_window"


class WindowTooLargeError(InvalidRequestError):
    """The query window spans more than the configured maximum."""

    code = "window_too_large"


class UnauthorizedError(OrgCalError):
    """No caller identity was supplied by the authentication collaborator.

    Should result in HTTP 401 Unauthorized response.
    """

    code = "unauthorized"
    http_status = 401


class ForbiddenError(OrgCalError):
    """The caller is not an active member of the requested organization.

    Should result in HTTP 403 Forbidden response.
    """

    code = "forbidden"
    http_status = 403


class ResolverFailure(OrgCalError):
    """Series resolution or multi-row mutation failed.

    Raised when:
    - The target event does not exist in the organization (404)
    - A this-and-future update targets a non-recurring event (409)
    - The storage layer rejected the atomic soft-delete/update (500)

    When raised from a mutation, nothing has been applied.
    """

    code = "resolver_failure"
    http_status = 500

    def __init__(self, message: str, *, code: str | None = None, http_status: int | None = None):
        super().__init__(message, code=code)
        if http_status is not None:
            self.http_status = http_status


class StorageError(Exception):
    """Raised by store implementations when a read or write cannot be completed."""


class InternalError(OrgCalError):
    """Unexpected failure while serving a request.

    Should result in HTTP 500 Internal Server Error response.
    """
