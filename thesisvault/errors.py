"""
Error taxonomy for ThesisVault.

Every failure a caller can act on has its own kind:
- NotAuthenticated: no resolvable identity, always fails closed
- NotFound: a row is absent (distinct from malformed input)
- InvalidInput: unrecognized QR payload or unparseable identifier
- Conflict: duplicate pending request, duplicate registration fields
- PermissionDenied: the caller is known but may not do this (yet)
- Upstream: database or storage failure unrelated to input validity
- NonCritical: side-effect failures that are logged and never raised
"""


class ThesisVaultException(Exception):
    """Base exception for ThesisVault errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: str = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class NotAuthenticatedError(ThesisVaultException):
    """No usable identity, or credentials were rejected."""

    def __init__(self, message: str = "Not authenticated", detail: str = None):
        super().__init__(
            message=message,
            code="NOT_AUTHENTICATED",
            status_code=401,
            detail=detail,
        )


class NotFoundError(ThesisVaultException):
    """Resource not found."""

    def __init__(self, resource: str, identifier):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
            detail=f"No {resource} with identifier '{identifier}' exists",
        )
        self.resource = resource
        self.identifier = identifier


class InvalidInputError(ThesisVaultException):
    """Input could not be interpreted."""

    def __init__(self, message: str, detail: str = None):
        super().__init__(
            message=message,
            code="INVALID_INPUT",
            status_code=400,
            detail=detail,
        )


class ConflictError(ThesisVaultException):
    """Write would violate a uniqueness rule or a state transition."""

    def __init__(self, message: str, detail: str = None, code: str = "CONFLICT"):
        super().__init__(
            message=message,
            code=code,
            status_code=409,
            detail=detail,
        )


class DuplicatePendingRequestError(ConflictError):
    """An access request for this pair is already pending."""

    def __init__(self, user_id, thesis_id):
        super().__init__(
            message="You already have a pending request for this thesis",
            code="DUPLICATE_PENDING_REQUEST",
            detail=f"user={user_id} thesis={thesis_id}",
        )


class AmbiguousMatchError(ConflictError):
    """A partial lookup matched more than one row."""

    def __init__(self, fragment: str, count: int):
        super().__init__(
            message="QR code matches more than one thesis",
            code="AMBIGUOUS_MATCH",
            detail=f"More than one thesis references '{fragment}'",
        )
        self.count = count


class PermissionDeniedError(ThesisVaultException):
    """Caller is identified but not allowed to perform the action."""

    def __init__(self, message: str = "Permission denied", code: str = "PERMISSION_DENIED", detail: str = None):
        super().__init__(
            message=message,
            code=code,
            status_code=403,
            detail=detail,
        )


class AccessRequiredError(PermissionDeniedError):
    """Borrowing or viewing needs an approved, unexpired access request."""

    def __init__(self, state: str):
        super().__init__(
            message="Approved access is required for this thesis",
            code="ACCESS_REQUIRED",
            detail=f"Current access status: {state}",
        )
        self.state = state


class NotAvailableError(PermissionDeniedError):
    """Every physical copy is currently out."""

    def __init__(self, thesis_id):
        super().__init__(
            message="All copies of this thesis are currently borrowed",
            code="NOT_AVAILABLE",
            detail=f"thesis={thesis_id}",
        )


class UpstreamError(ThesisVaultException):
    """Database or storage call failed; the caller may retry later."""

    def __init__(self, service: str, detail: str = None):
        super().__init__(
            message=f"{service} unavailable, try again later",
            code="UPSTREAM_ERROR",
            status_code=503,
            detail=detail,
        )


class NonCriticalError(ThesisVaultException):
    """Side effect failed; logged, never propagated to the primary flow."""

    def __init__(self, operation: str, detail: str = None):
        super().__init__(
            message=f"{operation} failed",
            code="NON_CRITICAL",
            status_code=500,
            detail=detail,
        )
