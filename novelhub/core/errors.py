"""Error taxonomy shared by the engagement components.

Every error carries a machine-readable ``code`` that the HTTP layer maps to a
status code (see ``novelhub.engagement.dependencies.handle_engagement_error``).
"""


class EngagementError(Exception):
    """Base engagement error."""

    def __init__(self, message: str, code: str = "engagement_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidArgumentError(EngagementError):
    """Malformed input: empty text, missing field, mismatched content."""

    def __init__(self, message: str = "Invalid argument"):
        super().__init__(message, "invalid_argument")


class NotFoundError(EngagementError):
    """Referenced comment, content, parent or user does not exist."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, "not_found")


class ForbiddenError(EngagementError):
    """Requester is not allowed to perform the operation."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, "forbidden")


class ConflictError(EngagementError):
    """Caller-supplied state disagrees with stored state.

    Only raised when like-state verification is switched on.
    """

    def __init__(self, message: str = "Conflict"):
        super().__init__(message, "conflict")


class InternalError(EngagementError):
    """Storage or collaborator failure during a primary write."""

    def __init__(self, message: str = "Internal error"):
        super().__init__(message, "internal")
