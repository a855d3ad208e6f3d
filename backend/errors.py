"""Domain exceptions raised below the HTTP layer and mapped to responses in main."""


class TaskCommentsError(Exception):
    """Base exception for all application errors."""

    status_code = 500

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ValidationError(TaskCommentsError):
    """Raised when a required field is missing or invalid."""

    status_code = 400


class NotFoundError(TaskCommentsError):
    """Raised when an identifier does not resolve to a stored record."""

    status_code = 404

    def __init__(self, resource: str, identifier):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class InternalError(TaskCommentsError):
    """Raised for unexpected store or connectivity failures."""

    status_code = 500
