"""
Domain error taxonomy.

Services raise these; ``main.py`` renders any ``BlogAPIError`` as
``{"detail": message}`` with the class's ``status_code``.
"""


class BlogAPIError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(BlogAPIError):
    status_code = 404
    default_message = "Not found"


class SuggestionNotFound(NotFound):
    default_message = "Suggestion not found"


class AlreadyVoted(BlogAPIError):
    status_code = 400
    default_message = "You have already voted for this suggestion"


class Unauthorized(BlogAPIError):
    status_code = 401
    default_message = "Could not validate credentials"


class Forbidden(BlogAPIError):
    status_code = 403
    default_message = "Admins only"


class StoreFailure(BlogAPIError):
    """A transaction was aborted for infrastructural reasons and rolled back."""

    status_code = 500
    default_message = "The vote could not be recorded, please retry"


class BadRequest(BlogAPIError):
    status_code = 400
    default_message = "Bad request"


class Unprocessable(BlogAPIError):
    status_code = 422
    default_message = "Unprocessable entity"
