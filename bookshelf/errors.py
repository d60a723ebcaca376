"""Error taxonomy shared by the catalog clients, the gateway and the store."""


class BookshelfError(Exception):
    """Base error with a plain-language message for notifications."""

    default_message = "Something went wrong."

    def __init__(self, message: str = None):
        self.user_message = message or self.default_message
        super().__init__(self.user_message)


class NotFound(BookshelfError):
    """Zero catalog results, or a missing entity on the backend."""

    default_message = "No books found."


class Unavailable(BookshelfError):
    """Transport or server failure."""

    default_message = "The service is unavailable. Please try again later."


class Unauthenticated(BookshelfError):
    """The action requires a logged-in owner."""

    default_message = "Please log in first."


class BadRequest(BookshelfError):
    """Malformed input, e.g. a profile update without a file."""

    default_message = "The request was invalid."


class InvalidCredentials(BookshelfError):
    """Login rejected by the backend."""

    default_message = "Invalid username or password."
