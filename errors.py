from fastapi import status


class LibraryError(Exception):
    """Base for every failure that is reported back to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(LibraryError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized, token missing"


class InvalidCredential(Unauthenticated):
    default_message = "Invalid or expired token"


class Forbidden(LibraryError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(LibraryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidInput(LibraryError):
    default_message = "Invalid input"


# Conceptually a 409, but clients of this API expect 400.
class Conflict(LibraryError):
    default_message = "Conflict"
