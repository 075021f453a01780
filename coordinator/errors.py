# coordinator/errors.py


class BookwiseError(Exception):
    """Base class for every failure the comparison engine knows about."""


class NetworkFailure(BookwiseError):
    """
    The backend could not be reached or answered with an unexpected status.

    Timeouts raised by the transport are reported as a NetworkFailure too, the
    coordinator does not treat them differently from any other failure.
    """

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class NotFound(BookwiseError):
    """Raised when a book id is unknown to the backend."""

    def __init__(self, book_id):
        super().__init__(f"Book not found: {book_id}")
        self.book_id = book_id


class ValidationFailure(BookwiseError):
    """
    Malformed user input, reported per field.

    Args:
        field_errors (dict): Mapping of field name to a human readable message,
            e.g. {"target_price": "Price must be greater than 0"}

    Note:
        The failure only describes what is wrong. It never carries or resets
        the values the user entered, so a form can be shown again unchanged.
    """

    def __init__(self, field_errors):
        self.field_errors = dict(field_errors)
        summary = ", ".join(f"{k}: {v}" for k, v in self.field_errors.items())
        super().__init__(f"Invalid input ({summary})")


class Cancelled(BookwiseError):
    """Internal signal for a superseded fetch. Never shown to the user."""
