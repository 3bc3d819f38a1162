from typing import Optional


class EventsError(Exception):
    """Base error for event operations, rendered as a JSON body by the app."""

    status_code = 500
    default_error = "Internal server error"

    def __init__(self, error: Optional[str] = None, message: Optional[str] = None):
        self.error = error or self.default_error
        self.message = message
        super().__init__(self.error)

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        return body


class InvalidInput(EventsError):
    status_code = 400
    default_error = "Invalid input"


class MissingRequiredFields(InvalidInput):
    default_error = "Missing required fields: title, date, and type are required"


class InvalidId(InvalidInput):
    default_error = "Invalid event ID"


class NotFound(EventsError):
    status_code = 404
    default_error = "Event not found"


class InsertFailed(EventsError):
    default_error = "Failed to create event"

    def __init__(self, error: Optional[str] = None, message: Optional[str] = "Failed to insert event"):
        super().__init__(error, message)


class StoreUnavailable(EventsError):
    """The document store raised while serving a request."""
