"""Domain exceptions shared across services."""

from uuid import UUID


class RequestNotFoundError(LookupError):
    """Raised when a translation request record does not exist."""

    def __init__(self, request_id: UUID):
        super().__init__(f"Translation request {request_id} not found")
        self.request_id = request_id


class InvalidRequestTransitionError(ValueError):
    """Raised when a request is moved out of a terminal state."""

    def __init__(self, request_id: UUID, current: str, requested: str):
        super().__init__(
            f"Translation request {request_id} cannot move from {current} to {requested}"
        )
        self.request_id = request_id
        self.current = current
        self.requested = requested


class UnknownSettingError(KeyError):
    """Raised for a language setting key that is not source or target."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Unknown language setting: {self.key}"
