"""Domain errors raised by the service layer.

Routers let these propagate; ``main.py`` renders them as ``{"detail": ...}``
with the status code carried by the exception class.
"""


class OpsdeskError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(OpsdeskError):
    status_code = 422


class NotFound(OpsdeskError):
    status_code = 404


class InvalidTransition(OpsdeskError):
    status_code = 409

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot change status from {current} to {requested}")
        self.current = current
        self.requested = requested


class StaleRevision(OpsdeskError):
    status_code = 409


class InsufficientStock(OpsdeskError):
    status_code = 422
