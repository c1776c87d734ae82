"""Error types shared across the orchestrator."""


class AutoQuoteError(Exception):
    """Base class for orchestrator errors."""


class ValidationError(AutoQuoteError):
    """Raised when input to a session or call operation is malformed."""


class NotFoundError(AutoQuoteError):
    """Raised when a referenced session or call does not exist."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class ForbiddenError(AutoQuoteError):
    """Raised when a user accesses a session they do not own."""


class ReportNotReadyError(AutoQuoteError):
    """Raised when a report is requested before the session is done."""

    def __init__(self, status: str) -> None:
        super().__init__(f"Report not ready (status: {status})")
        self.status = status


class DestinationBlockedError(AutoQuoteError):
    """Raised when a destination fails the demo allow-list check."""

    def __init__(self, destination: str) -> None:
        super().__init__(
            f"DEMO_MODE violation: cannot call {destination}. "
            "Only allow-listed destinations may be dialed."
        )
        self.destination = destination


class ExternalServiceError(AutoQuoteError):
    """Raised when an external engine or platform fails."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service} error: {message}")
        self.service = service


class SessionAlreadyExistsError(AutoQuoteError):
    """Raised when a conditional session create finds an existing row."""


class CallAlreadyExistsError(AutoQuoteError):
    """Raised when a conditional call create finds an existing row."""
