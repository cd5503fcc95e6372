"""
Exceptions shared by the store, cache, engine and Slack clients.

Every error carries the HTTP status code an action answers with when the
error ends a turn.
"""


class BridgeError(Exception):
    """Base exception for all bridge errors."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class ValidationError(BridgeError):
    """Raised when a required input field or config value is missing or invalid."""

    status_code = 400


class AuthError(BridgeError):
    """Raised when a webhook carries a bad verification token or an unknown team."""

    status_code = 401


class StoreUnavailable(BridgeError):
    """Raised when the document store is unreachable or answers with an error."""

    pass


class ContextUnavailable(BridgeError):
    """Raised when the session cache is unreachable."""

    pass


class EngineError(BridgeError):
    """Raised when the conversation engine call fails."""

    pass


class RevisionConflict(BridgeError):
    """Raised when a document update is rejected because its revision is stale."""

    pass


class DeliveryError(BridgeError):
    """Raised when a reply cannot be posted to Slack."""

    pass
