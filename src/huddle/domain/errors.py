"""Domain exception hierarchy.

Lower layers raise these; only the transports (HTTP handlers, the analysis
event stream, the index CLI) translate them into responses.
"""


class HuddleError(Exception):
    """Base class for all huddle errors."""


class InvalidRequestError(HuddleError):
    """Raised when a request is missing or has malformed input."""


class NotFoundError(HuddleError):
    """Raised when a referenced record does not exist."""


class AuthorizationError(HuddleError):
    """Raised when the requester may not access a conversation."""


class UpstreamError(HuddleError):
    """Raised when an embedding, language model, or index call fails.

    Attributes:
        detail: Diagnostic string safe to return to clients.
    """

    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(message)
        self.detail = detail
