class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class ContextNotFoundError(DomainError):
    """Exception raised when a stored context id is unknown or has expired."""

    def __init__(self, context_id: str) -> None:
        super().__init__(f"Context {context_id} not found or expired")
        self.context_id = context_id


class MalformedContextError(DomainError):
    """Exception raised when a stored context cannot be decoded."""

    pass


class ContextStoreUnavailableError(DomainError):
    """Exception raised when no context storage backend can be reached."""

    pass


class InvalidGenerationRequestError(DomainError):
    """Exception raised when a generation request has neither query nor context."""

    pass


class EmptyContextError(DomainError):
    """Exception raised when a posted context has no signals, query or history."""

    pass
