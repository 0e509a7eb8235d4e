"""Exception types raised by the generation pipeline."""


class GenerationError(Exception):
    """Base class for all mcp-testgen errors."""


class NotFoundError(GenerationError):
    """The spec source does not exist or could not be reached."""


class ParseError(GenerationError):
    """The spec source is not a valid structured document."""


class EmptySpecError(GenerationError):
    """The spec document contains no endpoints."""

    def __init__(self, message: str = "No endpoints found"):
        super().__init__(message)


class ProviderError(GenerationError):
    """The language-model backend failed (transport, auth, upstream error)."""


class UnsupportedProviderError(ProviderError):
    """No backend is registered under the requested provider name."""
