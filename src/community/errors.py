"""Error taxonomy shared by the knowledge and experience components.

Read paths recover from StoreUnavailable locally by serving fallback data;
write paths surface it to the caller. NotFound never escapes a public
method: lookups on unknown ids return None instead.
"""

from typing import Optional


class EngineError(Exception):
    """Base class for all engine errors.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[BaseException] = None,
    ):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


class StoreUnavailable(EngineError):
    """Raised when the backing data store cannot be reached or fails."""


class NotFound(EngineError):
    """Raised internally when an id does not resolve to an entity."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ValidationError(EngineError, ValueError):
    """Raised when input is malformed, before any store call is made."""


class IngestionFailure(EngineError):
    """Raised when a knowledge node cannot be normalized or persisted."""
