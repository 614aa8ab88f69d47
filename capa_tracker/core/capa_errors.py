"""Error taxonomy for CAPA lifecycle and suggestion operations."""

from typing import Any, Optional


class CapaError(Exception):
    """Base class for CAPA tracker errors."""


class ValidationError(CapaError):
    """Raised when input fails a lifecycle rule. No state is changed."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidTransitionError(ValidationError):
    """Raised when a status change is not a lifecycle edge."""

    def __init__(self, current: Any, requested: Any):
        super().__init__(
            f"Cannot transition from '{current.value}' to '{requested.value}'",
            field="status",
        )
        self.current = current
        self.requested = requested


class NotFoundError(CapaError):
    """Raised when an operation references a record that does not exist."""

    def __init__(self, capa_id: Any):
        super().__init__(f"CAPA record {capa_id} not found")
        self.capa_id = capa_id


class ProviderError(CapaError):
    """Raised when the text-generation provider fails. Never leaves SuggestionService."""


class DuplicateFolioError(ValidationError):
    """Raised when the store already holds a record with the assigned folio."""

    def __init__(self, folio: str):
        super().__init__(f"Folio {folio} is already taken; retry the create", field="folio")
        self.folio = folio
