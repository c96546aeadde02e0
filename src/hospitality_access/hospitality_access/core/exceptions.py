class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data or search filters are malformed."""


class NotFoundError(DomainError):
    """Raised when a guest, room or event is absent, inactive or outside the tenant."""


class InvalidTransitionError(DomainError):
    """Raised when a check-in/check-out does not match the guest's current presence."""


class ConflictError(DomainError):
    """Raised on duplicate names in upstream CRUD."""


class UnavailableError(DomainError):
    """Raised when the backing store is unreachable after retries are exhausted."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""
