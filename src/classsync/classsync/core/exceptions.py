class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class InvalidTimeFormat(ValidationError):
    """A clock string could not be parsed."""


class UnknownPeriod(ValidationError):
    """A period number is outside the configured period table."""


class UnknownClass(ValidationError):
    pass


class InvalidPeriods(ValidationError):
    pass


class StudentNotEnrolled(ValidationError):
    pass


class PeriodNotInSession(ValidationError):
    pass


class SignalTooWeak(ValidationError):
    """Proximity reading below the configured threshold."""


class NotFoundError(DomainError):
    pass


class UnknownSession(NotFoundError):
    pass


class ConflictError(DomainError):
    """Expected steady-state conflict: reported to the caller, never retried."""


class DuplicateAttendance(ConflictError):
    """A record already exists for (student, date, period)."""


class SessionAlreadyActive(ConflictError):
    pass


class SessionNotActive(ConflictError):
    pass


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""
