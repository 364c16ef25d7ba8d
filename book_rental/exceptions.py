class ReservationError(ValueError):
    """Base class for reservation failures reported back to the caller."""


class NotFoundError(ReservationError):
    pass


class UnavailableError(ReservationError):
    pass


class InvalidStateError(ReservationError):
    pass


class ValidationError(ReservationError):
    pass
