"""Domain errors raised by the reservation engine.

Each error carries a stable ``code`` (what API clients switch on) and the HTTP
status the REST layer answers with. Storage failures are not part of this
hierarchy: they propagate as Django ``DatabaseError`` subclasses.
"""

from __future__ import annotations

from datetime import date
from typing import Any


class ReservationError(Exception):
    code = 'reservation_error'
    status_code = 400
    default_message = 'The reservation request could not be processed.'

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        payload = {'error': self.code, 'detail': self.message}
        payload.update({key: _jsonable(value) for key, value in self.extra.items()})
        return payload


# Validation errors: rejected before any read.

class InvalidRange(ReservationError):
    code = 'InvalidRange'
    default_message = 'The requested date range is invalid.'


class RangeTooShort(InvalidRange):
    code = 'RangeTooShort'
    default_message = 'The requested rental is shorter than the vehicle minimum.'


class RangeTooLong(InvalidRange):
    code = 'RangeTooLong'
    default_message = 'The requested rental is longer than the vehicle maximum.'


class InvalidAddons(ReservationError):
    code = 'InvalidAddons'
    default_message = 'The add-on selection is invalid.'


class ReasonRequired(ReservationError):
    code = 'ReasonRequired'
    default_message = 'A reason is required for this change.'


# Not-found errors.

class NotFound(ReservationError):
    code = 'NotFound'
    status_code = 404
    default_message = 'Not found.'


class VehicleNotFound(NotFound):
    code = 'VehicleNotFound'
    default_message = 'Vehicle not found.'


class VehicleInactive(VehicleNotFound):
    code = 'VehicleInactive'
    default_message = 'Vehicle is not available for new reservations.'


class CustomerNotFound(NotFound):
    default_message = 'Customer not found.'


class ReservationNotFound(NotFound):
    default_message = 'Reservation not found.'


class PaymentNotFound(NotFound):
    default_message = 'Payment not found.'


class NotificationNotFound(NotFound):
    default_message = 'Notification not found.'


class BlockNotFound(NotFound):
    default_message = 'Unavailability block not found.'


# Expected business outcomes.

class Conflict(ReservationError):
    """The requested interval collides with a confirmed reservation or a block."""

    code = 'Conflict'
    status_code = 409
    default_message = 'Vehicle is not available for the selected dates.'

    def __init__(
        self,
        message: str | None = None,
        *,
        conflict_kind: str | None = None,
        conflict_start: date | None = None,
        conflict_end: date | None = None,
        **extra: Any,
    ) -> None:
        self.conflict_kind = conflict_kind
        self.conflict_start = conflict_start
        self.conflict_end = conflict_end
        super().__init__(
            message,
            conflict_kind=conflict_kind,
            conflict_start=conflict_start,
            conflict_end=conflict_end,
            **extra,
        )


class IllegalTransition(ReservationError):
    code = 'IllegalTransition'
    status_code = 409
    default_message = 'This status change is not allowed.'


class Forbidden(ReservationError):
    code = 'Forbidden'
    status_code = 403
    default_message = 'You are not allowed to perform this action.'


def _jsonable(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value
