"""Vehicle availability against confirmed reservations and maintenance blocks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from core.exceptions import InvalidRange, RangeTooLong, RangeTooShort, VehicleInactive, VehicleNotFound
from core.intervals import overlap_q, overlaps, whole_days_between
from fleet.models import MaintenanceBlock, Vehicle

from .models import BookingStatus, Reservation

logger = logging.getLogger(__name__)

KIND_RESERVATION = 'reservation'
KIND_MAINTENANCE = 'maintenance'


@dataclass
class AvailabilityResult:
    vehicle: Vehicle
    start_date: date
    end_date: date
    available: bool
    conflict_kind: str | None = None
    conflict_start: date | None = None
    conflict_end: date | None = None
    conflict_id: int | None = None


@dataclass
class BlockedInterval:
    start_date: date
    end_date: date
    kind: str
    reason: str = ''


@dataclass
class AvailabilityCalendar:
    vehicle_id: int
    min_days: int
    max_days: int
    vehicle_status: str
    is_bookable: bool
    blocked: list[BlockedInterval] = field(default_factory=list)


def load_bookable_vehicle(vehicle_id: int, *, for_update: bool = False) -> Vehicle:
    queryset = Vehicle.objects.all()
    if for_update:
        queryset = queryset.select_for_update()
    try:
        vehicle = queryset.get(pk=vehicle_id)
    except (Vehicle.DoesNotExist, ValueError, TypeError) as exc:
        raise VehicleNotFound(vehicle_id=vehicle_id) from exc
    if not vehicle.is_bookable:
        raise VehicleInactive(vehicle_id=vehicle.pk, vehicle_status=vehicle.status)
    return vehicle


def validate_range_shape(start: date, end: date) -> None:
    if start is None or end is None:
        raise InvalidRange('Pick-up and drop-off dates are required.')
    if start >= end:
        raise InvalidRange('Drop-off date must be after pick-up date.')


def validate_day_bounds(vehicle: Vehicle, start: date, end: date) -> int:
    days = whole_days_between(start, end)
    if days < vehicle.min_rental_days:
        raise RangeTooShort(
            f'This vehicle must be rented for at least {vehicle.min_rental_days} day(s).',
            days=days,
            min_days=vehicle.min_rental_days,
        )
    if days > vehicle.max_rental_days:
        raise RangeTooLong(
            f'This vehicle can be rented for at most {vehicle.max_rental_days} day(s).',
            days=days,
            max_days=vehicle.max_rental_days,
        )
    return days


def find_conflict(
    vehicle: Vehicle,
    start: date,
    end: date,
    exclude_reservation_id: int | None = None,
) -> AvailabilityResult:
    """Report the earliest confirmed reservation or block overlapping ``[start, end)``."""
    reservations = Reservation.objects.filter(vehicle=vehicle, status=BookingStatus.CONFIRMED).filter(overlap_q(start, end))
    if exclude_reservation_id is not None:
        reservations = reservations.exclude(pk=exclude_reservation_id)
    blocks = MaintenanceBlock.objects.filter(vehicle=vehicle).filter(overlap_q(start, end))

    candidates = [
        (reservation.start_date, reservation.end_date, KIND_RESERVATION, reservation.pk)
        for reservation in reservations.only('pk', 'start_date', 'end_date')
    ]
    candidates += [
        (block.start_date, block.end_date, KIND_MAINTENANCE, block.pk)
        for block in blocks.only('pk', 'start_date', 'end_date')
    ]
    candidates.sort(key=lambda item: (item[0], item[2]))

    for other_start, other_end, kind, pk in candidates:
        if overlaps(start, end, other_start, other_end):
            return AvailabilityResult(
                vehicle=vehicle,
                start_date=start,
                end_date=end,
                available=False,
                conflict_kind=kind,
                conflict_start=other_start,
                conflict_end=other_end,
                conflict_id=pk,
            )
    return AvailabilityResult(vehicle=vehicle, start_date=start, end_date=end, available=True)


def check_availability(
    vehicle_id: int,
    start: date,
    end: date,
    exclude_reservation_id: int | None = None,
) -> AvailabilityResult:
    """Decide whether the vehicle is free for ``[start, end)``.

    Only confirmed reservations and maintenance blocks occupy a vehicle; a
    pending request reserves nothing. Read-only.
    """
    validate_range_shape(start, end)
    vehicle = load_bookable_vehicle(vehicle_id)
    validate_day_bounds(vehicle, start, end)
    result = find_conflict(vehicle, start, end, exclude_reservation_id)
    if not result.available:
        logger.debug(
            'Vehicle %s unavailable %s..%s: %s %s..%s',
            vehicle.pk,
            start,
            end,
            result.conflict_kind,
            result.conflict_start,
            result.conflict_end,
        )
    return result


def blocked_intervals(vehicle_id: int) -> AvailabilityCalendar:
    """Confirmed reservations and maintenance blocks of a vehicle, for calendar rendering."""
    try:
        vehicle = Vehicle.objects.get(pk=vehicle_id)
    except (Vehicle.DoesNotExist, ValueError, TypeError) as exc:
        raise VehicleNotFound(vehicle_id=vehicle_id) from exc

    blocked = [
        BlockedInterval(start_date=start, end_date=end, kind=KIND_RESERVATION)
        for start, end in Reservation.objects.filter(vehicle=vehicle, status=BookingStatus.CONFIRMED).values_list(
            'start_date', 'end_date'
        )
    ]
    blocked += [
        BlockedInterval(start_date=block.start_date, end_date=block.end_date, kind=block.kind, reason=block.reason)
        for block in MaintenanceBlock.objects.filter(vehicle=vehicle)
    ]
    blocked.sort(key=lambda interval: (interval.start_date, interval.end_date))

    return AvailabilityCalendar(
        vehicle_id=vehicle.pk,
        min_days=vehicle.min_rental_days,
        max_days=vehicle.max_rental_days,
        vehicle_status=vehicle.status,
        is_bookable=vehicle.is_bookable,
        blocked=blocked,
    )
