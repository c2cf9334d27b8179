"""Per-day occupancy rows backing the non-overlap guarantee for confirmed reservations."""

from __future__ import annotations

import logging

from django.db import IntegrityError, transaction

from core.exceptions import Conflict
from core.intervals import daterange

from .availability import KIND_RESERVATION
from .models import Reservation, ReservedDay

logger = logging.getLogger(__name__)


def claim_days(reservation: Reservation) -> list[ReservedDay]:
    """Occupy every day of ``reservation`` for its vehicle.

    Must run inside the transaction that makes the reservation confirmed. A
    clash with another confirmed reservation is rejected by the unique
    ``(vehicle, day)`` constraint and surfaces as ``Conflict``.
    """
    days = list(daterange(reservation.start_date, reservation.end_date))
    rows = [ReservedDay(vehicle_id=reservation.vehicle_id, day=day, reservation=reservation) for day in days]
    try:
        with transaction.atomic():
            return ReservedDay.objects.bulk_create(rows)
    except IntegrityError as exc:
        clash = (
            ReservedDay.objects.filter(vehicle_id=reservation.vehicle_id, day__in=days)
            .exclude(reservation=reservation)
            .select_related('reservation')
            .order_by('day')
            .first()
        )
        if clash is None:
            raise
        logger.info(
            'Reservation %s lost the race for vehicle %s on %s to reservation %s',
            reservation.pk,
            reservation.vehicle_id,
            clash.day,
            clash.reservation_id,
        )
        raise Conflict(
            conflict_kind=KIND_RESERVATION,
            conflict_start=clash.reservation.start_date,
            conflict_end=clash.reservation.end_date,
        ) from exc


def release_days(reservation: Reservation) -> int:
    deleted, _ = ReservedDay.objects.filter(reservation=reservation).delete()
    return deleted
