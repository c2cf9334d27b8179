"""Maintenance and unavailability block management."""

from __future__ import annotations

import logging
from datetime import date

from django.db import transaction
from django.db.models import QuerySet

from accounts.services import Actor
from core.exceptions import BlockNotFound, Conflict, Forbidden, InvalidRange, VehicleNotFound
from core.intervals import overlap_q

from .models import MaintenanceBlock, Vehicle

logger = logging.getLogger(__name__)


def _require_staff(actor: Actor) -> None:
    if not actor.is_back_office:
        raise Forbidden('Only staff can manage unavailability blocks.')


def get_vehicle(vehicle_id, *, for_update: bool = False) -> Vehicle:
    queryset = Vehicle.objects.select_for_update() if for_update else Vehicle.objects.all()
    try:
        return queryset.get(pk=vehicle_id)
    except (Vehicle.DoesNotExist, ValueError, TypeError) as exc:
        raise VehicleNotFound(vehicle_id=vehicle_id) from exc


def list_blocks(vehicle_id) -> QuerySet[MaintenanceBlock]:
    return get_vehicle(vehicle_id).blocks.all()


def create_block(
    vehicle_id,
    start_date: date,
    end_date: date,
    actor: Actor,
    *,
    kind: str = MaintenanceBlock.Kind.MAINTENANCE,
    reason: str = '',
) -> MaintenanceBlock:
    """Take a vehicle out of service for ``[start_date, end_date)``.

    Refused with ``Conflict`` when a confirmed reservation already holds any of
    those days.
    """
    # Imported here: reservations depends on fleet.
    from reservations.models import BookingStatus, Reservation

    _require_staff(actor)
    if start_date is None or end_date is None or start_date >= end_date:
        raise InvalidRange('Block end date must be after its start date.')
    if kind not in MaintenanceBlock.Kind.values:
        raise InvalidRange(f'Unknown block kind "{kind}".')

    with transaction.atomic():
        vehicle = get_vehicle(vehicle_id, for_update=True)
        clash = (
            Reservation.objects.filter(vehicle=vehicle, status=BookingStatus.CONFIRMED)
            .filter(overlap_q(start_date, end_date))
            .order_by('start_date')
            .first()
        )
        if clash is not None:
            raise Conflict(
                'A confirmed reservation overlaps these dates.',
                conflict_kind='reservation',
                conflict_start=clash.start_date,
                conflict_end=clash.end_date,
            )
        block = MaintenanceBlock.objects.create(
            vehicle=vehicle,
            start_date=start_date,
            end_date=end_date,
            kind=kind,
            reason=reason,
            created_by_id=actor.user_id,
        )
    logger.info('Vehicle %s blocked %s..%s (%s)', vehicle.pk, start_date, end_date, kind)
    return block


def delete_block(vehicle_id, block_id, actor: Actor) -> None:
    _require_staff(actor)
    deleted, _ = MaintenanceBlock.objects.filter(pk=block_id, vehicle_id=vehicle_id).delete()
    if not deleted:
        raise BlockNotFound(block_id=block_id)
    logger.info('Block %s removed from vehicle %s', block_id, vehicle_id)
