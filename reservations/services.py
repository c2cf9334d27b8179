"""Reservation creation, quoting and listing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from accounts.services import Actor
from core.exceptions import Conflict, CustomerNotFound, Forbidden, InvalidRange, ReservationNotFound
from notifications.models import Notification
from notifications.services import RoleTarget, UserTarget, notify

from .availability import (
    AvailabilityResult,
    find_conflict,
    load_bookable_vehicle,
    validate_day_bounds,
    validate_range_shape,
)
from .ledger import claim_days
from .models import BookingStatus, Channel, PaymentStatus, Reservation
from .pricing import AddonSelection, PriceQuote, price
from .transitions import complete_finished_reservations, get_reservation, reservation_link

logger = logging.getLogger(__name__)

CUSTOMER_CHANNELS = frozenset({Channel.ONLINE, Channel.API})


@dataclass(frozen=True)
class ReservationRequest:
    vehicle_id: int
    customer_id: int
    start_date: date
    end_date: date
    addons: AddonSelection = field(default_factory=AddonSelection)
    channel: str = Channel.ONLINE
    mark_paid: bool = False


def _raise_conflict(result: AvailabilityResult) -> None:
    if not result.available:
        raise Conflict(
            conflict_kind=result.conflict_kind,
            conflict_start=result.conflict_start,
            conflict_end=result.conflict_end,
        )


def _validate_request_dates(start_date: date, end_date: date, channel: str, today: date | None) -> None:
    validate_range_shape(start_date, end_date)
    if channel in CUSTOMER_CHANNELS and start_date < (today or timezone.localdate()):
        raise InvalidRange('Pick-up date cannot be in the past.')


def quote(*, vehicle_id: int, start_date: date, end_date: date, addons: AddonSelection | None = None) -> PriceQuote:
    """Price a prospective rental without reserving anything."""
    validate_range_shape(start_date, end_date)
    vehicle = load_bookable_vehicle(vehicle_id)
    validate_day_bounds(vehicle, start_date, end_date)
    return price(vehicle.daily_rate, start_date, end_date, addons)


def create_reservation(
    *,
    vehicle_id: int,
    customer_id: int,
    start_date: date,
    end_date: date,
    addons: AddonSelection | dict | None = None,
    channel: str = Channel.ONLINE,
    created_by: int | None = None,
    mark_paid: bool = False,
    today: date | None = None,
) -> Reservation:
    """Validate, price and persist a reservation request.

    Customer channels produce a ``pending`` request that blocks nothing. The
    manual channel produces a ``confirmed`` reservation that claims its days in
    the same transaction, after re-checking availability under a vehicle lock.
    """
    if not isinstance(addons, AddonSelection):
        addons = AddonSelection.from_payload(addons)
    _validate_request_dates(start_date, end_date, channel, today)

    vehicle = load_bookable_vehicle(vehicle_id)
    validate_day_bounds(vehicle, start_date, end_date)
    _raise_conflict(find_conflict(vehicle, start_date, end_date))
    totals = price(vehicle.daily_rate, start_date, end_date, addons)

    if not get_user_model().objects.filter(pk=customer_id, is_active=True).exists():
        raise CustomerNotFound(customer_id=customer_id)

    confirmed = channel == Channel.MANUAL
    now = timezone.now()
    with transaction.atomic():
        if confirmed:
            vehicle = load_bookable_vehicle(vehicle.pk, for_update=True)
            _raise_conflict(find_conflict(vehicle, start_date, end_date))
        reservation = Reservation.objects.create(
            vehicle=vehicle,
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
            base_amount=totals.base,
            addons_amount=totals.addons_total,
            total_amount=totals.total,
            addons=addons.as_dict(),
            status=BookingStatus.CONFIRMED if confirmed else BookingStatus.PENDING,
            payment_status=PaymentStatus.PAID if confirmed and mark_paid else PaymentStatus.PENDING,
            paid_at=now if confirmed and mark_paid else None,
            confirmed_at=now if confirmed else None,
            channel=channel,
            created_by_id=created_by,
        )
        if confirmed:
            claim_days(reservation)
        _announce(reservation)

    logger.info(
        'Reservation %s created via %s for vehicle %s (%s..%s) as %s',
        reservation.reference_number,
        channel,
        vehicle.pk,
        start_date,
        end_date,
        reservation.status,
    )
    return reservation


def create_manual_reservation(*, actor: Actor, **kwargs) -> Reservation:
    """Back-office booking taken at the desk: confirmed immediately."""
    if not actor.is_back_office:
        raise Forbidden('Only staff can create manual reservations.')
    kwargs['channel'] = Channel.MANUAL
    kwargs.setdefault('created_by', actor.user_id)
    return create_reservation(**kwargs)


def submit(request: ReservationRequest, actor: Actor, today: date | None = None) -> Reservation:
    """Route a parsed request through the customer or the manual path."""
    params = dict(
        vehicle_id=request.vehicle_id,
        customer_id=request.customer_id,
        start_date=request.start_date,
        end_date=request.end_date,
        addons=request.addons,
        today=today,
    )
    if request.channel == Channel.MANUAL:
        return create_manual_reservation(actor=actor, mark_paid=request.mark_paid, **params)
    if actor.is_customer and request.customer_id != actor.user_id:
        raise Forbidden('Customers can only reserve for themselves.')
    return create_reservation(channel=request.channel, created_by=actor.user_id, **params)


def _announce(reservation: Reservation) -> None:
    link = reservation_link(reservation)
    dates = f'{reservation.start_date:%Y-%m-%d} to {reservation.end_date:%Y-%m-%d}'
    if reservation.status == BookingStatus.CONFIRMED:
        notify(
            UserTarget(reservation.customer_id),
            Notification.Type.BOOKING_CONFIRMED,
            'Booking confirmed',
            f'Your reservation {reservation.reference_number} for {reservation.vehicle} from {dates} is confirmed.',
            link,
        )
        return

    notify(
        UserTarget(reservation.customer_id),
        Notification.Type.BOOKING_REQUESTED,
        'Booking request received',
        f'We received your request {reservation.reference_number} for {reservation.vehicle} from {dates}.',
        link,
    )
    notify(
        RoleTarget.back_office(),
        Notification.Type.BOOKING_REQUESTED,
        'New booking request',
        f'Reservation {reservation.reference_number} for {reservation.vehicle} from {dates} awaits review.',
        link,
    )


def reservations_visible_to(actor: Actor) -> QuerySet[Reservation]:
    reservations = Reservation.objects.select_related('vehicle', 'customer')
    if actor.is_back_office:
        return reservations
    return reservations.filter(customer_id=actor.user_id)


def list_reservations(actor: Actor, today: date | None = None) -> QuerySet[Reservation]:
    """Reservations the actor may see, after settling finished rentals."""
    reservations = reservations_visible_to(actor)
    complete_finished_reservations(reservations, today=today)
    return reservations


def get_visible_reservation(actor: Actor, reservation_id) -> Reservation:
    reservation = get_reservation(reservation_id)
    if not actor.is_back_office and reservation.customer_id != actor.user_id:
        raise ReservationNotFound(reservation_id=reservation_id)
    complete_finished_reservations(Reservation.objects.filter(pk=reservation.pk))
    reservation.refresh_from_db()
    return reservation
