"""Booking and payment status machines for reservations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from accounts.services import SYSTEM_ROLE, Actor
from core.exceptions import Conflict, Forbidden, IllegalTransition, ReasonRequired, ReservationNotFound
from notifications.models import Notification
from notifications.services import RoleTarget, UserTarget, notify

from .availability import find_conflict, load_bookable_vehicle
from .ledger import claim_days, release_days
from .models import TERMINAL_STATUSES, BookingStatus, PaymentStatus, Reservation

logger = logging.getLogger(__name__)

STAFF = frozenset({'staff', 'admin'})
CUSTOMER = frozenset({'customer'})
SYSTEM = frozenset({SYSTEM_ROLE})


@dataclass(frozen=True)
class TransitionRule:
    actors: frozenset[str]
    reason_required_for: frozenset[str] = frozenset()
    owner_only_for: frozenset[str] = frozenset()


BOOKING_TRANSITIONS: dict[tuple[str, str], TransitionRule] = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): TransitionRule(actors=STAFF),
    (BookingStatus.PENDING, BookingStatus.REJECTED): TransitionRule(actors=STAFF),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): TransitionRule(
        actors=STAFF | CUSTOMER,
        reason_required_for=STAFF,
        owner_only_for=CUSTOMER,
    ),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): TransitionRule(actors=STAFF, reason_required_for=STAFF),
    (BookingStatus.CONFIRMED, BookingStatus.COMPLETED): TransitionRule(actors=SYSTEM),
}

PAYMENT_TRANSITIONS: frozenset[tuple[str, str]] = frozenset(
    {
        (PaymentStatus.PENDING, PaymentStatus.PAID),
        (PaymentStatus.PENDING, PaymentStatus.FAILED),
        (PaymentStatus.FAILED, PaymentStatus.PENDING),
        (PaymentStatus.PAID, PaymentStatus.REFUNDED),
    }
)


def reservation_link(reservation: Reservation) -> str:
    return f"/reservations/{reservation.pk}"


def get_reservation(reservation_id) -> Reservation:
    try:
        return Reservation.objects.select_related('vehicle').get(pk=reservation_id)
    except (Reservation.DoesNotExist, ValueError, TypeError) as exc:
        raise ReservationNotFound(reservation_id=reservation_id) from exc


def can_transition(from_status: str, to_status: str, role: str) -> bool:
    if from_status in TERMINAL_STATUSES:
        return False
    rule = BOOKING_TRANSITIONS.get((from_status, to_status))
    return rule is not None and role in rule.actors


def ensure_booking_transition(reservation: Reservation, to_status: str, actor: Actor, reason: str = '') -> TransitionRule:
    """Validate a booking status change without writing anything."""
    from_status = reservation.status
    if to_status not in BookingStatus.values:
        raise IllegalTransition(f'Unknown booking status "{to_status}".', from_status=from_status, to_status=to_status)
    if from_status in TERMINAL_STATUSES:
        raise IllegalTransition(
            f'A {from_status} reservation can no longer change.',
            from_status=from_status,
            to_status=to_status,
        )
    rule = BOOKING_TRANSITIONS.get((from_status, to_status))
    if rule is None:
        raise IllegalTransition(
            f'Cannot move a reservation from {from_status} to {to_status}.',
            from_status=from_status,
            to_status=to_status,
        )
    if actor.role not in rule.actors:
        raise Forbidden(f'Your role cannot move a reservation to {to_status}.')
    if actor.role in rule.owner_only_for and actor.user_id != reservation.customer_id:
        raise Forbidden('You can only change your own reservations.')
    if actor.role in rule.reason_required_for and not reason:
        raise ReasonRequired(f'A reason is required to move a {from_status} reservation to {to_status}.')
    if to_status == BookingStatus.COMPLETED and reservation.end_date >= timezone.localdate():
        raise IllegalTransition('A reservation completes only after its drop-off date.')
    return rule


def ensure_payment_transition(from_status: str, to_status: str) -> None:
    if (from_status, to_status) not in PAYMENT_TRANSITIONS:
        raise IllegalTransition(
            f'Cannot move a payment from {from_status} to {to_status}.',
            from_status=from_status,
            to_status=to_status,
        )


def _conditional_update(reservation: Reservation, from_status: str, **changes) -> Reservation:
    # Single-row compare-and-set on the status the decision was made against.
    changes.setdefault('updated_at', timezone.now())
    updated = Reservation.objects.filter(pk=reservation.pk, status=from_status).update(**changes)
    if not updated:
        current = Reservation.objects.filter(pk=reservation.pk).values_list('status', flat=True).first()
        raise IllegalTransition(
            'The reservation was changed by someone else.',
            from_status=current or from_status,
            to_status=changes.get('status'),
        )
    reservation.refresh_from_db()
    return reservation


def transition_booking_status(reservation_id, to_status: str, actor: Actor, reason: str | None = None) -> Reservation:
    reservation = get_reservation(reservation_id)
    reason = (reason or '').strip()
    ensure_booking_transition(reservation, to_status, actor, reason)

    if to_status == BookingStatus.CONFIRMED:
        return _confirm(reservation, actor)
    if to_status == BookingStatus.REJECTED:
        return _reject(reservation, actor, reason)
    if to_status == BookingStatus.CANCELLED:
        return _cancel(reservation, actor, reason)
    return _complete(reservation)


def _confirm(reservation: Reservation, actor: Actor) -> Reservation:
    with transaction.atomic():
        vehicle = load_bookable_vehicle(reservation.vehicle_id, for_update=True)
        result = find_conflict(vehicle, reservation.start_date, reservation.end_date, exclude_reservation_id=reservation.pk)
        if not result.available:
            logger.info(
                'Confirmation of %s refused: %s %s..%s',
                reservation.reference_number,
                result.conflict_kind,
                result.conflict_start,
                result.conflict_end,
            )
            raise Conflict(
                conflict_kind=result.conflict_kind,
                conflict_start=result.conflict_start,
                conflict_end=result.conflict_end,
            )
        _conditional_update(reservation, BookingStatus.PENDING, status=BookingStatus.CONFIRMED, confirmed_at=timezone.now())
        claim_days(reservation)
        notify(
            UserTarget(reservation.customer_id),
            Notification.Type.BOOKING_CONFIRMED,
            'Booking confirmed',
            f'Your reservation {reservation.reference_number} for {reservation.vehicle} '
            f'from {reservation.start_date:%Y-%m-%d} to {reservation.end_date:%Y-%m-%d} is confirmed.',
            reservation_link(reservation),
        )
    logger.info('Reservation %s confirmed by %s', reservation.reference_number, actor.user_id)
    return reservation


def _reject(reservation: Reservation, actor: Actor, reason: str) -> Reservation:
    with transaction.atomic():
        _conditional_update(reservation, BookingStatus.PENDING, status=BookingStatus.REJECTED, cancel_reason=reason)
        body = f'Your reservation request {reservation.reference_number} was declined.'
        if reason:
            body = f'{body} Reason: {reason}'
        notify(
            UserTarget(reservation.customer_id),
            Notification.Type.BOOKING_REJECTED,
            'Booking request declined',
            body,
            reservation_link(reservation),
        )
    logger.info('Reservation %s rejected by %s', reservation.reference_number, actor.user_id)
    return reservation


def _cancel(reservation: Reservation, actor: Actor, reason: str) -> Reservation:
    from_status = reservation.status
    with transaction.atomic():
        _conditional_update(
            reservation,
            from_status,
            status=BookingStatus.CANCELLED,
            cancel_reason=reason,
            cancelled_by_id=actor.user_id,
            cancelled_at=timezone.now(),
        )
        if from_status == BookingStatus.CONFIRMED:
            release_days(reservation)

        if actor.is_customer:
            notify(
                RoleTarget.back_office(),
                Notification.Type.BOOKING_CANCELLED,
                'Booking cancelled by customer',
                f'Reservation {reservation.reference_number} was cancelled by the customer.',
                reservation_link(reservation),
            )
        else:
            notify(
                UserTarget(reservation.customer_id),
                Notification.Type.BOOKING_CANCELLED,
                'Booking cancelled',
                f'Your reservation {reservation.reference_number} was cancelled. Reason: {reason}',
                reservation_link(reservation),
            )
    logger.info('Reservation %s cancelled (%s) by %s', reservation.reference_number, from_status, actor.role)
    return reservation


def _complete(reservation: Reservation) -> Reservation:
    return _conditional_update(
        reservation,
        BookingStatus.CONFIRMED,
        status=BookingStatus.COMPLETED,
        completed_at=timezone.now(),
    )


def complete_finished_reservations(queryset: QuerySet[Reservation] | None = None, today: date | None = None) -> int:
    """Move confirmed reservations whose drop-off date has passed to completed.

    A single conditional UPDATE; running it again, or concurrently, is a no-op.
    """
    today = today or timezone.localdate()
    candidates = Reservation.objects.filter(status=BookingStatus.CONFIRMED, end_date__lt=today)
    if queryset is not None:
        candidates = candidates.filter(pk__in=queryset.order_by().values('pk'))
    now = timezone.now()
    completed = candidates.update(status=BookingStatus.COMPLETED, completed_at=now, updated_at=now)
    if completed:
        logger.info('Auto-completed %s reservation(s) ending before %s', completed, today)
    return completed
