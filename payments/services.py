"""Payment attempts and the payment sub-status of reservations.

Payment completion is an internal status flip; no gateway is contacted. A
payment change never moves the booking status.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from accounts.services import Actor
from core.exceptions import Forbidden, IllegalTransition, PaymentNotFound
from notifications.models import Notification
from notifications.services import RoleTarget, UserTarget, notify
from reservations.models import BookingStatus, PaymentStatus, Reservation
from reservations.transitions import ensure_payment_transition, get_reservation, reservation_link

from .models import Payment

logger = logging.getLogger(__name__)

UNPAYABLE_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.REJECTED})
OPEN_ATTEMPT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.FAILED)


def get_payment(payment_id: str) -> Payment:
    try:
        return Payment.objects.select_related('reservation', 'reservation__vehicle').get(reference_number=payment_id)
    except Payment.DoesNotExist as exc:
        raise PaymentNotFound(payment_id=payment_id) from exc


def ensure_can_pay(reservation: Reservation, actor: Actor) -> None:
    if actor.is_back_office or actor.is_system:
        return
    if actor.is_customer and reservation.customer_id == actor.user_id:
        return
    raise Forbidden('You can only pay for your own reservations.')


def ensure_payable(reservation: Reservation) -> None:
    if reservation.status in UNPAYABLE_STATUSES:
        raise IllegalTransition(
            f'A {reservation.status} reservation cannot be paid.',
            from_status=reservation.status,
        )


def _move(payment: Payment, to_status: str, **changes) -> Payment:
    """Conditionally move ``payment`` and mirror the status onto its reservation.

    The reservation is only updated while it still shows the attempt's old
    status; anything else means the two have drifted apart and nothing is
    written.
    """
    from_status = payment.status
    ensure_payment_transition(from_status, to_status)
    now = timezone.now()
    with transaction.atomic():
        updated = Payment.objects.filter(pk=payment.pk, status=from_status).update(
            status=to_status,
            updated_at=now,
            **changes,
        )
        if not updated:
            raise IllegalTransition(
                'The payment was changed by someone else.',
                from_status=from_status,
                to_status=to_status,
            )
        mirror = {'payment_status': to_status, 'updated_at': now}
        if to_status == PaymentStatus.PAID:
            mirror['paid_at'] = changes.get('paid_at') or now
        mirrored = Reservation.objects.filter(pk=payment.reservation_id, payment_status=from_status).update(**mirror)
        if not mirrored:
            raise IllegalTransition(
                'The reservation payment status no longer matches this payment.',
                from_status=from_status,
                to_status=to_status,
            )
    payment.refresh_from_db()
    return payment


def initiate_payment(reservation_id, actor: Actor) -> Payment:
    """Open a payment attempt for the reservation total.

    A reservation has at most one open attempt; while one is pending or
    failed it is returned instead of creating another.
    """
    reservation = get_reservation(reservation_id)
    ensure_can_pay(reservation, actor)
    ensure_payable(reservation)

    with transaction.atomic():
        reservation = Reservation.objects.select_for_update().get(pk=reservation.pk)
        if reservation.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
            raise IllegalTransition(
                'This reservation has already been paid.',
                from_status=reservation.payment_status,
                to_status=PaymentStatus.PENDING,
            )
        existing = (
            Payment.objects.filter(reservation=reservation, status__in=OPEN_ATTEMPT_STATUSES)
            .order_by('-created_at')
            .first()
        )
        if existing is not None:
            logger.info('Reusing open payment %s for %s', existing.payment_id, reservation.reference_number)
            return existing
        payment = Payment.objects.create(
            reservation=reservation,
            amount=reservation.total_amount,
            currency=settings.RENTAL_CURRENCY,
        )
        Reservation.objects.filter(pk=reservation.pk).update(payment_status=PaymentStatus.PENDING, updated_at=timezone.now())
    logger.info('Payment %s initiated for %s (%s)', payment.payment_id, reservation.reference_number, payment.amount)
    return payment


def mark_paid(payment_id: str, actor: Actor) -> Payment:
    payment = get_payment(payment_id)
    reservation = payment.reservation
    ensure_can_pay(reservation, actor)
    ensure_payable(reservation)
    payment = _move(
        payment,
        PaymentStatus.PAID,
        paid_at=payment.paid_at or timezone.now(),
        marked_paid_by_id=actor.user_id,
    )
    notify(
        UserTarget(reservation.customer_id),
        Notification.Type.PAYMENT_RECEIVED,
        'Payment received',
        f'We received {payment.amount} {payment.currency} for reservation {reservation.reference_number}.',
        reservation_link(reservation),
    )
    notify(
        RoleTarget.back_office(),
        Notification.Type.PAYMENT_RECEIVED,
        'Reservation paid',
        f'Payment {payment.payment_id} for reservation {reservation.reference_number} was marked paid.',
        reservation_link(reservation),
    )
    logger.info('Payment %s marked paid by %s', payment.payment_id, actor.role)
    return payment


def mark_failed(payment_id: str, reason: str = '', actor: Actor | None = None) -> Payment:
    payment = get_payment(payment_id)
    if actor is not None:
        ensure_can_pay(payment.reservation, actor)
    payment = _move(payment, PaymentStatus.FAILED, failed_at=timezone.now(), failure_reason=(reason or '')[:255])
    logger.warning('Payment %s failed: %s', payment.payment_id, reason or 'no reason given')
    return payment


def retry_payment(payment_id: str, actor: Actor) -> Payment:
    payment = get_payment(payment_id)
    ensure_can_pay(payment.reservation, actor)
    ensure_payable(payment.reservation)
    return _move(payment, PaymentStatus.PENDING, failure_reason='')


def refund_payment(payment_id: str, actor: Actor) -> Payment:
    payment = get_payment(payment_id)
    if not actor.is_back_office:
        raise Forbidden('Only staff can refund payments.')
    payment = _move(payment, PaymentStatus.REFUNDED, refunded_at=timezone.now())
    reservation = payment.reservation
    notify(
        UserTarget(reservation.customer_id),
        Notification.Type.PAYMENT_REFUNDED,
        'Payment refunded',
        f'Your payment {payment.payment_id} for reservation {reservation.reference_number} was refunded.',
        reservation_link(reservation),
    )
    logger.info('Payment %s refunded by %s', payment.payment_id, actor.user_id)
    return payment
