from decimal import Decimal

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.services import actor_for
from core.exceptions import Forbidden, IllegalTransition, PaymentNotFound
from notifications.models import Notification
from reservations.models import BookingStatus, PaymentStatus, Reservation
from reservations.tests.helpers import day, make_reservation, make_user, make_vehicle

from .models import Payment
from .services import initiate_payment, mark_failed, mark_paid, refund_payment, retry_payment


class PaymentLifecycleTests(TestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.staff = make_user('desk@example.com', role='staff')
		self.vehicle = make_vehicle()
		self.reservation = make_reservation(self.vehicle, self.customer, day(10), day(15))
		self.customer_actor = actor_for(self.customer)
		self.staff_actor = actor_for(self.staff)

	def test_initiate_creates_pending_attempt_for_the_total(self) -> None:
		payment = initiate_payment(self.reservation.pk, self.customer_actor)

		self.assertEqual(payment.status, PaymentStatus.PENDING)
		self.assertEqual(payment.amount, Decimal('500.00'))
		self.assertTrue(payment.payment_id.startswith('PAY-'))

	def test_paying_never_moves_the_booking_status(self) -> None:
		payment = initiate_payment(self.reservation.pk, self.customer_actor)

		with self.captureOnCommitCallbacks(execute=True):
			paid = mark_paid(payment.payment_id, self.customer_actor)

		self.assertEqual(paid.status, PaymentStatus.PAID)
		self.assertIsNotNone(paid.paid_at)
		self.assertEqual(paid.marked_paid_by_id, self.customer.pk)
		self.reservation.refresh_from_db()
		self.assertEqual(self.reservation.payment_status, PaymentStatus.PAID)
		self.assertIsNotNone(self.reservation.paid_at)
		self.assertEqual(self.reservation.status, BookingStatus.PENDING)
		self.assertTrue(Notification.objects.filter(recipient=self.customer, type=Notification.Type.PAYMENT_RECEIVED).exists())
		self.assertTrue(Notification.objects.filter(recipient=self.staff, type=Notification.Type.PAYMENT_RECEIVED).exists())

	def test_only_owner_or_staff_may_pay(self) -> None:
		payment = initiate_payment(self.reservation.pk, self.staff_actor)
		with self.assertRaises(Forbidden):
			mark_paid(payment.payment_id, actor_for(make_user('stranger@example.com')))
		with self.assertRaises(Forbidden):
			initiate_payment(self.reservation.pk, actor_for(make_user('another@example.com')))
		self.assertEqual(mark_paid(payment.payment_id, self.staff_actor).status, PaymentStatus.PAID)

	def test_failure_and_retry(self) -> None:
		payment = initiate_payment(self.reservation.pk, self.customer_actor)

		failed = mark_failed(payment.payment_id, 'Card declined')
		self.assertEqual(failed.status, PaymentStatus.FAILED)
		self.assertEqual(failed.failure_reason, 'Card declined')
		self.reservation.refresh_from_db()
		self.assertEqual(self.reservation.payment_status, PaymentStatus.FAILED)
		self.assertEqual(self.reservation.status, BookingStatus.PENDING)

		with self.assertRaises(IllegalTransition):
			mark_paid(payment.payment_id, self.customer_actor)

		retried = retry_payment(payment.payment_id, self.customer_actor)
		self.assertEqual(retried.status, PaymentStatus.PENDING)
		self.assertEqual(retried.failure_reason, '')
		self.assertEqual(mark_paid(payment.payment_id, self.customer_actor).status, PaymentStatus.PAID)

	def test_illegal_payment_transitions(self) -> None:
		payment = initiate_payment(self.reservation.pk, self.customer_actor)
		with self.assertRaises(IllegalTransition):
			retry_payment(payment.payment_id, self.customer_actor)
		with self.assertRaises(IllegalTransition):
			refund_payment(payment.payment_id, self.staff_actor)

		mark_paid(payment.payment_id, self.customer_actor)
		with self.assertRaises(IllegalTransition):
			mark_paid(payment.payment_id, self.customer_actor)
		with self.assertRaises(IllegalTransition):
			mark_failed(payment.payment_id)
		with self.assertRaises(IllegalTransition):
			initiate_payment(self.reservation.pk, self.customer_actor)

	def test_refund_is_staff_only(self) -> None:
		payment = initiate_payment(self.reservation.pk, self.customer_actor)
		mark_paid(payment.payment_id, self.customer_actor)

		with self.assertRaises(Forbidden):
			refund_payment(payment.payment_id, self.customer_actor)

		with self.captureOnCommitCallbacks(execute=True):
			refunded = refund_payment(payment.payment_id, self.staff_actor)

		self.assertEqual(refunded.status, PaymentStatus.REFUNDED)
		self.assertIsNotNone(refunded.refunded_at)
		self.reservation.refresh_from_db()
		self.assertEqual(self.reservation.payment_status, PaymentStatus.REFUNDED)
		self.assertTrue(Notification.objects.filter(recipient=self.customer, type=Notification.Type.PAYMENT_REFUNDED).exists())

	def test_cancelled_reservation_cannot_be_paid(self) -> None:
		cancelled = make_reservation(self.vehicle, self.customer, day(20), day(22), status=BookingStatus.CANCELLED)
		with self.assertRaises(IllegalTransition):
			initiate_payment(cancelled.pk, self.customer_actor)

	def test_open_attempt_is_reused(self) -> None:
		first = initiate_payment(self.reservation.pk, self.customer_actor)
		again = initiate_payment(self.reservation.pk, self.staff_actor)
		self.assertEqual(again.pk, first.pk)

		mark_failed(first.payment_id, 'Card declined')
		self.assertEqual(initiate_payment(self.reservation.pk, self.customer_actor).pk, first.pk)
		self.assertEqual(Payment.objects.filter(reservation=self.reservation).count(), 1)

	def test_refund_keeps_reservation_in_step_with_its_attempt(self) -> None:
		payment = initiate_payment(self.reservation.pk, self.customer_actor)
		mark_paid(payment.payment_id, self.customer_actor)
		with self.assertRaises(IllegalTransition):
			initiate_payment(self.reservation.pk, self.customer_actor)

		refund_payment(payment.payment_id, self.staff_actor)

		self.reservation.refresh_from_db()
		self.assertEqual(self.reservation.payment_status, PaymentStatus.REFUNDED)
		self.assertEqual(
			list(Payment.objects.filter(reservation=self.reservation).values_list('status', flat=True)),
			[PaymentStatus.REFUNDED],
		)

	def test_attempt_out_of_step_with_reservation_is_not_moved(self) -> None:
		payment = initiate_payment(self.reservation.pk, self.customer_actor)
		Reservation.objects.filter(pk=self.reservation.pk).update(payment_status=PaymentStatus.PAID)

		with self.assertRaises(IllegalTransition):
			mark_paid(payment.payment_id, self.customer_actor)

		payment.refresh_from_db()
		self.assertEqual(payment.status, PaymentStatus.PENDING)

	def test_attempt_cannot_be_paid_after_the_reservation_is_cancelled(self) -> None:
		payment = initiate_payment(self.reservation.pk, self.customer_actor)
		mark_failed(payment.payment_id, 'Timeout')
		Reservation.objects.filter(pk=self.reservation.pk).update(status=BookingStatus.CANCELLED)

		with self.assertRaises(IllegalTransition):
			retry_payment(payment.payment_id, self.customer_actor)

		other = make_reservation(self.vehicle, self.customer, day(20), day(22))
		open_payment = initiate_payment(other.pk, self.customer_actor)
		Reservation.objects.filter(pk=other.pk).update(status=BookingStatus.REJECTED)

		with self.assertRaises(IllegalTransition):
			mark_paid(open_payment.payment_id, self.customer_actor)
		open_payment.refresh_from_db()
		self.assertEqual(open_payment.status, PaymentStatus.PENDING)

	def test_unknown_payment(self) -> None:
		with self.assertRaises(PaymentNotFound):
			mark_paid('PAY-0000-000000', self.staff_actor)


class PaymentApiTests(APITestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.staff = make_user('desk@example.com', role='staff')
		self.reservation = make_reservation(make_vehicle(), self.customer, day(10), day(12))

	def test_pay_through_the_api(self) -> None:
		self.client.force_authenticate(self.customer)

		created = self.client.post(reverse('payments:create'), {'reservationId': self.reservation.pk}, format='json')
		self.assertEqual(created.status_code, status.HTTP_201_CREATED)
		payment_id = created.data['payment_id']
		self.assertEqual(created.data['amount'], '200.00')

		failed = self.client.patch(reverse('payments:failed', args=[payment_id]), {'reason': 'Timeout'}, format='json')
		self.assertEqual(failed.data['status'], PaymentStatus.FAILED)

		retried = self.client.patch(reverse('payments:retry', args=[payment_id]))
		self.assertEqual(retried.data['status'], PaymentStatus.PENDING)

		paid = self.client.patch(reverse('payments:paid', args=[payment_id]))
		self.assertEqual(paid.status_code, status.HTTP_200_OK)
		self.assertEqual(paid.data['status'], PaymentStatus.PAID)
		self.reservation.refresh_from_db()
		self.assertEqual(self.reservation.status, BookingStatus.PENDING)

		refund = self.client.patch(reverse('payments:refund', args=[payment_id]))
		self.assertEqual(refund.status_code, status.HTTP_403_FORBIDDEN)

		self.client.force_authenticate(self.staff)
		refund = self.client.patch(reverse('payments:refund', args=[payment_id]))
		self.assertEqual(refund.data['status'], PaymentStatus.REFUNDED)
		self.assertEqual(Payment.objects.get().status, PaymentStatus.REFUNDED)

	def test_unknown_payment_is_404(self) -> None:
		self.client.force_authenticate(self.staff)
		response = self.client.patch(reverse('payments:paid', args=['PAY-NOPE-000000']))
		self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
