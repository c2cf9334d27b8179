from decimal import Decimal
from unittest import mock

from django.test import TestCase

from accounts.services import actor_for
from core.exceptions import (
	Conflict,
	CustomerNotFound,
	Forbidden,
	InvalidAddons,
	InvalidRange,
	RangeTooLong,
	ReservationNotFound,
	VehicleInactive,
	VehicleNotFound,
)
from fleet.models import MaintenanceBlock, Vehicle
from notifications.models import Notification
from reservations.models import BookingStatus, Channel, PaymentStatus, Reservation, ReservedDay
from reservations.pricing import AddonSelection
from reservations.services import (
	ReservationRequest,
	create_manual_reservation,
	create_reservation,
	get_visible_reservation,
	list_reservations,
	quote,
	submit,
)

from .helpers import day, make_reservation, make_user, make_vehicle


class CreateReservationTests(TestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.staff = make_user('desk@example.com', role='staff')
		self.admin = make_user('owner@example.com', role='admin')
		self.vehicle = make_vehicle()

	def create(self, start=10, end=15, **kwargs):
		kwargs.setdefault('vehicle_id', self.vehicle.pk)
		kwargs.setdefault('customer_id', self.customer.pk)
		return create_reservation(start_date=day(start), end_date=day(end), **kwargs)

	def test_online_request_is_pending_and_priced(self) -> None:
		with self.captureOnCommitCallbacks(execute=True):
			reservation = self.create(addons={'driver': True})

		self.assertEqual(reservation.status, BookingStatus.PENDING)
		self.assertEqual(reservation.payment_status, PaymentStatus.PENDING)
		self.assertEqual(reservation.channel, Channel.ONLINE)
		self.assertEqual(reservation.base_amount, Decimal('500.00'))
		self.assertEqual(reservation.addons_amount, Decimal('250.00'))
		self.assertEqual(reservation.total_amount, Decimal('750.00'))
		self.assertTrue(reservation.addons['driver'])
		self.assertTrue(reservation.reference_number.startswith('RS-'))
		self.assertFalse(ReservedDay.objects.exists())

		self.assertEqual(
			Notification.objects.get(recipient=self.customer).type,
			Notification.Type.BOOKING_REQUESTED,
		)
		self.assertEqual(
			set(Notification.objects.filter(title='New booking request').values_list('recipient__email', flat=True)),
			{'desk@example.com', 'owner@example.com'},
		)

	def test_pending_requests_do_not_block_each_other(self) -> None:
		self.create()
		second = self.create(customer_id=make_user('second@example.com').pk)
		self.assertEqual(second.status, BookingStatus.PENDING)

	def test_past_start_rejected_for_customer_channels(self) -> None:
		for channel in (Channel.ONLINE, Channel.API):
			with self.subTest(channel=channel), self.assertRaises(InvalidRange):
				self.create(-2, 3, channel=channel)
		self.assertFalse(Reservation.objects.exists())

	def test_validation_happens_before_lookup(self) -> None:
		with self.assertRaises(InvalidRange):
			self.create(15, 10, vehicle_id=123456)
		with self.assertRaises(InvalidAddons):
			self.create(addons={'childSeats': -2})

	def test_vehicle_and_bounds_gates(self) -> None:
		with self.assertRaises(VehicleNotFound):
			self.create(vehicle_id=123456)

		self.vehicle.status = Vehicle.Status.MAINTENANCE
		self.vehicle.save(update_fields=['status'])
		with self.assertRaises(VehicleInactive):
			self.create()

		short_hire = make_vehicle(max_rental_days=3)
		with self.assertRaises(RangeTooLong):
			self.create(10, 14, vehicle_id=short_hire.pk)

	def test_unknown_customer(self) -> None:
		with self.assertRaises(CustomerNotFound):
			self.create(customer_id=555555)

	def test_request_over_maintenance_block_conflicts(self) -> None:
		MaintenanceBlock.objects.create(vehicle=self.vehicle, start_date=day(12), end_date=day(20))
		with self.assertRaises(Conflict) as raised:
			self.create()
		self.assertEqual(raised.exception.conflict_kind, 'maintenance')
		self.assertEqual(raised.exception.conflict_start, day(12))

	def test_notification_failure_does_not_fail_the_reservation(self) -> None:
		with mock.patch('notifications.services._resolve_recipients', side_effect=RuntimeError('mail down')):
			with self.assertLogs('notifications.services', level='ERROR'):
				with self.captureOnCommitCallbacks(execute=True):
					reservation = self.create()

		self.assertTrue(Reservation.objects.filter(pk=reservation.pk).exists())
		self.assertFalse(Notification.objects.exists())


class ManualReservationTests(TestCase):
	def setUp(self) -> None:
		self.customer = make_user('walkin@example.com')
		self.staff = make_user('desk@example.com', role='staff')
		self.vehicle = make_vehicle()

	def manual(self, actor, start=10, end=15, **kwargs):
		return create_manual_reservation(
			actor=actor,
			vehicle_id=self.vehicle.pk,
			customer_id=self.customer.pk,
			start_date=day(start),
			end_date=day(end),
			**kwargs,
		)

	def test_manual_booking_is_confirmed_and_blocks_later_requests(self) -> None:
		with self.captureOnCommitCallbacks(execute=True):
			reservation = self.manual(actor_for(self.staff))

		self.assertEqual(reservation.status, BookingStatus.CONFIRMED)
		self.assertEqual(reservation.channel, Channel.MANUAL)
		self.assertEqual(reservation.created_by_id, self.staff.pk)
		self.assertIsNotNone(reservation.confirmed_at)
		self.assertEqual(ReservedDay.objects.filter(reservation=reservation).count(), 5)
		self.assertEqual(
			Notification.objects.get(recipient=self.customer).type,
			Notification.Type.BOOKING_CONFIRMED,
		)
		self.assertFalse(Notification.objects.filter(recipient=self.staff).exists())

		with self.assertRaises(Conflict) as raised:
			create_reservation(
				vehicle_id=self.vehicle.pk,
				customer_id=make_user('late@example.com').pk,
				start_date=day(14),
				end_date=day(16),
			)
		self.assertEqual(raised.exception.conflict_kind, 'reservation')
		self.assertEqual((raised.exception.conflict_start, raised.exception.conflict_end), (day(10), day(15)))

	def test_manual_booking_may_start_in_the_past(self) -> None:
		reservation = self.manual(actor_for(self.staff), -1, 2)
		self.assertEqual(reservation.status, BookingStatus.CONFIRMED)

	def test_desk_payment(self) -> None:
		reservation = self.manual(actor_for(self.staff), mark_paid=True)
		self.assertEqual(reservation.payment_status, PaymentStatus.PAID)
		self.assertIsNotNone(reservation.paid_at)

	def test_customers_cannot_book_manually(self) -> None:
		with self.assertRaises(Forbidden):
			self.manual(actor_for(self.customer))
		self.assertFalse(Reservation.objects.exists())

	def test_manual_booking_conflicts_with_confirmed_reservation(self) -> None:
		self.manual(actor_for(self.staff))
		with self.assertRaises(Conflict):
			self.manual(actor_for(self.staff), 12, 13)
		self.assertEqual(Reservation.objects.count(), 1)


class SubmitAndQueryTests(TestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.other = make_user('other@example.com')
		self.staff = make_user('desk@example.com', role='staff')
		self.vehicle = make_vehicle()

	def request(self, customer, **overrides):
		values = {
			'vehicle_id': self.vehicle.pk,
			'customer_id': customer.pk,
			'start_date': day(10),
			'end_date': day(13),
			'addons': AddonSelection(delivery=True),
		}
		values.update(overrides)
		return ReservationRequest(**values)

	def test_customer_submits_for_themselves_only(self) -> None:
		reservation = submit(self.request(self.customer, channel=Channel.API), actor_for(self.customer))
		self.assertEqual(reservation.channel, Channel.API)
		self.assertEqual(reservation.total_amount, Decimal('330.00'))

		with self.assertRaises(Forbidden):
			submit(self.request(self.other), actor_for(self.customer))

	def test_staff_submits_manual_request(self) -> None:
		reservation = submit(self.request(self.customer, channel=Channel.MANUAL, mark_paid=True), actor_for(self.staff))
		self.assertEqual(reservation.status, BookingStatus.CONFIRMED)
		self.assertEqual(reservation.payment_status, PaymentStatus.PAID)

	def test_quote_does_not_persist(self) -> None:
		result = quote(vehicle_id=self.vehicle.pk, start_date=day(10), end_date=day(15), addons=AddonSelection(driver=True))
		self.assertEqual(result.total, Decimal('750.00'))
		self.assertFalse(Reservation.objects.exists())

	def test_listing_visibility_and_lazy_completion(self) -> None:
		mine = make_reservation(self.vehicle, self.customer, day(-6), day(-2), status=BookingStatus.CONFIRMED)
		make_reservation(self.vehicle, self.other, day(5), day(8))

		self.assertEqual(list(list_reservations(actor_for(self.customer))), [mine])
		mine.refresh_from_db()
		self.assertEqual(mine.status, BookingStatus.COMPLETED)
		self.assertEqual(list_reservations(actor_for(self.staff)).count(), 2)

	def test_detail_hides_other_customers_reservations(self) -> None:
		theirs = make_reservation(self.vehicle, self.other, day(5), day(8))
		self.assertEqual(get_visible_reservation(actor_for(self.other), theirs.pk), theirs)
		self.assertEqual(get_visible_reservation(actor_for(self.staff), theirs.pk), theirs)
		with self.assertRaises(ReservationNotFound):
			get_visible_reservation(actor_for(self.customer), theirs.pk)
