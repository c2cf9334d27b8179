from django.test import TestCase

from core.exceptions import InvalidRange, RangeTooLong, RangeTooShort, VehicleInactive, VehicleNotFound
from fleet.models import MaintenanceBlock, Vehicle
from reservations.availability import blocked_intervals, check_availability
from reservations.models import BookingStatus

from .helpers import day, make_reservation, make_user, make_vehicle


class CheckAvailabilityTests(TestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.vehicle = make_vehicle()

	def test_free_vehicle_is_available(self) -> None:
		result = check_availability(self.vehicle.pk, day(10), day(15))
		self.assertTrue(result.available)
		self.assertIsNone(result.conflict_kind)

	def test_pending_reservation_does_not_block(self) -> None:
		make_reservation(self.vehicle, self.customer, day(10), day(15))
		self.assertTrue(check_availability(self.vehicle.pk, day(12), day(14)).available)

	def test_confirmed_reservation_blocks_overlap(self) -> None:
		reservation = make_reservation(self.vehicle, self.customer, day(10), day(15), status=BookingStatus.CONFIRMED)

		result = check_availability(self.vehicle.pk, day(14), day(18))

		self.assertFalse(result.available)
		self.assertEqual(result.conflict_kind, 'reservation')
		self.assertEqual((result.conflict_start, result.conflict_end), (day(10), day(15)))
		self.assertEqual(result.conflict_id, reservation.pk)

	def test_back_to_back_rentals_do_not_conflict(self) -> None:
		make_reservation(self.vehicle, self.customer, day(10), day(15), status=BookingStatus.CONFIRMED)
		self.assertTrue(check_availability(self.vehicle.pk, day(15), day(18)).available)
		self.assertTrue(check_availability(self.vehicle.pk, day(7), day(10)).available)

	def test_terminal_reservations_do_not_block(self) -> None:
		for status in (BookingStatus.CANCELLED, BookingStatus.REJECTED):
			make_reservation(self.vehicle, self.customer, day(10), day(15), status=status)
		self.assertTrue(check_availability(self.vehicle.pk, day(10), day(15)).available)

	def test_maintenance_block_conflict(self) -> None:
		MaintenanceBlock.objects.create(vehicle=self.vehicle, start_date=day(12), end_date=day(14), reason='Service')

		result = check_availability(self.vehicle.pk, day(10), day(13))

		self.assertFalse(result.available)
		self.assertEqual(result.conflict_kind, 'maintenance')
		self.assertEqual((result.conflict_start, result.conflict_end), (day(12), day(14)))

	def test_earliest_conflict_is_reported(self) -> None:
		MaintenanceBlock.objects.create(vehicle=self.vehicle, start_date=day(20), end_date=day(22))
		make_reservation(self.vehicle, self.customer, day(16), day(18), status=BookingStatus.CONFIRMED)

		result = check_availability(self.vehicle.pk, day(15), day(25))

		self.assertEqual(result.conflict_kind, 'reservation')
		self.assertEqual(result.conflict_start, day(16))

	def test_excluded_reservation_is_ignored(self) -> None:
		reservation = make_reservation(self.vehicle, self.customer, day(10), day(15), status=BookingStatus.CONFIRMED)
		result = check_availability(self.vehicle.pk, day(10), day(15), exclude_reservation_id=reservation.pk)
		self.assertTrue(result.available)

	def test_other_vehicles_do_not_interfere(self) -> None:
		other = make_vehicle(make='Honda', model='Civic')
		make_reservation(other, self.customer, day(10), day(15), status=BookingStatus.CONFIRMED)
		MaintenanceBlock.objects.create(vehicle=other, start_date=day(10), end_date=day(15))
		self.assertTrue(check_availability(self.vehicle.pk, day(10), day(15)).available)

	def test_invalid_range(self) -> None:
		with self.assertRaises(InvalidRange):
			check_availability(self.vehicle.pk, day(15), day(10))
		with self.assertRaises(InvalidRange):
			check_availability(self.vehicle.pk, day(10), day(10))

	def test_rental_day_bounds(self) -> None:
		vehicle = make_vehicle(min_rental_days=3, max_rental_days=5)

		with self.assertRaises(RangeTooShort) as short:
			check_availability(vehicle.pk, day(10), day(12))
		self.assertEqual(short.exception.extra['min_days'], 3)
		with self.assertRaises(RangeTooLong):
			check_availability(vehicle.pk, day(10), day(16))
		with self.assertRaises(InvalidRange):
			check_availability(vehicle.pk, day(10), day(11))
		self.assertTrue(check_availability(vehicle.pk, day(10), day(15)).available)

	def test_unknown_and_inactive_vehicles(self) -> None:
		with self.assertRaises(VehicleNotFound):
			check_availability(999999, day(10), day(12))

		for status in (Vehicle.Status.INACTIVE, Vehicle.Status.MAINTENANCE):
			vehicle = make_vehicle(status=status)
			with self.subTest(status=status), self.assertRaises(VehicleInactive):
				check_availability(vehicle.pk, day(10), day(12))


class BlockedIntervalsTests(TestCase):
	def test_calendar_lists_confirmed_reservations_and_blocks(self) -> None:
		customer = make_user('calendar@example.com')
		vehicle = make_vehicle(min_rental_days=2, max_rental_days=14)
		make_reservation(vehicle, customer, day(20), day(23), status=BookingStatus.CONFIRMED)
		make_reservation(vehicle, customer, day(5), day(8))
		MaintenanceBlock.objects.create(vehicle=vehicle, start_date=day(10), end_date=day(12), reason='Tyres')

		calendar = blocked_intervals(vehicle.pk)

		self.assertEqual((calendar.min_days, calendar.max_days), (2, 14))
		self.assertTrue(calendar.is_bookable)
		self.assertEqual(
			[(interval.start_date, interval.end_date, interval.kind) for interval in calendar.blocked],
			[(day(10), day(12), 'maintenance'), (day(20), day(23), 'reservation')],
		)
		self.assertEqual(calendar.blocked[0].reason, 'Tyres')

	def test_calendar_for_unknown_vehicle(self) -> None:
		with self.assertRaises(VehicleNotFound):
			blocked_intervals(424242)
