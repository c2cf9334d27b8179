import random
import threading
from datetime import timedelta
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.db import connection
from django.test import TestCase, TransactionTestCase

from accounts.services import Actor, actor_for
from core.exceptions import Conflict, Forbidden, IllegalTransition, ReasonRequired, ReservationNotFound
from core.intervals import daterange, overlaps
from fleet.models import MaintenanceBlock
from notifications.models import Notification
from reservations.availability import AvailabilityResult
from reservations.models import BookingStatus, Reservation, ReservedDay
from reservations.transitions import can_transition, complete_finished_reservations, transition_booking_status

from .helpers import day, make_reservation, make_user, make_vehicle


class BookingTransitionTests(TestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.other_customer = make_user('someone@example.com')
		self.staff = make_user('desk@example.com', role='staff')
		self.vehicle = make_vehicle()
		self.staff_actor = actor_for(self.staff)
		self.customer_actor = actor_for(self.customer)

	def pending(self, start=10, end=15, **extra):
		return make_reservation(self.vehicle, self.customer, day(start), day(end), **extra)

	def test_staff_confirms_pending_request(self) -> None:
		reservation = self.pending()

		with self.captureOnCommitCallbacks(execute=True):
			confirmed = transition_booking_status(reservation.pk, BookingStatus.CONFIRMED, self.staff_actor)

		self.assertEqual(confirmed.status, BookingStatus.CONFIRMED)
		self.assertIsNotNone(confirmed.confirmed_at)
		self.assertEqual(ReservedDay.objects.filter(reservation=reservation).count(), 5)
		self.assertTrue(
			Notification.objects.filter(recipient=self.customer, type=Notification.Type.BOOKING_CONFIRMED).exists()
		)

	def test_customer_cannot_confirm(self) -> None:
		reservation = self.pending()
		with self.assertRaises(Forbidden):
			transition_booking_status(reservation.pk, BookingStatus.CONFIRMED, self.customer_actor)
		reservation.refresh_from_db()
		self.assertEqual(reservation.status, BookingStatus.PENDING)

	def test_confirming_overlapping_requests_only_first_wins(self) -> None:
		first = self.pending(10, 15)
		second = make_reservation(self.vehicle, self.other_customer, day(13), day(17))

		transition_booking_status(first.pk, BookingStatus.CONFIRMED, self.staff_actor)
		with self.assertRaises(Conflict) as raised:
			transition_booking_status(second.pk, BookingStatus.CONFIRMED, self.staff_actor)

		self.assertEqual(raised.exception.conflict_kind, 'reservation')
		self.assertEqual(raised.exception.conflict_start, day(10))
		second.refresh_from_db()
		self.assertEqual(second.status, BookingStatus.PENDING)
		self.assertFalse(ReservedDay.objects.filter(reservation=second).exists())

	def test_confirming_over_a_later_maintenance_block_conflicts(self) -> None:
		reservation = self.pending(10, 15)
		MaintenanceBlock.objects.create(vehicle=self.vehicle, start_date=day(14), end_date=day(16))

		with self.assertRaises(Conflict) as raised:
			transition_booking_status(reservation.pk, BookingStatus.CONFIRMED, self.staff_actor)

		self.assertEqual(raised.exception.conflict_kind, 'maintenance')

	def test_exclusion_ledger_rejects_a_confirmation_that_slipped_past_the_check(self) -> None:
		first = self.pending(10, 15)
		second = make_reservation(self.vehicle, self.other_customer, day(12), day(14))

		def always_free(vehicle, start, end, exclude_reservation_id=None):
			return AvailabilityResult(vehicle=vehicle, start_date=start, end_date=end, available=True)

		with mock.patch('reservations.transitions.find_conflict', side_effect=always_free):
			transition_booking_status(first.pk, BookingStatus.CONFIRMED, self.staff_actor)
			with self.assertRaises(Conflict) as raised:
				transition_booking_status(second.pk, BookingStatus.CONFIRMED, self.staff_actor)

		self.assertEqual(raised.exception.conflict_kind, 'reservation')
		self.assertEqual((raised.exception.conflict_start, raised.exception.conflict_end), (day(10), day(15)))
		second.refresh_from_db()
		self.assertEqual(second.status, BookingStatus.PENDING)
		self.assertEqual(Reservation.objects.filter(vehicle=self.vehicle, status=BookingStatus.CONFIRMED).count(), 1)

	def test_reject_notifies_customer(self) -> None:
		reservation = self.pending()

		with self.captureOnCommitCallbacks(execute=True):
			rejected = transition_booking_status(reservation.pk, BookingStatus.REJECTED, self.staff_actor, 'Fleet busy')

		self.assertEqual(rejected.status, BookingStatus.REJECTED)
		notification = Notification.objects.get(recipient=self.customer, type=Notification.Type.BOOKING_REJECTED)
		self.assertIn('Fleet busy', notification.message)

	def test_customer_cancels_own_pending_request_without_reason(self) -> None:
		reservation = self.pending()

		with self.captureOnCommitCallbacks(execute=True):
			cancelled = transition_booking_status(reservation.pk, BookingStatus.CANCELLED, self.customer_actor)

		self.assertEqual(cancelled.status, BookingStatus.CANCELLED)
		self.assertEqual(cancelled.cancelled_by_id, self.customer.pk)
		self.assertIsNotNone(cancelled.cancelled_at)
		self.assertTrue(Notification.objects.filter(recipient=self.staff, type=Notification.Type.BOOKING_CANCELLED).exists())
		self.assertFalse(Notification.objects.filter(recipient=self.customer).exists())

	def test_customer_cannot_cancel_someone_elses_request(self) -> None:
		reservation = self.pending()
		with self.assertRaises(Forbidden):
			transition_booking_status(reservation.pk, BookingStatus.CANCELLED, actor_for(self.other_customer))

	def test_staff_cancellation_requires_reason(self) -> None:
		reservation = self.pending()

		with self.assertRaises(ReasonRequired):
			transition_booking_status(reservation.pk, BookingStatus.CANCELLED, self.staff_actor)
		with self.assertRaises(ReasonRequired):
			transition_booking_status(reservation.pk, BookingStatus.CANCELLED, self.staff_actor, '   ')

		with self.captureOnCommitCallbacks(execute=True):
			cancelled = transition_booking_status(reservation.pk, BookingStatus.CANCELLED, self.staff_actor, 'Duplicate')
		self.assertEqual(cancelled.cancel_reason, 'Duplicate')
		self.assertEqual(cancelled.cancelled_by_id, self.staff.pk)
		notification = Notification.objects.get(recipient=self.customer, type=Notification.Type.BOOKING_CANCELLED)
		self.assertIn('Duplicate', notification.message)

	def test_cancelling_confirmed_reservation_releases_its_days(self) -> None:
		reservation = self.pending(10, 15, status=BookingStatus.CONFIRMED)
		self.assertEqual(ReservedDay.objects.filter(vehicle=self.vehicle).count(), 5)

		with self.assertRaises(Forbidden):
			transition_booking_status(reservation.pk, BookingStatus.CANCELLED, self.customer_actor, 'Changed plans')
		transition_booking_status(reservation.pk, BookingStatus.CANCELLED, self.staff_actor, 'Vehicle damaged')

		self.assertFalse(ReservedDay.objects.filter(vehicle=self.vehicle).exists())
		newcomer = make_reservation(self.vehicle, self.other_customer, day(10), day(15))
		confirmed = transition_booking_status(newcomer.pk, BookingStatus.CONFIRMED, self.staff_actor)
		self.assertEqual(confirmed.status, BookingStatus.CONFIRMED)

	def test_terminal_reservations_are_immutable(self) -> None:
		system = Actor.system()
		for status in (BookingStatus.CANCELLED, BookingStatus.REJECTED, BookingStatus.COMPLETED):
			reservation = self.pending(status=status)
			for target, actor in (
				(BookingStatus.PENDING, self.staff_actor),
				(BookingStatus.CONFIRMED, self.staff_actor),
				(BookingStatus.CANCELLED, self.staff_actor),
				(BookingStatus.COMPLETED, system),
			):
				with self.subTest(status=status, target=target), self.assertRaises(IllegalTransition):
					transition_booking_status(reservation.pk, target, actor, 'reason')
			reservation.refresh_from_db()
			self.assertEqual(reservation.status, status)

	def test_transitions_outside_the_table_are_illegal(self) -> None:
		reservation = self.pending()
		with self.assertRaises(IllegalTransition):
			transition_booking_status(reservation.pk, BookingStatus.COMPLETED, Actor.system())
		with self.assertRaises(IllegalTransition):
			transition_booking_status(reservation.pk, BookingStatus.PENDING, self.staff_actor)
		with self.assertRaises(IllegalTransition):
			transition_booking_status(reservation.pk, 'archived', self.staff_actor)

	def test_stale_decision_loses_to_concurrent_change(self) -> None:
		reservation = self.pending()
		stale = Reservation.objects.get(pk=reservation.pk)
		Reservation.objects.filter(pk=reservation.pk).update(status=BookingStatus.CANCELLED)

		with mock.patch('reservations.transitions.get_reservation', return_value=stale):
			with self.assertRaises(IllegalTransition):
				transition_booking_status(reservation.pk, BookingStatus.REJECTED, self.staff_actor)

		reservation.refresh_from_db()
		self.assertEqual(reservation.status, BookingStatus.CANCELLED)

	def test_unknown_reservation(self) -> None:
		with self.assertRaises(ReservationNotFound):
			transition_booking_status(987654, BookingStatus.CONFIRMED, self.staff_actor)

	def test_can_transition(self) -> None:
		self.assertTrue(can_transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, 'staff'))
		self.assertTrue(can_transition(BookingStatus.PENDING, BookingStatus.CANCELLED, 'customer'))
		self.assertFalse(can_transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED, 'customer'))
		self.assertFalse(can_transition(BookingStatus.COMPLETED, BookingStatus.CANCELLED, 'admin'))


class AutoCompletionTests(TestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.vehicle = make_vehicle()

	def test_finished_confirmed_reservations_complete_once(self) -> None:
		finished = make_reservation(self.vehicle, self.customer, day(-6), day(-2), status=BookingStatus.CONFIRMED)
		running = make_reservation(self.vehicle, self.customer, day(-1), day(3), status=BookingStatus.CONFIRMED)
		stale_request = make_reservation(self.vehicle, self.customer, day(-9), day(-7))

		self.assertEqual(complete_finished_reservations(), 1)
		self.assertEqual(complete_finished_reservations(), 0)

		finished.refresh_from_db()
		running.refresh_from_db()
		stale_request.refresh_from_db()
		self.assertEqual(finished.status, BookingStatus.COMPLETED)
		self.assertIsNotNone(finished.completed_at)
		self.assertEqual(running.status, BookingStatus.CONFIRMED)
		self.assertEqual(stale_request.status, BookingStatus.PENDING)
		self.assertEqual(ReservedDay.objects.filter(reservation=finished).count(), 4)

	def test_completion_is_scoped_to_the_given_queryset(self) -> None:
		other_customer = make_user('other@example.com')
		mine = make_reservation(self.vehicle, self.customer, day(-6), day(-4), status=BookingStatus.CONFIRMED)
		theirs = make_reservation(self.vehicle, other_customer, day(-3), day(-1), status=BookingStatus.CONFIRMED)

		completed = complete_finished_reservations(Reservation.objects.filter(customer=self.customer))

		self.assertEqual(completed, 1)
		mine.refresh_from_db()
		theirs.refresh_from_db()
		self.assertEqual(mine.status, BookingStatus.COMPLETED)
		self.assertEqual(theirs.status, BookingStatus.CONFIRMED)

	def test_drop_off_day_itself_is_not_yet_finished(self) -> None:
		reservation = make_reservation(self.vehicle, self.customer, day(-3), day(0), status=BookingStatus.CONFIRMED)
		self.assertEqual(complete_finished_reservations(), 0)
		self.assertEqual(complete_finished_reservations(today=day(1)), 1)
		reservation.refresh_from_db()
		self.assertEqual(reservation.status, BookingStatus.COMPLETED)

	def test_system_actor_completes_after_drop_off(self) -> None:
		finished = make_reservation(self.vehicle, self.customer, day(-5), day(-2), status=BookingStatus.CONFIRMED)
		upcoming = make_reservation(self.vehicle, self.customer, day(2), day(5), status=BookingStatus.CONFIRMED)

		self.assertEqual(
			transition_booking_status(finished.pk, BookingStatus.COMPLETED, Actor.system()).status,
			BookingStatus.COMPLETED,
		)
		with self.assertRaises(IllegalTransition):
			transition_booking_status(upcoming.pk, BookingStatus.COMPLETED, Actor.system())
		with self.assertRaises(Forbidden):
			transition_booking_status(upcoming.pk, BookingStatus.COMPLETED, actor_for(make_user('desk@example.com', role='admin')))

	def test_management_command(self) -> None:
		make_reservation(self.vehicle, self.customer, day(-6), day(-2), status=BookingStatus.CONFIRMED)

		dry_run = StringIO()
		call_command('complete_reservations', '--dry-run', stdout=dry_run)
		self.assertIn('1 reservation(s) would be completed', dry_run.getvalue())
		self.assertTrue(Reservation.objects.filter(status=BookingStatus.CONFIRMED).exists())

		out = StringIO()
		call_command('complete_reservations', stdout=out)
		self.assertIn('Completed 1 reservation(s).', out.getvalue())
		self.assertFalse(Reservation.objects.filter(status=BookingStatus.CONFIRMED).exists())


class SequentialConfirmationTests(TestCase):
	def assert_confirmed_never_overlap(self, vehicle) -> None:
		confirmed = list(Reservation.objects.filter(vehicle=vehicle, status=BookingStatus.CONFIRMED))
		for index, first in enumerate(confirmed):
			for second in confirmed[index + 1:]:
				self.assertFalse(
					overlaps(first.start_date, first.end_date, second.start_date, second.end_date),
					f'{first.reference_number} overlaps {second.reference_number}',
				)
		expected_days = sorted(
			(reservation.pk, held)
			for reservation in confirmed
			for held in daterange(reservation.start_date, reservation.end_date)
		)
		ledger_days = sorted(ReservedDay.objects.filter(vehicle=vehicle).values_list('reservation_id', 'day'))
		self.assertEqual(ledger_days, expected_days)

	def test_random_requests_confirmed_in_turn(self) -> None:
		rng = random.Random(20261019)
		staff = actor_for(make_user('desk@example.com', role='staff'))
		customer = make_user('renter@example.com')

		for round_number in range(6):
			vehicle = make_vehicle(model=f'Corolla {round_number}')
			accepted = []
			for _ in range(15):
				start = day(rng.randint(1, 60))
				end = start + timedelta(days=rng.randint(1, 8))
				reservation = make_reservation(vehicle, customer, start, end)
				should_win = not any(overlaps(start, end, held_start, held_end) for held_start, held_end in accepted)

				try:
					transition_booking_status(reservation.pk, BookingStatus.CONFIRMED, staff)
				except Conflict:
					won = False
				else:
					won = True

				self.assertEqual(won, should_win, f'{start}..{end} against {accepted}')
				if won:
					accepted.append((start, end))
				self.assert_confirmed_never_overlap(vehicle)


class ConcurrentConfirmationTests(TransactionTestCase):
	def race(self, *reservation_ids):
		staff = actor_for(make_user('desk@example.com', role='staff'))
		barrier = threading.Barrier(len(reservation_ids))
		outcomes = []

		def confirm(reservation_id):
			try:
				barrier.wait(timeout=10)
				transition_booking_status(reservation_id, BookingStatus.CONFIRMED, staff)
				outcomes.append('confirmed')
			except Conflict:
				outcomes.append('conflict')
			finally:
				connection.close()

		threads = [threading.Thread(target=confirm, args=(pk,)) for pk in reservation_ids]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join(timeout=60)
		return sorted(outcomes)

	def test_only_one_of_two_racing_confirmations_succeeds(self) -> None:
		vehicle = make_vehicle()
		first = make_reservation(vehicle, make_user('a@example.com'), day(10), day(15))
		second = make_reservation(vehicle, make_user('b@example.com'), day(12), day(18))

		self.assertEqual(self.race(first.pk, second.pk), ['confirmed', 'conflict'])
		confirmed = Reservation.objects.get(vehicle=vehicle, status=BookingStatus.CONFIRMED)
		self.assertEqual(
			sorted(ReservedDay.objects.filter(vehicle=vehicle).values_list('day', flat=True)),
			list(daterange(confirmed.start_date, confirmed.end_date)),
		)

	def test_racing_confirmations_of_disjoint_ranges_both_succeed(self) -> None:
		vehicle = make_vehicle()
		first = make_reservation(vehicle, make_user('a@example.com'), day(10), day(15))
		second = make_reservation(vehicle, make_user('b@example.com'), day(15), day(18))

		self.assertEqual(self.race(first.pk, second.pk), ['confirmed', 'confirmed'])
		self.assertEqual(ReservedDay.objects.filter(vehicle=vehicle).count(), 8)
