from datetime import date, datetime

from django.test import SimpleTestCase, TestCase

from fleet.models import MaintenanceBlock
from reservations.tests.helpers import make_vehicle

from .exceptions import Conflict, InvalidRange, RangeTooShort, ReservationError, VehicleInactive, VehicleNotFound
from .intervals import daterange, overlap_q, overlaps, whole_days_between


class OverlapTests(SimpleTestCase):
	def test_overlap_is_symmetric(self) -> None:
		cases = [
			(date(2024, 3, 1), date(2024, 3, 5), date(2024, 3, 4), date(2024, 3, 8)),
			(date(2024, 3, 1), date(2024, 3, 5), date(2024, 3, 5), date(2024, 3, 8)),
			(date(2024, 3, 1), date(2024, 3, 10), date(2024, 3, 3), date(2024, 3, 4)),
			(date(2024, 3, 1), date(2024, 3, 2), date(2024, 4, 1), date(2024, 4, 2)),
		]
		for a_start, a_end, b_start, b_end in cases:
			with self.subTest(a=(a_start, a_end), b=(b_start, b_end)):
				self.assertEqual(
					overlaps(a_start, a_end, b_start, b_end),
					overlaps(b_start, b_end, a_start, a_end),
				)

	def test_adjacent_ranges_do_not_overlap(self) -> None:
		self.assertFalse(overlaps(date(2024, 3, 1), date(2024, 3, 5), date(2024, 3, 5), date(2024, 3, 9)))
		self.assertFalse(overlaps(date(2024, 3, 5), date(2024, 3, 9), date(2024, 3, 1), date(2024, 3, 5)))

	def test_shared_day_and_containment_overlap(self) -> None:
		self.assertTrue(overlaps(date(2024, 3, 1), date(2024, 3, 5), date(2024, 3, 4), date(2024, 3, 9)))
		self.assertTrue(overlaps(date(2024, 3, 1), date(2024, 3, 31), date(2024, 3, 10), date(2024, 3, 11)))
		self.assertTrue(overlaps(date(2024, 3, 1), date(2024, 3, 5), date(2024, 3, 1), date(2024, 3, 5)))

	def test_daterange_excludes_end(self) -> None:
		self.assertEqual(
			list(daterange(date(2024, 2, 28), date(2024, 3, 2))),
			[date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)],
		)

	def test_whole_days_between_rounds_partial_days_up(self) -> None:
		self.assertEqual(whole_days_between(date(2024, 3, 1), date(2024, 3, 6)), 5)
		self.assertEqual(whole_days_between(datetime(2024, 3, 1, 10), datetime(2024, 3, 3, 9)), 2)
		self.assertEqual(whole_days_between(datetime(2024, 3, 1, 10), datetime(2024, 3, 3, 10)), 2)
		self.assertEqual(whole_days_between(date(2024, 3, 6), date(2024, 3, 1)), -5)


class OverlapQueryTests(TestCase):
	def test_overlap_q_matches_the_python_predicate(self) -> None:
		vehicle = make_vehicle()
		block = MaintenanceBlock.objects.create(vehicle=vehicle, start_date=date(2024, 3, 10), end_date=date(2024, 3, 15))
		blocks = MaintenanceBlock.objects.filter(vehicle=vehicle)

		self.assertFalse(blocks.filter(overlap_q(date(2024, 3, 15), date(2024, 3, 20))).exists())
		self.assertFalse(blocks.filter(overlap_q(date(2024, 3, 5), date(2024, 3, 10))).exists())
		self.assertEqual(list(blocks.filter(overlap_q(date(2024, 3, 14), date(2024, 3, 16)))), [block])
		self.assertEqual(list(blocks.filter(overlap_q(date(2024, 3, 1), date(2024, 3, 31)))), [block])


class ErrorTaxonomyTests(SimpleTestCase):
	def test_kinds_and_status_codes(self) -> None:
		self.assertIsInstance(RangeTooShort(), InvalidRange)
		self.assertIsInstance(VehicleInactive(), VehicleNotFound)
		self.assertEqual(InvalidRange().status_code, 400)
		self.assertEqual(VehicleNotFound().status_code, 404)
		self.assertEqual(Conflict().status_code, 409)

	def test_conflict_payload_carries_interval(self) -> None:
		error = Conflict(conflict_kind='maintenance', conflict_start=date(2024, 3, 1), conflict_end=date(2024, 3, 4))
		self.assertIsInstance(error, ReservationError)
		self.assertEqual(
			error.as_dict(),
			{
				'error': 'Conflict',
				'detail': 'Vehicle is not available for the selected dates.',
				'conflict_kind': 'maintenance',
				'conflict_start': '2024-03-01',
				'conflict_end': '2024-03-04',
			},
		)
