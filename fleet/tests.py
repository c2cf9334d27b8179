from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.services import actor_for
from core.exceptions import BlockNotFound, Conflict, Forbidden, InvalidRange
from reservations.availability import check_availability
from reservations.models import BookingStatus
from reservations.tests.helpers import day, make_reservation, make_user, make_vehicle

from .admin import MaintenanceBlockAdminForm
from .models import MaintenanceBlock
from .services import create_block, delete_block, list_blocks

User = get_user_model()


class MaintenanceBlockServiceTests(TestCase):
	def setUp(self) -> None:
		self.staff = actor_for(make_user('fleet@example.com', role='staff'))
		self.customer = make_user('renter@example.com')
		self.vehicle = make_vehicle()

	def test_block_takes_vehicle_out_of_service(self) -> None:
		block = create_block(self.vehicle.pk, day(10), day(12), self.staff, reason='Brake pads')

		self.assertEqual(block.created_by_id, self.staff.user_id)
		self.assertEqual(list(list_blocks(self.vehicle.pk)), [block])
		result = check_availability(self.vehicle.pk, day(11), day(13))
		self.assertEqual(result.conflict_kind, 'maintenance')

	def test_block_over_confirmed_reservation_is_refused(self) -> None:
		make_reservation(self.vehicle, self.customer, day(10), day(15), status=BookingStatus.CONFIRMED)

		with self.assertRaises(Conflict) as raised:
			create_block(self.vehicle.pk, day(14), day(16), self.staff)

		self.assertEqual(raised.exception.conflict_kind, 'reservation')
		self.assertFalse(MaintenanceBlock.objects.exists())

	def test_block_next_to_reservation_or_over_pending_request_is_allowed(self) -> None:
		make_reservation(self.vehicle, self.customer, day(10), day(15), status=BookingStatus.CONFIRMED)
		make_reservation(self.vehicle, self.customer, day(20), day(22))
		create_block(self.vehicle.pk, day(15), day(16), self.staff)
		create_block(self.vehicle.pk, day(20), day(25), self.staff, kind='other')
		self.assertEqual(MaintenanceBlock.objects.count(), 2)

	def test_validation_and_permissions(self) -> None:
		with self.assertRaises(Forbidden):
			create_block(self.vehicle.pk, day(1), day(2), actor_for(self.customer))
		with self.assertRaises(InvalidRange):
			create_block(self.vehicle.pk, day(2), day(2), self.staff)
		with self.assertRaises(InvalidRange):
			create_block(self.vehicle.pk, day(1), day(2), self.staff, kind='holiday')

	def test_delete_block(self) -> None:
		block = create_block(self.vehicle.pk, day(10), day(12), self.staff)
		with self.assertRaises(Forbidden):
			delete_block(self.vehicle.pk, block.pk, actor_for(self.customer))
		delete_block(self.vehicle.pk, block.pk, self.staff)
		with self.assertRaises(BlockNotFound):
			delete_block(self.vehicle.pk, block.pk, self.staff)

	def test_admin_form_rejects_block_over_confirmed_reservation(self) -> None:
		make_reservation(self.vehicle, self.customer, day(10), day(15), status=BookingStatus.CONFIRMED)
		form = MaintenanceBlockAdminForm(
			data={
				'vehicle': self.vehicle.pk,
				'start_date': day(12).isoformat(),
				'end_date': day(13).isoformat(),
				'kind': 'maintenance',
				'reason': '',
			}
		)
		self.assertFalse(form.is_valid())
		self.assertIn('__all__', form.errors)


class VehicleApiTests(APITestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.staff = make_user('fleet@example.com', role='staff')
		self.vehicle = make_vehicle(min_rental_days=2)

	def test_availability_check(self) -> None:
		make_reservation(self.vehicle, self.customer, day(10), day(15), status=BookingStatus.CONFIRMED)
		self.client.force_authenticate(self.customer)
		url = reverse('fleet:availability-check', args=[self.vehicle.pk])

		busy = self.client.get(url, {'start': day(12).isoformat(), 'end': day(16).isoformat()})
		self.assertEqual(busy.status_code, status.HTTP_200_OK)
		self.assertFalse(busy.data['available'])
		self.assertEqual(busy.data['conflict_kind'], 'reservation')
		self.assertEqual(busy.data['conflict_start'], day(10).isoformat())

		free = self.client.get(url, {'startDate': day(15).isoformat(), 'endDate': day(17).isoformat()})
		self.assertTrue(free.data['available'])
		self.assertIsNone(free.data['conflict_kind'])

		short = self.client.get(url, {'start': day(20).isoformat(), 'end': day(21).isoformat()})
		self.assertEqual(short.status_code, status.HTTP_400_BAD_REQUEST)
		self.assertEqual(short.data['error'], 'RangeTooShort')

	def test_availability_calendar(self) -> None:
		make_reservation(self.vehicle, self.customer, day(10), day(15), status=BookingStatus.CONFIRMED)
		MaintenanceBlock.objects.create(vehicle=self.vehicle, start_date=day(3), end_date=day(5), reason='Service')
		self.client.force_authenticate(self.customer)

		response = self.client.get(reverse('fleet:availability', args=[self.vehicle.pk]))

		self.assertEqual(response.status_code, status.HTTP_200_OK)
		self.assertEqual(response.data['min_days'], 2)
		self.assertTrue(response.data['is_bookable'])
		self.assertEqual(
			[(item['start_date'], item['kind']) for item in response.data['blocked']],
			[(day(3).isoformat(), 'maintenance'), (day(10).isoformat(), 'reservation')],
		)

		missing = self.client.get(reverse('fleet:availability', args=[999999]))
		self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)

	def test_block_management_is_staff_only(self) -> None:
		url = reverse('fleet:blocks', args=[self.vehicle.pk])
		data = {'start_date': day(10).isoformat(), 'end_date': day(12).isoformat(), 'reason': 'Inspection'}

		self.client.force_authenticate(self.customer)
		self.assertEqual(self.client.post(url, data, format='json').status_code, status.HTTP_403_FORBIDDEN)

		self.client.force_authenticate(self.staff)
		created = self.client.post(url, data, format='json')
		self.assertEqual(created.status_code, status.HTTP_201_CREATED)
		self.assertEqual(created.data['kind'], 'maintenance')
		self.assertEqual(len(self.client.get(url).data), 1)

		make_reservation(self.vehicle, self.customer, day(20), day(25), status=BookingStatus.CONFIRMED)
		clash = self.client.post(url, {'start_date': day(22).isoformat(), 'end_date': day(23).isoformat()}, format='json')
		self.assertEqual(clash.status_code, status.HTTP_409_CONFLICT)
		self.assertEqual(clash.data['conflict_kind'], 'reservation')

		detail = reverse('fleet:block-detail', args=[self.vehicle.pk, created.data['id']])
		self.assertEqual(self.client.delete(detail).status_code, status.HTTP_204_NO_CONTENT)
		self.assertEqual(self.client.delete(detail).status_code, status.HTTP_404_NOT_FOUND)


class VehicleAdminTests(TestCase):
	def setUp(self) -> None:
		self.client.force_login(User.objects.create_superuser(email='root@example.com', password='ComplexPass123!'))
		self.vehicle = make_vehicle()
		make_reservation(self.vehicle, make_user('renter@example.com'), day(10), day(15), status=BookingStatus.CONFIRMED)

	def post_block(self, start, end):
		data = {
			'make': self.vehicle.make,
			'model': self.vehicle.model,
			'year': self.vehicle.year,
			'location': self.vehicle.location,
			'status': self.vehicle.status,
			'daily_rate': '100.00',
			'min_rental_days': 1,
			'max_rental_days': 30,
			'blocks-TOTAL_FORMS': '1',
			'blocks-INITIAL_FORMS': '0',
			'blocks-MIN_NUM_FORMS': '0',
			'blocks-MAX_NUM_FORMS': '1000',
			'blocks-0-id': '',
			'blocks-0-vehicle': self.vehicle.pk,
			'blocks-0-start_date': start.isoformat(),
			'blocks-0-end_date': end.isoformat(),
			'blocks-0-kind': MaintenanceBlock.Kind.MAINTENANCE,
			'blocks-0-reason': 'Service',
			'_save': 'Save',
		}
		return self.client.post(reverse('admin:fleet_vehicle_change', args=[self.vehicle.pk]), data)

	def test_inline_block_over_confirmed_reservation_is_refused(self) -> None:
		response = self.post_block(day(12), day(13))

		self.assertEqual(response.status_code, 200)
		self.assertContains(response, 'Confirmed reservation')
		self.assertFalse(MaintenanceBlock.objects.filter(vehicle=self.vehicle).exists())

	def test_inline_block_after_the_reservation_is_saved(self) -> None:
		response = self.post_block(day(15), day(17))

		self.assertEqual(response.status_code, 302)
		self.assertEqual(MaintenanceBlock.objects.filter(vehicle=self.vehicle).count(), 1)
