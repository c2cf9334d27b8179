from unittest import mock

from django.core import mail
from django.db import transaction
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import NotificationNotFound
from reservations.tests.helpers import make_user

from .models import Notification
from .services import RoleTarget, UserTarget, delete_notification, list_notifications, mark_read, notify


class NotificationDispatchTests(TestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.staff = make_user('desk@example.com', role='staff')
		self.admin = make_user('owner@example.com', role='admin')

	def test_user_target_is_delivered_after_commit(self) -> None:
		with self.captureOnCommitCallbacks(execute=True) as callbacks:
			notify(UserTarget(self.customer.pk), Notification.Type.GENERAL, 'Hello', 'Welcome aboard', '/welcome')
			self.assertFalse(Notification.objects.exists())

		self.assertEqual(len(callbacks), 1)
		notification = Notification.objects.get()
		self.assertEqual(notification.recipient, self.customer)
		self.assertEqual(notification.link, '/welcome')
		self.assertFalse(notification.is_read)

	def test_role_target_fans_out_to_back_office(self) -> None:
		superuser = make_user('root@example.com', is_superuser=True)
		make_user('former@example.com', role='staff', is_active=False)

		with self.captureOnCommitCallbacks(execute=True):
			notify(RoleTarget.back_office(), Notification.Type.GENERAL, 'Heads up')

		self.assertEqual(
			set(Notification.objects.values_list('recipient__email', flat=True)),
			{'desk@example.com', 'owner@example.com', superuser.email},
		)

	def test_nothing_is_sent_for_rolled_back_work(self) -> None:
		with self.captureOnCommitCallbacks(execute=True):
			try:
				with transaction.atomic():
					notify(UserTarget(self.customer.pk), Notification.Type.GENERAL, 'Never')
					raise RuntimeError('abort')
			except RuntimeError:
				pass

		self.assertFalse(Notification.objects.exists())

	def test_delivery_failures_are_logged_not_raised(self) -> None:
		with mock.patch.object(Notification.objects, 'bulk_create', side_effect=RuntimeError('db hiccup')):
			with self.assertLogs('notifications.services', level='ERROR') as logs:
				with self.captureOnCommitCallbacks(execute=True):
					notify(UserTarget(self.customer.pk), Notification.Type.GENERAL, 'Lost')

		self.assertIn('Lost', logs.output[0])

	@override_settings(NOTIFICATIONS_EMAIL_ENABLED=True)
	def test_optional_email_copy(self) -> None:
		with self.captureOnCommitCallbacks(execute=True):
			notify(UserTarget(self.customer.pk), Notification.Type.GENERAL, 'Booking confirmed', 'See you soon', '/r/1')

		self.assertEqual(len(mail.outbox), 1)
		self.assertEqual(mail.outbox[0].subject, 'Booking confirmed')
		self.assertEqual(mail.outbox[0].to, ['renter@example.com'])
		self.assertIn('/r/1', mail.outbox[0].body)

	def test_no_email_by_default(self) -> None:
		with self.captureOnCommitCallbacks(execute=True):
			notify(UserTarget(self.customer.pk), Notification.Type.GENERAL, 'Quiet')
		self.assertEqual(len(mail.outbox), 0)


class InboxTests(TestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.other = make_user('other@example.com')
		self.first = Notification.objects.create(recipient=self.customer, title='Booking confirmed', message='Toyota Corolla')
		self.second = Notification.objects.create(recipient=self.customer, title='Payment received', is_read=True)
		self.foreign = Notification.objects.create(recipient=self.other, title='Not yours')

	def test_list_filters(self) -> None:
		self.assertEqual(list_notifications(self.customer).count(), 2)
		self.assertEqual(list(list_notifications(self.customer, unread_only=True)), [self.first])
		self.assertEqual(list(list_notifications(self.customer, q='corolla')), [self.first])

	def test_recipient_only_operations(self) -> None:
		self.assertTrue(mark_read(self.customer, self.first.pk).is_read)
		self.assertFalse(mark_read(self.customer, self.first.pk, is_read=False).is_read)

		with self.assertRaises(NotificationNotFound):
			mark_read(self.customer, self.foreign.pk)
		with self.assertRaises(NotificationNotFound):
			delete_notification(self.customer, self.foreign.pk)

		delete_notification(self.customer, self.second.pk)
		self.assertFalse(Notification.objects.filter(pk=self.second.pk).exists())
		self.assertTrue(Notification.objects.filter(pk=self.foreign.pk).exists())


class InboxApiTests(APITestCase):
	def setUp(self) -> None:
		self.customer = make_user('renter@example.com')
		self.notification = Notification.objects.create(recipient=self.customer, title='Booking confirmed')
		Notification.objects.create(recipient=make_user('other@example.com'), title='Elsewhere')
		self.client.force_authenticate(self.customer)

	def test_list_mark_read_and_delete(self) -> None:
		listing = self.client.get(reverse('notifications:list'), {'unread': 'true'})
		self.assertEqual(listing.status_code, status.HTTP_200_OK)
		self.assertEqual(listing.data['count'], 1)
		self.assertEqual(listing.data['results'][0]['title'], 'Booking confirmed')

		detail = reverse('notifications:detail', args=[self.notification.pk])
		updated = self.client.patch(detail, {'is_read': True}, format='json')
		self.assertEqual(updated.status_code, status.HTTP_200_OK)
		self.assertTrue(updated.data['is_read'])
		self.assertEqual(self.client.get(reverse('notifications:list'), {'unread': '1'}).data['count'], 0)

		self.assertEqual(self.client.delete(detail).status_code, status.HTTP_204_NO_CONTENT)
		missing = self.client.delete(detail)
		self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)
		self.assertEqual(missing.data['error'], 'NotFound')

	def test_read_all(self) -> None:
		response = self.client.post(reverse('notifications:read-all'))
		self.assertEqual(response.data, {'updated': 1})
