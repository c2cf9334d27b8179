from django.test import TestCase

from .models import User
from .services import Actor, actor_for


class RoleTests(TestCase):
	def test_back_office_roles_get_admin_site_access(self) -> None:
		staff = User.objects.create_user(email='desk@example.com', password='ComplexPass123!', role=User.Role.STAFF)
		customer = User.objects.create_user(email='renter@example.com', password='ComplexPass123!')

		self.assertTrue(staff.is_staff)
		self.assertFalse(customer.is_staff)
		self.assertEqual(customer.role, User.Role.CUSTOMER)
		self.assertEqual(customer.username, 'renter@example.com')

	def test_superuser_acts_as_admin(self) -> None:
		root = User.objects.create_superuser(email='root@example.com', password='ComplexPass123!', role=User.Role.CUSTOMER)
		actor = actor_for(root)

		self.assertEqual(actor.role, 'admin')
		self.assertEqual(actor.user_id, root.pk)
		self.assertTrue(actor.is_back_office)

	def test_actor_flags(self) -> None:
		customer = actor_for(User.objects.create_user(email='renter@example.com', password='ComplexPass123!'))

		self.assertTrue(customer.is_customer)
		self.assertFalse(customer.is_back_office)
		self.assertTrue(Actor.system().is_system)
		self.assertIsNone(Actor.system().user_id)
