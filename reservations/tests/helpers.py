"""Builders shared by the reservation engine tests."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from fleet.models import Vehicle
from reservations.ledger import claim_days
from reservations.models import BookingStatus, Reservation

User = get_user_model()


def day(offset: int) -> date:
	"""A date ``offset`` days from today."""
	return timezone.localdate() + timedelta(days=offset)


def make_user(email: str, role: str = 'customer', **extra) -> User:
	return User.objects.create_user(email=email, password='ComplexPass123!', role=role, **extra)


def make_vehicle(**overrides) -> Vehicle:
	values = {
		'make': 'Toyota',
		'model': 'Corolla',
		'year': 2022,
		'location': 'Colombo',
		'daily_rate': Decimal('100.00'),
	}
	values.update(overrides)
	return Vehicle.objects.create(**values)


def make_reservation(vehicle, customer, start, end, status=BookingStatus.PENDING, **extra) -> Reservation:
	days = (end - start).days
	amount = vehicle.daily_rate * days
	reservation = Reservation.objects.create(
		vehicle=vehicle,
		customer=customer,
		start_date=start,
		end_date=end,
		base_amount=amount,
		total_amount=amount,
		status=status,
		**extra,
	)
	if status == BookingStatus.CONFIRMED:
		claim_days(reservation)
	return reservation
