"""Reservation models."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from core.intervals import whole_days_between
from core.models import ReferenceNumberMixin, TimeStampedModel
from fleet.models import Vehicle


class BookingStatus(models.TextChoices):
	PENDING = 'pending', 'Pending'
	CONFIRMED = 'confirmed', 'Confirmed'
	REJECTED = 'rejected', 'Rejected'
	CANCELLED = 'cancelled', 'Cancelled'
	COMPLETED = 'completed', 'Completed'


class PaymentStatus(models.TextChoices):
	PENDING = 'pending', 'Pending'
	PAID = 'paid', 'Paid'
	FAILED = 'failed', 'Failed'
	REFUNDED = 'refunded', 'Refunded'


class Channel(models.TextChoices):
	ONLINE = 'online', 'Online'
	MANUAL = 'manual', 'Manual'
	API = 'api', 'API'


TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.REJECTED, BookingStatus.COMPLETED})


class Reservation(TimeStampedModel, ReferenceNumberMixin):
	reference_prefix = 'RS'

	vehicle = models.ForeignKey(Vehicle, related_name='reservations', on_delete=models.PROTECT)
	customer = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='reservations', on_delete=models.CASCADE)
	start_date = models.DateField()
	end_date = models.DateField()
	base_amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.0'))])
	addons_amount = models.DecimalField(
		max_digits=10,
		decimal_places=2,
		default=Decimal('0.00'),
		validators=[MinValueValidator(Decimal('0.0'))],
	)
	total_amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.0'))])
	addons = models.JSONField(default=dict, blank=True)
	status = models.CharField(max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING)
	payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
	channel = models.CharField(max_length=10, choices=Channel.choices, default=Channel.ONLINE)
	created_by = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		related_name='+',
		null=True,
		blank=True,
		on_delete=models.SET_NULL,
	)
	cancel_reason = models.TextField(blank=True)
	cancelled_by = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		related_name='+',
		null=True,
		blank=True,
		on_delete=models.SET_NULL,
	)
	cancelled_at = models.DateTimeField(null=True, blank=True)
	confirmed_at = models.DateTimeField(null=True, blank=True)
	completed_at = models.DateTimeField(null=True, blank=True)
	paid_at = models.DateTimeField(null=True, blank=True)

	class Meta:
		ordering = ['-created_at']
		indexes = [
			models.Index(fields=['vehicle', 'status', 'start_date', 'end_date'], name='reservation_vehicle_range_idx'),
			models.Index(fields=['customer', 'status'], name='reservation_customer_idx'),
		]
		constraints = [
			models.CheckConstraint(
				condition=models.Q(end_date__gt=models.F('start_date')),
				name='reservation_end_after_start',
			),
		]

	def clean(self):
		if self.start_date and self.end_date and self.start_date >= self.end_date:
			raise ValidationError('Drop-off date must be after pick-up date.')

	@property
	def rental_days(self) -> int:
		return whole_days_between(self.start_date, self.end_date)

	@property
	def is_terminal(self) -> bool:
		return self.status in TERMINAL_STATUSES

	def __str__(self):  # pragma: no cover
		return f"Reservation {self.reference_number}"


class ReservedDay(models.Model):
	"""One occupied day of a confirmed reservation.

	The unique ``(vehicle, day)`` constraint is the storage-level guarantee that
	confirmed reservations of a vehicle never overlap.
	"""

	vehicle = models.ForeignKey(Vehicle, related_name='reserved_days', on_delete=models.CASCADE)
	day = models.DateField()
	reservation = models.ForeignKey(Reservation, related_name='reserved_days', on_delete=models.CASCADE)

	class Meta:
		ordering = ['day']
		constraints = [
			models.UniqueConstraint(fields=['vehicle', 'day'], name='reserved_day_unique_per_vehicle'),
		]

	def __str__(self):  # pragma: no cover
		return f"{self.vehicle} on {self.day:%Y-%m-%d}"
