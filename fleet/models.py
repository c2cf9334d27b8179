"""Fleet models read by the reservation engine."""

from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from core.models import TimeStampedModel


class Vehicle(TimeStampedModel):
	class Status(models.TextChoices):
		ACTIVE = 'active', 'Active'
		INACTIVE = 'inactive', 'Inactive'
		MAINTENANCE = 'maintenance', 'Maintenance'

	make = models.CharField(max_length=120)
	model = models.CharField(max_length=120)
	year = models.PositiveIntegerField(null=True, blank=True)
	location = models.CharField(max_length=255, blank=True)
	daily_rate = models.DecimalField(max_digits=8, decimal_places=2, validators=[MinValueValidator(0)])
	min_rental_days = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
	max_rental_days = models.PositiveIntegerField(default=30, validators=[MinValueValidator(1)])
	status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

	class Meta:
		ordering = ['make', 'model']

	def clean(self):
		if self.min_rental_days and self.max_rental_days and self.min_rental_days > self.max_rental_days:
			raise ValidationError({'max_rental_days': 'Maximum rental days must not be below the minimum.'})

	@property
	def is_bookable(self) -> bool:
		return self.status == self.Status.ACTIVE

	def __str__(self):  # pragma: no cover
		return f"{self.make} {self.model}"


class MaintenanceBlock(TimeStampedModel):
	"""A half-open ``[start_date, end_date)`` window in which the vehicle cannot be rented."""

	class Kind(models.TextChoices):
		MAINTENANCE = 'maintenance', 'Maintenance'
		RESERVED = 'reserved', 'Reserved'
		OTHER = 'other', 'Other'

	vehicle = models.ForeignKey(Vehicle, related_name='blocks', on_delete=models.CASCADE)
	start_date = models.DateField()
	end_date = models.DateField()
	kind = models.CharField(max_length=20, choices=Kind.choices, default=Kind.MAINTENANCE)
	reason = models.CharField(max_length=255, blank=True)
	created_by = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		related_name='+',
		null=True,
		blank=True,
		on_delete=models.SET_NULL,
	)

	class Meta:
		ordering = ['start_date']
		indexes = [models.Index(fields=['vehicle', 'start_date', 'end_date'], name='maint_block_vehicle_range_idx')]
		constraints = [
			models.CheckConstraint(
				condition=models.Q(end_date__gt=models.F('start_date')),
				name='maintenance_block_end_after_start',
			),
		]

	def clean(self):
		if self.start_date and self.end_date and self.start_date >= self.end_date:
			raise ValidationError('Block end date must be after its start date.')

	def __str__(self):  # pragma: no cover
		return f"{self.vehicle} blocked {self.start_date:%Y-%m-%d} to {self.end_date:%Y-%m-%d}"
