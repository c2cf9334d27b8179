"""Payment tracking models."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from core.models import ReferenceNumberMixin, TimeStampedModel
from reservations.models import PaymentStatus, Reservation


class Payment(TimeStampedModel, ReferenceNumberMixin):
	"""One payment attempt for a reservation; ``reference_number`` is the public payment id."""

	reference_prefix = 'PAY'

	reservation = models.ForeignKey(Reservation, on_delete=models.CASCADE, related_name='payments')
	amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.0'))])
	currency = models.CharField(max_length=3, default='USD')
	status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
	failure_reason = models.CharField(max_length=255, blank=True)
	paid_at = models.DateTimeField(null=True, blank=True)
	failed_at = models.DateTimeField(null=True, blank=True)
	refunded_at = models.DateTimeField(null=True, blank=True)
	marked_paid_by = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		related_name='+',
		null=True,
		blank=True,
		on_delete=models.SET_NULL,
	)

	class Meta:
		ordering = ['-created_at']
		indexes = [models.Index(fields=['reservation', 'status'], name='payment_reservation_idx')]

	@property
	def payment_id(self) -> str:
		return self.reference_number

	def __str__(self):  # pragma: no cover
		return f"Payment {self.reference_number}"
