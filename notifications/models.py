"""In-app notifications delivered to marketplace users."""

from __future__ import annotations

from django.conf import settings
from django.db import models


class Notification(models.Model):
	class Type(models.TextChoices):
		BOOKING_REQUESTED = 'booking_requested', 'Booking requested'
		BOOKING_CONFIRMED = 'booking_confirmed', 'Booking confirmed'
		BOOKING_REJECTED = 'booking_rejected', 'Booking rejected'
		BOOKING_CANCELLED = 'booking_cancelled', 'Booking cancelled'
		PAYMENT_RECEIVED = 'payment_received', 'Payment received'
		PAYMENT_REFUNDED = 'payment_refunded', 'Payment refunded'
		GENERAL = 'general', 'General'

	recipient = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='notifications', on_delete=models.CASCADE)
	type = models.CharField(max_length=40, choices=Type.choices, default=Type.GENERAL)
	title = models.CharField(max_length=200)
	message = models.TextField(blank=True)
	link = models.CharField(max_length=255, blank=True)
	is_read = models.BooleanField(default=False)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		ordering = ['-created_at', '-id']
		indexes = [models.Index(fields=['recipient', 'is_read'], name='notification_inbox_idx')]

	def __str__(self):  # pragma: no cover
		return f"{self.title} -> {self.recipient}"
