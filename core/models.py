"""Shared base models and mixins for the rental marketplace."""

from __future__ import annotations

import uuid
from typing import Any

from django.db import models


class TimeStampedModel(models.Model):
	"""Abstract base model with created/updated timestamps."""

	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		abstract = True


class ReferenceNumberMixin(models.Model):
	"""Adds a unique human-readable reference number."""

	reference_prefix = 'BK'

	reference_number = models.CharField(max_length=18, unique=True, editable=False)

	class Meta:
		abstract = True

	def save(self, *args: Any, **kwargs: Any) -> None:
		if not self.reference_number:
			self.reference_number = self.generate_reference(self.reference_prefix)
		super().save(*args, **kwargs)

	@staticmethod
	def generate_reference(prefix: str | None = None) -> str:
		uid = uuid.uuid4().hex[:10].upper()
		return f"{prefix or 'BK'}-{uid[:4]}-{uid[4:]}"
