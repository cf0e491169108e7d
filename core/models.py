"""Shared base models and mixins for the airline booking platform."""

from __future__ import annotations

import uuid
from typing import Any

from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
	"""Abstract base model with created/updated timestamps."""

	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		abstract = True


class ReferenceNumberMixin(models.Model):
	"""Adds a unique human-readable reference number."""

	reference_prefix = 'CA'

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
		return f"{prefix or 'CA'}-{uid[:4]}-{uid[4:]}"


def send_booking_email(
	subject: str,
	message: str,
	recipient_list: list[str],
	html_message: str | None = None,
) -> None:
	"""Send transactional booking emails; provider errors propagate to the caller."""

	if not recipient_list:
		return

	from django.core.mail import send_mail

	send_mail(
		subject,
		message,
		settings.DEFAULT_FROM_EMAIL,
		recipient_list,
		fail_silently=False,
		html_message=html_message,
	)
