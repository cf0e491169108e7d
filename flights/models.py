"""Flight, fare, seat inventory and booking models."""

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from core.models import ReferenceNumberMixin, TimeStampedModel


class FareClass(models.IntegerChoices):
	"""Fare classes; the stored value doubles as the cabin rank."""

	ECONOMY_SAVER = 1, 'Economy Saver'
	ECONOMY_FLEX = 2, 'Economy Flex'
	PREMIUM_ECONOMY = 3, 'Premium Economy'
	BUSINESS = 4, 'Business'
	FIRST = 5, 'First Class'


def compare_fare_classes(first: int, second: int) -> int:
	"""Return -1, 0 or 1 as ``first`` ranks below, level with or above ``second``."""
	first_rank = FareClass(first).value
	second_rank = FareClass(second).value
	return (first_rank > second_rank) - (first_rank < second_rank)


class CabinBucket(models.TextChoices):
	ECONOMY = 'economy', 'Economy'
	FIRST_CLASS = 'first-class', 'First Class'

	@property
	def fare_classes(self) -> tuple[FareClass, ...]:
		return BUCKET_FARE_CLASSES[self]


BUCKET_FARE_CLASSES: dict[str, tuple[FareClass, ...]] = {
	CabinBucket.ECONOMY: (FareClass.ECONOMY_SAVER, FareClass.ECONOMY_FLEX, FareClass.PREMIUM_ECONOMY),
	CabinBucket.FIRST_CLASS: (FareClass.BUSINESS, FareClass.FIRST),
}


class Leg(models.TextChoices):
	OUTBOUND = 'outbound', 'Outbound'
	RETURN = 'return', 'Return'


class Airport(models.Model):
	code = models.CharField(max_length=3, unique=True)
	name = models.CharField(max_length=120)
	city = models.CharField(max_length=120)
	country = models.CharField(max_length=120)

	class Meta:
		ordering = ['code']

	def __str__(self):  # pragma: no cover
		return f"{self.city} ({self.code})"

	def save(self, *args, **kwargs):
		self.code = (self.code or '').strip().upper()
		super().save(*args, **kwargs)


class AirplaneType(models.Model):
	name = models.CharField(max_length=60, unique=True)
	manufacturer = models.CharField(max_length=60, blank=True)

	def __str__(self):  # pragma: no cover
		return self.name


class Flight(TimeStampedModel):
	class Status(models.TextChoices):
		SCHEDULED = 'scheduled', 'Scheduled'
		DELAYED = 'delayed', 'Delayed'
		DEPARTED = 'departed', 'Departed'
		ARRIVED = 'arrived', 'Arrived'
		CANCELLED = 'cancelled', 'Cancelled'

	flight_number = models.CharField(max_length=10)
	origin = models.ForeignKey(Airport, related_name='departures', on_delete=models.PROTECT)
	destination = models.ForeignKey(Airport, related_name='arrivals', on_delete=models.PROTECT)
	departure_time = models.DateTimeField()
	arrival_time = models.DateTimeField()
	status = models.CharField(max_length=20, choices=Status.choices, default=Status.SCHEDULED)
	distance_km = models.PositiveIntegerField(default=0)
	airplane_type = models.ForeignKey(AirplaneType, related_name='flights', on_delete=models.PROTECT)
	is_active = models.BooleanField(default=True)

	class Meta:
		ordering = ['departure_time']
		constraints = [
			models.UniqueConstraint(fields=['flight_number', 'departure_time'], name='unique_flight_departure'),
		]

	def clean(self):
		errors: dict[str, str] = {}
		if self.departure_time is not None and self.arrival_time is not None:
			if self.departure_time >= self.arrival_time:
				errors['arrival_time'] = 'Arrival time must be after departure time.'
		if self.origin_id and self.origin_id == self.destination_id:
			errors['destination'] = 'Destination must differ from origin.'
		if errors:
			raise ValidationError(errors)

	def __str__(self):  # pragma: no cover
		return f"{self.flight_number}: {self.origin_id} → {self.destination_id}"

	@property
	def is_bookable(self) -> bool:
		return self.is_active and self.status in {self.Status.SCHEDULED, self.Status.DELAYED}


class FarePrice(models.Model):
	flight = models.ForeignKey(Flight, related_name='fare_prices', on_delete=models.CASCADE)
	fare_class = models.PositiveSmallIntegerField(choices=FareClass.choices)
	price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
	currency = models.CharField(max_length=3, default='VND')
	availability_count = models.PositiveIntegerField(default=0)

	class Meta:
		ordering = ['flight', 'fare_class']
		constraints = [
			models.UniqueConstraint(fields=['flight', 'fare_class'], name='unique_fare_per_class'),
		]

	def __str__(self):  # pragma: no cover
		return f"{self.flight.flight_number} {self.get_fare_class_display()}: {self.price} {self.currency}"


class Seat(models.Model):
	class SeatType(models.TextChoices):
		STANDARD = 'standard', 'Standard'
		BLOCKED = 'blocked', 'Blocked'

	airplane_type = models.ForeignKey(AirplaneType, related_name='seats', on_delete=models.CASCADE)
	seat_number = models.CharField(max_length=5)
	fare_class = models.PositiveSmallIntegerField(choices=FareClass.choices)
	seat_type = models.CharField(max_length=10, choices=SeatType.choices, default=SeatType.STANDARD)

	class Meta:
		ordering = ['airplane_type', 'seat_number']
		constraints = [
			models.UniqueConstraint(fields=['airplane_type', 'seat_number'], name='unique_seat_per_airplane_type'),
		]

	def __str__(self):  # pragma: no cover
		return f"{self.airplane_type} seat {self.seat_number}"

	@property
	def is_blocked(self) -> bool:
		return self.seat_type == self.SeatType.BLOCKED


class SeatOccupancy(models.Model):
	"""Per-flight occupancy flag for one physical seat."""

	flight = models.ForeignKey(Flight, related_name='seat_occupancy', on_delete=models.CASCADE)
	seat = models.ForeignKey(Seat, related_name='occupancy', on_delete=models.CASCADE)
	is_occupied = models.BooleanField(default=False)
	booking = models.ForeignKey(
		'Booking',
		related_name='occupied_seats',
		on_delete=models.SET_NULL,
		blank=True,
		null=True,
	)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		verbose_name_plural = 'seat occupancy'
		constraints = [
			models.UniqueConstraint(fields=['flight', 'seat'], name='unique_occupancy_per_flight_seat'),
		]

	def __str__(self):  # pragma: no cover
		state = 'occupied' if self.is_occupied else 'free'
		return f"{self.flight.flight_number} {self.seat.seat_number} ({state})"


def _draft_expiry():
	return timezone.now() + timedelta(minutes=settings.BOOKING_DRAFT_TTL_MINUTES)


class BookingDraftQuerySet(models.QuerySet):
	def expired(self):
		return self.filter(expires_at__lte=timezone.now(), booking__isnull=True)


class BookingDraft(TimeStampedModel):
	"""Booking being assembled: legs, fares, seat holds and passengers."""

	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	user = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		related_name='booking_drafts',
		on_delete=models.CASCADE,
		blank=True,
		null=True,
	)
	passenger_count = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(9)])
	is_round_trip = models.BooleanField(default=False)
	outbound_flight = models.ForeignKey(Flight, related_name='+', on_delete=models.CASCADE)
	outbound_fare_class = models.PositiveSmallIntegerField(choices=FareClass.choices)
	outbound_price = models.DecimalField(max_digits=12, decimal_places=2)
	return_flight = models.ForeignKey(Flight, related_name='+', on_delete=models.CASCADE, blank=True, null=True)
	return_fare_class = models.PositiveSmallIntegerField(choices=FareClass.choices, blank=True, null=True)
	return_price = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
	currency = models.CharField(max_length=3, default='VND')
	contact_email = models.EmailField(blank=True)
	contact_phone = models.CharField(max_length=32, blank=True)
	passengers = models.JSONField(default=list, blank=True)
	pending_seat = models.ForeignKey(Seat, related_name='+', on_delete=models.SET_NULL, blank=True, null=True)
	pending_leg = models.CharField(max_length=8, choices=Leg.choices, blank=True)
	expires_at = models.DateTimeField(default=_draft_expiry)
	booking = models.OneToOneField(
		'Booking',
		related_name='draft',
		on_delete=models.SET_NULL,
		blank=True,
		null=True,
	)

	objects = BookingDraftQuerySet.as_manager()

	class Meta:
		ordering = ['-created_at']

	def __str__(self):  # pragma: no cover
		return f"Draft {self.id}"

	@property
	def is_expired(self) -> bool:
		return self.expires_at <= timezone.now()

	@property
	def idempotency_key(self) -> str:
		return f"draft:{self.id}"

	@property
	def legs(self) -> list[str]:
		return [Leg.OUTBOUND, Leg.RETURN] if self.is_round_trip else [Leg.OUTBOUND]

	def flight_for(self, leg: str) -> Flight | None:
		return self.return_flight if leg == Leg.RETURN else self.outbound_flight

	def fare_class_for(self, leg: str) -> int | None:
		return self.return_fare_class if leg == Leg.RETURN else self.outbound_fare_class

	def price_for(self, leg: str) -> Decimal | None:
		return self.return_price if leg == Leg.RETURN else self.outbound_price

	def touch(self) -> None:
		self.expires_at = _draft_expiry()


class SeatHoldQuerySet(models.QuerySet):
	def active(self):
		return self.filter(expires_at__gt=timezone.now())

	def expired(self):
		return self.filter(expires_at__lte=timezone.now())


class SeatHold(models.Model):
	"""Short-lived reservation of one seat on one flight for one draft."""

	flight = models.ForeignKey(Flight, related_name='seat_holds', on_delete=models.CASCADE)
	seat = models.ForeignKey(Seat, related_name='holds', on_delete=models.CASCADE)
	draft = models.ForeignKey(BookingDraft, related_name='seat_holds', on_delete=models.CASCADE)
	leg = models.CharField(max_length=8, choices=Leg.choices)
	created_at = models.DateTimeField(auto_now_add=True)
	expires_at = models.DateTimeField()

	objects = SeatHoldQuerySet.as_manager()

	class Meta:
		ordering = ['leg', 'created_at']
		constraints = [
			models.UniqueConstraint(fields=['flight', 'seat'], name='unique_hold_per_flight_seat'),
		]

	def __str__(self):  # pragma: no cover
		return f"Hold {self.seat.seat_number} on {self.flight.flight_number} for {self.draft_id}"

	@property
	def is_expired(self) -> bool:
		return self.expires_at <= timezone.now()


class Booking(TimeStampedModel, ReferenceNumberMixin):
	class BookingStatus(models.TextChoices):
		CONFIRMED = 'confirmed', 'Confirmed'
		PENDING = 'pending', 'Pending'
		CANCELLED = 'cancelled', 'Cancelled'

	user = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		related_name='bookings',
		on_delete=models.SET_NULL,
		blank=True,
		null=True,
	)
	outbound_flight = models.ForeignKey(Flight, related_name='outbound_bookings', on_delete=models.PROTECT)
	return_flight = models.ForeignKey(
		Flight,
		related_name='return_bookings',
		on_delete=models.PROTECT,
		blank=True,
		null=True,
	)
	passenger_count = models.PositiveSmallIntegerField(default=1)
	total_price = models.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(Decimal('0.0'))])
	currency = models.CharField(max_length=3, default='VND')
	status = models.CharField(max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING)
	contact_email = models.EmailField()
	contact_phone = models.CharField(max_length=32, blank=True)
	idempotency_key = models.CharField(max_length=64, unique=True)
	points_awarded = models.PositiveIntegerField(default=0)
	cancelled_at = models.DateTimeField(blank=True, null=True)

	class Meta:
		ordering = ['-created_at']

	def __str__(self):  # pragma: no cover
		return f"Booking {self.reference_number}"

	@property
	def booked_at(self):
		return self.created_at


class Ticket(TimeStampedModel):
	booking = models.ForeignKey(Booking, related_name='tickets', on_delete=models.CASCADE)
	flight = models.ForeignKey(Flight, related_name='tickets', on_delete=models.PROTECT)
	seat = models.ForeignKey(Seat, related_name='tickets', on_delete=models.PROTECT)
	leg = models.CharField(max_length=8, choices=Leg.choices, default=Leg.OUTBOUND)
	ticket_number = models.CharField(max_length=16, unique=True, editable=False)
	fare_class = models.PositiveSmallIntegerField(choices=FareClass.choices)
	price = models.DecimalField(max_digits=12, decimal_places=2)
	passenger_first_name = models.CharField(max_length=120)
	passenger_last_name = models.CharField(max_length=120)
	passenger_email = models.EmailField(blank=True)
	passenger_phone = models.CharField(max_length=32, blank=True)
	passport_number = models.CharField(max_length=20, blank=True)
	date_of_birth = models.DateField(blank=True, null=True)

	class Meta:
		ordering = ['booking', 'leg', 'id']
		constraints = [
			models.UniqueConstraint(fields=['flight', 'seat', 'booking'], name='unique_ticket_seat_per_booking'),
		]

	def __str__(self):  # pragma: no cover
		return f"{self.ticket_number} ({self.booking.reference_number})"

	def save(self, *args, **kwargs):
		if not self.ticket_number:
			self.ticket_number = f"TK{uuid.uuid4().hex[:12].upper()}"
		super().save(*args, **kwargs)

	@property
	def passenger_name(self) -> str:
		return f"{self.passenger_first_name} {self.passenger_last_name}".strip()
