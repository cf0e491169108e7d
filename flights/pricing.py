"""Fare bucket summaries, per-class fare expansion and flight search."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.conf import settings
from django.db import DatabaseError
from django.db.models import Count

from .models import BUCKET_FARE_CLASSES, CabinBucket, FareClass, FarePrice, Flight, Seat, SeatOccupancy

logger = logging.getLogger(__name__)

NOT_AVAILABLE = 'Not Available'


@dataclass(frozen=True)
class BucketSummary:
    bucket: str
    price: Decimal | None
    currency: str
    availability: int

    @property
    def is_available(self) -> bool:
        return self.price is not None

    @property
    def display_price(self) -> str:
        if self.price is None:
            return NOT_AVAILABLE
        return f"{self.price:,.0f} {self.currency}"


@dataclass(frozen=True)
class FareOption:
    fare_class: FareClass
    price: Decimal | None
    currency: str
    listed_availability: int
    available_seats: int

    @property
    def label(self) -> str:
        return self.fare_class.label

    @property
    def is_available(self) -> bool:
        return self.price is not None and self.available_seats > 0


@dataclass
class FlightListing:
    flight: Flight
    buckets: dict[str, BucketSummary] = field(default_factory=dict)


def resolve_bucket(value: str | None) -> CabinBucket:
    """Map a user-supplied bucket name onto :class:`CabinBucket`, defaulting to economy."""
    normalized = (value or '').strip().lower().replace('_', '-')
    if normalized in ('first', 'firstclass'):
        normalized = CabinBucket.FIRST_CLASS.value
    try:
        return CabinBucket(normalized)
    except ValueError:
        return CabinBucket.ECONOMY


def _unavailable(bucket: str) -> BucketSummary:
    return BucketSummary(bucket=bucket, price=None, currency=settings.FLIGHT_BOOKING_CURRENCY, availability=0)


def summarize_fares(bucket: str, fares: list[FarePrice]) -> BucketSummary:
    """Reduce the listed fares of a bucket to its minimum price and summed availability."""
    classes = BUCKET_FARE_CLASSES[CabinBucket(bucket)]
    members = [fare for fare in fares if fare.fare_class in classes and fare.price is not None]
    if not members:
        return _unavailable(bucket)
    cheapest = min(members, key=lambda fare: fare.price)
    return BucketSummary(
        bucket=bucket,
        price=cheapest.price,
        currency=cheapest.currency,
        availability=sum(fare.availability_count for fare in members),
    )


def bucket_summary(flight: Flight, bucket: str) -> BucketSummary:
    try:
        fares = list(flight.fare_prices.filter(fare_class__in=BUCKET_FARE_CLASSES[CabinBucket(bucket)]))
    except DatabaseError:
        logger.exception('Could not load fares for flight %s (%s)', flight.pk, bucket)
        return _unavailable(bucket)
    return summarize_fares(bucket, fares)


def true_availability(flight: Flight, classes: tuple[FareClass, ...]) -> dict[int, int]:
    """Seats per class on the airplane type minus seats occupied on this flight."""
    totals = dict(
        Seat.objects.filter(airplane_type_id=flight.airplane_type_id, fare_class__in=classes)
        .exclude(seat_type=Seat.SeatType.BLOCKED)
        .values_list('fare_class')
        .annotate(total=Count('pk'))
    )
    occupied = dict(
        SeatOccupancy.objects.filter(flight=flight, is_occupied=True, seat__fare_class__in=classes)
        .exclude(seat__seat_type=Seat.SeatType.BLOCKED)
        .values_list('seat__fare_class')
        .annotate(total=Count('pk'))
    )
    return {int(fare_class): max(0, totals.get(fare_class, 0) - occupied.get(fare_class, 0)) for fare_class in classes}


def expand_fares(flight: Flight, bucket: str) -> list[FareOption]:
    """Per-class fares for a bucket with availability counted from the seat inventory."""
    classes = BUCKET_FARE_CLASSES[CabinBucket(bucket)]
    currency = settings.FLIGHT_BOOKING_CURRENCY
    try:
        fares = {fare.fare_class: fare for fare in flight.fare_prices.filter(fare_class__in=classes)}
        available = true_availability(flight, classes)
    except DatabaseError:
        logger.exception('Could not expand fares for flight %s (%s)', flight.pk, bucket)
        return [
            FareOption(fare_class=fare_class, price=None, currency=currency, listed_availability=0, available_seats=0)
            for fare_class in classes
        ]

    options: list[FareOption] = []
    for fare_class in classes:
        fare = fares.get(fare_class)
        computed = available.get(int(fare_class), 0)
        listed = fare.availability_count if fare is not None else 0
        if fare is not None and listed != computed:
            logger.warning(
                'Listed availability %s disagrees with seat inventory %s for flight %s %s',
                listed,
                computed,
                flight.flight_number,
                fare_class.label,
            )
        options.append(
            FareOption(
                fare_class=fare_class,
                price=fare.price if fare is not None else None,
                currency=fare.currency if fare is not None else currency,
                listed_availability=listed,
                available_seats=computed,
            )
        )
    return options


def fare_price_for(flight: Flight, fare_class: int) -> FarePrice | None:
    return FarePrice.objects.filter(flight=flight, fare_class=fare_class).first()


def search_flights(*, origin: str, destination: str, departure_date: date, passengers: int = 1) -> list[FlightListing]:
    """Active flights on ``departure_date`` between two airports, each with both bucket summaries.

    Flights where no bucket lists enough seats for ``passengers`` are left out.
    """
    queryset = (
        Flight.objects.filter(
            origin__code__iexact=(origin or '').strip(),
            destination__code__iexact=(destination or '').strip(),
            departure_time__date=departure_date,
            is_active=True,
        )
        .exclude(status=Flight.Status.CANCELLED)
        .select_related('origin', 'destination', 'airplane_type')
        .prefetch_related('fare_prices')
        .order_by('departure_time')
    )
    listings: list[FlightListing] = []
    try:
        flights = list(queryset)
    except DatabaseError:
        logger.exception('Flight search failed for %s -> %s on %s', origin, destination, departure_date)
        return listings

    for flight in flights:
        fares = list(flight.fare_prices.all())
        buckets = {bucket.value: summarize_fares(bucket.value, fares) for bucket in CabinBucket}
        if not any(summary.is_available and summary.availability >= passengers for summary in buckets.values()):
            continue
        listings.append(FlightListing(flight=flight, buckets=buckets))
    return listings
