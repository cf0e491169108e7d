from __future__ import annotations

import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Flight, Seat, SeatOccupancy

logger = logging.getLogger(__name__)


def ensure_seat_inventory(flight: Flight) -> int:
    """Create a free occupancy row for every seat of the flight's airplane type."""
    existing_seat_ids = set(flight.seat_occupancy.values_list('seat_id', flat=True))
    rows_to_create: list[SeatOccupancy] = [
        SeatOccupancy(flight=flight, seat=seat)
        for seat in Seat.objects.filter(airplane_type_id=flight.airplane_type_id)
        if seat.pk not in existing_seat_ids
    ]
    if rows_to_create:
        SeatOccupancy.objects.bulk_create(rows_to_create, ignore_conflicts=True)
        logger.debug('Created %s occupancy rows for flight %s', len(rows_to_create), flight.pk)
    return len(rows_to_create)


@receiver(post_save, sender=Flight)
def create_seat_occupancy(sender: type[Flight], instance: Flight, created: bool, **kwargs) -> None:
    if kwargs.get('raw'):
        return
    ensure_seat_inventory(instance)


@receiver(post_save, sender=Seat)
def extend_occupancy_for_new_seat(sender: type[Seat], instance: Seat, created: bool, **kwargs) -> None:
    if not created or kwargs.get('raw'):
        return
    rows = [
        SeatOccupancy(flight=flight, seat=instance)
        for flight in Flight.objects.filter(airplane_type_id=instance.airplane_type_id)
    ]
    if rows:
        SeatOccupancy.objects.bulk_create(rows, ignore_conflicts=True)
