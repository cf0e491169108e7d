"""Booking draft, seat hold, booking commit and cancellation services."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from smtplib import SMTPException
from typing import Any, Iterable

from django.conf import settings
from django.db import IntegrityError, transaction
from django.template.loader import render_to_string
from django.utils import timezone

from accounts.services import adjust_points
from core.exceptions import AvailabilityError, InvalidRequest, RecordNotFound, UpstreamFailure
from core.models import send_booking_email
from payments.services import PaymentResult, charge_booking, refund_payment, store_payment_record

from .models import (
    Booking,
    BookingDraft,
    FareClass,
    FarePrice,
    Flight,
    Leg,
    Seat,
    SeatHold,
    SeatOccupancy,
    Ticket,
    compare_fare_classes,
)
from .pricing import fare_price_for, true_availability
from .seatmap import ClickOutcome, SeatSelector, SeatView, SelectorState, build_seat_rows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegChoice:
    flight_id: int
    fare_class: int


@dataclass
class SeatClickResult:
    outcome: ClickOutcome
    state: SelectorState
    seat_number: str
    held_class: int
    candidate_class: int | None = None
    candidate_price: Decimal | None = None


# -- drafts -------------------------------------------------------------------


def _is_owner(draft: BookingDraft, user) -> bool:
    if draft.user_id is None:
        return True
    return user is not None and user.is_authenticated and user.pk == draft.user_id


def get_draft(draft_id: uuid.UUID | str, *, user=None, for_update: bool = False, allow_expired: bool = False) -> BookingDraft:
    queryset = BookingDraft.objects.select_related('outbound_flight', 'return_flight', 'pending_seat')
    if for_update:
        queryset = queryset.select_for_update(of=('self',))
    try:
        draft = queryset.get(pk=draft_id)
    except (BookingDraft.DoesNotExist, ValueError) as exc:
        raise RecordNotFound('This booking session could not be found.') from exc
    if not _is_owner(draft, user):
        raise RecordNotFound('This booking session could not be found.')
    if draft.is_expired and draft.booking_id is None and not allow_expired:
        raise InvalidRequest('This booking session has expired. Please search again.', field='draft')
    return draft


def _ensure_open(draft: BookingDraft) -> None:
    if draft.booking_id is not None:
        raise InvalidRequest('This booking has already been completed.', field='draft')


def _bookable_flight(flight_id: int, label: str) -> Flight:
    flight = Flight.objects.select_related('origin', 'destination').filter(pk=flight_id).first()
    if flight is None:
        raise RecordNotFound(f'The selected {label} flight could not be found.')
    if not flight.is_bookable or flight.departure_time <= timezone.now():
        raise InvalidRequest(f'The selected {label} flight is no longer open for booking.', field=f'{label}_flight')
    return flight


def _listed_price(flight: Flight, fare_class: int, label: str) -> FarePrice:
    try:
        FareClass(fare_class)
    except ValueError as exc:
        raise InvalidRequest('Unknown fare class.', field=f'{label}_fare_class') from exc
    fare = fare_price_for(flight, fare_class)
    if fare is None:
        raise InvalidRequest(
            f'{FareClass(fare_class).label} is not sold on flight {flight.flight_number}.',
            field=f'{label}_fare_class',
        )
    return fare


def _check_seat_supply(flight: Flight, fare_class: int, passenger_count: int) -> None:
    available = true_availability(flight, (FareClass(fare_class),)).get(int(fare_class), 0)
    if available < passenger_count:
        raise AvailabilityError(
            f'Only {available} {FareClass(fare_class).label} seat(s) remain on flight {flight.flight_number}.',
            available=available,
            requested=passenger_count,
        )


def _validate_passenger_count(passenger_count: int) -> int:
    try:
        count = int(passenger_count)
    except (TypeError, ValueError) as exc:
        raise InvalidRequest('Passenger count must be a number.', field='passenger_count') from exc
    if not 1 <= count <= settings.MAX_PASSENGERS_PER_BOOKING:
        raise InvalidRequest(
            f'Passenger count must be between 1 and {settings.MAX_PASSENGERS_PER_BOOKING}.',
            field='passenger_count',
        )
    return count


def create_draft(
    *,
    user,
    passenger_count: int,
    outbound: LegChoice,
    return_leg: LegChoice | None = None,
    contact_email: str = '',
    contact_phone: str = '',
) -> BookingDraft:
    count = _validate_passenger_count(passenger_count)
    outbound_flight = _bookable_flight(outbound.flight_id, Leg.OUTBOUND)
    outbound_fare = _listed_price(outbound_flight, outbound.fare_class, Leg.OUTBOUND)
    _check_seat_supply(outbound_flight, outbound.fare_class, count)

    return_flight = None
    return_fare = None
    if return_leg is not None:
        return_flight = _bookable_flight(return_leg.flight_id, Leg.RETURN)
        if return_flight.departure_time <= outbound_flight.arrival_time:
            raise InvalidRequest('The return flight must depart after the outbound flight arrives.', field='return_flight')
        return_fare = _listed_price(return_flight, return_leg.fare_class, Leg.RETURN)
        _check_seat_supply(return_flight, return_leg.fare_class, count)

    draft = BookingDraft.objects.create(
        user=user if user is not None and user.is_authenticated else None,
        passenger_count=count,
        is_round_trip=return_flight is not None,
        outbound_flight=outbound_flight,
        outbound_fare_class=outbound_fare.fare_class,
        outbound_price=outbound_fare.price,
        return_flight=return_flight,
        return_fare_class=return_fare.fare_class if return_fare else None,
        return_price=return_fare.price if return_fare else None,
        currency=outbound_fare.currency,
        contact_email=(contact_email or getattr(user, 'email', '') or '').strip().lower(),
        contact_phone=(contact_phone or '').strip(),
    )
    logger.info('Created booking draft %s for %s passenger(s)', draft.pk, count)
    return draft


def select_fare(draft: BookingDraft, *, leg: str, choice: LegChoice) -> BookingDraft:
    """Replace the flight or fare class of one leg."""
    _ensure_open(draft)
    label = Leg(leg).value
    flight = _bookable_flight(choice.flight_id, label)
    fare = _listed_price(flight, choice.fare_class, label)
    _check_seat_supply(flight, choice.fare_class, draft.passenger_count)

    with transaction.atomic():
        current_flight = draft.flight_for(leg)
        holds = SeatHold.objects.filter(draft=draft, leg=leg)
        if current_flight is None or current_flight.pk != flight.pk:
            holds.delete()
        else:
            holds.exclude(seat__fare_class=fare.fare_class).delete()
        if leg == Leg.RETURN:
            if flight.departure_time <= draft.outbound_flight.arrival_time:
                raise InvalidRequest('The return flight must depart after the outbound flight arrives.', field='return_flight')
            draft.return_flight = flight
            draft.return_fare_class = fare.fare_class
            draft.return_price = fare.price
            draft.is_round_trip = True
        else:
            if draft.return_flight is not None and draft.return_flight.departure_time <= flight.arrival_time:
                raise InvalidRequest('The return flight must depart after the outbound flight arrives.', field='outbound_flight')
            draft.outbound_flight = flight
            draft.outbound_fare_class = fare.fare_class
            draft.outbound_price = fare.price
        if draft.pending_leg == leg:
            draft.pending_seat = None
            draft.pending_leg = ''
        draft.touch()
        draft.save()
    return draft


def drop_return_leg(draft: BookingDraft) -> BookingDraft:
    _ensure_open(draft)
    with transaction.atomic():
        SeatHold.objects.filter(draft=draft, leg=Leg.RETURN).delete()
        draft.is_round_trip = False
        draft.return_flight = None
        draft.return_fare_class = None
        draft.return_price = None
        if draft.pending_leg == Leg.RETURN:
            draft.pending_seat = None
            draft.pending_leg = ''
        draft.save()
    return draft


def record_passengers(
    draft: BookingDraft,
    *,
    passengers: list[dict[str, Any]],
    contact_email: str,
    contact_phone: str = '',
) -> BookingDraft:
    _ensure_open(draft)
    if len(passengers) != draft.passenger_count:
        raise InvalidRequest(
            f'Please enter details for exactly {draft.passenger_count} passenger(s).',
            field='passengers',
            required=draft.passenger_count,
        )
    if not (contact_email or '').strip():
        raise InvalidRequest('A contact email is required.', field='contact_email')

    draft.passengers = [_normalize_passenger(index, detail) for index, detail in enumerate(passengers, start=1)]
    draft.contact_email = contact_email.strip().lower()
    draft.contact_phone = (contact_phone or '').strip()
    draft.touch()
    draft.save(update_fields=['passengers', 'contact_email', 'contact_phone', 'expires_at', 'updated_at'])
    return draft


def _normalize_passenger(index: int, detail: dict[str, Any]) -> dict[str, Any]:
    first_name = (detail.get('first_name') or '').strip()
    last_name = (detail.get('last_name') or '').strip()
    if not first_name or not last_name:
        raise InvalidRequest(f'Passenger {index} details are incomplete.', field='passengers')
    dob_value = detail.get('date_of_birth')
    if isinstance(dob_value, str) and dob_value:
        try:
            dob_value = date.fromisoformat(dob_value)
        except ValueError as exc:
            raise InvalidRequest(f'Passenger {index} date of birth is invalid.', field='passengers') from exc
    if dob_value and dob_value > timezone.localdate():
        raise InvalidRequest(f'Passenger {index} date of birth cannot be in the future.', field='passengers')
    return {
        'first_name': first_name,
        'last_name': last_name,
        'email': (detail.get('email') or '').strip().lower(),
        'phone': (detail.get('phone') or '').strip(),
        'passport_number': (detail.get('passport_number') or '').strip(),
        'date_of_birth': dob_value.isoformat() if dob_value else None,
    }


def abandon_draft(draft: BookingDraft) -> int:
    """Release every hold of an uncommitted draft and delete it."""
    _ensure_open(draft)
    with transaction.atomic():
        released, _ = SeatHold.objects.filter(draft=draft).delete()
        draft.delete()
    logger.info('Abandoned booking draft, released %s seat hold(s)', released)
    return released


# -- seat holds and the seat map ----------------------------------------------


def _seat_views(flight: Flight, draft: BookingDraft) -> dict[int, SeatView]:
    occupied = set(
        SeatOccupancy.objects.filter(flight=flight, is_occupied=True).values_list('seat_id', flat=True)
    )
    held_elsewhere = set(
        SeatHold.objects.active()
        .filter(flight=flight)
        .exclude(draft=draft)
        .values_list('seat_id', flat=True)
    )
    views: dict[int, SeatView] = {}
    for seat in Seat.objects.filter(airplane_type_id=flight.airplane_type_id):
        views[seat.pk] = SeatView(
            seat_id=seat.pk,
            seat_number=seat.seat_number,
            fare_class=seat.fare_class,
            is_occupied=seat.pk in occupied,
            is_blocked=seat.is_blocked,
            is_held_elsewhere=seat.pk in held_elsewhere,
        )
    return views


def _leg_flight(draft: BookingDraft, leg: str) -> Flight:
    if leg not in draft.legs:
        raise InvalidRequest('This booking has no return flight.', field='leg')
    flight = draft.flight_for(leg)
    if flight is None:  # pragma: no cover - guarded by draft.legs
        raise InvalidRequest(f'Choose a fare for the {leg} flight first.', field='leg')
    return flight


def _selector_for(draft: BookingDraft, leg: str, views: dict[int, SeatView]) -> SeatSelector:
    held_seat_ids = SeatHold.objects.filter(draft=draft, leg=leg).values_list('seat_id', flat=True)
    selector = SeatSelector(
        held_class=draft.fare_class_for(leg),
        capacity=draft.passenger_count,
        selected=[views[seat_id] for seat_id in held_seat_ids if seat_id in views],
        leg_label=leg,
    )
    if draft.pending_seat_id and draft.pending_leg == leg and draft.pending_seat_id in views:
        candidate = views[draft.pending_seat_id]
        selector.candidate = candidate
        if compare_fare_classes(candidate.fare_class, selector.held_class) > 0:
            selector.state = SelectorState.PENDING_UPGRADE
        else:
            selector.state = SelectorState.PENDING_DOWNGRADE
    return selector


def seat_map(draft: BookingDraft, leg: str) -> dict[str, Any]:
    flight = _leg_flight(draft, leg)
    views = _seat_views(flight, draft)
    selector = _selector_for(draft, leg, views)
    selected_ids = {seat.seat_id for seat in selector.selected}
    rows = build_seat_rows(list(views.values()), selected_ids)
    return {
        'leg': leg,
        'flight_id': flight.pk,
        'flight_number': flight.flight_number,
        'fare_class': selector.held_class,
        'fare_class_label': FareClass(selector.held_class).label,
        'capacity': selector.capacity,
        'selected': sorted(seat.seat_number for seat in selector.selected),
        'state': selector.state.value,
        'pending_seat': selector.candidate.seat_number if selector.candidate else None,
        'rows': [{'row': row.number, 'seats': row.seats} for row in rows],
    }


def acquire_hold(draft: BookingDraft, flight: Flight, seat: Seat, leg: str) -> SeatHold:
    """Reserve a seat for a draft until ``SEAT_HOLD_TTL_MINUTES`` from now."""
    now = timezone.now()
    SeatHold.objects.filter(flight=flight, seat=seat, expires_at__lte=now).delete()
    if SeatOccupancy.objects.filter(flight=flight, seat=seat, is_occupied=True).exists():
        raise AvailabilityError(f'Seat {seat.seat_number} has just been booked by someone else.', seat=seat.seat_number)
    try:
        with transaction.atomic():
            return SeatHold.objects.create(
                flight=flight,
                seat=seat,
                draft=draft,
                leg=leg,
                expires_at=now + timedelta(minutes=settings.SEAT_HOLD_TTL_MINUTES),
            )
    except IntegrityError as exc:
        raise AvailabilityError(
            f'Seat {seat.seat_number} is being held by another traveller.',
            seat=seat.seat_number,
        ) from exc


def _release_seats(draft: BookingDraft, leg: str, seat_ids: Iterable[int]) -> int:
    deleted, _ = SeatHold.objects.filter(draft=draft, leg=leg, seat_id__in=list(seat_ids)).delete()
    return deleted


def click_seat(draft_id, *, user, leg: str, seat_id: int) -> SeatClickResult:
    with transaction.atomic():
        draft = get_draft(draft_id, user=user, for_update=True)
        _ensure_open(draft)
        flight = _leg_flight(draft, leg)
        views = _seat_views(flight, draft)
        if seat_id not in views:
            raise RecordNotFound('That seat does not exist on this aircraft.')
        seat_view = views[seat_id]
        selector = _selector_for(draft, leg, views)
        outcome = selector.click(seat_view)

        if outcome == ClickOutcome.REMOVED:
            _release_seats(draft, leg, [seat_id])
        elif outcome == ClickOutcome.SELECTED:
            acquire_hold(draft, flight, Seat.objects.get(pk=seat_id), leg)
        elif outcome in (ClickOutcome.UPGRADE_PENDING, ClickOutcome.DOWNGRADE_PENDING):
            draft.pending_seat_id = seat_id
            draft.pending_leg = leg

        draft.touch()
        draft.save()

    result = SeatClickResult(
        outcome=outcome,
        state=selector.state,
        seat_number=seat_view.seat_number,
        held_class=selector.held_class,
    )
    if selector.candidate is not None:
        result.candidate_class = selector.candidate.fare_class
        fare = fare_price_for(flight, selector.candidate.fare_class)
        result.candidate_price = fare.price if fare else None
    return result


def confirm_class_change(draft_id, *, user) -> SeatClickResult:
    """Move the pending leg to the candidate seat's class, re-price it and hold the seat."""
    with transaction.atomic():
        draft = get_draft(draft_id, user=user, for_update=True)
        _ensure_open(draft)
        if not draft.pending_seat_id or not draft.pending_leg:
            raise InvalidRequest('There is no class change waiting for confirmation.', field='seat')
        leg = draft.pending_leg
        flight = _leg_flight(draft, leg)
        views = _seat_views(flight, draft)
        selector = _selector_for(draft, leg, views)
        candidate = selector.candidate
        if candidate is None or not candidate.selectable:
            raise AvailabilityError('That seat is no longer available.', field='seat')

        fare = fare_price_for(flight, candidate.fare_class)
        if fare is None:
            raise InvalidRequest(
                f'{FareClass(candidate.fare_class).label} is not sold on flight {flight.flight_number}.',
                field='seat',
            )
        released = selector.confirm()
        _release_seats(draft, leg, [seat.seat_id for seat in released])
        acquire_hold(draft, flight, Seat.objects.get(pk=candidate.seat_id), leg)

        if leg == Leg.RETURN:
            draft.return_fare_class = candidate.fare_class
            draft.return_price = fare.price
        else:
            draft.outbound_fare_class = candidate.fare_class
            draft.outbound_price = fare.price
        draft.pending_seat = None
        draft.pending_leg = ''
        draft.touch()
        draft.save()

    logger.info(
        'Draft %s moved %s leg to %s, released %s seat(s)',
        draft.pk,
        leg,
        FareClass(candidate.fare_class).label,
        len(released),
    )
    return SeatClickResult(
        outcome=ClickOutcome.SELECTED,
        state=selector.state,
        seat_number=candidate.seat_number,
        held_class=selector.held_class,
    )


def cancel_class_change(draft_id, *, user) -> BookingDraft:
    with transaction.atomic():
        draft = get_draft(draft_id, user=user, for_update=True)
        draft.pending_seat = None
        draft.pending_leg = ''
        draft.save(update_fields=['pending_seat', 'pending_leg', 'updated_at'])
    return draft


# -- commit ---------------------------------------------------------------------


def booking_total(draft: BookingDraft) -> Decimal:
    total = Decimal('0.00')
    for leg in draft.legs:
        total += draft.price_for(leg) * draft.passenger_count
    return total.quantize(Decimal('0.01'))


def _held_seats_by_leg(draft: BookingDraft) -> dict[str, list[SeatHold]]:
    """Check commit preconditions and return the draft's holds per leg, ordered by seat number."""
    holds_by_leg: dict[str, list[SeatHold]] = {}
    for leg in draft.legs:
        if draft.flight_for(leg) is None or draft.fare_class_for(leg) is None or draft.price_for(leg) is None:
            raise InvalidRequest(f'Please choose a fare for the {leg} flight.', field='fare', leg=leg)
        holds = list(
            SeatHold.objects.filter(draft=draft, leg=leg).select_related('seat', 'flight').order_by('seat__seat_number')
        )
        if len(holds) != draft.passenger_count:
            raise InvalidRequest(
                f'Please select exactly {draft.passenger_count} seat(s) for the {leg} flight '
                f'({len(holds)} selected).',
                field='seats',
                leg=leg,
                required=draft.passenger_count,
                selected=len(holds),
            )
        holds_by_leg[leg] = holds

    if len(draft.passengers or []) != draft.passenger_count:
        raise InvalidRequest(
            f'Please enter details for exactly {draft.passenger_count} passenger(s).',
            field='passengers',
            required=draft.passenger_count,
        )
    if not draft.contact_email:
        raise InvalidRequest('A contact email is required.', field='contact_email')

    for leg, holds in holds_by_leg.items():
        for hold in holds:
            if hold.is_expired:
                raise AvailabilityError(
                    f'Your hold on seat {hold.seat.seat_number} for the {leg} flight has expired.',
                    seat=hold.seat.seat_number,
                    leg=leg,
                )
    return holds_by_leg


def _occupy_seats(booking: Booking, holds_by_leg: dict[str, list[SeatHold]]) -> None:
    for leg, holds in holds_by_leg.items():
        for hold in holds:
            updated = SeatOccupancy.objects.filter(
                flight_id=hold.flight_id,
                seat_id=hold.seat_id,
                is_occupied=False,
            ).update(is_occupied=True, booking=booking)
            if updated != 1:
                raise AvailabilityError(
                    f'Seat {hold.seat.seat_number} on the {leg} flight has just been booked by someone else.',
                    seat=hold.seat.seat_number,
                    leg=leg,
                )


def _issue_tickets(booking: Booking, draft: BookingDraft, holds_by_leg: dict[str, list[SeatHold]]) -> list[Ticket]:
    tickets: list[Ticket] = []
    for leg, holds in holds_by_leg.items():
        for passenger, hold in zip(draft.passengers, holds):
            dob_value = passenger.get('date_of_birth')
            ticket = Ticket(
                booking=booking,
                flight_id=hold.flight_id,
                seat_id=hold.seat_id,
                leg=leg,
                fare_class=draft.fare_class_for(leg),
                price=draft.price_for(leg),
                passenger_first_name=passenger['first_name'],
                passenger_last_name=passenger['last_name'],
                passenger_email=passenger.get('email') or '',
                passenger_phone=passenger.get('phone') or '',
                passport_number=passenger.get('passport_number') or '',
                date_of_birth=date.fromisoformat(dob_value) if dob_value else None,
            )
            ticket.save()
            tickets.append(ticket)
    return tickets


def _points_for(draft: BookingDraft) -> int:
    return sum(draft.flight_for(leg).distance_km for leg in draft.legs) * draft.passenger_count


def commit_draft(draft_id, *, user=None, payment_token: str | None = None) -> Booking:
    """Turn a complete draft into a confirmed, paid booking, or change nothing.

    Replaying a draft that already produced a booking returns that booking.
    """
    charge: PaymentResult | None = None
    try:
        with transaction.atomic():
            draft = get_draft(draft_id, user=user, for_update=True, allow_expired=True)
            if draft.booking_id is not None:
                logger.info('Draft %s already committed as %s', draft.pk, draft.booking_id)
                return draft.booking
            existing = Booking.objects.filter(idempotency_key=draft.idempotency_key).first()
            if existing is not None:
                return existing
            if draft.is_expired:
                raise InvalidRequest('This booking session has expired. Please search again.', field='draft')

            holds_by_leg = _held_seats_by_leg(draft)
            owner = draft.user if draft.user_id else (user if user is not None and user.is_authenticated else None)
            total = booking_total(draft)

            booking = Booking.objects.create(
                user=owner,
                outbound_flight=draft.outbound_flight,
                return_flight=draft.return_flight if draft.is_round_trip else None,
                passenger_count=draft.passenger_count,
                total_price=total,
                currency=draft.currency,
                status=Booking.BookingStatus.CONFIRMED,
                contact_email=draft.contact_email,
                contact_phone=draft.contact_phone,
                idempotency_key=draft.idempotency_key,
            )
            _occupy_seats(booking, holds_by_leg)
            tickets = _issue_tickets(booking, draft, holds_by_leg)

            charge = charge_booking(
                email=draft.contact_email,
                amount=total,
                currency=draft.currency,
                description=f'Cloud Airline booking {booking.reference_number}',
                metadata={
                    'booking_reference': booking.reference_number,
                    'outbound_flight': draft.outbound_flight.flight_number,
                    'passengers': draft.passenger_count,
                },
                payment_token=payment_token,
                idempotency_key=draft.idempotency_key,
            )
            if not charge.is_success:
                raise UpstreamFailure('Your payment was not approved. No booking was made.', status=charge.status)
            store_payment_record(user=owner, booking=booking, amount=total, currency=draft.currency, result=charge)

            SeatHold.objects.filter(draft=draft).delete()
            draft.booking = booking
            draft.pending_seat = None
            draft.pending_leg = ''
            draft.save(update_fields=['booking', 'pending_seat', 'pending_leg', 'updated_at'])

            if owner is not None:
                booking.points_awarded = _points_for(draft)
                booking.save(update_fields=['points_awarded', 'updated_at'])
                adjust_points(owner, booking.points_awarded)

            booking_pk = booking.pk
            transaction.on_commit(lambda: send_ticket_confirmation(Booking.objects.get(pk=booking_pk)), robust=True)
    except Exception:
        if charge is not None and charge.is_success:
            logger.exception('Booking commit failed after payment %s; refunding', charge.reference)
            refund_payment(charge)
        raise

    logger.info(
        'Booking %s confirmed: %s ticket(s), total %s %s',
        booking.reference_number,
        len(tickets),
        booking.total_price,
        booking.currency,
    )
    return booking


# -- after booking ----------------------------------------------------------------


def cancel_booking(*, user, reference: str) -> Booking:
    """Cancel a member's confirmed booking, free its seats and take back its points. No refund is issued."""
    with transaction.atomic():
        booking = (
            Booking.objects.select_for_update()
            .filter(reference_number__iexact=(reference or '').strip(), user_id=getattr(user, 'pk', None))
            .first()
        )
        if booking is None:
            raise RecordNotFound('Booking not found.')
        if booking.status != Booking.BookingStatus.CONFIRMED:
            raise InvalidRequest('Only confirmed bookings can be cancelled.', field='status')

        released = SeatOccupancy.objects.filter(booking=booking).update(is_occupied=False, booking=None)
        booking.status = Booking.BookingStatus.CANCELLED
        booking.cancelled_at = timezone.now()
        booking.save(update_fields=['status', 'cancelled_at', 'updated_at'])
        if booking.points_awarded:
            adjust_points(user, -booking.points_awarded)

    logger.info('Booking %s cancelled, released %s seat(s)', booking.reference_number, released)
    return booking


def lookup_booking(reference: str, last_name: str) -> Booking:
    reference = (reference or '').strip()
    last_name = (last_name or '').strip()
    if not reference or not last_name:
        raise InvalidRequest('Please enter both booking reference and last name.')
    booking = (
        Booking.objects.filter(reference_number__iexact=reference)
        .select_related('outbound_flight__origin', 'outbound_flight__destination', 'user')
        .prefetch_related('tickets__flight', 'tickets__seat')
        .first()
    )
    if booking is None:
        raise RecordNotFound('Booking not found. Please check your booking reference.')
    surnames = {ticket.passenger_last_name.strip().lower() for ticket in booking.tickets.all()}
    if not surnames:
        raise RecordNotFound('No passengers found for this booking.')
    if last_name.lower() not in surnames:
        raise InvalidRequest('Last name does not match any passenger on this booking.', field='last_name')
    return booking


def send_ticket_confirmation(booking: Booking, email: str | None = None) -> None:
    recipient = (email or booking.contact_email or '').strip()
    tickets = list(booking.tickets.select_related('flight__origin', 'flight__destination', 'seat').order_by('leg', 'id'))
    context = {
        'booking': booking,
        'tickets': tickets,
        'site_name': getattr(settings, 'SITE_NAME', 'Cloud Airline'),
    }
    subject = render_to_string('flights/email/ticket_confirmation_subject.txt', context).strip()
    text_body = render_to_string('flights/email/ticket_confirmation_email.txt', context)
    html_body = render_to_string('flights/email/ticket_confirmation_email.html', context)
    try:
        send_booking_email(subject=subject, message=text_body, recipient_list=[recipient], html_message=html_body)
    except (SMTPException, OSError) as exc:
        logger.exception('Sending ticket confirmation for %s failed', booking.reference_number)
        raise UpstreamFailure('We could not send the confirmation email. Please try again later.') from exc


def release_expired_holds(*, dry_run: bool = False) -> tuple[int, int]:
    """Delete expired seat holds and expired uncommitted drafts. Returns (holds, drafts)."""
    holds = SeatHold.objects.expired()
    drafts = BookingDraft.objects.expired()
    hold_count = holds.count()
    draft_count = drafts.count()
    if dry_run:
        return hold_count, draft_count
    with transaction.atomic():
        holds.delete()
        drafts.delete()
    logger.info('Released %s expired seat hold(s) and %s abandoned draft(s)', hold_count, draft_count)
    return hold_count, draft_count
