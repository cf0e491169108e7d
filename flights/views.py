"""JSON API for flight search, the booking draft workflow and bookings."""

from __future__ import annotations

import logging

from django.db.models import Prefetch
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from django_filters.rest_framework import DjangoFilterBackend

from core.exceptions import RecordNotFound

from .filters import BookingFilter
from .models import Booking, Flight, Ticket
from .pricing import bucket_summary, expand_fares, search_flights
from .serializers import (
    BookingDetailSerializer,
    BookingDraftSerializer,
    BookingLookupSerializer,
    BookingSummarySerializer,
    BucketQuerySerializer,
    CommitSerializer,
    DraftCreateSerializer,
    FareSelectionSerializer,
    FlightSearchSerializer,
    FlightSerializer,
    PassengerDetailsSerializer,
    SeatClickSerializer,
    TicketConfirmationSerializer,
    serialize_bucket,
    serialize_fare_option,
    serialize_listing,
)
from .services import (
    LegChoice,
    SeatClickResult,
    abandon_draft,
    cancel_booking,
    cancel_class_change,
    click_seat,
    commit_draft,
    confirm_class_change,
    create_draft,
    drop_return_leg,
    get_draft,
    lookup_booking,
    record_passengers,
    seat_map,
    select_fare,
    send_ticket_confirmation,
)

logger = logging.getLogger(__name__)


def _booking_queryset():
    return Booking.objects.select_related(
        'outbound_flight__origin',
        'outbound_flight__destination',
        'return_flight',
    ).prefetch_related(
        Prefetch('tickets', queryset=Ticket.objects.select_related('flight__origin', 'flight__destination', 'flight__airplane_type', 'seat')),
    )


def _booking_addresses(booking: Booking) -> set[str]:
    addresses = {booking.contact_email.lower()}
    addresses.update(
        address.lower()
        for address in booking.tickets.values_list('passenger_email', flat=True)
        if address
    )
    if booking.user_id:
        addresses.add(booking.user.email.lower())
    return addresses


def _click_payload(result: SeatClickResult) -> dict:
    payload = {
        'outcome': result.outcome.value,
        'state': result.state.value,
        'seat_number': result.seat_number,
        'fare_class': result.held_class,
    }
    if result.candidate_class is not None:
        payload['candidate_fare_class'] = result.candidate_class
        payload['candidate_price'] = str(result.candidate_price) if result.candidate_price is not None else None
    return payload


class FlightSearchView(APIView):
    def get(self, request: Request) -> Response:
        serializer = FlightSearchSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data
        outbound = search_flights(
            origin=params['origin'],
            destination=params['destination'],
            departure_date=params['departure_date'],
            passengers=params['passengers'],
        )
        payload = {'outbound': [serialize_listing(listing) for listing in outbound]}
        if params.get('return_date'):
            inbound = search_flights(
                origin=params['destination'],
                destination=params['origin'],
                departure_date=params['return_date'],
                passengers=params['passengers'],
            )
            payload['return'] = [serialize_listing(listing) for listing in inbound]
        return Response(payload)


class FlightFaresView(APIView):
    def get(self, request: Request, pk: int) -> Response:
        flight = get_object_or_404(Flight.objects.select_related('origin', 'destination', 'airplane_type'), pk=pk)
        query = BucketQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        bucket = query.validated_data['bucket']
        return Response({
            'flight': FlightSerializer(flight).data,
            'bucket': serialize_bucket(bucket_summary(flight, bucket)),
            'fares': [serialize_fare_option(option) for option in expand_fares(flight, bucket)],
        })


class DraftCreateView(APIView):
    def post(self, request: Request) -> Response:
        serializer = DraftCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return_leg = data.get('return_leg')
        draft = create_draft(
            user=request.user,
            passenger_count=data['passenger_count'],
            outbound=LegChoice(**data['outbound']),
            return_leg=LegChoice(**return_leg) if return_leg else None,
            contact_email=data.get('contact_email', ''),
            contact_phone=data.get('contact_phone', ''),
        )
        return Response(BookingDraftSerializer(draft).data, status=status.HTTP_201_CREATED)


class DraftDetailView(APIView):
    def get(self, request: Request, draft_id) -> Response:
        draft = get_draft(draft_id, user=request.user)
        return Response(BookingDraftSerializer(draft).data)

    def delete(self, request: Request, draft_id) -> Response:
        draft = get_draft(draft_id, user=request.user, allow_expired=True)
        abandon_draft(draft)
        return Response(status=status.HTTP_204_NO_CONTENT)


class DraftFareView(APIView):
    def put(self, request: Request, draft_id) -> Response:
        serializer = FareSelectionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        draft = get_draft(draft_id, user=request.user)
        draft = select_fare(draft, leg=data['leg'], choice=LegChoice(data['flight_id'], data['fare_class']))
        return Response(BookingDraftSerializer(draft).data)

    def delete(self, request: Request, draft_id) -> Response:
        draft = drop_return_leg(get_draft(draft_id, user=request.user))
        return Response(BookingDraftSerializer(draft).data)


class SeatMapView(APIView):
    def get(self, request: Request, draft_id) -> Response:
        leg = request.query_params.get('leg', 'outbound')
        draft = get_draft(draft_id, user=request.user)
        return Response(seat_map(draft, leg))


class SeatClickView(APIView):
    def post(self, request: Request, draft_id) -> Response:
        serializer = SeatClickSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = click_seat(
            draft_id,
            user=request.user,
            leg=serializer.validated_data['leg'],
            seat_id=serializer.validated_data['seat_id'],
        )
        return Response(_click_payload(result))


class SeatClassChangeConfirmView(APIView):
    def post(self, request: Request, draft_id) -> Response:
        result = confirm_class_change(draft_id, user=request.user)
        draft = get_draft(draft_id, user=request.user)
        return Response({**_click_payload(result), 'draft': BookingDraftSerializer(draft).data})


class SeatClassChangeCancelView(APIView):
    def post(self, request: Request, draft_id) -> Response:
        cancel_class_change(draft_id, user=request.user)
        return Response({'state': 'idle'})


class DraftPassengersView(APIView):
    def put(self, request: Request, draft_id) -> Response:
        serializer = PassengerDetailsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        draft = get_draft(draft_id, user=request.user)
        draft = record_passengers(
            draft,
            passengers=data['passengers'],
            contact_email=data['contact_email'],
            contact_phone=data.get('contact_phone', ''),
        )
        return Response(BookingDraftSerializer(draft).data)


class DraftCommitView(APIView):
    def post(self, request: Request, draft_id) -> Response:
        serializer = CommitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = commit_draft(
            draft_id,
            user=request.user,
            payment_token=serializer.validated_data.get('payment_token') or None,
        )
        booking = _booking_queryset().select_related('payment').get(pk=booking.pk)
        return Response(BookingDetailSerializer(booking).data, status=status.HTTP_201_CREATED)


class BookingHistoryView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = BookingSummarySerializer
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = BookingFilter
    ordering_fields = ['created_at', 'total_price']
    ordering = ['-created_at']

    def get_queryset(self):
        return Booking.objects.filter(user=self.request.user).select_related('outbound_flight', 'return_flight')


class BookingDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request: Request, reference: str) -> Response:
        booking = _booking_queryset().filter(user=request.user, reference_number__iexact=reference).first()
        if booking is None:
            raise RecordNotFound('Booking not found.')
        return Response(BookingDetailSerializer(booking).data)


class BookingCancelView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request: Request, reference: str) -> Response:
        booking = cancel_booking(user=request.user, reference=reference)
        return Response(BookingSummarySerializer(booking).data)


class BookingStatusView(APIView):
    def post(self, request: Request) -> Response:
        serializer = BookingLookupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = lookup_booking(serializer.validated_data['booking_reference'], serializer.validated_data['last_name'])
        booking = _booking_queryset().get(pk=booking.pk)
        return Response(BookingDetailSerializer(booking).data)


class SendTicketConfirmationView(APIView):
    def post(self, request: Request) -> Response:
        serializer = TicketConfirmationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = Booking.objects.filter(
            reference_number__iexact=serializer.validated_data['booking_reference'].strip(),
        ).first()
        email = serializer.validated_data['email'].strip().lower()
        # only addresses already attached to the booking may receive its tickets
        if booking is None or email not in _booking_addresses(booking):
            raise RecordNotFound('Booking not found. Please check your booking reference.')
        send_ticket_confirmation(booking, email)
        return Response({'success': True})
