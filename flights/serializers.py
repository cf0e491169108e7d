"""Serializers for flight search, booking drafts and bookings."""

from __future__ import annotations

from rest_framework import serializers

from .models import Airport, Booking, BookingDraft, CabinBucket, FareClass, Flight, Leg, Ticket
from .pricing import NOT_AVAILABLE, BucketSummary, FareOption, FlightListing, resolve_bucket
from .services import booking_total


def _price_or_label(value):
    return NOT_AVAILABLE if value is None else str(value)


class AirportSerializer(serializers.ModelSerializer):
    class Meta:
        model = Airport
        fields = ['code', 'name', 'city', 'country']


class FlightSerializer(serializers.ModelSerializer):
    origin = AirportSerializer(read_only=True)
    destination = AirportSerializer(read_only=True)
    airplane_type = serializers.CharField(source='airplane_type.name', read_only=True)
    status = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Flight
        fields = [
            'id',
            'flight_number',
            'origin',
            'destination',
            'departure_time',
            'arrival_time',
            'status',
            'distance_km',
            'airplane_type',
        ]


class FlightSearchSerializer(serializers.Serializer):
    origin = serializers.CharField(max_length=3, min_length=3)
    destination = serializers.CharField(max_length=3, min_length=3)
    departure_date = serializers.DateField()
    return_date = serializers.DateField(required=False, allow_null=True)
    passengers = serializers.IntegerField(min_value=1, max_value=9, default=1)

    def validate(self, attrs):
        if attrs['origin'].upper() == attrs['destination'].upper():
            raise serializers.ValidationError({'destination': 'Destination must differ from origin.'})
        return_date = attrs.get('return_date')
        if return_date and return_date < attrs['departure_date']:
            raise serializers.ValidationError({'return_date': 'Return date cannot be before departure date.'})
        return attrs


def serialize_bucket(summary: BucketSummary) -> dict:
    return {
        'bucket': summary.bucket,
        'price': _price_or_label(summary.price),
        'display_price': summary.display_price,
        'currency': summary.currency,
        'availability': summary.availability,
        'is_available': summary.is_available,
    }


def serialize_listing(listing: FlightListing) -> dict:
    payload = FlightSerializer(listing.flight).data
    payload['fares'] = {bucket: serialize_bucket(summary) for bucket, summary in listing.buckets.items()}
    return payload


def serialize_fare_option(option: FareOption) -> dict:
    return {
        'fare_class': int(option.fare_class),
        'label': option.label,
        'price': _price_or_label(option.price),
        'currency': option.currency,
        'listed_availability': option.listed_availability,
        'available_seats': option.available_seats,
        'is_available': option.is_available,
    }


class LegChoiceSerializer(serializers.Serializer):
    flight_id = serializers.IntegerField()
    fare_class = serializers.ChoiceField(choices=FareClass.choices)


class DraftCreateSerializer(serializers.Serializer):
    passenger_count = serializers.IntegerField(min_value=1, max_value=9)
    outbound = LegChoiceSerializer()
    return_leg = LegChoiceSerializer(required=False, allow_null=True)
    contact_email = serializers.EmailField(required=False, allow_blank=True)
    contact_phone = serializers.CharField(required=False, allow_blank=True, max_length=32)


class FareSelectionSerializer(serializers.Serializer):
    leg = serializers.ChoiceField(choices=Leg.choices)
    flight_id = serializers.IntegerField()
    fare_class = serializers.ChoiceField(choices=FareClass.choices)


class SeatClickSerializer(serializers.Serializer):
    leg = serializers.ChoiceField(choices=Leg.choices)
    seat_id = serializers.IntegerField()


class PassengerSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=120)
    last_name = serializers.CharField(max_length=120)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    passport_number = serializers.CharField(required=False, allow_blank=True, max_length=20)
    date_of_birth = serializers.DateField(required=False, allow_null=True)


class PassengerDetailsSerializer(serializers.Serializer):
    passengers = PassengerSerializer(many=True)
    contact_email = serializers.EmailField()
    contact_phone = serializers.CharField(required=False, allow_blank=True, max_length=32)


class CommitSerializer(serializers.Serializer):
    payment_token = serializers.CharField(required=False, allow_blank=True)


class BookingDraftSerializer(serializers.ModelSerializer):
    outbound_flight = FlightSerializer(read_only=True)
    return_flight = FlightSerializer(read_only=True)
    outbound_fare_class_label = serializers.CharField(source='get_outbound_fare_class_display', read_only=True)
    return_fare_class_label = serializers.CharField(source='get_return_fare_class_display', read_only=True)
    seats = serializers.SerializerMethodField()
    total_price = serializers.SerializerMethodField()
    booking_reference = serializers.CharField(source='booking.reference_number', read_only=True, default=None)

    class Meta:
        model = BookingDraft
        fields = [
            'id',
            'passenger_count',
            'is_round_trip',
            'outbound_flight',
            'outbound_fare_class',
            'outbound_fare_class_label',
            'outbound_price',
            'return_flight',
            'return_fare_class',
            'return_fare_class_label',
            'return_price',
            'currency',
            'contact_email',
            'contact_phone',
            'passengers',
            'seats',
            'total_price',
            'expires_at',
            'booking_reference',
        ]

    def get_seats(self, draft: BookingDraft) -> dict[str, list[str]]:
        seats: dict[str, list[str]] = {leg: [] for leg in draft.legs}
        for hold in draft.seat_holds.select_related('seat').order_by('seat__seat_number'):
            seats.setdefault(hold.leg, []).append(hold.seat.seat_number)
        return seats

    def get_total_price(self, draft: BookingDraft) -> str:
        return str(booking_total(draft))


class TicketSerializer(serializers.ModelSerializer):
    flight = FlightSerializer(read_only=True)
    seat_number = serializers.CharField(source='seat.seat_number', read_only=True)
    fare_class_label = serializers.CharField(source='get_fare_class_display', read_only=True)
    passenger_name = serializers.CharField(read_only=True)

    class Meta:
        model = Ticket
        fields = [
            'ticket_number',
            'leg',
            'flight',
            'seat_number',
            'fare_class',
            'fare_class_label',
            'price',
            'passenger_name',
            'passenger_first_name',
            'passenger_last_name',
        ]


class BookingSummarySerializer(serializers.ModelSerializer):
    reference = serializers.CharField(source='reference_number', read_only=True)
    booked_at = serializers.DateTimeField(read_only=True)
    status_label = serializers.CharField(source='get_status_display', read_only=True)
    outbound_flight = serializers.CharField(source='outbound_flight.flight_number', read_only=True)
    return_flight = serializers.CharField(source='return_flight.flight_number', read_only=True, default=None)
    departure_time = serializers.DateTimeField(source='outbound_flight.departure_time', read_only=True)

    class Meta:
        model = Booking
        fields = [
            'reference',
            'booked_at',
            'status',
            'status_label',
            'total_price',
            'currency',
            'passenger_count',
            'outbound_flight',
            'return_flight',
            'departure_time',
            'points_awarded',
        ]


class BookingDetailSerializer(BookingSummarySerializer):
    tickets = TicketSerializer(many=True, read_only=True)
    payment = serializers.SerializerMethodField()

    class Meta(BookingSummarySerializer.Meta):
        fields = BookingSummarySerializer.Meta.fields + ['contact_email', 'contact_phone', 'tickets', 'payment']

    def get_payment(self, booking: Booking) -> dict | None:
        payment = getattr(booking, 'payment', None)
        if payment is None:
            return None
        return {
            'method': payment.method,
            'amount': str(payment.amount),
            'currency': payment.currency,
            'status': payment.status,
            'paid_at': payment.paid_at,
        }


class BookingLookupSerializer(serializers.Serializer):
    booking_reference = serializers.CharField(max_length=18)
    last_name = serializers.CharField(max_length=120)


class TicketConfirmationSerializer(serializers.Serializer):
    email = serializers.EmailField(error_messages={'invalid': 'Invalid email format'})
    booking_reference = serializers.CharField(max_length=18)


class BucketQuerySerializer(serializers.Serializer):
    bucket = serializers.CharField(required=False, default=CabinBucket.ECONOMY.value)

    def validate_bucket(self, value: str) -> str:
        return resolve_bucket(value).value
