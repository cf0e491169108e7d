from django.contrib import admin

from .models import (
    AirplaneType,
    Airport,
    Booking,
    BookingDraft,
    FarePrice,
    Flight,
    Seat,
    SeatHold,
    SeatOccupancy,
    Ticket,
)


@admin.register(Airport)
class AirportAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'city', 'country')
    search_fields = ('code', 'name', 'city')


class SeatInline(admin.TabularInline):
    model = Seat
    extra = 0
    fields = ('seat_number', 'fare_class', 'seat_type')
    ordering = ('seat_number',)


@admin.register(AirplaneType)
class AirplaneTypeAdmin(admin.ModelAdmin):
    list_display = ('name', 'manufacturer')
    search_fields = ('name',)
    inlines = [SeatInline]


class FarePriceInline(admin.TabularInline):
    model = FarePrice
    extra = 0
    fields = ('fare_class', 'price', 'currency', 'availability_count')
    ordering = ('fare_class',)


@admin.register(Flight)
class FlightAdmin(admin.ModelAdmin):
    list_display = (
        'flight_number',
        'origin',
        'destination',
        'departure_time',
        'status',
        'airplane_type',
        'is_active',
    )
    search_fields = ('flight_number', 'origin__code', 'destination__code')
    list_filter = ('status', 'is_active', 'departure_time')
    fieldsets = (
        ('Flight details', {
            'fields': (
                'flight_number',
                'origin',
                'destination',
                'departure_time',
                'arrival_time',
                'distance_km',
                'airplane_type',
                'status',
                'is_active',
            ),
        }),
    )
    inlines = [FarePriceInline]
    autocomplete_fields = ('origin', 'destination')


@admin.register(SeatOccupancy)
class SeatOccupancyAdmin(admin.ModelAdmin):
    list_display = ('flight', 'seat', 'is_occupied', 'booking', 'updated_at')
    search_fields = ('flight__flight_number', 'seat__seat_number', 'booking__reference_number')
    list_filter = ('is_occupied',)
    raw_id_fields = ('flight', 'seat', 'booking')


@admin.register(SeatHold)
class SeatHoldAdmin(admin.ModelAdmin):
    list_display = ('flight', 'seat', 'leg', 'draft', 'expires_at')
    list_filter = ('leg', 'expires_at')
    raw_id_fields = ('flight', 'seat', 'draft')


@admin.register(BookingDraft)
class BookingDraftAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'passenger_count', 'is_round_trip', 'outbound_flight', 'expires_at', 'booking')
    list_filter = ('is_round_trip', 'expires_at')
    readonly_fields = ('created_at', 'updated_at')
    raw_id_fields = ('user', 'outbound_flight', 'return_flight', 'pending_seat', 'booking')


class TicketInline(admin.TabularInline):
    model = Ticket
    extra = 0
    fields = ('ticket_number', 'leg', 'flight', 'seat', 'fare_class', 'price', 'passenger_first_name', 'passenger_last_name')
    readonly_fields = ('ticket_number',)
    raw_id_fields = ('flight', 'seat')


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        'reference_number',
        'user',
        'outbound_flight',
        'passenger_count',
        'total_price',
        'status',
        'created_at',
    )
    search_fields = ('reference_number', 'user__email', 'contact_email', 'outbound_flight__flight_number')
    list_filter = ('status', 'created_at')
    readonly_fields = ('reference_number', 'idempotency_key', 'created_at', 'updated_at')
    inlines = [TicketInline]
    raw_id_fields = ('user', 'outbound_flight', 'return_flight')
