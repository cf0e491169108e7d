from __future__ import annotations

import django_filters

from .models import Booking


class BookingFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Booking.BookingStatus.choices)
    booked_after = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    booked_before = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    departs_after = django_filters.DateFilter(field_name='outbound_flight__departure_time', lookup_expr='date__gte')

    class Meta:
        model = Booking
        fields = ['status']
