"""Flight and booking API URLs."""

from django.urls import path

from .views import (
    BookingCancelView,
    BookingDetailView,
    BookingHistoryView,
    BookingStatusView,
    DraftCommitView,
    DraftCreateView,
    DraftDetailView,
    DraftFareView,
    DraftPassengersView,
    FlightFaresView,
    FlightSearchView,
    SeatClassChangeCancelView,
    SeatClassChangeConfirmView,
    SeatClickView,
    SeatMapView,
    SendTicketConfirmationView,
)

urlpatterns = [
    path('flights/search/', FlightSearchView.as_view(), name='search'),
    path('flights/<int:pk>/fares/', FlightFaresView.as_view(), name='fares'),
    path('drafts/', DraftCreateView.as_view(), name='draft-create'),
    path('drafts/<uuid:draft_id>/', DraftDetailView.as_view(), name='draft-detail'),
    path('drafts/<uuid:draft_id>/fares/', DraftFareView.as_view(), name='draft-fares'),
    path('drafts/<uuid:draft_id>/seat-map/', SeatMapView.as_view(), name='seat-map'),
    path('drafts/<uuid:draft_id>/seats/', SeatClickView.as_view(), name='seat-click'),
    path('drafts/<uuid:draft_id>/seats/confirm/', SeatClassChangeConfirmView.as_view(), name='seat-confirm'),
    path('drafts/<uuid:draft_id>/seats/cancel/', SeatClassChangeCancelView.as_view(), name='seat-cancel'),
    path('drafts/<uuid:draft_id>/passengers/', DraftPassengersView.as_view(), name='draft-passengers'),
    path('drafts/<uuid:draft_id>/commit/', DraftCommitView.as_view(), name='draft-commit'),
    path('bookings/', BookingHistoryView.as_view(), name='booking-list'),
    path('bookings/<str:reference>/', BookingDetailView.as_view(), name='booking-detail'),
    path('bookings/<str:reference>/cancel/', BookingCancelView.as_view(), name='booking-cancel'),
    path('booking-status/', BookingStatusView.as_view(), name='booking-status'),
    path('send-ticket-confirmation/', SendTicketConfirmationView.as_view(), name='send-ticket-confirmation'),
]
