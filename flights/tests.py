from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core import mail
from django.core.management import call_command
from django.db import DatabaseError, IntegrityError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from core.exceptions import AvailabilityError, InvalidRequest
from payments.models import Payment
from payments.services import PaymentResult

from .models import (
	AirplaneType,
	Airport,
	Booking,
	BookingDraft,
	CabinBucket,
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
from .pricing import bucket_summary, expand_fares, search_flights
from .seatmap import ClickOutcome, SeatSelector, SeatView, SelectorState
from .services import (
	LegChoice,
	cancel_booking,
	click_seat,
	commit_draft,
	create_draft,
	record_passengers,
)

SEAT_LAYOUT = (
	('1A', FareClass.FIRST),
	('1B', FareClass.BUSINESS),
	('2A', FareClass.BUSINESS),
	('3A', FareClass.PREMIUM_ECONOMY),
	('3B', FareClass.PREMIUM_ECONOMY),
	('4A', FareClass.ECONOMY_FLEX),
	('4B', FareClass.ECONOMY_FLEX),
	('4C', FareClass.ECONOMY_FLEX),
	('5A', FareClass.ECONOMY_SAVER),
	('5B', FareClass.ECONOMY_SAVER),
)


class FlightFixtureMixin:
	def setUp(self) -> None:
		self.han = Airport.objects.create(code='HAN', name='Noi Bai International', city='Hanoi', country='Vietnam')
		self.tpe = Airport.objects.create(code='TPE', name='Taoyuan International', city='Taipei', country='Taiwan')
		self.airplane_type = AirplaneType.objects.create(name='A321neo', manufacturer='Airbus')
		for seat_number, fare_class in SEAT_LAYOUT:
			Seat.objects.create(airplane_type=self.airplane_type, seat_number=seat_number, fare_class=fare_class)
		self.blocked_seat = Seat.objects.create(
			airplane_type=self.airplane_type,
			seat_number='6A',
			fare_class=FareClass.ECONOMY_SAVER,
			seat_type=Seat.SeatType.BLOCKED,
		)
		departure = timezone.now() + timedelta(days=3)
		self.outbound = self._flight('CA101', self.han, self.tpe, departure)
		self.inbound = self._flight('CA102', self.tpe, self.han, departure + timedelta(days=4))
		self.member = User.objects.create_user(
			email='member@example.com',
			password='Sup3r-secret-pass',
			first_name='Linh',
			last_name='Nguyen',
			email_verified=True,
		)
		self.client = APIClient()

	def _flight(self, number, origin, destination, departure) -> Flight:
		return Flight.objects.create(
			flight_number=number,
			origin=origin,
			destination=destination,
			departure_time=departure,
			arrival_time=departure + timedelta(hours=3),
			distance_km=1200,
			airplane_type=self.airplane_type,
		)

	def _fare(self, flight, fare_class, price, availability=5) -> FarePrice:
		return FarePrice.objects.create(
			flight=flight,
			fare_class=fare_class,
			price=Decimal(price),
			availability_count=availability,
		)

	def _seat(self, seat_number) -> Seat:
		return Seat.objects.get(airplane_type=self.airplane_type, seat_number=seat_number)

	def _passengers(self, count):
		return [
			{'first_name': f'Passenger{index}', 'last_name': 'Nguyen', 'date_of_birth': '1990-05-01'}
			for index in range(count)
		]


class FareClassTests(SimpleTestCase):
	def test_ranking_follows_cabin_order(self) -> None:
		self.assertEqual(compare_fare_classes(FareClass.ECONOMY_SAVER, FareClass.ECONOMY_FLEX), -1)
		self.assertEqual(compare_fare_classes(FareClass.FIRST, FareClass.BUSINESS), 1)
		self.assertEqual(compare_fare_classes(FareClass.PREMIUM_ECONOMY, FareClass.PREMIUM_ECONOMY), 0)

	def test_buckets_cover_expected_classes(self) -> None:
		self.assertEqual(
			CabinBucket.ECONOMY.fare_classes,
			(FareClass.ECONOMY_SAVER, FareClass.ECONOMY_FLEX, FareClass.PREMIUM_ECONOMY),
		)
		self.assertEqual(CabinBucket.FIRST_CLASS.fare_classes, (FareClass.BUSINESS, FareClass.FIRST))


class FareAggregationTests(FlightFixtureMixin, TestCase):
	def test_economy_bucket_shows_cheapest_listed_class(self) -> None:
		self._fare(self.outbound, FareClass.ECONOMY_SAVER, '1200000', availability=2)
		self._fare(self.outbound, FareClass.PREMIUM_ECONOMY, '1500000', availability=2)

		listings = search_flights(
			origin='han',
			destination='TPE',
			departure_date=timezone.localtime(self.outbound.departure_time).date(),
		)

		self.assertEqual(len(listings), 1)
		economy = listings[0].buckets[CabinBucket.ECONOMY]
		self.assertEqual(economy.price, Decimal('1200000'))
		self.assertEqual(economy.availability, 4)

	def test_bucket_without_prices_is_not_available_rather_than_zero(self) -> None:
		self._fare(self.outbound, FareClass.ECONOMY_FLEX, '900000')

		summary = bucket_summary(self.outbound, CabinBucket.FIRST_CLASS)

		self.assertIsNone(summary.price)
		self.assertFalse(summary.is_available)
		self.assertEqual(summary.display_price, 'Not Available')

	def test_expanded_fares_count_seats_minus_occupied(self) -> None:
		self._fare(self.outbound, FareClass.ECONOMY_FLEX, '900000', availability=9)
		SeatOccupancy.objects.filter(flight=self.outbound, seat=self._seat('4A')).update(is_occupied=True)

		with self.assertLogs('flights.pricing', level='WARNING'):
			options = {option.fare_class: option for option in expand_fares(self.outbound, CabinBucket.ECONOMY)}

		self.assertEqual(options[FareClass.ECONOMY_FLEX].available_seats, 2)
		self.assertEqual(options[FareClass.ECONOMY_FLEX].listed_availability, 9)
		# blocked seats never count toward availability
		self.assertEqual(options[FareClass.ECONOMY_SAVER].available_seats, 2)
		self.assertIsNone(options[FareClass.ECONOMY_SAVER].price)

	def test_expand_fares_degrades_when_inventory_lookup_fails(self) -> None:
		self._fare(self.outbound, FareClass.ECONOMY_FLEX, '900000')

		with mock.patch('flights.pricing.true_availability', side_effect=DatabaseError('down')):
			with self.assertLogs('flights.pricing', level='ERROR'):
				options = expand_fares(self.outbound, CabinBucket.ECONOMY)

		self.assertTrue(all(option.price is None and option.available_seats == 0 for option in options))

	def test_search_endpoint_renders_missing_bucket_as_not_available(self) -> None:
		self._fare(self.outbound, FareClass.ECONOMY_SAVER, '1200000')

		response = self.client.get(reverse('flights:search'), {
			'origin': 'HAN',
			'destination': 'TPE',
			'departure_date': timezone.localtime(self.outbound.departure_time).date().isoformat(),
		})

		self.assertEqual(response.status_code, 200)
		fares = response.data['outbound'][0]['fares']
		self.assertEqual(fares['economy']['price'], '1200000.00')
		self.assertEqual(fares['first-class']['price'], 'Not Available')

	def test_fares_endpoint_lists_each_class_of_bucket(self) -> None:
		self._fare(self.outbound, FareClass.BUSINESS, '5000000', availability=2)

		response = self.client.get(reverse('flights:fares', args=[self.outbound.pk]), {'bucket': 'first-class'})

		self.assertEqual(response.status_code, 200)
		self.assertEqual([fare['fare_class'] for fare in response.data['fares']], [4, 5])
		self.assertEqual(response.data['fares'][1]['price'], 'Not Available')

	def test_fares_endpoint_accepts_loose_bucket_names(self) -> None:
		self._fare(self.outbound, FareClass.FIRST, '9000000', availability=1)

		first = self.client.get(reverse('flights:fares', args=[self.outbound.pk]), {'bucket': 'First_Class'})
		fallback = self.client.get(reverse('flights:fares', args=[self.outbound.pk]), {'bucket': 'lounge'})

		self.assertEqual(first.data['bucket']['bucket'], 'first-class')
		self.assertEqual(first.data['bucket']['price'], '9000000.00')
		self.assertEqual(fallback.data['bucket']['bucket'], 'economy')

	def test_search_leaves_out_flights_too_small_for_the_party(self) -> None:
		self._fare(self.outbound, FareClass.ECONOMY_SAVER, '1200000', availability=2)
		params = {
			'origin': 'HAN',
			'destination': 'TPE',
			'departure_date': timezone.localtime(self.outbound.departure_time).date().isoformat(),
		}

		pair = self.client.get(reverse('flights:search'), {**params, 'passengers': 2})
		trio = self.client.get(reverse('flights:search'), {**params, 'passengers': 3})

		self.assertEqual([listing['flight_number'] for listing in pair.data['outbound']], ['CA101'])
		self.assertEqual(trio.data['outbound'], [])


class SeatSelectorTests(SimpleTestCase):
	def setUp(self) -> None:
		self.flex_a = SeatView(seat_id=1, seat_number='4A', fare_class=FareClass.ECONOMY_FLEX)
		self.flex_b = SeatView(seat_id=2, seat_number='4B', fare_class=FareClass.ECONOMY_FLEX)
		self.business = SeatView(seat_id=3, seat_number='1B', fare_class=FareClass.BUSINESS)
		self.saver = SeatView(seat_id=4, seat_number='5A', fare_class=FareClass.ECONOMY_SAVER)

	def test_same_class_commits_directly(self) -> None:
		selector = SeatSelector(held_class=FareClass.ECONOMY_FLEX, capacity=2)
		self.assertEqual(selector.click(self.flex_a), ClickOutcome.SELECTED)
		self.assertEqual(selector.state, SelectorState.COMMITTED)
		self.assertEqual(selector.selected, [self.flex_a])

	def test_declined_upgrade_leaves_selection_unchanged(self) -> None:
		selector = SeatSelector(held_class=FareClass.ECONOMY_FLEX, capacity=2, selected=[self.flex_a])

		self.assertEqual(selector.click(self.business), ClickOutcome.UPGRADE_PENDING)
		self.assertEqual(selector.state, SelectorState.PENDING_UPGRADE)
		selector.cancel()

		self.assertEqual(selector.state, SelectorState.IDLE)
		self.assertEqual(selector.selected, [self.flex_a])
		self.assertEqual(selector.held_class, FareClass.ECONOMY_FLEX)

	def test_confirmed_upgrade_changes_class_and_releases_mismatched_seats(self) -> None:
		selector = SeatSelector(held_class=FareClass.ECONOMY_FLEX, capacity=2, selected=[self.flex_a])
		selector.click(self.business)

		released = selector.confirm()

		self.assertEqual(released, [self.flex_a])
		self.assertEqual(selector.held_class, FareClass.BUSINESS)
		self.assertEqual(selector.selected, [self.business])
		self.assertEqual(selector.state, SelectorState.IDLE)

	def test_lower_class_seat_asks_for_downgrade(self) -> None:
		selector = SeatSelector(held_class=FareClass.ECONOMY_FLEX, capacity=1)
		self.assertEqual(selector.click(self.saver), ClickOutcome.DOWNGRADE_PENDING)
		self.assertEqual(selector.state, SelectorState.PENDING_DOWNGRADE)

	def test_selection_beyond_passenger_count_is_rejected(self) -> None:
		selector = SeatSelector(held_class=FareClass.ECONOMY_FLEX, capacity=1, selected=[self.flex_a])

		with self.assertRaises(InvalidRequest) as ctx:
			selector.click(self.flex_b)

		self.assertEqual(ctx.exception.details['required'], 1)
		self.assertEqual(selector.selected, [self.flex_a])
		self.assertEqual(selector.state, SelectorState.IDLE)

	def test_full_leg_can_still_change_class(self) -> None:
		selector = SeatSelector(held_class=FareClass.ECONOMY_FLEX, capacity=1, selected=[self.flex_a])

		self.assertEqual(selector.click(self.business), ClickOutcome.UPGRADE_PENDING)
		self.assertEqual(selector.state, SelectorState.PENDING_UPGRADE)
		released = selector.confirm()

		self.assertEqual(released, [self.flex_a])
		self.assertEqual(selector.selected, [self.business])
		self.assertEqual(selector.held_class, FareClass.BUSINESS)

	def test_clicking_selected_seat_removes_it_whatever_its_class(self) -> None:
		selector = SeatSelector(held_class=FareClass.BUSINESS, capacity=2, selected=[self.flex_a, self.flex_b])

		self.assertEqual(selector.click(self.flex_a), ClickOutcome.REMOVED)

		self.assertEqual(selector.selected, [self.flex_b])

	def test_unavailable_seats_are_ignored(self) -> None:
		selector = SeatSelector(held_class=FareClass.ECONOMY_FLEX, capacity=2)
		occupied = SeatView(seat_id=9, seat_number='4C', fare_class=FareClass.ECONOMY_FLEX, is_occupied=True)
		blocked = SeatView(seat_id=10, seat_number='6A', fare_class=FareClass.FIRST, is_blocked=True)

		self.assertEqual(selector.click(occupied), ClickOutcome.IGNORED)
		self.assertEqual(selector.click(blocked), ClickOutcome.IGNORED)
		self.assertEqual(selector.selected, [])
		self.assertEqual(selector.state, SelectorState.IDLE)

	def test_new_click_waits_for_pending_change(self) -> None:
		selector = SeatSelector(held_class=FareClass.ECONOMY_FLEX, capacity=2)
		selector.click(self.business)
		with self.assertRaises(InvalidRequest):
			selector.click(self.flex_a)


class BookingDraftWorkflowTests(FlightFixtureMixin, TestCase):
	def setUp(self) -> None:
		super().setUp()
		self._fare(self.outbound, FareClass.ECONOMY_FLEX, '2000000')
		self._fare(self.outbound, FareClass.BUSINESS, '6000000')
		self._fare(self.inbound, FareClass.ECONOMY_FLEX, '1800000')

	def _create_draft(self, passengers=1, round_trip=False) -> dict:
		payload = {
			'passenger_count': passengers,
			'outbound': {'flight_id': self.outbound.pk, 'fare_class': FareClass.ECONOMY_FLEX},
			'contact_email': 'traveller@example.com',
		}
		if round_trip:
			payload['return_leg'] = {'flight_id': self.inbound.pk, 'fare_class': FareClass.ECONOMY_FLEX}
		response = self.client.post(reverse('flights:draft-create'), payload, format='json')
		self.assertEqual(response.status_code, 201, response.data)
		return response.data

	def _click(self, draft_id, seat_number, leg=Leg.OUTBOUND):
		return self.client.post(
			reverse('flights:seat-click', args=[draft_id]),
			{'leg': leg, 'seat_id': self._seat(seat_number).pk},
			format='json',
		)

	def _add_passengers(self, draft_id, count):
		response = self.client.put(
			reverse('flights:draft-passengers', args=[draft_id]),
			{'passengers': self._passengers(count), 'contact_email': 'traveller@example.com'},
			format='json',
		)
		self.assertEqual(response.status_code, 200, response.data)

	def test_same_class_seat_is_held_for_the_draft(self) -> None:
		draft = self._create_draft()

		response = self._click(draft['id'], '4A')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['outcome'], 'selected')
		self.assertTrue(SeatHold.objects.filter(draft_id=draft['id'], seat=self._seat('4A')).exists())
		seat_map = self.client.get(reverse('flights:seat-map', args=[draft['id']]), {'leg': 'outbound'})
		self.assertEqual(seat_map.data['selected'], ['4A'])
		first_row = seat_map.data['rows'][0]
		self.assertEqual([seat['column'] for seat in first_row['seats']], ['A', 'B'])

	def test_confirmed_upgrade_reprices_leg_and_releases_old_seat(self) -> None:
		draft = self._create_draft()
		self._click(draft['id'], '4A')

		pending = self._click(draft['id'], '1B')
		self.assertEqual(pending.data['outcome'], 'upgrade_pending')
		self.assertEqual(pending.data['candidate_price'], '6000000.00')
		response = self.client.post(reverse('flights:seat-confirm', args=[draft['id']]))

		self.assertEqual(response.status_code, 200, response.data)
		stored = BookingDraft.objects.get(pk=draft['id'])
		self.assertEqual(stored.outbound_fare_class, FareClass.BUSINESS)
		self.assertEqual(stored.outbound_price, Decimal('6000000'))
		self.assertEqual(
			list(SeatHold.objects.filter(draft=stored).values_list('seat__seat_number', flat=True)),
			['1B'],
		)

	def test_class_change_without_listed_fare_is_rejected(self) -> None:
		draft = self._create_draft()
		self._click(draft['id'], '1A')

		response = self.client.post(reverse('flights:seat-confirm', args=[draft['id']]))

		self.assertEqual(response.status_code, 400)
		self.assertEqual(BookingDraft.objects.get(pk=draft['id']).outbound_fare_class, FareClass.ECONOMY_FLEX)

	def test_declined_change_keeps_prior_selection(self) -> None:
		draft = self._create_draft(passengers=2)
		self._click(draft['id'], '4A')
		self._click(draft['id'], '1B')

		response = self.client.post(reverse('flights:seat-cancel', args=[draft['id']]))

		self.assertEqual(response.status_code, 200)
		stored = BookingDraft.objects.get(pk=draft['id'])
		self.assertIsNone(stored.pending_seat)
		self.assertEqual(list(stored.seat_holds.values_list('seat__seat_number', flat=True)), ['4A'])

	def test_extra_seat_beyond_passenger_count_is_rejected(self) -> None:
		draft = self._create_draft()
		self._click(draft['id'], '4A')

		response = self._click(draft['id'], '4B')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['kind'], 'validation')
		self.assertEqual(SeatHold.objects.filter(draft_id=draft['id']).count(), 1)

	def test_seat_held_by_another_draft_cannot_be_taken(self) -> None:
		first = self._create_draft()
		second = self._create_draft()
		self._click(first['id'], '4A')

		response = self._click(second['id'], '4A')

		self.assertEqual(response.data['outcome'], 'ignored')
		self.assertFalse(SeatHold.objects.filter(draft_id=second['id']).exists())

	def test_expired_hold_does_not_block_other_travellers(self) -> None:
		first = self._create_draft()
		second = self._create_draft()
		self._click(first['id'], '4A')
		SeatHold.objects.filter(draft_id=first['id']).update(expires_at=timezone.now() - timedelta(minutes=1))

		response = self._click(second['id'], '4A')

		self.assertEqual(response.data['outcome'], 'selected')
		self.assertEqual(str(SeatHold.objects.get(seat=self._seat('4A'), flight=self.outbound).draft_id), second['id'])

	def test_round_trip_commit_requires_full_return_leg(self) -> None:
		draft = self._create_draft(passengers=2, round_trip=True)
		self._click(draft['id'], '4A')
		self._click(draft['id'], '4B')
		self._click(draft['id'], '4A', leg=Leg.RETURN)
		self._add_passengers(draft['id'], 2)

		response = self.client.post(reverse('flights:draft-commit', args=[draft['id']]), {}, format='json')

		self.assertEqual(response.status_code, 400)
		self.assertIn('return flight', response.data['error'])
		self.assertEqual(response.data['details']['leg'], 'return')
		self.assertEqual(response.data['details']['required'], 2)
		self.assertFalse(Booking.objects.exists())
		self.assertFalse(SeatOccupancy.objects.filter(is_occupied=True).exists())

	def test_commit_creates_priced_booking_ticket_and_occupancy(self) -> None:
		self.client.force_authenticate(self.member)
		draft = self._create_draft()
		self._click(draft['id'], '4A')
		self._add_passengers(draft['id'], 1)

		with self.captureOnCommitCallbacks(execute=True):
			response = self.client.post(reverse('flights:draft-commit', args=[draft['id']]), {}, format='json')

		self.assertEqual(response.status_code, 201, response.data)
		booking = Booking.objects.get()
		self.assertEqual(booking.total_price, Decimal('2000000'))
		self.assertEqual(booking.status, Booking.BookingStatus.CONFIRMED)
		self.assertEqual(Ticket.objects.filter(booking=booking).count(), 1)
		self.assertEqual(SeatOccupancy.objects.filter(flight=self.outbound, is_occupied=True).count(), 1)
		self.assertEqual(booking.payment.provider, Payment.PaymentProvider.TEST)
		self.assertFalse(SeatHold.objects.exists())
		self.member.refresh_from_db()
		self.assertEqual(self.member.points_available, 1200)
		self.assertEqual(len(mail.outbox), 1)
		self.assertIn(booking.reference_number, mail.outbox[0].subject)

	def test_round_trip_total_counts_each_leg_per_passenger(self) -> None:
		draft = self._create_draft(passengers=2, round_trip=True)
		for seat_number in ('4A', '4B'):
			self._click(draft['id'], seat_number)
			self._click(draft['id'], seat_number, leg=Leg.RETURN)
		self._add_passengers(draft['id'], 2)

		response = self.client.post(reverse('flights:draft-commit', args=[draft['id']]), {}, format='json')

		self.assertEqual(response.status_code, 201, response.data)
		booking = Booking.objects.get()
		self.assertEqual(booking.total_price, Decimal('7600000'))
		self.assertEqual(booking.tickets.count(), 4)
		self.assertIsNone(booking.user)

	def test_repeated_commit_returns_the_same_booking(self) -> None:
		draft = self._create_draft()
		self._click(draft['id'], '4A')
		self._add_passengers(draft['id'], 1)

		first = commit_draft(draft['id'])
		second = commit_draft(draft['id'])

		self.assertEqual(first.pk, second.pk)
		self.assertEqual(Booking.objects.count(), 1)
		self.assertEqual(Ticket.objects.count(), 1)

	def test_seat_taken_by_concurrent_commit_is_rejected(self) -> None:
		draft = self._create_draft()
		self._click(draft['id'], '4A')
		self._add_passengers(draft['id'], 1)
		# another booking won the compare-and-set on the same seat
		SeatOccupancy.objects.filter(flight=self.outbound, seat=self._seat('4A')).update(is_occupied=True)

		response = self.client.post(reverse('flights:draft-commit', args=[draft['id']]), {}, format='json')

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['kind'], 'conflict')
		self.assertFalse(Booking.objects.exists())
		self.assertFalse(Ticket.objects.exists())

	def test_only_one_of_two_commits_for_the_same_seat_succeeds(self) -> None:
		first = create_draft(user=None, passenger_count=1, outbound=LegChoice(self.outbound.pk, FareClass.ECONOMY_FLEX))
		second = create_draft(user=None, passenger_count=1, outbound=LegChoice(self.outbound.pk, FareClass.ECONOMY_FLEX))
		seat = self._seat('4A')
		click_seat(first.pk, user=None, leg=Leg.OUTBOUND, seat_id=seat.pk)
		for draft in (first, second):
			record_passengers(draft, passengers=self._passengers(1), contact_email='traveller@example.com')
		commit_draft(first.pk)
		# the second draft still holds a stale hold on the seat the first booking now occupies
		SeatHold.objects.create(
			flight=self.outbound,
			seat=seat,
			draft=second,
			leg=Leg.OUTBOUND,
			expires_at=timezone.now() + timedelta(minutes=5),
		)

		with self.assertRaises(AvailabilityError):
			commit_draft(second.pk)

		self.assertEqual(Booking.objects.count(), 1)
		self.assertEqual(SeatOccupancy.objects.get(flight=self.outbound, seat=seat).booking.draft.pk, first.pk)

	def test_declined_payment_leaves_nothing_behind(self) -> None:
		draft = self._create_draft()
		self._click(draft['id'], '4A')
		self._add_passengers(draft['id'], 1)
		declined = PaymentResult(
			reference='pi_declined',
			status='requires_payment_method',
			is_success=False,
			client_secret=None,
			provider='stripe',
			metadata={},
		)

		with mock.patch('flights.services.charge_booking', return_value=declined):
			response = self.client.post(reverse('flights:draft-commit', args=[draft['id']]), {}, format='json')

		self.assertEqual(response.status_code, 500)
		self.assertEqual(response.data['kind'], 'upstream_failure')
		self.assertFalse(Booking.objects.exists())
		self.assertFalse(SeatOccupancy.objects.filter(is_occupied=True).exists())
		self.assertTrue(SeatHold.objects.filter(draft_id=draft['id']).exists())

	def test_failure_after_charge_refunds_payment(self) -> None:
		draft = self._create_draft()
		self._click(draft['id'], '4A')
		self._add_passengers(draft['id'], 1)

		with mock.patch('flights.services.store_payment_record', side_effect=IntegrityError('boom')), \
				mock.patch('flights.services.refund_payment') as refund:
			with self.assertRaises(IntegrityError):
				commit_draft(draft['id'])

		refund.assert_called_once()
		self.assertFalse(Booking.objects.exists())

	def test_abandoned_draft_releases_its_holds(self) -> None:
		draft = self._create_draft()
		self._click(draft['id'], '4A')

		response = self.client.delete(reverse('flights:draft-detail', args=[draft['id']]))

		self.assertEqual(response.status_code, 204)
		self.assertFalse(SeatHold.objects.exists())
		self.assertFalse(BookingDraft.objects.exists())

	def test_outbound_change_must_still_arrive_before_return(self) -> None:
		draft = self._create_draft(round_trip=True)
		late = self._flight('CA105', self.han, self.tpe, self.inbound.departure_time + timedelta(days=1))
		self._fare(late, FareClass.ECONOMY_FLEX, '2100000')

		response = self.client.put(
			reverse('flights:draft-fares', args=[draft['id']]),
			{'leg': 'outbound', 'flight_id': late.pk, 'fare_class': FareClass.ECONOMY_FLEX},
			format='json',
		)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['field'], 'outbound_flight')
		self.assertEqual(BookingDraft.objects.get(pk=draft['id']).outbound_flight, self.outbound)

	def test_passenger_count_must_match_draft(self) -> None:
		draft = self._create_draft(passengers=2)

		response = self.client.put(
			reverse('flights:draft-passengers', args=[draft['id']]),
			{'passengers': self._passengers(1), 'contact_email': 'traveller@example.com'},
			format='json',
		)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['field'], 'passengers')

	def test_expired_draft_cannot_be_changed(self) -> None:
		draft = self._create_draft()
		BookingDraft.objects.filter(pk=draft['id']).update(expires_at=timezone.now() - timedelta(minutes=1))

		response = self._click(draft['id'], '4A')

		self.assertEqual(response.status_code, 400)
		self.assertIn('expired', response.data['error'])


class BookingAfterCommitTests(FlightFixtureMixin, TestCase):
	def setUp(self) -> None:
		super().setUp()
		self._fare(self.outbound, FareClass.ECONOMY_FLEX, '2000000')
		draft = create_draft(
			user=self.member,
			passenger_count=1,
			outbound=LegChoice(self.outbound.pk, FareClass.ECONOMY_FLEX),
		)
		click_seat(draft.pk, user=self.member, leg=Leg.OUTBOUND, seat_id=self._seat('4A').pk)
		record_passengers(draft, passengers=self._passengers(1), contact_email='member@example.com')
		self.booking = commit_draft(draft.pk, user=self.member)
		self.member.refresh_from_db()

	def test_cancellation_releases_seats_and_points(self) -> None:
		self.assertEqual(self.member.points_available, 1200)
		self.client.force_authenticate(self.member)

		response = self.client.post(reverse('flights:booking-cancel', args=[self.booking.reference_number]))

		self.assertEqual(response.status_code, 200, response.data)
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, Booking.BookingStatus.CANCELLED)
		self.assertFalse(SeatOccupancy.objects.filter(flight=self.outbound, is_occupied=True).exists())
		self.member.refresh_from_db()
		self.assertEqual(self.member.points_available, 0)
		self.assertEqual(self.booking.payment.status, Payment.Status.SUCCEEDED)

	def test_cancelled_booking_cannot_be_cancelled_again(self) -> None:
		cancel_booking(user=self.member, reference=self.booking.reference_number)

		with self.assertRaises(InvalidRequest):
			cancel_booking(user=self.member, reference=self.booking.reference_number)

	def test_other_members_booking_is_not_found(self) -> None:
		stranger = User.objects.create_user(email='stranger@example.com', password='An0ther-secret', email_verified=True)
		self.client.force_authenticate(stranger)

		response = self.client.post(reverse('flights:booking-cancel', args=[self.booking.reference_number]))

		self.assertEqual(response.status_code, 404)
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, Booking.BookingStatus.CONFIRMED)

	def test_status_lookup_matches_last_name_case_insensitively(self) -> None:
		response = self.client.post(
			reverse('flights:booking-status'),
			{'booking_reference': self.booking.reference_number.lower(), 'last_name': 'NGUYEN'},
			format='json',
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['reference'], self.booking.reference_number)
		self.assertEqual(len(response.data['tickets']), 1)
		self.assertEqual(response.data['tickets'][0]['seat_number'], '4A')

	def test_status_lookup_rejects_wrong_last_name(self) -> None:
		response = self.client.post(
			reverse('flights:booking-status'),
			{'booking_reference': self.booking.reference_number, 'last_name': 'Tran'},
			format='json',
		)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'Last name does not match any passenger on this booking.')

	def test_status_lookup_unknown_reference(self) -> None:
		response = self.client.post(
			reverse('flights:booking-status'),
			{'booking_reference': 'CA-0000-000000', 'last_name': 'Nguyen'},
			format='json',
		)

		self.assertEqual(response.status_code, 404)

	def test_history_filters_by_status(self) -> None:
		cancel_booking(user=self.member, reference=self.booking.reference_number)
		self.client.force_authenticate(self.member)

		confirmed = self.client.get(reverse('flights:booking-list'), {'status': 'confirmed'})
		cancelled = self.client.get(reverse('flights:booking-list'), {'status': 'cancelled'})

		self.assertEqual(confirmed.data['count'], 0)
		self.assertEqual(cancelled.data['count'], 1)
		listed = cancelled.data['results'][0]
		self.assertEqual(listed['reference'], self.booking.reference_number)
		self.assertTrue(listed['booked_at'].startswith(self.booking.created_at.date().isoformat()))

	def test_history_requires_sign_in(self) -> None:
		response = self.client.get(reverse('flights:booking-list'))
		self.assertIn(response.status_code, (401, 403))

	def test_ticket_confirmation_is_sent_to_booking_address(self) -> None:
		response = self.client.post(
			reverse('flights:send-ticket-confirmation'),
			{'email': 'member@example.com', 'booking_reference': self.booking.reference_number},
			format='json',
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(len(mail.outbox), 1)
		self.assertIn('4A', mail.outbox[0].body)

	def test_ticket_confirmation_validates_email_and_reference(self) -> None:
		invalid = self.client.post(
			reverse('flights:send-ticket-confirmation'),
			{'email': 'not-an-email', 'booking_reference': self.booking.reference_number},
			format='json',
		)
		unknown = self.client.post(
			reverse('flights:send-ticket-confirmation'),
			{'email': 'member@example.com', 'booking_reference': 'CA-0000-000000'},
			format='json',
		)

		self.assertEqual(invalid.status_code, 400)
		self.assertEqual(unknown.status_code, 404)
		self.assertEqual(len(mail.outbox), 0)


class ReleaseExpiredHoldsCommandTests(FlightFixtureMixin, TestCase):
	def test_expired_holds_and_drafts_are_released(self) -> None:
		self._fare(self.outbound, FareClass.ECONOMY_FLEX, '2000000')
		draft = create_draft(user=None, passenger_count=1, outbound=LegChoice(self.outbound.pk, FareClass.ECONOMY_FLEX))
		click_seat(draft.pk, user=None, leg=Leg.OUTBOUND, seat_id=self._seat('4A').pk)
		past = timezone.now() - timedelta(minutes=1)
		SeatHold.objects.update(expires_at=past)
		BookingDraft.objects.update(expires_at=past)

		dry_run = StringIO()
		call_command('release_expired_holds', '--dry-run', stdout=dry_run)
		self.assertIn('4A', dry_run.getvalue())
		self.assertTrue(SeatHold.objects.exists())

		call_command('release_expired_holds', stdout=StringIO())
		self.assertFalse(SeatHold.objects.exists())
		self.assertFalse(BookingDraft.objects.exists())
