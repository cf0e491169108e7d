import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import flights.models
from django.conf import settings
from django.db import migrations, models

FARE_CLASS_CHOICES = [
    (1, 'Economy Saver'),
    (2, 'Economy Flex'),
    (3, 'Premium Economy'),
    (4, 'Business'),
    (5, 'First Class'),
]
LEG_CHOICES = [('outbound', 'Outbound'), ('return', 'Return')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='AirplaneType',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=60, unique=True)),
                ('manufacturer', models.CharField(blank=True, max_length=60)),
            ],
        ),
        migrations.CreateModel(
            name='Airport',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=3, unique=True)),
                ('name', models.CharField(max_length=120)),
                ('city', models.CharField(max_length=120)),
                ('country', models.CharField(max_length=120)),
            ],
            options={
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='Flight',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('flight_number', models.CharField(max_length=10)),
                ('departure_time', models.DateTimeField()),
                ('arrival_time', models.DateTimeField()),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('delayed', 'Delayed'), ('departed', 'Departed'), ('arrived', 'Arrived'), ('cancelled', 'Cancelled')], default='scheduled', max_length=20)),
                ('distance_km', models.PositiveIntegerField(default=0)),
                ('is_active', models.BooleanField(default=True)),
                ('airplane_type', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='flights', to='flights.airplanetype')),
                ('destination', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='arrivals', to='flights.airport')),
                ('origin', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='departures', to='flights.airport')),
            ],
            options={
                'ordering': ['departure_time'],
            },
        ),
        migrations.AddConstraint(
            model_name='flight',
            constraint=models.UniqueConstraint(fields=('flight_number', 'departure_time'), name='unique_flight_departure'),
        ),
        migrations.CreateModel(
            name='FarePrice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('fare_class', models.PositiveSmallIntegerField(choices=FARE_CLASS_CHOICES)),
                ('price', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('currency', models.CharField(default='VND', max_length=3)),
                ('availability_count', models.PositiveIntegerField(default=0)),
                ('flight', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fare_prices', to='flights.flight')),
            ],
            options={
                'ordering': ['flight', 'fare_class'],
            },
        ),
        migrations.AddConstraint(
            model_name='fareprice',
            constraint=models.UniqueConstraint(fields=('flight', 'fare_class'), name='unique_fare_per_class'),
        ),
        migrations.CreateModel(
            name='Seat',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('seat_number', models.CharField(max_length=5)),
                ('fare_class', models.PositiveSmallIntegerField(choices=FARE_CLASS_CHOICES)),
                ('seat_type', models.CharField(choices=[('standard', 'Standard'), ('blocked', 'Blocked')], default='standard', max_length=10)),
                ('airplane_type', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='seats', to='flights.airplanetype')),
            ],
            options={
                'ordering': ['airplane_type', 'seat_number'],
            },
        ),
        migrations.AddConstraint(
            model_name='seat',
            constraint=models.UniqueConstraint(fields=('airplane_type', 'seat_number'), name='unique_seat_per_airplane_type'),
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('reference_number', models.CharField(editable=False, max_length=18, unique=True)),
                ('passenger_count', models.PositiveSmallIntegerField(default=1)),
                ('total_price', models.DecimalField(decimal_places=2, max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0.0'))])),
                ('currency', models.CharField(default='VND', max_length=3)),
                ('status', models.CharField(choices=[('confirmed', 'Confirmed'), ('pending', 'Pending'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('contact_email', models.EmailField(max_length=254)),
                ('contact_phone', models.CharField(blank=True, max_length=32)),
                ('idempotency_key', models.CharField(max_length=64, unique=True)),
                ('points_awarded', models.PositiveIntegerField(default=0)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('outbound_flight', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='outbound_bookings', to='flights.flight')),
                ('return_flight', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='return_bookings', to='flights.flight')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bookings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Ticket',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('leg', models.CharField(choices=LEG_CHOICES, default='outbound', max_length=8)),
                ('ticket_number', models.CharField(editable=False, max_length=16, unique=True)),
                ('fare_class', models.PositiveSmallIntegerField(choices=FARE_CLASS_CHOICES)),
                ('price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('passenger_first_name', models.CharField(max_length=120)),
                ('passenger_last_name', models.CharField(max_length=120)),
                ('passenger_email', models.EmailField(blank=True, max_length=254)),
                ('passenger_phone', models.CharField(blank=True, max_length=32)),
                ('passport_number', models.CharField(blank=True, max_length=20)),
                ('date_of_birth', models.DateField(blank=True, null=True)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tickets', to='flights.booking')),
                ('flight', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tickets', to='flights.flight')),
                ('seat', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tickets', to='flights.seat')),
            ],
            options={
                'ordering': ['booking', 'leg', 'id'],
            },
        ),
        migrations.AddConstraint(
            model_name='ticket',
            constraint=models.UniqueConstraint(fields=('flight', 'seat', 'booking'), name='unique_ticket_seat_per_booking'),
        ),
        migrations.CreateModel(
            name='BookingDraft',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('passenger_count', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(9)])),
                ('is_round_trip', models.BooleanField(default=False)),
                ('outbound_fare_class', models.PositiveSmallIntegerField(choices=FARE_CLASS_CHOICES)),
                ('outbound_price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('return_fare_class', models.PositiveSmallIntegerField(blank=True, choices=FARE_CLASS_CHOICES, null=True)),
                ('return_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('currency', models.CharField(default='VND', max_length=3)),
                ('contact_email', models.EmailField(blank=True, max_length=254)),
                ('contact_phone', models.CharField(blank=True, max_length=32)),
                ('passengers', models.JSONField(blank=True, default=list)),
                ('pending_leg', models.CharField(blank=True, choices=LEG_CHOICES, max_length=8)),
                ('expires_at', models.DateTimeField(default=flights.models._draft_expiry)),
                ('booking', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='draft', to='flights.booking')),
                ('outbound_flight', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to='flights.flight')),
                ('pending_seat', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='flights.seat')),
                ('return_flight', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='+', to='flights.flight')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='booking_drafts', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='SeatHold',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('leg', models.CharField(choices=LEG_CHOICES, max_length=8)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('expires_at', models.DateTimeField()),
                ('draft', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='seat_holds', to='flights.bookingdraft')),
                ('flight', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='seat_holds', to='flights.flight')),
                ('seat', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='holds', to='flights.seat')),
            ],
            options={
                'ordering': ['leg', 'created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='seathold',
            constraint=models.UniqueConstraint(fields=('flight', 'seat'), name='unique_hold_per_flight_seat'),
        ),
        migrations.CreateModel(
            name='SeatOccupancy',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('is_occupied', models.BooleanField(default=False)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('booking', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='occupied_seats', to='flights.booking')),
                ('flight', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='seat_occupancy', to='flights.flight')),
                ('seat', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='occupancy', to='flights.seat')),
            ],
            options={
                'verbose_name_plural': 'seat occupancy',
            },
        ),
        migrations.AddConstraint(
            model_name='seatoccupancy',
            constraint=models.UniqueConstraint(fields=('flight', 'seat'), name='unique_occupancy_per_flight_seat'),
        ),
    ]
