"""Member accounts, customer profiles and session tokens."""

from __future__ import annotations

import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
	"""Manager that enforces unique email addresses."""

	use_in_migrations = True

	def _create_user(self, email, password, **extra_fields):
		if not email:
			raise ValueError("Users must provide an email address")
		email = self.normalize_email(email).lower()
		user = self.model(email=email, username=email, **extra_fields)
		user.set_password(password)
		user.save(using=self._db)
		return user

	def create_user(self, email, password=None, **extra_fields):  # type: ignore[override]
		extra_fields.setdefault('is_staff', False)
		extra_fields.setdefault('is_superuser', False)
		return self._create_user(email, password, **extra_fields)

	def create_superuser(self, email, password=None, **extra_fields):  # type: ignore[override]
		extra_fields.setdefault('is_staff', True)
		extra_fields.setdefault('is_superuser', True)
		extra_fields.setdefault('email_verified', True)

		if extra_fields.get('is_staff') is not True:
			raise ValueError('Superuser must have is_staff=True.')
		if extra_fields.get('is_superuser') is not True:
			raise ValueError('Superuser must have is_superuser=True.')

		return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
	"""Loyalty member; signs in with an email address."""

	class AccountStatus(models.TextChoices):
		ACTIVE = 'active', 'Active'
		SUSPENDED = 'suspended', 'Suspended'

	username = models.EmailField(_('username'), unique=True)
	email = models.EmailField(_('email address'), unique=True)
	phone_number = models.CharField(
		_('phone number'),
		max_length=20,
		blank=True,
		validators=[RegexValidator(r'^[0-9+() -]{7,}$')],
	)
	points_available = models.PositiveIntegerField(default=0)
	account_status = models.CharField(max_length=20, choices=AccountStatus.choices, default=AccountStatus.ACTIVE)
	email_verified = models.BooleanField(default=False)
	email_verified_at = models.DateTimeField(null=True, blank=True)
	reset_token = models.CharField(max_length=64, blank=True)
	reset_expires = models.DateTimeField(null=True, blank=True)

	USERNAME_FIELD = 'email'
	REQUIRED_FIELDS: list[str] = []

	objects = UserManager()

	class Meta(AbstractUser.Meta):
		swappable = 'AUTH_USER_MODEL'

	def __str__(self) -> str:  # pragma: no cover - human readable
		return self.get_full_name() or self.email


class CustomerProfile(models.Model):
	"""Personal details used to prefill passenger and contact forms."""

	class Gender(models.TextChoices):
		FEMALE = 'female', 'Female'
		MALE = 'male', 'Male'
		OTHER = 'other', 'Other'

	user = models.OneToOneField(User, related_name='profile', on_delete=models.CASCADE)
	title = models.CharField(max_length=10, blank=True)
	gender = models.CharField(max_length=10, choices=Gender.choices, blank=True)
	date_of_birth = models.DateField(null=True, blank=True)
	nationality = models.CharField(max_length=120, blank=True)
	passport_number = models.CharField(max_length=20, blank=True)
	address_line1 = models.CharField(max_length=255, blank=True)
	city = models.CharField(max_length=120, blank=True)
	country = models.CharField(max_length=120, blank=True)
	postcode = models.CharField(max_length=20, blank=True)

	def __str__(self) -> str:  # pragma: no cover - human readable
		return f"Profile for {self.user}"


class AuthSessionQuerySet(models.QuerySet):
	def active(self):
		return self.filter(expires_at__gt=timezone.now())

	def expired(self):
		return self.filter(expires_at__lte=timezone.now())


class AuthSession(models.Model):
	"""Bearer token issued at sign-in and checked on every authenticated request."""

	user = models.ForeignKey(User, related_name='auth_sessions', on_delete=models.CASCADE)
	token = models.CharField(max_length=64, unique=True, editable=False)
	created_at = models.DateTimeField(auto_now_add=True)
	expires_at = models.DateTimeField()

	objects = AuthSessionQuerySet.as_manager()

	class Meta:
		ordering = ['-created_at']

	def __str__(self) -> str:  # pragma: no cover - human readable
		return f"Session for {self.user} until {self.expires_at:%Y-%m-%d %H:%M}"

	@classmethod
	def issue(cls, user: User) -> 'AuthSession':
		ttl = timedelta(hours=settings.AUTH_SESSION_TTL_HOURS)
		return cls.objects.create(
			user=user,
			token=secrets.token_urlsafe(32),
			expires_at=timezone.now() + ttl,
		)

	@property
	def is_expired(self) -> bool:
		return self.expires_at <= timezone.now()
