from datetime import timedelta
from smtplib import SMTPException
from unittest import mock

from django.conf import settings
from django.contrib.auth.tokens import default_token_generator
from django.core import mail
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode
from rest_framework.test import APIClient

from .models import AuthSession, CustomerProfile, User
from .services import adjust_points, tier_status


class RegistrationWorkflowTests(TestCase):

	def setUp(self) -> None:
		self.client = APIClient()

	def test_check_email_reports_existing_accounts(self) -> None:
		User.objects.create_user(email='taken@example.com', password='ComplexPass123!')

		taken = self.client.post(reverse('accounts:check-email'), {'email': 'Taken@Example.com'}, format='json')
		free = self.client.post(reverse('accounts:check-email'), {'email': 'free@example.com'}, format='json')
		missing = self.client.post(reverse('accounts:check-email'), {}, format='json')

		self.assertEqual(taken.data, {'exists': True})
		self.assertEqual(free.data, {'exists': False})
		self.assertEqual(missing.status_code, 400)

	def test_registration_sends_confirmation_email(self) -> None:
		with self.captureOnCommitCallbacks(execute=True):
			response = self.client.post(
				reverse('accounts:register'),
				{
					'email': 'newuser@example.com',
					'first_name': 'New',
					'last_name': 'User',
					'phone_number': '+123456789',
					'password': 'ComplexPass123',
					'confirm_password': 'ComplexPass123',
				},
				format='json',
			)

		self.assertEqual(response.status_code, 201, response.data)
		user = User.objects.get(email='newuser@example.com')
		self.assertFalse(user.email_verified)
		self.assertTrue(CustomerProfile.objects.filter(user=user).exists())
		self.assertEqual(len(mail.outbox), 1)
		self.assertIn('Confirm your', mail.outbox[0].subject)
		self.assertIn('confirm-email', mail.outbox[0].body)

	def test_registration_rejects_mismatched_passwords(self) -> None:
		response = self.client.post(
			reverse('accounts:register'),
			{
				'email': 'mismatch@example.com',
				'first_name': 'Mis',
				'last_name': 'Match',
				'password': 'ComplexPass123',
				'confirm_password': 'ComplexPass124',
			},
			format='json',
		)

		self.assertEqual(response.status_code, 400)
		self.assertIn('confirm_password', response.data['fields'])
		self.assertFalse(User.objects.filter(email='mismatch@example.com').exists())

	def test_email_confirmation_verifies_member(self) -> None:
		user = User.objects.create_user(email='pending@example.com', password='ComplexPass123!')
		uid = urlsafe_base64_encode(force_bytes(user.pk))
		token = default_token_generator.make_token(user)

		response = self.client.get(reverse('accounts:confirm-email', args=[uid, token]))

		self.assertRedirects(
			response,
			f"{settings.FRONTEND_BASE_URL.rstrip('/')}/register/success",
			fetch_redirect_response=False,
		)
		user.refresh_from_db()
		self.assertTrue(user.email_verified)
		self.assertIsNotNone(user.email_verified_at)

	def test_bad_confirmation_link_goes_to_manual_verification(self) -> None:
		user = User.objects.create_user(email='pending@example.com', password='ComplexPass123!')
		uid = urlsafe_base64_encode(force_bytes(user.pk))

		response = self.client.get(reverse('accounts:confirm-email', args=[uid, 'bad-token']))

		self.assertRedirects(
			response,
			f"{settings.FRONTEND_BASE_URL.rstrip('/')}/register/manual-verification",
			fetch_redirect_response=False,
		)
		user.refresh_from_db()
		self.assertFalse(user.email_verified)

	def test_resend_confirmation_triggers_email(self) -> None:
		User.objects.create_user(email='waiting@example.com', password='Password123!')

		response = self.client.post(reverse('accounts:send-email'), {'email': 'waiting@example.com'}, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(len(mail.outbox), 1)
		self.assertEqual(mail.outbox[0].to, ['waiting@example.com'])

	def test_resend_confirmation_error_statuses(self) -> None:
		User.objects.create_user(email='done@example.com', password='Password123!', email_verified=True)

		missing = self.client.post(reverse('accounts:send-email'), {}, format='json')
		unknown = self.client.post(reverse('accounts:send-email'), {'email': 'ghost@example.com'}, format='json')
		verified = self.client.post(reverse('accounts:send-email'), {'email': 'done@example.com'}, format='json')

		self.assertEqual(missing.status_code, 400)
		self.assertEqual(unknown.status_code, 404)
		self.assertEqual(verified.status_code, 400)
		self.assertEqual(len(mail.outbox), 0)

	def test_email_provider_failure_is_reported(self) -> None:
		User.objects.create_user(email='waiting@example.com', password='Password123!')

		with mock.patch('django.core.mail.EmailMultiAlternatives.send', side_effect=SMTPException('down')):
			with self.assertLogs('accounts.services', level='ERROR'):
				response = self.client.post(
					reverse('accounts:send-email'),
					{'email': 'waiting@example.com'},
					format='json',
				)

		self.assertEqual(response.status_code, 500)
		self.assertEqual(response.data['kind'], 'upstream_failure')


class SessionAuthenticationTests(TestCase):

	def setUp(self) -> None:
		self.client = APIClient()
		self.user = User.objects.create_user(
			email='member@example.com',
			password='ComplexPass123!',
			first_name='Linh',
			last_name='Nguyen',
			email_verified=True,
		)

	def _sign_in(self, password='ComplexPass123!'):
		return self.client.post(
			reverse('accounts:login'),
			{'email': 'member@example.com', 'password': password},
			format='json',
		)

	def test_login_sets_session_cookie_and_token(self) -> None:
		response = self._sign_in()

		self.assertEqual(response.status_code, 200, response.data)
		session = AuthSession.objects.get(user=self.user)
		self.assertEqual(response.data['token'], session.token)
		self.assertEqual(response.cookies[settings.AUTH_SESSION_COOKIE_NAME].value, session.token)
		self.assertTrue(response.cookies[settings.AUTH_SESSION_COOKIE_NAME]['httponly'])

	def test_login_rejects_bad_password_and_unverified_members(self) -> None:
		self.assertEqual(self._sign_in('wrong-password').status_code, 400)
		self.user.email_verified = False
		self.user.save(update_fields=['email_verified'])
		response = self._sign_in()
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['field'], 'email')
		self.assertFalse(AuthSession.objects.exists())

	def test_cookie_session_authenticates_profile(self) -> None:
		self._sign_in()

		response = self.client.get(reverse('accounts:profile'))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['customer_details']['email'], 'member@example.com')

	def test_bearer_header_authenticates(self) -> None:
		token = self._sign_in().data['token']
		client = APIClient()
		client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

		self.assertEqual(client.get(reverse('accounts:profile')).status_code, 200)

	def test_expired_session_is_rejected(self) -> None:
		self._sign_in()
		AuthSession.objects.update(expires_at=timezone.now() - timedelta(minutes=1))

		response = self.client.get(reverse('accounts:profile'))

		self.assertEqual(response.status_code, 401)
		self.assertEqual(response.data['kind'], 'validation')
		self.assertIn('error', response.data)

	def test_logout_deletes_session(self) -> None:
		self._sign_in()

		response = self.client.post(reverse('accounts:logout'))

		self.assertEqual(response.status_code, 204)
		self.assertFalse(AuthSession.objects.exists())

	def test_suspending_member_revokes_sessions(self) -> None:
		self._sign_in()

		self.user.account_status = User.AccountStatus.SUSPENDED
		self.user.save(update_fields=['account_status'])

		self.assertFalse(AuthSession.objects.filter(user=self.user).exists())


class PasswordResetTests(TestCase):

	def setUp(self) -> None:
		self.client = APIClient()
		self.user = User.objects.create_user(email='reset@example.com', password='OldPassword123!', email_verified=True)

	def test_reset_request_emails_link_with_token(self) -> None:
		response = self.client.post(reverse('accounts:send-password-reset'), {'email': 'reset@example.com'}, format='json')

		self.assertEqual(response.status_code, 200)
		self.user.refresh_from_db()
		self.assertTrue(self.user.reset_token)
		self.assertGreater(self.user.reset_expires, timezone.now() + timedelta(minutes=59))
		self.assertEqual(len(mail.outbox), 1)
		self.assertIn(f'reset-password?token={self.user.reset_token}', mail.outbox[0].body)

	def test_reset_request_for_unknown_email(self) -> None:
		response = self.client.post(reverse('accounts:send-password-reset'), {'email': 'ghost@example.com'}, format='json')

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'Email address not found')

	def test_reset_sets_password_and_ends_sessions(self) -> None:
		self.client.post(reverse('accounts:send-password-reset'), {'email': 'reset@example.com'}, format='json')
		self.user.refresh_from_db()
		AuthSession.issue(self.user)

		response = self.client.post(
			reverse('accounts:reset-password'),
			{'token': self.user.reset_token, 'password': 'BrandNewPass456!'},
			format='json',
		)

		self.assertEqual(response.status_code, 200, response.data)
		self.user.refresh_from_db()
		self.assertTrue(self.user.check_password('BrandNewPass456!'))
		self.assertEqual(self.user.reset_token, '')
		self.assertFalse(AuthSession.objects.filter(user=self.user).exists())

	def test_expired_reset_token_is_rejected(self) -> None:
		self.user.reset_token = 'expiredtoken'
		self.user.reset_expires = timezone.now() - timedelta(minutes=1)
		self.user.save(update_fields=['reset_token', 'reset_expires'])

		response = self.client.post(
			reverse('accounts:reset-password'),
			{'token': 'expiredtoken', 'password': 'BrandNewPass456!'},
			format='json',
		)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['field'], 'token')
		self.user.refresh_from_db()
		self.assertTrue(self.user.check_password('OldPassword123!'))


class ProfileTests(TestCase):

	def setUp(self) -> None:
		self.client = APIClient()
		self.user = User.objects.create_user(
			email='profile@example.com',
			password='ComplexPass123!',
			first_name='Mai',
			last_name='Tran',
			email_verified=True,
			points_available=5200,
		)
		self.client.force_authenticate(self.user)

	def test_profile_reports_tier_and_details(self) -> None:
		response = self.client.get(reverse('accounts:profile'))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['tier'], 'Altostratus')
		self.assertEqual(response.data['user']['next_tier'], 'Cirrus')
		self.assertEqual(response.data['user']['points_to_next_tier'], 4801)
		self.assertEqual(response.data['bookings'], [])

	def test_profile_update_saves_member_and_customer_fields(self) -> None:
		response = self.client.put(
			reverse('accounts:profile'),
			{'customer_details': {'first_name': 'Mai Anh', 'phone_number': '+84 912345678', 'nationality': 'Vietnamese'}},
			format='json',
		)

		self.assertEqual(response.status_code, 200, response.data)
		self.user.refresh_from_db()
		self.assertEqual(self.user.first_name, 'Mai Anh')
		self.assertEqual(self.user.phone_number, '+84 912345678')
		self.assertEqual(self.user.profile.nationality, 'Vietnamese')

	def test_profile_rejects_invalid_phone(self) -> None:
		response = self.client.put(reverse('accounts:profile'), {'phone_number': 'call me'}, format='json')

		self.assertEqual(response.status_code, 400)

	def test_profile_requires_sign_in(self) -> None:
		response = APIClient().get(reverse('accounts:profile'))

		self.assertEqual(response.status_code, 401)
		self.assertEqual(response.data['kind'], 'validation')


class LoyaltyTierTests(SimpleTestCase):

	def test_tier_boundaries(self) -> None:
		self.assertEqual(tier_status(0).tier, 'Stratus')
		self.assertEqual(tier_status(5000).tier, 'Stratus')
		self.assertEqual(tier_status(5001).tier, 'Altostratus')
		self.assertEqual(tier_status(10000).tier, 'Altostratus')
		self.assertEqual(tier_status(10001).tier, 'Cirrus')
		self.assertIsNone(tier_status(10001).next_tier)

	@override_settings(LOYALTY_TIER_THRESHOLDS=(('Gold', 100),), LOYALTY_BASE_TIER='Blue')
	def test_thresholds_come_from_settings(self) -> None:
		self.assertEqual(tier_status(101).tier, 'Gold')
		self.assertEqual(tier_status(50).points_to_next_tier, 51)


class AdjustPointsTests(TestCase):

	def test_points_never_drop_below_zero(self) -> None:
		user = User.objects.create_user(email='points@example.com', password='ComplexPass123!', points_available=300)

		adjust_points(user, 200)
		self.assertEqual(user.points_available, 500)
		adjust_points(user, -800)
		self.assertEqual(user.points_available, 0)
