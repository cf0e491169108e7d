"""API views handling registration, sign-in and profile management."""

from __future__ import annotations

import logging
from typing import Any

from django.conf import settings
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ValidationError
from django.db import transaction
from django.shortcuts import redirect
from django.utils.encoding import force_str
from django.utils.http import urlsafe_base64_decode
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from flights.serializers import BookingSummarySerializer

from .authentication import read_session_token
from .models import CustomerProfile, User
from .serializers import (
	CustomerProfileSerializer,
	EmailSerializer,
	PasswordResetSerializer,
	RegistrationSerializer,
	SignInSerializer,
)
from .services import (
	complete_password_reset,
	confirm_email,
	email_is_registered,
	resend_email_confirmation,
	send_email_confirmation,
	sign_in,
	sign_out,
	start_password_reset,
	tier_status,
)

logger = logging.getLogger(__name__)


class CheckEmailView(APIView):
	def post(self, request: Request) -> Response:
		serializer = EmailSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		return Response({'exists': email_is_registered(serializer.validated_data['email'])})


class RegisterView(APIView):
	def post(self, request: Request) -> Response:
		serializer = RegistrationSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		with transaction.atomic():
			user = serializer.save()
			transaction.on_commit(lambda: send_email_confirmation(request, user))
		return Response(
			{
				'email': user.email,
				'message': "Thanks for signing up! We've sent a confirmation link to your email.",
			},
			status=status.HTTP_201_CREATED,
		)


class ResendVerificationEmailView(APIView):
	def post(self, request: Request) -> Response:
		serializer = EmailSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		user = resend_email_confirmation(request, serializer.validated_data['email'])
		return Response({'success': True, 'email': user.email})


class ConfirmEmailView(APIView):
	def get(self, request: Request, uidb64: str, token: str):
		try:
			uid = force_str(urlsafe_base64_decode(uidb64))
			user = User.objects.get(pk=uid)
		except (TypeError, ValueError, OverflowError, User.DoesNotExist, ValidationError):
			user = None

		base_url = settings.FRONTEND_BASE_URL.rstrip('/')
		if user and default_token_generator.check_token(user, token):
			confirm_email(user)
			return redirect(f'{base_url}/register/success')
		return redirect(f'{base_url}/register/manual-verification')


class SignInView(APIView):
	def post(self, request: Request) -> Response:
		serializer = SignInSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		session = sign_in(request, serializer.validated_data['email'], serializer.validated_data['password'])
		response = Response({
			'token': session.token,
			'expires_at': session.expires_at.isoformat(),
			'user': {'id': session.user_id, 'email': session.user.email},
		})
		response.set_cookie(
			settings.AUTH_SESSION_COOKIE_NAME,
			session.token,
			expires=session.expires_at,
			httponly=True,
			secure=getattr(settings, 'AUTH_SESSION_COOKIE_SECURE', False),
			samesite='Lax',
		)
		return response


class SignOutView(APIView):
	def post(self, request: Request) -> Response:
		sign_out(read_session_token(request))
		response = Response(status=status.HTTP_204_NO_CONTENT)
		response.delete_cookie(settings.AUTH_SESSION_COOKIE_NAME)
		return response


class SendPasswordResetView(APIView):
	def post(self, request: Request) -> Response:
		serializer = EmailSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		start_password_reset(serializer.validated_data['email'])
		return Response({'success': True})


class ResetPasswordView(APIView):
	def post(self, request: Request) -> Response:
		serializer = PasswordResetSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		complete_password_reset(serializer.validated_data['token'], serializer.validated_data['password'])
		return Response({'success': True})


class ProfileView(APIView):
	permission_classes = [IsAuthenticated]

	def get_profile(self) -> CustomerProfile:
		profile, _ = CustomerProfile.objects.select_related('user').get_or_create(user=self.request.user)
		return profile

	def get(self, request: Request) -> Response:
		user: User = request.user  # type: ignore[assignment]
		status_info = tier_status(user.points_available)
		bookings = user.bookings.select_related('outbound_flight', 'return_flight').order_by('-created_at')
		payload: dict[str, Any] = {
			'user': {
				'id': user.pk,
				'points': status_info.points,
				'tier': status_info.tier,
				'next_tier': status_info.next_tier,
				'points_to_next_tier': status_info.points_to_next_tier,
				'account_status': user.account_status,
			},
			'customer_details': CustomerProfileSerializer(self.get_profile()).data,
			'bookings': BookingSummarySerializer(bookings, many=True).data,
		}
		return Response(payload)

	def put(self, request: Request) -> Response:
		details = request.data.get('customer_details', request.data)
		serializer = CustomerProfileSerializer(self.get_profile(), data=details, partial=True)
		serializer.is_valid(raise_exception=True)
		serializer.save()
		logger.info('Member %s updated their profile', request.user.pk)
		return Response({'success': True, 'customer_details': serializer.data})
