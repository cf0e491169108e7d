"""Reusable services supporting the accounts app."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from smtplib import SMTPException

from django.conf import settings
from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ValidationError
from django.core.mail import EmailMultiAlternatives
from django.db import transaction
from django.db.models import F
from django.template.loader import render_to_string
from django.urls import reverse
from django.utils import timezone
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode

from core.exceptions import InvalidRequest, RecordNotFound, UpstreamFailure

from .models import AuthSession, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierStatus:
    tier: str
    points: int
    next_tier: str | None
    points_to_next_tier: int


def tier_for_points(points: int) -> str:
    for tier, threshold in settings.LOYALTY_TIER_THRESHOLDS:
        if points > threshold:
            return tier
    return settings.LOYALTY_BASE_TIER


def tier_status(points: int) -> TierStatus:
    current = tier_for_points(points)
    # thresholds are listed highest first and a tier starts one point above its threshold
    upcoming = [(tier, threshold) for tier, threshold in settings.LOYALTY_TIER_THRESHOLDS if points <= threshold]
    if not upcoming:
        return TierStatus(tier=current, points=points, next_tier=None, points_to_next_tier=0)
    next_tier, threshold = upcoming[-1]
    return TierStatus(tier=current, points=points, next_tier=next_tier, points_to_next_tier=threshold + 1 - points)


def adjust_points(user: User, delta: int) -> None:
    """Apply a points delta atomically, never dropping below zero."""
    if not delta:
        return
    if delta > 0:
        User.objects.filter(pk=user.pk).update(points_available=F('points_available') + delta)
    else:
        with transaction.atomic():
            locked = User.objects.select_for_update().get(pk=user.pk)
            locked.points_available = max(0, locked.points_available + delta)
            locked.save(update_fields=['points_available'])
    user.refresh_from_db(fields=['points_available'])


def email_is_registered(email: str) -> bool:
    return User.objects.filter(email__iexact=(email or '').strip()).exists()


def build_confirmation_url(request, user: User) -> str:
    """Construct an absolute confirmation URL for an email verification token."""
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = default_token_generator.make_token(user)
    relative_url = reverse("accounts:confirm-email", args=[uid, token])
    return request.build_absolute_uri(relative_url)


def _send_templated_email(*, template_prefix: str, context: dict, recipient: str) -> None:
    subject = render_to_string(f"accounts/email/{template_prefix}_subject.txt", context).strip()
    text_body = render_to_string(f"accounts/email/{template_prefix}_email.txt", context)
    html_body = render_to_string(f"accounts/email/{template_prefix}_email.html", context)

    email_message = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
        to=[recipient],
    )
    if html_body:
        email_message.attach_alternative(html_body, "text/html")
    try:
        email_message.send(fail_silently=False)
    except (SMTPException, OSError) as exc:
        logger.exception("Sending %s email to %s failed", template_prefix, recipient)
        raise UpstreamFailure("We could not send the email. Please try again later.") from exc


def send_email_confirmation(request, user: User) -> None:
    """Send an email prompting the user to confirm their email address."""
    context = {
        "user": user,
        "confirmation_url": build_confirmation_url(request, user),
        "site_name": getattr(settings, "SITE_NAME", "Cloud Airline"),
    }
    _send_templated_email(template_prefix="confirmation", context=context, recipient=user.email)


def resend_email_confirmation(request, email: str) -> User:
    try:
        user = User.objects.get(email__iexact=(email or '').strip())
    except User.DoesNotExist as exc:
        raise RecordNotFound("We couldn't find an account with that email address.") from exc
    if user.email_verified:
        raise InvalidRequest("This account is already verified. Try signing in instead.", field='email')
    send_email_confirmation(request, user)
    return user


def confirm_email(user: User) -> None:
    if user.email_verified:
        return
    user.email_verified = True
    user.is_active = True
    user.email_verified_at = timezone.now()
    user.save(update_fields=['email_verified', 'is_active', 'email_verified_at'])


def start_password_reset(email: str) -> User:
    """Store a one-hour reset token on the member and email the reset link."""
    try:
        user = User.objects.get(email__iexact=(email or '').strip())
    except User.DoesNotExist as exc:
        raise RecordNotFound("Email address not found") from exc

    user.reset_token = uuid.uuid4().hex
    user.reset_expires = timezone.now() + timedelta(hours=settings.PASSWORD_RESET_TTL_HOURS)
    user.save(update_fields=['reset_token', 'reset_expires'])

    base_url = settings.FRONTEND_BASE_URL.rstrip('/')
    context = {
        "user": user,
        "reset_url": f"{base_url}/reset-password?token={user.reset_token}",
        "expires_in_hours": settings.PASSWORD_RESET_TTL_HOURS,
        "site_name": getattr(settings, "SITE_NAME", "Cloud Airline"),
    }
    _send_templated_email(template_prefix="password_reset", context=context, recipient=user.email)
    return user


def complete_password_reset(token: str, new_password: str) -> User:
    token = (token or '').strip()
    if not token:
        raise InvalidRequest("The reset link is invalid or has expired.", field='token')
    user = User.objects.filter(reset_token=token).first()
    if user is None or user.reset_expires is None or user.reset_expires <= timezone.now():
        raise InvalidRequest("The reset link is invalid or has expired.", field='token')
    try:
        validate_password(new_password, user=user)
    except ValidationError as exc:
        raise InvalidRequest(' '.join(exc.messages), field='password') from exc

    with transaction.atomic():
        user.set_password(new_password)
        user.reset_token = ''
        user.reset_expires = None
        user.save(update_fields=['password', 'reset_token', 'reset_expires'])
        AuthSession.objects.filter(user=user).delete()
    return user


def sign_in(request, email: str, password: str) -> AuthSession:
    user = authenticate(request, username=(email or '').strip().lower(), password=password)
    if user is None:
        raise InvalidRequest("Invalid email or password")
    if not user.email_verified:
        raise InvalidRequest("Please confirm your email address before signing in.", field='email')
    if user.account_status != User.AccountStatus.ACTIVE:
        raise InvalidRequest("This account is not active. Please contact customer service.")
    AuthSession.objects.filter(user=user).expired().delete()
    session = AuthSession.issue(user)
    logger.info('Member %s signed in', user.pk)
    return session


def sign_out(token: str | None) -> None:
    if token:
        AuthSession.objects.filter(token=token).delete()
