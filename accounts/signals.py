"""Profile bootstrap and session revocation for member accounts."""

from __future__ import annotations

import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import AuthSession, CustomerProfile, User

logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def ensure_customer_profile(sender, instance: User, created: bool, **_: object) -> None:
    if created:
        CustomerProfile.objects.get_or_create(user=instance)


@receiver(post_save, sender=User)
def revoke_sessions_for_suspended_member(sender, instance: User, created: bool, **_: object) -> None:
    if created or instance.account_status != User.AccountStatus.SUSPENDED:
        return
    revoked, _ = AuthSession.objects.filter(user=instance).delete()
    if revoked:
        logger.info('Revoked %s session(s) for suspended member %s', revoked, instance.pk)
