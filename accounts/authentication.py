"""Session-token authentication for the REST API."""

from __future__ import annotations

from django.conf import settings
from rest_framework import authentication, exceptions

from .models import AuthSession


def read_session_token(request) -> str | None:
    header = authentication.get_authorization_header(request).split()
    if len(header) == 2 and header[0].lower() == b'bearer':
        try:
            return header[1].decode()
        except UnicodeError:
            return None
    return request.COOKIES.get(settings.AUTH_SESSION_COOKIE_NAME) or None


class SessionTokenAuthentication(authentication.BaseAuthentication):
    """Resolve the member from a bearer token stored in a cookie or header.

    The token must match an unexpired ``AuthSession`` row. An unknown or
    expired token is rejected rather than treated as anonymous, so clients
    learn that they have to sign in again.
    """

    def authenticate(self, request):
        token = read_session_token(request)
        if not token:
            return None
        session = AuthSession.objects.select_related('user').filter(token=token).first()
        if session is None or session.is_expired:
            raise exceptions.AuthenticationFailed('Your session has expired. Please sign in again.')
        if not session.user.is_active:
            raise exceptions.AuthenticationFailed('This account is not active.')
        return session.user, session

    def authenticate_header(self, request) -> str:
        return 'Bearer'
