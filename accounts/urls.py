"""URL routes for account management."""

from django.urls import path

from .views import (
    CheckEmailView,
    ConfirmEmailView,
    ProfileView,
    RegisterView,
    ResendVerificationEmailView,
    ResetPasswordView,
    SendPasswordResetView,
    SignInView,
    SignOutView,
)

urlpatterns = [
    path('check-email/', CheckEmailView.as_view(), name='check-email'),
    path('register/', RegisterView.as_view(), name='register'),
    path('send-email/', ResendVerificationEmailView.as_view(), name='send-email'),
    path('confirm-email/<uidb64>/<token>/', ConfirmEmailView.as_view(), name='confirm-email'),
    path('login/', SignInView.as_view(), name='login'),
    path('logout/', SignOutView.as_view(), name='logout'),
    path('send-password-reset/', SendPasswordResetView.as_view(), name='send-password-reset'),
    path('reset-password/', ResetPasswordView.as_view(), name='reset-password'),
    path('profile/', ProfileView.as_view(), name='profile'),
]
