"""Cloud Airline settings module."""

from __future__ import annotations

import os
import sys
import warnings
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv
from django.core.exceptions import ImproperlyConfigured

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Load environment variables early so they affect downstream config.
load_dotenv(BASE_DIR / ".env")

IS_TESTING = 'test' in sys.argv or 'pytest' in sys.modules


# Quick-start development settings - unsuitable for production
# See https://docs.djangoproject.com/en/5.1/howto/deployment/checklist/

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "change-me")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DJANGO_DEBUG", "true").lower() == "true"

ALLOWED_HOSTS = [host.strip() for host in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if host.strip()]
CSRF_TRUSTED_ORIGINS = [origin.strip() for origin in os.getenv("DJANGO_CSRF_TRUSTED_ORIGINS", "").split(",") if origin.strip()]


# Application definition

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'django_filters',
    'corsheaders',
    'core',
    'accounts',
    'flights',
    'payments',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'cloud_airline.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'cloud_airline.wsgi.application'


# Database
# https://docs.djangoproject.com/en/5.1/ref/settings/#databases

DATABASES = {
    'default': dj_database_url.config(
        default=os.getenv('DATABASE_URL', f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
        conn_max_age=600,
        conn_health_checks=True,
    )
}


# Password validation
# https://docs.djangoproject.com/en/5.1/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]


# Internationalization
# https://docs.djangoproject.com/en/5.1/topics/i18n/

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/5.1/howto/static-files/

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Default primary key field type
# https://docs.djangoproject.com/en/5.1/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_USER_MODEL = 'accounts.User'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'accounts.authentication.SessionTokenAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
        'rest_framework.filters.OrderingFilter',
    ],
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 20,
    'EXCEPTION_HANDLER': 'core.api.workflow_exception_handler',
    'UNAUTHENTICATED_USER': 'django.contrib.auth.models.AnonymousUser',
}

EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', 'localhost')
EMAIL_PORT = int(os.getenv('EMAIL_PORT', 25))
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = os.getenv('EMAIL_USE_TLS', 'false').lower() == 'true'
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', 'COSMILE <noreply@cloud-airlines.space>')
SITE_NAME = os.getenv('SITE_NAME', 'Cloud Airline')
FRONTEND_BASE_URL = os.getenv('FRONTEND_BASE_URL', 'https://www.cloud-airlines.space')

# Booking workflow
FLIGHT_BOOKING_CURRENCY = os.getenv('FLIGHT_BOOKING_CURRENCY', 'VND')
MAX_PASSENGERS_PER_BOOKING = int(os.getenv('MAX_PASSENGERS_PER_BOOKING', 9))
BOOKING_DRAFT_TTL_MINUTES = int(os.getenv('BOOKING_DRAFT_TTL_MINUTES', 30))
SEAT_HOLD_TTL_MINUTES = int(os.getenv('SEAT_HOLD_TTL_MINUTES', 15))

# Member sessions and loyalty
AUTH_SESSION_COOKIE_NAME = os.getenv('AUTH_SESSION_COOKIE_NAME', 'session_token')
AUTH_SESSION_TTL_HOURS = int(os.getenv('AUTH_SESSION_TTL_HOURS', 24))
PASSWORD_RESET_TTL_HOURS = int(os.getenv('PASSWORD_RESET_TTL_HOURS', 1))
LOYALTY_TIER_THRESHOLDS = (
    ('Cirrus', 10000),
    ('Altostratus', 5000),
)
LOYALTY_BASE_TIER = 'Stratus'

def _clean_env_value(*names: str) -> str:
    """Return the first non-placeholder env var value from the provided names."""

    placeholders = {
        'sk_test_your_stripe_secret_key',
        'pk_test_your_stripe_publishable_key',
        'sk_live_your_stripe_secret_key',
        'pk_live_your_stripe_publishable_key',
        'your-stripe-secret-key',
        'your-stripe-publishable-key',
    }

    for name in names:
        raw_value = os.getenv(name, '')
        if not raw_value:
            continue
        value = raw_value.strip()
        if not value:
            continue
        if value.lower() in placeholders:
            continue
        return value
    return ''


STRIPE_MODE = os.getenv('STRIPE_MODE', 'test' if DEBUG else 'live').strip().lower()
if STRIPE_MODE not in {'test', 'live'}:
    warnings.warn(
        f"Unknown STRIPE_MODE '{STRIPE_MODE}' specified. Falling back to 'test'.",
        stacklevel=2,
    )
    STRIPE_MODE = 'test'

secret_key_env_order = ['STRIPE_SECRET_KEY']
publishable_key_env_order = ['STRIPE_PUBLISHABLE_KEY']

if STRIPE_MODE == 'live':
    secret_key_env_order.insert(0, 'STRIPE_LIVE_SECRET_KEY')
    publishable_key_env_order.insert(0, 'STRIPE_LIVE_PUBLISHABLE_KEY')
else:
    secret_key_env_order.insert(0, 'STRIPE_TEST_SECRET_KEY')
    publishable_key_env_order.insert(0, 'STRIPE_TEST_PUBLISHABLE_KEY')


STRIPE_SECRET_KEY = _clean_env_value(*secret_key_env_order)
STRIPE_PUBLISHABLE_KEY = _clean_env_value(*publishable_key_env_order)

if not STRIPE_SECRET_KEY or not STRIPE_PUBLISHABLE_KEY:
    if IS_TESTING or DEBUG:
        if not STRIPE_SECRET_KEY:
            STRIPE_SECRET_KEY = f"sk_{STRIPE_MODE}_placeholder"
        if not STRIPE_PUBLISHABLE_KEY:
            STRIPE_PUBLISHABLE_KEY = f"pk_{STRIPE_MODE}_placeholder"
        if not IS_TESTING:
            warnings.warn(
                "Stripe keys are not configured; payments use the test provider. "
                "Provide real keys in your environment when running against Stripe.",
                stacklevel=2,
            )
    else:
        raise ImproperlyConfigured(
            "Stripe keys are missing. Set STRIPE_MODE and the corresponding "
            "STRIPE_<MODE>_SECRET_KEY/STRIPE_<MODE>_PUBLISHABLE_KEY (or the "
            "generic STRIPE_SECRET_KEY/STRIPE_PUBLISHABLE_KEY) in your environment."
        )

CORS_ALLOW_CREDENTIALS = True
CORS_ALLOWED_ORIGINS = [origin.strip() for origin in os.getenv('CORS_ALLOWED_ORIGINS', '').split(',') if origin.strip()]
CORS_ALLOW_ALL_ORIGINS = not CORS_ALLOWED_ORIGINS

SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
CSRF_COOKIE_SECURE = os.getenv('CSRF_COOKIE_SECURE', 'false').lower() == 'true'
SECURE_CONTENT_TYPE_NOSNIFF = True

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.getenv('DJANGO_LOG_LEVEL', 'WARNING' if IS_TESTING else 'INFO'),
    },
}
