"""WSGI config for the Cloud Airline project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'cloud_airline.settings')

application = get_wsgi_application()
