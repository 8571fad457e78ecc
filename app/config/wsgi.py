"""
WSGI config for the billing service.

This file exposes the WSGI callable as a module-level variable named `application`.
Billing services are built once per process when the app registry loads.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
