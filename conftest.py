"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os
import tempfile

import django

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost")

# Keep test runs away from the real data and log directories
os.environ.setdefault("BILLING_DATA_DIR", tempfile.mkdtemp(prefix="billing-data-"))
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="billing-logs-"))


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()
