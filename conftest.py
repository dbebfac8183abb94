"""
Root pytest configuration for the Django project.

Sets safe environment defaults so the suite runs without the docker-compose
services (PostgreSQL, Redis). App-specific fixtures live in each app's
tests/conftest.py.
"""

import os

import django
import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///test-db.sqlite3")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_webhook_secret")
os.environ.setdefault("ENV_FILE", "/nonexistent/.env")
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()


@pytest.fixture(autouse=True)
def locmem_cache(settings):
    """Per-test in-process cache so circuit breaker state never leaks or needs Redis."""
    settings.CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "test-cache",
        }
    }
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()
