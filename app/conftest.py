"""
Project-wide pytest configuration.

Test settings overrides and marker assignment live here. App-specific
fixtures are defined in each app's tests/conftest.py.
"""

import pytest


def pytest_configure():
    """Tighten settings for the test run."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Celery tasks queued via on_commit must never reach a broker in tests
    settings.CELERY_TASK_ALWAYS_EAGER = False
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}
    }


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py -> e2e (full checkout journeys)
    - test_views.py, test_tasks.py, test_orchestrator.py, etc. -> integration
    - test_models.py, test_fees.py, test_adapters.py, etc. -> unit
    - Unmatched files -> integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_orchestrator.py",
        "test_order_factory.py",
        "test_escrow_manager.py",
        "test_escrow_sweeper.py",
        "test_wallet.py",
        "test_repositories.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_fees.py",
        "test_adapters.py",
        "test_paystack_adapter.py",
        "test_shipbubble.py",
        "test_exceptions.py",
        "test_state_transitions.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
