"""
Test collection configuration for the Django apps.

Django itself is set up by the root conftest.py; this module only
classifies collected tests.
"""

import pytest


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full billing scenarios)
    - test_views.py, test_handlers.py, test_settlement.py, etc. → integration
    - test_schema.py, test_state_transitions.py, etc. → unit
    - Unmatched files → integration (safe default, most tests touch the store)

    Explicit markers on test functions/classes take precedence.
    """
    # Filename patterns for each category
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_handlers.py",
        "test_settlement.py",
        "test_simulation.py",
        "test_subscriptions.py",
        "test_transactions.py",
        "test_plans.py",
        "test_users.py",
        "test_statistics.py",
        "test_store.py",
    ]

    unit_patterns = [
        "test_schema.py",
        "test_state_transitions.py",
        "test_types.py",
        "test_services.py",
        "test_exceptions.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filepath = str(item.fspath)
        filename = filepath.split("/")[-1]

        # Check patterns in priority order
        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
