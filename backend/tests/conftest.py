"""
Central pytest configuration for the salon booking tests.

Environment variables are set before any application module is imported
so import-time configuration (timezone, defaults, webhook URL) and the lazy
engine pick up the test values.
"""

import os

# Test database configuration (set early so import-time engines use it)
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["TESTING"] = "true"
os.environ["TZ"] = "UTC"
os.environ["METRICS_ENABLED"] = "0"
os.environ["LOG_TO_FILE"] = "0"
os.environ["PROPOSED_MEETING_WEBHOOK_URL"] = "https://hooks.example.test/invites"

# Markers and shared fixtures
from tests.config.markers import pytest_configure  # noqa: E402,F401
from tests.fixtures.database_fixtures import *  # noqa: E402,F401,F403
from tests.fixtures.service_fixtures import *  # noqa: E402,F401,F403
from tests.fixtures.integration_fixtures import *  # noqa: E402,F401,F403
