"""Shared test fixtures for pinpoint-relay tests."""

import pytest

from pinpoint_relay.models import IncomingEvent
from tests.test_helpers import CapturingClient


@pytest.fixture
def plugin_config():
    """Minimal valid plugin configuration as the host delivers it."""
    return {
        "awsAccessKey": "AKIATEST",
        "awsSecretAccessKey": "secret",
        "awsRegion": "us-east-1",
        "applicationId": "app-123",
    }


@pytest.fixture
def capturing_client():
    return CapturingClient()


@pytest.fixture
def sample_event():
    """A fully populated pageview from a browser."""
    return IncomingEvent(
        event="$pageview",
        distinct_id="user-1",
        uuid="evt-1",
        timestamp="2024-05-01T12:00:00.000Z",
        site_url="https://example.com",
        properties={
            "$device_id": "device-1",
            "$session_id": "session-1",
            "$user_id": "user-1",
            "$lib": "web",
            "$lib_version": "1.2.3",
            "$browser": "Firefox",
            "$browser_version": 125,
            "$os": "Mac OS X",
            "$locale": "en-US",
            "$screen_width": 1920,
            "$screen_height": 1080,
            "$viewport_width": 1280,
            "$geoip_city_name": "Berlin",
            "$geoip_country_name": "Germany",
            "$geoip_latitude": 52.52,
            "$geoip_longitude": 13.4,
            "$current_url": "https://example.com/pricing",
            "is_logged_in": True,
            "cart": {"items": 2},
        },
    )


@pytest.fixture
def anonymous_event():
    """Event without any identifying properties."""
    return IncomingEvent(event="signup", properties={"plan": "pro"})
