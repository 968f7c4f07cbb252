"""Conversion of host events into Pinpoint wire records.

Every function here is total: malformed or unexpected property values degrade
to their string form instead of raising.
"""

import logging
import math
from datetime import UTC, datetime
from typing import Any

from pinpoint_relay.models import (
    EndpointDemographic,
    EndpointLocation,
    EndpointRecord,
    EndpointUser,
    EventSession,
    IncomingEvent,
    NormalizedEvent,
    generate_event_id,
    stringify,
)

logger = logging.getLogger(__name__)

# Property name -> Pinpoint metric / endpoint attribute name
SCREEN_PROPERTIES = {
    "$screen_density": "screen_density",
    "$screen_height": "screen_height",
    "$screen_width": "screen_width",
    "$viewport_height": "viewport_height",
    "$viewport_width": "viewport_width",
}
SCREEN_NAME_PROPERTY = "$screen_name"


def get_attribute(value: Any) -> str:
    """Coerce a property value to the string Pinpoint expects.

    Strings pass through; everything else renders as in ``stringify``.
    """
    return stringify(value)


def _as_metric(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _as_text(value: Any) -> str | None:
    return None if value is None else get_attribute(value)


def current_timestamp() -> str:
    return datetime.now(UTC).isoformat()


def event_timestamp(event: IncomingEvent) -> str:
    """ISO 8601 timestamp for an event.

    Epoch numbers (milliseconds, or seconds below 1e11) are converted since
    Pinpoint only accepts ISO strings; anything else passes through.
    """
    if not event.timestamp:
        return current_timestamp()
    try:
        epoch = float(event.timestamp)
    except ValueError:
        return event.timestamp
    if not math.isfinite(epoch):
        return current_timestamp()
    seconds = epoch / 1000 if abs(epoch) >= 1e11 else epoch
    try:
        return datetime.fromtimestamp(seconds, UTC).isoformat()
    except (OverflowError, OSError, ValueError):
        return event.timestamp


def normalize_event(event: IncomingEvent) -> tuple[str, NormalizedEvent]:
    """Convert one host event into a keyed Pinpoint event record.

    The key is the event's ``uuid`` when it has one; otherwise a fresh id, so
    normalizing the same id-less event twice yields two different keys.
    """
    properties = event.properties or {}
    event_key = event.uuid or generate_event_id()
    timestamp = event_timestamp(event)

    metrics = {}
    for prop, metric in SCREEN_PROPERTIES.items():
        value = _as_metric(properties.get(prop))
        if value is not None:
            metrics[metric] = value

    session = None
    if event.session_id:
        session = EventSession(id=get_attribute(event.session_id), start_timestamp=timestamp)

    normalized = NormalizedEvent(
        event_type=event.event,
        timestamp=timestamp,
        attributes={key: get_attribute(value) for key, value in properties.items()},
        metrics=metrics,
        client_sdk_version=_as_text(properties.get("$lib_version")),
        sdk_name=_as_text(properties.get("$lib")),
        app_version_code=_as_text(properties.get("$app_version")),
        session=session,
    )
    return event_key, normalized


def extract_endpoint(event: IncomingEvent) -> EndpointRecord:
    """Build the endpoint profile for an event.

    Only events carrying ``$device_id`` describe an endpoint; all others get an
    empty record. Sub-fields are copied as-is and left out when the source
    property is missing.
    """
    if not event.device_id:
        return EndpointRecord()

    p = event.prop
    attributes = {
        name: [get_attribute(p(prop)) if p(prop) is not None else ""]
        for prop, name in SCREEN_PROPERTIES.items()
    }
    attributes["screen_name"] = [_as_text(p(SCREEN_NAME_PROPERTY)) or ""]

    return EndpointRecord(
        address=event.site_url,
        attributes=attributes,
        demographic=EndpointDemographic(
            app_version=p("$app_version"),
            locale=p("$locale"),
            make=_first(p("$device_manufacturer"), p("$device_type")),
            model=_first(p("$device_model"), p("$os")),
            platform=_first(p("$os_name"), p("$browser")),
            platform_version=_as_text(_first(p("$os_version"), p("$browser_version"))),
            timezone=p("$geoip_time_zone"),
        ),
        effective_date=event_timestamp(event) if event.timestamp else None,
        location=EndpointLocation(
            city=p("$geoip_city_name"),
            country=p("$geoip_country_name"),
            latitude=p("$geoip_latitude"),
            longitude=p("$geoip_longitude"),
            postal_code=p("$geoip_postal_code"),
            region=p("$geoip_subdivision_1_code"),
        ),
        request_id=event.uuid,
        user=EndpointUser(user_id=p("$user_id")),
    )
