"""Event models for pinpoint-relay.

Two families live here. ``IncomingEvent`` is the analytics event as the host
pipeline hands it over. Everything else mirrors the Amazon Pinpoint
``PutEvents`` wire schema: field aliases are the exact Pinpoint key names, so
``to_wire()`` produces a payload boto3 accepts as-is.
"""

import json
import math
from datetime import datetime
from typing import Any

from nanoid import generate
from pydantic import BaseModel, ConfigDict, Field, field_validator

TEXT_FIELDS = ("event", "distinct_id", "uuid", "timestamp", "site_url", "ip", "now", "sent_at")


def stringify(value: Any) -> str:
    """Render any property value as text, the way JavaScript's toString would.

    Booleans become ``true``/``false``, integral floats drop the ``.0``, NaN and
    the infinities use their JavaScript names, datetimes use ISO 8601, and
    anything else structured is JSON-encoded. Never raises.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, datetime):
        return value.isoformat()
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        # Circular structures and the like
        return str(value)


def generate_event_id() -> str:
    """Generate a unique event key."""
    return generate(size=21)


def generate_batch_key() -> str:
    """Generate a throwaway batch key for events without a device id."""
    return generate(size=12)


class IncomingEvent(BaseModel):
    """Analytics event as delivered by the host pipeline.

    Only ``event`` is required. Text fields accept numbers and datetimes and
    store their ``stringify`` form, since hosts send numeric ids and epoch
    timestamps. Unknown host fields are kept so they survive a round trip
    through the buffer's size estimate.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    event: str = Field(description="Event type name, e.g. $pageview")
    distinct_id: str | None = None
    uuid: str | None = Field(default=None, description="Stable unique event id")
    timestamp: str | None = None
    properties: dict[str, Any] | None = None

    # Host metadata
    site_url: str | None = None
    team_id: int | str | None = None
    ip: str | None = None
    now: str | None = None
    sent_at: str | None = None

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return stringify(value)

    @field_validator("properties", mode="before")
    @classmethod
    def _coerce_properties(cls, value: Any) -> Any:
        # Non-mapping properties are kept under one key rather than rejected
        if value is None:
            return value
        if isinstance(value, dict):
            return {key if isinstance(key, str) else stringify(key): item for key, item in value.items()}
        return {"$properties": value}

    def prop(self, key: str) -> Any:
        """Return a property value, or None when absent."""
        return (self.properties or {}).get(key)

    def text_prop(self, key: str) -> str | None:
        """Return a property as text, or None when absent or blank."""
        value = self.prop(key)
        if value is None or value == "":
            return None
        return stringify(value)

    @property
    def device_id(self) -> str | None:
        return self.text_prop("$device_id")

    @property
    def session_id(self) -> str | None:
        return self.text_prop("$session_id")

    @property
    def user_id(self) -> str | None:
        return self.text_prop("$user_id")


class PinpointModel(BaseModel):
    """Base for Pinpoint wire records: alias keys, absent fields omitted."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class EventSession(PinpointModel):
    id: str = Field(alias="Id")
    start_timestamp: str = Field(alias="StartTimestamp")


class NormalizedEvent(PinpointModel):
    """One Pinpoint ``Event`` record, derived 1:1 from an IncomingEvent."""

    event_type: str = Field(alias="EventType")
    timestamp: str = Field(alias="Timestamp")
    attributes: dict[str, str] = Field(default_factory=dict, alias="Attributes")
    metrics: dict[str, float] = Field(default_factory=dict, alias="Metrics")
    client_sdk_version: str | None = Field(default=None, alias="ClientSdkVersion")
    sdk_name: str | None = Field(default=None, alias="SdkName")
    app_version_code: str | None = Field(default=None, alias="AppVersionCode")
    session: EventSession | None = Field(default=None, alias="Session")


class EndpointDemographic(PinpointModel):
    app_version: Any = Field(default=None, alias="AppVersion")
    locale: Any = Field(default=None, alias="Locale")
    make: Any = Field(default=None, alias="Make")
    model: Any = Field(default=None, alias="Model")
    platform: Any = Field(default=None, alias="Platform")
    platform_version: Any = Field(default=None, alias="PlatformVersion")
    timezone: Any = Field(default=None, alias="Timezone")


class EndpointLocation(PinpointModel):
    city: Any = Field(default=None, alias="City")
    country: Any = Field(default=None, alias="Country")
    latitude: Any = Field(default=None, alias="Latitude")
    longitude: Any = Field(default=None, alias="Longitude")
    postal_code: Any = Field(default=None, alias="PostalCode")
    region: Any = Field(default=None, alias="Region")


class EndpointUser(PinpointModel):
    user_id: Any = Field(default=None, alias="UserId")


class EndpointRecord(PinpointModel):
    """Pinpoint ``PublicEndpoint``. All fields absent means "no endpoint".

    Values are copied from event properties without validation, hence the
    loose ``Any`` typing on the nested records.
    """

    address: Any = Field(default=None, alias="Address")
    attributes: dict[str, list[str]] | None = Field(default=None, alias="Attributes")
    demographic: EndpointDemographic | None = Field(default=None, alias="Demographic")
    effective_date: str | None = Field(default=None, alias="EffectiveDate")
    location: EndpointLocation | None = Field(default=None, alias="Location")
    request_id: str | None = Field(default=None, alias="RequestId")
    user: EndpointUser | None = Field(default=None, alias="User")

    @property
    def is_empty(self) -> bool:
        return not self.to_wire()


class BatchItem(PinpointModel):
    """The unit Pinpoint ingests per batch key: one endpoint, many events."""

    endpoint: EndpointRecord = Field(default_factory=EndpointRecord, alias="Endpoint")
    events: dict[str, NormalizedEvent] = Field(default_factory=dict, alias="Events")

    def to_wire(self) -> dict[str, Any]:
        # Empty endpoint must still be sent as {}, so no exclude at this level
        return {
            "Endpoint": self.endpoint.to_wire(),
            "Events": {key: event.to_wire() for key, event in self.events.items()},
        }
