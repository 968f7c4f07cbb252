"""pinpoint-relay - Buffered forwarding of analytics events to Amazon Pinpoint."""

__version__ = "0.1.0"

from pinpoint_relay.buffer import BufferClosedError, EventBuffer
from pinpoint_relay.client import PinpointClient
from pinpoint_relay.config import ConfigurationError, DeliveryMode, RelayConfig
from pinpoint_relay.dispatcher import Dispatcher
from pinpoint_relay.filters import IgnoreFilter
from pinpoint_relay.grouper import group_events
from pinpoint_relay.logging_config import configure_logging
from pinpoint_relay.models import BatchItem, EndpointRecord, IncomingEvent, NormalizedEvent
from pinpoint_relay.normalizer import extract_endpoint, get_attribute, normalize_event
from pinpoint_relay.plugin import PinpointPlugin

__all__ = [
    "PinpointPlugin",
    "RelayConfig",
    "DeliveryMode",
    "ConfigurationError",
    "EventBuffer",
    "BufferClosedError",
    "Dispatcher",
    "PinpointClient",
    "IgnoreFilter",
    "group_events",
    "normalize_event",
    "extract_endpoint",
    "get_attribute",
    "configure_logging",
    "IncomingEvent",
    "NormalizedEvent",
    "EndpointRecord",
    "BatchItem",
]
