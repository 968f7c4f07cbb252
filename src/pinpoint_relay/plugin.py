"""Host-facing plugin: lifecycle hooks and event routing.

All state lives on a ``PinpointPlugin`` instance, so several relays can run
in one process without sharing a buffer.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from pinpoint_relay.buffer import EventBuffer
from pinpoint_relay.client import PinpointClient
from pinpoint_relay.config import DeliveryMode, RelayConfig
from pinpoint_relay.dispatcher import BatchSubmitter, Dispatcher
from pinpoint_relay.filters import IgnoreFilter
from pinpoint_relay.models import IncomingEvent

logger = logging.getLogger(__name__)

ClientFactory = Callable[[RelayConfig], BatchSubmitter]


class PinpointPlugin:
    """Relays host analytics events to Amazon Pinpoint.

    Usage:
        plugin = PinpointPlugin()
        plugin.setup({"awsAccessKey": ..., "applicationId": ..., ...})
        plugin.on_event({"event": "$pageview", "properties": {...}})
        plugin.teardown()
    """

    def __init__(self, client_factory: ClientFactory | None = None):
        """Initialize an unconfigured plugin.

        Args:
            client_factory: Builds the outbound client from the parsed config.
                Defaults to a boto3-backed ``PinpointClient``.
        """
        self.client_factory = client_factory or PinpointClient.from_config
        self.config: RelayConfig | None = None
        self.client: BatchSubmitter | None = None
        self.dispatcher: Dispatcher | None = None
        self.buffer: EventBuffer | None = None
        self.ignore_filter = IgnoreFilter()
        self.is_running = False

    def setup(self, config: Mapping[str, Any]) -> None:
        """Parse config and build the pipeline.

        Calling this on a running plugin tears the old pipeline down first,
        flushing its pending events, once the new config has parsed.

        Raises:
            ConfigurationError: If a required option is missing; nothing is
                built in that case.
        """
        relay_config = RelayConfig.from_plugin_config(config)

        if self.is_running:
            logger.info("Pinpoint relay reconfigured, stopping previous pipeline")
            self.teardown()

        client = self.client_factory(relay_config)
        dispatcher = Dispatcher(
            client,
            application_id=relay_config.application_id,
            max_retries=relay_config.max_retries,
        )

        buffer = None
        if relay_config.delivery_mode is DeliveryMode.BUFFERED:
            buffer = EventBuffer(
                on_flush=dispatcher.dispatch,
                limit_bytes=relay_config.upload_limit_bytes,
                timeout_seconds=relay_config.upload_seconds,
            )

        self.config = relay_config
        self.client = client
        self.dispatcher = dispatcher
        self.buffer = buffer
        self.ignore_filter = IgnoreFilter.from_csv(relay_config.events_to_ignore)
        self.is_running = True

        logger.info(
            f"Pinpoint relay ready (application={relay_config.application_id}, "
            f"region={relay_config.aws_region}, mode={relay_config.delivery_mode.value}, "
            f"ignoring={sorted(self.ignore_filter.ignored)})"
        )

    def on_event(self, event: IncomingEvent | Mapping[str, Any]) -> None:
        self._route(event)

    def on_snapshot(self, event: IncomingEvent | Mapping[str, Any]) -> None:
        self._route(event)

    def _route(self, event: IncomingEvent | Mapping[str, Any]) -> None:
        if not self.is_running or self.dispatcher is None:
            raise RuntimeError("Plugin not set up")

        if not isinstance(event, IncomingEvent):
            try:
                event = IncomingEvent.model_validate(event)
            except ValidationError as e:
                logger.error(f"Dropping malformed event: {e.error_count()} validation error(s): {e}")
                return

        if self.ignore_filter.should_ignore(event.event):
            logger.debug(f"Ignoring {event.event} event")
            return

        if self.buffer is not None:
            self.buffer.add(event)
        else:
            self.dispatcher.dispatch([event])

    def teardown(self) -> None:
        """Flush pending events and release the client."""
        if not self.is_running:
            return
        self.is_running = False

        if self.buffer is not None:
            self.buffer.teardown()
        if self.dispatcher is not None:
            self.dispatcher.close()

        close = getattr(self.client, "close", None)
        if callable(close):
            close()

        logger.info("Pinpoint relay stopped")

    def __enter__(self) -> "PinpointPlugin":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.teardown()
