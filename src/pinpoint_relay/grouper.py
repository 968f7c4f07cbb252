"""Grouping of events into Pinpoint batch items."""

from collections.abc import Iterable

from pinpoint_relay.models import BatchItem, IncomingEvent, generate_batch_key
from pinpoint_relay.normalizer import extract_endpoint, normalize_event


def batch_key_for(event: IncomingEvent) -> str:
    """Device id, or a random key that nothing else will share."""
    return event.device_id or generate_batch_key()


def group_events(events: Iterable[IncomingEvent]) -> dict[str, BatchItem]:
    """Fold events into one BatchItem per batch key.

    Events under the same key accumulate in the item's event mapping. The
    endpoint is replaced by each event in turn, so the last event processed
    for a key decides it.
    """
    batch: dict[str, BatchItem] = {}

    for event in events:
        key = batch_key_for(event)
        event_key, normalized = normalize_event(event)

        item = batch.get(key)
        merged = {**item.events, event_key: normalized} if item else {event_key: normalized}
        batch[key] = BatchItem(endpoint=extract_endpoint(event), events=merged)

    return batch
