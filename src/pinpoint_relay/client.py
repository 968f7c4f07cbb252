"""Amazon Pinpoint client wrapper."""

import logging
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import boto3
from botocore.config import Config

from pinpoint_relay.config import RelayConfig
from pinpoint_relay.models import BatchItem

logger = logging.getLogger(__name__)


class PinpointClient:
    """Submits batches to Pinpoint ``PutEvents`` off the caller's thread.

    Retries, auth and timeouts belong to boto3; ``max_attempts`` is passed to
    botocore's retry config and nothing else here retries.
    """

    def __init__(
        self,
        region: str,
        aws_access_key_id: str,
        aws_secret_access_key: str,
        max_attempts: int = 3,
        max_workers: int = 4,
        **client_kwargs: Any,
    ):
        self.region = region
        self.max_attempts = max_attempts
        self._client = boto3.client(
            "pinpoint",
            region_name=region,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            config=Config(retries={"max_attempts": max_attempts, "mode": "standard"}),
            **client_kwargs,
        )
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pinpoint")
        self.is_running = True

    @classmethod
    def from_config(cls, config: RelayConfig, **kwargs: Any) -> "PinpointClient":
        return cls(
            region=config.aws_region,
            aws_access_key_id=config.aws_access_key,
            aws_secret_access_key=config.aws_secret_access_key,
            max_attempts=config.max_attempts,
            **kwargs,
        )

    @staticmethod
    def build_request(application_id: str, batch_items: Mapping[str, BatchItem]) -> dict[str, Any]:
        """Build the ``put_events`` keyword arguments for a batch."""
        return {
            "ApplicationId": application_id,
            "EventsRequest": {
                "BatchItem": {key: item.to_wire() for key, item in batch_items.items()},
            },
        }

    def put_events(self, request: dict[str, Any]) -> dict[str, Any]:
        """Blocking call to Pinpoint. Raises botocore errors on failure."""
        return self._client.put_events(**request)

    def submit(self, request: dict[str, Any]) -> Future:
        """Schedule ``put_events`` on the worker pool.

        Returns:
            Future resolving to the Pinpoint response, or carrying the error
        """
        return self._executor.submit(self.put_events, request)

    def close(self) -> None:
        """Wait for in-flight submissions, then release the pool."""
        if not self.is_running:
            return
        self.is_running = False
        self._executor.shutdown(wait=True)
        logger.debug("Pinpoint client closed")

    def __enter__(self) -> "PinpointClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
