#!/usr/bin/env python
"""Forward a handful of events to Pinpoint using credentials from the environment."""

import logging
import os

from pinpoint_relay import PinpointPlugin, configure_logging

configure_logging(logging.INFO)

plugin = PinpointPlugin()
plugin.setup(
    {
        "awsAccessKey": os.environ.get("AWS_ACCESS_KEY_ID", ""),
        "awsSecretAccessKey": os.environ.get("AWS_SECRET_ACCESS_KEY", ""),
        "awsRegion": os.environ.get("AWS_REGION", "us-east-1"),
        "applicationId": os.environ.get("PINPOINT_APPLICATION_ID", ""),
        "uploadSeconds": "5",
        "uploadKilobytes": "64",
        "eventsToIgnore": "$heartbeat",
    }
)

for page in ("/", "/pricing", "/signup"):
    plugin.on_event(
        {
            "event": "$pageview",
            "distinct_id": "user-1",
            "properties": {"$device_id": "device-1", "$current_url": page, "$screen_width": 1440},
        }
    )

plugin.on_event({"event": "$heartbeat"})  # dropped by the ignore list

# Flushes the three pageviews as one batch item keyed by device-1
plugin.teardown()
