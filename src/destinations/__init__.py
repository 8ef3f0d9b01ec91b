"""Destination records and delivery transports."""

from src.destinations.channels import DeliveryChannel
from src.destinations.dispatcher import Dispatcher
from src.destinations.http_channel import HttpChannel
from src.destinations.models import (
    ChatDestination,
    Destination,
    HttpAuth,
    HttpDestination,
    UnsupportedDestination,
    destination_from_dict,
)
from src.destinations.slack_channel import SlackChannel

__all__ = [
    "ChatDestination",
    "DeliveryChannel",
    "Destination",
    "Dispatcher",
    "HttpAuth",
    "HttpChannel",
    "HttpDestination",
    "SlackChannel",
    "UnsupportedDestination",
    "destination_from_dict",
]
