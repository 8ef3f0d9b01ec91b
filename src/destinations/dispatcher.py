"""Dispatcher — routes a shaped payload to the channel for its destination kind."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.destinations.http_channel import HttpChannel
from src.destinations.models import ChatDestination, HttpDestination, UnsupportedDestination
from src.destinations.slack_channel import SlackChannel
from src.errors import DeliveryError

if TYPE_CHECKING:
    from src.destinations.channels import DeliveryChannel
    from src.destinations.models import Destination
    from src.scheduler.context import RunContext
    from src.scheduler.shaping import Payload

logger = logging.getLogger(__name__)


class Dispatcher:
    """Delivers payloads, selecting the transport by destination type.

    Args:
        slack: Channel used for chat destinations (default SlackChannel).
        http: Channel used for generic HTTP destinations (default HttpChannel).
    """

    def __init__(
        self,
        slack: DeliveryChannel | None = None,
        http: DeliveryChannel | None = None,
    ) -> None:
        self._slack = slack or SlackChannel()
        self._http = http or HttpChannel()

    def channel_for(self, destination: Destination) -> DeliveryChannel:
        """Resolve the transport for *destination*. Raises DeliveryError if unknown."""
        if isinstance(destination, ChatDestination):
            return self._slack
        if isinstance(destination, HttpDestination):
            return self._http
        if isinstance(destination, UnsupportedDestination):
            msg = f"destination {destination.name}: type {destination.kind!r} is not supported"
            raise DeliveryError(msg)
        msg = f"destination type {type(destination).__name__} is not supported"
        raise DeliveryError(msg)

    async def deliver(
        self,
        ctx: RunContext,
        destination: Destination,
        payload: Payload,
        message: str,
    ) -> None:
        """Deliver *payload* with *message*; bounded by *ctx*.

        Raises:
            DeliveryError: rejected upload, bad status, transport error or timeout.
            Cancelled: the context was cancelled mid-delivery.
        """
        channel = self.channel_for(destination)
        logger.info(
            "Delivering %s to '%s' (%s) via %s",
            payload.filename,
            destination.name,
            destination.kind,
            channel.name,
        )
        try:
            await ctx.guard(channel.deliver(destination, payload, message))
        except TimeoutError as exc:
            msg = f"delivery to {destination.name} timed out"
            raise DeliveryError(msg) from exc
