"""Slack implementation of the DeliveryChannel protocol."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import aiohttp
from slack_sdk.errors import SlackApiError, SlackClientError
from slack_sdk.web.async_client import AsyncWebClient

from src.config import settings
from src.errors import DeliveryError

if TYPE_CHECKING:
    from src.destinations.models import ChatDestination
    from src.scheduler.shaping import Payload

logger = logging.getLogger(__name__)


class SlackChannel:
    """Uploads result files to a Slack channel with the message as a comment."""

    @property
    def name(self) -> str:
        return "slack"

    def _client(self, token: str) -> AsyncWebClient:
        return AsyncWebClient(token=token, timeout=int(settings.http_timeout_seconds))

    async def deliver(self, destination: ChatDestination, payload: Payload, message: str) -> None:
        """Upload *payload* to the destination's channel."""
        channel = destination.channel.lstrip("#")
        client = self._client(destination.token)
        file = str(payload.path) if payload.path is not None else payload.content
        try:
            await client.files_upload_v2(
                channel=channel,
                file=file,
                filename=payload.filename,
                title=payload.filename,
                initial_comment=message or None,
            )
        except SlackApiError as exc:
            error = exc.response.get("error", "unknown_error")
            msg = f"slack rejected upload to {destination.name}: {error}"
            raise DeliveryError(msg) from exc
        except (SlackClientError, aiohttp.ClientError, TimeoutError) as exc:
            msg = f"slack upload to {destination.name} failed: {exc}"
            raise DeliveryError(msg) from exc
        logger.info(
            "SlackChannel: uploaded %s to destination '%s' (channel=%s)",
            payload.filename,
            destination.name,
            channel,
        )
