"""Generic HTTP implementation of the DeliveryChannel protocol."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from src.config import settings
from src.errors import DeliveryError

if TYPE_CHECKING:
    from src.destinations.models import HttpAuth, HttpDestination
    from src.scheduler.shaping import Payload

logger = logging.getLogger(__name__)


def auth_headers(auth: HttpAuth) -> dict[str, str]:
    """Return the request headers for an auth descriptor."""
    if auth.type == "bearer":
        return {"Authorization": f"Bearer {auth.value}"}
    if auth.type == "basic":
        return {"Authorization": f"Basic {auth.value}"}
    if auth.type == "api_key":
        return {settings.api_key_header: auth.value}
    if auth.type == "none":
        return {}
    msg = f"unsupported auth type: {auth.type!r}"
    raise ValueError(msg)


class HttpChannel:
    """POSTs the payload bytes to an HTTP endpoint."""

    @property
    def name(self) -> str:
        return "http"

    async def deliver(self, destination: HttpDestination, payload: Payload, message: str) -> None:
        """POST *payload*; any status >= 400 or transport error is a DeliveryError.

        *message* is not part of the body; endpoints receive the raw payload.
        """
        headers = {"Content-Type": payload.content_type, **auth_headers(destination.auth)}
        body = payload.read_bytes()
        try:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
                resp = await client.post(destination.url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            msg = f"request to {destination.name} failed: {exc}"
            raise DeliveryError(msg) from exc

        if resp.status_code >= 400:
            msg = f"{destination.name} returned non-success status code: {resp.status_code}"
            raise DeliveryError(msg)
        logger.info(
            "HttpChannel: posted %d bytes to destination '%s' (status=%d)",
            len(body),
            destination.name,
            resp.status_code,
        )
