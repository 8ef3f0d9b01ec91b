"""Destination records — one dataclass per destination kind."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.errors import ConfigError

AUTH_TYPES = ("none", "bearer", "basic", "api_key")


@dataclass(frozen=True)
class HttpAuth:
    """How a generic HTTP destination authenticates. *value* is never shown."""

    type: str = "none"
    value: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        if self.type not in AUTH_TYPES:
            msg = f"unsupported auth type {self.type!r} (expected one of {', '.join(AUTH_TYPES)})"
            raise ValueError(msg)


@dataclass(frozen=True)
class ChatDestination:
    """A Slack channel; results are uploaded as file attachments."""

    name: str
    channel: str
    token: str = field(default="", repr=False)

    @property
    def kind(self) -> str:
        return "slack"


@dataclass(frozen=True)
class HttpDestination:
    """A generic HTTP endpoint; results are POSTed as the request body."""

    name: str
    url: str
    auth: HttpAuth = field(default_factory=HttpAuth)

    @property
    def kind(self) -> str:
        return "http"


@dataclass(frozen=True)
class UnsupportedDestination:
    """A record whose ``type`` has no transport (e.g. ``lineworks``).

    Loaded so that other destinations keep working; delivering to it fails.
    """

    name: str
    type: str

    @property
    def kind(self) -> str:
        return self.type or "unknown"


Destination = ChatDestination | HttpDestination | UnsupportedDestination

_CHAT_TYPES = {"slack", "chat"}
_HTTP_TYPES = {"custom", "http", "webhook"}


def destination_from_dict(name: str, data: dict[str, Any]) -> Destination:
    """Build a destination from its YAML record.

    Unknown types yield an :class:`UnsupportedDestination`.

    Raises:
        ConfigError: a missing required field or an unsupported auth type.
    """
    kind = str(data.get("type", "")).lower()
    token = data.get("token") or {}

    if kind in _CHAT_TYPES:
        channel = str(data.get("channel") or "")
        if not channel:
            msg = f"destination {name!r}: slack destinations need a channel"
            raise ConfigError(msg)
        return ChatDestination(name=name, channel=channel, token=str(token.get("value") or ""))

    if kind in _HTTP_TYPES:
        url = str(data.get("url") or data.get("webhook_url") or "")
        if not url:
            msg = f"destination {name!r}: http destinations need a url"
            raise ConfigError(msg)
        try:
            auth = HttpAuth(
                type=str(token.get("type") or "none").lower(),
                value=str(token.get("value") or ""),
            )
        except ValueError as exc:
            msg = f"destination {name!r}: {exc}"
            raise ConfigError(msg) from exc
        return HttpDestination(name=name, url=url, auth=auth)

    return UnsupportedDestination(name=name, type=kind)
