"""Tests for destination records and the Dispatcher."""

import asyncio

import pytest
from conftest import RecordingChannel

from src.destinations.dispatcher import Dispatcher
from src.destinations.models import (
    ChatDestination,
    HttpAuth,
    HttpDestination,
    UnsupportedDestination,
    destination_from_dict,
)
from src.errors import Cancelled, ConfigError, DeliveryError
from src.scheduler.context import RunContext
from src.scheduler.shaping import Payload

PAYLOAD = Payload(filename="r.csv", content_type="text/csv", content=b"id\n1\n")


# -- Models --------------------------------------------------------------------


def test_repr_hides_secrets() -> None:
    chat = ChatDestination(name="ops", channel="#ops", token="xoxb-secret")
    http = HttpDestination(name="hook", url="https://x", auth=HttpAuth("bearer", "tok-secret"))
    assert "xoxb-secret" not in repr(chat)
    assert "tok-secret" not in repr(http)


def test_kind() -> None:
    assert ChatDestination(name="a", channel="#a").kind == "slack"
    assert HttpDestination(name="b", url="https://x").kind == "http"


def test_from_dict_slack() -> None:
    dest = destination_from_dict(
        "ops", {"type": "slack", "channel": "#ops", "token": {"value": "xoxb-1"}}
    )
    assert dest == ChatDestination(name="ops", channel="#ops", token="xoxb-1")


def test_from_dict_custom_with_api_key() -> None:
    dest = destination_from_dict(
        "hook",
        {
            "type": "custom",
            "url": "https://example.com/hook",
            "token": {"type": "API_KEY", "value": "k"},
        },
    )
    assert isinstance(dest, HttpDestination)
    assert dest.auth == HttpAuth("api_key", "k")


def test_from_dict_webhook_url_alias() -> None:
    dest = destination_from_dict("hook", {"type": "webhook", "webhook_url": "https://x/y"})
    assert dest.url == "https://x/y"
    assert dest.auth.type == "none"


@pytest.mark.parametrize(
    "data",
    [
        {"type": "slack"},
        {"type": "custom"},
        {"type": "custom", "url": "https://x", "token": {"type": "digest", "value": "v"}},
    ],
)
def test_from_dict_rejects_bad_records(data: dict) -> None:
    with pytest.raises(ConfigError):
        destination_from_dict("bad", data)


def test_from_dict_keeps_unsupported_type() -> None:
    dest = destination_from_dict("line", {"type": "lineworks", "channel": "x"})
    assert dest == UnsupportedDestination(name="line", type="lineworks")
    assert dest.kind == "lineworks"


def test_from_dict_without_type() -> None:
    assert destination_from_dict("blank", {}).kind == "unknown"


# -- Dispatcher ----------------------------------------------------------------


async def test_routes_by_destination_type() -> None:
    slack, http = RecordingChannel("slack"), RecordingChannel("http")
    dispatcher = Dispatcher(slack=slack, http=http)

    await dispatcher.deliver(RunContext(), ChatDestination(name="a", channel="#a"), PAYLOAD, "m")
    await dispatcher.deliver(RunContext(), HttpDestination(name="b", url="https://x"), PAYLOAD, "m")

    assert [c["destination"].name for c in slack.calls] == ["a"]
    assert [c["destination"].name for c in http.calls] == ["b"]


async def test_unsupported_destination_fails_delivery() -> None:
    slack, http = RecordingChannel("slack"), RecordingChannel("http")
    dispatcher = Dispatcher(slack=slack, http=http)
    with pytest.raises(DeliveryError, match="'lineworks' is not supported"):
        await dispatcher.deliver(
            RunContext(), UnsupportedDestination(name="line", type="lineworks"), PAYLOAD, "m"
        )
    assert slack.calls == []
    assert http.calls == []


async def test_unknown_destination_type() -> None:
    dispatcher = Dispatcher(slack=RecordingChannel(), http=RecordingChannel("http"))
    with pytest.raises(DeliveryError, match="not supported"):
        await dispatcher.deliver(RunContext(), object(), PAYLOAD, "m")  # type: ignore[arg-type]


class _SlowChannel:
    name = "slow"

    async def deliver(self, destination, payload, message) -> None:
        await asyncio.sleep(5)


async def test_delivery_timeout() -> None:
    dispatcher = Dispatcher(slack=_SlowChannel(), http=RecordingChannel("http"))
    with pytest.raises(DeliveryError, match="timed out"):
        await dispatcher.deliver(
            RunContext(timeout=0.05), ChatDestination(name="a", channel="#a"), PAYLOAD, "m"
        )


async def test_delivery_cancelled() -> None:
    dispatcher = Dispatcher(slack=_SlowChannel(), http=RecordingChannel("http"))
    ctx = RunContext()
    asyncio.get_running_loop().call_later(0.02, ctx.cancel)
    with pytest.raises(Cancelled):
        await dispatcher.deliver(ctx, ChatDestination(name="a", channel="#a"), PAYLOAD, "m")
