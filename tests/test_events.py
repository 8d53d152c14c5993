"""Tests for outbound item events."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

from edu_studio.config import ServiceBusConfig
from edu_studio.events import (
    WORK_ITEM_UPDATED,
    ItemEventForwarder,
    ServiceBusPublisher,
    item_event_payload,
)
from edu_studio.store import MutationSource

_CONNECTION = "Endpoint=sb://test.servicebus.windows.net/;SharedAccessKeyName=key;SharedAccessKey=abc"


async def test_publisher_disabled_without_connection_string() -> None:
    publisher = ServiceBusPublisher(ServiceBusConfig(connection_string=""))

    with patch("edu_studio.events.ServiceBusClient") as client_cls:
        await publisher.publish(WORK_ITEM_UPDATED, {"item_id": "x"})
        await publisher.close()

    assert publisher.disabled is True
    client_cls.from_connection_string.assert_not_called()


async def test_publisher_sends_envelope_to_event_topic() -> None:
    sender = MagicMock()
    sender.send_messages = AsyncMock()
    sender.close = AsyncMock()
    client = MagicMock()
    client.get_topic_sender.return_value = sender
    client.close = AsyncMock()
    publisher = ServiceBusPublisher(ServiceBusConfig(connection_string=_CONNECTION))

    with patch("edu_studio.events.ServiceBusClient") as client_cls:
        client_cls.from_connection_string.return_value = client
        await publisher.publish(WORK_ITEM_UPDATED, {"item_id": "x"})
        await publisher.close()

    client.get_topic_sender.assert_called_once_with(topic_name="studio-events")
    (message,) = sender.send_messages.await_args.args
    assert '"event":"work-item-updated"' in str(message)
    sender.close.assert_awaited_once()
    client.close.assert_awaited_once()


async def test_publisher_swallows_send_failures() -> None:
    sender = MagicMock()
    sender.send_messages = AsyncMock(side_effect=RuntimeError("broker down"))
    client = MagicMock()
    client.get_topic_sender.return_value = sender
    publisher = ServiceBusPublisher(
        ServiceBusConfig(connection_string=_CONNECTION), topic_name="custom"
    )

    with patch("edu_studio.events.ServiceBusClient") as client_cls:
        client_cls.from_connection_string.return_value = client
        await publisher.publish(WORK_ITEM_UPDATED, {"item_id": "x"})

    client.get_topic_sender.assert_called_once_with(topic_name="custom")


def test_item_event_payload(make_item) -> None:
    item = make_item(insert=False)

    payload = item_event_payload(item, MutationSource.PIPELINE)

    assert payload["item_id"] == item.id
    assert payload["status"] == "DRAFT"
    assert payload["pipeline_state"] == "IDLE"
    assert payload["script_approved"] is False
    assert payload["source"] == "PIPELINE"


async def test_forwarder_publishes_store_commits(store, make_item) -> None:
    publisher = MagicMock()
    publisher.publish = AsyncMock()
    forwarder = ItemEventForwarder(publisher)
    store.add_listener(forwarder)

    item = make_item()
    store.mutate(item.id, MutationSource.AUTHORING, lambda d: setattr(d, "title", "변경"))
    await forwarder.drain()

    assert publisher.publish.await_count == 2
    event, payload = publisher.publish.await_args.args
    assert event == WORK_ITEM_UPDATED
    assert payload["item_id"] == item.id


def test_forwarder_outside_loop_is_noop(store, make_item) -> None:
    publisher = MagicMock()
    publisher.publish = AsyncMock()
    store.add_listener(ItemEventForwarder(publisher))

    make_item()

    publisher.publish.assert_not_called()
