"""Outbound item events published to Azure Service Bus."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Protocol

from azure.servicebus.aio import ServiceBusClient, ServiceBusSender
from pydantic import BaseModel

if TYPE_CHECKING:
    from edu_studio.config import ServiceBusConfig
    from edu_studio.models.work_item import WorkItem
    from edu_studio.store import MutationSource

logger = logging.getLogger(__name__)

WORK_ITEM_UPDATED = "work-item-updated"
PIPELINE_PROGRESS = "pipeline-progress"
REVIEW_DECISION = "review-decision"


class EventEnvelope(BaseModel):
    """Canonical event envelope used on Service Bus."""

    event: str
    data: dict[str, Any] | str

    @classmethod
    def from_message_body(cls, body: str) -> EventEnvelope:
        """Parse an envelope, decoding ``data`` when it arrives as a JSON string."""
        envelope = cls.model_validate(json.loads(body))
        if isinstance(envelope.data, str):
            try:
                decoded = json.loads(envelope.data)
            except json.JSONDecodeError:
                return envelope
            if isinstance(decoded, dict):
                envelope.data = decoded
        return envelope


class EventPublisher(Protocol):
    async def publish(self, event_type: str, data: dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


class ServiceBusPublisher:
    """Publish item events to an Azure Service Bus topic.

    Without a connection string the publisher is disabled and drops events.
    Send failures are logged, never raised to the caller.
    """

    def __init__(self, config: ServiceBusConfig, *, topic_name: str | None = None) -> None:
        """Initialize with Service Bus configuration."""
        self._config = config
        self._topic_name = topic_name or config.event_topic_name
        self._client: ServiceBusClient | None = None
        self._sender: ServiceBusSender | None = None
        self._disabled = not config.connection_string
        if self._disabled:
            logger.warning(
                "AZURE_SERVICEBUS_CONNECTION_STRING is not set — "
                "item events will not be published"
            )

    @property
    def disabled(self) -> bool:
        return self._disabled

    async def _ensure_sender(self) -> ServiceBusSender:
        """Lazily create the Service Bus client and sender."""
        if self._sender is None:
            self._client = ServiceBusClient.from_connection_string(
                self._config.connection_string
            )
            self._sender = self._client.get_topic_sender(topic_name=self._topic_name)
        return self._sender

    async def publish(self, event_type: str, data: dict[str, Any]) -> None:
        """Send an event message to the Service Bus topic."""
        if self._disabled:
            return

        from azure.servicebus import ServiceBusMessage  # noqa: PLC0415

        try:
            sender = await self._ensure_sender()
            body = EventEnvelope(event=event_type, data=data).model_dump_json()
            message = ServiceBusMessage(
                body=body,
                application_properties={"event_type": event_type},
            )
            await sender.send_messages(message)
            logger.debug("Published event=%s to Service Bus", event_type)
        except Exception:  # noqa: BLE001
            logger.warning(
                "Failed to publish event=%s to Service Bus",
                event_type,
                exc_info=True,
            )

    async def close(self) -> None:
        """Close the Service Bus client."""
        if self._sender:
            await self._sender.close()
        if self._client:
            await self._client.close()


def item_event_payload(item: WorkItem, source: MutationSource | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "item_id": item.id,
        "version": item.version,
        "status": item.status.value,
        "pipeline_state": item.pipeline.state.value,
        "script_approved": item.is_stage1_approved,
        "updated_at": item.updated_at.isoformat(),
    }
    if source is not None:
        payload["source"] = source.value
    return payload


class ItemEventForwarder:
    """Store listener that publishes ``work-item-updated`` for every commit.

    Store commits are synchronous, so each publish runs as its own task on the
    running loop; commits made outside a loop are not forwarded.
    """

    def __init__(self, publisher: EventPublisher) -> None:
        """Initialize with the publisher that receives forwarded events."""
        self._publisher = publisher
        self._pending: set[asyncio.Task] = set()

    def __call__(self, item: WorkItem, source: MutationSource) -> None:
        """Schedule a publish for a committed item on the running loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, event not forwarded — item=%s", item.id)
            return
        task = loop.create_task(
            self._publisher.publish(WORK_ITEM_UPDATED, item_event_payload(item, source))
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight publishes to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
