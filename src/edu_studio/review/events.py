"""Service Bus consumer — receives review decisions pushed by the Review Store."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import secrets
from typing import TYPE_CHECKING

from pydantic import ValidationError

from edu_studio.events import REVIEW_DECISION, EventEnvelope
from edu_studio.models.review import ReviewDecision

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from edu_studio.config import ServiceBusConfig

logger = logging.getLogger(__name__)
_BASE_RECONNECT_DELAY_SECONDS = 1.0
_MAX_RECONNECT_DELAY_SECONDS = 30.0
_JITTER_SCALE = 1000
_MAX_DEDUPE_IDS = 10_000


def _compute_reconnect_delay_seconds(attempt: int) -> float:
    """Return bounded exponential backoff delay with jitter."""
    base_delay = _BASE_RECONNECT_DELAY_SECONDS * (2 ** min(attempt, 10))
    jitter_ratio = secrets.randbelow(_JITTER_SCALE) / _JITTER_SCALE
    return min(
        _MAX_RECONNECT_DELAY_SECONDS,
        base_delay + (base_delay * jitter_ratio),
    )


class ServiceBusDecisionConsumer:
    """Consume ``review-decision`` events and hand them to the synchronizer."""

    def __init__(
        self,
        config: ServiceBusConfig,
        on_decision: Callable[[ReviewDecision], Awaitable[object]],
    ) -> None:
        """Initialize with Service Bus configuration and decision handler."""
        self._config = config
        self._on_decision = on_decision
        self._task: asyncio.Task | None = None
        self._running = False
        self._disabled = not config.connection_string
        self._processed_ids: set[str] = set()
        if self._disabled:
            logger.warning(
                "AZURE_SERVICEBUS_CONNECTION_STRING is not set — "
                "review decisions will only be polled"
            )

    async def start(self) -> None:
        """Start the background decision consumer task."""
        if self._disabled:
            return
        self._running = True
        self._task = asyncio.create_task(self._consume())
        logger.info(
            "Review decision consumer started — topic=%s subscription=%s",
            self._config.decision_topic_name,
            self._config.subscription_name,
        )

    async def stop(self) -> None:
        """Stop the background decision consumer task."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        logger.info("Review decision consumer stopped")

    def _remember(self, dedupe_id: str) -> None:
        """Remember processed decision IDs for at-least-once delivery deduplication."""
        self._processed_ids.add(dedupe_id)
        if len(self._processed_ids) > _MAX_DEDUPE_IDS:
            self._processed_ids.clear()

    async def _handle_event(self, envelope: EventEnvelope, *, message_id: str | None) -> bool:
        """Handle a decoded envelope. Returns True when the event was consumed."""
        if envelope.event != REVIEW_DECISION:
            return False
        if not isinstance(envelope.data, dict):
            logger.warning("Ignoring invalid review-decision payload (non-object data)")
            return True

        try:
            decision = ReviewDecision.model_validate(envelope.data)
        except ValidationError:
            logger.warning("Ignoring invalid review-decision payload", exc_info=True)
            return True

        dedupe_id = message_id or decision.key
        if dedupe_id in self._processed_ids:
            logger.info("Ignoring duplicate review decision id=%s", dedupe_id)
            return True

        await self._on_decision(decision)
        self._remember(dedupe_id)
        logger.info(
            "Handled review decision — item=%s stage=%s status=%s",
            decision.content_id,
            decision.stage,
            decision.status,
        )
        return True

    async def _consume(self) -> None:
        """Consume with reconnect backoff until stopped."""
        from azure.servicebus.exceptions import (  # noqa: PLC0415
            ServiceBusConnectionError,
        )

        attempt = 0
        while self._running:
            try:
                await self._consume_once()
                attempt = 0
            except asyncio.CancelledError:
                raise
            except ServiceBusConnectionError as exc:
                if not self._running:
                    break
                delay = _compute_reconnect_delay_seconds(attempt)
                attempt += 1
                logger.warning(
                    "Review decision consumer connection failed — %s; retrying in %.1fs",
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
            except Exception:  # noqa: BLE001
                if not self._running:
                    break
                delay = _compute_reconnect_delay_seconds(attempt)
                attempt += 1
                logger.warning(
                    "Review decision consumer error; retrying in %.1fs",
                    delay,
                    exc_info=True,
                )
                await asyncio.sleep(delay)

    async def _consume_once(self) -> None:
        """Run a single Service Bus receive session."""
        from azure.servicebus.aio import ServiceBusClient  # noqa: PLC0415

        client = ServiceBusClient.from_connection_string(self._config.connection_string)
        async with client:
            receiver = client.get_subscription_receiver(
                topic_name=self._config.decision_topic_name,
                subscription_name=self._config.subscription_name,
            )
            async with receiver:
                while self._running:
                    messages = await receiver.receive_messages(
                        max_message_count=10, max_wait_time=5
                    )
                    for message in messages:
                        try:
                            envelope = EventEnvelope.from_message_body(str(message))
                            handled = await self._handle_event(
                                envelope,
                                message_id=str(message.message_id)
                                if message.message_id
                                else None,
                            )
                            await receiver.complete_message(message)
                            if not handled:
                                logger.debug(
                                    "Ignored non-decision event: %s", envelope.event
                                )
                        except asyncio.CancelledError:
                            raise
                        except json.JSONDecodeError:
                            logger.warning(
                                "Invalid Service Bus message payload, abandoning message"
                            )
                            await receiver.abandon_message(message)
                        except Exception:  # noqa: BLE001
                            logger.warning(
                                "Failed to process review decision message",
                                exc_info=True,
                            )
                            await receiver.abandon_message(message)
