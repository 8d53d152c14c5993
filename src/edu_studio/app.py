"""FastAPI application factory for the authoring HTTP surface."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from azure.monitor.opentelemetry import configure_azure_monitor
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from opentelemetry.sdk.resources import Resource

from edu_studio.catalog import StaticCatalog
from edu_studio.config import load_settings
from edu_studio.errors import (
    CommandRejected,
    ConcurrencyConflict,
    ItemNotFound,
    ReviewStoreError,
    StaleWriteError,
)
from edu_studio.events import ItemEventForwarder, ServiceBusPublisher
from edu_studio.logging import configure_logging
from edu_studio.pipeline.backend import SimulatedBackend
from edu_studio.pipeline.executor import PipelineExecutor
from edu_studio.review.events import ServiceBusDecisionConsumer
from edu_studio.review.store import HttpReviewStore, InMemoryReviewStore
from edu_studio.review.sync import ReviewSynchronizer
from edu_studio.routes.items import router as items_router
from edu_studio.store import WorkItemStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from edu_studio.catalog import CatalogProvider
    from edu_studio.pipeline.backend import GenerationBackend

logger = logging.getLogger(__name__)

SERVICE_NAME = "edu-studio"


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message, **extra})


def register_error_handlers(app: FastAPI) -> None:
    """Map studio errors onto HTTP responses."""

    @app.exception_handler(ItemNotFound)
    async def _not_found(_: Request, exc: ItemNotFound) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(ConcurrencyConflict)
    async def _conflict(_: Request, exc: ConcurrencyConflict) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), running_item_id=exc.running_item_id)

    @app.exception_handler(StaleWriteError)
    async def _stale(_: Request, exc: StaleWriteError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(CommandRejected)
    async def _rejected(_: Request, exc: CommandRejected) -> JSONResponse:
        return _error(422, exc.message, issues=exc.issues)

    @app.exception_handler(ReviewStoreError)
    async def _review_store(_: Request, exc: ReviewStoreError) -> JSONResponse:
        logger.warning("Review Store unavailable — %s", exc)
        return _error(status.HTTP_502_BAD_GATEWAY, "Review Store unavailable")


def create_app(
    *,
    catalog: CatalogProvider | None = None,
    backend: GenerationBackend | None = None,
) -> FastAPI:
    """Create the application; collaborators are built in the lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        settings = load_settings()
        configure_logging(settings.app.log_level)
        logger.info("Studio starting — env=%s", settings.app.env)

        if settings.monitor.connection_string:
            configure_azure_monitor(
                connection_string=settings.monitor.connection_string,
                resource=Resource.create({"service.name": SERVICE_NAME}),
            )
            logger.info("Azure Monitor OpenTelemetry configured")

        store = WorkItemStore(catalog or StaticCatalog())
        review_store = (
            HttpReviewStore(settings.review_store)
            if settings.review_store.base_url
            else InMemoryReviewStore()
        )
        publisher = ServiceBusPublisher(settings.servicebus)
        forwarder = ItemEventForwarder(publisher)
        store.add_listener(forwarder)

        executor = PipelineExecutor(
            store,
            backend or SimulatedBackend(settings.pipeline),
            settings.pipeline,
            publisher=publisher,
        )
        synchronizer = ReviewSynchronizer(store, review_store, settings.review_sync)
        consumer = ServiceBusDecisionConsumer(
            settings.servicebus, on_decision=synchronizer.apply_decision
        )

        app.state.settings = settings
        app.state.store = store
        app.state.review_store = review_store
        app.state.executor = executor
        app.state.synchronizer = synchronizer
        app.state.event_publisher = publisher
        app.state.decision_consumer = consumer

        await synchronizer.start()
        await consumer.start()
        try:
            yield
        finally:
            logger.info("Studio shutting down")
            await consumer.stop()
            await synchronizer.stop()
            await executor.stop()
            await forwarder.drain()
            await publisher.close()
            if isinstance(review_store, HttpReviewStore):
                await review_store.close()
            logger.info("Studio shutdown complete")

    app = FastAPI(title="Edu Studio", lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(items_router)
    return app
