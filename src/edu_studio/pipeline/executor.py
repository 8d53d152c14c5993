"""Pipeline executor — admits and runs generation jobs, one at a time system-wide.

Admission is synchronous: :meth:`PipelineExecutor.run` either raises or
returns the item already in ``GENERATING``/``RUNNING`` with the job scheduled.
The job then reports progress into the store and finishes by writing its
assets (success) or ``failed_reason`` (failure) onto the item.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from functools import partial
from typing import TYPE_CHECKING

from edu_studio.errors import (
    CommandRejected,
    ConcurrencyConflict,
    GenerationError,
    PreconditionFailed,
)
from edu_studio.events import PIPELINE_PROGRESS
from edu_studio.models.work_item import (
    ItemStatus,
    Pipeline,
    PipelineMode,
    PipelineStage,
    PipelineState,
)
from edu_studio.pipeline.backend import STAGE_PLANS
from edu_studio.policy import ensure_in_scope
from edu_studio.store import MutationSource
from edu_studio.validation import validate_for_run

if TYPE_CHECKING:
    from edu_studio.catalog import CatalogProvider
    from edu_studio.config import PipelineConfig
    from edu_studio.events import EventPublisher
    from edu_studio.models.scope import AuthoringScope
    from edu_studio.models.work_item import WorkItem
    from edu_studio.pipeline.backend import GenerationBackend, GenerationResult
    from edu_studio.store import WorkItemStore

logger = logging.getLogger(__name__)

MSG_DONE = "자동 생성이 완료되었습니다."
MSG_TIMEOUT = "자동 생성 시간이 초과되었습니다. 재시도해 주세요."
MSG_INTERRUPTED = "서버 종료로 자동 생성이 중단되었습니다. 재시도해 주세요."
MSG_UNEXPECTED = "자동 생성 중 알 수 없는 오류가 발생했습니다."
MSG_RETRY_NOT_FAILED = "실패 상태에서만 재시도할 수 있습니다."

_VIDEO_MODES = frozenset({PipelineMode.VIDEO_ONLY, PipelineMode.FULL})


def retry_mode_for(item: WorkItem) -> PipelineMode:
    """Pick the retry mode from the assets present, not from the failed mode."""
    if item.has_script and item.is_stage1_approved:
        return PipelineMode.VIDEO_ONLY
    return PipelineMode.SCRIPT_ONLY


class PipelineExecutor:
    """Runs generation jobs against a :class:`GenerationBackend`."""

    def __init__(
        self,
        store: WorkItemStore,
        backend: GenerationBackend,
        config: PipelineConfig,
        *,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._store = store
        self._backend = backend
        self._config = config
        self._publisher = publisher
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def catalog(self) -> CatalogProvider:
        return self._store.catalog

    def run(self, item_id: str, mode: PipelineMode, scope: AuthoringScope) -> WorkItem:
        """Admit a job for ``item_id`` and schedule it on the running loop.

        Raises :class:`CommandRejected` for items outside ``scope``,
        :class:`ConcurrencyConflict` while any item is running and
        :class:`PreconditionFailed` when the item fails its run checks. None of
        them leaves a trace on any item.
        """
        item = self._store.require(item_id)
        ensure_in_scope(item, scope)
        running = self._store.running_item()
        if running is not None:
            logger.info(
                "Pipeline rejected, job already running — item=%s running=%s",
                item_id,
                running.id,
            )
            raise ConcurrencyConflict(running.id)

        result = validate_for_run(item, scope, mode, self.catalog)
        if not result.ok:
            logger.info(
                "Pipeline preconditions failed — item=%s mode=%s issues=%d",
                item_id,
                mode,
                len(result.issues),
            )
            raise PreconditionFailed(result.issues)

        started_at = self._store.now()

        def _admit(draft: WorkItem) -> None:
            draft.status = ItemStatus.GENERATING
            draft.failed_reason = None
            if mode in _VIDEO_MODES:
                draft.video_url = ""
                draft.thumbnail_url = ""
            draft.pipeline = Pipeline(
                mode=mode,
                state=PipelineState.RUNNING,
                stage=STAGE_PLANS[mode][0],
                progress=0,
                started_at=started_at,
            )

        admitted = self._store.mutate(item_id, MutationSource.PIPELINE, _admit)
        self._tasks[item_id] = asyncio.create_task(
            self._execute(item_id, mode), name=f"pipeline-{item_id}"
        )
        logger.info("Pipeline admitted — item=%s mode=%s", item_id, mode)
        return admitted

    def retry(self, item_id: str, scope: AuthoringScope) -> WorkItem:
        item = self._store.require(item_id)
        ensure_in_scope(item, scope)
        if item.status != ItemStatus.FAILED:
            raise CommandRejected(MSG_RETRY_NOT_FAILED)
        return self.run(item_id, retry_mode_for(item), scope)

    def is_active(self, item_id: str) -> bool:
        task = self._tasks.get(item_id)
        return task is not None and not task.done()

    async def wait(self, item_id: str) -> None:
        """Wait until the job for ``item_id`` (if any) has finished."""
        task = self._tasks.get(item_id)
        if task is not None:
            await asyncio.wait({task})

    async def stop(self) -> None:
        """Cancel running jobs; their items are recorded as failed."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("Pipeline executor stopped — cancelled=%d", len(tasks))

    async def _execute(self, item_id: str, mode: PipelineMode) -> None:
        item = self._store.require(item_id)
        try:
            async with asyncio.timeout(self._config.timeout_seconds):
                result = await self._backend.generate(
                    item, mode, partial(self._on_progress, item_id)
                )
        except GenerationError as exc:
            self._fail(item_id, str(exc) or MSG_UNEXPECTED)
        except TimeoutError:
            logger.warning(
                "Pipeline timed out — item=%s timeout=%.1fs",
                item_id,
                self._config.timeout_seconds,
            )
            self._fail(item_id, MSG_TIMEOUT)
        except asyncio.CancelledError:
            self._fail(item_id, MSG_INTERRUPTED)
            raise
        except Exception:
            logger.exception("Pipeline job crashed — item=%s", item_id)
            self._fail(item_id, MSG_UNEXPECTED)
        else:
            self._succeed(item_id, mode, result)
        finally:
            self._tasks.pop(item_id, None)

    async def _on_progress(self, item_id: str, stage: PipelineStage, progress: int) -> None:
        def _advance(draft: WorkItem) -> None:
            if draft.pipeline.state != PipelineState.RUNNING:
                return
            draft.pipeline.progress = max(draft.pipeline.progress, min(progress, 100))
            draft.pipeline.stage = stage

        item = self._store.mutate(item_id, MutationSource.PIPELINE, _advance)
        if self._publisher is not None:
            await self._publisher.publish(
                PIPELINE_PROGRESS,
                {
                    "item_id": item_id,
                    "stage": item.pipeline.stage.value if item.pipeline.stage else None,
                    "progress": item.pipeline.progress,
                },
            )

    def _succeed(self, item_id: str, mode: PipelineMode, result: GenerationResult) -> None:
        finished_at = self._store.now()

        def _apply(draft: WorkItem) -> None:
            draft.status = ItemStatus.DRAFT
            draft.failed_reason = None
            if result.script is not None:
                draft.script = result.script
            if mode in _VIDEO_MODES:
                draft.video_url = result.video_url or ""
                draft.thumbnail_url = result.thumbnail_url or ""
            draft.pipeline.state = PipelineState.SUCCESS
            draft.pipeline.stage = PipelineStage.DONE
            draft.pipeline.progress = 100
            draft.pipeline.finished_at = finished_at
            draft.pipeline.message = MSG_DONE

        self._store.mutate(item_id, MutationSource.PIPELINE, _apply)
        logger.info("Pipeline succeeded — item=%s mode=%s", item_id, mode)

    def _fail(self, item_id: str, reason: str) -> None:
        finished_at = self._store.now()

        def _apply(draft: WorkItem) -> None:
            draft.status = ItemStatus.FAILED
            draft.failed_reason = reason
            draft.pipeline.state = PipelineState.FAILED
            draft.pipeline.finished_at = finished_at
            draft.pipeline.message = reason

        self._store.mutate(item_id, MutationSource.PIPELINE, _apply)
        logger.warning("Pipeline failed — item=%s reason=%s", item_id, reason)
