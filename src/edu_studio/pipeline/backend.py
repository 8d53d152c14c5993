"""Generation backends — the opaque jobs that produce scripts and videos."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel

from edu_studio.errors import GenerationError
from edu_studio.models.work_item import PipelineMode, PipelineStage

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from edu_studio.config import PipelineConfig
    from edu_studio.models.work_item import WorkItem

    ProgressCallback = Callable[[PipelineStage, int], Awaitable[None]]

logger = logging.getLogger(__name__)

STAGE_PLANS: dict[PipelineMode, tuple[PipelineStage, ...]] = {
    PipelineMode.SCRIPT_ONLY: (PipelineStage.UPLOAD, PipelineStage.SCRIPT),
    PipelineMode.VIDEO_ONLY: (PipelineStage.VIDEO, PipelineStage.THUMBNAIL),
    PipelineMode.FULL: (
        PipelineStage.UPLOAD,
        PipelineStage.SCRIPT,
        PipelineStage.VIDEO,
        PipelineStage.THUMBNAIL,
    ),
}


def stage_for_progress(mode: PipelineMode, progress: int) -> PipelineStage:
    """Map a progress value onto the stage band it falls in for ``mode``."""
    if progress >= 100:
        return PipelineStage.DONE
    plan = STAGE_PLANS[mode]
    band = 100 / len(plan)
    return plan[min(int(progress // band), len(plan) - 1)]


class GenerationResult(BaseModel):
    script: str | None = None
    video_url: str | None = None
    thumbnail_url: str | None = None


class GenerationBackend(Protocol):
    async def generate(
        self,
        item: WorkItem,
        mode: PipelineMode,
        on_progress: ProgressCallback,
    ) -> GenerationResult:
        """Run one job, reporting progress; raise ``GenerationError`` on failure."""
        ...


class SimulatedBackend:
    """Stand-in backend advancing progress in bounded random steps.

    ``failure_rate`` is the chance that a job fails part-way; ``rng`` makes
    runs reproducible in tests.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        rng: random.Random | None = None,
        failure_rate: float = 0.0,
        failure_message: str = "자동 생성 중 오류가 발생했습니다.",
    ) -> None:
        self._config = config
        self._rng = rng or random.Random()  # noqa: S311
        self._failure_rate = failure_rate
        self._failure_message = failure_message

    async def generate(
        self,
        item: WorkItem,
        mode: PipelineMode,
        on_progress: ProgressCallback,
    ) -> GenerationResult:
        fail_at = self._pick_failure_point()
        progress = 0
        while progress < 100:
            await asyncio.sleep(self._config.tick_seconds)
            step = self._rng.randint(self._config.min_step, self._config.max_step)
            progress = min(100, progress + step)
            if fail_at is not None and progress >= fail_at:
                logger.info("Simulated failure — item=%s progress=%d", item.id, progress)
                raise GenerationError(self._failure_message)
            await on_progress(stage_for_progress(mode, progress), progress)
        return self._result(item, mode)

    def _pick_failure_point(self) -> int | None:
        if self._failure_rate <= 0 or self._rng.random() >= self._failure_rate:
            return None
        return self._rng.randint(20, 90)

    def _result(self, item: WorkItem, mode: PipelineMode) -> GenerationResult:
        token = f"{item.id}-v{item.version}-{self._rng.randrange(16**6):06x}"
        result = GenerationResult()
        if mode in (PipelineMode.SCRIPT_ONLY, PipelineMode.FULL):
            source = item.primary_source_file
            source_name = source.name if source else "교육 자료"
            result.script = (
                f"# {item.title or '제목 없음'}\n\n"
                f"본 스크립트는 '{source_name}' 자료를 바탕으로 자동 생성되었습니다.\n"
                "1. 학습 목표 소개\n2. 핵심 내용 설명\n3. 요약 및 퀴즈 안내\n"
            )
        if mode in (PipelineMode.VIDEO_ONLY, PipelineMode.FULL):
            result.video_url = f"https://media.example.invalid/videos/{token}.mp4"
            result.thumbnail_url = f"https://media.example.invalid/thumbnails/{token}.jpg"
        return result
