"""Generation pipeline — executor and pluggable backends."""

from edu_studio.pipeline.backend import (
    GenerationBackend,
    GenerationResult,
    SimulatedBackend,
)
from edu_studio.pipeline.executor import PipelineExecutor

__all__ = [
    "GenerationBackend",
    "GenerationResult",
    "PipelineExecutor",
    "SimulatedBackend",
]
