"""
Orchestrator: 배포 파이프라인 조율

fetch → build → push → deploy 를 순차적으로 실행하고 단일 최종 결과를 반환
"""
from devops_pipeline.orchestrator.stage_runner import StageRunner, StageResult, StageStatus
from devops_pipeline.orchestrator.pipeline import (
    CancellationToken,
    PipelineEvent,
    PipelineFailure,
    PipelineOrchestrator,
    PipelineResult,
    PipelineRun,
    RunState,
)
from devops_pipeline.orchestrator.run_history import RunHistoryService

__all__ = [
    "StageRunner",
    "StageResult",
    "StageStatus",
    "CancellationToken",
    "PipelineEvent",
    "PipelineFailure",
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineRun",
    "RunState",
    "RunHistoryService",
]
