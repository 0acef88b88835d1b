"""
Stage Runner: 개별 단계 실행기

단계 클라이언트 호출 1회를 실행하고 결과를 StageResult로 반환
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from devops_pipeline.core.exceptions import DeployError, PipelineStageError
from devops_pipeline.core.interfaces import STAGE_ERRORS, Stage
from devops_pipeline.core.logger import get_logger


class StageStatus(Enum):
    """단계 상태"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


def stage_label(stage: Stage, deployment_index: int | None = None, deployment_name: str | None = None) -> str:
    """로그/결과 표시용 단계 이름 (예: "deploy[0]:api")"""
    if deployment_index is None:
        return stage.value
    return f"{stage.value}[{deployment_index}]:{deployment_name}"


@dataclass
class StageResult:
    """단계 실행 결과"""
    stage_name: str
    status: StageStatus
    stage: Stage | None = None
    deployment_index: int | None = None
    data: Any = None
    error: str | None = None
    exception: PipelineStageError | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        """실행 시간 (초)"""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    def to_dict(self) -> dict:
        return {
            "stage": self.stage_name,
            "status": self.status.value,
            "duration": f"{self.duration_seconds:.1f}s",
            "error": self.error,
        }


def normalize_stage_error(
    stage: Stage,
    error: Exception,
    deployment_index: int | None = None,
    deployment_name: str | None = None,
) -> PipelineStageError:
    """
    협력자 예외를 단계 오류로 정규화하고 단계 정보를 태깅

    이미 해당 단계의 오류 클래스면 그대로 사용, 아니면 감싼다 (원본은 __cause__)
    """
    error_cls = STAGE_ERRORS[stage]

    if isinstance(error, error_cls):
        stage_error = error
    else:
        message = error.message if isinstance(error, PipelineStageError) else str(error)
        stage_error = error_cls(
            message or error.__class__.__name__,
            {"cause": error.__class__.__name__},
        )
        stage_error.__cause__ = error

    stage_error.stage = stage
    if isinstance(stage_error, DeployError):
        stage_error.deployment_index = deployment_index
        stage_error.deployment_name = deployment_name

    return stage_error


class StageRunner:
    """
    개별 단계 실행기

    협력자 호출을 감싸 예외를 단계 오류로 변환 (재시도 없음)

    사용법:
        runner = StageRunner()
        result = runner.run_stage(Stage.FETCH, fetcher.fetch, "repo", "main")

        if result.status == StageStatus.FAILED:
            raise result.exception
    """

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def run_stage(
        self,
        stage: Stage,
        func: Callable[..., Any],
        *args,
        deployment_index: int | None = None,
        deployment_name: str | None = None,
        **kwargs,
    ) -> StageResult:
        """공통 단계 실행 래퍼"""
        name = stage_label(stage, deployment_index, deployment_name)
        result = StageResult(
            stage_name=name,
            status=StageStatus.RUNNING,
            stage=stage,
            deployment_index=deployment_index,
            started_at=datetime.now(),
        )

        self.logger.info(f"[{name}] 시작")

        try:
            result.data = func(*args, **kwargs)
            result.status = StageStatus.SUCCESS
            self.logger.info(f"[{name}] 완료")

        except Exception as e:
            stage_error = normalize_stage_error(stage, e, deployment_index, deployment_name)
            result.status = StageStatus.FAILED
            result.error = stage_error.message
            result.exception = stage_error
            self.logger.error(f"[{name}] 실패: {stage_error}")

        result.completed_at = datetime.now()
        return result

    @staticmethod
    def skipped(
        stage: Stage,
        deployment_index: int | None = None,
        deployment_name: str | None = None,
    ) -> StageResult:
        """실행하지 않은 단계 기록"""
        return StageResult(
            stage_name=stage_label(stage, deployment_index, deployment_name),
            status=StageStatus.SKIPPED,
            stage=stage,
            deployment_index=deployment_index,
        )
