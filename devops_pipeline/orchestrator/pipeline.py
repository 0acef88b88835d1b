"""
Pipeline: 배포 파이프라인 오케스트레이터

fetch → build → push → deploy(설정 순서)를 순차 실행하고
첫 번째 실패(또는 취소)에서 중단하여 단일 최종 결과를 반환
"""
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from devops_pipeline.core.exceptions import (
    ConfigValidationError,
    PipelineCancelledError,
    PipelineStageError,
    PipelineStateError,
)
from devops_pipeline.core.interfaces import (
    BuildContext,
    ClusterDeployer,
    ImageBuilder,
    SourceFetcher,
    SourceTree,
    Stage,
)
from devops_pipeline.core.logger import get_logger
from devops_pipeline.core.pipeline_config import DeploymentSpec, PipelineConfig
from devops_pipeline.orchestrator.stage_runner import StageResult, StageRunner, StageStatus


class RunState(Enum):
    """실행 상태"""
    PENDING = "pending"
    FETCHING = "fetching"
    BUILDING = "building"
    PUBLISHING = "publishing"
    DEPLOYING = "deploying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.SUCCEEDED, RunState.FAILED)


# 허용 전이 (FAILED는 모든 비종료 상태에서 가능)
TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.PENDING: {RunState.FETCHING},
    RunState.FETCHING: {RunState.BUILDING},
    RunState.BUILDING: {RunState.PUBLISHING},
    RunState.PUBLISHING: {RunState.DEPLOYING, RunState.SUCCEEDED},
    RunState.DEPLOYING: {RunState.DEPLOYING, RunState.SUCCEEDED},
    RunState.SUCCEEDED: set(),
    RunState.FAILED: set(),
}

STAGE_STATES: dict[Stage, RunState] = {
    Stage.FETCH: RunState.FETCHING,
    Stage.BUILD: RunState.BUILDING,
    Stage.PUSH: RunState.PUBLISHING,
    Stage.DEPLOY: RunState.DEPLOYING,
}


class CancellationToken:
    """
    외부 취소 신호 (스레드 안전)

    사용법:
        token = CancellationToken()
        signal.signal(signal.SIGINT, lambda *_: token.cancel("SIGINT"))
        result = orchestrator.run(cancel_token=token)
    """

    def __init__(self):
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason


@dataclass
class PipelineEvent:
    """오케스트레이터가 발생시키는 구조화된 이벤트"""
    kind: str  # state / stage_started / stage_succeeded / stage_failed / cancelled
    state: RunState
    stage: Stage | None = None
    deployment_index: int | None = None
    deployment_name: str | None = None
    message: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "state": self.state.value,
            "stage": self.stage.value if self.stage else None,
            "deployment_index": self.deployment_index,
            "deployment_name": self.deployment_name,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class PipelineFailure:
    """실패 정보 (deployment_index/name은 deploy 실패에만 존재)"""
    stage: Stage
    message: str
    error: PipelineStageError
    deployment_index: int | None = None
    deployment_name: str | None = None
    cancelled: bool = False

    def to_dict(self) -> dict:
        data = {
            "stage": self.stage.value,
            "message": self.message,
            "cancelled": self.cancelled,
        }
        if self.stage == Stage.DEPLOY:
            data["deployment_index"] = self.deployment_index
            data["deployment_name"] = self.deployment_name
        return data


@dataclass
class PipelineResult:
    """파이프라인 최종 결과"""
    run_id: str
    state: RunState
    started_at: datetime
    completed_at: datetime | None = None
    stage_results: list[StageResult] = field(default_factory=list)
    events: list[PipelineEvent] = field(default_factory=list)
    deployed: list[str] = field(default_factory=list)
    failure: PipelineFailure | None = None

    @property
    def success(self) -> bool:
        return self.state == RunState.SUCCEEDED

    @property
    def duration_seconds(self) -> float:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    def get_stage(self, stage_name: str) -> StageResult | None:
        """특정 단계 결과 조회 (예: "push", "deploy[1]:worker")"""
        for stage in self.stage_results:
            if stage.stage_name == stage_name:
                return stage
        return None

    def raise_for_failure(self) -> None:
        """실패한 경우 단계 정보가 태깅된 원래 오류를 발생"""
        if self.failure is not None:
            raise self.failure.error

    def to_summary(self) -> dict:
        """요약 정보 반환"""
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "success": self.success,
            "duration": f"{self.duration_seconds:.1f}s",
            "stages": [s.to_dict() for s in self.stage_results],
            "deployed": list(self.deployed),
            "failure": self.failure.to_dict() if self.failure else None,
        }


class PipelineRun:
    """
    실행 1회의 상태 (실행마다 새로 생성, 실행 간 공유 없음)

    상태 전이 검증, 이벤트 기록, 중간 핸들(source tree / build context) 보관
    """

    def __init__(
        self,
        config: PipelineConfig,
        on_event: Callable[[PipelineEvent], Any] | None = None,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.run_id = str(uuid.uuid4())
        self.config = config
        self.state = RunState.PENDING
        self.deployment_index: int | None = None
        self.events: list[PipelineEvent] = []
        self.source_tree: SourceTree | None = None
        self.build_context: BuildContext | None = None
        self._on_event = on_event

    def transition(self, new_state: RunState, deployment_index: int | None = None) -> None:
        """
        상태 전이

        Raises:
            PipelineStateError: 종료 상태에서의 전이 또는 허용되지 않은 전이
        """
        if self.state.is_terminal:
            raise PipelineStateError(
                f"종료 상태에서는 전이할 수 없습니다: {self.state.value} -> {new_state.value}"
            )
        if new_state != RunState.FAILED and new_state not in TRANSITIONS[self.state]:
            raise PipelineStateError(
                f"허용되지 않은 상태 전이: {self.state.value} -> {new_state.value}"
            )

        self.state = new_state
        self.deployment_index = deployment_index
        self.emit("state", deployment_index=deployment_index)

    def emit(
        self,
        kind: str,
        stage: Stage | None = None,
        deployment_index: int | None = None,
        deployment_name: str | None = None,
        message: str = "",
    ) -> PipelineEvent:
        """이벤트 기록 및 리스너 전달"""
        event = PipelineEvent(
            kind=kind,
            state=self.state,
            stage=stage,
            deployment_index=deployment_index,
            deployment_name=deployment_name,
            message=message,
        )
        self.events.append(event)

        if self._on_event is not None:
            try:
                self._on_event(event)
            except Exception as e:
                # 표시 계층 오류가 실행 결과를 바꾸지 않도록 기록만 함
                self.logger.warning(f"이벤트 리스너 오류 ({kind}): {e}")

        return event


class PipelineOrchestrator:
    """
    배포 파이프라인 오케스트레이터

    사용법:
        orchestrator = PipelineOrchestrator(
            config=PipelineConfig.from_dict(record),
            fetcher=GitSourceFetcher(),
            builder=DockerImageBuilder(),
            deployer=KubernetesDeployer(cluster_endpoint),
        )

        result = orchestrator.run()
        if not result.success:
            print(result.failure.to_dict())

        # 예외 기반으로 처리하려면
        result.raise_for_failure()
    """

    def __init__(
        self,
        config: PipelineConfig,
        fetcher: SourceFetcher,
        builder: ImageBuilder,
        deployer: ClusterDeployer,
        on_event: Callable[[PipelineEvent], Any] | None = None,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.config = config
        self.fetcher = fetcher
        self.builder = builder
        self.deployer = deployer
        self.on_event = on_event
        self.runner = StageRunner()

    def _plan(self) -> list[tuple[Stage, int | None, DeploymentSpec | None]]:
        """실행 순서: fetch, build, push, deploy(설정 순서)"""
        plan: list[tuple[Stage, int | None, DeploymentSpec | None]] = [
            (Stage.FETCH, None, None),
            (Stage.BUILD, None, None),
            (Stage.PUSH, None, None),
        ]
        for index, spec in enumerate(self.config.deployment_specs):
            plan.append((Stage.DEPLOY, index, spec))
        return plan

    def run(self, cancel_token: CancellationToken | None = None) -> PipelineResult:
        """
        파이프라인 1회 실행

        호출할 때마다 새 실행이 시작됨 (이전 실행 결과와 무관하게 전 단계 재실행)

        Args:
            cancel_token: 외부 취소 신호 (각 단계 호출 전에 확인)

        Returns:
            PipelineResult (SUCCEEDED 또는 FAILED)

        Raises:
            ConfigValidationError: 설정 검증 실패 (외부 호출 전)
        """
        run = PipelineRun(self.config, on_event=self.on_event)

        try:
            self.config.validate()
        except ConfigValidationError as e:
            self.logger.error(f"설정 검증 실패: {e}")
            run.transition(RunState.FAILED)
            raise

        result = PipelineResult(
            run_id=run.run_id,
            state=run.state,
            started_at=datetime.now(),
        )

        self.logger.info("=" * 50)
        self.logger.info(
            f"파이프라인 시작: {self.config.repository}@{self.config.resolved_revision} "
            f"-> {self.config.image_name} (배포 {len(self.config.deployment_specs)}개)"
        )
        self.logger.info("=" * 50)

        try:
            self._execute(run, result, cancel_token)
        finally:
            self._release(run)
            result.state = run.state
            result.events = list(run.events)
            result.completed_at = datetime.now()

        self.logger.info("=" * 50)
        if result.success:
            self.logger.info(f"파이프라인 완료: {result.duration_seconds:.1f}초")
        else:
            self.logger.error(f"파이프라인 실패: {result.failure.to_dict()}")
        self.logger.info("=" * 50)

        return result

    def _execute(
        self,
        run: PipelineRun,
        result: PipelineResult,
        cancel_token: CancellationToken | None,
    ) -> None:
        plan = self._plan()

        for position, (stage, index, spec) in enumerate(plan):
            name = spec.name if spec else None

            if cancel_token is not None and cancel_token.is_cancelled:
                self._cancel(run, result, stage, index, name, cancel_token.reason)
                self._skip(result, plan[position:])
                return

            run.transition(STAGE_STATES[stage], deployment_index=index)
            run.emit("stage_started", stage, index, name)

            stage_result = self._call(run, stage, index, spec)
            result.stage_results.append(stage_result)

            if stage_result.status == StageStatus.FAILED:
                if cancel_token is not None and cancel_token.is_cancelled:
                    # SIGINT는 자식 프로세스(git/docker)도 종료시키므로 단계 실패로 나타남
                    self._cancel(
                        run, result, stage, index, name, cancel_token.reason,
                        cause=stage_result.exception,
                    )
                else:
                    self._fail(run, result, stage_result.exception, stage, index, name)
                self._skip(result, plan[position + 1:])
                return

            run.emit("stage_succeeded", stage, index, name)
            if stage == Stage.DEPLOY:
                result.deployed.append(name)

        run.transition(RunState.SUCCEEDED)

    def _call(
        self,
        run: PipelineRun,
        stage: Stage,
        index: int | None,
        spec: DeploymentSpec | None,
    ) -> StageResult:
        """단계 클라이언트 호출 (동기)"""
        config = self.config

        if stage == Stage.FETCH:
            stage_result = self.runner.run_stage(
                stage, self.fetcher.fetch, config.repository, config.resolved_revision
            )
            if stage_result.status == StageStatus.SUCCESS:
                run.source_tree = stage_result.data

        elif stage == Stage.BUILD:
            stage_result = self.runner.run_stage(
                stage, self.builder.build, run.source_tree, config.image_name
            )
            if stage_result.status == StageStatus.SUCCESS:
                run.build_context = stage_result.data

        elif stage == Stage.PUSH:
            stage_result = self.runner.run_stage(
                stage, self.builder.push, run.build_context, config.image_name
            )

        else:
            stage_result = self.runner.run_stage(
                stage,
                self.deployer.deploy,
                spec.name,
                config.image_name,
                spec.replica_count,
                spec.container_port,
                deployment_index=index,
                deployment_name=spec.name,
            )

        return stage_result

    def _fail(
        self,
        run: PipelineRun,
        result: PipelineResult,
        error: PipelineStageError,
        stage: Stage,
        index: int | None,
        name: str | None,
        cancelled: bool = False,
    ) -> None:
        result.failure = PipelineFailure(
            stage=stage,
            message=error.message,
            error=error,
            deployment_index=index,
            deployment_name=name,
            cancelled=cancelled,
        )
        if not cancelled:
            run.emit("stage_failed", stage, index, name, message=error.message)
        run.transition(RunState.FAILED, deployment_index=index)

        if stage == Stage.DEPLOY and result.deployed:
            # 롤백하지 않음: 앞선 배포는 클러스터에 그대로 남는다
            self.logger.warning(f"이미 반영된 배포 유지: {result.deployed}")

    def _cancel(
        self,
        run: PipelineRun,
        result: PipelineResult,
        stage: Stage,
        index: int | None,
        name: str | None,
        reason: str,
        cause: PipelineStageError | None = None,
    ) -> None:
        """
        취소 처리

        cause가 없으면 단계 시작 전 취소, 있으면 실행 중 중단된 단계의 오류
        """
        message = f"취소됨: {reason}" if reason else "취소됨"
        if cause is None:
            error = PipelineCancelledError(message, {"next_stage": stage.value})
            self.logger.warning(f"[{stage.value}] 시작 전 취소 신호 감지 - 이후 단계 중단")
        else:
            error = PipelineCancelledError(
                message, {"interrupted_stage": stage.value, "cause": cause.message}
            )
            error.__cause__ = cause
            self.logger.warning(f"[{stage.value}] 실행 중 취소됨: {cause.message}")
        error.stage = stage

        run.emit("cancelled", stage, index, name, message=message)
        self._fail(run, result, error, stage, index, name, cancelled=True)

    def _skip(
        self,
        result: PipelineResult,
        remaining: list[tuple[Stage, int | None, DeploymentSpec | None]],
    ) -> None:
        """호출하지 않은 단계를 SKIPPED로 기록"""
        for stage, index, spec in remaining:
            result.stage_results.append(
                StageRunner.skipped(stage, index, spec.name if spec else None)
            )

    def _release(self, run: PipelineRun) -> None:
        """실행 종료 시 중간 핸들 정리 (실패해도 최종 결과는 유지)"""
        if run.build_context is not None:
            try:
                self.builder.release(run.build_context)
            except Exception as e:
                self.logger.warning(f"빌드 컨텍스트 정리 실패: {e}")
            run.build_context = None

        if run.source_tree is not None:
            try:
                self.fetcher.release(run.source_tree)
            except Exception as e:
                self.logger.warning(f"소스 트리 정리 실패: {e}")
            run.source_tree = None
