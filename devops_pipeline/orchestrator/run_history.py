"""
실행 이력 DB 저장 서비스

파이프라인 최종 결과와 배포 대상별 상태(applied / failed / cancelled / not_attempted)를 저장하고 조회
"""
from sqlalchemy import select

from devops_pipeline.core.database import DatabaseManager, get_database
from devops_pipeline.core.interfaces import Stage
from devops_pipeline.core.logger import get_logger
from devops_pipeline.core.models import DeploymentRecordModel, PipelineRunModel
from devops_pipeline.core.pipeline_config import PipelineConfig
from devops_pipeline.orchestrator.pipeline import PipelineResult
from devops_pipeline.orchestrator.stage_runner import StageStatus


class RunHistoryService:
    """
    실행 이력 저장 서비스

    사용법:
        service = RunHistoryService()

        # 실행 결과 저장
        service.save_result(config, result)

        # 최근 실행 조회
        runs = service.get_recent_runs(limit=10)

        # 남은 배포만 다시 시도할지 판단
        run = service.get_run(result.run_id)
        pending = [d["name"] for d in run["deployments"] if d["status"] != "applied"]
    """

    def __init__(self, db: DatabaseManager | None = None):
        self.db = db or get_database()
        self.logger = get_logger(self.__class__.__name__)
        self.db.create_all_tables()

    @staticmethod
    def deployment_statuses(config: PipelineConfig, result: PipelineResult) -> list[str]:
        """설정 순서대로 배포 대상별 상태 계산"""
        failure = result.failure
        attempted = {
            s.deployment_index
            for s in result.stage_results
            if s.stage == Stage.DEPLOY and s.status == StageStatus.FAILED
        }
        statuses = []
        for index, spec in enumerate(config.deployment_specs):
            if spec.name in result.deployed:
                statuses.append("applied")
            elif (
                failure is not None
                and failure.stage == Stage.DEPLOY
                and failure.deployment_index == index
            ):
                if not failure.cancelled:
                    statuses.append("failed")
                elif index in attempted:
                    # 호출 도중 취소: 일부 반영되었을 수 있음
                    statuses.append("cancelled")
                else:
                    statuses.append("not_attempted")
            else:
                statuses.append("not_attempted")
        return statuses

    def save_result(self, config: PipelineConfig, result: PipelineResult) -> int:
        """
        실행 결과 저장

        Returns:
            저장된 PipelineRun ID
        """
        failure = result.failure
        statuses = self.deployment_statuses(config, result)

        with self.db.session() as session:
            run = PipelineRunModel(
                run_id=result.run_id,
                source_location=config.repository,
                revision=config.resolved_revision,
                image_name=config.image_name,
                cluster_endpoint=config.cluster_endpoint,
                status=result.state.value,
                failed_stage=failure.stage.value if failure else "",
                failed_deployment_index=failure.deployment_index if failure else None,
                error_message=failure.message if failure else "",
                cancelled=failure.cancelled if failure else False,
                started_at=result.started_at,
                completed_at=result.completed_at,
                duration_seconds=result.duration_seconds,
            )
            for position, (spec, status) in enumerate(zip(config.deployment_specs, statuses)):
                run.deployments.append(
                    DeploymentRecordModel(
                        position=position,
                        name=spec.name,
                        replica_count=spec.replica_count,
                        container_port=spec.container_port,
                        status=status,
                    )
                )

            session.add(run)
            session.flush()
            run_pk = run.id

        self.logger.info(f"실행 이력 저장 완료: ID={run_pk} ({result.state.value})")
        return run_pk

    def get_recent_runs(self, limit: int = 20) -> list[dict]:
        """최근 실행 목록 (최신순)"""
        with self.db.session() as session:
            runs = session.execute(
                select(PipelineRunModel)
                .order_by(PipelineRunModel.started_at.desc(), PipelineRunModel.id.desc())
                .limit(limit)
            ).scalars().all()
            return [self._to_dict(run) for run in runs]

    def get_run(self, run_id: str) -> dict | None:
        """run_id로 실행 조회"""
        with self.db.session() as session:
            run = session.execute(
                select(PipelineRunModel).where(PipelineRunModel.run_id == run_id)
            ).scalar_one_or_none()
            return self._to_dict(run) if run else None

    @staticmethod
    def _to_dict(run: PipelineRunModel) -> dict:
        return {
            "id": run.id,
            "run_id": run.run_id,
            "source_location": run.source_location,
            "revision": run.revision,
            "image_name": run.image_name,
            "cluster_endpoint": run.cluster_endpoint,
            "status": run.status,
            "failed_stage": run.failed_stage or None,
            "failed_deployment_index": run.failed_deployment_index,
            "error_message": run.error_message,
            "cancelled": run.cancelled,
            "started_at": run.started_at,
            "completed_at": run.completed_at,
            "duration_seconds": run.duration_seconds,
            "deployments": [
                {
                    "position": d.position,
                    "name": d.name,
                    "replica_count": d.replica_count,
                    "container_port": d.container_port,
                    "status": d.status,
                }
                for d in run.deployments
            ],
        }
