"""
데이터베이스 모델 정의

파이프라인 실행 이력 ORM 모델
"""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from devops_pipeline.core.database import Base


# ============================================
# 실행 이력 모델
# ============================================
class PipelineRunModel(Base):
    """파이프라인 실행 1회 기록"""
    __tablename__ = "pipeline_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(36), nullable=False, unique=True)

    # 실행 설정
    source_location = Column(String(500), nullable=False)
    revision = Column(String(200), default="")
    image_name = Column(String(300), nullable=False)
    cluster_endpoint = Column(String(300), default="")

    # 최종 결과
    status = Column(String(20), nullable=False)  # succeeded / failed
    failed_stage = Column(String(20), default="")  # fetch / build / push / deploy
    failed_deployment_index = Column(Integer, nullable=True)
    error_message = Column(Text, default="")
    cancelled = Column(Boolean, default=False)

    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, default=0.0)
    created_at = Column(DateTime, default=datetime.now)

    deployments = relationship(
        "DeploymentRecordModel",
        back_populates="run",
        order_by="DeploymentRecordModel.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_pipeline_runs_started_at", "started_at"),
    )

    def __repr__(self):
        return f"<PipelineRun {self.run_id}: {self.status}>"


class DeploymentRecordModel(Base):
    """실행별 배포 대상 상태"""
    __tablename__ = "deployment_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_pk = Column(Integer, ForeignKey("pipeline_runs.id"), nullable=False)
    position = Column(Integer, nullable=False)  # 설정 순서

    name = Column(String(253), nullable=False)
    replica_count = Column(Integer, nullable=False)
    container_port = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)  # applied / failed / cancelled / not_attempted

    run = relationship("PipelineRunModel", back_populates="deployments")

    def __repr__(self):
        return f"<DeploymentRecord {self.name}: {self.status}>"
