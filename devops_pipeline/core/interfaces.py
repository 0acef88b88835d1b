"""
핵심 인터페이스 정의

오케스트레이터가 의존하는 단계 클라이언트 인터페이스와 단계 간 전달 핸들
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from devops_pipeline.core.exceptions import (
    BuildError,
    DeployError,
    FetchError,
    PipelineStageError,
    PublishError,
)


# ============================================
# Enums
# ============================================
class Stage(Enum):
    """파이프라인 단계 (실행 순서대로)"""
    FETCH = "fetch"
    BUILD = "build"
    PUSH = "push"
    DEPLOY = "deploy"


# 단계별 오류 클래스
STAGE_ERRORS: dict[Stage, type[PipelineStageError]] = {
    Stage.FETCH: FetchError,
    Stage.BUILD: BuildError,
    Stage.PUSH: PublishError,
    Stage.DEPLOY: DeployError,
}


# ============================================
# Handles
# ============================================
@dataclass(frozen=True)
class SourceTree:
    """가져온 소스 트리 핸들 (fetch → build)"""
    path: str
    location: str
    revision: str
    commit: str | None = None


@dataclass(frozen=True)
class BuildContext:
    """빌드 결과 핸들 (build → push)"""
    image_name: str
    source: SourceTree
    image_id: str | None = None


# ============================================
# Abstract Interfaces
# ============================================
class SourceFetcher(ABC):
    """소스 저장소 클라이언트 인터페이스"""

    @abstractmethod
    def fetch(self, location: str, revision: str) -> SourceTree:
        """
        소스 트리 가져오기

        Raises:
            FetchError: 저장소 접근 불가, 알 수 없는 리비전, I/O 실패
        """
        pass

    def release(self, source_tree: SourceTree) -> None:
        """실행 종료 시 소스 트리 정리 (기본: 아무것도 안 함)"""
        pass


class ImageBuilder(ABC):
    """이미지 빌드/푸시 클라이언트 인터페이스"""

    @abstractmethod
    def build(self, source_tree: SourceTree, image_name: str) -> BuildContext:
        """
        이미지 빌드

        Raises:
            BuildError: 빌드 단계 실패
        """
        pass

    @abstractmethod
    def push(self, build_context: BuildContext, image_name: str) -> None:
        """
        이미지 레지스트리 푸시

        Raises:
            PublishError: 레지스트리 거부 또는 네트워크 실패
        """
        pass

    def release(self, build_context: BuildContext) -> None:
        """실행 종료 시 빌드 컨텍스트 정리 (기본: 아무것도 안 함)"""
        pass


class ClusterDeployer(ABC):
    """클러스터 배포 클라이언트 인터페이스"""

    @abstractmethod
    def deploy(
        self,
        name: str,
        image_name: str,
        replica_count: int,
        container_port: int,
    ) -> None:
        """
        워크로드 배포 반영

        Raises:
            DeployError: 클러스터 API 거부, 타임아웃, 충돌
        """
        pass
