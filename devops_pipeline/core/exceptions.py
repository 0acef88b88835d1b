"""
커스텀 예외 클래스 정의

설정 검증, 단계별 실패, 실행 이력 저장에서 사용하는 표준화된 예외
"""
from typing import Any


class BaseError(Exception):
    """모든 커스텀 예외의 기본 클래스"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ============================================
# Configuration Errors
# ============================================
class ConfigError(BaseError):
    """설정 관련 오류"""
    pass


class ConfigNotFoundError(ConfigError):
    """설정 파일을 찾을 수 없음"""
    pass


class ConfigValidationError(ConfigError):
    """설정 값 유효성 검증 실패 (외부 호출 전에 발생)"""

    @property
    def errors(self) -> list[str]:
        return list(self.details.get("errors", []))


# ============================================
# Stage Errors
# ============================================
class PipelineStageError(BaseError):
    """
    단계 실행 오류의 기본 클래스

    stage 속성은 오케스트레이터가 실패한 단계로 채운다.
    """

    stage_name: str = ""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.stage = None


class FetchError(PipelineStageError):
    """소스 가져오기 실패 (저장소 접근 불가, 알 수 없는 리비전, I/O)"""
    stage_name = "fetch"


class BuildError(PipelineStageError):
    """이미지 빌드 실패"""
    stage_name = "build"


class PublishError(PipelineStageError):
    """이미지 푸시 실패 (레지스트리 거부, 네트워크)"""
    stage_name = "push"


class DeployError(PipelineStageError):
    """클러스터 배포 실패 (API 거부, 타임아웃, 충돌)"""
    stage_name = "deploy"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.deployment_index: int | None = None
        self.deployment_name: str | None = None


class PipelineCancelledError(PipelineStageError):
    """외부 취소 신호로 실행 중단"""
    stage_name = "cancelled"


# ============================================
# Run State Errors
# ============================================
class PipelineStateError(BaseError):
    """허용되지 않은 실행 상태 전이"""
    pass


# ============================================
# Database Errors
# ============================================
class DatabaseError(BaseError):
    """데이터베이스 관련 오류"""
    pass
