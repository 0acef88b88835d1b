"""
Core 모듈 - 공통 인프라

- config: 도구 설정 관리
- logger: 로깅 서비스
- database: 실행 이력 DB 관리
- exceptions: 커스텀 예외
- interfaces: 단계 클라이언트 인터페이스
- pipeline_config: 실행 설정 모델
- preflight: 사전 환경 검사
"""
from devops_pipeline.core.config import Config, get_config
from devops_pipeline.core.logger import get_logger, LoggerService, setup_logger_from_config
from devops_pipeline.core.database import DatabaseManager, get_database, init_database_from_config, Base
from devops_pipeline.core.exceptions import (
    BaseError,
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
    PipelineStageError,
    FetchError,
    BuildError,
    PublishError,
    DeployError,
    PipelineCancelledError,
    PipelineStateError,
    DatabaseError,
)
from devops_pipeline.core.interfaces import (
    Stage,
    STAGE_ERRORS,
    SourceTree,
    BuildContext,
    SourceFetcher,
    ImageBuilder,
    ClusterDeployer,
)
from devops_pipeline.core.pipeline_config import (
    DeploymentSpec,
    PipelineConfig,
    load_pipeline_config,
)
from devops_pipeline.core.preflight import PreflightChecker, PreflightResult

__all__ = [
    # Config
    "Config",
    "get_config",
    # Logger
    "get_logger",
    "LoggerService",
    "setup_logger_from_config",
    # Database
    "DatabaseManager",
    "get_database",
    "init_database_from_config",
    "Base",
    # Exceptions
    "BaseError",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "PipelineStageError",
    "FetchError",
    "BuildError",
    "PublishError",
    "DeployError",
    "PipelineCancelledError",
    "PipelineStateError",
    "DatabaseError",
    # Interfaces
    "Stage",
    "STAGE_ERRORS",
    "SourceTree",
    "BuildContext",
    "SourceFetcher",
    "ImageBuilder",
    "ClusterDeployer",
    # Pipeline config
    "DeploymentSpec",
    "PipelineConfig",
    "load_pipeline_config",
    # Preflight
    "PreflightChecker",
    "PreflightResult",
]
