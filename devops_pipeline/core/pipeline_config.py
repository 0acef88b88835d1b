"""
파이프라인 실행 설정 모델

한 번의 실행을 기술하는 불변 레코드 (소스 위치, 이미지 이름, 배포 목록)
"""
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from devops_pipeline.core.exceptions import (
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
)


MIN_PORT = 1
MAX_PORT = 65535

# Deployment 이름: RFC 1123 서브도메인 (소문자, 숫자, "-", ".")
MAX_NAME_LENGTH = 253
NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


def _is_int(value: Any) -> bool:
    """bool을 제외한 정수 여부"""
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class DeploymentSpec:
    """배포 대상 워크로드"""
    name: str
    replica_count: int
    container_port: int

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "replica_count": self.replica_count,
            "container_port": self.container_port,
        }


@dataclass(frozen=True)
class PipelineConfig:
    """
    파이프라인 실행 설정

    사용법:
        config = PipelineConfig(
            source_location="https://git.example.com/svc.git",
            revision="main",
            image_name="registry.example.com/svc:1",
            cluster_endpoint="https://k8s.example.com",
            deployment_specs=(DeploymentSpec("svc", 3, 8080),),
        )
        config.validate()

        # 리비전을 위치에 함께 적을 수도 있음
        config = PipelineConfig(source_location="repo@main", image_name="svc:1")
        config.resolved_revision  # "main"
    """
    source_location: str
    image_name: str
    revision: str = ""
    cluster_endpoint: str = ""
    deployment_specs: tuple[DeploymentSpec, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # list로 넘어와도 불변 tuple로 고정
        if not isinstance(self.deployment_specs, tuple):
            object.__setattr__(self, "deployment_specs", tuple(self.deployment_specs))

    # ========== 리비전 해석 ==========

    def _split_inline_revision(self) -> tuple[str, str]:
        """'<위치>@<리비전>' 형식 분리 (git@host:org/repo.git 은 분리하지 않음)"""
        location = self.source_location or ""
        head, sep, tail = location.rpartition("@")
        if sep and head and tail and "/" not in tail and ":" not in tail:
            return head, tail
        return location, ""

    @property
    def repository(self) -> str:
        """리비전을 제외한 소스 위치"""
        return self._split_inline_revision()[0]

    @property
    def resolved_revision(self) -> str:
        """명시 리비전 > 위치에 포함된 리비전"""
        return self.revision or self._split_inline_revision()[1]

    # ========== 검증 ==========

    def validate(self) -> None:
        """
        설정 유효성 검증 (부수 효과 없음)

        Raises:
            ConfigValidationError: 하나 이상의 불변 조건 위반 (details["errors"]에 전체 목록)
        """
        errors: list[str] = []

        if not self.source_location or not self.repository.strip():
            errors.append("source_location이 비어 있습니다")
        elif not self.resolved_revision.strip():
            errors.append("리비전이 지정되지 않았습니다 (revision 또는 '<location>@<revision>')")

        if not self.image_name or not self.image_name.strip():
            errors.append("image_name이 비어 있습니다")

        if self.deployment_specs and not (self.cluster_endpoint or "").strip():
            errors.append("배포 대상이 있으면 cluster_endpoint가 필요합니다")

        seen: set[str] = set()
        for i, spec in enumerate(self.deployment_specs):
            label = f"deployment_specs[{i}]"

            if not spec.name or not str(spec.name).strip():
                errors.append(f"{label}: name이 비어 있습니다")
            elif (
                not isinstance(spec.name, str)
                or len(spec.name) > MAX_NAME_LENGTH
                or not NAME_PATTERN.match(spec.name)
            ):
                errors.append(
                    f"{label}: name은 소문자/숫자/'-'/'.'로 된 DNS 이름이어야 합니다 ({spec.name!r})"
                )
            elif spec.name in seen:
                errors.append(f"{label}: 중복된 name '{spec.name}'")
            else:
                seen.add(spec.name)

            if spec.replica_count is None:
                errors.append(f"{label}: replica_count가 지정되지 않았습니다")
            elif not _is_int(spec.replica_count) or spec.replica_count < 0:
                errors.append(
                    f"{label}: replica_count는 0 이상의 정수여야 합니다 ({spec.replica_count!r})"
                )

            if spec.container_port is None:
                errors.append(f"{label}: container_port가 지정되지 않았습니다")
            elif not _is_int(spec.container_port) or not (MIN_PORT <= spec.container_port <= MAX_PORT):
                errors.append(
                    f"{label}: container_port는 {MIN_PORT}~{MAX_PORT} 범위여야 합니다 ({spec.container_port!r})"
                )

        if errors:
            raise ConfigValidationError(
                f"파이프라인 설정 검증 실패 ({len(errors)}건)",
                {"errors": errors},
            )

    # ========== 변환 ==========

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PipelineConfig":
        """
        딕셔너리에서 설정 생성

        평면 스키마와 기존 중첩 스키마(git_repo_url / docker_image / kubernetes.*)를 모두 지원

        Args:
            data: 설정 레코드

        Returns:
            PipelineConfig (검증은 하지 않음)
        """
        if not isinstance(data, Mapping):
            raise ConfigValidationError(
                "파이프라인 설정은 매핑이어야 합니다",
                {"type": type(data).__name__},
            )

        kubernetes = data.get("kubernetes") or {}
        if not isinstance(kubernetes, Mapping):
            raise ConfigValidationError("kubernetes 섹션은 매핑이어야 합니다")

        raw_specs = (
            data.get("deployment_specs")
            or data.get("deployments")
            or kubernetes.get("deployments")
            or []
        )
        if not isinstance(raw_specs, (list, tuple)):
            raise ConfigValidationError("deployments는 목록이어야 합니다")

        specs = []
        for i, item in enumerate(raw_specs):
            if not isinstance(item, Mapping):
                raise ConfigValidationError(f"deployments[{i}]는 매핑이어야 합니다")
            specs.append(
                DeploymentSpec(
                    name=item.get("name", ""),
                    replica_count=item.get("replica_count", item.get("replicas")),
                    container_port=item.get("container_port", item.get("port")),
                )
            )

        return cls(
            source_location=data.get("source_location") or data.get("git_repo_url") or "",
            revision=data.get("revision") or data.get("git_branch") or "",
            image_name=data.get("image_name") or data.get("docker_image") or "",
            cluster_endpoint=(
                data.get("cluster_endpoint") or kubernetes.get("cluster_url") or ""
            ),
            deployment_specs=tuple(specs),
        )

    def to_dict(self) -> dict:
        return {
            "source_location": self.source_location,
            "revision": self.revision,
            "image_name": self.image_name,
            "cluster_endpoint": self.cluster_endpoint,
            "deployments": [spec.to_dict() for spec in self.deployment_specs],
        }


def load_pipeline_config(path: str | Path) -> PipelineConfig:
    """
    YAML/JSON 파일에서 실행 설정 로드

    Raises:
        ConfigNotFoundError: 파일 없음
        ConfigError: YAML 파싱 오류
    """
    path = Path(path)
    if not path.exists():
        raise ConfigNotFoundError(f"파이프라인 설정 파일을 찾을 수 없습니다: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML 파싱 오류: {path}", {"error": str(e)})

    return PipelineConfig.from_dict(data)
