"""
PipelineConfig 단위 테스트

검증 규칙, 리비전 해석, dict/파일 로드
"""
import json

import pytest

from devops_pipeline.core.exceptions import (
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
)
from devops_pipeline.core.pipeline_config import (
    DeploymentSpec,
    PipelineConfig,
    load_pipeline_config,
)


def valid_config(**overrides) -> PipelineConfig:
    values = {
        "source_location": "repo@main",
        "image_name": "svc:1",
        "cluster_endpoint": "https://cluster.local",
        "deployment_specs": (
            DeploymentSpec("a", 3, 8080),
            DeploymentSpec("b", 1, 9090),
        ),
    }
    values.update(overrides)
    return PipelineConfig(**values)


def validation_errors(config: PipelineConfig) -> list[str]:
    with pytest.raises(ConfigValidationError) as exc_info:
        config.validate()
    return exc_info.value.errors


class TestValidation:
    """validate() 테스트"""

    def test_valid_config_passes_unchanged(self):
        """유효한 설정은 그대로 통과"""
        config = valid_config()
        before = config.to_dict()

        config.validate()

        assert config.to_dict() == before

    def test_empty_source_location(self):
        """빈 source_location 거부"""
        errors = validation_errors(valid_config(source_location=""))
        assert any("source_location" in e for e in errors)

    def test_missing_revision(self):
        """리비전이 없으면 거부"""
        errors = validation_errors(valid_config(source_location="https://git.example.com/svc.git"))
        assert any("리비전" in e for e in errors)

    def test_explicit_revision(self):
        """명시 리비전이 있으면 통과"""
        valid_config(source_location="https://git.example.com/svc.git", revision="v1.2.0").validate()

    def test_empty_image_name(self):
        """빈 image_name 거부"""
        errors = validation_errors(valid_config(image_name=""))
        assert any("image_name" in e for e in errors)

    def test_blank_image_name(self):
        """공백뿐인 image_name 거부"""
        errors = validation_errors(valid_config(image_name="   "))
        assert any("image_name" in e for e in errors)

    def test_duplicate_deployment_names(self):
        """중복 배포 이름 거부"""
        config = valid_config(deployment_specs=(
            DeploymentSpec("a", 1, 8080),
            DeploymentSpec("a", 2, 8081),
        ))
        errors = validation_errors(config)
        assert any("중복" in e for e in errors)

    def test_empty_deployment_name(self):
        """빈 배포 이름 거부"""
        errors = validation_errors(valid_config(deployment_specs=(DeploymentSpec("", 1, 8080),)))
        assert any("name" in e for e in errors)

    @pytest.mark.parametrize("name", ["API", "my_worker", "a/b", "-api", "api-", "a" * 254])
    def test_invalid_deployment_name(self, name):
        """DNS 이름 형식이 아닌 배포 이름 거부"""
        errors = validation_errors(valid_config(deployment_specs=(DeploymentSpec(name, 1, 8080),)))
        assert len(errors) == 1
        assert "DNS" in errors[0]

    @pytest.mark.parametrize("name", ["api", "my-worker", "web.v2", "a1"])
    def test_valid_deployment_name(self, name):
        valid_config(deployment_specs=(DeploymentSpec(name, 1, 8080),)).validate()

    def test_negative_replica_count(self):
        """replica_count < 0 거부"""
        errors = validation_errors(valid_config(deployment_specs=(DeploymentSpec("a", -1, 8080),)))
        assert any("replica_count" in e for e in errors)

    def test_zero_replica_count_allowed(self):
        """replica_count = 0 허용"""
        valid_config(deployment_specs=(DeploymentSpec("a", 0, 8080),)).validate()

    @pytest.mark.parametrize("port", [0, -1, 65536, 100000])
    def test_port_out_of_range(self, port):
        """container_port 범위(1~65535) 밖이면 거부"""
        errors = validation_errors(valid_config(deployment_specs=(DeploymentSpec("a", 1, port),)))
        assert any("container_port" in e for e in errors)

    @pytest.mark.parametrize("port", [1, 65535])
    def test_port_boundaries(self, port):
        """포트 경계값 허용"""
        valid_config(deployment_specs=(DeploymentSpec("a", 1, port),)).validate()

    def test_non_integer_values(self):
        """정수가 아닌 값 거부 (bool 포함)"""
        errors = validation_errors(valid_config(deployment_specs=(
            DeploymentSpec("a", "3", 8080),
            DeploymentSpec("b", True, 8080.0),
        )))
        assert len(errors) == 3

    def test_cluster_endpoint_required_with_deployments(self):
        """배포 대상이 있으면 cluster_endpoint 필수"""
        errors = validation_errors(valid_config(cluster_endpoint=""))
        assert any("cluster_endpoint" in e for e in errors)

    def test_cluster_endpoint_optional_without_deployments(self):
        """배포 대상이 없으면 cluster_endpoint 불필요"""
        valid_config(cluster_endpoint="", deployment_specs=()).validate()

    def test_all_errors_reported(self):
        """위반 사항을 모두 보고"""
        config = PipelineConfig(
            source_location="",
            image_name="",
            deployment_specs=(DeploymentSpec("a", -1, 0),),
        )
        errors = validation_errors(config)
        assert len(errors) == 5


class TestRevision:
    """리비전 해석"""

    def test_inline_revision(self):
        config = PipelineConfig(source_location="repo@main", image_name="svc:1")
        assert config.repository == "repo"
        assert config.resolved_revision == "main"

    def test_explicit_revision_wins(self):
        config = PipelineConfig(source_location="repo@main", revision="release", image_name="svc:1")
        assert config.resolved_revision == "release"

    def test_scp_style_url_not_split(self):
        """git@host:org/repo.git 은 리비전으로 분리하지 않음"""
        config = PipelineConfig(source_location="git@github.com:org/repo.git", image_name="svc:1")
        assert config.repository == "git@github.com:org/repo.git"
        assert config.resolved_revision == ""

    def test_scp_style_url_with_revision(self):
        config = PipelineConfig(source_location="git@github.com:org/repo.git@v2", image_name="svc:1")
        assert config.repository == "git@github.com:org/repo.git"
        assert config.resolved_revision == "v2"


class TestImmutability:
    """불변성"""

    def test_frozen(self):
        config = valid_config()
        with pytest.raises(Exception):
            config.image_name = "other"

    def test_list_specs_become_tuple(self):
        config = valid_config(deployment_specs=[DeploymentSpec("a", 1, 8080)])
        assert isinstance(config.deployment_specs, tuple)


class TestFromDict:
    """from_dict / load_pipeline_config"""

    def test_flat_schema(self):
        config = PipelineConfig.from_dict({
            "source_location": "https://git.example.com/svc.git",
            "revision": "main",
            "image_name": "svc:1",
            "cluster_endpoint": "https://cluster.local",
            "deployments": [
                {"name": "a", "replica_count": 3, "container_port": 8080},
                {"name": "b", "replicas": 1, "container_port": 9090},
            ],
        })

        assert config.deployment_specs == (
            DeploymentSpec("a", 3, 8080),
            DeploymentSpec("b", 1, 9090),
        )
        config.validate()

    def test_legacy_nested_schema(self):
        """기존 도구의 중첩 스키마"""
        config = PipelineConfig.from_dict({
            "git_repo_url": "https://example.com/my-git-repo.git",
            "git_branch": "main",
            "docker_image": "my-docker-image",
            "kubernetes": {
                "cluster_url": "https://my-kubernetes-cluster.com",
                "deployments": [
                    {"name": "my-deployment", "replicas": 3, "container_port": 8080},
                ],
            },
        })

        assert config.source_location == "https://example.com/my-git-repo.git"
        assert config.resolved_revision == "main"
        assert config.image_name == "my-docker-image"
        assert config.cluster_endpoint == "https://my-kubernetes-cluster.com"
        assert config.deployment_specs[0] == DeploymentSpec("my-deployment", 3, 8080)

    def test_missing_replica_count_reported(self):
        """replica_count/replicas 키가 없으면 0으로 채우지 않고 검증 오류"""
        config = PipelineConfig.from_dict({
            "source_location": "repo@main",
            "image_name": "svc:1",
            "cluster_endpoint": "https://cluster.local",
            "deployments": [{"name": "a", "replicaCount": 3, "container_port": 8080}],
        })

        assert config.deployment_specs[0].replica_count is None
        errors = validation_errors(config)
        assert errors == ["deployment_specs[0]: replica_count가 지정되지 않았습니다"]

    def test_missing_container_port_reported(self):
        config = PipelineConfig.from_dict({
            "source_location": "repo@main",
            "image_name": "svc:1",
            "cluster_endpoint": "https://cluster.local",
            "deployments": [{"name": "a", "replicas": 1}],
        })

        errors = validation_errors(config)
        assert errors == ["deployment_specs[0]: container_port가 지정되지 않았습니다"]

    def test_not_a_mapping(self):
        with pytest.raises(ConfigValidationError):
            PipelineConfig.from_dict(["not", "a", "mapping"])

    def test_deployment_not_a_mapping(self):
        with pytest.raises(ConfigValidationError):
            PipelineConfig.from_dict({"deployments": ["a"]})

    def test_round_trip_through_to_dict(self):
        config = valid_config()
        assert PipelineConfig.from_dict(config.to_dict()) == config

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(
            "source_location: repo@main\n"
            "image_name: svc:1\n"
            "cluster_endpoint: https://cluster.local\n"
            "deployments:\n"
            "  - {name: a, replica_count: 3, container_port: 8080}\n",
            encoding="utf-8",
        )

        config = load_pipeline_config(path)

        assert config.resolved_revision == "main"
        assert config.deployment_specs == (DeploymentSpec("a", 3, 8080),)

    def test_load_json(self, tmp_path):
        path = tmp_path / "pipeline.json"
        path.write_text(json.dumps({"source_location": "repo@dev", "image_name": "svc:2"}), encoding="utf-8")

        config = load_pipeline_config(path)

        assert config.image_name == "svc:2"
        assert config.deployment_specs == ()

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigNotFoundError):
            load_pipeline_config(tmp_path / "missing.yaml")

    def test_load_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("source_location: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_pipeline_config(path)

    def test_example_file_is_valid(self):
        """저장소의 예시 설정 파일은 유효"""
        from pathlib import Path

        example = Path(__file__).parent.parent.parent / "config" / "pipeline.example.yaml"
        load_pipeline_config(example).validate()
