"""
기본 단계 클라이언트 생성

clients.* 설정 섹션으로 git/docker/kubernetes 클라이언트 구성
"""
import os
from typing import Any

from devops_pipeline.clients.docker_builder import DockerImageBuilder
from devops_pipeline.clients.git_fetcher import GitSourceFetcher
from devops_pipeline.clients.kubernetes_deployer import KubernetesDeployer


def create_stage_clients(
    cluster_endpoint: str,
    settings: dict[str, Any] | None = None,
) -> tuple[GitSourceFetcher, DockerImageBuilder, KubernetesDeployer]:
    """
    설정 기반 단계 클라이언트 생성

    Args:
        cluster_endpoint: 배포 대상 클러스터 API 주소
        settings: clients 섹션 (None이면 기본값)

    Returns:
        (fetcher, builder, deployer)
    """
    settings = settings or {}
    git = settings.get("git", {}) or {}
    docker = settings.get("docker", {}) or {}
    kubernetes = settings.get("kubernetes", {}) or {}

    fetcher = GitSourceFetcher(
        git_binary=git.get("binary", "git"),
        timeout=git.get("timeout", 300),
        work_root=git.get("workdir"),
    )
    builder = DockerImageBuilder(
        docker_binary=docker.get("binary", "docker"),
        build_timeout=docker.get("buildtimeout", 1800),
        push_timeout=docker.get("pushtimeout", 600),
        dockerfile=docker.get("dockerfile"),
    )
    deployer = KubernetesDeployer(
        cluster_endpoint=cluster_endpoint,
        # 토큰: 설정(환경 변수 오버라이드 포함) > KUBE_TOKEN
        token=kubernetes.get("token") or os.getenv("KUBE_TOKEN"),
        namespace=kubernetes.get("namespace", "default"),
        timeout=kubernetes.get("timeout", 30),
        verify=kubernetes.get("verify", True),
        field_manager=kubernetes.get("manager", "devops-pipeline"),
    )
    return fetcher, builder, deployer
