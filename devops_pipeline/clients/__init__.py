"""
Stage Clients

소스 저장소(git), 이미지 레지스트리(docker), 클러스터(Kubernetes) 클라이언트
"""
from devops_pipeline.clients.command import run_command
from devops_pipeline.clients.git_fetcher import GitSourceFetcher
from devops_pipeline.clients.docker_builder import DockerImageBuilder
from devops_pipeline.clients.kubernetes_deployer import KubernetesDeployer
from devops_pipeline.clients.factory import create_stage_clients

__all__ = [
    "run_command",
    "GitSourceFetcher",
    "DockerImageBuilder",
    "KubernetesDeployer",
    "create_stage_clients",
]
