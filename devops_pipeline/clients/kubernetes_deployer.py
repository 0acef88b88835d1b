"""
Kubernetes 배포 클라이언트

클러스터 REST API에 Deployment 매니페스트를 server-side apply
"""
import json

import requests

from devops_pipeline.core.exceptions import DeployError
from devops_pipeline.core.interfaces import ClusterDeployer
from devops_pipeline.core.logger import get_logger


class KubernetesDeployer(ClusterDeployer):
    """
    Kubernetes 배포 클라이언트

    사용법:
        deployer = KubernetesDeployer(
            cluster_endpoint="https://k8s.example.com:6443",
            token=os.getenv("PIPELINE_CLIENTS_KUBERNETES_TOKEN"),
            namespace="apps",
        )
        deployer.deploy("api", "registry.example.com/api:1", 3, 8080)
    """

    APPLY_CONTENT_TYPE = "application/apply-patch+yaml"

    def __init__(
        self,
        cluster_endpoint: str,
        token: str | None = None,
        namespace: str = "default",
        timeout: float = 30,
        verify: bool | str = True,
        field_manager: str = "devops-pipeline",
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.cluster_endpoint = cluster_endpoint.rstrip("/")
        self.namespace = namespace
        self.timeout = timeout
        self.field_manager = field_manager

        self.session = requests.Session()
        self.session.verify = verify
        self.session.headers["Accept"] = "application/json"
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def deployment_url(self, name: str) -> str:
        # 경로 세그먼트로 들어가므로 "/" 등은 인코딩
        namespace = requests.utils.quote(self.namespace, safe="")
        name = requests.utils.quote(name, safe="")
        return f"{self.cluster_endpoint}/apis/apps/v1/namespaces/{namespace}/deployments/{name}"

    def build_manifest(
        self,
        name: str,
        image_name: str,
        replica_count: int,
        container_port: int,
    ) -> dict:
        """apps/v1 Deployment 매니페스트 생성"""
        labels = {"app": name}
        return {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {
                "name": name,
                "namespace": self.namespace,
                "labels": labels,
            },
            "spec": {
                "replicas": replica_count,
                "selector": {"matchLabels": labels},
                "template": {
                    "metadata": {"labels": labels},
                    "spec": {
                        "containers": [
                            {
                                "name": name,
                                "image": image_name,
                                "ports": [{"containerPort": container_port}],
                            }
                        ]
                    },
                },
            },
        }

    def deploy(
        self,
        name: str,
        image_name: str,
        replica_count: int,
        container_port: int,
    ) -> None:
        """
        Deployment 반영 (없으면 생성, 있으면 갱신)

        Raises:
            DeployError: API 거부, 충돌(409), 타임아웃, 연결 실패
        """
        manifest = self.build_manifest(name, image_name, replica_count, container_port)
        self.logger.info(
            f"apply: {self.namespace}/{name} image={image_name} "
            f"replicas={replica_count} port={container_port}"
        )

        try:
            response = self.session.patch(
                self.deployment_url(name),
                params={"fieldManager": self.field_manager, "force": "true"},
                data=json.dumps(manifest),
                headers={"Content-Type": self.APPLY_CONTENT_TYPE},
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise DeployError(
                f"클러스터 API 타임아웃 ({self.timeout}초)",
                {"deployment": name},
            )
        except requests.RequestException as e:
            raise DeployError(f"클러스터 API 연결 실패: {e}", {"deployment": name})

        if response.status_code == 409:
            raise DeployError(
                f"충돌: {self._status_message(response)}",
                {"deployment": name, "status_code": 409},
            )
        if response.status_code >= 400:
            raise DeployError(
                self._status_message(response),
                {"deployment": name, "status_code": response.status_code},
            )

        self.logger.info(f"apply 완료: {self.namespace}/{name}")

    @staticmethod
    def _status_message(response: requests.Response) -> str:
        """Kubernetes Status 객체의 message 추출"""
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("message"):
            return body["message"]
        return f"HTTP {response.status_code}: {response.reason or response.text[:200]}"
