"""
Preflight Check 모듈

파이프라인 실행 전 외부 도구/클러스터 접근 확인
- git 실행 파일
- docker 실행 파일 및 데몬
- 클러스터 API (/version)
"""
import subprocess
from dataclasses import dataclass, field

import requests

from devops_pipeline.core.logger import get_logger


@dataclass
class PreflightResult:
    """Preflight 검사 결과"""
    passed: bool
    git: dict = field(default_factory=dict)
    docker: dict = field(default_factory=dict)
    cluster: dict = field(default_factory=dict)

    @property
    def git_ok(self) -> bool:
        return self.git.get("available", False)

    @property
    def docker_ok(self) -> bool:
        return self.docker.get("available", False)

    @property
    def cluster_ok(self) -> bool:
        return self.cluster.get("available", False)

    def get_failures(self) -> list[str]:
        """실패한 항목 목록 반환"""
        failures = []
        if not self.git_ok:
            failures.append(f"git: {self.git.get('error', 'Unknown')}")
        if not self.docker_ok:
            failures.append(f"docker: {self.docker.get('error', 'Unknown')}")
        if not self.cluster_ok:
            failures.append(f"cluster: {self.cluster.get('error', 'Unknown')}")
        return failures

    def summary(self) -> str:
        """결과 요약 문자열"""
        lines = [f"Preflight: {'PASSED' if self.passed else 'FAILED'}"]
        lines.append(f"  git: {'OK' if self.git_ok else 'FAIL'}")
        if self.git.get("version"):
            lines.append(f"    {self.git['version']}")
        lines.append(f"  docker: {'OK' if self.docker_ok else 'FAIL'}")
        if self.cluster.get("skipped"):
            lines.append("  cluster: SKIPPED (배포 대상 없음)")
        else:
            lines.append(f"  cluster: {'OK' if self.cluster_ok else 'FAIL'}")
            if self.cluster.get("version"):
                lines.append(f"    Kubernetes {self.cluster['version']}")
        return "\n".join(lines)


class PreflightChecker:
    """
    Preflight 검사기

    사용법:
        checker = PreflightChecker(token=os.getenv("PIPELINE_CLIENTS_KUBERNETES_TOKEN"))
        result = checker.run(cluster_endpoint="https://k8s.example.com")

        if not result.passed:
            print("Preflight 실패:", result.get_failures())
    """

    def __init__(
        self,
        git_binary: str = "git",
        docker_binary: str = "docker",
        timeout: float = 10.0,
        token: str | None = None,
        verify: bool = True,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.git_binary = git_binary
        self.docker_binary = docker_binary
        self.timeout = timeout
        self.token = token
        self.verify = verify

    def run(self, cluster_endpoint: str | None = None) -> PreflightResult:
        """
        Preflight 검사 실행

        Args:
            cluster_endpoint: 클러스터 API 주소 (없으면 클러스터 검사 생략)

        Returns:
            PreflightResult (하나라도 실패 시 passed=False)
        """
        self.logger.info("Preflight Check 시작")

        result = PreflightResult(
            passed=True,
            git={"available": False, "error": None, "version": None},
            docker={"available": False, "error": None, "version": None},
            cluster={"available": False, "error": None, "version": None, "skipped": False},
        )

        self._check_binary(result.git, [self.git_binary, "--version"], "[1/3] git")
        self._check_binary(
            result.docker,
            [self.docker_binary, "version", "--format", "{{.Server.Version}}"],
            "[2/3] docker",
        )
        self._check_cluster(result, cluster_endpoint)

        result.passed = result.git_ok and result.docker_ok and result.cluster_ok

        if result.passed:
            self.logger.info("Preflight Check 완료 - 모든 검사 통과")
        else:
            self.logger.warning("Preflight Check 실패")
            for failure in result.get_failures():
                self.logger.warning(f"  - {failure}")

        return result

    def _check_binary(self, entry: dict, args: list[str], label: str) -> None:
        """실행 파일 호출 가능 여부"""
        self.logger.info(f"{label} 확인...")
        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            entry["error"] = f"{args[0]} 실행 파일 없음"
            self.logger.warning(f"  ✗ {entry['error']}")
            return
        except subprocess.TimeoutExpired:
            entry["error"] = f"{args[0]} 응답 없음 ({self.timeout}초)"
            self.logger.warning(f"  ✗ {entry['error']}")
            return

        if completed.returncode != 0:
            entry["error"] = (completed.stderr or completed.stdout or "Unknown error").strip()
            self.logger.warning(f"  ✗ {label}: {entry['error']}")
            return

        entry["available"] = True
        entry["version"] = completed.stdout.strip()
        self.logger.info(f"  ✓ {entry['version']}")

    def _check_cluster(self, result: PreflightResult, cluster_endpoint: str | None) -> None:
        """클러스터 API /version 응답 확인"""
        if not cluster_endpoint:
            result.cluster["available"] = True
            result.cluster["skipped"] = True
            self.logger.info("[3/3] 클러스터 검사 생략 (배포 대상 없음)")
            return

        self.logger.info(f"[3/3] 클러스터 연결 확인: {cluster_endpoint}")
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = requests.get(
                f"{cluster_endpoint.rstrip('/')}/version",
                headers=headers,
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as e:
            result.cluster["error"] = f"연결 실패: {e}"
            self.logger.warning(f"  ✗ {result.cluster['error']}")
            return

        if response.status_code != 200:
            result.cluster["error"] = f"HTTP {response.status_code}"
            self.logger.warning(f"  ✗ 클러스터 응답 오류: {result.cluster['error']}")
            return

        try:
            version = response.json().get("gitVersion")
        except ValueError:
            version = None

        result.cluster["available"] = True
        result.cluster["version"] = version
        self.logger.info(f"  ✓ 클러스터 응답 정상 ({version or 'unknown'})")
