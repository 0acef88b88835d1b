"""
E2E 통합 테스트: fetch → build → push → deploy 전체 연결

git/docker CLI(subprocess)와 클러스터 API(requests 세션)를 mock하고
실제 클라이언트 + 오케스트레이터 + CLI 흐름을 검증
"""
import json
import signal
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import pytest

from devops_pipeline.__main__ import (
    EXIT_CANCELLED,
    EXIT_CONFIG_ERROR,
    EXIT_STAGE_FAILED,
    EXIT_SUCCESS,
    main,
)
from devops_pipeline.clients import create_stage_clients
from devops_pipeline.core.config import Config
from devops_pipeline.core.database import DatabaseManager
from devops_pipeline.core.exceptions import DeployError
from devops_pipeline.core.interfaces import Stage
from devops_pipeline.core.pipeline_config import PipelineConfig
from devops_pipeline.orchestrator import PipelineOrchestrator, RunHistoryService, RunState


SUBPROCESS_RUN = "devops_pipeline.clients.command.subprocess.run"

SCENARIO = {
    "source_location": "https://example.com/my-git-repo.git",
    "revision": "main",
    "image_name": "my-docker-image",
    "cluster_endpoint": "https://my-kubernetes-cluster.com",
    "deployments": [
        {"name": "my-deployment", "replica_count": 3, "container_port": 8080},
        {"name": "my-worker", "replica_count": 1, "container_port": 9090},
    ],
}


def fake_cli(args, **kwargs):
    """git/docker 명령별 정상 응답"""
    if "rev-parse" in args:
        stdout = "0123456789abcdef0123456789abcdef01234567\n"
    elif "inspect" in args:
        stdout = "sha256:feedface\n"
    else:
        stdout = ""
    return subprocess.CompletedProcess(args=args, returncode=0, stdout=stdout, stderr="")


def make_clients(tmp_path, responses):
    fetcher, builder, deployer = create_stage_clients(
        SCENARIO["cluster_endpoint"],
        {"git": {"workdir": str(tmp_path)}},
    )
    deployer.session = MagicMock()
    deployer.session.patch.side_effect = responses
    return fetcher, builder, deployer


class TestPipelineE2E:
    """실제 클라이언트로 전체 단계 연결"""

    def test_full_pipeline_happy_path(self, tmp_path):
        """정상 시나리오: 모든 단계 성공, 설정 순서대로 배포"""
        config = PipelineConfig.from_dict(SCENARIO)
        fetcher, builder, deployer = make_clients(
            tmp_path, [Mock(status_code=200), Mock(status_code=201)]
        )

        with patch(SUBPROCESS_RUN, side_effect=fake_cli) as run:
            result = PipelineOrchestrator(config, fetcher, builder, deployer).run()

        assert result.state == RunState.SUCCEEDED
        assert result.deployed == ["my-deployment", "my-worker"]

        commands = [call[0][0][:2] for call in run.call_args_list]
        assert commands == [
            ["git", "clone"],
            ["git", "-C"],
            ["docker", "build"],
            ["docker", "image"],
            ["docker", "push"],
        ]

        urls = [call[0][0] for call in deployer.session.patch.call_args_list]
        assert urls[0].endswith("/deployments/my-deployment")
        assert urls[1].endswith("/deployments/my-worker")

        manifest = json.loads(deployer.session.patch.call_args_list[0][1]["data"])
        assert manifest["spec"]["replicas"] == 3
        assert manifest["spec"]["template"]["spec"]["containers"][0]["image"] == "my-docker-image"

        # clone 작업 디렉토리는 실행 종료 시 삭제
        assert list(tmp_path.iterdir()) == []

    def test_second_deployment_rejected(self, tmp_path):
        """두 번째 배포가 거부되면 첫 번째 배포만 반영된 채 실패"""
        config = PipelineConfig.from_dict(SCENARIO)
        rejected = Mock(status_code=403, reason="Forbidden")
        rejected.json.return_value = {"kind": "Status", "message": "exceeded quota: compute-resources"}
        fetcher, builder, deployer = make_clients(tmp_path, [Mock(status_code=200), rejected])

        with patch(SUBPROCESS_RUN, side_effect=fake_cli):
            result = PipelineOrchestrator(config, fetcher, builder, deployer).run()

        assert result.state == RunState.FAILED
        assert result.deployed == ["my-deployment"]
        assert result.failure.stage == Stage.DEPLOY
        assert result.failure.deployment_index == 1
        assert result.failure.message == "exceeded quota: compute-resources"
        assert isinstance(result.failure.error, DeployError)

    def test_push_rejected(self, tmp_path):
        """레지스트리 거부 시 배포 단계는 호출되지 않음"""
        config = PipelineConfig.from_dict(SCENARIO)
        fetcher, builder, deployer = make_clients(tmp_path, [])

        def cli(args, **kwargs):
            if "push" in args:
                return subprocess.CompletedProcess(
                    args=args, returncode=1, stdout="", stderr="denied: requested access to the resource is denied"
                )
            return fake_cli(args, **kwargs)

        with patch(SUBPROCESS_RUN, side_effect=cli):
            result = PipelineOrchestrator(config, fetcher, builder, deployer).run()

        assert result.failure.stage == Stage.PUSH
        assert "denied" in result.failure.message
        deployer.session.patch.assert_not_called()


@pytest.fixture
def cli_env(monkeypatch):
    """CLI 실행 환경 (기본 설정, 로거 초기화 생략)"""
    Config.reset()
    monkeypatch.delenv("PIPELINE_ENV", raising=False)
    with patch("devops_pipeline.__main__.setup_logger_from_config"):
        yield
    Config.reset()


def write_pipeline(tmp_path: Path, record: dict) -> str:
    path = tmp_path / "pipeline.json"
    path.write_text(json.dumps(record), encoding="utf-8")
    return str(path)


def run_cli(argv, clients, capsys):
    with patch("devops_pipeline.__main__.create_stage_clients", return_value=clients):
        code = main(argv + ["--skip-preflight", "--no-history", "--json"])
    return code, capsys.readouterr().out


class TestCli:
    """python -m devops_pipeline 흐름"""

    def test_success(self, tmp_path, capsys, cli_env):
        clients = (MagicMock(), MagicMock(), MagicMock())

        code, out = run_cli([write_pipeline(tmp_path, SCENARIO)], clients, capsys)

        summary = json.loads(out)
        assert code == EXIT_SUCCESS
        assert summary["state"] == "succeeded"
        assert summary["deployed"] == ["my-deployment", "my-worker"]

    def test_stage_failure(self, tmp_path, capsys, cli_env):
        deployer = MagicMock()
        deployer.deploy.side_effect = DeployError("quota exceeded")
        clients = (MagicMock(), MagicMock(), deployer)

        code, out = run_cli([write_pipeline(tmp_path, SCENARIO)], clients, capsys)

        summary = json.loads(out)
        assert code == EXIT_STAGE_FAILED
        assert summary["failure"]["stage"] == "deploy"
        assert summary["failure"]["deployment_index"] == 0
        assert summary["failure"]["message"] == "quota exceeded"
        assert deployer.deploy.call_count == 1

    def test_invalid_config(self, tmp_path, capsys, cli_env):
        record = dict(SCENARIO, image_name="")
        clients = (MagicMock(), MagicMock(), MagicMock())

        code, _ = run_cli([write_pipeline(tmp_path, record)], clients, capsys)

        assert code == EXIT_CONFIG_ERROR
        for client in clients:
            assert client.method_calls == []

    def test_missing_config_file(self, tmp_path, capsys, cli_env):
        code, _ = run_cli([str(tmp_path / "missing.yaml")], (MagicMock(),) * 3, capsys)
        assert code == EXIT_CONFIG_ERROR

    def test_sigint_cancels_run(self, tmp_path, capsys, cli_env):
        """배포 중 SIGINT → 남은 배포 중단, 종료 코드 130"""
        deployer = MagicMock()
        deployer.deploy.side_effect = lambda *args: signal.getsignal(signal.SIGINT)(signal.SIGINT, None)
        clients = (MagicMock(), MagicMock(), deployer)
        handler_before = signal.getsignal(signal.SIGINT)

        code, out = run_cli([write_pipeline(tmp_path, SCENARIO)], clients, capsys)

        summary = json.loads(out)
        assert code == EXIT_CANCELLED
        assert summary["failure"]["cancelled"] is True
        assert summary["failure"]["deployment_index"] == 1
        assert summary["deployed"] == ["my-deployment"]
        assert deployer.deploy.call_count == 1
        # 실행 후 기존 SIGINT 핸들러 복원
        assert signal.getsignal(signal.SIGINT) is handler_before


@pytest.fixture
def history_db(tmp_path):
    """임시 SQLite 이력 DB (설정보다 먼저 생성된 인스턴스 사용)"""
    DatabaseManager.reset()
    db = DatabaseManager(connection_string=f"sqlite:///{tmp_path / 'history.db'}")
    yield db
    DatabaseManager.reset()


class TestCliHistory:
    """실행 이력 저장이 켜진 CLI 흐름"""

    def run_with_history(self, tmp_path, clients):
        with patch("devops_pipeline.__main__.create_stage_clients", return_value=clients):
            return main([write_pipeline(tmp_path, SCENARIO), "--skip-preflight", "--json"])

    def test_history_records_deployment_statuses(self, tmp_path, capsys, cli_env, history_db):
        deployer = MagicMock()
        deployer.deploy.side_effect = [None, DeployError("quota exceeded")]
        clients = (MagicMock(), MagicMock(), deployer)

        code = self.run_with_history(tmp_path, clients)

        summary = json.loads(capsys.readouterr().out)
        run = RunHistoryService(history_db).get_run(summary["run_id"])
        assert code == EXIT_STAGE_FAILED
        assert run["status"] == "failed"
        assert run["failed_deployment_index"] == 1
        assert [(d["name"], d["status"]) for d in run["deployments"]] == [
            ("my-deployment", "applied"),
            ("my-worker", "failed"),
        ]

    def test_history_failure_keeps_exit_code(self, tmp_path, capsys, cli_env):
        """이력 DB를 열 수 없어도 결과 출력과 종료 코드는 유지"""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        DatabaseManager.reset()
        DatabaseManager(connection_string=f"sqlite:///{blocker / 'history.db'}")
        clients = (MagicMock(), MagicMock(), MagicMock())

        try:
            code = self.run_with_history(tmp_path, clients)
        finally:
            DatabaseManager.reset()

        summary = json.loads(capsys.readouterr().out)
        assert code == EXIT_SUCCESS
        assert summary["state"] == "succeeded"
