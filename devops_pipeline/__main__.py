"""
배포 파이프라인 실행

    python -m devops_pipeline config/pipeline.example.yaml [--skip-preflight] [--no-history] [--json]

종료 코드:
    0   성공
    1   단계 실패
    2   설정 오류 / Preflight 실패
    130 취소 (Ctrl+C)
"""
import argparse
import json
import signal
import sys

from devops_pipeline.clients import create_stage_clients
from devops_pipeline.core.config import Config
from devops_pipeline.core.database import init_database_from_config
from devops_pipeline.core.exceptions import ConfigError, DatabaseError
from devops_pipeline.core.logger import get_logger, setup_logger_from_config
from devops_pipeline.core.pipeline_config import load_pipeline_config
from devops_pipeline.core.preflight import PreflightChecker
from devops_pipeline.orchestrator import (
    CancellationToken,
    PipelineEvent,
    PipelineOrchestrator,
    RunHistoryService,
)


EXIT_SUCCESS = 0
EXIT_STAGE_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devops_pipeline",
        description="소스 fetch → 이미지 build/push → 클러스터 배포 파이프라인",
    )
    parser.add_argument("config", help="실행 설정 파일 (YAML/JSON)")
    parser.add_argument("--env", default=None, help="설정 환경 (기본: PIPELINE_ENV 또는 development)")
    parser.add_argument("--skip-preflight", action="store_true", help="Preflight 건너뛰기")
    parser.add_argument("--no-history", action="store_true", help="실행 이력 저장 안 함")
    parser.add_argument("--json", action="store_true", help="결과를 JSON으로 출력")
    return parser


def print_event(event: PipelineEvent) -> None:
    """진행 상황 출력"""
    if event.kind == "stage_started":
        target = f" {event.deployment_name}" if event.deployment_name else ""
        print(f"  → {event.stage.value}{target}", flush=True)
    elif event.kind == "stage_failed":
        print(f"  ✗ {event.stage.value}: {event.message}", flush=True)
    elif event.kind == "cancelled":
        print(f"  ! {event.message}", flush=True)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Config(env=args.env)
    except ConfigError as e:
        print(f"설정 오류: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logger_from_config()
    logger = get_logger("devops_pipeline")

    try:
        pipeline_config = load_pipeline_config(args.config)
        pipeline_config.validate()
    except ConfigError as e:
        logger.error(f"실행 설정 오류: {e}")
        print(f"설정 오류: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    client_settings = settings.get_section("clients")

    if not args.skip_preflight:
        kubernetes = settings.client("kubernetes")
        checker = PreflightChecker(
            git_binary=settings.client("git").get("binary", "git"),
            docker_binary=settings.client("docker").get("binary", "docker"),
            token=kubernetes.get("token"),
            verify=kubernetes.get("verify", True),
        )
        endpoint = pipeline_config.cluster_endpoint if pipeline_config.deployment_specs else None
        preflight = checker.run(cluster_endpoint=endpoint)
        if not preflight.passed:
            print(preflight.summary(), file=sys.stderr)
            return EXIT_CONFIG_ERROR

    fetcher, builder, deployer = create_stage_clients(
        pipeline_config.cluster_endpoint, client_settings
    )
    orchestrator = PipelineOrchestrator(
        pipeline_config,
        fetcher,
        builder,
        deployer,
        on_event=None if args.json else print_event,
    )

    token = CancellationToken()
    previous_handler = signal.signal(signal.SIGINT, lambda *_: token.cancel("SIGINT"))
    try:
        result = orchestrator.run(cancel_token=token)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if not args.no_history and settings.get("history.enabled", True):
        try:
            RunHistoryService(init_database_from_config()).save_result(pipeline_config, result)
        except DatabaseError as e:
            logger.error(f"실행 이력 저장 실패: {e}")

    summary = result.to_summary()
    if args.json:
        print(json.dumps(summary, ensure_ascii=False, indent=2))
    else:
        print(f"\n결과: {'SUCCEEDED' if result.success else 'FAILED'} ({summary['duration']})")
        if result.failure:
            print(f"실패: {json.dumps(result.failure.to_dict(), ensure_ascii=False)}")

    if result.success:
        return EXIT_SUCCESS
    if result.failure.cancelled:
        return EXIT_CANCELLED
    return EXIT_STAGE_FAILED


if __name__ == "__main__":
    sys.exit(main())
