"""
외부 명령 실행 헬퍼

git/docker CLI 호출 공통 처리 (실패 시 단계별 오류로 변환)
"""
import subprocess
from pathlib import Path

from devops_pipeline.core.exceptions import PipelineStageError
from devops_pipeline.core.logger import get_logger


logger = get_logger(__name__)

# 오류 메시지에 포함할 출력 최대 길이
MAX_OUTPUT_CHARS = 2000


def _tail(text: str | None) -> str:
    text = (text or "").strip()
    if len(text) > MAX_OUTPUT_CHARS:
        return "..." + text[-MAX_OUTPUT_CHARS:]
    return text


def run_command(
    args: list[str],
    error_cls: type[PipelineStageError],
    timeout: float | None = None,
    cwd: str | Path | None = None,
) -> str:
    """
    외부 명령 실행

    Args:
        args: 명령과 인자
        error_cls: 실패 시 발생시킬 단계 오류 클래스
        timeout: 제한 시간 (초, None이면 무제한)
        cwd: 작업 디렉토리

    Returns:
        표준 출력 (앞뒤 공백 제거)

    Raises:
        error_cls: 실행 파일 없음, 0이 아닌 종료 코드, 타임아웃
    """
    command = " ".join(args)
    logger.debug(f"$ {command}")

    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError:
        raise error_cls(f"실행 파일을 찾을 수 없습니다: {args[0]}", {"command": command})
    except subprocess.TimeoutExpired:
        raise error_cls(f"명령 타임아웃 ({timeout}초): {args[0]}", {"command": command})
    except OSError as e:
        raise error_cls(f"명령 실행 실패: {e}", {"command": command})

    if result.returncode != 0:
        output = _tail(result.stderr) or _tail(result.stdout) or "Unknown error"
        raise error_cls(
            output,
            {"command": command, "returncode": result.returncode},
        )

    return result.stdout.strip()
