"""
Git 소스 클라이언트

git CLI로 저장소를 임시 작업 디렉토리에 clone
"""
import shutil
import tempfile
from pathlib import Path

from devops_pipeline.clients.command import run_command
from devops_pipeline.core.exceptions import FetchError
from devops_pipeline.core.interfaces import SourceFetcher, SourceTree
from devops_pipeline.core.logger import get_logger


WORKDIR_PREFIX = "pipeline-src-"

# 브랜치/태그가 아닌 리비전일 때 git clone --branch 가 내는 메시지
MISSING_REF_MARKERS = ("not found in upstream", "Could not find remote branch")


class GitSourceFetcher(SourceFetcher):
    """
    Git 소스 클라이언트

    사용법:
        fetcher = GitSourceFetcher(timeout=300)
        tree = fetcher.fetch("https://git.example.com/svc.git", "main")
        ...
        fetcher.release(tree)
    """

    def __init__(
        self,
        git_binary: str = "git",
        timeout: float | None = 300,
        work_root: str | None = None,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.git_binary = git_binary
        self.timeout = timeout
        self.work_root = work_root

    def fetch(self, location: str, revision: str) -> SourceTree:
        """
        저장소 clone

        브랜치/태그는 shallow clone, 그 외(커밋 SHA 등)는 전체 clone 후 checkout

        Raises:
            FetchError: 저장소 접근 불가, 알 수 없는 리비전, I/O 실패
        """
        if self.work_root:
            Path(self.work_root).mkdir(parents=True, exist_ok=True)

        try:
            workdir = Path(tempfile.mkdtemp(prefix=WORKDIR_PREFIX, dir=self.work_root))
        except OSError as e:
            raise FetchError(f"작업 디렉토리 생성 실패: {e}")

        source_path = workdir / "source"
        self.logger.info(f"clone: {location} ({revision}) -> {source_path}")

        try:
            try:
                self._git(
                    "clone", "--depth", "1", "--branch", revision,
                    "--", location, str(source_path),
                )
            except FetchError as e:
                if not any(marker in e.message for marker in MISSING_REF_MARKERS):
                    raise
                self.logger.info(f"브랜치/태그가 아님, 전체 clone 후 checkout: {revision}")
                shutil.rmtree(source_path, ignore_errors=True)
                self._git("clone", "--", location, str(source_path))
                self._git("-C", str(source_path), "checkout", "--detach", revision)

            commit = self._git("-C", str(source_path), "rev-parse", "HEAD")
        except FetchError:
            shutil.rmtree(workdir, ignore_errors=True)
            raise

        self.logger.info(f"clone 완료: {commit[:12]}")
        return SourceTree(
            path=str(source_path),
            location=location,
            revision=revision,
            commit=commit,
        )

    def release(self, source_tree: SourceTree) -> None:
        """clone한 작업 디렉토리 삭제"""
        workdir = Path(source_tree.path).parent
        if not workdir.name.startswith(WORKDIR_PREFIX):
            self.logger.warning(f"작업 디렉토리가 아니므로 삭제하지 않음: {workdir}")
            return
        shutil.rmtree(workdir, ignore_errors=True)
        self.logger.debug(f"작업 디렉토리 삭제: {workdir}")

    def _git(self, *args: str) -> str:
        return run_command([self.git_binary, *args], FetchError, timeout=self.timeout)
