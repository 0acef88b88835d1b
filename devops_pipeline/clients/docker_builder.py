"""
Docker 이미지 클라이언트

docker CLI로 이미지 빌드 및 레지스트리 푸시
"""
from devops_pipeline.clients.command import run_command
from devops_pipeline.core.exceptions import BuildError, PublishError
from devops_pipeline.core.interfaces import BuildContext, ImageBuilder, SourceTree
from devops_pipeline.core.logger import get_logger


class DockerImageBuilder(ImageBuilder):
    """
    Docker 이미지 클라이언트

    사용법:
        builder = DockerImageBuilder()
        context = builder.build(tree, "registry.example.com/svc:1")
        builder.push(context, "registry.example.com/svc:1")
    """

    def __init__(
        self,
        docker_binary: str = "docker",
        build_timeout: float | None = 1800,
        push_timeout: float | None = 600,
        dockerfile: str | None = None,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.docker_binary = docker_binary
        self.build_timeout = build_timeout
        self.push_timeout = push_timeout
        self.dockerfile = dockerfile

    def build(self, source_tree: SourceTree, image_name: str) -> BuildContext:
        """
        소스 트리에서 이미지 빌드

        Raises:
            BuildError: docker build 실패
        """
        args = [self.docker_binary, "build", "-t", image_name]
        if self.dockerfile:
            args += ["-f", self.dockerfile]
        args.append(source_tree.path)

        self.logger.info(f"build: {image_name} ({source_tree.commit or source_tree.revision})")
        run_command(args, BuildError, timeout=self.build_timeout)

        image_id = run_command(
            [self.docker_binary, "image", "inspect", "--format", "{{.Id}}", image_name],
            BuildError,
            timeout=60,
        )
        self.logger.info(f"build 완료: {image_id}")
        return BuildContext(image_name=image_name, source=source_tree, image_id=image_id or None)

    def push(self, build_context: BuildContext, image_name: str) -> None:
        """
        레지스트리에 이미지 푸시

        Raises:
            PublishError: 레지스트리 거부 또는 네트워크 실패
        """
        if build_context.image_name != image_name:
            # 빌드와 다른 이름으로 푸시하려면 태그를 먼저 붙임
            run_command(
                [self.docker_binary, "tag", build_context.image_name, image_name],
                PublishError,
                timeout=60,
            )

        self.logger.info(f"push: {image_name}")
        run_command([self.docker_binary, "push", image_name], PublishError, timeout=self.push_timeout)
        self.logger.info(f"push 완료: {image_name}")
