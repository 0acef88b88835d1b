"""
설정 관리 모듈

도구 설정(settings.yaml) 로드: 기본 → settings.{env}.yaml → PIPELINE_* 환경 변수
(실행 대상 레코드는 pipeline_config 모듈 담당)
"""
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from devops_pipeline.core.exceptions import ConfigError, ConfigNotFoundError


ENV_PREFIX = "PIPELINE_"
ENV_NAME_VAR = "PIPELINE_ENV"
DEFAULT_CONFIG_DIR = Path(__file__).parent.parent.parent / "config"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML 파싱 오류: {path}", {"error": str(e)})


def _merge(base: dict, override: dict) -> None:
    """override 값으로 base를 덮어씀 (중첩 dict는 재귀 병합)"""
    for key, value in override.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            _merge(base[key], value)
        else:
            base[key] = value


def _env_scalar(value: str) -> Any:
    """환경 변수 문자열을 YAML 스칼라로 해석 ("30" -> 30, "false" -> False)"""
    try:
        parsed = yaml.safe_load(value) if value else value
    except yaml.YAMLError:
        return value
    # 토큰 등 문자열이 dict/list/None으로 바뀌지 않도록 스칼라만 변환
    if isinstance(parsed, (dict, list)) or parsed is None:
        return value
    return parsed


class Config:
    """
    도구 설정

    사용법:
        config = Config()                  # PIPELINE_ENV 또는 development
        config = Config(env="production")

        timeout = config.get("clients.git.timeout", default=300)
        kubernetes = config.client("kubernetes")
    """

    _instance: "Config | None" = None
    _initialized: bool = False

    def __new__(cls, *args, **kwargs) -> "Config":
        """싱글톤 패턴"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, env: str | None = None, config_dir: Path | None = None):
        if Config._initialized:
            return

        load_dotenv()

        self.env = env or os.getenv(ENV_NAME_VAR, "development")
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR

        base_path = self.config_dir / "settings.yaml"
        if not base_path.exists():
            raise ConfigNotFoundError(f"기본 설정 파일을 찾을 수 없습니다: {base_path}")
        self._config: dict[str, Any] = _read_yaml(base_path)

        env_path = self.config_dir / f"settings.{self.env}.yaml"
        if env_path.exists():
            _merge(self._config, _read_yaml(env_path))

        self._apply_env_overrides()

        Config._initialized = True

    def _apply_env_overrides(self) -> None:
        """PIPELINE_CLIENTS_GIT_TIMEOUT=600 -> clients.git.timeout = 600"""
        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX) or key == ENV_NAME_VAR:
                continue

            *parents, leaf = key[len(ENV_PREFIX):].lower().split("_")
            current = self._config
            for part in parents:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]
            current[leaf] = _env_scalar(value)

    def get(self, key: str, default: Any = None) -> Any:
        """점 표기법 조회 (예: "clients.kubernetes.namespace")"""
        current: Any = self._config
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def get_section(self, section: str) -> dict[str, Any]:
        """섹션 전체 조회 (없거나 비어 있으면 {})"""
        return self.get(section) or {}

    def client(self, name: str) -> dict[str, Any]:
        """clients.<name> 섹션 (git / docker / kubernetes)"""
        return self.get_section(f"clients.{name}")

    @classmethod
    def reset(cls) -> None:
        """싱글톤 인스턴스 리셋 (테스트용)"""
        cls._instance = None
        cls._initialized = False


def get_config() -> Config:
    """Config 인스턴스 반환 (편의 함수)"""
    return Config()
