"""
실행 이력 데이터베이스 관리

SQLAlchemy 엔진/세션 관리 (기본: 로컬 SQLite)
"""
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from devops_pipeline.core.exceptions import DatabaseError

# ORM Base 클래스
Base = declarative_base()

DEFAULT_CONNECTION_STRING = "sqlite:///data/pipeline_history.db"


class DatabaseManager:
    """
    이력 DB 연결 관리자

    사용법:
        db = DatabaseManager("sqlite:///data/pipeline_history.db")
        db.create_all_tables()

        with db.session() as session:
            session.add(PipelineRunModel(...))
    """

    _instance: "DatabaseManager | None" = None

    def __new__(cls, *args, **kwargs) -> "DatabaseManager":
        """싱글톤 패턴"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, connection_string: str | None = None, echo: bool = False):
        if self._initialized:
            return

        self._connection_string = connection_string or DEFAULT_CONNECTION_STRING
        self._echo = echo

        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None
        self._initialized = True

    @property
    def connection_string(self) -> str:
        return self._connection_string

    @property
    def engine(self) -> Engine:
        """엔진 생성 (지연 초기화)"""
        if self._engine is None:
            kwargs = {"echo": self._echo}

            try:
                if self._connection_string.startswith("sqlite"):
                    # 파일 DB는 상위 디렉토리 생성
                    if self._connection_string.startswith("sqlite:///"):
                        db_path = Path(self._connection_string.replace("sqlite:///", "", 1))
                        if str(db_path) not in ("", ":memory:"):
                            db_path.parent.mkdir(parents=True, exist_ok=True)
                    # 여러 스레드의 실행 결과를 같은 파일에 기록
                    kwargs["connect_args"] = {"check_same_thread": False}

                self._engine = create_engine(self._connection_string, **kwargs)
            except Exception as e:
                raise DatabaseError(f"DB 엔진 생성 실패: {e}", {"url": self._connection_string})

            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

        return self._engine

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        세션 컨텍스트 매니저 (정상 종료 시 커밋, 예외 시 롤백)
        """
        self.engine
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            raise DatabaseError(f"데이터베이스 작업 실패: {e}")
        finally:
            session.close()

    def create_all_tables(self) -> None:
        """ORM 모델 기반 테이블 생성"""
        # 모델 모듈을 임포트해야 메타데이터에 테이블이 등록됨
        from devops_pipeline.core import models  # noqa: F401

        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise DatabaseError(f"테이블 생성 실패: {e}", {"url": self._connection_string})

    def health_check(self) -> bool:
        """연결 상태 확인"""
        try:
            with self.session() as session:
                session.execute(text("SELECT 1"))
            return True
        except DatabaseError:
            return False

    def close(self) -> None:
        """연결 종료"""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @classmethod
    def reset(cls) -> None:
        """싱글톤 인스턴스 리셋 (테스트용)"""
        if cls._instance is not None:
            cls._instance.close()
        cls._instance = None


def get_database() -> DatabaseManager:
    """DatabaseManager 인스턴스 반환"""
    return DatabaseManager()


def init_database_from_config() -> DatabaseManager:
    """설정 파일 기반 데이터베이스 초기화"""
    from devops_pipeline.core.config import get_config

    db_config = get_config().get_section("database")

    db = DatabaseManager(
        connection_string=db_config.get("connection_string"),
        echo=db_config.get("echo", False),
    )
    db.create_all_tables()
    return db
