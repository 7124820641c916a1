from contextlib import contextmanager
from threading import Lock, RLock
from typing import Iterator

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_scheduler.core import config


load_dotenv()

Base = declarative_base()


def _is_in_memory_sqlite(url: str) -> bool:
    return url in {'sqlite://', 'sqlite:///:memory:'} or url.startswith('sqlite:///file::memory:')


def build_engine(url: str | None = None, echo: bool | None = None) -> Engine:
    url = url or config.DATABASE_URL
    echo = config.SQL_ECHO if echo is None else echo

    if _is_in_memory_sqlite(url):
        # Every session has to see the same in-memory database, so the
        # engine hands out a single shared connection.
        return create_engine(
            url,
            echo=echo,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )

    return create_engine(url, echo=echo)


class Database:
    """Engine, session factory and the lock that serializes access to them."""

    def __init__(self, url: str | None = None, echo: bool | None = None) -> None:
        self.engine = build_engine(url, echo)
        self.SessionLocal = sessionmaker(
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        self.lock = RLock()
        self._schema_lock = Lock()
        self._schema_checked = False

    def ensure_schema(self) -> None:
        if self._schema_checked:
            return

        with self._schema_lock:
            if self._schema_checked:
                return

            # Imported for their side effect of registering tables on Base.
            from clinic_scheduler.models import appointment, availability, participant  # noqa: F401

            Base.metadata.create_all(bind=self.engine)

            self._schema_checked = True

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        with self.lock:
            self.ensure_schema()
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                raise
            finally:
                session.close()

    def dispose(self) -> None:
        self.engine.dispose()
