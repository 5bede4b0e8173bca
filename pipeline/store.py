from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.session import SessionLocal
from pipeline.errors import PersistenceError


class SessionStore:
    """Shared session handling: one session and at most one commit per operation."""

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceError(str(exc)) from exc
        finally:
            session.close()
