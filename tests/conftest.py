from __future__ import annotations

import pytest

from db.session import build_engine, build_sessionmaker, init_db
from pipeline.assets import AssetStore
from pipeline.assignments import AssignmentStore
from pipeline.monitor import JobMonitor
from pipeline.projects import ProjectStore
from pipeline.templates import TemplateStore


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield build_sessionmaker(engine)
    engine.dispose()


@pytest.fixture()
def projects(session_factory) -> ProjectStore:
    return ProjectStore(session_factory)


@pytest.fixture()
def assets(session_factory) -> AssetStore:
    return AssetStore(session_factory)


@pytest.fixture()
def templates(session_factory) -> TemplateStore:
    return TemplateStore(session_factory)


@pytest.fixture()
def monitor(session_factory) -> JobMonitor:
    return JobMonitor(session_factory)


@pytest.fixture()
def assignments(session_factory) -> AssignmentStore:
    return AssignmentStore(session_factory)
