from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from shipguard.adapters.sqlalchemy import start_mappers
from shipguard.adapters.sqlalchemy.migrations import upgrade_head
from shipguard.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyMirrorUnitOfWork,
    shutdown,
    startup,
)
from shipguard.domain.mirror import MirrorStore
from tests.helpers.clock import FixedClock

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 3, 1, 9, 0, tzinfo=UTC))


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_file_engine(tmp_path: Path) -> Iterator[Engine]:
    """File-backed engine for tests that touch the mirror from several threads."""

    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'mirror.db'}", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyMirrorUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyMirrorUnitOfWork:
        return SqlAlchemyMirrorUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def mirror_store(
    sqlite_unit_of_work: Callable[[], SqlAlchemyMirrorUnitOfWork],
    clock: FixedClock,
) -> MirrorStore:
    return MirrorStore(sqlite_unit_of_work, clock=clock)


@pytest.fixture
def threaded_mirror_store(sqlite_file_engine: Engine, clock: FixedClock) -> Iterator[MirrorStore]:
    startup(engine=sqlite_file_engine, force=True)
    try:
        yield MirrorStore(SqlAlchemyMirrorUnitOfWork, clock=clock)
    finally:
        shutdown()
