"""Tests for db.connection against a throwaway SQLite file."""

from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import inspect

from config import get_settings
from db.connection import get_engine, get_session, init_database, reset_engine
from db.models import OraclePrices


@pytest.fixture()
def sqlite_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    path: Path = tmp_path / "cache.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{path.as_posix()}")
    get_settings.cache_clear()
    reset_engine()
    yield path
    reset_engine()
    get_settings.cache_clear()


class TestDatabase:
    def test_init_creates_price_table(self, sqlite_file: Path) -> None:
        init_database()
        assert "oracle_prices" in inspect(get_engine()).get_table_names()
        assert sqlite_file.exists()

    def test_session_commits(self, sqlite_file: Path) -> None:
        init_database()
        with get_session() as session:
            session.add(OraclePrices(block_number=1, price="1.5", created_at="now"))

        with get_session() as session:
            record: OraclePrices | None = session.get(OraclePrices, 1)
            assert record is not None
            assert record.price == "1.5"

    def test_session_rolls_back_on_error(self, sqlite_file: Path) -> None:
        init_database()
        with pytest.raises(RuntimeError):
            with get_session() as session:
                session.add(OraclePrices(block_number=2, price="1", created_at="now"))
                session.flush()
                raise RuntimeError("boom")

        with get_session() as session:
            assert session.get(OraclePrices, 2) is None

    def test_force_drops_rows(self, sqlite_file: Path) -> None:
        init_database()
        with get_session() as session:
            session.add(OraclePrices(block_number=3, price="1", created_at="now"))
        init_database(drop=True)
        with get_session() as session:
            assert session.get(OraclePrices, 3) is None
