from datetime import date

import pytest
from fastapi.testclient import TestClient

from expense_tracker.core.config import Settings
from expense_tracker.db.dal import Database
from expense_tracker.db.migrate import apply_migrations
from expense_tracker.main import create_app
from expense_tracker.models.expense import NormalizedExpense


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated to a temp directory (no .env, fresh SQLite file)."""
    s = Settings(
        _env_file=None,
        data_dir=tmp_path,
        db_filename="test.sqlite3",
        debug=False,
        log_level="INFO",
    )
    s.init_post_load()
    return s


@pytest.fixture
def db(settings):
    apply_migrations(settings.db_path)
    database = Database(settings.db_path)
    yield database
    database.close()


@pytest.fixture
def app(settings):
    return create_app(settings_override=settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def app_db(app) -> Database:
    return app.state.db


@pytest.fixture
def make_expense():
    """Factory for validated expenses ready to insert."""

    def _make(
        amount_minor: int = 1000,
        category: str = "Food",
        description=None,
        expense_date: date = date(2024, 1, 1),
    ) -> NormalizedExpense:
        return NormalizedExpense(
            amount_minor=amount_minor,
            category=category,
            description=description,
            date=expense_date,
        )

    return _make
