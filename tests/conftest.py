import pytest

from backend.stockbook.config import Settings
from backend.stockbook.repository import SqlStore


@pytest.fixture
def settings(tmp_path):
    return Settings(
        base_dir=tmp_path,
        db_path=tmp_path / 'data' / 'inventory.db',
        fallback_path=tmp_path / 'data' / 'inventory.json',
        bills_dir=tmp_path / 'bills',
    )


@pytest.fixture
def sql_store(settings):
    store = SqlStore(settings.db_path)
    yield store
    store.close()
