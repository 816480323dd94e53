import logging
from pathlib import Path

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

# columns added after the first release; older databases get them on open
LATE_COLUMNS = (
    ('tx_items', 'discount_percent', 'discount_percent NUMERIC(5, 2) NOT NULL DEFAULT 0'),
    ('tx_items', 'discounted_unit_price', 'discounted_unit_price NUMERIC(12, 2) NOT NULL DEFAULT 0'),
)


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys = ON')
    cursor.execute('PRAGMA journal_mode = WAL')
    cursor.execute('PRAGMA synchronous = NORMAL')
    cursor.close()


def create_db_engine(db_path) -> Engine:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f'sqlite:///{path}')
    event.listen(engine, 'connect', _set_sqlite_pragmas)
    return engine


def ensure_column(engine: Engine, table: str, column: str, definition: str) -> bool:
    """Add ``column`` to ``table`` when missing. Returns True if it was added."""
    existing = {c['name'] for c in inspect(engine).get_columns(table)}
    if column in existing:
        return False
    logging.info('Adding missing column %s.%s', table, column)
    with engine.begin() as conn:
        conn.execute(text(f'ALTER TABLE {table} ADD COLUMN {definition}'))
    return True


def init_db(engine: Engine) -> None:
    # import for side effect: registers the tables on Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(engine)
    for table, column, definition in LATE_COLUMNS:
        ensure_column(engine, table, column, definition)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
