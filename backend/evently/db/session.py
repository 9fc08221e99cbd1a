# backend/evently/db/session.py
import time
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from evently.core.config import settings
from evently.core.request_context import get_request_id, record_db_query

logger = logging.getLogger("evently")

DATABASE_URL = settings.database_url or "sqlite:///./evently.db"

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
    future=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)

# ---- DB observability (SQLAlchemy event hooks) ----

SLOW_QUERY_MS = float(settings.slow_db_query_ms)
LOG_DB_SQL = bool(settings.log_db_sql)


def _sql_head(statement: str) -> str:
    if not statement:
        return ""
    # Collapse whitespace + trim. No params logged (they can carry token digests).
    head = " ".join(statement.split())
    return head[:240]


@event.listens_for(engine, "before_cursor_execute")
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    context._evently_query_start = time.perf_counter()


@event.listens_for(engine, "after_cursor_execute")
def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    start = getattr(context, "_evently_query_start", None)
    if start is None:
        return

    duration_ms = (time.perf_counter() - start) * 1000.0
    head = _sql_head(statement)

    record_db_query(duration_ms, head)

    if duration_ms >= SLOW_QUERY_MS:
        rid = get_request_id()
        if LOG_DB_SQL:
            logger.warning("slow_db_query request_id=%s duration_ms=%.2f sql=%s", rid, duration_ms, head)
        else:
            logger.warning("slow_db_query request_id=%s duration_ms=%.2f", rid, duration_ms)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
