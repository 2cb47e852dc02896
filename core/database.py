"""
core/database.py -- SQLAlchemy engine construction shared by every store.

Both UserStore (auth/store.py) and AuditLog (audit/store.py) build their
engine here so SQLite gets the same treatment everywhere: connections usable
from FastAPI's threadpool, and WAL journal mode on every pooled connection.

Layer rule: core/ is the kernel. No imports from api/, auth/, audit/, or client/.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine for db_url with the SQLite settings every store needs."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
