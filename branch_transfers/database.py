from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    pass


def create_db_engine(database_url: str, **engine_kwargs) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine_kwargs.setdefault("pool_pre_ping", True)
    engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        if engine.url.database not in (None, "", ":memory:"):
            # SQLite ignores FOR UPDATE; take the write lock when the transaction starts
            event.listen(engine, "connect", _disable_pysqlite_begin)
            event.listen(engine, "begin", _begin_immediate)

    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _disable_pysqlite_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


def _begin_immediate(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request):
    """Yield a session from the factory the application owns."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """One unit of work: commit when the block succeeds, roll back otherwise."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db(engine: Engine) -> None:
    # Import all models so Base.metadata knows about them
    import branch_transfers.models.attachment  # noqa: F401
    import branch_transfers.models.transfer  # noqa: F401
    import branch_transfers.models.user  # noqa: F401

    Base.metadata.create_all(bind=engine)
