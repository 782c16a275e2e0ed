from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session
from app.config import settings


def _build_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(
            url,
            echo=False,
            pool_pre_ping=True,      # checks dead connections
            pool_recycle=1800        # refresh every 30 min
        )

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool

    sqlite_engine = create_engine(url, echo=False, **kwargs)

    # pysqlite does not emit BEGIN itself, which breaks SAVEPOINT.
    # Let SQLAlchemy own the transaction boundaries instead.
    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return sqlite_engine


engine = _build_engine(settings.database_url)


def create_db_and_tables():
    from app import models  # noqa: F401  registers every table
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
