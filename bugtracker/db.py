from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi import Request

from bugtracker.models import Base


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE actions unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, **kwargs) -> Engine:
    """Create the engine once at process start; callers own its lifecycle."""
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs.setdefault("poolclass", StaticPool)
    engine = create_engine(database_url, echo=False, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autoflush=False, bind=engine, expire_on_commit=False)


def init_db(engine: Engine):
    Base.metadata.create_all(bind=engine)


def get_session(request: Request):
    """Yield a SQLAlchemy session from the app's session factory (for use with dependency injection)."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
