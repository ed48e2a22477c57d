"""SQLModel database engine and session management."""
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import SQLModel, create_engine, Session
from backoffice.core.config import settings
from backoffice.core.errors import BackofficeError, Conflict, StorageTimeout

# Import models so SQLModel.metadata knows about all tables
import backoffice.models.admin  # noqa: F401
import backoffice.models.catalog  # noqa: F401
import backoffice.models.cart  # noqa: F401
import backoffice.models.billing  # noqa: F401
import backoffice.models.sl  # noqa: F401
import backoffice.models.store_profile  # noqa: F401

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

if _is_sqlite:
    connect_args = {"check_same_thread": False, "timeout": settings.DB_LOCK_TIMEOUT}
else:
    # lock_timeout makes a stuck row lock fail instead of hanging the request;
    # timestamps are written as UTC and read back in UTC
    connect_args = {
        "options": f"-c lock_timeout={int(settings.DB_LOCK_TIMEOUT * 1000)} -c timezone=UTC"
    }

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    echo=False,
)

if _is_sqlite:
    # SQLite has no SELECT ... FOR UPDATE. Every transaction takes the write
    # lock up front instead, which serialises invoice creation and stock
    # updates. Letting SQLAlchemy emit BEGIN also makes SAVEPOINT work.
    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@contextmanager
def atomic(session: Session):
    """
    Run a unit of work and commit it, or roll everything back.

    Storage failures are translated into retry-safe business errors:
    unique-key collisions become Conflict, lock waits become StorageTimeout.
    """
    try:
        yield session
        session.commit()
    except BackofficeError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        logger.warning(f"Integrity error, transaction rolled back: {exc.orig}")
        raise Conflict("Conflicting change, a unique value is already in use", {"reason": str(exc.orig)}) from exc
    except OperationalError as exc:
        session.rollback()
        logger.warning(f"Storage busy, transaction rolled back: {exc.orig}")
        raise StorageTimeout("The database is busy, please retry") from exc
    except BaseException:
        session.rollback()
        raise


def create_db_and_tables() -> None:
    """Create all tables defined in SQLModel models."""
    SQLModel.metadata.create_all(engine)


def get_session():
    """FastAPI dependency: yields a SQLModel session."""
    with Session(engine) as session:
        yield session
