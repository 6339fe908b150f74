"""Database configuration: declarative bases, store handles and schema setup."""
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from app.exceptions import StoreOpenError

logger = logging.getLogger(__name__)

# Registry scope: organizations and platform super-admins (main.db)
RegistryBase = declarative_base()

# Tenant scope: one isolated store per organization (<subdomain>.db)
TenantBase = declarative_base()

REGISTRY_SCOPE = 'registry'
TENANT_SCOPE = 'tenant'


def generate_id():
    """Generate a new primary key for registry/tenant entities."""
    return str(uuid.uuid4())


def utcnow():
    """Naive UTC timestamp, the format every store column uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_store_engine(path, busy_timeout=5.0, echo=False):
    """
    Create a SQLAlchemy engine for one SQLite store file.

    The engine is shared by request threads, so the sqlite driver's
    same-thread check is disabled and a busy timeout makes writers wait
    for each other instead of failing immediately.
    """
    engine = create_engine(
        f'sqlite:///{path}',
        echo=echo,
        connect_args={
            'check_same_thread': False,
            'timeout': busy_timeout,
        },
    )

    @event.listens_for(engine, 'connect')
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    return engine


def initialize_schema(engine, scope):
    """
    Create the tables of the given scope if they are absent.

    Idempotent: running it against an initialized store is a no-op.
    Raises StoreOpenError if the store cannot be initialized.
    """
    # Models must be imported so their tables are registered on the metadata
    import app.models  # noqa: F401

    metadata = RegistryBase.metadata if scope == REGISTRY_SCOPE else TenantBase.metadata
    try:
        metadata.create_all(engine, checkfirst=True)
    except SQLAlchemyError as e:
        logger.error(f"[SCHEMA] Failed to initialize {scope} schema at {engine.url}: {e}")
        raise StoreOpenError(f'Could not initialize {scope} store') from e


class StoreHandle:
    """
    An open connection to one isolated store (tenant or registry).

    Owned by the TenantStoreRegistry while cached. ``last_access`` is a
    monotonic timestamp refreshed on every successful lookup and
    ``in_use`` counts active leases; eviction never closes a leased handle.
    """

    def __init__(self, key, path, engine, scope=TENANT_SCOPE, clock=time.monotonic):
        self.key = key
        self.path = path
        self.engine = engine
        self.scope = scope
        self._clock = clock
        self._session_factory = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )
        self._lock = threading.Lock()
        self.last_access = clock()
        self.in_use = 0
        self.closed = False

    def __repr__(self):
        return f"<StoreHandle(key='{self.key}', scope='{self.scope}', in_use={self.in_use})>"

    def touch(self):
        with self._lock:
            self.last_access = self._clock()

    def acquire(self):
        with self._lock:
            self.in_use += 1
            self.last_access = self._clock()

    def release(self):
        with self._lock:
            if self.in_use > 0:
                self.in_use -= 1
            self.last_access = self._clock()

    def idle_for(self, now):
        return now - self.last_access

    @contextmanager
    def session(self):
        """Yield a session bound to this store; rolled back on error, always closed."""
        if self.closed:
            raise StoreOpenError(f'Store {self.key} is closed')
        db_session = self._session_factory()
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise
        finally:
            db_session.close()

    def close(self):
        """Dispose the engine's connection pool."""
        self.closed = True
        self.engine.dispose()
