"""
Tenant store registry.

Resolves an organization's subdomain (tenant key) to its isolated SQLite
store, keeping a bounded cache of open handles with an idle timeout.
One instance is created by the app factory and shared by every request.
"""
import logging
import os
import re
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.database import (
    REGISTRY_SCOPE, TENANT_SCOPE, StoreHandle, create_store_engine, initialize_schema
)
from app.exceptions import StoreOpenError, TenantNotFoundError

logger = logging.getLogger(__name__)

TENANT_KEY_PATTERN = re.compile(r'^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$')

DEFAULT_CAPACITY = 10
DEFAULT_IDLE_TIMEOUT = 5 * 60  # seconds


def is_valid_tenant_key(tenant_key) -> bool:
    return isinstance(tenant_key, str) and bool(TENANT_KEY_PATTERN.match(tenant_key))


class _OpenLock:
    __slots__ = ('lock', 'openers')

    def __init__(self):
        self.lock = threading.Lock()
        self.openers = 0


class TenantStoreRegistry:
    """
    Owns every open store handle of the process.

    Locking discipline:
    - ``_lock`` guards the handle map and is only held for lookups and
      cache mutation, never while opening or closing a store.
    - each tenant key gets its own open lock so concurrent first
      resolves of the same key open the store exactly once; callers
      re-check the cache after acquiring it. The lock is dropped when
      its last opener leaves, so keys that were never found or have
      been evicted do not keep an entry.
    """

    def __init__(
        self,
        organizations_dir: str,
        registry_path: str,
        capacity: int = DEFAULT_CAPACITY,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        busy_timeout: float = 5.0,
        echo: bool = False,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError('capacity must be at least 1')
        self.organizations_dir = organizations_dir
        self.registry_path = registry_path
        self.capacity = capacity
        self.idle_timeout = idle_timeout
        self.busy_timeout = busy_timeout
        self.echo = echo
        self._clock = clock

        self._handles: Dict[str, StoreHandle] = {}
        self._open_locks: Dict[str, _OpenLock] = {}
        self._lock = threading.Lock()

        self._registry_handle: Optional[StoreHandle] = None
        self._registry_lock = threading.Lock()

        self.sweep_interval = sweep_interval
        self._last_sweep = clock()

        self._opens = 0
        self._evictions = 0

    @classmethod
    def from_config(cls, config) -> 'TenantStoreRegistry':
        """Build a registry from a Flask config mapping."""
        return cls(
            organizations_dir=config['ORGANIZATIONS_DIR'],
            registry_path=os.path.join(config['DATA_DIR'], config.get('REGISTRY_DB_NAME', 'main.db')),
            capacity=config.get('TENANT_STORE_CAPACITY', DEFAULT_CAPACITY),
            idle_timeout=config.get('TENANT_STORE_IDLE_TIMEOUT', DEFAULT_IDLE_TIMEOUT),
            sweep_interval=config.get('TENANT_STORE_SWEEP_INTERVAL', 60.0),
            busy_timeout=config.get('STORE_BUSY_TIMEOUT', 5.0),
            echo=config.get('SQLALCHEMY_ECHO', False),
        )

    def __repr__(self):
        return f"<TenantStoreRegistry(open={len(self._handles)}, capacity={self.capacity})>"

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def store_path(self, tenant_key: str) -> str:
        """Deterministic store file path for a tenant key."""
        if not is_valid_tenant_key(tenant_key):
            raise TenantNotFoundError(tenant_key)
        return os.path.join(self.organizations_dir, f'{tenant_key}.db')

    def store_exists(self, tenant_key: str) -> bool:
        return is_valid_tenant_key(tenant_key) and os.path.isfile(self.store_path(tenant_key))

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, tenant_key: str) -> StoreHandle:
        """
        Return the open handle for ``tenant_key``, opening it if needed.

        Never creates a missing store: unknown keys raise
        TenantNotFoundError, I/O or schema failures raise StoreOpenError.
        """
        return self._resolve(tenant_key, acquire=False)

    @contextmanager
    def lease(self, tenant_key: str):
        """
        Resolve a handle and hold it in use for the duration of the block.

        Eviction skips leased handles, so the store is never closed
        under a caller that is still working with it.
        """
        handle = self._resolve(tenant_key, acquire=True)
        try:
            yield handle
        finally:
            handle.release()

    def _resolve(self, tenant_key: str, acquire: bool) -> StoreHandle:
        path = self.store_path(tenant_key)

        handle = self._lookup(tenant_key, acquire)
        if handle is not None:
            return handle

        with self._opening(tenant_key):
            # Another caller may have opened it while we waited
            handle = self._lookup(tenant_key, acquire)
            if handle is not None:
                return handle

            if not os.path.isfile(path):
                logger.warning(f"[STORES] Store file not found for tenant '{tenant_key}': {path}")
                raise TenantNotFoundError(tenant_key)

            handle = self._open(tenant_key, path, TENANT_SCOPE)
            self._insert(tenant_key, handle, acquire)
            return handle

    def _lookup(self, tenant_key: str, acquire: bool) -> Optional[StoreHandle]:
        with self._lock:
            handle = self._handles.get(tenant_key)
            if handle is None:
                return None
            if acquire:
                handle.acquire()
            else:
                handle.touch()
            return handle

    @contextmanager
    def _opening(self, tenant_key: str):
        """Hold the per-key open lock, creating it for the first opener."""
        with self._lock:
            entry = self._open_locks.get(tenant_key)
            if entry is None:
                entry = self._open_locks[tenant_key] = _OpenLock()
            entry.openers += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.openers -= 1
                if entry.openers == 0:
                    del self._open_locks[tenant_key]

    def _open(self, key: str, path: str, scope: str) -> StoreHandle:
        """Open a store and run the schema initializer once."""
        logger.info(f"[STORES] Opening {scope} store '{key}' at {path}")
        engine = None
        try:
            engine = create_store_engine(path, busy_timeout=self.busy_timeout, echo=self.echo)
            initialize_schema(engine, scope)
        except StoreOpenError:
            if engine is not None:
                engine.dispose()
            raise
        except (SQLAlchemyError, OSError) as e:
            if engine is not None:
                engine.dispose()
            logger.error(f"[STORES] Failed to open {scope} store '{key}': {e}")
            raise StoreOpenError(f"Could not open store for '{key}'") from e

        with self._lock:
            self._opens += 1
        return StoreHandle(key, path, engine, scope=scope, clock=self._clock)

    def _insert(self, tenant_key: str, handle: StoreHandle, acquire: bool) -> None:
        victims: List[StoreHandle] = []
        with self._lock:
            if len(self._handles) >= self.capacity:
                victims = self._collect_expired(self._clock())
                if len(self._handles) >= self.capacity:
                    lru = self._least_recently_used_idle()
                    if lru is not None:
                        victims.append(self._handles.pop(lru.key))
                    else:
                        logger.warning(
                            f"[STORES] Capacity {self.capacity} reached and every store is in use; "
                            f"caching '{tenant_key}' above capacity"
                        )
            if acquire:
                handle.acquire()
            self._handles[tenant_key] = handle

        for victim in victims:
            self._close_quietly(victim, reason='capacity')

    def _least_recently_used_idle(self) -> Optional[StoreHandle]:
        idle = [h for h in self._handles.values() if h.in_use == 0]
        if not idle:
            return None
        return min(idle, key=lambda h: h.last_access)

    # ------------------------------------------------------------------
    # Eviction and release
    # ------------------------------------------------------------------

    def evict_expired(self, now: Optional[float] = None) -> List[str]:
        """
        Close and drop every handle idle for longer than the idle timeout.

        Safe to call concurrently with resolve. Handles with an active
        lease are skipped. Returns the evicted tenant keys.
        """
        if now is None:
            now = self._clock()
        with self._lock:
            victims = self._collect_expired(now)

        for victim in victims:
            self._close_quietly(victim, reason='idle')
        return [victim.key for victim in victims]

    def sweep(self, now: Optional[float] = None) -> List[str]:
        """Run evict_expired at most once per sweep interval (called after requests)."""
        if now is None:
            now = self._clock()
        with self._lock:
            if now - self._last_sweep < self.sweep_interval:
                return []
            self._last_sweep = now
        return self.evict_expired(now)

    def _collect_expired(self, now: float) -> List[StoreHandle]:
        """Pop expired, unleased handles. Caller must hold ``_lock``."""
        expired = [
            key for key, handle in self._handles.items()
            if handle.in_use == 0 and handle.idle_for(now) > self.idle_timeout
        ]
        return [self._handles.pop(key) for key in expired]

    def release(self, tenant_key: str) -> bool:
        """
        Close and drop one handle regardless of idle time.

        Administrative disconnect: the caller guarantees no concurrent
        use. Returns False if the tenant had no cached handle.
        """
        with self._lock:
            handle = self._handles.pop(tenant_key, None)
        if handle is None:
            return False
        if handle.in_use:
            logger.warning(f"[STORES] Releasing '{tenant_key}' while {handle.in_use} lease(s) are active")
        self._close_quietly(handle, reason='release')
        return True

    def release_all(self) -> None:
        """Close every cached handle and the registry handle (process shutdown)."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        with self._registry_lock:
            registry_handle = self._registry_handle
            self._registry_handle = None

        for handle in handles:
            self._close_quietly(handle, reason='shutdown')
        if registry_handle is not None:
            self._close_quietly(registry_handle, reason='shutdown')
        logger.info(f"[STORES] Released {len(handles)} tenant store(s)")

    def _close_quietly(self, handle: StoreHandle, reason: str) -> None:
        # Closing is best-effort: a failure must not fail an unrelated caller
        try:
            handle.close()
            if handle.scope == TENANT_SCOPE:
                with self._lock:
                    self._evictions += 1
            logger.info(f"[STORES] Closed store '{handle.key}' ({reason})")
        except Exception as e:
            logger.error(f"[STORES] Error closing store '{handle.key}' ({reason}): {e}")

    # ------------------------------------------------------------------
    # Registry store
    # ------------------------------------------------------------------

    def resolve_registry(self) -> StoreHandle:
        """
        Return the long-lived registry handle (organizations, super-admins).

        Opened once and kept for the life of the process; never evicted.
        The registry file is created on first open.
        """
        with self._registry_lock:
            if self._registry_handle is None or self._registry_handle.closed:
                directory = os.path.dirname(self.registry_path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                self._registry_handle = self._open('registry', self.registry_path, REGISTRY_SCOPE)
            handle = self._registry_handle
        handle.touch()
        return handle

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def provision(self, tenant_key: str) -> str:
        """
        Create a tenant store file and initialize its schema.

        This is the only operation that creates tenant stores. It is
        idempotent and leaves the cache untouched. Returns the store path.
        """
        path = self.store_path(tenant_key)
        existed = os.path.isfile(path)

        engine = None
        try:
            os.makedirs(self.organizations_dir, exist_ok=True)
            engine = create_store_engine(path, busy_timeout=self.busy_timeout, echo=self.echo)
            initialize_schema(engine, TENANT_SCOPE)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"[STORES] Failed to provision store for '{tenant_key}': {e}")
            raise StoreOpenError(f"Could not provision store for '{tenant_key}'") from e
        finally:
            if engine is not None:
                engine.dispose()

        if existed:
            logger.info(f"[STORES] Store for '{tenant_key}' already existed; schema verified")
        else:
            logger.info(f"[STORES] Provisioned store for '{tenant_key}' at {path}")
        return path

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def cached_keys(self) -> List[str]:
        with self._lock:
            return sorted(self._handles)

    def is_cached(self, tenant_key: str) -> bool:
        with self._lock:
            return tenant_key in self._handles

    def stats(self) -> dict:
        """Snapshot used by the admin endpoints and the metrics collector."""
        now = self._clock()
        with self._lock:
            stores = [
                {
                    'tenant': key,
                    'idle_seconds': round(handle.idle_for(now), 3),
                    'in_use': handle.in_use,
                }
                for key, handle in sorted(self._handles.items())
            ]
            return {
                'open': len(self._handles),
                'capacity': self.capacity,
                'idle_timeout': self.idle_timeout,
                'opens_total': self._opens,
                'closes_total': self._evictions,
                'stores': stores,
            }
