"""
Unit tests for the tenant store registry: routing, cache bound, idle
eviction, leases and concurrent opens.
"""

import os
import threading

import pytest
from sqlalchemy import inspect

from app.database import TENANT_SCOPE
from app.exceptions import StoreOpenError, TenantNotFoundError
from app.models import Event
from app.services.tenant_store_registry import TenantStoreRegistry, is_valid_tenant_key


class TestTenantKeys:

    @pytest.mark.parametrize('key', ['acme', 'prefeitura-sp', 'a1', 'x'])
    def test_valid_keys(self, key):
        assert is_valid_tenant_key(key)

    @pytest.mark.parametrize('key', ['', 'ACME', '../etc', 'acme.db', '-acme', 'acme-', 'a/b', None])
    def test_invalid_keys(self, key):
        assert not is_valid_tenant_key(key)

    def test_store_path_is_deterministic(self, registry):
        assert registry.store_path('acme') == os.path.join(registry.organizations_dir, 'acme.db')

    def test_store_path_rejects_traversal(self, registry):
        with pytest.raises(TenantNotFoundError):
            registry.store_path('../main')


class TestProvisionAndResolve:

    def test_provision_creates_initialized_store(self, registry):
        path = registry.provision('acme')

        assert os.path.isfile(path)
        assert not registry.is_cached('acme')

        handle = registry.resolve('acme')
        tables = set(inspect(handle.engine).get_table_names())
        assert {'app_users', 'admin_users', 'events', 'proof_of_life',
                'recadastration', 'submission_history'} <= tables
        assert 'organizations' not in tables

    def test_provision_is_idempotent(self, registry):
        first = registry.provision('acme')
        second = registry.provision('acme')
        assert first == second

    def test_resolve_returns_cached_handle(self, registry):
        registry.provision('acme')
        first = registry.resolve('acme')
        second = registry.resolve('acme')

        assert first is second
        assert first.scope == TENANT_SCOPE
        assert registry.stats()['opens_total'] == 1

    def test_unknown_tenant_does_not_create_store(self, registry):
        with pytest.raises(TenantNotFoundError) as exc_info:
            registry.resolve('ghost')

        assert exc_info.value.tenant_key == 'ghost'
        assert exc_info.value.status_code == 404
        assert not os.path.exists(registry.store_path('ghost'))
        assert registry.cached_keys() == []

    def test_invalid_key_raises_tenant_not_found(self, registry):
        with pytest.raises(TenantNotFoundError):
            registry.resolve('../../etc/passwd')

    def test_corrupt_store_raises_store_open_error(self, registry):
        os.makedirs(registry.organizations_dir, exist_ok=True)
        with open(registry.store_path('broken'), 'wb') as f:
            f.write(b'this is not a sqlite database file' * 64)

        with pytest.raises(StoreOpenError) as exc_info:
            registry.resolve('broken')

        assert exc_info.value.status_code == 503
        assert not registry.is_cached('broken')

    def test_provision_failure_raises_store_open_error(self, registry):
        # A plain file where the organizations directory should be
        with open(registry.organizations_dir, 'w') as f:
            f.write('not a directory')

        with pytest.raises(StoreOpenError) as exc_info:
            registry.provision('acme')

        assert exc_info.value.status_code == 503
        assert not registry.is_cached('acme')


class TestCapacity:
    """Cache never exceeds capacity under sequential access."""

    def test_lru_handle_evicted_at_capacity(self, registry, clock):
        for key in ('alpha', 'beta', 'gamma'):
            registry.provision(key)

        alpha = registry.resolve('alpha')
        clock.advance(1)
        registry.resolve('beta')
        clock.advance(1)
        registry.resolve('gamma')

        assert registry.cached_keys() == ['beta', 'gamma']
        assert alpha.closed

    def test_recently_touched_handle_survives(self, registry, clock):
        for key in ('alpha', 'beta', 'gamma'):
            registry.provision(key)

        registry.resolve('alpha')
        clock.advance(1)
        registry.resolve('beta')
        clock.advance(1)
        registry.resolve('alpha')  # touch
        clock.advance(1)
        registry.resolve('gamma')

        assert registry.cached_keys() == ['alpha', 'gamma']

    def test_cache_bound_over_many_tenants(self, registry, clock):
        keys = [f'tenant-{i}' for i in range(6)]
        for key in keys:
            registry.provision(key)

        for key in keys:
            registry.resolve(key)
            clock.advance(1)
            assert len(registry.cached_keys()) <= registry.capacity

    def test_leased_handles_are_not_evicted_for_capacity(self, registry):
        for key in ('alpha', 'beta', 'gamma'):
            registry.provision(key)

        with registry.lease('alpha'), registry.lease('beta'):
            gamma = registry.resolve('gamma')
            # Every other handle is in use, so the cache grows past capacity
            assert registry.cached_keys() == ['alpha', 'beta', 'gamma']
            assert not gamma.closed

    def test_capacity_must_be_positive(self, tmp_path):
        with pytest.raises(ValueError):
            TenantStoreRegistry(str(tmp_path), str(tmp_path / 'main.db'), capacity=0)


class TestIdleEviction:

    def test_expired_handle_is_evicted(self, registry, clock):
        registry.provision('acme')
        handle = registry.resolve('acme')

        clock.advance(61)
        evicted = registry.evict_expired()

        assert evicted == ['acme']
        assert not registry.is_cached('acme')
        assert handle.closed

    def test_touched_handle_is_retained(self, registry, clock):
        registry.provision('acme')
        registry.resolve('acme')

        clock.advance(59)
        registry.resolve('acme')
        clock.advance(59)

        assert registry.evict_expired() == []
        assert registry.is_cached('acme')

    def test_leased_handle_is_retained(self, registry, clock):
        registry.provision('acme')

        with registry.lease('acme') as handle:
            clock.advance(600)
            assert registry.evict_expired() == []
            assert not handle.closed
            with handle.session() as session:
                assert session.query(Event).count() == 0

        # Lease released at the current clock, so it is fresh again
        assert registry.evict_expired() == []
        clock.advance(61)
        assert registry.evict_expired() == ['acme']

    def test_evicted_tenant_reopens_on_next_resolve(self, registry, clock):
        registry.provision('acme')
        first = registry.resolve('acme')
        clock.advance(61)
        registry.evict_expired()

        second = registry.resolve('acme')
        assert second is not first
        assert not second.closed
        assert registry.stats()['opens_total'] == 2

    def test_sweep_runs_at_most_once_per_interval(self, registry, clock):
        registry.provision('acme')
        registry.resolve('acme')

        clock.advance(61)
        assert registry.sweep() == ['acme']

        registry.resolve('acme')
        clock.advance(61)
        # 61s since the last sweep is past the 30s interval again
        assert registry.sweep() == ['acme']

        registry.resolve('acme')
        clock.advance(10)
        assert registry.sweep() == []


class TestRelease:

    def test_release_closes_one_handle(self, registry):
        registry.provision('acme')
        registry.provision('globex')
        acme = registry.resolve('acme')
        registry.resolve('globex')

        assert registry.release('acme') is True
        assert acme.closed
        assert registry.cached_keys() == ['globex']

    def test_release_unknown_tenant_is_noop(self, registry):
        assert registry.release('acme') is False

    def test_closed_handle_rejects_sessions(self, registry):
        registry.provision('acme')
        handle = registry.resolve('acme')
        registry.release('acme')

        with pytest.raises(StoreOpenError):
            with handle.session():
                pass

    def test_release_all_closes_registry_handle(self, registry):
        registry.provision('acme')
        tenant_handle = registry.resolve('acme')
        registry_handle = registry.resolve_registry()

        registry.release_all()

        assert tenant_handle.closed
        assert registry_handle.closed
        assert registry.cached_keys() == []

    def test_close_failure_is_swallowed(self, registry, monkeypatch):
        registry.provision('acme')
        handle = registry.resolve('acme')

        def boom():
            raise OSError('disk gone')

        monkeypatch.setattr(handle, 'close', boom)
        assert registry.release('acme') is True
        assert not registry.is_cached('acme')


class TestRegistryStore:

    def test_registry_store_created_on_first_open(self, registry):
        assert not os.path.exists(registry.registry_path)

        handle = registry.resolve_registry()

        assert os.path.isfile(registry.registry_path)
        tables = set(inspect(handle.engine).get_table_names())
        assert tables == {'organizations', 'super_admins'}

    def test_registry_handle_is_never_evicted(self, registry, clock):
        handle = registry.resolve_registry()
        clock.advance(10_000)
        registry.evict_expired()

        assert registry.resolve_registry() is handle
        assert not handle.closed


class TestConcurrentResolve:

    def test_concurrent_first_resolve_opens_once(self, registry):
        registry.provision('acme')
        workers = 16
        barrier = threading.Barrier(workers)
        handles = []
        errors = []

        def worker():
            try:
                barrier.wait()
                handles.append(registry.resolve('acme'))
            except Exception as e:  # pragma: no cover - surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(handles) == workers
        assert all(h is handles[0] for h in handles)
        assert registry.stats()['opens_total'] == 1
        assert registry._open_locks == {}

    def test_open_locks_do_not_accumulate(self, registry, clock):
        for key in ('ghost', 'phantom'):
            with pytest.raises(TenantNotFoundError):
                registry.resolve(key)
        assert registry._open_locks == {}

        registry.provision('acme')
        registry.resolve('acme')
        clock.advance(61)
        assert registry.evict_expired() == ['acme']
        assert registry._open_locks == {}

    def test_concurrent_leases_are_counted(self, registry):
        registry.provision('acme')
        workers = 8
        inside = threading.Barrier(workers + 1)
        leave = threading.Event()

        def worker():
            with registry.lease('acme'):
                inside.wait()
                leave.wait(timeout=5)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        inside.wait()

        assert registry.stats()['stores'][0]['in_use'] == workers

        leave.set()
        for t in threads:
            t.join()
        assert registry.stats()['stores'][0]['in_use'] == 0


class TestStats:

    def test_stats_snapshot(self, registry, clock):
        registry.provision('acme')
        with registry.lease('acme'):
            clock.advance(5)
            stats = registry.stats()

        assert stats['open'] == 1
        assert stats['capacity'] == 2
        assert stats['idle_timeout'] == 60
        assert stats['stores'] == [{'tenant': 'acme', 'idle_seconds': 5.0, 'in_use': 1}]
