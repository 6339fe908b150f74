"""
Admin Blueprint - Tenant store operations for platform super-admins.

Routes:
- GET  /admin/stores - Cached store handles and counters
- POST /admin/stores/<tenant_key>/release - Close one tenant's handle
- POST /admin/stores/evict - Evict handles idle past the timeout
"""
import logging

from flask import Blueprint, current_app, g, jsonify

from app.decorators.permissions import super_admin_only
from app.services.tenant_store_registry import is_valid_tenant_key
from app.exceptions import TenantNotFoundError

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def _stores():
    return current_app.extensions['tenant_stores']


@admin_bp.route('/stores', methods=['GET'])
@super_admin_only
def list_stores():
    """Snapshot of the tenant store cache."""
    return jsonify({'status': 'success', **_stores().stats()})


@admin_bp.route('/stores/<tenant_key>/release', methods=['POST'])
@super_admin_only
def release_store(tenant_key):
    """
    Force-close a tenant's cached handle.

    Used before maintenance on a store file. The next request for the
    tenant reopens it.
    """
    if not is_valid_tenant_key(tenant_key):
        raise TenantNotFoundError(tenant_key)

    released = _stores().release(tenant_key)
    logger.info(f"[ADMIN] {g.actor.id} released store '{tenant_key}' (was cached: {released})")
    return jsonify({'status': 'success', 'tenant': tenant_key, 'released': released})


@admin_bp.route('/stores/evict', methods=['POST'])
@super_admin_only
def evict_stores():
    evicted = _stores().evict_expired()
    logger.info(f"[ADMIN] {g.actor.id} evicted {len(evicted)} idle store(s)")
    return jsonify({'status': 'success', 'evicted': evicted})
