"""Middleware for actor identity and organization (tenant) context."""
import logging

from flask import g, request, current_app

from app.exceptions import AppError
from app.services import organization_service
from app.services.authorization_service import Actor, ActorRole

logger = logging.getLogger(__name__)

TENANT_HEADER = 'X-Organization-Subdomain'
ACTOR_ID_HEADER = 'X-Actor-Id'
ACTOR_ROLE_HEADER = 'X-Actor-Role'


def actor_from_headers(headers, tenant_key=None):
    """
    Build the calling Actor from trusted gateway headers.

    Returns None when no identity was forwarded.
    """
    actor_id = (headers.get(ACTOR_ID_HEADER) or '').strip()
    role_name = (headers.get(ACTOR_ROLE_HEADER) or '').strip().upper()
    if not actor_id or not role_name:
        return None
    try:
        role = ActorRole(role_name)
    except ValueError:
        raise AppError(f'Unknown actor role: {role_name}', 401)

    # Super-admins are not bound to one organization
    scope = None if role is ActorRole.SUPER_ADMIN else tenant_key
    return Actor(id=actor_id, role=role, tenant_key=scope)


def load_request_context():
    """
    Load actor and organization into g (Flask's per-request global).

    Called before each request. Sets g.actor and g.organization; the
    tenant store itself is leased by the require_tenant decorator.
    Raises TenantNotFoundError for an unknown subdomain.
    """
    g.actor = None
    g.organization = None
    g.tenant_store = None

    subdomain = (request.headers.get(TENANT_HEADER) or '').strip().lower()
    g.actor = actor_from_headers(request.headers, tenant_key=subdomain or None)

    if not subdomain:
        return

    stores = current_app.extensions['tenant_stores']
    g.organization = organization_service.get_active_organization(stores, subdomain)


def sweep_idle_stores(exception=None):
    """Teardown hook: evict idle tenant stores now and then."""
    stores = current_app.extensions.get('tenant_stores')
    if stores is None:
        return
    try:
        evicted = stores.sweep()
        if evicted:
            logger.info(f"[STORES] Idle sweep evicted: {', '.join(evicted)}")
    except Exception as e:
        # Eviction is best-effort and must not fail the request
        logger.error(f"[STORES] Idle sweep failed: {e}")
