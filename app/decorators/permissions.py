"""
Permission decorators for role-based access control.

Identity comes from the upstream auth gateway through request headers
(``X-Actor-Id``, ``X-Actor-Role``); the middleware turns them into an
Actor on ``g.actor``. These decorators only enforce presence and role.
"""

from functools import wraps
from flask import g, current_app

from app.exceptions import AppError, BusinessLogicError, UnauthorizedError
from app.services.authorization_service import ActorRole


def require_actor(*allowed_roles):
    """
    Decorator to restrict access to authenticated actors with given roles.

    Usage:
        @require_actor()                      # any authenticated actor
        @require_actor('ORG_ADMIN', 'SUPER_ADMIN')

    Args:
        *allowed_roles: Role names (APP_USER, ORG_ADMIN, SUPER_ADMIN)

    Returns:
        Decorator function
    """
    allowed = {ActorRole(role) for role in allowed_roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            actor = g.get('actor')
            if actor is None:
                raise AppError('Authentication required', 401)

            if allowed and actor.role not in allowed:
                raise UnauthorizedError(f'Role {actor.role.value} cannot perform this action')

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_tenant(f):
    """
    Decorator: Require an organization context and hold its store.

    The tenant store is leased for the whole view so the registry never
    evicts it mid-request; the view reads it from ``g.tenant_store``.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        organization = g.get('organization')
        if organization is None:
            raise BusinessLogicError('X-Organization-Subdomain header is required')

        stores = current_app.extensions['tenant_stores']
        with stores.lease(organization.subdomain) as store:
            g.tenant_store = store
            try:
                return f(*args, **kwargs)
            finally:
                g.tenant_store = None

    return decorated_function


def super_admin_only(f):
    """Shortcut decorator for platform super-admin routes."""
    return require_actor('SUPER_ADMIN')(f)


def reviewer_only(f):
    """Shortcut decorator for organization admins and super-admins."""
    return require_actor('ORG_ADMIN', 'SUPER_ADMIN')(f)
