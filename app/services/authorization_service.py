"""
Authorization guard for submission operations.

Pure decision functions: no queries, no side effects. The caller loads
the user/event/tenant it wants to check and passes them in.
"""
import enum
from dataclasses import dataclass
from typing import Optional


class ActorRole(enum.Enum):
    """Who is calling."""
    APP_USER = 'APP_USER'        # beneficiary
    ORG_ADMIN = 'ORG_ADMIN'      # administrator of one organization
    SUPER_ADMIN = 'SUPER_ADMIN'  # platform operator


@dataclass(frozen=True)
class Actor:
    """Authenticated identity as established by the upstream auth layer."""
    id: str
    role: ActorRole
    tenant_key: Optional[str] = None

    @property
    def is_super_admin(self):
        return self.role is ActorRole.SUPER_ADMIN

    @property
    def is_org_admin(self):
        return self.role is ActorRole.ORG_ADMIN


def can_create(actor: Actor, user, event) -> bool:
    """
    Check if ``actor`` may submit for ``event`` on behalf of ``user``.

    Only the beneficiary themself may submit, the account must be active
    and hold the permission flag matching the event type.
    """
    if actor is None or user is None or event is None:
        return False
    if actor.role is not ActorRole.APP_USER:
        return False
    if actor.id != user.id:
        return False
    if not user.active:
        return False
    return user.has_permission_for(event.type)


def can_review(actor: Actor, tenant_key: str) -> bool:
    """
    Check if ``actor`` may review submissions of the tenant ``tenant_key``.

    Organization admins are scoped to their own tenant; super-admins may
    review in any tenant.
    """
    if actor is None:
        return False
    if actor.is_super_admin:
        return True
    return actor.is_org_admin and actor.tenant_key is not None and actor.tenant_key == tenant_key
