"""Organization lookups against the registry store."""
import logging
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError

from app.exceptions import BusinessLogicError, TenantNotFoundError, UnauthorizedError
from app.models import EventType, Organization
from app.services.tenant_store_registry import is_valid_tenant_key

logger = logging.getLogger(__name__)

VALID_SERVICES = {t.value for t in EventType}


def get_organization_by_subdomain(stores, subdomain: str) -> Optional[Organization]:
    """Fetch the registry record for a tenant key, or None."""
    if not is_valid_tenant_key(subdomain):
        return None
    with stores.resolve_registry().session() as session:
        return session.query(Organization).filter_by(subdomain=subdomain).first()


def get_active_organization(stores, subdomain: str) -> Organization:
    """
    Resolve a tenant key to its active organization.

    Raises:
        TenantNotFoundError: unknown subdomain
        UnauthorizedError: organization is inactive
    """
    organization = get_organization_by_subdomain(stores, subdomain)
    if organization is None:
        raise TenantNotFoundError(subdomain)
    if not organization.active:
        raise UnauthorizedError('Organization is inactive')
    return organization


def register_organization(
    stores,
    name: str,
    subdomain: str,
    services: Iterable[str],
    **fields,
) -> Organization:
    """
    Provision a tenant store and insert its organization into the registry.

    The store is provisioned before the registry row is written, so a
    failed provision leaves nothing behind and the call can be retried.

    Args:
        stores: TenantStoreRegistry
        name: Display name
        subdomain: Tenant key
        services: Enabled services (PROOF_OF_LIFE, RECADASTRATION)
        **fields: Optional registry columns (cnpj, state, city, email, phone)

    Returns:
        The new Organization (detached)

    Raises:
        BusinessLogicError: invalid subdomain or services, subdomain in use (409)
        StoreOpenError: the tenant store could not be created
    """
    if not is_valid_tenant_key(subdomain):
        raise BusinessLogicError(f'Invalid subdomain: {subdomain}')

    services = sorted(set(services))
    unknown = [s for s in services if s not in VALID_SERVICES]
    if unknown:
        raise BusinessLogicError(f"Unknown services: {', '.join(unknown)}")

    if get_organization_by_subdomain(stores, subdomain) is not None:
        raise BusinessLogicError(f'Subdomain already in use: {subdomain}', status_code=409)

    stores.provision(subdomain)

    with stores.resolve_registry().session() as session:
        organization = Organization(name=name, subdomain=subdomain, services=services, **fields)
        session.add(organization)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise BusinessLogicError(f'Subdomain already in use: {subdomain}', status_code=409) from e

    logger.info(f"[ORGANIZATION] Registered '{subdomain}' with services {services}")
    return organization
