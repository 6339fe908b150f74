"""
Critical integration tests for tenant isolation.
These tests ensure that data is properly isolated between organizations.
"""

import os
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.database import utcnow
from app.exceptions import (
    BusinessLogicError, StoreOpenError, SubmissionNotFoundError, TenantNotFoundError,
    UnauthorizedError, UnauthorizedReviewerError,
)
from app.models import AppUser, Event, Organization, SubmissionKind
from app.services import organization_service, submission_service
from app.services.authorization_service import Actor, ActorRole

PROOF = SubmissionKind.PROOF_OF_LIFE


@pytest.fixture
def globex_data(stores, globex, seed_store):
    """Globex gets rows with the same ids as acme's."""
    store = stores.resolve('globex')
    now = utcnow()
    campaign = Event(
        id='E1', type='PROOF_OF_LIFE', title='Globex campaign', active=True,
        start_date=now - timedelta(days=1), end_date=now + timedelta(days=30),
    )
    seed_store(
        store,
        AppUser(id='U1', name='Other person', cpf='111.111.111-11', active=True, can_proof_of_life=True),
        campaign,
    )
    return store


class TestStoreIsolation:

    def test_each_organization_has_its_own_file(self, stores, acme, globex):
        assert stores.store_path('acme') != stores.store_path('globex')
        assert os.path.isfile(stores.store_path('acme'))
        assert os.path.isfile(stores.store_path('globex'))

    def test_submissions_are_isolated(self, acme_store, acme, acme_data, globex_data, user_actor, artifacts):
        submission = submission_service.create_submission(
            acme_store, acme, user_actor, PROOF, user_id='U1', event_id='E1', artifacts=artifacts
        )

        assert [s.id for s in submission_service.list_submissions(acme_store, PROOF)] == [submission.id]
        assert submission_service.list_submissions(globex_data, PROOF) == []
        with pytest.raises(SubmissionNotFoundError):
            submission_service.get_submission(globex_data, PROOF, submission.id)

    def test_same_user_id_in_both_tenants(self, acme_store, acme_data, globex_data):
        with acme_store.session() as session:
            acme_user = session.get(AppUser, 'U1')
        with globex_data.session() as session:
            globex_user = session.get(AppUser, 'U1')

        assert acme_user.name == 'Maria Souza'
        assert globex_user.name == 'Other person'

    def test_admin_cannot_review_other_tenant(self, acme_data, globex, globex_data, artifacts):
        globex_user = Actor('U1', ActorRole.APP_USER, 'globex')
        submission = submission_service.create_submission(
            globex_data, globex, globex_user, PROOF, user_id='U1', event_id='E1', artifacts=artifacts
        )

        acme_admin = Actor('A1', ActorRole.ORG_ADMIN, 'acme')
        with pytest.raises(UnauthorizedReviewerError):
            submission_service.review_submission(globex_data, acme_admin, PROOF, submission.id, 'APPROVED')

    def test_registry_tables_not_in_tenant_store(self, acme_store):
        with pytest.raises(OperationalError):
            with acme_store.session() as session:
                session.query(Organization).all()


class TestOrganizationRegistry:

    def test_register_provisions_store(self, stores):
        organization = organization_service.register_organization(
            stores, name='Initech', subdomain='initech', services=['RECADASTRATION']
        )

        assert organization.services == ['RECADASTRATION']
        assert stores.store_exists('initech')
        assert organization_service.get_active_organization(stores, 'initech').id == organization.id

    def test_duplicate_subdomain(self, stores, acme):
        with pytest.raises(BusinessLogicError) as exc_info:
            organization_service.register_organization(stores, name='Acme 2', subdomain='acme', services=[])
        assert exc_info.value.status_code == 409

    def test_failed_provision_leaves_no_organization(self, stores, tmp_path, monkeypatch):
        blocked = tmp_path / 'blocked'
        blocked.write_text('not a directory')
        monkeypatch.setattr(stores, 'organizations_dir', str(blocked))

        with pytest.raises(StoreOpenError):
            organization_service.register_organization(
                stores, name='Initech', subdomain='initech', services=['PROOF_OF_LIFE']
            )
        assert organization_service.get_organization_by_subdomain(stores, 'initech') is None

        # Once storage is available again the same subdomain can be registered
        blocked.unlink()
        organization = organization_service.register_organization(
            stores, name='Initech', subdomain='initech', services=['PROOF_OF_LIFE']
        )
        assert stores.store_exists('initech')
        assert organization_service.get_active_organization(stores, 'initech').id == organization.id

    @pytest.mark.parametrize('subdomain', ['Acme', '../x', ''])
    def test_invalid_subdomain(self, stores, subdomain):
        with pytest.raises(BusinessLogicError):
            organization_service.register_organization(stores, name='Bad', subdomain=subdomain, services=[])

    def test_unknown_service(self, stores):
        with pytest.raises(BusinessLogicError):
            organization_service.register_organization(stores, name='Bad', subdomain='bad', services=['PAYROLL'])
        assert not stores.store_exists('bad')

    def test_unknown_organization(self, stores):
        with pytest.raises(TenantNotFoundError):
            organization_service.get_active_organization(stores, 'nobody')

    def test_inactive_organization(self, stores, acme):
        with stores.resolve_registry().session() as session:
            session.query(Organization).filter_by(subdomain='acme').update({'active': False})
            session.commit()

        with pytest.raises(UnauthorizedError):
            organization_service.get_active_organization(stores, 'acme')
