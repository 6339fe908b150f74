import pytest
from datetime import timedelta

from app import create_app
from app.database import utcnow
from app.models import AdminUser, AppUser, Event
from app.services import organization_service
from app.services.authorization_service import Actor, ActorRole
from app.services.tenant_store_registry import TenantStoreRegistry


class FakeClock:
    """Manually advanced monotonic clock for idle-timeout tests."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def seed(store, *objects):
    """Insert objects into a store and commit."""
    with store.session() as session:
        session.add_all(objects)
        session.commit()
    return objects


def actor_headers(actor_id, role, subdomain='acme'):
    headers = {'X-Actor-Id': actor_id, 'X-Actor-Role': role}
    if subdomain:
        headers['X-Organization-Subdomain'] = subdomain
    return headers


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(tmp_path, clock):
    """Standalone registry with a small capacity and a fake clock."""
    registry = TenantStoreRegistry(
        organizations_dir=str(tmp_path / 'organizations'),
        registry_path=str(tmp_path / 'main.db'),
        capacity=2,
        idle_timeout=60,
        busy_timeout=5.0,
        sweep_interval=30,
        clock=clock,
    )
    yield registry
    registry.release_all()


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application instance for testing."""
    app = create_app('config.TestConfig', {
        'DATA_DIR': str(tmp_path),
        'ORGANIZATIONS_DIR': str(tmp_path / 'organizations'),
    })
    yield app
    app.extensions['tenant_stores'].release_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def stores(app):
    return app.extensions['tenant_stores']


@pytest.fixture
def acme(stores):
    """Organization 'acme' with both services enabled."""
    return organization_service.register_organization(
        stores, name='Acme Pensions', subdomain='acme',
        services=['PROOF_OF_LIFE', 'RECADASTRATION'],
    )


@pytest.fixture
def globex(stores):
    """Second organization for isolation tests (proof of life only)."""
    return organization_service.register_organization(
        stores, name='Globex Retirement', subdomain='globex', services=['PROOF_OF_LIFE'],
    )


@pytest.fixture
def acme_store(stores, acme):
    return stores.resolve('acme')


@pytest.fixture
def acme_data(acme_store):
    """User U1, admin A1, proof of life event E1 and recadastration event R1."""
    now = utcnow()
    user = AppUser(
        id='U1', name='Maria Souza', cpf='111.111.111-11', active=True,
        can_proof_of_life=True, can_recadastration=True,
    )
    admin = AdminUser(id='A1', name='Admin Acme', email='admin@acme.test', role='ADMIN', active=True)
    admin.set_password('secret123')
    proof_event = Event(
        id='E1', type='PROOF_OF_LIFE', title='Proof of life 2024', active=True,
        start_date=now - timedelta(days=1), end_date=now + timedelta(days=30),
    )
    recadastration_event = Event(
        id='R1', type='RECADASTRATION', title='Recadastration 2024', active=True,
        start_date=now - timedelta(days=1), end_date=now + timedelta(days=30),
    )
    seed(acme_store, user, admin, proof_event, recadastration_event)
    return {'user': user, 'admin': admin, 'event': proof_event, 'recadastration_event': recadastration_event}


@pytest.fixture
def user_actor():
    return Actor(id='U1', role=ActorRole.APP_USER, tenant_key='acme')


@pytest.fixture
def admin_actor():
    return Actor(id='A1', role=ActorRole.ORG_ADMIN, tenant_key='acme')


@pytest.fixture
def super_admin_actor():
    return Actor(id='S1', role=ActorRole.SUPER_ADMIN)


@pytest.fixture
def artifacts():
    return [
        'uploads/acme/U1/selfie.jpg',
        'uploads/acme/U1/document_front.jpg',
        'uploads/acme/U1/document_back.jpg',
        'uploads/acme/U1/cpf.jpg',
    ]


@pytest.fixture
def seed_store():
    return seed


@pytest.fixture
def headers():
    return actor_headers


@pytest.fixture
def make_event(acme_store):
    """Factory for extra events in the acme store."""
    def _make_event(event_id, type='PROOF_OF_LIFE', active=True, start=None, end=None):
        now = utcnow()
        event = Event(
            id=event_id, type=type, title=f'Event {event_id}', active=active,
            start_date=start or now - timedelta(days=1),
            end_date=end or now + timedelta(days=30),
        )
        seed(acme_store, event)
        return event
    return _make_event
