"""Organization model - each benefit-paying organization (tenant) on the platform."""
from sqlalchemy import Column, String, Boolean, DateTime, JSON
from app.database import RegistryBase, generate_id, utcnow


class Organization(RegistryBase):
    """Organization model - registry record pointing at a tenant store."""

    __tablename__ = 'organizations'

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    subdomain = Column(String(63), nullable=False, unique=True)  # tenant key
    cnpj = Column(String(18), nullable=True)
    state = Column(String(2), nullable=True)
    city = Column(String(120), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    logo_url = Column(String(500), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    services = Column(JSON, nullable=False, default=list)  # ['PROOF_OF_LIFE', 'RECADASTRATION']
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Organization(id={self.id}, subdomain='{self.subdomain}', name='{self.name}')>"

    def has_service(self, service):
        return service in (self.services or [])
