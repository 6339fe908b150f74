"""AppUser model - beneficiaries who submit proof of life and recadastration."""
from sqlalchemy import Column, String, Boolean, DateTime, Date
from werkzeug.security import generate_password_hash, check_password_hash
from app.database import TenantBase, generate_id, utcnow


class AppUser(TenantBase):
    """AppUser model - one beneficiary inside an organization's store."""

    __tablename__ = 'app_users'

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    cpf = Column(String(14), nullable=False, unique=True)  # document id, unique per tenant
    email = Column(String(255), nullable=True, unique=True)
    password_hash = Column(String(255), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    # Permission flags
    can_proof_of_life = Column(Boolean, nullable=False, default=False)
    can_recadastration = Column(Boolean, nullable=False, default=False)

    # Benefit metadata
    phone = Column(String(50), nullable=True)
    birth_date = Column(Date, nullable=True)
    registration_number = Column(String(50), nullable=True)
    benefit_type = Column(String(20), nullable=True)  # APOSENTADORIA, PENSAO
    benefit_start_date = Column(Date, nullable=True)
    benefit_end_date = Column(Date, nullable=True)
    legal_representative = Column(String(200), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def has_permission_for(self, event_type):
        """Check the permission flag matching an event type."""
        if event_type == 'PROOF_OF_LIFE':
            return bool(self.can_proof_of_life)
        if event_type == 'RECADASTRATION':
            return bool(self.can_recadastration)
        return False

    def __repr__(self):
        return f"<AppUser(id={self.id}, cpf='{self.cpf}')>"
