"""AdminUser model - organization administrators who review submissions."""
from sqlalchemy import Column, String, Boolean, DateTime
from werkzeug.security import generate_password_hash, check_password_hash
from app.database import TenantBase, generate_id, utcnow


class AdminUser(TenantBase):
    """Administrator of one organization (lives in the tenant store)."""

    __tablename__ = 'admin_users'

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    cpf = Column(String(14), nullable=True, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default='ADMIN')
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        return check_password_hash(self.password_hash, password)

    def is_admin(self):
        return self.active and self.role == 'ADMIN'

    def __repr__(self):
        return f'<AdminUser id={self.id} email={self.email}>'
