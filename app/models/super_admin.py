"""SuperAdmin model - platform operators with access to every organization."""
from sqlalchemy import Column, String, Boolean, DateTime
from werkzeug.security import generate_password_hash, check_password_hash
from app.database import RegistryBase, generate_id, utcnow


class SuperAdmin(RegistryBase):
    """Platform super-admin (registry scope)."""
    __tablename__ = 'super_admins'

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<SuperAdmin id={self.id} email={self.email}>'
