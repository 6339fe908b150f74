"""Event model - a proof-of-life or recadastration campaign with a date window."""
import enum
from sqlalchemy import Column, String, Text, Boolean, DateTime
from app.database import TenantBase, generate_id, utcnow


class EventType(enum.Enum):
    """Event type; doubles as the organization service that enables it."""
    PROOF_OF_LIFE = 'PROOF_OF_LIFE'
    RECADASTRATION = 'RECADASTRATION'


class Event(TenantBase):
    """Event model - submissions are always made against one event."""

    __tablename__ = 'events'

    id = Column(String(36), primary_key=True, default=generate_id)
    type = Column(String(20), nullable=False)  # PROOF_OF_LIFE, RECADASTRATION
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Event(id={self.id}, type='{self.type}', title='{self.title}')>"

    def is_open(self, now):
        """Check if the event accepts submissions at ``now`` (inclusive window)."""
        return self.active and self.start_date <= now <= self.end_date
