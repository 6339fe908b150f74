"""Recadastration model - periodic re-registration of beneficiary data."""
from sqlalchemy import Column, Index, JSON, text
from sqlalchemy.orm import relationship
from app.database import TenantBase
from app.models.submission import SubmissionKind, SubmissionMixin


class Recadastration(SubmissionMixin, TenantBase):
    """
    Recadastration submission.

    ``data`` carries the form payload (address, phone, marital status,
    dependents); ``documents`` maps document names to storage paths.
    """

    __tablename__ = 'recadastration'
    __table_args__ = (
        Index(
            'uq_recadastration_active',
            'user_id', 'event_id',
            unique=True,
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    kind = SubmissionKind.RECADASTRATION

    data = Column(JSON, nullable=False, default=dict)
    documents = Column(JSON, nullable=False, default=dict)

    # Relationships
    user = relationship('AppUser')
    event = relationship('Event')

    def __repr__(self):
        return f"<Recadastration(id={self.id}, user_id={self.user_id}, status='{self.status}')>"

    @property
    def artifacts(self):
        return dict(self.documents or {})

    def to_dict(self):
        data = self.review_fields()
        data['data'] = self.data
        data['artifacts'] = self.artifacts
        return data
