"""ProofOfLife model - photo evidence that a beneficiary is alive."""
from sqlalchemy import Column, Index, String, text
from sqlalchemy.orm import relationship
from app.database import TenantBase
from app.models.submission import SubmissionKind, SubmissionMixin


class ProofOfLife(SubmissionMixin, TenantBase):
    """
    Proof of life submission.

    Artifact columns hold opaque storage paths produced by the upload
    layer. At most one PENDING row may exist per (user, event); the partial
    unique index enforces it even if two creates race.
    """

    __tablename__ = 'proof_of_life'
    __table_args__ = (
        Index(
            'uq_proof_of_life_active',
            'user_id', 'event_id',
            unique=True,
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    kind = SubmissionKind.PROOF_OF_LIFE
    ARTIFACT_FIELDS = ('selfie_url', 'document_front_url', 'document_back_url', 'cpf_url')

    selfie_url = Column(String(500), nullable=False)
    document_front_url = Column(String(500), nullable=False)
    document_back_url = Column(String(500), nullable=False)
    cpf_url = Column(String(500), nullable=False)

    # Relationships
    user = relationship('AppUser')
    event = relationship('Event')

    def __repr__(self):
        return f"<ProofOfLife(id={self.id}, user_id={self.user_id}, status='{self.status}')>"

    @property
    def artifacts(self):
        return {field: getattr(self, field) for field in self.ARTIFACT_FIELDS}

    def to_dict(self):
        data = self.review_fields()
        data['artifacts'] = self.artifacts
        return data
