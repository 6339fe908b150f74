"""Shared submission vocabulary: statuses, history actions and common columns."""
import enum
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import declared_attr

from app.database import generate_id, utcnow


class SubmissionStatus(enum.Enum):
    """
    Review status of a proof-of-life or recadastration submission.

    SUBMITTED is an alias of PENDING: older call sites used both words for
    "awaiting review", so both names resolve to the same stored value.
    """
    PENDING = 'PENDING'
    SUBMITTED = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized == 'SUBMITTED':
                return cls.PENDING
            if normalized in cls.__members__:
                return cls.__members__[normalized]
        return None

    @property
    def is_active(self):
        """Awaiting review."""
        return self is SubmissionStatus.PENDING

    @property
    def is_terminal(self):
        return self is SubmissionStatus.APPROVED


# Decisions a reviewer may apply to an active submission
REVIEW_DECISIONS = (SubmissionStatus.APPROVED, SubmissionStatus.REJECTED)


class HistoryAction(enum.Enum):
    """Audit trail actions."""
    SUBMITTED = 'SUBMITTED'
    RESUBMITTED = 'RESUBMITTED'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'

    @classmethod
    def for_decision(cls, status):
        return cls(SubmissionStatus(status).value)


class SubmissionKind(enum.Enum):
    """Submission families; each maps to the event type/service it belongs to."""
    PROOF_OF_LIFE = 'PROOF_OF_LIFE'
    RECADASTRATION = 'RECADASTRATION'


class SubmissionMixin:
    """Columns shared by every reviewable submission table."""

    id = Column(String(36), primary_key=True, default=generate_id)
    status = Column(String(20), nullable=False, default=SubmissionStatus.PENDING.value)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(String(36), nullable=True)  # org admin or super-admin id
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @declared_attr
    def user_id(cls):
        return Column(String(36), ForeignKey('app_users.id'), nullable=False, index=True)

    @declared_attr
    def event_id(cls):
        return Column(String(36), ForeignKey('events.id'), nullable=False, index=True)

    @declared_attr
    def resubmission_of_id(cls):
        # Previous REJECTED submission of the same user/event thread
        return Column(String(36), ForeignKey(f'{cls.__tablename__}.id'), nullable=True)

    @property
    def status_enum(self):
        return SubmissionStatus(self.status)

    @property
    def is_reviewable(self):
        return self.status_enum.is_active

    def review_fields(self):
        return {
            'id': self.id,
            'kind': self.kind.value,
            'user_id': self.user_id,
            'event_id': self.event_id,
            'status': self.status,
            'reviewed_by': self.reviewed_by,
            'reviewed_at': self.reviewed_at.isoformat() if self.reviewed_at else None,
            'comments': self.comments,
            'resubmission_of_id': self.resubmission_of_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
