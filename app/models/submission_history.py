"""
Submission history model - append-only audit trail of review transitions.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from app.database import TenantBase, utcnow


class SubmissionHistory(TenantBase):
    """
    One immutable entry per state transition of a submission.

    Entries are never updated or deleted. ``id`` is an autoincrement
    sequence so entries written within the same clock tick keep their
    insertion order.
    """
    __tablename__ = 'submission_history'
    __table_args__ = (
        Index('ix_submission_history_submission', 'submission_kind', 'submission_id'),
        Index('ix_submission_history_thread', 'submission_kind', 'user_id', 'event_id'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_kind = Column(String(20), nullable=False)  # PROOF_OF_LIFE, RECADASTRATION
    submission_id = Column(String(36), nullable=False)
    user_id = Column(String(36), nullable=False)
    event_id = Column(String(36), nullable=False)
    action = Column(String(20), nullable=False)  # SUBMITTED, RESUBMITTED, APPROVED, REJECTED
    reviewed_by = Column(String(36), nullable=True)
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<SubmissionHistory {self.action} on {self.submission_kind} {self.submission_id} at {self.created_at}>"

    def to_dict(self):
        return {
            'id': self.id,
            'submission_kind': self.submission_kind,
            'submission_id': self.submission_id,
            'user_id': self.user_id,
            'event_id': self.event_id,
            'action': self.action,
            'reviewed_by': self.reviewed_by,
            'comments': self.comments,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
