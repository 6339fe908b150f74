"""
Audit ledger for submission review transitions.

Every state change of a proof of life or recadastration appends one
SubmissionHistory row in the same transaction as the change itself.
Rows are never updated or deleted.
"""
from typing import List, Optional, Tuple

from app.database import utcnow
from app.models.admin_user import AdminUser
from app.models.submission import HistoryAction, SubmissionKind
from app.models.submission_history import SubmissionHistory
import logging

logger = logging.getLogger(__name__)


def append_entry(
    session,
    submission,
    action: HistoryAction,
    reviewed_by: Optional[str] = None,
    comments: Optional[str] = None,
    created_at=None,
) -> SubmissionHistory:
    """
    Append a history entry for a submission.

    Args:
        session: Tenant store session
        submission: ProofOfLife or Recadastration instance (must have an id)
        action: HistoryAction enum value
        reviewed_by: Reviewer id for APPROVED/REJECTED entries
        comments: Reviewer comments
        created_at: Transition timestamp (defaults to now)

    Returns:
        The new SubmissionHistory (flushed, not committed)
    """
    entry = SubmissionHistory(
        submission_kind=submission.kind.value,
        submission_id=submission.id,
        user_id=submission.user_id,
        event_id=submission.event_id,
        action=HistoryAction(action).value,
        reviewed_by=reviewed_by,
        comments=comments,
        created_at=created_at or utcnow(),
    )
    session.add(entry)
    session.flush()
    # Note: Caller is responsible for committing the session

    logger.info(
        f"[AUDIT] {entry.action} on {entry.submission_kind} {entry.submission_id}"
        f" (user {entry.user_id}, event {entry.event_id})"
    )
    return entry


def list_by_submission(session, kind: SubmissionKind, submission_id: str) -> List[SubmissionHistory]:
    """
    Ordered history of one submission.

    Ascending by created_at, ties broken by insertion sequence. Each call
    runs a fresh query.
    """
    return (
        session.query(SubmissionHistory)
        .filter(
            SubmissionHistory.submission_kind == SubmissionKind(kind).value,
            SubmissionHistory.submission_id == submission_id,
        )
        .order_by(SubmissionHistory.created_at.asc(), SubmissionHistory.id.asc())
        .all()
    )


def list_by_submission_with_reviewers(
    session, kind: SubmissionKind, submission_id: str
) -> List[Tuple[SubmissionHistory, Optional[str]]]:
    """
    Same ordering as list_by_submission, paired with the reviewer's name.

    The name is None for entries without a reviewer and for reviewers no
    longer present in the tenant store.
    """
    return (
        session.query(SubmissionHistory, AdminUser.name)
        .outerjoin(AdminUser, AdminUser.id == SubmissionHistory.reviewed_by)
        .filter(
            SubmissionHistory.submission_kind == SubmissionKind(kind).value,
            SubmissionHistory.submission_id == submission_id,
        )
        .order_by(SubmissionHistory.created_at.asc(), SubmissionHistory.id.asc())
        .all()
    )


def list_thread(session, kind: SubmissionKind, user_id: str, event_id: str) -> List[SubmissionHistory]:
    """
    Ordered history of every submission a user made for one event.

    Spans resubmissions: a rejected proof and the proof that replaced it
    appear in a single timeline.
    """
    return (
        session.query(SubmissionHistory)
        .filter(
            SubmissionHistory.submission_kind == SubmissionKind(kind).value,
            SubmissionHistory.user_id == user_id,
            SubmissionHistory.event_id == event_id,
        )
        .order_by(SubmissionHistory.created_at.asc(), SubmissionHistory.id.asc())
        .all()
    )


def last_entry(session, kind: SubmissionKind, submission_id: str) -> Optional[SubmissionHistory]:
    """Most recent history entry of a submission, or None."""
    return (
        session.query(SubmissionHistory)
        .filter(
            SubmissionHistory.submission_kind == SubmissionKind(kind).value,
            SubmissionHistory.submission_id == submission_id,
        )
        .order_by(SubmissionHistory.created_at.desc(), SubmissionHistory.id.desc())
        .first()
    )
