"""
Submission review state machine - Multi-Tenant.

Handles creation and review of proof-of-life and recadastration
submissions inside one tenant store:

    (none) --create--> PENDING --review--> APPROVED (terminal)
                          \\-----review--> REJECTED --create--> PENDING (resubmission)

Every transition writes a SubmissionHistory entry in the same transaction.
Status fields are only ever written here.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy.exc import IntegrityError

from app.database import utcnow
from app.exceptions import (
    BusinessLogicError, DuplicateActiveSubmissionError, EventNotEligibleError,
    InvalidTransitionError, SubmissionNotFoundError, UnauthorizedCreatorError,
    UnauthorizedReviewerError,
)
from app.models import (
    SUBMISSION_MODELS, AdminUser, AppUser, Event, HistoryAction, ProofOfLife,
    REVIEW_DECISIONS, SubmissionKind, SubmissionStatus,
)
from app.services import audit_service
from app.services.authorization_service import Actor, can_create, can_review

logger = logging.getLogger(__name__)

Artifacts = Union[Sequence[str], Dict[str, str]]


def _model_for(kind):
    return SUBMISSION_MODELS[SubmissionKind(kind)]


def normalize_path(path) -> str:
    """Normalize an artifact reference produced by the upload layer."""
    if not isinstance(path, str) or not path.strip():
        raise BusinessLogicError('Artifact references must be non-empty strings')
    return path.strip().replace('\\', '/')


def _check_artifacts_type(artifacts) -> None:
    if not isinstance(artifacts, (dict, list, tuple)):
        raise BusinessLogicError('Artifacts must be an object or a list of file references')


def _proof_of_life_artifacts(artifacts: Artifacts) -> Dict[str, str]:
    fields = ProofOfLife.ARTIFACT_FIELDS
    _check_artifacts_type(artifacts)
    if isinstance(artifacts, dict):
        missing = [f for f in fields if not artifacts.get(f)]
        if missing:
            raise BusinessLogicError(f"Missing proof of life artifacts: {', '.join(missing)}")
        return {f: normalize_path(artifacts[f]) for f in fields}

    artifacts = list(artifacts)
    if len(artifacts) != len(fields):
        raise BusinessLogicError(
            f'Proof of life requires {len(fields)} artifacts '
            f'({", ".join(fields)}), got {len(artifacts)}'
        )
    return {f: normalize_path(path) for f, path in zip(fields, artifacts)}


def _recadastration_documents(artifacts: Artifacts) -> Dict[str, str]:
    _check_artifacts_type(artifacts)
    if isinstance(artifacts, dict):
        documents = {str(name): normalize_path(path) for name, path in artifacts.items()}
    else:
        documents = {f'document_{i}': normalize_path(path) for i, path in enumerate(artifacts, start=1)}
    if not documents:
        raise BusinessLogicError('Recadastration requires at least one document')
    return documents


def _check_organization(organization, kind: SubmissionKind) -> None:
    if organization is None or not organization.active:
        raise EventNotEligibleError('Organization not found or inactive')
    if not organization.has_service(kind.value):
        raise EventNotEligibleError(f'{kind.value} service not available for this organization')


def _latest_for(session, model, user_id: str, event_id: str):
    return (
        session.query(model)
        .filter(model.user_id == user_id, model.event_id == event_id)
        .order_by(model.created_at.desc())
        .first()
    )


def create_submission(
    store,
    organization,
    actor: Actor,
    kind,
    user_id: str,
    event_id: str,
    artifacts: Artifacts,
    data: Optional[Dict[str, Any]] = None,
    now=None,
):
    """
    Create a submission in PENDING state (tenant-scoped).

    Steps:
    1. Organization must be active with the matching service enabled
    2. Event must exist, match the kind, be active and open at ``now``
    3. Actor must be the (active, permitted) user
    4. No PENDING or APPROVED submission may exist for (user, event)
    5. Insert + SUBMITTED history entry, or RESUBMITTED after a rejection

    Args:
        store: StoreHandle of the organization's tenant store
        organization: Organization record from the registry
        actor: Calling identity
        kind: SubmissionKind
        user_id: Owning AppUser id
        event_id: Target Event id
        artifacts: Artifact paths (list or name -> path mapping)
        data: Form payload (recadastration only)
        now: Transition timestamp (defaults to now)

    Returns:
        The created submission (detached)

    Raises:
        EventNotEligibleError, UnauthorizedCreatorError,
        DuplicateActiveSubmissionError, BusinessLogicError
    """
    kind = SubmissionKind(kind)
    model = _model_for(kind)
    now = now or utcnow()

    _check_organization(organization, kind)

    if kind is SubmissionKind.PROOF_OF_LIFE:
        fields = _proof_of_life_artifacts(artifacts)
    else:
        if not isinstance(data, dict) or not data:
            raise BusinessLogicError('Recadastration data is required')
        fields = {'data': data, 'documents': _recadastration_documents(artifacts)}

    with store.session() as session:
        event = session.get(Event, event_id)
        if event is None or event.type != kind.value:
            raise EventNotEligibleError('Event not found')

        user = session.get(AppUser, user_id)
        if user is None or not can_create(actor, user, event):
            raise UnauthorizedCreatorError()

        if not event.active:
            raise EventNotEligibleError('Event is not active')
        if not event.is_open(now):
            raise EventNotEligibleError('Event is not within valid date range')

        previous = _latest_for(session, model, user_id, event_id)
        if previous is not None and previous.status != SubmissionStatus.REJECTED.value:
            raise DuplicateActiveSubmissionError(user_id, event_id, previous.status)

        submission = model(
            user_id=user_id,
            event_id=event_id,
            status=SubmissionStatus.PENDING.value,
            resubmission_of_id=previous.id if previous is not None else None,
            created_at=now,
            updated_at=now,
            **fields,
        )
        action = HistoryAction.RESUBMITTED if previous is not None else HistoryAction.SUBMITTED

        try:
            session.add(submission)
            session.flush()
            audit_service.append_entry(session, submission, action, created_at=now)
            session.commit()
        except IntegrityError as e:
            # Lost a race against a concurrent create for the same (user, event)
            session.rollback()
            logger.warning(f"[SUBMISSION] Concurrent create rejected for user {user_id}, event {event_id}: {e.orig}")
            raise DuplicateActiveSubmissionError(user_id, event_id, SubmissionStatus.PENDING.value) from e

    logger.info(f"[SUBMISSION] {action.value} {kind.value} {submission.id} in '{store.key}'")
    return submission


def review_submission(
    store,
    actor: Actor,
    kind,
    submission_id: str,
    decision,
    comments: Optional[str] = None,
    now=None,
):
    """
    Apply a reviewer decision (APPROVED or REJECTED) to a PENDING submission.

    The status change is a conditional update on ``status = 'PENDING'``:
    when two reviews race, the loser updates zero rows and gets
    InvalidTransitionError instead of overwriting the winner.

    Raises:
        UnauthorizedReviewerError, SubmissionNotFoundError, InvalidTransitionError
    """
    kind = SubmissionKind(kind)
    model = _model_for(kind)
    now = now or utcnow()

    try:
        decision = SubmissionStatus(decision)
    except ValueError:
        raise InvalidTransitionError(submission_id, target=str(decision))
    if decision not in REVIEW_DECISIONS:
        raise InvalidTransitionError(submission_id, target=decision.value)

    if not can_review(actor, store.key):
        raise UnauthorizedReviewerError()

    with store.session() as session:
        if actor.is_org_admin:
            admin = session.get(AdminUser, actor.id)
            if admin is None or not admin.is_admin():
                raise UnauthorizedReviewerError()

        submission = session.get(model, submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        if not submission.is_reviewable:
            raise InvalidTransitionError(submission_id, submission.status, decision.value)

        updated = (
            session.query(model)
            .filter(model.id == submission_id, model.status == SubmissionStatus.PENDING.value)
            .update(
                {
                    model.status: decision.value,
                    model.reviewed_by: actor.id,
                    model.reviewed_at: now,
                    model.comments: comments or None,
                    model.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        if updated != 1:
            session.rollback()
            session.refresh(submission)
            logger.info(f"[REVIEW] Lost review race on {kind.value} {submission_id} (now {submission.status})")
            raise InvalidTransitionError(submission_id, submission.status, decision.value)

        session.refresh(submission)
        audit_service.append_entry(
            session,
            submission,
            HistoryAction.for_decision(decision),
            reviewed_by=actor.id,
            comments=comments or None,
            created_at=now,
        )
        session.commit()

    logger.info(f"[REVIEW] {kind.value} {submission_id} {decision.value} by {actor.id} in '{store.key}'")
    return submission


def get_submission(store, kind, submission_id: str):
    """Fetch one submission or raise SubmissionNotFoundError."""
    model = _model_for(kind)
    with store.session() as session:
        submission = session.get(model, submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        return submission


def list_submissions(
    store,
    kind,
    status=None,
    user_id: Optional[str] = None,
    event_id: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List:
    """List submissions newest first, with optional filters."""
    model = _model_for(kind)
    with store.session() as session:
        query = session.query(model)

        if status:
            try:
                status = SubmissionStatus(status)
            except ValueError:
                raise BusinessLogicError(f'Unknown status filter: {status}')
            query = query.filter(model.status == status.value)

        if user_id:
            query = query.filter(model.user_id == user_id)

        if event_id:
            query = query.filter(model.event_id == event_id)

        query = query.order_by(model.created_at.desc())
        query = query.limit(limit).offset(offset)

        return query.all()


def get_history(store, kind, submission_id: str) -> List:
    """Ordered audit trail of one submission."""
    kind = SubmissionKind(kind)
    model = _model_for(kind)
    with store.session() as session:
        if session.get(model, submission_id) is None:
            raise SubmissionNotFoundError(submission_id)
        return audit_service.list_by_submission(session, kind, submission_id)


def get_history_with_reviewers(store, kind, submission_id: str) -> List:
    """Ordered audit trail as (entry, reviewer_name) pairs."""
    kind = SubmissionKind(kind)
    model = _model_for(kind)
    with store.session() as session:
        if session.get(model, submission_id) is None:
            raise SubmissionNotFoundError(submission_id)
        return audit_service.list_by_submission_with_reviewers(session, kind, submission_id)


def get_thread(store, kind, user_id: str, event_id: str) -> List:
    """Ordered audit trail across all resubmissions of a user/event pair."""
    with store.session() as session:
        return audit_service.list_thread(session, SubmissionKind(kind), user_id, event_id)
