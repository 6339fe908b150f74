"""
Shared JSON views for submission blueprints (proof of life, recadastration).

Each blueprint registers the same five routes bound to its SubmissionKind.
Views stay thin: they read the request, call submission_service and
serialize; errors propagate to the app's AppError handler.
"""
from flask import g, jsonify, request

from app.exceptions import BusinessLogicError, SubmissionNotFoundError
from app.decorators.permissions import require_actor, require_tenant, reviewer_only
from app.services import submission_service
from app.services.authorization_service import can_review

MAX_PAGE_SIZE = 500


def _json_body():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise BusinessLogicError('Request body must be a JSON object')
    return payload


def _ensure_visible(submission):
    """
    App users only see their own submissions; reviewers see the tenant's.

    Hidden submissions are reported as missing so ids do not leak.
    """
    actor = g.actor
    if can_review(actor, g.tenant_store.key):
        return
    if submission.user_id != actor.id:
        raise SubmissionNotFoundError(submission.id)


def register_submission_routes(bp, kind):
    """Attach the submission routes for ``kind`` to blueprint ``bp``."""

    @bp.route('', methods=['POST'])
    @require_actor('APP_USER')
    @require_tenant
    def create():
        """Create a submission for the calling beneficiary."""
        payload = _json_body()
        event_id = payload.get('event_id')
        if not event_id:
            raise BusinessLogicError('event_id is required')

        submission = submission_service.create_submission(
            g.tenant_store,
            g.organization,
            g.actor,
            kind,
            user_id=payload.get('user_id') or g.actor.id,
            event_id=event_id,
            artifacts=payload.get('artifacts'),
            data=payload.get('data'),
        )
        return jsonify({'status': 'success', 'submission': submission.to_dict()}), 201

    @bp.route('', methods=['GET'])
    @require_actor()
    @require_tenant
    def list_all():
        """List submissions; beneficiaries are restricted to their own."""
        user_id = request.args.get('user_id')
        if not can_review(g.actor, g.tenant_store.key):
            user_id = g.actor.id

        limit = max(1, min(request.args.get('limit', 100, type=int), MAX_PAGE_SIZE))
        offset = max(request.args.get('offset', 0, type=int), 0)

        submissions = submission_service.list_submissions(
            g.tenant_store,
            kind,
            status=request.args.get('status'),
            user_id=user_id,
            event_id=request.args.get('event_id'),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            'status': 'success',
            'count': len(submissions),
            'submissions': [s.to_dict() for s in submissions],
        })

    @bp.route('/<submission_id>', methods=['GET'])
    @require_actor()
    @require_tenant
    def detail(submission_id):
        submission = submission_service.get_submission(g.tenant_store, kind, submission_id)
        _ensure_visible(submission)
        return jsonify({'status': 'success', 'submission': submission.to_dict()})

    @bp.route('/<submission_id>/review', methods=['POST'])
    @reviewer_only
    @require_tenant
    def review(submission_id):
        """Approve or reject a pending submission."""
        payload = _json_body()
        decision = payload.get('decision') or payload.get('status')
        if not decision:
            raise BusinessLogicError('decision is required (APPROVED or REJECTED)')

        submission = submission_service.review_submission(
            g.tenant_store,
            g.actor,
            kind,
            submission_id,
            decision,
            comments=payload.get('comments'),
        )
        return jsonify({'status': 'success', 'submission': submission.to_dict()})

    @bp.route('/<submission_id>/history', methods=['GET'])
    @require_actor()
    @require_tenant
    def history(submission_id):
        """Ordered audit trail of one submission."""
        submission = submission_service.get_submission(g.tenant_store, kind, submission_id)
        _ensure_visible(submission)
        entries = submission_service.get_history_with_reviewers(g.tenant_store, kind, submission_id)
        return jsonify({
            'status': 'success',
            'submission_id': submission_id,
            'history': [dict(entry.to_dict(), reviewer_name=reviewer_name) for entry, reviewer_name in entries],
        })

    return bp
