"""
Proof of Life Blueprint.

Routes (tenant from X-Organization-Subdomain):
- POST /proof-of-life - Submit selfie, document front/back and CPF artifacts
- GET  /proof-of-life - List submissions (filters: status, user_id, event_id)
- GET  /proof-of-life/<id> - Submission detail
- POST /proof-of-life/<id>/review - Approve or reject (admins)
- GET  /proof-of-life/<id>/history - Audit trail
"""
from flask import Blueprint

from app.blueprints.submission_views import register_submission_routes
from app.models import SubmissionKind

proof_of_life_bp = Blueprint('proof_of_life', __name__, url_prefix='/proof-of-life')

register_submission_routes(proof_of_life_bp, SubmissionKind.PROOF_OF_LIFE)
