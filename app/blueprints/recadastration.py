"""
Recadastration Blueprint.

Routes (tenant from X-Organization-Subdomain):
- POST /recadastration - Submit updated registration data and documents
- GET  /recadastration - List submissions
- GET  /recadastration/<id> - Submission detail
- POST /recadastration/<id>/review - Approve or reject (admins)
- GET  /recadastration/<id>/history - Audit trail
"""
from flask import Blueprint

from app.blueprints.submission_views import register_submission_routes
from app.models import SubmissionKind

recadastration_bp = Blueprint('recadastration', __name__, url_prefix='/recadastration')

register_submission_routes(recadastration_bp, SubmissionKind.RECADASTRATION)
