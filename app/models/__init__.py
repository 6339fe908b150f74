"""Models package - exports all SQLAlchemy models."""
# Registry scope (main.db)
from app.models.organization import Organization
from app.models.super_admin import SuperAdmin

# Tenant scope (<subdomain>.db)
from app.models.admin_user import AdminUser
from app.models.app_user import AppUser
from app.models.event import Event, EventType
from app.models.submission import SubmissionStatus, HistoryAction, SubmissionKind, REVIEW_DECISIONS
from app.models.proof_of_life import ProofOfLife
from app.models.recadastration import Recadastration
from app.models.submission_history import SubmissionHistory

SUBMISSION_MODELS = {
    SubmissionKind.PROOF_OF_LIFE: ProofOfLife,
    SubmissionKind.RECADASTRATION: Recadastration,
}

__all__ = [
    # Registry
    'Organization', 'SuperAdmin',
    # Tenant
    'AdminUser', 'AppUser', 'Event', 'EventType',
    'SubmissionStatus', 'HistoryAction', 'SubmissionKind', 'REVIEW_DECISIONS',
    'ProofOfLife', 'Recadastration', 'SubmissionHistory', 'SUBMISSION_MODELS',
]
