"""Custom exceptions for the proof-of-life application."""

class AppError(Exception):
    """Base exception for all application errors."""
    code = 'APP_ERROR'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['status'] = 'error'
        return rv

class BusinessLogicError(AppError):
    """Exception raised for business logic violations."""
    code = 'BUSINESS_RULE'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(AppError):
    """Exception raised when a resource is not found."""
    code = 'NOT_FOUND'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class UnauthorizedError(AppError):
    """Raised when an actor lacks permission for an action."""
    code = 'FORBIDDEN'

    def __init__(self, message="Unauthorized access", payload=None):
        super().__init__(message, 403, payload)


# Tenant store routing

class TenantNotFoundError(NotFoundError):
    """Tenant key is unknown or its backing store does not exist."""
    code = 'TENANT_NOT_FOUND'

    def __init__(self, tenant_key):
        self.tenant_key = tenant_key
        super().__init__(f"Organization not found: {tenant_key}", payload={'tenant': tenant_key})

class StoreOpenError(AppError):
    """Opening or initializing a store failed. Retryable by the caller."""
    code = 'STORE_UNAVAILABLE'

    def __init__(self, message="Store could not be opened"):
        super().__init__(message, 503)


# Submission lifecycle

class SubmissionNotFoundError(NotFoundError):
    code = 'SUBMISSION_NOT_FOUND'

    def __init__(self, submission_id):
        self.submission_id = submission_id
        super().__init__(f"Submission {submission_id} not found")

class DuplicateActiveSubmissionError(BusinessLogicError):
    """An active or approved submission already exists for (user, event)."""
    code = 'DUPLICATE_ACTIVE_SUBMISSION'

    def __init__(self, user_id, event_id, status=None):
        self.user_id = user_id
        self.event_id = event_id
        self.existing_status = status
        message = f"User {user_id} already has a submission for event {event_id}"
        if status:
            message = f"{message} ({status})"
        super().__init__(message, status_code=409)

class EventNotEligibleError(BusinessLogicError):
    """Event is missing, inactive, out of its window or the service is disabled."""
    code = 'EVENT_NOT_ELIGIBLE'

    def __init__(self, message):
        super().__init__(message, status_code=422)

class InvalidTransitionError(BusinessLogicError):
    code = 'INVALID_TRANSITION'

    def __init__(self, submission_id, current_status=None, target=None):
        self.submission_id = submission_id
        self.current_status = current_status
        self.target = target
        message = f"Submission {submission_id} cannot be reviewed"
        if current_status:
            message = f"{message} (current status: {current_status})"
        super().__init__(message, status_code=409)


# Authorization

class UnauthorizedReviewerError(UnauthorizedError):
    code = 'UNAUTHORIZED_REVIEWER'

    def __init__(self, message="Reviewer is not an administrator of this organization"):
        super().__init__(message)

class UnauthorizedCreatorError(UnauthorizedError):
    code = 'UNAUTHORIZED_CREATOR'

    def __init__(self, message="User is not allowed to submit for this event"):
        super().__init__(message)
