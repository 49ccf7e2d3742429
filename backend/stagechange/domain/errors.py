"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, List, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed - never reaches the network"""
    error_code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.errors = list(errors) if errors else [message]
        merged = dict(details or {})
        merged.setdefault("errors", self.errors)
        super().__init__(message, details=merged, error_code=error_code)


class CustomFieldValidationError(ValidationError):
    """Reason custom field responses failed validation"""
    error_code = "CUSTOM_FIELD_VALIDATION_ERROR"


class ApprovalValidationError(ValidationError):
    """Stage approval checklist not satisfied"""
    error_code = "APPROVAL_VALIDATION_ERROR"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class SessionNotFoundError(NotFoundError):
    """Workflow session not found"""
    error_code = "SESSION_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict"""
    error_code = "CONFLICT"
    http_status = 409


class InvalidStateError(ConflictError):
    """Action not valid for current workflow state"""
    error_code = "INVALID_STATE"


# External Service Errors
class ExternalServiceError(DomainError):
    """External service failure"""
    error_code = "EXTERNAL_SERVICE_ERROR"
    http_status = 502


class ApiError(ExternalServiceError):
    """Backend API returned an error or could not be reached"""
    error_code = "API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        merged = dict(details or {})
        if status_code is not None:
            merged.setdefault("status_code", status_code)
        super().__init__(message, details=merged)


# Commit Errors
class CommitError(ExternalServiceError):
    """Approval submission or transition commit failed"""
    error_code = "COMMIT_ERROR"


class ApprovalSubmissionError(CommitError):
    """Approval responses could not be recorded; transition not attempted"""
    error_code = "APPROVAL_SUBMISSION_ERROR"


class TransitionCommitError(CommitError):
    """Stage transition was rejected or failed; local cache rolled back"""
    error_code = "TRANSITION_COMMIT_ERROR"


# Post-commit Errors
class SideEffectError(DomainError):
    """Best-effort work after a committed transition failed"""
    error_code = "SIDE_EFFECT_ERROR"
    http_status = 500


class UploadError(DomainError):
    """Attachment upload batch aborted"""
    error_code = "UPLOAD_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str,
        file_name: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.file_name = file_name
        merged = dict(details or {})
        merged.setdefault("file_name", file_name)
        super().__init__(message, details=merged)


class NotificationError(ExternalServiceError):
    """Notification send or suppress failed; step remains open"""
    error_code = "NOTIFICATION_ERROR"


class DraftingError(ExternalServiceError):
    """AI refinement or voice drafting failed"""
    error_code = "DRAFTING_ERROR"
