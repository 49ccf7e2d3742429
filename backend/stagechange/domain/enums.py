"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class WorkflowState(str, Enum):
    """Lifecycle of a stage transition workflow session"""
    IDLE = "IDLE"
    CONFIGURING = "CONFIGURING"
    APPROVAL_PENDING = "APPROVAL_PENDING"  # Approval responses being submitted
    COMMITTING = "COMMITTING"  # Transition request in flight
    SIDE_EFFECTS = "SIDE_EFFECTS"  # Persisting pending queries after commit
    NOTIFICATION_PENDING = "NOTIFICATION_PENDING"  # Waiting for send/suppress/skip
    FAILED = "FAILED"  # Transient excursion back to CONFIGURING
    CLOSED = "CLOSED"


class FailedStep(str, Enum):
    """Which step a FAILED excursion came from"""
    APPROVAL_SUBMISSION = "APPROVAL_SUBMISSION"
    COMMIT = "COMMIT"


class CustomFieldType(str, Enum):
    """Types of reason-specific custom fields"""
    BOOLEAN = "boolean"
    NUMBER = "number"
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    MULTI_SELECT = "multi_select"


class ApprovalFieldType(str, Enum):
    """Types of stage approval checklist fields"""
    BOOLEAN = "boolean"
    NUMBER = "number"
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    DATE = "date"


class ComparisonType(str, Enum):
    """Numeric comparison for approval number fields"""
    EQUAL_TO = "equal_to"
    LESS_THAN = "less_than"
    GREATER_THAN = "greater_than"


class DateComparisonType(str, Enum):
    """Date comparison for approval date fields"""
    BEFORE = "before"
    AFTER = "after"
    BETWEEN = "between"  # Inclusive of both ends
    EXACT = "exact"


class NotificationAudience(str, Enum):
    """Who a post-commit notification preview targets"""
    STAFF = "staff"
    CLIENT = "client"


class NotificationChannel(str, Enum):
    """Delivery channels for stage change notifications"""
    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"


class NotificationOutcome(str, Enum):
    """How a notification step was resolved"""
    SENT = "SENT"
    SUPPRESSED = "SUPPRESSED"
    SKIPPED = "SKIPPED"


class FeedbackVariant(str, Enum):
    """Severity of operator-facing feedback messages"""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class QueryStatus(str, Enum):
    """Status of an ad-hoc project query"""
    OPEN = "open"
