"""Stage change engine - Resolution, validation and the transition state machine"""
from .config_resolver import ConfigResolver
from .custom_field_validator import CustomFieldValidator
from .approval_gate import ApprovalGate, ApprovalSchema, evaluate_rule
from .notification_orchestrator import NotificationOrchestrator
from .transition_workflow import TransitionWorkflow

__all__ = [
    "ConfigResolver",
    "CustomFieldValidator",
    "ApprovalGate",
    "ApprovalSchema",
    "evaluate_rule",
    "NotificationOrchestrator",
    "TransitionWorkflow",
]
