"""Feedback Service - Operator-facing toast side-channel

The workflow reports success, partial failure and fatal failure through a
FeedbackSink instead of ambient UI state. Hosts pick the sink: the logging
sink for headless use, the collecting sink for the HTTP surface.
"""
import re
from typing import List, Tuple

from ..domain.models import FeedbackMessage
from ..domain.enums import FeedbackVariant
from ..domain.errors import DomainError
from ..utils.logger import get_logger

logger = get_logger(__name__)


# (pattern, title, description) checked in order; first match wins
FRIENDLY_ERRORS: List[Tuple[re.Pattern, str, str]] = [
    (
        re.compile(r"not.*null.*constraint|null.*violation|required.*field|is required", re.I),
        "Missing Required Information",
        "Some required fields are empty. Please check the form and fill in all the required information.",
    ),
    (
        re.compile(r"unauthorized|not authenticated|login required|session expired", re.I),
        "Please Log In",
        "Your session has expired or you need to log in to do this. Please refresh and log in again.",
    ),
    (
        re.compile(r"forbidden|not allowed|access denied|permission denied|no permission", re.I),
        "Access Restricted",
        "You don't have permission to do this. If you think you should have access, please contact an administrator.",
    ),
    (
        re.compile(r"configuration has changed", re.I),
        "Configuration Changed",
        "The stage configuration changed while you were working. Please refresh and try again.",
    ),
    (
        re.compile(r"dedupe key|already been processed", re.I),
        "Already Processed",
        "This notification has already been handled.",
    ),
    (
        re.compile(r"not found|404|does not exist|no such", re.I),
        "Item Not Found",
        "We couldn't find what you're looking for. It may have been moved or deleted.",
    ),
    (
        re.compile(r"network error|could not reach|connection refused|timed out|timeout", re.I),
        "Connection Problem",
        "We couldn't reach the server. Please check your connection and try again.",
    ),
]


def friendly_error(error: Exception) -> Tuple[str, str]:
    """Map an error to an operator-readable (title, description)"""
    message = error.message if isinstance(error, DomainError) else str(error)

    for pattern, title, description in FRIENDLY_ERRORS:
        if pattern.search(message):
            return title, description

    return "Something Went Wrong", message or "An unexpected error occurred. Please try again."


class FeedbackSink:
    """Receives operator feedback; subclasses decide where it goes"""

    def emit(self, message: FeedbackMessage) -> None:
        raise NotImplementedError

    def success(self, title: str, description: str) -> None:
        self.emit(FeedbackMessage(variant=FeedbackVariant.SUCCESS, title=title, description=description))

    def warning(self, title: str, description: str) -> None:
        self.emit(FeedbackMessage(variant=FeedbackVariant.WARNING, title=title, description=description))

    def error(self, title: str, description: str) -> None:
        self.emit(FeedbackMessage(variant=FeedbackVariant.ERROR, title=title, description=description))

    def error_from(self, error: Exception) -> None:
        title, description = friendly_error(error)
        self.error(title, description)


class LoggingFeedbackSink(FeedbackSink):
    """Writes feedback to the application log"""

    def emit(self, message: FeedbackMessage) -> None:
        text = f"[{message.variant.value}] {message.title}: {message.description}"
        if message.variant == FeedbackVariant.ERROR:
            logger.error(text)
        elif message.variant == FeedbackVariant.WARNING:
            logger.warning(text)
        else:
            logger.info(text)


class CollectingFeedbackSink(LoggingFeedbackSink):
    """Logs and keeps feedback so a host UI can poll it"""

    def __init__(self):
        self.messages: List[FeedbackMessage] = []

    def emit(self, message: FeedbackMessage) -> None:
        super().emit(message)
        self.messages.append(message)

    def drain(self) -> List[FeedbackMessage]:
        messages, self.messages = self.messages, []
        return messages
