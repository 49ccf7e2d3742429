"""Service modules - Uploads, pending queries and operator feedback"""
from .feedback import FeedbackSink, LoggingFeedbackSink, CollectingFeedbackSink, friendly_error
from .file_upload import FileUploadPipeline
from .query_batch import QueryBatch

__all__ = [
    "FeedbackSink",
    "LoggingFeedbackSink",
    "CollectingFeedbackSink",
    "friendly_error",
    "FileUploadPipeline",
    "QueryBatch",
]
