"""Utility modules"""
from .logger import get_logger, setup_logging
from .idgen import generate_id, generate_correlation_id
from .time import utc_now, to_calendar_date
from .text import extract_first_name, join_first_names, format_stage_name, sender_display_name

__all__ = [
    "get_logger",
    "setup_logging",
    "generate_id",
    "generate_correlation_id",
    "utc_now",
    "to_calendar_date",
    "extract_first_name",
    "join_first_names",
    "format_stage_name",
    "sender_display_name",
]
