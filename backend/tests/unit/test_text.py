"""Tests for display name helpers"""

import pytest

from stagechange.utils.text import (
    extract_first_name, join_first_names, format_stage_name, sender_display_name
)


@pytest.mark.parametrize("full_name,expected", [
    ("Smith, John", "John"),
    ("John Smith", "John"),
    ("", ""),
    ("SMITH, Anna Marie", "Anna"),
    ("  Priya   Shah ", "Priya"),
    ("Cher", "Cher"),
])
def test_extract_first_name(full_name, expected):
    assert extract_first_name(full_name) == expected


def test_join_first_names():
    assert join_first_names(["Jane"]) == "Jane"
    assert join_first_names(["Jane", "Tom"]) == "Jane and Tom"
    assert join_first_names(["Jane", "Tom", "Priya"]) == "Jane, Tom and Priya"
    assert join_first_names(["Jane", "", "Tom"]) == "Jane and Tom"
    assert join_first_names([]) == ""


def test_format_stage_name():
    assert format_stage_name("in_review") == "In Review"
    assert format_stage_name("approved") == "Approved"


class TestSenderDisplayName:
    def test_prefers_first_name(self):
        assert sender_display_name(" Jane ", "Doe", "jd@firm.co.uk") == "Jane"

    def test_falls_back_to_last_name(self):
        assert sender_display_name("", "Doe", None) == "Doe"

    def test_falls_back_to_email_username(self):
        assert sender_display_name(None, None, "jane.doe@firm.co.uk") == "Jane"
        assert sender_display_name(None, "  ", "TOM_smith@firm.co.uk") == "Tom"

    def test_nothing_known(self):
        assert sender_display_name() is None
