"""Tests for ConfigResolver"""

import logging

import pytest

from stagechange.engine.config_resolver import ConfigResolver


@pytest.fixture
def resolver(config):
    return ConfigResolver(config, current_status="new")


class TestTargetStages:
    def test_excludes_current_stage_and_keeps_the_rest_in_order(self, resolver, config):
        names = [s.name for s in resolver.available_target_stages()]
        assert names == ["review", "approved", "completed"]
        assert "new" not in names
        assert len(names) == len(config.stages) - 1

    @pytest.mark.parametrize("current", ["new", "review", "approved", "completed"])
    def test_every_other_stage_is_offered(self, config, current):
        resolver = ConfigResolver(config, current_status=current)
        names = {s.name for s in resolver.available_target_stages()}
        assert names == {s.name for s in config.stages} - {current}

    def test_lookups(self, resolver):
        assert resolver.stage_by_id("stg-review").name == "review"
        assert resolver.stage_by_name("approved").id == "stg-approved"
        assert resolver.reason_by_id("rsn-escalated").reason == "escalated"
        assert resolver.stage_by_id("missing") is None
        assert resolver.stage_by_id(None) is None


class TestReasonsAndFields:
    def test_dangling_reason_is_skipped_with_warning(self, resolver, caplog):
        stage = resolver.stage_by_id("stg-review")
        with caplog.at_level(logging.WARNING):
            reasons = resolver.reasons_for(stage)
        assert [r.id for r in reasons] == ["rsn-client-requested", "rsn-internal-review"]
        assert "rsn-ghost" in caplog.text

    def test_no_stage_means_no_reasons(self, resolver):
        assert resolver.reasons_for(None) == []

    def test_custom_fields_sorted_by_order(self, resolver):
        reason = resolver.reason_by_id("rsn-internal-review")
        assert [f.id for f in resolver.custom_fields_for(reason)] == [
            "cf-hours", "cf-areas", "cf-urgent", "cf-notes"
        ]

    def test_valid_reason_membership(self, resolver):
        review = resolver.stage_by_id("stg-review")
        assert resolver.is_valid_reason(review, resolver.reason_by_id("rsn-client-requested"))
        assert not resolver.is_valid_reason(review, resolver.reason_by_id("rsn-signed-off"))
        assert not resolver.is_valid_reason(review, None)


class TestApprovalResolution:
    def test_stage_default(self, resolver):
        stage = resolver.stage_by_id("stg-approved")
        reason = resolver.reason_by_id("rsn-signed-off")
        assert resolver.effective_approval_id(stage, reason) == "apr-final"
        assert [f.id for f in resolver.approval_fields_between(stage, reason)] == ["af-confirmed"]

    def test_reason_override_wins(self, resolver):
        stage = resolver.stage_by_id("stg-approved")
        reason = resolver.reason_by_id("rsn-escalated")
        assert resolver.effective_approval_id(stage, reason) == "apr-escalation"
        assert [f.id for f in resolver.approval_fields_between(stage, reason)] == ["af-manager"]

    def test_active_only_with_both_choices_and_fields(self, resolver):
        approved = resolver.stage_by_id("stg-approved")
        review = resolver.stage_by_id("stg-review")
        signed_off = resolver.reason_by_id("rsn-signed-off")
        client_requested = resolver.reason_by_id("rsn-client-requested")

        assert resolver.is_approval_active(approved, signed_off)
        assert not resolver.is_approval_active(approved, None)
        assert not resolver.is_approval_active(None, signed_off)
        assert not resolver.is_approval_active(review, client_requested)

    def test_unknown_ruleset_is_inactive(self, config, caplog):
        config.stages[1].stage_approval_id = "apr-deleted"
        resolver = ConfigResolver(config, current_status="completed")
        stage = resolver.stage_by_id(config.stages[1].id)
        reason = resolver.reason_by_id("rsn-reopened")
        with caplog.at_level(logging.WARNING):
            assert not resolver.is_approval_active(stage, reason)
        assert "apr-deleted" in caplog.text

    def test_empty_ruleset_is_inactive(self, config):
        config.stage_approval_fields = [
            f for f in config.stage_approval_fields if f.stage_approval_id != "apr-final"
        ]
        resolver = ConfigResolver(config, current_status="new")
        stage = resolver.stage_by_id("stg-approved")
        assert not resolver.is_approval_active(stage, resolver.reason_by_id("rsn-signed-off"))
