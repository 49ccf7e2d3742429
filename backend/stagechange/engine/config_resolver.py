"""Config Resolver - Stage/reason scoped views over the configuration bundle"""
from typing import Dict, List, Optional

from ..domain.models import (
    StageChangeConfig, StageDefinition, ChangeReason, CustomFieldDefinition,
    ApprovalRuleset, ApprovalFieldRule
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ConfigResolver:
    """
    Resolve which stages, reasons, custom fields and approval rules apply

    Pure derivations over a server-supplied bundle:
    1. Target stages are every stage except the project's current one
    2. Reasons for a stage are those listed in its valid_reason_ids
    3. Effective approval = reason override, else stage default, else none
    4. Dangling ids resolve to empty results, never raise
    """

    def __init__(self, config: StageChangeConfig, current_status: str):
        self.config = config
        self.current_status = current_status
        self._stages: Dict[str, StageDefinition] = {s.id: s for s in config.stages}
        self._reasons: Dict[str, ChangeReason] = {r.id: r for r in config.reasons}
        self._approvals: Dict[str, ApprovalRuleset] = {a.id: a for a in config.stage_approvals}

    # =========================================================================
    # Lookups
    # =========================================================================

    def stage_by_id(self, stage_id: Optional[str]) -> Optional[StageDefinition]:
        if not stage_id:
            return None
        return self._stages.get(stage_id)

    def stage_by_name(self, name: Optional[str]) -> Optional[StageDefinition]:
        if not name:
            return None
        return next((s for s in self.config.stages if s.name == name), None)

    def reason_by_id(self, reason_id: Optional[str]) -> Optional[ChangeReason]:
        if not reason_id:
            return None
        return self._reasons.get(reason_id)

    def is_current_stage(self, stage: StageDefinition) -> bool:
        return stage.name == self.current_status

    # =========================================================================
    # Derivations
    # =========================================================================

    def available_target_stages(self) -> List[StageDefinition]:
        """All stages except the project's current stage, in display order"""
        return sorted(
            (s for s in self.config.stages if not self.is_current_stage(s)),
            key=lambda s: s.order
        )

    def reasons_for(self, stage: Optional[StageDefinition]) -> List[ChangeReason]:
        """Reasons valid when transitioning into the stage"""
        if stage is None:
            return []

        reasons = []
        for reason_id in stage.valid_reason_ids:
            reason = self._reasons.get(reason_id)
            if reason is None:
                logger.warning(
                    f"Stage {stage.id} references unknown reason {reason_id}",
                    extra={"stage_id": stage.id, "reason_id": reason_id}
                )
                continue
            reasons.append(reason)
        return reasons

    def custom_fields_for(self, reason: Optional[ChangeReason]) -> List[CustomFieldDefinition]:
        """Custom fields captured with the reason, in display order"""
        if reason is None:
            return []
        return sorted(reason.custom_fields, key=lambda f: f.order)

    def effective_approval_id(
        self,
        stage: Optional[StageDefinition],
        reason: Optional[ChangeReason]
    ) -> Optional[str]:
        """Reason-level approval overrides the stage-level default"""
        if reason is not None and reason.stage_approval_id:
            return reason.stage_approval_id
        if stage is not None and stage.stage_approval_id:
            return stage.stage_approval_id
        return None

    def approval_ruleset_for(self, approval_id: Optional[str]) -> Optional[ApprovalRuleset]:
        if not approval_id:
            return None
        ruleset = self._approvals.get(approval_id)
        if ruleset is None:
            logger.warning(
                f"Unknown stage approval {approval_id}; treating as no approval required"
            )
        return ruleset

    def approval_fields_for(self, ruleset: Optional[ApprovalRuleset]) -> List[ApprovalFieldRule]:
        """Checklist fields of the ruleset, sorted by explicit order"""
        if ruleset is None:
            return []
        return sorted(
            (f for f in self.config.stage_approval_fields if f.stage_approval_id == ruleset.id),
            key=lambda f: f.order
        )

    def approval_fields_between(
        self,
        stage: Optional[StageDefinition],
        reason: Optional[ChangeReason]
    ) -> List[ApprovalFieldRule]:
        """Approval fields that gate a transition into stage for reason"""
        approval_id = self.effective_approval_id(stage, reason)
        return self.approval_fields_for(self.approval_ruleset_for(approval_id))

    def is_approval_active(
        self,
        stage: Optional[StageDefinition],
        reason: Optional[ChangeReason]
    ) -> bool:
        """Gate is active only with both choices made and a non-empty ruleset"""
        if stage is None or reason is None:
            return False
        return len(self.approval_fields_between(stage, reason)) > 0

    def is_valid_reason(self, stage: Optional[StageDefinition], reason: Optional[ChangeReason]) -> bool:
        if stage is None or reason is None:
            return False
        return reason.id in stage.valid_reason_ids
