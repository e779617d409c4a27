"""
Remediation planning: decides which mutation each selected rule receives.
"""
import logging
from datetime import datetime
from typing import Collection, List, Optional, Sequence, Union

from app.core.classifier import utc_now
from app.models.audit import AuditMode, DisabledRuleRecord, Rule, RuleAction
from app.models.remediation import (
    RemediationItem,
    RemediationOperation,
    RemediationPlan,
    RemediationTarget,
    SkippedRule,
)
from app.models.telemetry import ALL_CONNECTED
from exceptions.custom_exceptions import InvalidAuditRequestError, ProtectedRuleError

logger = logging.getLogger(__name__)

AuditedRule = Union[Rule, DisabledRuleRecord]

_OPERATIONS = {
    (AuditMode.UNUSED, RuleAction.DISABLE): RemediationOperation.DISABLE,
    (AuditMode.UNUSED, RuleAction.UNTARGET): RemediationOperation.UNTARGET,
    (AuditMode.DISABLED, RuleAction.DISABLE): RemediationOperation.DELETE,
}


def default_disabled_tag(now: Optional[datetime] = None) -> str:
    """Tag applied to rules disabled by remediation, e.g. ``disabled-20240131``."""
    return f"disabled-{(now or utc_now()).strftime('%Y%m%d')}"


def removable_targets(rule: AuditedRule) -> List[str]:
    """Untarget candidates that are targets of the rule without hits, never the all-connected target."""
    unused = {t.name for t in rule.targets if not t.has_hits and t.name != ALL_CONNECTED}
    return [name for name in getattr(rule, "untarget_candidates", []) if name in unused]


def build_remediation_plan(
    rules: Sequence[AuditedRule],
    mode: Union[AuditMode, str],
    selected_ids: Optional[Collection[str]] = None,
    tag: Optional[str] = None,
    now: Optional[datetime] = None
) -> RemediationPlan:
    """
    Build the remediation batch for the caller's selection.

    Args:
        rules: Classified rules from an unused or disabled audit
        mode: Audit mode the rules came from
        selected_ids: Rule ids to include; None selects every rule
        tag: Tag applied by the disable path; defaults to today's tag
        now: Reference time for the default tag

    Returns:
        Plan whose items never include a PROTECTED rule

    Raises:
        InvalidAuditRequestError: If the mode is unknown
        ProtectedRuleError: If a PROTECTED rule reached the batch
    """
    try:
        mode = AuditMode(mode)
    except ValueError:
        raise InvalidAuditRequestError(f"Unknown audit mode: {mode!r}", "mode")

    selected = None if selected_ids is None else set(selected_ids)
    plan = RemediationPlan(mode=mode, tag=tag or default_disabled_tag(now))

    for rule in rules:
        if selected is not None and rule.id not in selected:
            continue

        protected = rule.action == RuleAction.PROTECTED or getattr(rule, "is_protected", False)
        operation = None if protected else _OPERATIONS.get((mode, rule.action))
        remove_targets: List[str] = []
        reason = "protected rule" if protected else "no remediation for this action"
        if operation == RemediationOperation.UNTARGET:
            remove_targets = removable_targets(rule)
            if not remove_targets:
                operation = None
                reason = "no unused targets to remove"

        if operation is None:
            plan.skipped.append(
                SkippedRule(
                    rule_id=rule.id,
                    device_group=rule.device_group,
                    name=rule.name,
                    action=rule.action,
                    reason=reason
                )
            )
            continue

        plan.items.append(
            RemediationItem(
                rule_id=rule.id,
                device_group=rule.device_group,
                name=rule.name,
                action=rule.action,
                operation=operation,
                is_protected=protected,
                targets=[RemediationTarget(name=t.name, has_hits=t.has_hits) for t in rule.targets],
                remove_targets=remove_targets
            )
        )

    ensure_no_protected(plan)
    logger.info(
        f"Remediation plan ({mode.value}): {len(plan.items)} rules selected, {len(plan.skipped)} skipped"
    )
    return plan


def ensure_no_protected(plan: RemediationPlan) -> None:
    """Refuse any plan that would touch a PROTECTED rule."""
    protected = [
        f"{item.device_group}/{item.name}"
        for item in plan.items
        if item.is_protected or item.action == RuleAction.PROTECTED
    ]
    if protected:
        raise ProtectedRuleError(
            f"Protected rules cannot be remediated: {', '.join(protected)}",
            protected
        )
