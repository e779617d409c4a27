"""
Classification engine: assigns exactly one remediation action per rule.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Set, Tuple

from app.models.audit import FirewallTarget, Rule, RuleAction, as_utc
from exceptions.custom_exceptions import InvalidAuditRequestError

logger = logging.getLogger(__name__)


def validate_days(value: Optional[int], parameter: str) -> int:
    """Reject missing, non-integer or non-positive day thresholds."""
    if value is None:
        raise InvalidAuditRequestError(f"{parameter} is required", parameter)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAuditRequestError(f"{parameter} must be an integer, got {value!r}", parameter)
    if value <= 0:
        raise InvalidAuditRequestError(f"{parameter} must be a positive number of days, got {value}", parameter)
    return value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RuleClassifier:
    """
    Classifies aggregated rules for the unused-rule audit.

    Decision order, first match wins:

    1. protected rules -> PROTECTED
    2. shared-scope rules -> IGNORE
    3. walk targets; standalone unused targets become untarget candidates,
       HA pairs only when both members are unused. A pair where either
       member has hits shields both members.
    4. shielded pair and no candidates -> HA-PROTECTED
    5. every target a candidate -> DISABLE
    6. some targets candidates -> UNTARGET
    7. otherwise -> KEEP

    Classification is per target; ``Rule.total_hits`` is never consulted.
    """

    def __init__(self, unused_days: Optional[int], now: Optional[datetime] = None):
        self.unused_days = validate_days(unused_days, "unused_days")
        self.now = as_utc(now or utc_now())
        self.unused_threshold = self.now - timedelta(days=self.unused_days)

    def classify_all(self, rules: Iterable[Rule]) -> List[Rule]:
        classified = [self.classify(rule) for rule in rules]
        logger.info(
            f"Classified {len(classified)} rules against a {self.unused_days}-day threshold "
            f"({self.unused_threshold.isoformat()})"
        )
        return classified

    def classify(self, rule: Rule) -> Rule:
        """
        Classify one rule.

        Returns:
            A copy of the rule with ``action``, ``suggested_action_notes`` and
            ``untarget_candidates`` set; the input is left untouched
        """
        action, notes, candidates = self._decide(rule)
        logger.debug(f"Rule {rule.device_group}/{rule.name}: {action.value} ({notes})")
        return rule.model_copy(
            update={
                "action": action,
                "suggested_action_notes": notes,
                "untarget_candidates": candidates,
            }
        )

    def is_target_unused(self, rule: Rule, target: FirewallTarget) -> bool:
        return not target.has_hits and rule.last_hit_date < self.unused_threshold

    def _decide(self, rule: Rule) -> Tuple[RuleAction, str, List[str]]:
        if rule.is_protected:
            return RuleAction.PROTECTED, "Rule carries the protection tag", []
        if rule.is_shared:
            return RuleAction.IGNORE, "Shared-scope rule is never remediated", []

        candidates: List[str] = []
        processed: Set[str] = set()
        ha_protected = False
        present = {target.name: target for target in rule.targets}

        for target in rule.targets:
            if target.name in processed:
                continue
            processed.add(target.name)
            partner = self._paired_partner(target, present)

            if partner is None:
                if self.is_target_unused(rule, target):
                    candidates.append(target.name)
                continue

            processed.add(partner.name)
            if target.has_hits or partner.has_hits:
                ha_protected = True
            elif self.is_target_unused(rule, target) and self.is_target_unused(rule, partner):
                candidates.extend([target.name, partner.name])

        if ha_protected and not candidates:
            return RuleAction.HA_PROTECTED, "HA pair partner has hits; both members are kept", candidates
        if rule.targets and len(candidates) == len(rule.targets):
            return (
                RuleAction.DISABLE,
                f"No hits on any target since {self.unused_threshold.date().isoformat()}",
                candidates
            )
        if candidates:
            return RuleAction.UNTARGET, f"Unused on {', '.join(candidates)}", candidates
        return RuleAction.KEEP, "Rule is in use", candidates

    @staticmethod
    def _paired_partner(target: FirewallTarget, present: dict) -> Optional[FirewallTarget]:
        if not target.ha_partner:
            return None
        partner = present.get(target.ha_partner)
        if partner is None or partner.ha_partner != target.name:
            return None
        return partner
