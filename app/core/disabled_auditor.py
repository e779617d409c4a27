"""
Disabled-rule audit: finds rules that have been disabled for too long.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from app.core.classifier import utc_now, validate_days
from app.models.audit import DisabledAuditResult, DisabledRuleRecord, RuleAction, RuleConfigEntry, as_utc
from config import settings

logger = logging.getLogger(__name__)


class DisabledRuleAuditor:
    """Classifies administratively disabled rules as deletion candidates."""

    def __init__(
        self,
        disabled_days: Optional[int],
        now: Optional[datetime] = None,
        protect_tag: str = settings.PROTECT_TAG
    ):
        self.disabled_days = validate_days(disabled_days, "disabled_days")
        self.now = as_utc(now or utc_now())
        self.disabled_threshold = self.now - timedelta(days=self.disabled_days)
        self.protect_tag = protect_tag

    @staticmethod
    def disabled_since(config: RuleConfigEntry) -> Optional[datetime]:
        """Modification instant, else creation instant, else unknown."""
        return config.modified_at or config.created_at

    def audit(self, rule_configs: Iterable[RuleConfigEntry]) -> DisabledAuditResult:
        """
        Return the disabled rules that are actionable.

        Protected rules are reported as PROTECTED. Unprotected rules disabled
        before the threshold, or with no discoverable date, are reported as
        DISABLE (eligible for deletion). Everything else is left out.
        """
        records = []
        device_groups = set()

        for config in rule_configs:
            if not config.disabled:
                continue
            device_groups.add(config.device_group)
            since = self.disabled_since(config)

            protected = config.has_tag(self.protect_tag)
            if protected:
                action = RuleAction.PROTECTED
            elif since is None or since < self.disabled_threshold:
                action = RuleAction.DISABLE
            else:
                logger.debug(
                    f"Rule {config.device_group}/{config.name} disabled on {since.isoformat()} "
                    f"- within {self.disabled_days} days"
                )
                continue

            records.append(
                DisabledRuleRecord(
                    id=f"disabled-rule-{len(records)}",
                    name=config.name,
                    device_group=config.device_group,
                    disabled_since=since,
                    is_protected=protected,
                    action=action
                )
            )

        logger.info(
            f"Found {len(records)} disabled rules older than {self.disabled_days} days "
            f"across {len(device_groups)} device groups"
        )
        return DisabledAuditResult(rules=records, device_groups=sorted(device_groups))
