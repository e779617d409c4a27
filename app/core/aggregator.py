"""
Rule aggregation: merges raw telemetry entries into one record per rule.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from app.core.ha_index import HAIndex
from app.models.audit import FirewallTarget, Rule, RuleConfigEntry, RuleKey
from app.models.telemetry import (
    ALL_CONNECTED,
    EPOCH,
    AllConnectedTarget,
    RawTelemetryEntry,
    TelemetryTarget,
)
from config import settings

logger = logging.getLogger(__name__)


class RuleAggregator:
    """Reduces raw telemetry entries into the Rule/FirewallTarget model."""

    def __init__(
        self,
        ha_index: Optional[HAIndex] = None,
        protect_tag: str = settings.PROTECT_TAG,
        shared_device_group: str = settings.SHARED_DEVICE_GROUP
    ):
        self.ha_index = ha_index or HAIndex()
        self.protect_tag = protect_tag
        self.shared_device_group = shared_device_group.lower()

    def aggregate(
        self,
        entries: Iterable[RawTelemetryEntry],
        rule_configs: Optional[Iterable[RuleConfigEntry]] = None
    ) -> List[Rule]:
        """
        Group entries by (device group, rule name) and merge their targets.

        Args:
            entries: Canonical telemetry entries, in any order
            rule_configs: Rule source records used for the disabled and
                protection flags; rules without a record count as enabled
                and unprotected

        Returns:
            One unclassified rule per key, in first-seen order
        """
        configs: Dict[RuleKey, RuleConfigEntry] = {config.key: config for config in rule_configs or []}
        rules: Dict[RuleKey, Rule] = {}
        targets_by_rule: Dict[RuleKey, Dict[str, FirewallTarget]] = {}
        dropped = 0

        for entry in entries:
            if not entry.device_group or not entry.rule_name:
                dropped += 1
                logger.debug(f"Dropping telemetry entry without rule name or device group: {entry!r}")
                continue

            key = RuleKey(entry.device_group, entry.rule_name)
            config = configs.get(key)
            if config is not None and config.disabled:
                logger.debug(f"Skipping telemetry for disabled rule {key.device_group}/{key.rule_name}")
                continue

            last_used = self.effective_last_used(entry)
            rule = rules.get(key)
            if rule is None:
                rule = Rule(
                    id=f"rule-{len(rules)}",
                    name=entry.rule_name,
                    device_group=entry.device_group,
                    last_hit_date=last_used,
                    is_shared=self.is_shared(entry.device_group),
                    is_protected=config is not None and config.has_tag(self.protect_tag)
                )
                rules[key] = rule
                targets_by_rule[key] = {}

            known_targets = targets_by_rule[key]
            for target_name in self._target_names(entry.target):
                target = known_targets.get(target_name)
                if target is None:
                    target = FirewallTarget(name=target_name, ha_partner=self._partner_for(target_name))
                    known_targets[target_name] = target
                    rule.targets.append(target)
                target.hit_count += entry.hit_count
                target.has_hits = target.hit_count > 0
                rule.total_hits = max(rule.total_hits, target.hit_count)

            if last_used > rule.last_hit_date:
                rule.last_hit_date = last_used

        if dropped:
            logger.info(f"Dropped {dropped} incomplete telemetry entries")
        logger.info(f"Aggregated telemetry into {len(rules)} rules")
        return list(rules.values())

    @staticmethod
    def effective_last_used(entry: RawTelemetryEntry) -> datetime:
        """Last hit, else the modification instant as a use-proxy, else the epoch."""
        if entry.last_used is not None and entry.last_used > EPOCH:
            return entry.last_used
        if entry.modified_at is not None:
            return entry.modified_at
        return EPOCH

    def is_shared(self, device_group: str) -> bool:
        return device_group.lower() == self.shared_device_group

    def _partner_for(self, target_name: str) -> Optional[str]:
        if target_name == ALL_CONNECTED:
            return None
        return self.ha_index.partner_of(target_name)

    @staticmethod
    def _target_names(target: TelemetryTarget) -> List[str]:
        if isinstance(target, AllConnectedTarget):
            return [ALL_CONNECTED]
        return list(target.names) or [ALL_CONNECTED]


def collect_device_groups(
    rules: Iterable[Rule],
    rule_configs: Optional[Iterable[RuleConfigEntry]] = None
) -> List[str]:
    """Sorted, de-duplicated device groups that yielded at least one enabled rule."""
    groups = {rule.device_group for rule in rules}
    groups.update(config.device_group for config in rule_configs or [] if not config.disabled)
    return sorted(groups)
