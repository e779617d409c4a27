"""
Rule audit service: fetch -> aggregate -> classify, once per invocation.
"""
import logging
from datetime import datetime
from typing import Collection, Iterable, List, Optional, Sequence, Tuple, Union

from app.core.aggregator import RuleAggregator, collect_device_groups
from app.core.classifier import RuleClassifier, validate_days
from app.core.disabled_auditor import DisabledRuleAuditor
from app.core.ha_index import HAIndex
from app.core.remediation import AuditedRule, build_remediation_plan
from app.models.audit import (
    AuditMode,
    AuditResult,
    AuditSummary,
    DisabledAuditResult,
    HAPair,
    Rule,
    RuleAction,
)
from app.models.remediation import RemediationPlan, RemediationResult
from app.models.telemetry import TelemetrySnapshot
from app.vendors.abstract import AbstractRemediationExecutor, AbstractTelemetryFetcher, ApiCall
from config import settings
from exceptions.custom_exceptions import RemediationError, RuleAuditError, TelemetryFetchError

logger = logging.getLogger(__name__)

PairLike = Union[HAPair, Tuple[str, str]]


def to_ha_pairs(pairs: Optional[Iterable[PairLike]]) -> List[HAPair]:
    result = []
    for pair in pairs or []:
        if isinstance(pair, HAPair):
            result.append(pair)
        elif isinstance(pair, (tuple, list)) and len(pair) == 2 and pair[0] and pair[1]:
            result.append(HAPair(fw1=str(pair[0]), fw2=str(pair[1])))
        else:
            logger.debug(f"Skipping malformed HA pair: {pair!r}")
    return result


def summarize_rules(rules: Iterable[Rule]) -> AuditSummary:
    """Count rules per classification."""
    summary = AuditSummary()
    for rule in rules:
        summary.total_rules += 1
        if rule.action == RuleAction.DISABLE:
            summary.to_disable += 1
        elif rule.action == RuleAction.UNTARGET:
            summary.to_untarget += 1
        elif rule.action == RuleAction.IGNORE:
            summary.ignored_shared += 1
        elif rule.action == RuleAction.HA_PROTECTED:
            summary.ha_protected += 1
        elif rule.action == RuleAction.PROTECTED:
            summary.protected += 1
        else:
            summary.to_keep += 1
    return summary


class RuleAuditService:
    """Service for rule audit operations."""

    def __init__(
        self,
        fetcher: AbstractTelemetryFetcher,
        executor: Optional[AbstractRemediationExecutor] = None,
        protect_tag: str = settings.PROTECT_TAG,
        shared_device_group: str = settings.SHARED_DEVICE_GROUP
    ):
        self.fetcher = fetcher
        self.executor = executor
        self.protect_tag = protect_tag
        self.shared_device_group = shared_device_group

    def _fetch(self) -> TelemetrySnapshot:
        try:
            return self.fetcher.fetch_snapshot()
        except RuleAuditError:
            raise
        except Exception as e:
            logger.error(f"Telemetry fetch failed: {str(e)}")
            raise TelemetryFetchError(f"Failed to fetch rule telemetry: {str(e)}")

    def audit_snapshot(
        self,
        snapshot: TelemetrySnapshot,
        unused_days: Optional[int],
        ha_pairs: Optional[Iterable[PairLike]] = None,
        now: Optional[datetime] = None
    ) -> AuditResult:
        """
        Classify a complete telemetry snapshot.

        Args:
            snapshot: Every rule config and telemetry entry of the run
            unused_days: Inactivity threshold in days
            ha_pairs: HA pairs for this run
            now: Reference time, defaults to the current UTC time

        Returns:
            Classified rules and the device groups with enabled rules
        """
        classifier = RuleClassifier(unused_days, now)
        ha_index = HAIndex.from_pairs(to_ha_pairs(ha_pairs))
        aggregator = RuleAggregator(ha_index, self.protect_tag, self.shared_device_group)

        rules = classifier.classify_all(aggregator.aggregate(snapshot.entries, snapshot.rule_configs))
        device_groups = collect_device_groups(rules, snapshot.rule_configs)
        logger.info(f"Audit produced {len(rules)} rules across {len(device_groups)} device groups")
        return AuditResult(rules=rules, device_groups=device_groups)

    def run_unused_audit(
        self,
        unused_days: Optional[int],
        ha_pairs: Optional[Iterable[PairLike]] = None,
        now: Optional[datetime] = None
    ) -> AuditResult:
        validate_days(unused_days, "unused_days")
        logger.info(f"Starting unused-rule audit ({unused_days} days)")
        return self.audit_snapshot(self._fetch(), unused_days, ha_pairs, now)

    def run_disabled_audit(self, disabled_days: Optional[int], now: Optional[datetime] = None) -> DisabledAuditResult:
        validate_days(disabled_days, "disabled_days")
        logger.info(f"Starting disabled-rule audit ({disabled_days} days)")
        auditor = DisabledRuleAuditor(disabled_days, now, self.protect_tag)
        return auditor.audit(self._fetch().rule_configs)

    def preview(self) -> List[ApiCall]:
        try:
            return self.fetcher.preview_calls()
        except RuleAuditError:
            raise
        except Exception as e:
            logger.error(f"Preview failed: {str(e)}")
            raise TelemetryFetchError(f"Failed to generate preview: {str(e)}")

    @staticmethod
    def summarize(rules: Iterable[Rule]) -> AuditSummary:
        return summarize_rules(rules)

    @staticmethod
    def plan_remediation(
        rules: Sequence[AuditedRule],
        mode: Union[AuditMode, str],
        selected_ids: Optional[Collection[str]] = None,
        tag: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> RemediationPlan:
        return build_remediation_plan(rules, mode, selected_ids, tag, now)

    def apply_remediation(self, plan: RemediationPlan) -> RemediationResult:
        if self.executor is None:
            raise RemediationError("No remediation executor configured")
        return self.executor.apply(plan)
