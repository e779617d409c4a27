"""
Data models for Panorama rule auditing.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, field_validator


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Make a datetime timezone-aware in UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RuleAction(str, Enum):
    """Remediation classification assigned to each audited rule."""
    KEEP = "KEEP"
    DISABLE = "DISABLE"
    UNTARGET = "UNTARGET"
    IGNORE = "IGNORE"
    HA_PROTECTED = "HA-PROTECTED"
    PROTECTED = "PROTECTED"


class AuditMode(str, Enum):
    """Audit modes supported by the engine."""
    UNUSED = "unused"
    DISABLED = "disabled"


class RuleKey(NamedTuple):
    """Identity of a rule within one audit run."""
    device_group: str
    rule_name: str


class HAPair(BaseModel):
    """Two firewalls configured as a high-availability unit."""
    model_config = ConfigDict(frozen=True)

    fw1: str
    fw2: str


class RuleConfigEntry(BaseModel):
    """A security rule as configured in a device group rulebase."""
    device_group: str
    name: str
    rulebase: str = "pre-rulebase"
    disabled: bool = False
    tags: List[str] = []
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    @field_validator("created_at", "modified_at")
    @classmethod
    def timestamps_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @property
    def key(self) -> RuleKey:
        return RuleKey(self.device_group, self.name)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


class FirewallTarget(BaseModel):
    """A firewall a rule is targeted to, with its accumulated hit count."""
    name: str
    hit_count: int = 0
    has_hits: bool = False
    ha_partner: Optional[str] = None


class Rule(BaseModel):
    """An aggregated security rule and its classification."""
    id: str
    name: str
    device_group: str
    total_hits: int = 0  # max per-target accumulation, display only
    last_hit_date: datetime
    targets: List[FirewallTarget] = []
    is_shared: bool = False
    is_protected: bool = False
    action: Optional[RuleAction] = None
    suggested_action_notes: Optional[str] = None
    untarget_candidates: List[str] = []

    @field_validator("last_hit_date")
    @classmethod
    def timestamps_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def key(self) -> RuleKey:
        return RuleKey(self.device_group, self.name)

    def find_target(self, name: str) -> Optional[FirewallTarget]:
        for target in self.targets:
            if target.name == name:
                return target
        return None


class DisabledRuleRecord(BaseModel):
    """An administratively disabled rule found by the disabled-rule audit."""
    id: str
    name: str
    device_group: str
    hit_count: int = 0
    disabled_since: Optional[datetime] = None  # None when no timestamp was found
    targets: List[FirewallTarget] = []
    is_protected: bool = False
    action: RuleAction

    @field_validator("disabled_since")
    @classmethod
    def timestamps_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class AuditResult(BaseModel):
    """Result of an unused-rule audit."""
    rules: List[Rule] = []
    device_groups: List[str] = []


class DisabledAuditResult(BaseModel):
    """Result of a disabled-rule audit."""
    rules: List[DisabledRuleRecord] = []
    device_groups: List[str] = []


class AuditSummary(BaseModel):
    """Counts of rules per classification."""
    total_rules: int = 0
    to_disable: int = 0
    to_untarget: int = 0
    to_keep: int = 0
    ignored_shared: int = 0
    ha_protected: int = 0
    protected: int = 0
