"""
Remediation plan models handed to the executor.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from app.models.audit import AuditMode, RuleAction


class RemediationOperation(str, Enum):
    """Wire-level mutation an executor performs for one rule."""
    DISABLE = "disable"  # disable and tag
    UNTARGET = "untarget"
    DELETE = "delete"


class RemediationTarget(BaseModel):
    """A rule target as seen by the executor."""
    name: str
    has_hits: bool = False


class RemediationItem(BaseModel):
    """One rule selected for remediation."""
    rule_id: str
    device_group: str
    name: str
    action: RuleAction
    operation: RemediationOperation
    is_protected: bool = False
    targets: List[RemediationTarget] = []
    remove_targets: List[str] = []


class SkippedRule(BaseModel):
    """A selected rule left out of the plan and why."""
    rule_id: str
    device_group: str
    name: str
    action: Optional[RuleAction] = None
    reason: str


class RemediationPlan(BaseModel):
    """Everything the executor needs to remediate a selection of rules."""
    mode: AuditMode
    tag: str
    items: List[RemediationItem] = []
    skipped: List[SkippedRule] = []


class RemediationResult(BaseModel):
    """Outcome of applying a remediation plan."""
    mode: AuditMode
    tag: str
    disabled_count: int = 0
    untargeted_count: int = 0
    deleted_count: int = 0
    applied: List[str] = []
    committed: bool = False
