"""
Abstract base classes for telemetry sources and remediation executors.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel

from app.models.remediation import RemediationPlan, RemediationResult
from app.models.telemetry import TelemetrySnapshot


class ApiCall(BaseModel):
    """An API call an audit would perform, for previewing."""
    url: str
    description: str
    xml_command: Optional[str] = None


class AbstractTelemetryFetcher(ABC):
    """Abstract base class for rule telemetry sources."""

    @abstractmethod
    def fetch_snapshot(self) -> TelemetrySnapshot:
        """
        Retrieve rule configuration and hit-count telemetry for every device group.

        Returns:
            Rule config records (enabled and disabled) and canonical
            telemetry entries for the enabled rules
        """
        pass

    def preview_calls(self) -> List[ApiCall]:
        """List the API calls an audit would make. Sources without a wire protocol make none."""
        return []


class AbstractRemediationExecutor(ABC):
    """Abstract base class for remediation executors."""

    @abstractmethod
    def apply(self, plan: RemediationPlan) -> RemediationResult:
        """
        Perform the mutations described by a remediation plan and commit them.

        Args:
            plan: Validated remediation plan

        Returns:
            Counts of applied operations
        """
        pass


class StaticTelemetryFetcher(AbstractTelemetryFetcher):
    """Serves a pre-built snapshot; used for offline audits, demos and tests."""

    def __init__(self, snapshot: TelemetrySnapshot):
        self.snapshot = snapshot

    def fetch_snapshot(self) -> TelemetrySnapshot:
        return self.snapshot.model_copy(deep=True)
