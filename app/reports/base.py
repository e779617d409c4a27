"""
Base report generator for rule audits.
"""
from abc import ABC, abstractmethod

from app.models.audit import AuditResult, DisabledAuditResult


class BaseReportGenerator(ABC):
    """Abstract base class for report generators."""

    @abstractmethod
    def generate_audit_report(self, audit_result: AuditResult, unused_days: int) -> str:
        """
        Generate a report from an unused-rule audit.

        Args:
            audit_result: Classified rules and device groups
            unused_days: Threshold the audit ran with

        Returns:
            Formatted report as string
        """
        pass

    @abstractmethod
    def generate_disabled_report(self, audit_result: DisabledAuditResult, disabled_days: int) -> str:
        """
        Generate a report from a disabled-rule audit.

        Args:
            audit_result: Disabled rules eligible for deletion
            disabled_days: Threshold the audit ran with

        Returns:
            Formatted report as string
        """
        pass

    @abstractmethod
    def export_report(self, report_content: str, format: str, filename: str) -> bool:
        """
        Export report to a specific format.

        Args:
            report_content: The report content to export
            format: The format to export to (json, csv)
            filename: The filename to save to

        Returns:
            True if successful
        """
        pass
