"""
JSON report generator for rule audits.
"""
import csv
import json
from datetime import datetime, timezone
from typing import Any, Dict, List

from app.models.audit import AuditResult, DisabledAuditResult
from app.reports.base import BaseReportGenerator
from app.services.audit_service import summarize_rules
from exceptions.custom_exceptions import ReportGenerationError


class JSONReportGenerator(BaseReportGenerator):
    """JSON and CSV report generator for rule audits."""

    def generate_audit_report(self, audit_result: AuditResult, unused_days: int) -> str:
        report_data = {
            "report_type": "unused",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "threshold_days": unused_days,
            "device_groups": audit_result.device_groups,
            "summary": summarize_rules(audit_result.rules).model_dump(),
            "rules": [
                {
                    "device_group": rule.device_group,
                    "name": rule.name,
                    "action": rule.action.value if rule.action else None,
                    "total_hits": rule.total_hits,
                    "last_hit_date": rule.last_hit_date.isoformat(),
                    "targets": [
                        f"{target.name}{'' if target.has_hits else ' (unused)'}" for target in rule.targets
                    ],
                    "notes": rule.suggested_action_notes or ""
                }
                for rule in audit_result.rules
            ]
        }
        return json.dumps(report_data, indent=2)

    def generate_disabled_report(self, audit_result: DisabledAuditResult, disabled_days: int) -> str:
        report_data = {
            "report_type": "disabled",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "threshold_days": disabled_days,
            "device_groups": audit_result.device_groups,
            "rules": [
                {
                    "device_group": record.device_group,
                    "name": record.name,
                    "action": record.action.value,
                    "last_hit_date": record.disabled_since.isoformat() if record.disabled_since else "unknown",
                    "targets": [],
                    "notes": ""
                }
                for record in audit_result.rules
            ]
        }
        return json.dumps(report_data, indent=2)

    def export_report(self, report_content: str, format: str, filename: str) -> bool:
        """
        Export report to a file.

        Args:
            report_content: JSON report produced by this generator
            format: The format to export to (json, csv)
            filename: The filename to save to

        Returns:
            True if successful

        Raises:
            ReportGenerationError: If the format is unsupported or writing fails
        """
        if format.lower() not in ("json", "csv"):
            raise ReportGenerationError(f"Unsupported format: {format}")
        try:
            if format.lower() == "json":
                with open(filename, "w", encoding="utf-8") as f:
                    f.write(report_content)
            else:
                self._export_to_csv(report_content, filename)
            return True
        except (OSError, ValueError) as e:
            raise ReportGenerationError(f"Error exporting report: {str(e)}")

    def _export_to_csv(self, report_content: str, filename: str) -> None:
        """Write one CSV row per rule."""
        report_data: Dict[str, Any] = json.loads(report_content)
        rules: List[Dict[str, Any]] = report_data.get("rules", [])

        with open(filename, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(["Device Group", "Rule", "Action", "Last Hit", "Targets", "Notes"])
            for rule in rules:
                writer.writerow([
                    rule.get("device_group", ""),
                    rule.get("name", ""),
                    rule.get("action", ""),
                    rule.get("last_hit_date", ""),
                    "; ".join(rule.get("targets", [])),
                    rule.get("notes", "")
                ])
