"""
Custom exception classes for Panorama rule auditing.
"""
from typing import List, Optional


class RuleAuditError(Exception):
    """Base exception for rule audit errors."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class InvalidAuditRequestError(RuleAuditError):
    """Exception raised when an audit is invoked with invalid parameters."""

    def __init__(self, message: str, parameter: Optional[str] = None):
        self.parameter = parameter
        super().__init__(message, "INVALID_REQUEST")


class TelemetryFetchError(RuleAuditError):
    """Exception raised when rule telemetry cannot be retrieved from Panorama."""

    def __init__(self, message: str, device_group: Optional[str] = None):
        self.device_group = device_group
        super().__init__(message, "FETCH_ERROR")


class RemediationError(RuleAuditError):
    """Exception raised when remediation cannot be applied."""

    def __init__(self, message: str):
        super().__init__(message, "REMEDIATION_ERROR")


class ProtectedRuleError(RuleAuditError):
    """Exception raised when a protected rule reaches a remediation batch."""

    def __init__(self, message: str, rule_names: Optional[List[str]] = None):
        self.rule_names = rule_names or []
        super().__init__(message, "PROTECTED_RULE")


class ReportGenerationError(RuleAuditError):
    """Exception raised when report generation fails."""

    def __init__(self, message: str):
        super().__init__(message, "REPORT_ERROR")
