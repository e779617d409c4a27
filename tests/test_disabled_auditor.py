"""
Unit tests for the disabled-rule auditor.
"""
import unittest
from datetime import datetime, timedelta, timezone

from app.core.disabled_auditor import DisabledRuleAuditor
from app.models.audit import RuleAction, RuleConfigEntry
from exceptions.custom_exceptions import InvalidAuditRequestError

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def config(name, disabled=True, modified_days_ago=None, created_days_ago=None, tags=None, device_group="DG1"):
    return RuleConfigEntry(
        device_group=device_group,
        name=name,
        disabled=disabled,
        tags=tags or [],
        modified_at=NOW - timedelta(days=modified_days_ago) if modified_days_ago is not None else None,
        created_at=NOW - timedelta(days=created_days_ago) if created_days_ago is not None else None
    )


class TestDisabledRuleAuditor(unittest.TestCase):
    """Test cases for DisabledRuleAuditor class."""

    def setUp(self):
        """Set up test fixtures."""
        self.auditor = DisabledRuleAuditor(90, now=NOW, protect_tag="PROTECT")

    def test_old_disabled_rule_is_eligible(self):
        """Test that a rule disabled past the threshold is a deletion candidate."""
        # Act
        result = self.auditor.audit([config("Old", modified_days_ago=120)])

        # Assert
        self.assertEqual(len(result.rules), 1)
        self.assertEqual(result.rules[0].action, RuleAction.DISABLE)
        self.assertEqual(result.rules[0].disabled_since, NOW - timedelta(days=120))
        self.assertFalse(result.rules[0].is_protected)

    def test_recently_disabled_rule_is_excluded(self):
        """Test that rules within the threshold are not returned at all."""
        result = self.auditor.audit([config("Recent", modified_days_ago=10)])

        self.assertEqual(result.rules, [])

    def test_enabled_rules_are_ignored(self):
        """Test that only disabled rules are considered."""
        result = self.auditor.audit([config("Enabled", disabled=False, modified_days_ago=400)])

        self.assertEqual(result.rules, [])
        self.assertEqual(result.device_groups, [])

    def test_unknown_disabled_date_is_eligible(self):
        """Test that rules without timestamps are treated as long disabled."""
        result = self.auditor.audit([config("Unknown")])

        self.assertEqual(result.rules[0].action, RuleAction.DISABLE)
        self.assertIsNone(result.rules[0].disabled_since)

    def test_creation_time_is_fallback(self):
        """Test that the creation timestamp is used without a modification timestamp."""
        recent = self.auditor.audit([config("Created", created_days_ago=5)])
        old = self.auditor.audit([config("Created", created_days_ago=500)])

        self.assertEqual(recent.rules, [])
        self.assertEqual(old.rules[0].action, RuleAction.DISABLE)

    def test_modification_time_takes_priority(self):
        """Test that a recent modification outranks an old creation date."""
        result = self.auditor.audit([config("Both", modified_days_ago=5, created_days_ago=500)])

        self.assertEqual(result.rules, [])

    def test_protected_rule_is_reported_as_protected(self):
        """Test that protected disabled rules are never deletion candidates."""
        # Arrange
        configs = [
            config("Keep-Me", modified_days_ago=400, tags=["PROTECT"]),
            config("Keep-Me-Too", modified_days_ago=1, tags=["PROTECT"]),
        ]

        # Act
        result = self.auditor.audit(configs)

        # Assert
        self.assertEqual([r.action for r in result.rules], [RuleAction.PROTECTED, RuleAction.PROTECTED])
        self.assertTrue(all(r.is_protected for r in result.rules))

    def test_device_groups_and_ids(self):
        """Test device group listing and unique record ids."""
        result = self.auditor.audit([
            config("A", device_group="Zeta"),
            config("B", device_group="Alpha"),
            config("C", device_group="Zeta"),
        ])

        self.assertEqual(result.device_groups, ["Alpha", "Zeta"])
        self.assertEqual(len({r.id for r in result.rules}), 3)

    def test_threshold_is_required(self):
        """Test that the disabled-days threshold is validated."""
        with self.assertRaises(InvalidAuditRequestError):
            DisabledRuleAuditor(0, now=NOW)


if __name__ == "__main__":
    unittest.main()
