"""
Unit tests for the rule aggregator.
"""
import unittest
from datetime import datetime, timedelta, timezone

from app.core.aggregator import RuleAggregator, collect_device_groups
from app.core.ha_index import HAIndex
from app.models.audit import RuleConfigEntry
from app.models.telemetry import EPOCH, AllConnectedTarget, DeviceTarget, RawTelemetryEntry

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def entry(device_group="DG1", rule_name="R1", hits=0, last_used=None, modified_at=None, names=None):
    return RawTelemetryEntry(
        device_group=device_group,
        rule_name=rule_name,
        hit_count=hits,
        last_used=last_used,
        modified_at=modified_at,
        target=DeviceTarget(names=names) if names else AllConnectedTarget()
    )


class TestRuleAggregator(unittest.TestCase):
    """Test cases for RuleAggregator class."""

    def setUp(self):
        """Set up test fixtures."""
        self.aggregator = RuleAggregator(HAIndex.from_text("FW-A:FW-B"), protect_tag="PROTECT", shared_device_group="shared")

    def test_one_rule_per_key(self):
        """Test that entries for the same rule merge into one record."""
        # Arrange
        entries = [
            entry(names=["FW-A"], hits=3),
            entry(names=["FW-B"], hits=0),
            entry(rule_name="R2", names=["FW-C"], hits=1),
            entry(device_group="DG2", names=["FW-A"], hits=1),
        ]

        # Act
        rules = self.aggregator.aggregate(entries)

        # Assert
        self.assertEqual([(r.device_group, r.name) for r in rules], [("DG1", "R1"), ("DG1", "R2"), ("DG2", "R1")])
        self.assertEqual([t.name for t in rules[0].targets], ["FW-A", "FW-B"])

    def test_hit_counts_accumulate_per_target(self):
        """Test that repeated entries for a target add up."""
        rules = self.aggregator.aggregate([
            entry(names=["FW-C"], hits=2),
            entry(names=["FW-C"], hits=5),
            entry(names=["FW-D"], hits=0),
        ])

        rule = rules[0]
        self.assertEqual(rule.find_target("FW-C").hit_count, 7)
        self.assertTrue(rule.find_target("FW-C").has_hits)
        self.assertFalse(rule.find_target("FW-D").has_hits)

    def test_total_hits_is_highest_target_count(self):
        """Test that the rule total reflects the busiest target."""
        rules = self.aggregator.aggregate([
            entry(names=["FW-C"], hits=4),
            entry(names=["FW-D"], hits=9),
            entry(names=["FW-C"], hits=2),
        ])

        self.assertEqual(rules[0].total_hits, 9)

    def test_last_hit_is_most_recent(self):
        """Test most-recent-wins for the rule last hit date."""
        older = NOW - timedelta(days=100)
        newer = NOW - timedelta(days=5)

        rules = self.aggregator.aggregate([
            entry(names=["FW-C"], last_used=older),
            entry(names=["FW-D"], last_used=newer),
        ])

        self.assertEqual(rules[0].last_hit_date, newer)

    def test_modification_time_is_use_proxy(self):
        """Test fallback to the modification timestamp when there is no last hit."""
        modified = NOW - timedelta(days=3)

        rules = self.aggregator.aggregate([entry(names=["FW-C"], modified_at=modified)])

        self.assertEqual(rules[0].last_hit_date, modified)

    def test_no_timestamps_means_epoch(self):
        """Test that a rule with no timestamps is maximally unused."""
        rules = self.aggregator.aggregate([entry(names=["FW-C"])])

        self.assertEqual(rules[0].last_hit_date, EPOCH)

    def test_naive_timestamps_are_compared_as_utc(self):
        """Test that naive last-used and config timestamps merge with aware ones."""
        # Arrange
        configs = [RuleConfigEntry(device_group="DG1", name="R1", modified_at=datetime(2024, 1, 1))]
        entries = [
            entry(names=["FW-C"], last_used=datetime(2024, 5, 1)),
            entry(names=["FW-D"], last_used=NOW - timedelta(days=400)),
        ]

        # Act
        rules = self.aggregator.aggregate(entries, configs)

        # Assert
        self.assertEqual(rules[0].last_hit_date, datetime(2024, 5, 1, tzinfo=timezone.utc))
        self.assertEqual(configs[0].modified_at.tzinfo, timezone.utc)

    def test_ha_partner_annotation(self):
        """Test that targets carry their HA partner."""
        rules = self.aggregator.aggregate([entry(names=["FW-A", "FW-C"])])

        self.assertEqual(rules[0].find_target("FW-A").ha_partner, "FW-B")
        self.assertIsNone(rules[0].find_target("FW-C").ha_partner)

    def test_all_connected_pseudo_target(self):
        """Test that undisaggregated telemetry becomes the "all" target."""
        rules = self.aggregator.aggregate([entry(hits=4)])

        self.assertEqual([t.name for t in rules[0].targets], ["all"])
        self.assertIsNone(rules[0].targets[0].ha_partner)

    def test_incomplete_entries_are_dropped(self):
        """Test that entries without a rule name or device group are skipped."""
        rules = self.aggregator.aggregate([
            entry(device_group=None),
            entry(rule_name=None),
            entry(rule_name=""),
            entry(names=["FW-C"]),
        ])

        self.assertEqual(len(rules), 1)

    def test_empty_input(self):
        """Test that no entries yield no rules."""
        self.assertEqual(self.aggregator.aggregate([]), [])

    def test_flags_from_rule_configs(self):
        """Test shared and protected flags and disabled-rule exclusion."""
        # Arrange
        configs = [
            RuleConfigEntry(device_group="DG1", name="R1", tags=["PROTECT"]),
            RuleConfigEntry(device_group="DG1", name="R2", disabled=True),
        ]
        entries = [
            entry(rule_name="R1", names=["FW-C"]),
            entry(rule_name="R2", names=["FW-C"]),
            entry(device_group="Shared", rule_name="R3"),
        ]

        # Act
        rules = self.aggregator.aggregate(entries, configs)

        # Assert
        self.assertEqual([r.name for r in rules], ["R1", "R3"])
        self.assertTrue(rules[0].is_protected)
        self.assertFalse(rules[0].is_shared)
        self.assertTrue(rules[1].is_shared)
        self.assertFalse(rules[1].is_protected)

    def test_rule_ids_are_unique(self):
        """Test that each rule receives its own identifier."""
        rules = self.aggregator.aggregate([entry(rule_name=f"R{i}") for i in range(5)])

        self.assertEqual(len({r.id for r in rules}), 5)


class TestCollectDeviceGroups(unittest.TestCase):
    """Test cases for collect_device_groups."""

    def test_sorted_unique_enabled_groups(self):
        """Test that only groups with enabled rules are listed."""
        # Arrange
        aggregator = RuleAggregator()
        rules = aggregator.aggregate([entry(device_group="Zeta"), entry(device_group="Alpha"), entry(device_group="Zeta", rule_name="R2")])
        configs = [
            RuleConfigEntry(device_group="Beta", name="X"),
            RuleConfigEntry(device_group="Gamma", name="Y", disabled=True),
        ]

        # Act
        groups = collect_device_groups(rules, configs)

        # Assert
        self.assertEqual(groups, ["Alpha", "Beta", "Zeta"])


if __name__ == "__main__":
    unittest.main()
