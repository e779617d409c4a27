"""
Unit tests for telemetry normalization.
"""
import unittest
from datetime import datetime, timezone

from app.models.telemetry import (
    AllConnectedTarget,
    DeviceTarget,
    RawTelemetryEntry,
    normalize_entry,
    normalize_target,
    parse_hit_count,
    parse_timestamp,
)


class TestParseTimestamp(unittest.TestCase):
    """Test cases for parse_timestamp."""

    def test_epoch_seconds(self):
        """Test epoch values as int and string."""
        expected = datetime(2024, 1, 1, tzinfo=timezone.utc)

        self.assertEqual(parse_timestamp(1704067200), expected)
        self.assertEqual(parse_timestamp("1704067200"), expected)

    def test_zero_and_empty_mean_never(self):
        """Test that sentinel values parse to None."""
        for value in (None, 0, "0", "", "   ", -1):
            with self.subTest(value=value):
                self.assertIsNone(parse_timestamp(value))

    def test_iso_strings(self):
        """Test ISO-8601 input with a Z suffix."""
        self.assertEqual(
            parse_timestamp("2024-01-01T00:00:00Z"),
            datetime(2024, 1, 1, tzinfo=timezone.utc)
        )

    def test_naive_datetime_is_utc(self):
        """Test that naive datetimes are assumed UTC."""
        self.assertEqual(
            parse_timestamp(datetime(2024, 1, 1)),
            datetime(2024, 1, 1, tzinfo=timezone.utc)
        )

    def test_out_of_range_epoch_is_ignored(self):
        """Test that epochs beyond the datetime range parse to None."""
        self.assertIsNone(parse_timestamp(99999999999999))
        self.assertIsNone(parse_timestamp("99999999999999"))

    def test_garbage_is_ignored(self):
        """Test that unparseable text is dropped."""
        self.assertIsNone(parse_timestamp("yesterday"))


class TestParseHitCount(unittest.TestCase):
    """Test cases for parse_hit_count."""

    def test_values(self):
        """Test numeric, negative and garbage hit counts."""
        self.assertEqual(parse_hit_count("42"), 42)
        self.assertEqual(parse_hit_count(7), 7)
        self.assertEqual(parse_hit_count(None), 0)
        self.assertEqual(parse_hit_count("-3"), 0)
        self.assertEqual(parse_hit_count("n/a"), 0)


class TestNormalizeTarget(unittest.TestCase):
    """Test cases for normalize_target."""

    def test_all_connected_shapes(self):
        """Test the shapes that mean every connected device."""
        for raw in (None, "all", [], ["all"], [{"entry": ""}]):
            with self.subTest(raw=raw):
                self.assertIsInstance(normalize_target(raw), AllConnectedTarget)

    def test_bare_string(self):
        """Test a single device name."""
        self.assertEqual(normalize_target("FW-01"), DeviceTarget(names=["FW-01"]))

    def test_singleton_mapping(self):
        """Test the {"entry": name} singleton shape."""
        self.assertEqual(normalize_target({"entry": "FW-01"}), DeviceTarget(names=["FW-01"]))
        self.assertEqual(normalize_target({"name": "FW-02"}), DeviceTarget(names=["FW-02"]))

    def test_list_is_deduplicated_in_order(self):
        """Test that repeated names collapse to their first position."""
        result = normalize_target(["FW-02", {"entry": "FW-01"}, "FW-02", "all"])

        self.assertEqual(result.names, ["FW-02", "FW-01"])


class TestNormalizeEntry(unittest.TestCase):
    """Test cases for normalize_entry."""

    def test_panorama_spellings(self):
        """Test an entry using Panorama field names."""
        # Arrange
        raw = {
            "devicegroup": "DG1",
            "rulename": "Allow-Web",
            "hitcnt": "12",
            "lastused": "1704067200",
            "target": ["FW-01"],
        }

        # Act
        entry = normalize_entry(raw)

        # Assert
        self.assertEqual(entry.device_group, "DG1")
        self.assertEqual(entry.rule_name, "Allow-Web")
        self.assertEqual(entry.hit_count, 12)
        self.assertEqual(entry.last_used, datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(entry.target, DeviceTarget(names=["FW-01"]))

    def test_missing_fields_are_kept_empty(self):
        """Test that incomplete mappings still normalize."""
        entry = normalize_entry({"hit-count": "x"})

        self.assertIsNone(entry.device_group)
        self.assertIsNone(entry.rule_name)
        self.assertEqual(entry.hit_count, 0)
        self.assertIsInstance(entry.target, AllConnectedTarget)

    def test_naive_datetimes_are_utc(self):
        """Test that naive timestamps on entries become UTC."""
        entry = RawTelemetryEntry(
            device_group="DG1",
            rule_name="R1",
            last_used=datetime(2024, 1, 1),
            modified_at=datetime(2023, 6, 1)
        )

        self.assertEqual(entry.last_used, datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(entry.modified_at.tzinfo, timezone.utc)

    def test_modification_timestamp(self):
        """Test that the rule modification timestamp is captured."""
        entry = normalize_entry({
            "device_group": "DG1",
            "rule_name": "R1",
            "rule-modification-timestamp": "1704067200",
            "rulebase": "post-rulebase",
        })

        self.assertEqual(entry.modified_at, datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(entry.rulebase, "post-rulebase")


if __name__ == "__main__":
    unittest.main()
