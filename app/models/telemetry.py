"""
Canonical telemetry models and the normalizers that produce them.

Panorama reports a rule's targets as a bare string, a singleton mapping or a
list depending on the query mode, and hit counts/timestamps arrive as strings
of epoch seconds. Everything is folded into ``RawTelemetryEntry`` here so the
aggregator only ever sees one shape.
"""
import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, field_validator

from app.models.audit import RuleConfigEntry, as_utc

logger = logging.getLogger(__name__)

ALL_CONNECTED = "all"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class AllConnectedTarget(BaseModel):
    """Telemetry that was not disaggregated by device."""
    kind: Literal["all"] = "all"


class DeviceTarget(BaseModel):
    """Telemetry attributed to one or more firewalls."""
    kind: Literal["devices"] = "devices"
    names: List[str]


TelemetryTarget = Annotated[Union[AllConnectedTarget, DeviceTarget], Field(discriminator="kind")]


class RawTelemetryEntry(BaseModel):
    """One hit-count measurement for a (device group, rule, target) tuple."""
    device_group: Optional[str] = None
    rule_name: Optional[str] = None
    hit_count: int = Field(default=0, ge=0)
    last_used: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    target: TelemetryTarget = Field(default_factory=AllConnectedTarget)
    rulebase: str = "pre-rulebase"

    @field_validator("last_used", "modified_at")
    @classmethod
    def timestamps_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class TelemetrySnapshot(BaseModel):
    """Everything a fetcher returns for one audit invocation."""
    rule_configs: List[RuleConfigEntry] = []
    entries: List[RawTelemetryEntry] = []


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Convert a Panorama timestamp into an aware UTC datetime.

    Accepts epoch seconds (int or digit string), ISO-8601 strings and
    datetimes. Zero and empty values mean "never" and return None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)):
        if value <= 0:
            return None
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            logger.debug(f"Out-of-range timestamp ignored: {value!r}")
            return None

    text = str(value).strip()
    if not text:
        return None
    if text.lstrip("-").isdigit():
        return parse_timestamp(int(text))
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable timestamp ignored: {text!r}")
        return None
    return parse_timestamp(parsed)


def parse_hit_count(value: Any) -> int:
    """Parse a hit count, treating missing, negative or garbage values as zero."""
    if value is None:
        return 0
    try:
        count = int(str(value).strip())
    except ValueError:
        logger.debug(f"Unparseable hit count treated as zero: {value!r}")
        return 0
    return max(count, 0)


def _target_name(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item.strip() or None
    if isinstance(item, Mapping):
        name = item.get("entry") or item.get("name")
        if isinstance(name, (str, Mapping)):
            return _target_name(name)
    return None


def normalize_target(raw: Any) -> Union[AllConnectedTarget, DeviceTarget]:
    """
    Fold any target shape into one of the two target variants.

    ``None``, ``"all"`` and lists that name no device become
    ``AllConnectedTarget``. Strings, ``{"entry": name}`` mappings and lists of
    either become a ``DeviceTarget`` with duplicates removed in order.
    """
    if isinstance(raw, (AllConnectedTarget, DeviceTarget)):
        return raw
    if raw is None:
        return AllConnectedTarget()

    items = raw if isinstance(raw, (list, tuple)) else [raw]
    names: List[str] = []
    for item in items:
        name = _target_name(item)
        if name and name != ALL_CONNECTED and name not in names:
            names.append(name)

    if not names:
        return AllConnectedTarget()
    return DeviceTarget(names=names)


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in mapping and mapping[key] not in (None, ""):
            return mapping[key]
    return None


def normalize_entry(raw: Mapping[str, Any]) -> RawTelemetryEntry:
    """
    Build a canonical entry from a loosely-typed mapping.

    Both the snake_case field names and the Panorama/JSON spellings
    (``devicegroup``, ``rulename``, ``hitcnt``, ``lastused``,
    ``last-hit-timestamp``, ``rule-modification-timestamp``) are accepted.
    """
    device_group = _first(raw, "device_group", "devicegroup", "deviceGroup")
    rule_name = _first(raw, "rule_name", "rulename", "ruleName", "name")

    data: Dict[str, Any] = {
        "device_group": str(device_group) if device_group is not None else None,
        "rule_name": str(rule_name) if rule_name is not None else None,
        "hit_count": parse_hit_count(_first(raw, "hit_count", "hitcnt", "hit-count", "hitCount")),
        "last_used": parse_timestamp(_first(raw, "last_used", "lastused", "last-hit-timestamp", "lastHitDate")),
        "modified_at": parse_timestamp(
            _first(raw, "modified_at", "modificationTimestamp", "rule-modification-timestamp")
        ),
        "target": normalize_target(raw.get("target")),
    }
    rulebase = _first(raw, "rulebase")
    if rulebase:
        data["rulebase"] = str(rulebase)
    return RawTelemetryEntry(**data)
