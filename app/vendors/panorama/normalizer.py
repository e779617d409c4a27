"""
Panorama XML API response normalization.

Turns device-group listings, rulebase configuration and ``show
rule-hit-count`` responses into rule config records and canonical telemetry
entries.
"""
import logging
import xml.etree.ElementTree as ET2
from datetime import datetime
from typing import List, NamedTuple, Optional, Union
from xml.sax.saxutils import quoteattr

import lxml.etree as ET

from app.models.audit import RuleConfigEntry
from app.models.telemetry import (
    AllConnectedTarget,
    DeviceTarget,
    RawTelemetryEntry,
    parse_hit_count,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

XmlInput = Union[bytes, str, ET2.Element, ET._Element]


class HitCountResult(NamedTuple):
    """Telemetry and rule timestamps extracted from one hit-count response."""
    entries: List[RawTelemetryEntry]
    created_at: Optional[datetime]
    modified_at: Optional[datetime]


def to_lxml(data: XmlInput) -> ET._Element:
    """
    Coerce raw XML or an ElementTree element into an lxml element.

    pan-os-python returns ``xml.etree.ElementTree`` elements, which lack
    lxml's xpath support.
    """
    if isinstance(data, ET._Element):
        return data
    if isinstance(data, ET2.Element):
        return ET.fromstring(ET2.tostring(data))
    if isinstance(data, str):
        data = data.encode("utf-8")
    return ET.fromstring(data)


def response_error(root: ET._Element) -> Optional[str]:
    """Return the error message of a ``status="error"`` response, else None."""
    if root.tag == "response" and root.get("status") == "error":
        message = " ".join(t.strip() for t in root.itertext() if t.strip())
        return message or "Panorama returned an error response"
    return None


def parse_device_groups(data: XmlInput) -> List[str]:
    root = to_lxml(data)
    names = root.xpath("//device-group/entry/@name")
    return list(dict.fromkeys(str(name) for name in names))


def parse_rule_configs(data: XmlInput, device_group: str, rulebase: str = "pre-rulebase") -> List[RuleConfigEntry]:
    """
    Extract security rules from a rulebase ``config get`` response.

    The rules may be rooted at ``result/rules`` or ``result/entry/rules``
    depending on the xpath queried; both are handled.
    """
    root = to_lxml(data)
    configs = []
    for index, entry in enumerate(root.xpath("//rules/entry")):
        name = entry.get("name") or entry.findtext("name")
        if not name:
            logger.debug(f"Skipping rule without name at index {index} in {device_group}")
            continue
        configs.append(
            RuleConfigEntry(
                device_group=device_group,
                name=name,
                rulebase=rulebase,
                disabled=(entry.findtext("disabled") or "").strip().lower() == "yes",
                tags=[str(member).strip() for member in entry.xpath("tag/member/text()")],
                created_at=parse_timestamp(entry.findtext("rule-creation-timestamp")),
                modified_at=parse_timestamp(entry.findtext("rule-modification-timestamp"))
            )
        )
    return configs


def _latest(*values: Optional[datetime]) -> Optional[datetime]:
    present = [value for value in values if value is not None]
    return max(present) if present else None


def parse_rule_hit_count(
    data: XmlInput,
    device_group: str,
    rule_name: str,
    rulebase: str = "pre-rulebase"
) -> HitCountResult:
    """
    Extract telemetry for one rule from a ``show rule-hit-count`` response.

    Per-device responses carry a ``device-vsys`` list; each entry becomes its
    own telemetry entry (``FW/vsys1`` is attributed to ``FW``, and
    ``all-connected=yes`` to the all-connected target). Responses without
    ``device-vsys`` carry the counters on the rule entry itself.
    """
    root = to_lxml(data)
    entries: List[RawTelemetryEntry] = []
    created_at = None
    modified_at = None

    rule_entries = root.xpath(
        "//rule-hit-count/device-group/entry/*[self::pre-rulebase or self::post-rulebase or self::rule-base]"
        "/entry/rules/entry[@name=$name]",
        name=rule_name
    )
    for rule_entry in rule_entries:
        rule_modified = parse_timestamp(rule_entry.findtext("rule-modification-timestamp"))
        created_at = _latest(created_at, parse_timestamp(rule_entry.findtext("rule-creation-timestamp")))
        modified_at = _latest(modified_at, rule_modified)

        vsys_entries = rule_entry.xpath("device-vsys/entry")
        if vsys_entries:
            for vsys in vsys_entries:
                vsys_modified = parse_timestamp(vsys.findtext("rule-modification-timestamp"))
                modified_at = _latest(modified_at, vsys_modified)
                if (vsys.findtext("all-connected") or "").strip() == "yes":
                    target = AllConnectedTarget()
                else:
                    device_name = (vsys.get("name") or vsys.findtext("name") or "").split("/")[0].strip()
                    if not device_name:
                        logger.debug(f"Skipping unnamed device-vsys entry for rule {rule_name}")
                        continue
                    target = DeviceTarget(names=[device_name])
                entries.append(
                    RawTelemetryEntry(
                        device_group=device_group,
                        rule_name=rule_name,
                        rulebase=rulebase,
                        hit_count=parse_hit_count(vsys.findtext("hit-count")),
                        last_used=parse_timestamp(vsys.findtext("last-hit-timestamp")),
                        modified_at=vsys_modified or rule_modified,
                        target=target
                    )
                )
        else:
            hit_count = rule_entry.findtext("hit-count") or rule_entry.findtext("hitcount")
            entries.append(
                RawTelemetryEntry(
                    device_group=device_group,
                    rule_name=rule_name,
                    rulebase=rulebase,
                    hit_count=parse_hit_count(hit_count),
                    last_used=parse_timestamp(rule_entry.findtext("last-hit-timestamp")),
                    modified_at=rule_modified,
                    target=AllConnectedTarget()
                )
            )

    return HitCountResult(entries=entries, created_at=created_at, modified_at=modified_at)


def build_hit_count_command(device_group: str, rule_name: str, rulebase: str = "pre-rulebase") -> str:
    """Op command querying the hit count of one security rule."""
    dg = quoteattr(device_group)
    rule = quoteattr(rule_name)
    return (
        f"<show><rule-hit-count><device-group><entry name={dg}>"
        f"<{rulebase}><entry name=\"security\"><rules><rule-name><entry name={rule}/></rule-name></rules>"
        f"</entry></{rulebase}></entry></device-group></rule-hit-count></show>"
    )
