"""
Demo script running both audits against synthetic Panorama telemetry.
"""
import logging
import random
import sys
from datetime import datetime, timedelta, timezone

from app.core.ha_index import parse_ha_pairs
from app.models.audit import RuleConfigEntry
from app.models.telemetry import AllConnectedTarget, DeviceTarget, RawTelemetryEntry, TelemetrySnapshot
from app.reports.json_report import JSONReportGenerator
from app.services.audit_service import RuleAuditService
from app.vendors.abstract import StaticTelemetryFetcher

DEVICE_GROUPS = ["DataCenter", "Branch-West", "Branch-East", "DMZ-Internal", "Shared"]
FIREWALLS = ["FW-01", "FW-02", "FW-03", "FW-04", "FW-05", "FW-06"]
HA_PAIRS_TEXT = "FW-01:FW-02\nFW-03:FW-04\n"


def create_mock_snapshot(unused_days: int, rule_count: int = 30, seed: int = 7) -> TelemetrySnapshot:
    """
    Create a random but reproducible snapshot.

    Roughly one rule in six is disabled, and HA partners are usually
    targeted together, as they are on real deployments.
    """
    rng = random.Random(seed)
    now = datetime.now(timezone.utc)
    partners = {}
    for pair in parse_ha_pairs(HA_PAIRS_TEXT):
        partners[pair.fw1] = pair.fw2
        partners[pair.fw2] = pair.fw1

    snapshot = TelemetrySnapshot()
    for i in range(1, rule_count + 1):
        device_group = rng.choice(DEVICE_GROUPS)
        name = f"Access-Rule-{i:03d}"
        days_since_hit = rng.randrange(unused_days * 2)
        last_hit = now - timedelta(days=days_since_hit)
        disabled = rng.random() < 0.15
        tags = ["PROTECT"] if rng.random() < 0.1 else []

        snapshot.rule_configs.append(
            RuleConfigEntry(
                device_group=device_group,
                name=name,
                disabled=disabled,
                tags=tags,
                created_at=now - timedelta(days=unused_days * 3),
                modified_at=now - timedelta(days=rng.randrange(unused_days * 2)) if disabled else None
            )
        )
        if disabled:
            continue

        if device_group == "Shared":
            snapshot.entries.append(
                RawTelemetryEntry(
                    device_group=device_group,
                    rule_name=name,
                    hit_count=rng.randrange(100),
                    last_used=last_hit,
                    target=AllConnectedTarget()
                )
            )
            continue

        selected = []
        pool = FIREWALLS[:]
        rng.shuffle(pool)
        target_count = rng.randint(1, 4)
        for firewall in pool:
            if len(selected) >= target_count:
                break
            if firewall not in selected:
                selected.append(firewall)
            partner = partners.get(firewall)
            if partner and partner not in selected and rng.random() > 0.3:
                selected.append(partner)

        for firewall in selected:
            hits = 0 if days_since_hit > unused_days else rng.randrange(100)
            snapshot.entries.append(
                RawTelemetryEntry(
                    device_group=device_group,
                    rule_name=name,
                    hit_count=hits,
                    last_used=last_hit if hits else None,
                    modified_at=now - timedelta(days=unused_days * 3),
                    target=DeviceTarget(names=[firewall])
                )
            )

    return snapshot


def demonstrate_unused_audit(service: RuleAuditService, unused_days: int):
    """Run the unused-rule audit and print every classification."""
    print(f"=== Unused Rule Audit ({unused_days} days) ===\n")
    result = service.run_unused_audit(unused_days, parse_ha_pairs(HA_PAIRS_TEXT))

    for rule in result.rules:
        targets = ", ".join(
            f"{target.name}({target.hit_count})" for target in rule.targets
        )
        print(f"  {rule.device_group:<14} {rule.name:<18} {rule.action.value:<13} [{targets}]")
        if rule.untarget_candidates:
            print(f"      untarget: {', '.join(rule.untarget_candidates)}")

    summary = service.summarize(result.rules)
    print("\nSummary:")
    for field, value in summary.model_dump().items():
        print(f"  {field}: {value}")

    plan = service.plan_remediation(result.rules, "unused")
    print(f"\nRemediation plan (tag {plan.tag}): {len(plan.items)} rules, {len(plan.skipped)} skipped")
    for item in plan.items:
        print(f"  {item.operation.value:<9} {item.device_group}/{item.name} {item.remove_targets or ''}")
    return result


def demonstrate_disabled_audit(service: RuleAuditService, disabled_days: int):
    """Run the disabled-rule audit and print deletion candidates."""
    print(f"\n\n=== Disabled Rule Audit ({disabled_days} days) ===\n")
    result = service.run_disabled_audit(disabled_days)
    for record in result.rules:
        since = record.disabled_since.date().isoformat() if record.disabled_since else "unknown"
        print(f"  {record.device_group:<14} {record.name:<18} {record.action.value:<10} since {since}")
    if not result.rules:
        print("  No disabled rules past the threshold")
    return result


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    days = int(sys.argv[1]) if len(sys.argv) > 1 else 90
    service = RuleAuditService(StaticTelemetryFetcher(create_mock_snapshot(days)))

    audit_result = demonstrate_unused_audit(service, days)
    demonstrate_disabled_audit(service, days)

    if "--export" in sys.argv:
        generator = JSONReportGenerator()
        report = generator.generate_audit_report(audit_result, days)
        generator.export_report(report, "json", "unused_rules_report.json")
        generator.export_report(report, "csv", "unused_rules_report.csv")
        print("\nReports written to unused_rules_report.json and unused_rules_report.csv")
