"""
Panorama XML API telemetry fetcher.
"""
import logging
from typing import List, Optional
from urllib.parse import quote, urlparse

from panos.errors import PanDeviceError
from panos.panorama import Panorama

from app.models.audit import RuleConfigEntry
from app.models.telemetry import TelemetrySnapshot
from app.vendors.abstract import AbstractTelemetryFetcher, ApiCall
from app.vendors.panorama.normalizer import (
    HitCountResult,
    build_hit_count_command,
    parse_device_groups,
    parse_rule_configs,
    parse_rule_hit_count,
    response_error,
    to_lxml,
)
from config import settings
from exceptions.custom_exceptions import TelemetryFetchError

logger = logging.getLogger(__name__)


def panorama_hostname(url: str) -> str:
    """Strip scheme and path from a Panorama URL; bare hostnames pass through."""
    parsed = urlparse(url if "://" in url else f"https://{url}")
    return parsed.netloc or parsed.path


def build_panorama(url: str, api_key: str) -> Panorama:
    if not url or not api_key:
        raise TelemetryFetchError("Panorama URL and API key are required")
    return Panorama(hostname=panorama_hostname(url), api_key=api_key, timeout=settings.PANORAMA_TIMEOUT)


def xpath_literal(value: str) -> str:
    """Quote a value for use inside an XPath predicate."""
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    return "concat(" + ", \"'\", ".join(f"'{part}'" for part in parts) + ")"


class PanoramaTelemetryFetcher(AbstractTelemetryFetcher):
    """Fetches pre-rulebase security rules and their hit counts from Panorama."""

    def __init__(
        self,
        pano: Optional[Panorama] = None,
        url: str = settings.PANORAMA_URL,
        api_key: str = settings.PANORAMA_API_KEY,
        device_name: str = settings.PANORAMA_DEVICE_NAME,
        rulebase: str = "pre-rulebase"
    ):
        self.url = url
        self.api_key = api_key
        self.pano = pano
        self.device_name = device_name
        self.rulebase = rulebase

    def _device(self) -> Panorama:
        if self.pano is None:
            self.pano = build_panorama(self.url, self.api_key)
        return self.pano

    def device_groups_xpath(self) -> str:
        return f"/config/devices/entry[@name={xpath_literal(self.device_name)}]/device-group"

    def rules_xpath(self, device_group: str) -> str:
        return f"{self.device_groups_xpath()}/entry[@name={xpath_literal(device_group)}]/{self.rulebase}/security/rules"

    def _get(self, xpath: str, device_group: Optional[str] = None):
        try:
            root = to_lxml(self._device().xapi.get(xpath=xpath))
        except PanDeviceError as e:
            logger.error(f"Panorama config get failed for {xpath}: {str(e)}")
            raise TelemetryFetchError(f"Panorama request failed: {str(e)}", device_group)
        error = response_error(root)
        if error:
            raise TelemetryFetchError(f"Panorama returned an error: {error}", device_group)
        return root

    def list_device_groups(self) -> List[str]:
        groups = parse_device_groups(self._get(self.device_groups_xpath()))
        logger.info(f"Found {len(groups)} device groups")
        return groups

    def fetch_rule_configs(self, device_group: str) -> List[RuleConfigEntry]:
        configs = parse_rule_configs(self._get(self.rules_xpath(device_group), device_group), device_group, self.rulebase)
        logger.info(
            f"Found {len(configs)} rules in {self.rulebase} of {device_group} "
            f"({sum(1 for c in configs if c.disabled)} disabled)"
        )
        return configs

    def fetch_rule_hit_count(self, device_group: str, rule_name: str) -> HitCountResult:
        command = build_hit_count_command(device_group, rule_name, self.rulebase)
        root = to_lxml(self._device().xapi.op(cmd=command))
        error = response_error(root)
        if error:
            raise TelemetryFetchError(f"Hit count query for {rule_name} failed: {error}", device_group)
        return parse_rule_hit_count(root, device_group, rule_name, self.rulebase)

    def fetch_snapshot(self) -> TelemetrySnapshot:
        """
        Walk every device group and collect rule configs plus telemetry.

        A hit-count failure for a single rule is logged and leaves the rule
        without telemetry; listing failures abort the fetch.
        """
        snapshot = TelemetrySnapshot()
        for device_group in self.list_device_groups():
            configs = self.fetch_rule_configs(device_group)
            for position, config in enumerate(configs, start=1):
                logger.debug(f"[{position}/{len(configs)}] Querying hit count for {device_group}/{config.name}")
                try:
                    result = self.fetch_rule_hit_count(device_group, config.name)
                except (PanDeviceError, TelemetryFetchError) as e:
                    logger.warning(f"Hit count query failed for {device_group}/{config.name}: {str(e)}")
                    snapshot.rule_configs.append(config)
                    continue

                config.created_at = config.created_at or result.created_at
                config.modified_at = config.modified_at or result.modified_at
                snapshot.rule_configs.append(config)
                if not config.disabled:
                    snapshot.entries.extend(result.entries)

        logger.info(
            f"Fetched {len(snapshot.rule_configs)} rules and {len(snapshot.entries)} telemetry entries"
        )
        return snapshot

    def preview_calls(self) -> List[ApiCall]:
        """List the config and op calls an audit would issue, without running hit-count queries."""
        base = f"{self.url.rstrip('/')}/api/"
        calls = [
            ApiCall(
                url=f"{base}?type=config&action=get&xpath={quote(self.device_groups_xpath())}",
                description="Fetch device groups list"
            )
        ]
        for device_group in self.list_device_groups():
            calls.append(
                ApiCall(
                    url=f"{base}?type=config&action=get&xpath={quote(self.rules_xpath(device_group))}",
                    description=f"Fetch {self.rulebase} rules for device group \"{device_group}\""
                )
            )
            for config in self.fetch_rule_configs(device_group):
                command = build_hit_count_command(device_group, config.name, self.rulebase)
                calls.append(
                    ApiCall(
                        url=f"{base}?type=op&cmd={quote(command)}",
                        description=(
                            f"Query rule-hit-count for rule \"{config.name}\" in {self.rulebase} "
                            f"of device group \"{device_group}\""
                        ),
                        xml_command=command
                    )
                )
        return calls
