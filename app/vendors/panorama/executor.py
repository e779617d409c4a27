"""
Panorama remediation executor.
"""
import logging
from typing import Optional
from xml.sax.saxutils import escape, quoteattr

from panos.errors import PanDeviceError
from panos.panorama import Panorama

from app.core.remediation import ensure_no_protected
from app.models.remediation import RemediationItem, RemediationOperation, RemediationPlan, RemediationResult
from app.models.telemetry import ALL_CONNECTED
from app.vendors.abstract import AbstractRemediationExecutor
from app.vendors.panorama.client import build_panorama, xpath_literal
from config import settings
from exceptions.custom_exceptions import RemediationError

logger = logging.getLogger(__name__)


class PanoramaRemediationExecutor(AbstractRemediationExecutor):
    """Applies remediation plans to the Panorama candidate config and commits."""

    def __init__(
        self,
        pano: Optional[Panorama] = None,
        url: str = settings.PANORAMA_URL,
        api_key: str = settings.PANORAMA_API_KEY,
        device_name: str = settings.PANORAMA_DEVICE_NAME,
        production_mode: bool = settings.PRODUCTION_MODE,
        rulebase: str = "pre-rulebase"
    ):
        self.pano = pano
        self.url = url
        self.api_key = api_key
        self.device_name = device_name
        self.production_mode = production_mode
        self.rulebase = rulebase

    def _device(self) -> Panorama:
        if self.pano is None:
            self.pano = build_panorama(self.url, self.api_key)
        return self.pano

    def device_group_xpath(self, device_group: str) -> str:
        return (
            f"/config/devices/entry[@name={xpath_literal(self.device_name)}]"
            f"/device-group/entry[@name={xpath_literal(device_group)}]"
        )

    def rule_xpath(self, device_group: str, rule_name: str) -> str:
        return (
            f"{self.device_group_xpath(device_group)}/{self.rulebase}/security/rules"
            f"/entry[@name={xpath_literal(rule_name)}]"
        )

    def apply(self, plan: RemediationPlan) -> RemediationResult:
        """
        Apply every plan item, then commit once.

        Raises:
            RemediationError: If production mode is off or Panorama rejects a change
        """
        if not self.production_mode:
            raise RemediationError("Production mode must be enabled to apply remediation")
        ensure_no_protected(plan)

        result = RemediationResult(mode=plan.mode, tag=plan.tag)
        if not plan.items:
            logger.info("Remediation plan is empty; nothing to apply")
            return result

        tagged_groups = set()
        try:
            for item in plan.items:
                if item.operation == RemediationOperation.DISABLE:
                    if item.device_group not in tagged_groups:
                        self._ensure_tag(item.device_group, plan.tag)
                        tagged_groups.add(item.device_group)
                    self._disable(item, plan.tag)
                    result.disabled_count += 1
                elif item.operation == RemediationOperation.UNTARGET:
                    if not self._untarget(item):
                        logger.info(f"No targets removed from {item.device_group}/{item.name}")
                        continue
                    result.untargeted_count += 1
                elif item.operation == RemediationOperation.DELETE:
                    self._device().xapi.delete(xpath=self.rule_xpath(item.device_group, item.name))
                    result.deleted_count += 1
                result.applied.append(item.rule_id)
                logger.info(f"Applied {item.operation.value} to {item.device_group}/{item.name}")

            self._device().commit(sync=True, exception=True)
            result.committed = True
        except PanDeviceError as e:
            logger.error(f"Remediation failed after {len(result.applied)} changes: {str(e)}")
            raise RemediationError(f"Panorama rejected remediation: {str(e)}")

        logger.info(
            f"Remediation committed: {result.disabled_count} disabled, "
            f"{result.untargeted_count} untargeted, {result.deleted_count} deleted"
        )
        return result

    def _ensure_tag(self, device_group: str, tag: str) -> None:
        self._device().xapi.set(
            xpath=f"{self.device_group_xpath(device_group)}/tag",
            element=f"<entry name={quoteattr(tag)}/>"
        )

    def _disable(self, item: RemediationItem, tag: str) -> None:
        self._device().xapi.set(
            xpath=self.rule_xpath(item.device_group, item.name),
            element=f"<disabled>yes</disabled><tag><member>{escape(tag)}</member></tag>"
        )

    def _untarget(self, item: RemediationItem) -> int:
        rule_xpath = self.rule_xpath(item.device_group, item.name)
        removed = 0
        for firewall in item.remove_targets:
            if firewall == ALL_CONNECTED:
                logger.warning(f"Cannot untarget the all-connected target of {item.device_group}/{item.name}")
                continue
            self._device().xapi.delete(xpath=f"{rule_xpath}/target/devices/entry[@name={xpath_literal(firewall)}]")
            removed += 1
        return removed
