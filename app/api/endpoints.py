"""
API endpoints for Panorama rule auditing.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from app.core.ha_index import parse_ha_pairs
from app.models.audit import AuditMode, DisabledRuleRecord, HAPair, Rule
from app.services.audit_service import RuleAuditService
from app.vendors.panorama.client import PanoramaTelemetryFetcher
from app.vendors.panorama.executor import PanoramaRemediationExecutor
from config import settings
from exceptions.custom_exceptions import (
    InvalidAuditRequestError,
    ProtectedRuleError,
    RuleAuditError,
)

router = APIRouter(prefix=settings.API_V1_STR)

logger = logging.getLogger(__name__)


class AuditRequest(BaseModel):
    """Request model for the unused-rule audit."""
    unused_days: int = settings.DEFAULT_UNUSED_DAYS
    ha_pairs: List[HAPair] = []
    ha_pairs_text: Optional[str] = None  # "fw1:fw2" per line


class DisabledAuditRequest(BaseModel):
    """Request model for the disabled-rule audit."""
    disabled_days: int = settings.DEFAULT_DISABLED_DAYS


class RemediationRequest(BaseModel):
    """Request model for remediation."""
    mode: AuditMode = AuditMode.UNUSED
    rules: List[Dict[str, Any]]
    selected_ids: Optional[List[str]] = None
    tag: Optional[str] = None


def get_audit_service() -> RuleAuditService:
    return RuleAuditService(PanoramaTelemetryFetcher(), PanoramaRemediationExecutor())


def _http_error(error: RuleAuditError) -> HTTPException:
    if isinstance(error, (InvalidAuditRequestError, ProtectedRuleError)):
        status_code = 400
    else:
        status_code = 502
    return HTTPException(status_code=status_code, detail={"error": error.message, "error_code": error.error_code})


@router.post("/audit")
def run_audit(request: AuditRequest, service: RuleAuditService = Depends(get_audit_service)) -> Dict[str, Any]:
    """
    Audit enabled rules for inactivity.

    Args:
        request: Threshold and HA pairs for this audit

    Returns:
        Classified rules, device groups and per-action counts
    """
    ha_pairs = list(request.ha_pairs)
    if request.ha_pairs_text:
        ha_pairs.extend(parse_ha_pairs(request.ha_pairs_text))

    logger.info(f"Received audit request: {request.unused_days} days, {len(ha_pairs)} HA pairs")
    try:
        result = service.run_unused_audit(request.unused_days, ha_pairs)
    except RuleAuditError as e:
        logger.error(f"Audit failed: {e.message}")
        raise _http_error(e)

    return {
        "rules": [rule.model_dump(mode="json") for rule in result.rules],
        "device_groups": result.device_groups,
        "summary": service.summarize(result.rules).model_dump()
    }


@router.post("/audit/disabled")
def run_disabled_audit(
    request: DisabledAuditRequest,
    service: RuleAuditService = Depends(get_audit_service)
) -> Dict[str, Any]:
    """Find rules disabled for longer than the threshold."""
    logger.info(f"Received disabled-rule audit request: {request.disabled_days} days")
    try:
        result = service.run_disabled_audit(request.disabled_days)
    except RuleAuditError as e:
        logger.error(f"Disabled-rule audit failed: {e.message}")
        raise _http_error(e)
    return result.model_dump(mode="json")


@router.post("/audit/preview")
def preview_audit(service: RuleAuditService = Depends(get_audit_service)) -> Dict[str, Any]:
    """List the Panorama API calls an audit would make."""
    try:
        calls = service.preview()
    except RuleAuditError as e:
        raise _http_error(e)
    return {"api_calls": [call.model_dump() for call in calls]}


@router.post("/remediate")
def remediate(
    request: RemediationRequest,
    service: RuleAuditService = Depends(get_audit_service)
) -> Dict[str, Any]:
    """
    Apply remediation to the selected rules.

    Unused-audit rules classified DISABLE are disabled and tagged, UNTARGET
    rules lose their unused targets; disabled-audit rules classified DISABLE
    are deleted. Protected rules are never touched.
    """
    if not settings.PRODUCTION_MODE:
        raise HTTPException(status_code=403, detail="Production mode must be enabled to apply remediation")

    model = Rule if request.mode == AuditMode.UNUSED else DisabledRuleRecord
    try:
        rules = [model.model_validate(rule) for rule in request.rules]
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid rule payload: {str(e)}")

    try:
        plan = service.plan_remediation(rules, request.mode, request.selected_ids, request.tag)
        if not plan.items:
            raise HTTPException(status_code=400, detail="No rules selected for remediation")
        result = service.apply_remediation(plan)
    except RuleAuditError as e:
        logger.error(f"Remediation failed: {e.message}")
        raise _http_error(e)

    return {
        "result": result.model_dump(mode="json"),
        "skipped": [skipped.model_dump(mode="json") for skipped in plan.skipped]
    }


@router.get("/config")
def get_config() -> Dict[str, Any]:
    """Audit defaults and remediation availability."""
    return {
        "default_unused_days": settings.DEFAULT_UNUSED_DAYS,
        "default_disabled_days": settings.DEFAULT_DISABLED_DAYS,
        "protect_tag": settings.PROTECT_TAG,
        "shared_device_group": settings.SHARED_DEVICE_GROUP,
        "production_mode": settings.PRODUCTION_MODE,
        "panorama_configured": bool(settings.PANORAMA_URL and settings.PANORAMA_API_KEY)
    }
