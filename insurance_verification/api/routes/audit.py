"""Audit log, compliance report and retention routes."""
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from insurance_verification.api.dependencies import get_actor, get_compliance_service
from insurance_verification.api.responses import AuditEntryResponse, AuditLogListResponse
from insurance_verification.models.audit import AuditFilters
from insurance_verification.models.enums import AuditAction, ResourceType
from insurance_verification.security.access_control import Actor
from insurance_verification.services.compliance_service import ComplianceService

router = APIRouter(tags=["Audit"])


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def query_audit_logs(
    actor_id: Optional[str] = Query(None, description="Filter by actor"),
    resource_type: Optional[str] = Query(None, description="verification | prior_auth | patient_data"),
    action: Optional[str] = Query(None, description="view | create | update | delete | export | print"),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    actor: Actor = Depends(get_actor),
    compliance: ComplianceService = Depends(get_compliance_service),
):
    """Query the audit log, newest first."""
    try:
        filters = AuditFilters(
            actor_id=actor_id,
            resource_type=ResourceType(resource_type) if resource_type else None,
            action=AuditAction(action) if action else None,
            start=start,
            end=end,
            limit=limit,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    entries = await compliance.query_audit_log(actor, filters)
    return AuditLogListResponse(
        entries=[AuditEntryResponse.from_entry(e) for e in entries],
        total=len(entries),
    )


@router.get("/audit-logs/report")
async def compliance_report(
    start: Optional[datetime] = Query(None, description="Defaults to 30 days ago"),
    end: Optional[datetime] = Query(None, description="Defaults to now"),
    actor: Actor = Depends(get_actor),
    compliance: ComplianceService = Depends(get_compliance_service),
):
    """Compliance report for a period."""
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(days=30)
    if start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    report = await compliance.generate_compliance_report(start, end, actor=actor)
    return report.to_dict()


@router.post("/retention/enforce")
async def enforce_retention(
    actor: Actor = Depends(get_actor),
    compliance: ComplianceService = Depends(get_compliance_service),
) -> Dict[str, Dict[str, int]]:
    """Purge records past retention. Requires delete permission."""
    deleted = await compliance.enforce_retention(actor)
    return {"deleted": deleted}
