"""Verification API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from insurance_verification.api.dependencies import get_actor, get_lifecycle
from insurance_verification.api.requests import SubmitVerificationRequest
from insurance_verification.api.responses import (
    ExportResponse,
    VerificationListResponse,
    VerificationResponse,
)
from insurance_verification.models.enums import VerificationStatus
from insurance_verification.security.access_control import Actor
from insurance_verification.services.verification_service import VerificationLifecycle
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/verifications", tags=["Verifications"])


def _parse_status(status: Optional[str]) -> Optional[VerificationStatus]:
    if status is None:
        return None
    try:
        return VerificationStatus(status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status: {status}")


@router.post("", response_model=VerificationResponse, status_code=201)
async def submit_verification(
    request: SubmitVerificationRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: VerificationLifecycle = Depends(get_lifecycle),
):
    """
    Submit patient data for eligibility verification.

    The response always carries a resolved status; classifier outages show
    up as ``error`` with an explanation in ``ai_insights.reasoning``.
    """
    verification = await lifecycle.submit(actor, request.to_patient_data())
    return VerificationResponse.from_verification(verification)


@router.get("", response_model=VerificationListResponse)
async def list_verifications(
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    lifecycle: VerificationLifecycle = Depends(get_lifecycle),
):
    """List verifications newest first, identifiers masked."""
    verifications = await lifecycle.list(actor, status=_parse_status(status), limit=limit, offset=offset)
    return VerificationListResponse(
        verifications=[VerificationResponse.from_verification(v, masked=True) for v in verifications],
        limit=limit,
        offset=offset,
    )


@router.get("/export", response_model=ExportResponse)
async def export_verifications(
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: Optional[int] = Query(None, ge=1, le=10000),
    actor: Actor = Depends(get_actor),
    lifecycle: VerificationLifecycle = Depends(get_lifecycle),
):
    """Export verification summaries. Requires export permission."""
    rows = await lifecycle.export(actor, status=_parse_status(status), limit=limit)
    return ExportResponse(rows=rows, count=len(rows))


@router.get("/{verification_id}", response_model=VerificationResponse)
async def get_verification(
    verification_id: str,
    actor: Actor = Depends(get_actor),
    lifecycle: VerificationLifecycle = Depends(get_lifecycle),
):
    """Get one verification with full patient data."""
    verification = await lifecycle.get(actor, verification_id)
    return VerificationResponse.from_verification(verification)
