"""Prior authorization API routes."""
from typing import List

from fastapi import APIRouter, Depends

from insurance_verification.api.dependencies import get_actor, get_prior_auth_workflow
from insurance_verification.api.requests import InitiatePriorAuthRequest
from insurance_verification.api.responses import (
    PriorAuthResponse,
    SubmissionResponse,
    VerificationResponse,
)
from insurance_verification.security.access_control import Actor
from insurance_verification.services.prior_auth_service import PriorAuthWorkflow

router = APIRouter(tags=["Prior Authorization"])


@router.post("/verifications/{verification_id}/prior-auth", response_model=PriorAuthResponse, status_code=201)
async def initiate_prior_auth(
    verification_id: str,
    request: InitiatePriorAuthRequest,
    actor: Actor = Depends(get_actor),
    workflow: PriorAuthWorkflow = Depends(get_prior_auth_workflow),
):
    """Start prior authorization for a requires_auth verification."""
    created = await workflow.initiate(
        actor,
        verification_id,
        clinical_justification=request.clinical_justification or "",
        service_requested=request.service_requested,
        urgency=request.urgency,
        requested_by=request.requested_by,
    )
    return PriorAuthResponse.from_request(created)


@router.get("/verifications/{verification_id}/prior-auth", response_model=List[PriorAuthResponse])
async def list_prior_auth_for_verification(
    verification_id: str,
    actor: Actor = Depends(get_actor),
    workflow: PriorAuthWorkflow = Depends(get_prior_auth_workflow),
):
    requests = await workflow.list_for_verification(actor, verification_id)
    return [PriorAuthResponse.from_request(r) for r in requests]


@router.post("/prior-auth/{request_id}/submit", response_model=SubmissionResponse)
async def submit_prior_auth(
    request_id: str,
    actor: Actor = Depends(get_actor),
    workflow: PriorAuthWorkflow = Depends(get_prior_auth_workflow),
):
    """
    Submit a request to the payer.

    A payer transport failure returns 502 and the request stays pending.
    """
    outcome = await workflow.submit(actor, request_id)
    return SubmissionResponse(
        request=PriorAuthResponse.from_request(outcome.request),
        verification=VerificationResponse.from_verification(outcome.verification),
        approved=outcome.response.approved,
        message=outcome.response.message,
    )


@router.post("/prior-auth/{request_id}/abandon", response_model=PriorAuthResponse)
async def abandon_prior_auth(
    request_id: str,
    actor: Actor = Depends(get_actor),
    workflow: PriorAuthWorkflow = Depends(get_prior_auth_workflow),
):
    abandoned = await workflow.abandon(actor, request_id)
    return PriorAuthResponse.from_request(abandoned)


@router.get("/prior-auth/{request_id}", response_model=PriorAuthResponse)
async def track_prior_auth(
    request_id: str,
    actor: Actor = Depends(get_actor),
    workflow: PriorAuthWorkflow = Depends(get_prior_auth_workflow),
):
    """Track the status of a prior authorization request."""
    request = await workflow.track_status(actor, request_id)
    return PriorAuthResponse.from_request(request)
