"""Admin back-office router: candidate profiles, enrichment and approvals."""

from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import get_admin_actor_id
from routers.responses import success_response
from services.candidates import (
    ApprovalRequest,
    CandidateProfileInput,
    CandidateProfileUpdate,
    EnrichmentFields,
    apply_approval_action,
    create_candidate_profile,
    deactivate_candidate,
    get_candidate_profile,
    list_candidates,
    render_admin_profile,
    render_approval,
    update_admin_enrichment,
    update_candidate,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def admin_list_candidates(
    search: Optional[str] = Query(default=None),
    location: Optional[str] = Query(default=None),
    status: Literal["all", "active", "inactive"] = Query(default="all"),
    verification: Literal["all", "pending", "verified", "rejected"] = Query(default="all"),
    approval_status: Literal["all", "pending", "approved", "rejected", "changes_requested"] = Query(default="all"),
    include_inactive: bool = Query(default=False),
    sort_by: Literal["created_at", "updated_at", "title", "location"] = Query(default="updated_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    listing = await list_candidates(
        db,
        search=search,
        location=location,
        status=status,
        verification=verification,
        approval_status=approval_status,
        include_inactive=include_inactive,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return success_response(
        {
            "candidates": [render_admin_profile(profile) for profile in listing.profiles],
            "total_count": listing.total_count,
            "page": listing.page,
            "limit": listing.limit,
            "total_pages": listing.total_pages,
        }
    )


@router.post("", status_code=201)
async def admin_create_candidate(
    request: CandidateProfileInput,
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    profile = await create_candidate_profile(db, request)
    logger.info("admin_candidate_created profile=%s actor=%s", profile.id, actor_id)
    return success_response(render_admin_profile(profile), "Candidate profile created")


@router.get("/{profile_id}")
async def admin_get_candidate(
    profile_id: str,
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    profile = await get_candidate_profile(db, profile_id)
    return success_response(render_admin_profile(profile))


@router.patch("/{profile_id}")
async def admin_update_candidate(
    profile_id: str,
    request: CandidateProfileUpdate,
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        profile = await update_candidate(db, profile_id, request, actor_id=actor_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return success_response(render_admin_profile(profile), "Candidate profile updated")


@router.delete("/{profile_id}")
async def admin_deactivate_candidate(
    profile_id: str,
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    profile = await deactivate_candidate(db, profile_id, actor_id=actor_id)
    return success_response(render_admin_profile(profile), "Candidate profile deactivated")


@router.put("/{profile_id}/enrichment")
async def admin_update_enrichment(
    profile_id: str,
    request: EnrichmentFields,
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    profile = await update_admin_enrichment(db, profile_id, request, actor_id=actor_id)
    return success_response(render_admin_profile(profile), "Enrichment updated")


@router.get("/{profile_id}/approval")
async def admin_get_approval(
    profile_id: str,
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    profile = await get_candidate_profile(db, profile_id)
    return success_response(render_approval(profile))


@router.post("/{profile_id}/approval")
async def admin_apply_approval(
    profile_id: str,
    request: ApprovalRequest,
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    profile = await apply_approval_action(db, profile_id, request, actor_id=actor_id)
    messages = {
        "approve": "Candidate approved",
        "reject": "Candidate rejected",
        "request_changes": "Changes requested",
    }
    return success_response(render_approval(profile), messages[request.action])
