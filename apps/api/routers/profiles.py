"""Candidate profile viewing and unlocking for companies."""

from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.companies import require_company
from routers.rate_limit import rate_limit
from routers.responses import success_response
from services.balances import get_unlocked_set, is_unlocked
from services.candidates import get_active_profile, render_profile, render_search_results, search_candidates
from services.companies import get_company_for_owner
from services.unlocks import unlock

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def search_profiles(
    query: Optional[str] = Query(default=None, max_length=200),
    location: Optional[str] = Query(default=None, max_length=200),
    sort_by: Literal["relevance", "recent"] = Query(default="relevance"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=50),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Anonymized candidate search; profiles the caller's company unlocked come back in full."""
    results = await search_candidates(db, query=query, location=location, sort_by=sort_by, page=page, limit=limit)
    company = await get_company_for_owner(db, auth.user_id)
    unlocked_ids = await get_unlocked_set(db, company.id) if company else set()
    return success_response(render_search_results(results, unlocked_ids))


@router.get("/{profile_id}")
async def view_profile(
    profile_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Anonymized view unless the caller's company has unlocked the profile."""
    profile = await get_active_profile(db, profile_id)
    company = await get_company_for_owner(db, auth.user_id)
    unlocked = bool(company) and await is_unlocked(db, company.id, profile_id)
    return success_response(render_profile(profile, unlocked=unlocked))


@router.post("/{profile_id}/unlock")
async def unlock_profile(
    profile_id: str,
    _rate_limit: None = Depends(
        rate_limit("profile_unlock", limit=settings.UNLOCK_RATE_LIMIT_PER_HOUR, window_seconds=3600)
    ),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    company = await require_company(db, auth)
    company_id = company.id
    result = await unlock(db, company_id, profile_id)
    message = "Profile unlocked" if result.charged else "Profile already unlocked"
    logger.info(
        "profile_access company=%s user=%s profile=%s charged=%s",
        company_id,
        auth.user_id,
        profile_id,
        result.charged,
    )
    return success_response(result.to_payload(), message)
