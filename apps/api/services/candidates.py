"""Candidate profile storage, search, rendering, admin enrichment and approvals."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Collection, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import and_, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.candidate_profile import CandidateProfile
from services.errors import ProfileNotFound
from services.ledger import run_in_transaction

logger = logging.getLogger(__name__)

ANONYMOUS_DISPLAY_NAME = "Executive Profile"

APPROVAL_STATUS_BY_ACTION = {
    "approve": "approved",
    "reject": "rejected",
    "request_changes": "changes_requested",
}
ALLOWED_ADMIN_SORT_KEYS = {"created_at", "updated_at", "title", "location"}
ALLOWED_SEARCH_SORT_KEYS = {"relevance", "recent"}


class EnrichmentFields(BaseModel):
    """Admin-editable enrichment fields."""

    verification_status: Literal["pending", "verified", "rejected"] = "pending"
    admin_notes: Optional[str] = Field(default=None, max_length=2000)
    quality_score: Optional[int] = Field(default=None, ge=0, le=100)
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: List[str]) -> List[str]:
        seen: List[str] = []
        for tag in value:
            text = str(tag or "").strip()
            if not text:
                raise ValueError("tags must be non-empty strings")
            if text not in seen:
                seen.append(text)
        return seen


class ApprovalRecord(BaseModel):
    action: Literal["approve", "reject", "request_changes"]
    status: Literal["approved", "rejected", "changes_requested"]
    reason: str = ""
    required_changes: List[str] = Field(default_factory=list)
    actor_id: str
    created_at: datetime


class AdminEnrichment(EnrichmentFields):
    """Structured admin-only enrichment stored alongside a candidate profile.

    ``approval_status`` and ``approval_history`` only change through
    ``apply_approval_action``.
    """

    approval_status: Literal["pending", "approved", "rejected", "changes_requested"] = "pending"
    approval_history: List[ApprovalRecord] = Field(default_factory=list)


class ApprovalRequest(BaseModel):
    action: Literal["approve", "reject", "request_changes"]
    reason: Optional[str] = Field(default=None, max_length=1000)
    required_changes: List[str] = Field(default_factory=list)


class CandidateProfileInput(BaseModel):
    user_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    linkedin_url: Optional[str] = None
    is_anonymized: bool = True
    is_active: bool = True
    profile_completed: bool = False


class CandidateProfileUpdate(BaseModel):
    """Partial update; only fields present in the request are written."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    linkedin_url: Optional[str] = None
    is_anonymized: Optional[bool] = None
    is_active: Optional[bool] = None
    profile_completed: Optional[bool] = None


@dataclass
class CandidatePage:
    profiles: List[CandidateProfile]
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.limit - 1) // self.limit if self.limit else 0


async def create_candidate_profile(db: AsyncSession, payload: CandidateProfileInput) -> CandidateProfile:
    profile = CandidateProfile(
        id=str(uuid.uuid4()),
        created_at=datetime.now(timezone.utc),
        **payload.model_dump(),
    )

    async def _create() -> CandidateProfile:
        db.add(profile)
        await db.flush()
        return profile

    created = await run_in_transaction(db, _create)
    logger.info("candidate_profile_created profile=%s", created.id)
    return created


async def get_candidate_profile(db: AsyncSession, profile_id: str) -> CandidateProfile:
    result = await db.execute(select(CandidateProfile).where(CandidateProfile.id == profile_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        raise ProfileNotFound(profile_id)
    return profile


async def get_active_profile(db: AsyncSession, profile_id: str) -> CandidateProfile:
    """Return an active profile; inactive profiles are treated as missing."""
    profile = await get_candidate_profile(db, profile_id)
    if not profile.is_active:
        raise ProfileNotFound(profile_id)
    return profile


async def update_candidate(
    db: AsyncSession,
    profile_id: str,
    changes: CandidateProfileUpdate,
    *,
    actor_id: str,
) -> CandidateProfile:
    profile = await get_candidate_profile(db, profile_id)
    updates = changes.model_dump(exclude_unset=True)
    for field_name in ("is_anonymized", "is_active", "profile_completed"):
        if field_name in updates and updates[field_name] is None:
            raise ValueError(f"{field_name} cannot be null")

    async def _update() -> CandidateProfile:
        for field_name, value in updates.items():
            setattr(profile, field_name, value)
        profile.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return profile

    updated = await run_in_transaction(db, _update)
    logger.info(
        "candidate_profile_updated profile=%s actor=%s fields=%s",
        profile_id,
        actor_id,
        ",".join(sorted(updates)),
    )
    return updated


async def deactivate_candidate(db: AsyncSession, profile_id: str, *, actor_id: str) -> CandidateProfile:
    """Soft delete: the profile disappears from search and can no longer be unlocked."""
    return await update_candidate(db, profile_id, CandidateProfileUpdate(is_active=False), actor_id=actor_id)


def _verification_status_column():
    return func.coalesce(CandidateProfile.admin_enrichment_json["verification_status"].as_string(), "pending")


def _approval_status_column():
    return func.coalesce(CandidateProfile.admin_enrichment_json["approval_status"].as_string(), "pending")


async def _paginate(db: AsyncSession, filters: List[Any], ordering: List[Any], page: int, limit: int) -> CandidatePage:
    where_clause = and_(*filters) if filters else None

    query = select(CandidateProfile)
    count_query = select(func.count(CandidateProfile.id))
    if where_clause is not None:
        query = query.where(where_clause)
        count_query = count_query.where(where_clause)

    query = query.order_by(*ordering, CandidateProfile.id.asc()).offset((page - 1) * limit).limit(limit)
    profiles = list((await db.execute(query)).scalars().all())
    total_count = int((await db.execute(count_query)).scalar() or 0)
    return CandidatePage(profiles=profiles, total_count=total_count, page=page, limit=limit)


def _like(value: str) -> str:
    return f"%{value.lower()}%"


async def search_candidates(
    db: AsyncSession,
    *,
    query: Optional[str] = None,
    location: Optional[str] = None,
    sort_by: str = "relevance",
    page: int = 1,
    limit: int = 12,
) -> CandidatePage:
    """Company-facing search over active, completed profiles."""
    if sort_by not in ALLOWED_SEARCH_SORT_KEYS:
        raise ValueError(f"Unsupported sort_by: {sort_by}")
    page = max(int(page), 1)
    limit = min(max(int(limit), 1), 50)

    filters: List[Any] = [
        CandidateProfile.is_active.is_(True),
        CandidateProfile.profile_completed.is_(True),
    ]
    query_text = str(query or "").strip()
    if query_text:
        pattern = _like(query_text)
        filters.append(
            or_(
                func.lower(CandidateProfile.title).like(pattern),
                func.lower(CandidateProfile.summary).like(pattern),
                func.lower(CandidateProfile.location).like(pattern),
            )
        )
    location_text = str(location or "").strip()
    if location_text:
        filters.append(func.lower(CandidateProfile.location).like(_like(location_text)))

    if sort_by == "recent":
        ordering = [func.coalesce(CandidateProfile.updated_at, CandidateProfile.created_at).desc()]
    else:
        ordering = [CandidateProfile.created_at.desc()]
    return await _paginate(db, filters, ordering, page, limit)


async def list_candidates(
    db: AsyncSession,
    *,
    search: Optional[str] = None,
    location: Optional[str] = None,
    status: str = "all",
    verification: str = "all",
    approval_status: str = "all",
    include_inactive: bool = False,
    sort_by: str = "updated_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 20,
) -> CandidatePage:
    """Admin listing. Inactive profiles are hidden unless requested or filtered for."""
    if sort_by not in ALLOWED_ADMIN_SORT_KEYS:
        raise ValueError(f"Unsupported sort_by: {sort_by}")
    page = max(int(page), 1)
    limit = min(max(int(limit), 1), 100)

    filters: List[Any] = []
    if status == "active":
        filters.append(CandidateProfile.is_active.is_(True))
    elif status == "inactive":
        filters.append(CandidateProfile.is_active.is_(False))
    elif not include_inactive:
        filters.append(CandidateProfile.is_active.is_(True))

    search_text = str(search or "").strip()
    if search_text:
        pattern = _like(search_text)
        filters.append(
            or_(
                func.lower(CandidateProfile.first_name).like(pattern),
                func.lower(CandidateProfile.last_name).like(pattern),
                func.lower(CandidateProfile.email).like(pattern),
                func.lower(CandidateProfile.title).like(pattern),
                func.lower(CandidateProfile.summary).like(pattern),
            )
        )
    location_text = str(location or "").strip()
    if location_text:
        filters.append(func.lower(CandidateProfile.location).like(_like(location_text)))
    if verification != "all":
        filters.append(_verification_status_column() == verification)
    if approval_status != "all":
        filters.append(_approval_status_column() == approval_status)

    sort_columns = {
        "created_at": CandidateProfile.created_at,
        "updated_at": func.coalesce(CandidateProfile.updated_at, CandidateProfile.created_at),
        "title": CandidateProfile.title,
        "location": CandidateProfile.location,
    }
    sort_column = sort_columns[sort_by]
    ordering = [sort_column.asc() if sort_order == "asc" else sort_column.desc()]
    return await _paginate(db, filters, ordering, page, limit)


def _display_name(profile: CandidateProfile) -> str:
    name = f"{profile.first_name or ''} {profile.last_name or ''}".strip()
    return name or ANONYMOUS_DISPLAY_NAME


def render_profile(profile: CandidateProfile, *, unlocked: bool) -> Dict[str, Any]:
    """Serialize a profile for a company viewer.

    Contact details are only included when the profile is not anonymized or
    the viewer's company has unlocked it.
    """
    show_full = unlocked or not profile.is_anonymized
    payload: Dict[str, Any] = {
        "id": profile.id,
        "title": profile.title,
        "summary": profile.summary,
        "location": profile.location,
        "profile_completed": bool(profile.profile_completed),
        "is_anonymized": not show_full,
        "is_unlocked": bool(unlocked),
        "display_name": ANONYMOUS_DISPLAY_NAME,
        "contact": None,
    }
    if show_full:
        payload["display_name"] = _display_name(profile)
        payload["contact"] = {
            "first_name": profile.first_name,
            "last_name": profile.last_name,
            "email": profile.email,
            "linkedin_url": profile.linkedin_url,
        }
    return payload


def render_search_results(page: CandidatePage, unlocked_ids: Collection[str]) -> Dict[str, Any]:
    return {
        "profiles": [render_profile(profile, unlocked=profile.id in unlocked_ids) for profile in page.profiles],
        "pagination": {
            "page": page.page,
            "limit": page.limit,
            "total": page.total_count,
            "total_pages": page.total_pages,
        },
    }


def render_admin_profile(profile: CandidateProfile) -> Dict[str, Any]:
    payload = render_profile(profile, unlocked=True)
    payload["is_anonymized"] = bool(profile.is_anonymized)
    payload["is_active"] = bool(profile.is_active)
    payload["user_id"] = profile.user_id
    payload["admin_enrichment"] = load_admin_enrichment(profile).model_dump(mode="json")
    payload["created_at"] = profile.created_at.isoformat() if profile.created_at else None
    payload["updated_at"] = profile.updated_at.isoformat() if profile.updated_at else None
    return payload


def render_approval(profile: CandidateProfile) -> Dict[str, Any]:
    enrichment = load_admin_enrichment(profile)
    history = [record.model_dump(mode="json") for record in reversed(enrichment.approval_history)]
    return {
        "candidate_id": profile.id,
        "status": enrichment.approval_status,
        "is_active": bool(profile.is_active),
        "last_action": history[0] if history else None,
        "history": history,
    }


def load_admin_enrichment(profile: CandidateProfile) -> AdminEnrichment:
    return AdminEnrichment.model_validate(profile.admin_enrichment_json or {})


async def update_admin_enrichment(
    db: AsyncSession,
    profile_id: str,
    enrichment: EnrichmentFields,
    *,
    actor_id: str,
) -> CandidateProfile:
    """Replace the editable enrichment fields, keeping approval state."""
    profile = await get_candidate_profile(db, profile_id)
    merged = load_admin_enrichment(profile).model_copy(update=enrichment.model_dump())

    async def _update() -> CandidateProfile:
        profile.admin_enrichment_json = merged.model_dump(mode="json")
        profile.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return profile

    updated = await run_in_transaction(db, _update)
    logger.info(
        "candidate_enrichment_updated profile=%s actor=%s status=%s",
        profile_id,
        actor_id,
        enrichment.verification_status,
    )
    return updated


async def apply_approval_action(
    db: AsyncSession,
    profile_id: str,
    request: ApprovalRequest,
    *,
    actor_id: str,
) -> CandidateProfile:
    """Record an approval decision.

    Approving activates and completes the profile, rejecting deactivates it,
    and requesting changes leaves it as is. Every action is appended to the
    approval history.
    """
    profile = await get_candidate_profile(db, profile_id)
    enrichment = load_admin_enrichment(profile)
    status = APPROVAL_STATUS_BY_ACTION[request.action]
    now = datetime.now(timezone.utc)
    record = ApprovalRecord(
        action=request.action,
        status=status,
        reason=str(request.reason or "").strip(),
        required_changes=[str(item).strip() for item in request.required_changes if str(item or "").strip()],
        actor_id=actor_id,
        created_at=now,
    )
    updated_enrichment = enrichment.model_copy(
        update={
            "approval_status": status,
            "approval_history": [*enrichment.approval_history, record],
        }
    )

    async def _apply() -> CandidateProfile:
        if request.action == "approve":
            profile.is_active = True
            profile.profile_completed = True
        elif request.action == "reject":
            profile.is_active = False
        profile.admin_enrichment_json = updated_enrichment.model_dump(mode="json")
        profile.updated_at = now
        await db.flush()
        return profile

    updated = await run_in_transaction(db, _apply)
    logger.info(
        "candidate_approval profile=%s actor=%s action=%s status=%s",
        profile_id,
        actor_id,
        request.action,
        status,
    )
    return updated
