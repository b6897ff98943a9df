"""Admin back-office router: companies and their credit ledgers."""

from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import get_admin_actor_id
from routers.rate_limit import rate_limit
from routers.responses import success_response
from services import credit_admin
from services.balances import verify_projection
from services.companies import get_company, list_companies, serialize_company, update_company
from services.credit_reports import get_history, get_summary, serialize_entry

router = APIRouter()
logger = logging.getLogger(__name__)

admin_credit_rate_limit = rate_limit(
    "admin_credits",
    limit=settings.ADMIN_CREDIT_RATE_LIMIT_PER_HOUR,
    window_seconds=3600,
)


class UpdateCompanyRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    industry: Optional[str] = Field(default=None, max_length=120)
    is_verified: Optional[bool] = None


class CreditAdjustmentRequest(BaseModel):
    # Signed: positive to add, negative to remove.
    amount: int
    reason: Optional[str] = None
    admin_note: Optional[str] = Field(default=None, max_length=2000)


class CreditAmountRequest(BaseModel):
    amount: int
    reason: Optional[str] = None
    admin_note: Optional[str] = Field(default=None, max_length=2000)


class CreditResetRequest(BaseModel):
    reason: Optional[str] = None
    admin_note: Optional[str] = Field(default=None, max_length=2000)


def _adjustment_payload(company, entry, previous_balance: int):
    return {
        "company_id": company.id,
        "company_name": company.name,
        "previous_balance": previous_balance,
        "adjustment": entry.delta,
        "new_balance": entry.resulting_balance,
        "entry": serialize_entry(entry),
    }


@router.get("")
async def admin_list_companies(
    search: Optional[str] = Query(default=None),
    industry: Optional[str] = Query(default=None),
    verification_status: Literal["all", "verified", "unverified"] = Query(default="all"),
    credit_range: Literal["all", "0", "1-10", "11-50", "51-100", "100+"] = Query(default="all"),
    sort_by: Literal["created_at", "name", "credits", "unlocked_profiles"] = Query(default="created_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    listing = await list_companies(
        db,
        search=search,
        industry=industry,
        verification_status=verification_status,
        credit_range=credit_range,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return success_response(
        {
            "companies": listing.companies,
            "total_count": listing.total_count,
            "page": listing.page,
            "limit": listing.limit,
            "stats": listing.stats,
        }
    )


@router.get("/{company_id}")
async def admin_get_company(
    company_id: str,
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    company = await get_company(db, company_id)
    summary = await get_summary(db, company_id)
    return success_response(
        {
            **serialize_company(company, balance=summary.balance, unlocked_count=summary.unlocked_count),
            "credit_summary": summary.to_payload(),
        }
    )


@router.patch("/{company_id}")
async def admin_update_company(
    company_id: str,
    request: UpdateCompanyRequest,
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        company = await update_company(
            db,
            company_id,
            name=request.name,
            industry=request.industry,
            is_verified=request.is_verified,
            actor_id=actor_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return success_response(serialize_company(company), "Company updated successfully")


@router.get("/{company_id}/credits")
async def admin_credit_history(
    company_id: str,
    limit: int = Query(default=settings.LEDGER_HISTORY_DEFAULT_LIMIT, ge=1),
    offset: int = Query(default=0, ge=0),
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    company = await get_company(db, company_id)
    summary = await get_summary(db, company_id)
    page = await get_history(db, company_id, limit, offset)
    return success_response(
        {
            "company_id": company.id,
            "company_name": company.name,
            "current_credits": summary.balance,
            "summary": summary.to_payload(),
            "history": [serialize_entry(entry) for entry in page.entries],
            "total_transactions": page.total_count,
            "limit": page.limit,
            "offset": page.offset,
        }
    )


@router.post("/{company_id}/credits")
async def admin_adjust_credits(
    company_id: str,
    request: CreditAdjustmentRequest,
    _rate_limit: None = Depends(admin_credit_rate_limit),
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    company = await get_company(db, company_id)
    entry = await credit_admin.adjust(
        db, company_id, request.amount, request.reason, request.admin_note, actor_id=actor_id
    )
    verb = "added" if entry.delta > 0 else "removed"
    return success_response(
        _adjustment_payload(company, entry, entry.resulting_balance - entry.delta),
        f"Successfully {verb} {abs(entry.delta)} credits",
    )


@router.post("/{company_id}/credits/grant")
async def admin_grant_credits(
    company_id: str,
    request: CreditAmountRequest,
    _rate_limit: None = Depends(admin_credit_rate_limit),
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    company = await get_company(db, company_id)
    entry = await credit_admin.grant(
        db, company_id, request.amount, request.reason, request.admin_note, actor_id=actor_id
    )
    return success_response(
        _adjustment_payload(company, entry, entry.resulting_balance - entry.delta),
        f"Successfully added {entry.delta} credits",
    )


@router.post("/{company_id}/credits/deduct")
async def admin_deduct_credits(
    company_id: str,
    request: CreditAmountRequest,
    _rate_limit: None = Depends(admin_credit_rate_limit),
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    company = await get_company(db, company_id)
    entry = await credit_admin.deduct(
        db, company_id, request.amount, request.reason, request.admin_note, actor_id=actor_id
    )
    return success_response(
        _adjustment_payload(company, entry, entry.resulting_balance - entry.delta),
        f"Successfully removed {abs(entry.delta)} credits",
    )


@router.post("/{company_id}/credits/reset")
async def admin_reset_credits(
    company_id: str,
    request: Optional[CreditResetRequest] = None,
    _rate_limit: None = Depends(admin_credit_rate_limit),
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    company = await get_company(db, company_id)
    options = request or CreditResetRequest()
    entry = await credit_admin.reset_balance(
        db,
        company_id,
        actor_id=actor_id,
        reason=options.reason if options.reason is not None else credit_admin.DEFAULT_RESET_REASON,
        admin_note=options.admin_note,
    )
    return success_response(
        _adjustment_payload(company, entry, entry.resulting_balance - entry.delta),
        "Credits reset to 0 successfully",
    )


@router.post("/{company_id}/credits/unlocks/reset")
async def admin_reset_unlocks(
    company_id: str,
    request: Optional[CreditResetRequest] = None,
    _rate_limit: None = Depends(admin_credit_rate_limit),
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    company = await get_company(db, company_id)
    options = request or CreditResetRequest()
    entry = await credit_admin.reset_unlocks(
        db,
        company_id,
        actor_id=actor_id,
        reason=options.reason if options.reason is not None else credit_admin.DEFAULT_UNLOCK_RESET_REASON,
        admin_note=options.admin_note,
    )
    return success_response(
        {
            "company_id": company.id,
            "company_name": company.name,
            "balance": entry.resulting_balance,
            "entry": serialize_entry(entry),
        },
        "Unlocked profiles reset successfully",
    )


@router.get("/{company_id}/credits/verify")
async def admin_verify_credits(
    company_id: str,
    actor_id: str = Depends(get_admin_actor_id),
    db: AsyncSession = Depends(get_db),
):
    check = await verify_projection(db, company_id)
    return success_response(
        {
            "company_id": check.company_id,
            "consistent": check.consistent,
            "entries_checked": check.entries_checked,
            "materialized_balance": check.materialized.balance,
            "replayed_balance": check.replayed.balance,
            "materialized_unlocked_count": len(check.materialized.unlocked_profile_ids),
            "replayed_unlocked_count": len(check.replayed.unlocked_profile_ids),
            "problems": check.problems,
        }
    )
