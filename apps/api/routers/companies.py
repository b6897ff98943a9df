"""Company self-service router: registration and own credit views."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from models.company import Company
from routers.auth_scope import AuthContext, get_auth_context
from routers.responses import success_response
from services.balances import get_unlocked_set
from services.companies import create_company, get_company_for_owner, serialize_company
from services.credit_reports import get_history, get_summary, serialize_entry

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateCompanyRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    industry: Optional[str] = Field(default=None, max_length=120)


async def require_company(db: AsyncSession, auth: AuthContext) -> Company:
    company = await get_company_for_owner(db, auth.user_id)
    if company is None:
        raise HTTPException(status_code=403, detail="Access denied: Company membership required.")
    return company


@router.post("", status_code=201)
async def register_company(
    request: CreateCompanyRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        company = await create_company(
            db,
            owner_user_id=auth.user_id,
            name=request.name,
            industry=request.industry,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return success_response(
        serialize_company(company, balance=0, unlocked_count=0),
        "Company registered successfully",
    )


@router.get("/me")
async def my_company(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    company = await require_company(db, auth)
    summary = await get_summary(db, company.id)
    return success_response(
        serialize_company(company, balance=summary.balance, unlocked_count=summary.unlocked_count)
    )


@router.get("/me/credits")
async def my_credits(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    company = await require_company(db, auth)
    summary = await get_summary(db, company.id)
    unlocked = sorted(await get_unlocked_set(db, company.id))
    return success_response(
        {
            "company_id": company.id,
            **summary.to_payload(),
            "unlocked_profile_ids": unlocked,
        }
    )


@router.get("/me/credits/history")
async def my_credit_history(
    limit: int = Query(default=settings.LEDGER_HISTORY_DEFAULT_LIMIT, ge=1),
    offset: int = Query(default=0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    company = await require_company(db, auth)
    page = await get_history(db, company.id, limit, offset)
    return success_response(
        {
            "company_id": company.id,
            "history": [serialize_entry(entry) for entry in page.entries],
            "total_count": page.total_count,
            "limit": page.limit,
            "offset": page.offset,
        }
    )
