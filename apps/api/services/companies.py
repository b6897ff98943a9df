"""Company registry: creation, lookup and admin listing with credit information."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.company import Company
from models.credit_account import CreditAccount
from models.profile_unlock import ProfileUnlock
from services.errors import CompanyAlreadyExists, CompanyNotFound
from services.ledger import run_in_transaction

logger = logging.getLogger(__name__)

ALLOWED_VERIFICATION_FILTERS = {"all", "verified", "unverified"}
CREDIT_RANGES: Dict[str, Tuple[int, Optional[int]]] = {
    "0": (0, 0),
    "1-10": (1, 10),
    "11-50": (11, 50),
    "51-100": (51, 100),
    "100+": (101, None),
}
ALLOWED_SORT_KEYS = {"created_at", "name", "credits", "unlocked_profiles"}


@dataclass
class CompanyListing:
    companies: List[Dict[str, Any]]
    total_count: int
    page: int
    limit: int
    stats: Dict[str, int]


def _normalize_text(value: Any) -> str:
    return str(value or "").strip()


def serialize_company(company: Company, *, balance: Optional[int] = None, unlocked_count: Optional[int] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": company.id,
        "owner_user_id": company.owner_user_id,
        "name": company.name,
        "industry": company.industry,
        "is_verified": bool(company.is_verified),
        "created_at": company.created_at.isoformat() if company.created_at else None,
        "updated_at": company.updated_at.isoformat() if company.updated_at else None,
    }
    if balance is not None:
        payload["credits"] = int(balance)
    if unlocked_count is not None:
        payload["unlocked_profiles"] = int(unlocked_count)
    return payload


async def create_company(
    db: AsyncSession,
    *,
    owner_user_id: str,
    name: str,
    industry: Optional[str] = None,
) -> Company:
    """Create a company together with its zero-balance credit account."""
    clean_name = _normalize_text(name)
    if not clean_name:
        raise ValueError("Company name is required")

    existing = await db.execute(select(Company.id).where(Company.owner_user_id == owner_user_id))
    if existing.scalar_one_or_none():
        raise CompanyAlreadyExists(f"User {owner_user_id} already owns a company.")

    now = datetime.now(timezone.utc)
    company = Company(
        id=str(uuid.uuid4()),
        owner_user_id=owner_user_id,
        name=clean_name,
        industry=_normalize_text(industry) or None,
        is_verified=False,
        created_at=now,
    )

    async def _create() -> Company:
        db.add(company)
        await db.flush()
        db.add(CreditAccount(company_id=company.id, balance=0, version=0, created_at=now))
        await db.flush()
        return company

    try:
        created = await run_in_transaction(db, _create, reraise=(IntegrityError,))
    except IntegrityError as exc:
        raise CompanyAlreadyExists(f"User {owner_user_id} already owns a company.") from exc

    logger.info("company_created company=%s owner=%s", created.id, owner_user_id)
    return created


async def get_company(db: AsyncSession, company_id: str) -> Company:
    result = await db.execute(select(Company).where(Company.id == company_id))
    company = result.scalar_one_or_none()
    if company is None:
        raise CompanyNotFound(company_id)
    return company


async def get_company_for_owner(db: AsyncSession, user_id: str) -> Optional[Company]:
    result = await db.execute(select(Company).where(Company.owner_user_id == user_id))
    return result.scalar_one_or_none()


async def update_company(
    db: AsyncSession,
    company_id: str,
    *,
    name: Optional[str] = None,
    industry: Optional[str] = None,
    is_verified: Optional[bool] = None,
    actor_id: str,
) -> Company:
    company = await get_company(db, company_id)

    async def _update() -> Company:
        if name is not None:
            clean_name = _normalize_text(name)
            if not clean_name:
                raise ValueError("Company name cannot be blank")
            company.name = clean_name
        if industry is not None:
            company.industry = _normalize_text(industry) or None
        if is_verified is not None:
            company.is_verified = bool(is_verified)
        company.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return company

    updated = await run_in_transaction(db, _update)
    logger.info(
        "company_updated company=%s actor=%s verified=%s",
        company_id,
        actor_id,
        bool(updated.is_verified),
    )
    return updated


async def list_companies(
    db: AsyncSession,
    *,
    search: Optional[str] = None,
    industry: Optional[str] = None,
    verification_status: str = "all",
    credit_range: str = "all",
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 20,
) -> CompanyListing:
    """List companies with balance and unlocked-profile counts for the admin back office."""
    if verification_status not in ALLOWED_VERIFICATION_FILTERS:
        raise ValueError(f"Unsupported verification_status: {verification_status}")
    if credit_range != "all" and credit_range not in CREDIT_RANGES:
        raise ValueError(f"Unsupported credit_range: {credit_range}")
    if sort_by not in ALLOWED_SORT_KEYS:
        raise ValueError(f"Unsupported sort_by: {sort_by}")

    page = max(int(page), 1)
    limit = min(max(int(limit), 1), 100)

    unlock_counts = (
        select(ProfileUnlock.company_id.label("company_id"), func.count(ProfileUnlock.id).label("unlocked_count"))
        .group_by(ProfileUnlock.company_id)
        .subquery()
    )
    unlocked_count = func.coalesce(unlock_counts.c.unlocked_count, 0)

    filters = []
    search_text = _normalize_text(search)
    if search_text:
        pattern = f"%{search_text.lower()}%"
        filters.append(or_(func.lower(Company.name).like(pattern), func.lower(Company.owner_user_id).like(pattern)))
    if industry:
        filters.append(Company.industry == industry)
    if verification_status != "all":
        filters.append(Company.is_verified.is_(verification_status == "verified"))
    if credit_range != "all":
        low, high = CREDIT_RANGES[credit_range]
        filters.append(CreditAccount.balance >= low)
        if high is not None:
            filters.append(CreditAccount.balance <= high)
    where_clause = and_(*filters) if filters else None

    base = (
        select(Company, CreditAccount.balance, unlocked_count.label("unlocked_count"))
        .join(CreditAccount, CreditAccount.company_id == Company.id)
        .outerjoin(unlock_counts, unlock_counts.c.company_id == Company.id)
    )
    count_query = (
        select(func.count(Company.id), func.coalesce(func.sum(CreditAccount.balance), 0))
        .select_from(Company)
        .join(CreditAccount, CreditAccount.company_id == Company.id)
    )
    verified_query = (
        select(func.count(Company.id))
        .select_from(Company)
        .join(CreditAccount, CreditAccount.company_id == Company.id)
        .where(Company.is_verified.is_(True))
    )
    if where_clause is not None:
        base = base.where(where_clause)
        count_query = count_query.where(where_clause)
        verified_query = verified_query.where(where_clause)

    sort_columns = {
        "created_at": Company.created_at,
        "name": Company.name,
        "credits": CreditAccount.balance,
        "unlocked_profiles": unlocked_count,
    }
    sort_column = sort_columns[sort_by]
    ordering = sort_column.asc() if sort_order == "asc" else sort_column.desc()
    base = base.order_by(ordering, Company.id.asc()).offset((page - 1) * limit).limit(limit)

    rows = (await db.execute(base)).all()
    total_count, total_credits = (await db.execute(count_query)).one()
    verified_count = (await db.execute(verified_query)).scalar() or 0

    return CompanyListing(
        companies=[
            serialize_company(company, balance=balance, unlocked_count=count)
            for company, balance, count in rows
        ],
        total_count=int(total_count or 0),
        page=page,
        limit=limit,
        stats={
            "total_companies": int(total_count or 0),
            "verified_companies": int(verified_count),
            "total_credits": int(total_credits or 0),
        },
    )
