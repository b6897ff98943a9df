"""Read-only credit history and summaries."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from sqlalchemy import case, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.credit_ledger import CreditLedgerEntry
from services.balances import count_unlocked, get_balance


@dataclass
class HistoryPage:
    entries: List[CreditLedgerEntry]
    total_count: int
    limit: int
    offset: int


@dataclass
class CreditSummary:
    balance: int
    unlocked_count: int
    total_granted: int
    total_spent: int
    total_transactions: int

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


def serialize_entry(entry: CreditLedgerEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "company_id": entry.company_id,
        "sequence": entry.sequence,
        "entry_type": entry.entry_type,
        "delta": entry.delta,
        "resulting_balance": entry.resulting_balance,
        "reason": entry.reason,
        "admin_note": entry.admin_note,
        "actor_id": entry.actor_id,
        "related_profile_id": entry.related_profile_id,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }


def clamp_history_limit(limit: Any) -> int:
    try:
        value = int(limit)
    except (TypeError, ValueError):
        value = settings.LEDGER_HISTORY_DEFAULT_LIMIT
    return min(max(value, 1), max(int(settings.LEDGER_HISTORY_MAX_LIMIT), 1))


async def get_history(db: AsyncSession, company_id: str, limit: int, offset: int) -> HistoryPage:
    """Return the company's ledger, most recent first."""
    # Raises CompanyNotFound for unknown companies.
    await get_balance(db, company_id)

    page_limit = clamp_history_limit(limit)
    page_offset = int(offset)
    if page_offset < 0:
        raise ValueError("offset must be >= 0")

    result = await db.execute(
        select(CreditLedgerEntry)
        .where(CreditLedgerEntry.company_id == company_id)
        .order_by(CreditLedgerEntry.sequence.desc())
        .offset(page_offset)
        .limit(page_limit)
    )
    entries = list(result.scalars().all())
    total_result = await db.execute(
        select(func.count(CreditLedgerEntry.id)).where(CreditLedgerEntry.company_id == company_id)
    )
    return HistoryPage(
        entries=entries,
        total_count=int(total_result.scalar() or 0),
        limit=page_limit,
        offset=page_offset,
    )


async def get_summary(db: AsyncSession, company_id: str) -> CreditSummary:
    balance = await get_balance(db, company_id)
    totals = await db.execute(
        select(
            func.coalesce(func.sum(case((CreditLedgerEntry.delta > 0, CreditLedgerEntry.delta), else_=0)), 0),
            func.coalesce(func.sum(case((CreditLedgerEntry.delta < 0, -CreditLedgerEntry.delta), else_=0)), 0),
            func.count(CreditLedgerEntry.id),
        ).where(CreditLedgerEntry.company_id == company_id)
    )
    total_granted, total_spent, total_transactions = totals.one()
    return CreditSummary(
        balance=balance,
        unlocked_count=await count_unlocked(db, company_id),
        total_granted=int(total_granted or 0),
        total_spent=int(total_spent or 0),
        total_transactions=int(total_transactions or 0),
    )
