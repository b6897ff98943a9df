"""Balance projector: materialized credit state and ledger replay."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.credit_account import CreditAccount
from models.credit_ledger import ENTRY_PROFILE_UNLOCK, ENTRY_UNLOCK_RESET, CreditLedgerEntry
from models.profile_unlock import ProfileUnlock
from services.errors import CompanyNotFound


@dataclass
class ProjectedState:
    balance: int = 0
    unlocked_profile_ids: Set[str] = field(default_factory=set)


@dataclass
class ProjectionCheck:
    company_id: str
    consistent: bool
    entries_checked: int
    materialized: ProjectedState
    replayed: ProjectedState
    problems: List[str] = field(default_factory=list)


def apply_entry(state: ProjectedState, entry: CreditLedgerEntry) -> ProjectedState:
    """Fold a single ledger entry into ``state`` (in place) and return it."""
    state.balance += int(entry.delta)
    if entry.entry_type == ENTRY_PROFILE_UNLOCK and entry.related_profile_id:
        state.unlocked_profile_ids.add(entry.related_profile_id)
    elif entry.entry_type == ENTRY_UNLOCK_RESET:
        state.unlocked_profile_ids.clear()
    return state


def replay_entries(entries: Iterable[CreditLedgerEntry]) -> ProjectedState:
    """Replay ledger entries from the empty state, in sequence order."""
    state = ProjectedState()
    for entry in sorted(entries, key=lambda item: int(item.sequence)):
        apply_entry(state, entry)
    return state


async def _get_account_balance(db: AsyncSession, company_id: str) -> Optional[int]:
    result = await db.execute(select(CreditAccount.balance).where(CreditAccount.company_id == company_id))
    balance = result.scalar_one_or_none()
    return None if balance is None else int(balance)


async def get_balance(db: AsyncSession, company_id: str) -> int:
    balance = await _get_account_balance(db, company_id)
    if balance is None:
        raise CompanyNotFound(company_id)
    return balance


async def is_unlocked(db: AsyncSession, company_id: str, profile_id: str) -> bool:
    result = await db.execute(
        select(ProfileUnlock.id).where(
            ProfileUnlock.company_id == company_id,
            ProfileUnlock.profile_id == profile_id,
        )
    )
    return result.first() is not None


async def get_unlocked_set(db: AsyncSession, company_id: str) -> Set[str]:
    result = await db.execute(select(ProfileUnlock.profile_id).where(ProfileUnlock.company_id == company_id))
    return {str(profile_id) for profile_id in result.scalars().all()}


async def count_unlocked(db: AsyncSession, company_id: str) -> int:
    result = await db.execute(
        select(func.count(ProfileUnlock.id)).where(ProfileUnlock.company_id == company_id)
    )
    return int(result.scalar() or 0)


async def load_ledger(db: AsyncSession, company_id: str) -> List[CreditLedgerEntry]:
    result = await db.execute(
        select(CreditLedgerEntry)
        .where(CreditLedgerEntry.company_id == company_id)
        .order_by(CreditLedgerEntry.sequence.asc())
    )
    return list(result.scalars().all())


async def verify_projection(db: AsyncSession, company_id: str) -> ProjectionCheck:
    """Replay the company's full ledger and compare it with the materialized state.

    Also checks that sequences run contiguously from 1 and that each entry's
    recorded ``resulting_balance`` matches the running balance.
    """
    balance = await get_balance(db, company_id)
    materialized = ProjectedState(balance=balance, unlocked_profile_ids=await get_unlocked_set(db, company_id))

    entries = await load_ledger(db, company_id)
    replayed = ProjectedState()
    problems: List[str] = []
    for expected_sequence, entry in enumerate(entries, start=1):
        if int(entry.sequence) != expected_sequence:
            problems.append(f"sequence gap at entry {entry.id}: expected {expected_sequence}, found {entry.sequence}")
        apply_entry(replayed, entry)
        if int(entry.resulting_balance) != replayed.balance:
            problems.append(
                f"resulting_balance mismatch at sequence {entry.sequence}: "
                f"recorded {entry.resulting_balance}, replayed {replayed.balance}"
            )
        if replayed.balance < 0:
            problems.append(f"negative balance at sequence {entry.sequence}")

    if replayed.balance != materialized.balance:
        problems.append(f"balance mismatch: materialized {materialized.balance}, replayed {replayed.balance}")
    if replayed.unlocked_profile_ids != materialized.unlocked_profile_ids:
        problems.append("unlocked profile set mismatch")

    return ProjectionCheck(
        company_id=company_id,
        consistent=not problems,
        entries_checked=len(entries),
        materialized=materialized,
        replayed=replayed,
        problems=problems,
    )
