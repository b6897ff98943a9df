"""Append-only credit ledger store.

Every balance-affecting write goes through one transaction that:

1. locks the company's ``credit_accounts`` row (``lock_account``), which bumps its
   ``version`` and returns the committed balance;
2. appends exactly one ledger entry computed from that locked balance
   (``append_entry``), writing the new balance in the same transaction;
3. commits, or rolls back everything (``run_in_transaction``).

The lock statement is an UPDATE so that it takes the row lock on PostgreSQL and
the database write lock on SQLite, which serializes read-check-write sequences
for the same company on both stores.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.credit_account import CreditAccount
from models.credit_ledger import (
    ADMIN_ENTRY_TYPES,
    ENTRY_PROFILE_UNLOCK,
    ENTRY_TYPES,
    SYSTEM_ACTOR_ID,
    CreditLedgerEntry,
)
from services.errors import (
    CompanyNotFound,
    CreditServiceError,
    InsufficientCredits,
    MissingReason,
    StorageFailure,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AccountLock:
    """Balance and sequence of a company account locked in the current transaction."""

    company_id: str
    balance: int
    version: int
    consumed: bool = False


@dataclass
class LedgerEntryInput:
    company_id: str
    delta: int
    entry_type: str
    reason: Optional[str] = None
    admin_note: Optional[str] = None
    actor_id: str = SYSTEM_ACTOR_ID
    related_profile_id: Optional[str] = None


def normalize_reason(reason: Optional[str]) -> str:
    return str(reason or "").strip()


def _validate_entry(entry: LedgerEntryInput) -> None:
    if entry.entry_type not in ENTRY_TYPES:
        raise ValueError(f"Unknown ledger entry type: {entry.entry_type}")
    if entry.entry_type in ADMIN_ENTRY_TYPES and not normalize_reason(entry.reason):
        raise MissingReason()
    if entry.entry_type == ENTRY_PROFILE_UNLOCK and not entry.related_profile_id:
        raise ValueError("profile_unlock entries require related_profile_id")
    if entry.entry_type != ENTRY_PROFILE_UNLOCK and entry.related_profile_id:
        raise ValueError("related_profile_id is only valid on profile_unlock entries")


async def lock_account(db: AsyncSession, company_id: str) -> AccountLock:
    """Lock the company's credit account for the rest of the current transaction."""
    result = await db.execute(
        update(CreditAccount)
        .where(CreditAccount.company_id == company_id)
        .values(version=CreditAccount.version + 1)
        .returning(CreditAccount.balance, CreditAccount.version)
        .execution_options(synchronize_session=False)
    )
    row = result.first()
    if row is None:
        raise CompanyNotFound(company_id)
    return AccountLock(company_id=company_id, balance=int(row.balance), version=int(row.version))


async def append_entry(db: AsyncSession, lock: AccountLock, entry: LedgerEntryInput) -> CreditLedgerEntry:
    """Append one entry against a locked account and write the resulting balance.

    The caller owns the transaction; nothing is visible to other sessions until
    it commits.
    """
    _validate_entry(entry)
    if entry.company_id != lock.company_id:
        raise ValueError("Ledger entry company does not match the locked account")
    if lock.consumed:
        raise ValueError("An account lock covers exactly one ledger entry")

    delta = int(entry.delta)
    resulting_balance = lock.balance + delta
    if resulting_balance < 0:
        raise InsufficientCredits(required=-delta, available=lock.balance)

    if delta:
        await db.execute(
            update(CreditAccount)
            .where(CreditAccount.company_id == lock.company_id)
            .values(balance=resulting_balance)
            .execution_options(synchronize_session=False)
        )

    row = CreditLedgerEntry(
        id=str(uuid.uuid4()),
        company_id=lock.company_id,
        sequence=lock.version,
        entry_type=entry.entry_type,
        delta=delta,
        resulting_balance=resulting_balance,
        reason=normalize_reason(entry.reason) or None,
        admin_note=entry.admin_note,
        actor_id=entry.actor_id,
        related_profile_id=entry.related_profile_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(row)
    await db.flush()

    lock.balance = resulting_balance
    lock.consumed = True
    return row


async def run_in_transaction(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    reraise: Tuple[Type[BaseException], ...] = (),
) -> T:
    """Run ``operation`` and commit, rolling back on any failure.

    Typed service errors and any exception types listed in ``reraise``
    propagate unchanged; other store errors surface as ``StorageFailure``.
    """
    try:
        result = await operation()
        await db.commit()
        return result
    except CreditServiceError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        if reraise and isinstance(exc, reraise):
            raise
        logger.exception("credit_store_failure: %s", exc)
        raise StorageFailure() from exc
    except Exception:
        await db.rollback()
        raise
