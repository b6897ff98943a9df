"""Privileged credit adjustments: grant, deduct and resets."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from models.credit_ledger import (
    ENTRY_ADMIN_DEDUCTION,
    ENTRY_ADMIN_GRANT,
    ENTRY_ADMIN_RESET,
    ENTRY_UNLOCK_RESET,
    CreditLedgerEntry,
)
from models.profile_unlock import ProfileUnlock
from services.errors import InvalidAmount, MissingReason
from services.ledger import LedgerEntryInput, append_entry, lock_account, normalize_reason, run_in_transaction

logger = logging.getLogger(__name__)

DEFAULT_RESET_REASON = "admin_reset"
DEFAULT_UNLOCK_RESET_REASON = "admin_unlock_reset"


def _require_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount("Amount must be a whole number of credits.")
    if amount <= 0:
        raise InvalidAmount("Amount must be greater than 0.")
    return amount


def _require_reason(reason: Optional[str]) -> str:
    text = normalize_reason(reason)
    if not text:
        raise MissingReason()
    return text


def _log_adjustment(entry: CreditLedgerEntry) -> None:
    logger.info(
        "credit_%s company=%s actor=%s delta=%s balance=%s sequence=%s reason=%s",
        entry.entry_type,
        entry.company_id,
        entry.actor_id,
        entry.delta,
        entry.resulting_balance,
        entry.sequence,
        entry.reason,
    )


async def _append_admin_entry(db: AsyncSession, entry_input: LedgerEntryInput) -> CreditLedgerEntry:
    async def _write() -> CreditLedgerEntry:
        lock = await lock_account(db, entry_input.company_id)
        return await append_entry(db, lock, entry_input)

    entry = await run_in_transaction(db, _write)
    _log_adjustment(entry)
    return entry


async def grant(
    db: AsyncSession,
    company_id: str,
    amount: int,
    reason: str,
    admin_note: Optional[str] = None,
    *,
    actor_id: str,
) -> CreditLedgerEntry:
    credits = _require_amount(amount)
    return await _append_admin_entry(
        db,
        LedgerEntryInput(
            company_id=company_id,
            delta=credits,
            entry_type=ENTRY_ADMIN_GRANT,
            reason=_require_reason(reason),
            admin_note=admin_note,
            actor_id=actor_id,
        ),
    )


async def deduct(
    db: AsyncSession,
    company_id: str,
    amount: int,
    reason: str,
    admin_note: Optional[str] = None,
    *,
    actor_id: str,
) -> CreditLedgerEntry:
    """Remove credits; raises ``InsufficientCredits`` instead of going below zero."""
    credits = _require_amount(amount)
    return await _append_admin_entry(
        db,
        LedgerEntryInput(
            company_id=company_id,
            delta=-credits,
            entry_type=ENTRY_ADMIN_DEDUCTION,
            reason=_require_reason(reason),
            admin_note=admin_note,
            actor_id=actor_id,
        ),
    )


async def adjust(
    db: AsyncSession,
    company_id: str,
    amount: int,
    reason: str,
    admin_note: Optional[str] = None,
    *,
    actor_id: str,
) -> CreditLedgerEntry:
    """Signed adjustment: positive grants, negative deducts."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount("Amount must be a whole number of credits.")
    if amount == 0:
        raise InvalidAmount("Amount must be non-zero.")
    if amount > 0:
        return await grant(db, company_id, amount, reason, admin_note, actor_id=actor_id)
    return await deduct(db, company_id, -amount, reason, admin_note, actor_id=actor_id)


async def reset_balance(
    db: AsyncSession,
    company_id: str,
    *,
    actor_id: str,
    reason: Optional[str] = DEFAULT_RESET_REASON,
    admin_note: Optional[str] = None,
) -> CreditLedgerEntry:
    """Bring the balance to exactly zero with a single compensating entry."""
    clean_reason = _require_reason(reason)

    async def _write() -> CreditLedgerEntry:
        lock = await lock_account(db, company_id)
        return await append_entry(
            db,
            lock,
            LedgerEntryInput(
                company_id=company_id,
                delta=-lock.balance,
                entry_type=ENTRY_ADMIN_RESET,
                reason=clean_reason,
                admin_note=admin_note or "Credits reset to 0 by admin",
                actor_id=actor_id,
            ),
        )

    entry = await run_in_transaction(db, _write)
    _log_adjustment(entry)
    return entry


async def reset_unlocks(
    db: AsyncSession,
    company_id: str,
    *,
    actor_id: str,
    reason: Optional[str] = DEFAULT_UNLOCK_RESET_REASON,
    admin_note: Optional[str] = None,
) -> CreditLedgerEntry:
    """Clear the company's unlocked set; the balance is untouched."""
    clean_reason = _require_reason(reason)

    async def _write() -> CreditLedgerEntry:
        lock = await lock_account(db, company_id)
        result = await db.execute(
            delete(ProfileUnlock)
            .where(ProfileUnlock.company_id == company_id)
            .execution_options(synchronize_session=False)
        )
        cleared = int(result.rowcount or 0)
        return await append_entry(
            db,
            lock,
            LedgerEntryInput(
                company_id=company_id,
                delta=0,
                entry_type=ENTRY_UNLOCK_RESET,
                reason=clean_reason,
                admin_note=admin_note or f"Reset {cleared} unlocked profiles",
                actor_id=actor_id,
            ),
        )

    entry = await run_in_transaction(db, _write)
    _log_adjustment(entry)
    return entry
