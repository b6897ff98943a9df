"""Profile unlock: spend one credit to reveal a candidate profile to a company."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.candidate_profile import CandidateProfile
from models.credit_ledger import ENTRY_PROFILE_UNLOCK, SYSTEM_ACTOR_ID, CreditLedgerEntry
from models.profile_unlock import ProfileUnlock
from services.balances import get_balance, is_unlocked
from services.candidates import get_active_profile, render_profile
from services.companies import get_company
from services.errors import StorageFailure
from services.ledger import LedgerEntryInput, append_entry, lock_account, run_in_transaction

logger = logging.getLogger(__name__)

UNLOCK_CREDIT_COST = 1


class _AlreadyUnlocked(Exception):
    """Raised inside the charge transaction to roll back a lock that found the pair unlocked."""


@dataclass
class UnlockResult:
    profile: CandidateProfile
    charged: bool
    balance: int
    entry: Optional[CreditLedgerEntry] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "profile": render_profile(self.profile, unlocked=True),
            "charged": self.charged,
            "credits_charged": UNLOCK_CREDIT_COST if self.charged else 0,
            "balance": self.balance,
            "entry_id": self.entry.id if self.entry else None,
        }


async def unlock(db: AsyncSession, company_id: str, profile_id: str) -> UnlockResult:
    """Unlock ``profile_id`` for ``company_id``.

    Re-unlocking a profile the company already holds returns it without a
    charge. Otherwise the balance check, deduction, ledger append and unlock-set
    insert commit together or not at all.
    """
    await get_company(db, company_id)
    profile = await get_active_profile(db, profile_id)

    if await is_unlocked(db, company_id, profile_id):
        return UnlockResult(profile=profile, charged=False, balance=await get_balance(db, company_id))

    async def _charge() -> CreditLedgerEntry:
        lock = await lock_account(db, company_id)
        # Another request may have unlocked the pair while we waited on the lock.
        if await is_unlocked(db, company_id, profile_id):
            raise _AlreadyUnlocked()
        entry = await append_entry(
            db,
            lock,
            LedgerEntryInput(
                company_id=company_id,
                delta=-UNLOCK_CREDIT_COST,
                entry_type=ENTRY_PROFILE_UNLOCK,
                reason="profile_unlock",
                actor_id=SYSTEM_ACTOR_ID,
                related_profile_id=profile_id,
            ),
        )
        db.add(
            ProfileUnlock(
                id=str(uuid.uuid4()),
                company_id=company_id,
                profile_id=profile_id,
                ledger_entry_id=entry.id,
                unlocked_at=datetime.now(timezone.utc),
            )
        )
        await db.flush()
        return entry

    entry: Optional[CreditLedgerEntry]
    try:
        entry = await run_in_transaction(db, _charge, reraise=(IntegrityError,))
    except _AlreadyUnlocked:
        profile = await get_active_profile(db, profile_id)
        entry = None
    except IntegrityError as exc:
        # The whole charge was rolled back; only a concurrent unlock of the same pair is benign.
        if not await is_unlocked(db, company_id, profile_id):
            logger.exception("profile_unlock_integrity_error company=%s profile=%s", company_id, profile_id)
            raise StorageFailure() from exc
        logger.info("profile_unlock_race company=%s profile=%s", company_id, profile_id)
        profile = await get_active_profile(db, profile_id)
        entry = None

    balance = await get_balance(db, company_id)
    if entry is None:
        return UnlockResult(profile=profile, charged=False, balance=balance)

    logger.info(
        "profile_unlock company=%s profile=%s balance=%s sequence=%s",
        company_id,
        profile_id,
        entry.resulting_balance,
        entry.sequence,
    )
    return UnlockResult(profile=profile, charged=True, balance=balance, entry=entry)
