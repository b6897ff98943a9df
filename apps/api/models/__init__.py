"""Models package."""

from .company import Company
from .credit_account import CreditAccount
from .credit_ledger import CreditLedgerEntry
from .candidate_profile import CandidateProfile
from .profile_unlock import ProfileUnlock
