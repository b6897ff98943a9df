"""Typed errors for the credit ledger and unlock flows."""

from __future__ import annotations

from typing import Any, Dict, Optional


class CreditServiceError(Exception):
    """Base error carrying a stable error code and HTTP status."""

    code = "CreditServiceError"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_payload(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"success": False, "error": error}


class InsufficientCredits(CreditServiceError):
    code = "InsufficientCredits"
    status_code = 402

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Insufficient credits. Required: {required}, available: {available}.",
            required=required,
            available=available,
        )


class InvalidAmount(CreditServiceError):
    code = "InvalidAmount"
    status_code = 422


class MissingReason(CreditServiceError):
    code = "MissingReason"
    status_code = 422

    def __init__(self, message: str = "A non-empty reason is required for admin credit adjustments."):
        super().__init__(message)


class CompanyNotFound(CreditServiceError):
    code = "CompanyNotFound"
    status_code = 404

    def __init__(self, company_id: Optional[str]):
        super().__init__(f"Company {company_id} not found.", company_id=company_id)


class ProfileNotFound(CreditServiceError):
    code = "ProfileNotFound"
    status_code = 404

    def __init__(self, profile_id: str):
        super().__init__(f"Candidate profile {profile_id} not found.", profile_id=profile_id)


class CompanyAlreadyExists(CreditServiceError):
    code = "CompanyAlreadyExists"
    status_code = 409


class StorageFailure(CreditServiceError):
    code = "StorageFailure"
    status_code = 503

    def __init__(self, message: str = "The credit store could not complete the transaction."):
        super().__init__(message)
