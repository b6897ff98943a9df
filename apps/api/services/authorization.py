"""Authorization policies for admin-only operations.

The active policy is built once at startup from ``settings.AUTHORIZATION_POLICY``
and stored on ``app.state``; request handlers only ever talk to the interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from fastapi import HTTPException

from config import settings
from routers.auth_scope import AuthContext


class AuthorizationPolicy(ABC):
    name = "abstract"

    @abstractmethod
    def is_admin(self, context: AuthContext) -> bool:
        """Return True when the caller may use admin operations."""

    def require_admin(self, context: AuthContext) -> str:
        """Return the admin actor id or raise 403."""
        if not self.is_admin(context):
            raise HTTPException(status_code=403, detail="Admin access required.")
        return context.user_id


class TokenAuthorizationPolicy(AuthorizationPolicy):
    """Admin iff the session token carries the admin role or the user is allow-listed."""

    name = "token"

    def __init__(self, admin_user_ids: Optional[Iterable[str]] = None):
        self.admin_user_ids = frozenset(str(user_id) for user_id in (admin_user_ids or []) if user_id)

    def is_admin(self, context: AuthContext) -> bool:
        return context.role == "admin" or context.user_id in self.admin_user_ids


class PermissiveAuthorizationPolicy(AuthorizationPolicy):
    """Every authenticated caller is an admin. For local and automated testing only."""

    name = "test"

    def is_admin(self, context: AuthContext) -> bool:
        return bool(context.user_id)


def build_authorization_policy(name: Optional[str] = None) -> AuthorizationPolicy:
    policy_name = (name or settings.AUTHORIZATION_POLICY or "token").strip().lower()
    if policy_name == "token":
        return TokenAuthorizationPolicy(settings.ADMIN_USER_IDS)
    if policy_name == "test":
        return PermissiveAuthorizationPolicy()
    raise ValueError(f"Unknown AUTHORIZATION_POLICY: {policy_name}")
