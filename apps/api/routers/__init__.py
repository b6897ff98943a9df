"""Routers package."""

from . import (
    health,
    companies,
    profiles,
    admin_companies,
    admin_candidates,
)
