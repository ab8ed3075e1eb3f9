"""Family domain package: membership, roles and the audit trail."""

from .models import (
    Family,
    FamilyAuditAction,
    FamilyAuditEvent,
    FamilyMemberProfile,
    FamilyRole,
    MemberStatus,
)
from .service import AuditLogger, FamilyRepository, MembershipService, UserRepository

__all__ = [
    "AuditLogger",
    "Family",
    "FamilyAuditAction",
    "FamilyAuditEvent",
    "FamilyMemberProfile",
    "FamilyRepository",
    "FamilyRole",
    "MemberStatus",
    "MembershipService",
    "UserRepository",
]
