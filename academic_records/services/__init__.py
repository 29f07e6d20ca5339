from .identity_service import IdentityService
from .registration_service import RegistrationService
from .record_service import RecordService
from .membership_service import MembershipService
from .announcement_service import AnnouncementService
from .visibility import authorize_write, coerce_identity, require_identity, resolve_visibility

__all__ = [
    "IdentityService",
    "RegistrationService",
    "RecordService",
    "MembershipService",
    "AnnouncementService",
    "authorize_write",
    "coerce_identity",
    "require_identity",
    "resolve_visibility",
]
