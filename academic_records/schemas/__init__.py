# academic_records/schemas/__init__.py

# Import identity schemas
from .identity import (
    AdministratorIdentity,
    HomeroomGroup,
    HomeroomTutor,
    Identity,
    IdentityBase,
    StudentIdentity,
    TeacherIdentity,
)

# Import user schemas
from .user import (
    AdministratorCreate,
    StudentCreate,
    TeacherCreate,
    UserCreate,
    user_create_adapter,
)

# Import registration schemas
from .registration import (
    AttendanceContext,
    CommissionAttendanceContext,
    ExistingRosterEntry,
    ExistingRosterFlags,
    GradeContext,
    RegisteredItem,
    RegistrationContext,
    RegistrationResult,
    RosterItem,
    SkippedItem,
    parse_context,
)

# Import read / write payload schemas
from .filters import RecordFilters
from .announcement import AnnouncementCreate, TutoringAnnouncementCreate
from .commission import (
    CommissionCreate,
    CommissionRoster,
    CommissionUpdate,
    TutoringAssignmentCreate,
)

__all__ = [
    "AdministratorIdentity",
    "HomeroomGroup",
    "HomeroomTutor",
    "Identity",
    "IdentityBase",
    "StudentIdentity",
    "TeacherIdentity",
    "AdministratorCreate",
    "StudentCreate",
    "TeacherCreate",
    "UserCreate",
    "user_create_adapter",
    "AttendanceContext",
    "CommissionAttendanceContext",
    "ExistingRosterEntry",
    "ExistingRosterFlags",
    "GradeContext",
    "RegisteredItem",
    "RegistrationContext",
    "RegistrationResult",
    "RosterItem",
    "SkippedItem",
    "parse_context",
    "RecordFilters",
    "AnnouncementCreate",
    "TutoringAnnouncementCreate",
    "CommissionCreate",
    "CommissionRoster",
    "CommissionUpdate",
    "TutoringAssignmentCreate",
]
