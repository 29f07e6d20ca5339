from academic_records.core.enums import RecordKind

from .base import Base, TenantModel
from .institution import Institution
from .user import User
from .commission import Commission, CommissionMembership
from .tutoring import TutoringAssignment
from .fact_base import FactRecordBase
from .attendance import Attendance, CommissionAttendance
from .grade import Grade
from .announcement import Announcement, TutoringAnnouncement

RECORD_MODELS = {
    RecordKind.ATTENDANCE: Attendance,
    RecordKind.GRADE: Grade,
    RecordKind.COMMISSION_ATTENDANCE: CommissionAttendance,
    RecordKind.ANNOUNCEMENT: Announcement,
    RecordKind.TUTORING_ANNOUNCEMENT: TutoringAnnouncement,
}


def model_for(kind: RecordKind):
    return RECORD_MODELS[RecordKind(kind)]


__all__ = [
    'Base',
    'TenantModel',
    'Institution',
    'User',
    'Commission',
    'CommissionMembership',
    'TutoringAssignment',
    'FactRecordBase',
    'Attendance',
    'CommissionAttendance',
    'Grade',
    'Announcement',
    'TutoringAnnouncement',
    'RECORD_MODELS',
    'model_for',
]
