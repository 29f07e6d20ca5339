# academic_records/services/base_service.py
from sqlalchemy.ext.asyncio import AsyncSession

from academic_records.core.exceptions import PermissionDenied
from academic_records.schemas.identity import AdministratorIdentity
from .visibility import require_identity


class BaseService:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def require_administrator(identity) -> AdministratorIdentity:
        identity = require_identity(identity)
        if not isinstance(identity, AdministratorIdentity):
            raise PermissionDenied("Only administrators can perform this operation", field="role")
        return identity

    @staticmethod
    def require_same_institution(identity, institution_id: int, field: str = "institution_id") -> None:
        if identity.institution_id != institution_id:
            raise PermissionDenied(
                "Entity belongs to another institution",
                field=field,
                details={"institution_id": institution_id}
            )
