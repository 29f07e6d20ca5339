# academic_records/services/record_service.py
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy import select

from academic_records.core.database import store_errors
from academic_records.core.enums import RecordKind
from academic_records.core.exceptions import NotFound
from academic_records.core.logging import log_function_call, logger
from academic_records.core.predicates import NEVER, Eq
from academic_records.models import model_for
from academic_records.schemas.filters import RecordFilters
from .base_service import BaseService
from .visibility import coerce_identity, resolve_visibility


class RecordService(BaseService):
    """Scoped reads over every record kind"""

    @log_function_call(logger)
    async def list_records(
        self,
        identity: Any,
        kind: Union[RecordKind, str],
        filters: Union[RecordFilters, Mapping[str, Any], None] = None,
        limit: Optional[int] = None
    ) -> List[Any]:
        """
        List the records of ``kind`` visible to ``identity``.

        Fact records come newest day first, announcements newest first.
        """
        predicate = resolve_visibility(identity, kind, filters)
        if predicate is NEVER:
            return []
        known = coerce_identity(identity)

        kind = RecordKind(kind)
        model = model_for(kind)
        query = select(model).where(predicate.compile(model))
        if kind.is_fact:
            query = query.order_by(model.date.desc(), model.created_at.desc(), model.id.desc())
        else:
            query = query.order_by(model.created_at.desc(), model.id.desc())
        if limit is not None:
            query = query.limit(limit)

        with store_errors(f"{kind.value} listing"):
            result = await self.db.execute(query)
        records = list(result.scalars().all())
        logger.debug(f"Listed {len(records)} {kind.value} records for user {known.user_id}")
        return records

    async def get_record(self, identity: Any, kind: Union[RecordKind, str], record_id: int) -> Any:
        """A single record, reported as missing when it exists but is not visible"""
        predicate = resolve_visibility(identity, kind) & Eq("id", record_id)
        if predicate is NEVER:
            raise NotFound(f"Record {record_id} not found", field="record_id")

        model = model_for(kind)
        with store_errors("record lookup"):
            result = await self.db.execute(select(model).where(predicate.compile(model)))
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFound(f"Record {record_id} not found", field="record_id")
        return record
