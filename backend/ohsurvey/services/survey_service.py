"""
Survey Service - durable storage of survey aggregates

The aggregate is stored whole as JSON in ``Survey.data``; client, project,
site and status are denormalised onto the row for listing. The service
reports save failures as PersistenceError and never retries.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ohsurvey.core.exceptions import PersistenceError, SurveyNotFoundError
from ohsurvey.core.logging_config import logger
from ohsurvey.domain.aggregate import (
    SurveyAggregate,
    aggregate_from_dict,
    aggregate_to_dict,
    new_survey,
)
from ohsurvey.models.survey import Survey


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.rstrip("Z"))
    except ValueError:
        return None


class SurveyService:
    """Repository for surveys owned by one database session"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_survey(self, user_id: str, **fields: Any) -> SurveyAggregate:
        aggregate = new_survey(**fields)
        row = Survey(id=aggregate.id, user_id=str(user_id), data={})
        self._copy_into(row, aggregate)
        self.db.add(row)
        await self.db.flush()
        logger.log_survey_event(aggregate.id, "created", user_id=str(user_id))
        return aggregate

    async def get_survey(self, survey_id: str, user_id: str) -> Survey:
        """Survey row owned by ``user_id``; other users' surveys are reported as missing"""
        result = await self.db.execute(
            select(Survey).where(Survey.id == str(survey_id), Survey.user_id == str(user_id))
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise SurveyNotFoundError(str(survey_id))
        return row

    async def list_surveys(self, user_id: str, page: int = 1, page_size: int = 20) -> Tuple[List[Survey], int]:
        user_id_str = str(user_id)
        total = await self.db.scalar(select(func.count(Survey.id)).where(Survey.user_id == user_id_str))

        offset = (page - 1) * page_size
        result = await self.db.execute(
            select(Survey)
            .where(Survey.user_id == user_id_str)
            .order_by(Survey.created_at.desc())
            .limit(page_size)
            .offset(offset)
        )
        return list(result.scalars().all()), total or 0

    async def load_aggregate(self, survey_id: str, user_id: str) -> SurveyAggregate:
        row = await self.get_survey(survey_id, user_id)
        data = dict(row.data or {})
        data["id"] = row.id
        return aggregate_from_dict(data)

    async def save_aggregate(self, aggregate: SurveyAggregate, revision: Optional[int] = None) -> None:
        """Write ``aggregate`` over its stored row and commit"""
        try:
            row = await self.db.get(Survey, aggregate.id)
            if row is None:
                raise SurveyNotFoundError(aggregate.id)
            self._copy_into(row, aggregate)
            if revision is not None:
                row.revision = revision
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.log_error_with_context(e, "save_aggregate", survey_id=aggregate.id)
            raise PersistenceError(aggregate.id, str(e))

        logger.debug(f"Survey {aggregate.id}: saved revision {revision}")

    async def delete_survey(self, survey_id: str, user_id: str) -> None:
        row = await self.get_survey(survey_id, user_id)
        await self.db.execute(delete(Survey).where(Survey.id == row.id))
        await self.db.flush()
        logger.log_survey_event(str(survey_id), "deleted")

    @staticmethod
    def _copy_into(row: Survey, aggregate: SurveyAggregate) -> None:
        data: Dict[str, Any] = aggregate_to_dict(aggregate)
        row.data = data
        row.client = aggregate.client
        row.project = aggregate.project
        row.site = aggregate.site
        row.status = aggregate.status
        row.completed_at = _parse_timestamp(aggregate.completed_at)
