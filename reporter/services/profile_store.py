"""User, profile and template lookups used by the task runner."""

import uuid

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reporter.models.profile import DataSourceProfile
from reporter.models.template import ReportTemplate
from reporter.models.user import User


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    return await db.get(User, user_id)


async def get_template(db: AsyncSession, template_id: uuid.UUID) -> ReportTemplate | None:
    return await db.get(ReportTemplate, template_id)


async def get_active_profile(db: AsyncSession, user_id: uuid.UUID) -> DataSourceProfile | None:
    """Get the user's active data source profile.

    Returns None if the user does not exist, has no active profile, or the
    active profile id points at a profile owned by someone else.
    """
    user = await get_user(db, user_id)
    if not user or not user.active_profile_id:
        return None

    result = await db.execute(
        select(DataSourceProfile).where(
            and_(
                DataSourceProfile.id == user.active_profile_id,
                DataSourceProfile.user_id == user_id,
            )
        )
    )
    return result.scalar_one_or_none()
