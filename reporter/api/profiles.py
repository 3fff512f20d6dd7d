"""Data source profile API endpoints."""

import uuid

from fastapi import APIRouter, HTTPException, Query, status

from reporter.core.exceptions import ReportEngineError
from reporter.dependencies import DBSession
from reporter.schemas.task import ConnectionCheckResponse
from reporter.services.data_fetch import (
    check_profile_connection,
    fetch_profile_parameters,
    fetch_profile_schema,
)
from reporter.services.profile_store import get_active_profile

router = APIRouter()


@router.get("/profiles/{user_id}/check", response_model=ConnectionCheckResponse)
async def check_active_profile(user_id: uuid.UUID, db: DBSession) -> ConnectionCheckResponse:
    """
    Test connectivity of the user's active data source profile.

    Always 200 once a profile exists; the outcome is in the body.
    """
    profile = await get_active_profile(db, user_id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active data source profile",
        )

    check = await check_profile_connection(profile)
    return ConnectionCheckResponse(
        success=check.success,
        message=check.message,
        latency_ms=check.latency_ms,
    )


@router.get("/profiles/{user_id}/parameters", response_model=list[str])
async def list_profile_parameters(
    user_id: uuid.UUID,
    db: DBSession,
    entity_ids: list[str] = Query(default=[], description="Entities to list parameters for"),
) -> list[str]:
    """Distinct parameter (tag) names recorded for the given entities."""
    profile = await get_active_profile(db, user_id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active data source profile",
        )

    try:
        return await fetch_profile_parameters(profile, entity_ids)
    except ReportEngineError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.get("/profiles/{user_id}/schema", response_model=dict[str, list[str]])
async def get_profile_schema(user_id: uuid.UUID, db: DBSession) -> dict[str, list[str]]:
    """
    Tables and their columns in the user's data source.

    Used to pick valid table and column names for the data mapping.
    """
    profile = await get_active_profile(db, user_id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active data source profile",
        )

    try:
        return await fetch_profile_schema(profile)
    except ReportEngineError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
