"""Report filing for any authenticated principal."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from blog_api.api.deps import reporting_principal
from blog_api.api.schemas import ReportOut
from blog_api.domain.container import get_report_service
from blog_api.domain.models import Principal
from blog_api.domain.reports_service import ReportService

router = APIRouter(prefix="/api/reports", tags=["reports"])


class ReportIn(BaseModel):
    model_config = {"populate_by_name": True}

    target_type: str = Field(alias="targetType")
    target_id: str = Field(alias="targetId", min_length=1, max_length=128)
    reason: str
    description: Optional[str] = None


def get_report_service_dep() -> ReportService:
    return get_report_service()


@router.post("", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
async def create_report(
    payload: ReportIn,
    principal: Principal = Depends(reporting_principal),
    service: ReportService = Depends(get_report_service_dep),
) -> ReportOut:
    report = await service.create_report(
        principal,
        target_type=payload.target_type,
        target_id=payload.target_id,
        reason=payload.reason,
        description=payload.description,
    )
    return ReportOut.from_report(report)
