from datetime import date, datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response

from src.models.userModel import User
from src.dependencies.roleDependencies import require_admin
from src.crud.reportService import ReportService
from src.commonUtils.reportUtil import render_fee_export
from src.schemas.reportSchema import FeeReport, ProviderRiskRow, RevenueAnalytics
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_RANGE_DAYS = 30


def default_range(range_from: Optional[date], range_to: Optional[date]):
    range_to = range_to or datetime.utcnow().date()
    range_from = range_from or (range_to - timedelta(days=DEFAULT_RANGE_DAYS))
    return range_from, range_to


@router.get("/fees", response_model=FeeReport)
async def get_fees_report(
        range_from: Optional[date] = Query(None, alias="from"),
        range_to: Optional[date] = Query(None, alias="to"),
        admin: User = Depends(require_admin)
):
    """
    Platform fees for paid/completed bookings updated within [from, to] (inclusive days).
    Defaults to the last 30 days.
    """
    range_from, range_to = default_range(range_from, range_to)
    try:
        return await ReportService.fee_report(range_from, range_to)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error building fees report: {str(e)}"
        )


@router.get("/fees/export")
async def export_fees_report(
        format: str = Query("csv", pattern="^(csv|json|html)$"),
        range_from: Optional[date] = Query(None, alias="from"),
        range_to: Optional[date] = Query(None, alias="to"),
        admin: User = Depends(require_admin)
):
    """Download the fee rows as fees-report-YYYY-MM-DD.<csv|json|html>"""
    range_from, range_to = default_range(range_from, range_to)
    rows = await ReportService.fee_rows(range_from, range_to)
    try:
        content, media_type, filename = render_fee_export(rows, format)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"Admin {admin.id} exported {len(rows)} fee rows as {format}")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get("/revenue", response_model=RevenueAnalytics)
async def get_revenue_analytics(
        timeframe: str = "30d",
        group_by: str = Query("day", alias="groupBy"),
        admin: User = Depends(require_admin)
):
    return await ReportService.revenue_analytics(timeframe, group_by)


@router.get("/kyc-risk", response_model=List[ProviderRiskRow])
async def get_kyc_risk(admin: User = Depends(require_admin)):
    """Providers ranked by risk score, highest first"""
    return await ReportService.kyc_risk()
