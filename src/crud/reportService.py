from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

from fastapi import HTTPException, status

from src.commonUtils.bookingStateUtil import resolve_amount
from src.commonUtils.enumUtils import BookingStatus
from src.commonUtils.feeUtil import calculate_gst_component, calculate_platform_fee
from src.commonUtils.reportUtil import (
    GROUP_BY_VALUES,
    TIMEFRAME_DAYS,
    bucket_by_provider,
    bucket_daily,
    compute_risk_score,
    growth_percent,
    period_key,
    risk_factors,
    risk_level,
    safe_percent,
    summarize,
    timeframe_window,
)
from src.models.bookingModel import Booking
from src.models.providerModel import Provider
from src.models.serviceModel import Service
from src.models.userModel import User
from src.schemas.reportSchema import (
    FeeReport,
    FeeReportRow,
    ProviderRiskMetrics,
    ProviderRiskRow,
    RevenueAnalytics,
    RevenueOverallStats,
    RevenueTrend,
)

import logging

logger = logging.getLogger(__name__)

FEE_REPORT_STATUSES = [BookingStatus.PAID.value, BookingStatus.COMPLETED.value]
REVENUE_STATUSES = [
    BookingStatus.PAID.value,
    BookingStatus.COMPLETED_BY_PROVIDER.value,
    BookingStatus.COMPLETED.value,
    BookingStatus.DISPUTED.value,
    BookingStatus.REFUNDED.value,
]
RECENT_DISPUTE_DAYS = 90


def build_fee_row(booking, provider_name: str, customer_email: str, charges_gst: bool = False) -> FeeReportRow:
    gross = resolve_amount(booking.provider_quoted_price, booking.price_at_booking)
    platform_fee = calculate_platform_fee(gross)
    return FeeReportRow(
        booking_id=str(booking.id),
        status=booking.status,
        paid_at=booking.paid_at or booking.updated_at,
        service_title=booking.service_title,
        provider_id=str(booking.provider_id),
        provider_name=provider_name,
        customer_email=customer_email,
        total_amount=gross,
        platform_fee=platform_fee,
        gst_amount=calculate_gst_component(gross, charges_gst),
        net_to_provider=gross - platform_fee,
    )


def build_revenue_analytics(bookings: List, timeframe: str, group_by: str, now: datetime) -> RevenueAnalytics:
    """Trends for the current window and growth against the window before it"""
    previous_start, current_start, end = timeframe_window(timeframe, now)

    def moment(b):
        return b.paid_at or b.updated_at

    current = [b for b in bookings if current_start <= moment(b) <= end]
    previous = [b for b in bookings if previous_start <= moment(b) < current_start]

    trends: "OrderedDict[str, dict]" = OrderedDict()
    for booking in sorted(current, key=moment):
        key = period_key(moment(booking), group_by)
        bucket = trends.setdefault(key, {"total_revenue": 0, "booking_count": 0, "platform_fees": 0, "refunds": 0})
        amount = resolve_amount(booking.provider_quoted_price, booking.price_at_booking)
        bucket["total_revenue"] += amount
        bucket["booking_count"] += 1
        bucket["platform_fees"] += calculate_platform_fee(amount)
        if booking.status == BookingStatus.REFUNDED.value:
            bucket["refunds"] += amount

    revenue_trends = [
        RevenueTrend(
            period=key,
            avg_booking_value=round(b["total_revenue"] / b["booking_count"], 2) if b["booking_count"] else 0.0,
            net_revenue=b["platform_fees"] - b["refunds"],
            **b,
        )
        for key, b in trends.items()
    ]

    def revenue(items):
        return sum(resolve_amount(b.provider_quoted_price, b.price_at_booking) for b in items)

    total_revenue = revenue(current)
    total_fees = sum(t.platform_fees for t in revenue_trends)
    total_refunds = sum(t.refunds for t in revenue_trends)

    overall = RevenueOverallStats(
        total_revenue=total_revenue,
        total_bookings=len(current),
        avg_booking_value=round(total_revenue / len(current), 2) if current else 0.0,
        total_platform_fees=total_fees,
        total_refunds=total_refunds,
        net_revenue=total_fees - total_refunds,
        unique_customers=len({str(b.customer_id) for b in current}),
        unique_providers=len({str(b.provider_id) for b in current}),
        revenue_growth=growth_percent(total_revenue, revenue(previous)),
        booking_growth=growth_percent(len(current), len(previous)),
    )
    return RevenueAnalytics(
        timeframe=timeframe,
        group_by=group_by,
        overall_stats=overall,
        revenue_trends=revenue_trends,
    )


def build_risk_metrics(provider, bookings: List, now: datetime) -> ProviderRiskMetrics:
    total = len(bookings)
    completed = sum(1 for b in bookings if b.status == BookingStatus.COMPLETED.value)
    canceled = sum(1 for b in bookings if b.status == BookingStatus.CANCELED_PROVIDER.value)
    disputed = [b for b in bookings if b.status == BookingStatus.DISPUTED.value]
    recent_cutoff = now - timedelta(days=RECENT_DISPUTE_DAYS)

    return ProviderRiskMetrics(
        trust_score=provider.trust_score,
        unresolved_disputes=len(disputed),
        recent_disputes=sum(1 for b in disputed if b.updated_at >= recent_cutoff),
        completion_rate=safe_percent(completed, total),
        cancellation_rate=safe_percent(canceled, total),
        total_suspensions=provider.total_suspensions,
        total_bookings=total,
        days_active=max(0, (now - provider.created_at).days),
    )


class ReportService:
    """Admin reporting over bookings, providers and payments"""

    @staticmethod
    async def fee_rows(range_from: date, range_to: date) -> List[FeeReportRow]:
        if range_to < range_from:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="'to' must not be before 'from'")

        start = datetime.combine(range_from, time.min)
        end = datetime.combine(range_to, time.max)
        bookings = await Booking.find({
            "status": {"$in": FEE_REPORT_STATUSES},
            "updated_at": {"$gte": start, "$lte": end},
        }).sort("-updated_at").to_list()
        if not bookings:
            return []

        providers = await Provider.find({"_id": {"$in": list({b.provider_id for b in bookings})}}).to_list()
        customers = await User.find({"_id": {"$in": list({b.customer_id for b in bookings})}}).to_list()
        services = await Service.find({"_id": {"$in": list({b.service_id for b in bookings})}}).to_list()

        provider_by_id: Dict = {p.id: p for p in providers}
        email_by_id = {u.id: u.email for u in customers}
        service_by_id = {s.id: s for s in services}

        rows = []
        for booking in bookings:
            provider = provider_by_id.get(booking.provider_id)
            service = service_by_id.get(booking.service_id)
            charges_gst = bool((service and service.charges_gst) or (provider and provider.charges_gst))
            rows.append(build_fee_row(
                booking,
                provider.business_name if provider else "Unknown provider",
                email_by_id.get(booking.customer_id, ""),
                charges_gst,
            ))
        return rows

    @staticmethod
    async def fee_report(range_from: date, range_to: date) -> FeeReport:
        rows = await ReportService.fee_rows(range_from, range_to)
        return FeeReport(
            range_from=range_from,
            range_to=range_to,
            rows=rows,
            daily=bucket_daily(rows),
            by_provider=bucket_by_provider(rows),
            summary=summarize(rows),
        )

    @staticmethod
    async def revenue_analytics(timeframe: str, group_by: str, now: Optional[datetime] = None) -> RevenueAnalytics:
        if timeframe not in TIMEFRAME_DAYS:
            raise HTTPException(status_code=400, detail=f"timeframe must be one of {', '.join(TIMEFRAME_DAYS)}")
        if group_by not in GROUP_BY_VALUES:
            raise HTTPException(status_code=400, detail=f"groupBy must be one of {', '.join(GROUP_BY_VALUES)}")

        now = now or datetime.utcnow()
        previous_start, _, _ = timeframe_window(timeframe, now)
        bookings = await Booking.find({
            "status": {"$in": REVENUE_STATUSES},
            "$or": [
                {"paid_at": {"$gte": previous_start, "$lte": now}},
                {"paid_at": None, "updated_at": {"$gte": previous_start, "$lte": now}},
            ],
        }).to_list()
        return build_revenue_analytics(bookings, timeframe, group_by, now)

    @staticmethod
    async def kyc_risk(now: Optional[datetime] = None) -> List[ProviderRiskRow]:
        now = now or datetime.utcnow()
        providers = await Provider.find({}).to_list()
        if not providers:
            return []

        bookings = await Booking.find({"provider_id": {"$in": [p.id for p in providers]}}).to_list()
        by_provider: Dict = {}
        for booking in bookings:
            by_provider.setdefault(booking.provider_id, []).append(booking)

        rows = []
        for provider in providers:
            metrics = build_risk_metrics(provider, by_provider.get(provider.id, []), now)
            score = compute_risk_score(metrics)
            rows.append(ProviderRiskRow(
                provider_id=str(provider.id),
                business_name=provider.business_name,
                handle=provider.handle,
                kyc_status=provider.kyc_status,
                status=provider.status,
                is_suspended=provider.is_currently_suspended(now),
                trust_score=provider.trust_score,
                trust_level=provider.trust_level,
                risk_score=score,
                risk_level=risk_level(score),
                risk_factors=risk_factors(metrics),
            ))
        rows.sort(key=lambda r: (-r.risk_score, r.business_name))
        return rows
