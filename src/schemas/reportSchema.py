from datetime import datetime, date
from typing import List, Optional

from pydantic import Field

from src.commonUtils.enumUtils import RiskLevel
from src.schemas.baseSchema import CamelModel


class FeeReportRow(CamelModel):
    booking_id: str
    status: str
    paid_at: datetime
    service_title: str
    provider_id: Optional[str] = None
    provider_name: str
    customer_email: str
    total_amount: int = Field(..., description="Gross charged for the service, cents")
    platform_fee: int
    gst_amount: int = 0
    net_to_provider: int


class DailyFeeBucket(CamelModel):
    day: date
    booking_count: int
    gross: int
    fees: int
    gst: int
    net: int
    fee_rate: float


class ProviderFeeBucket(CamelModel):
    provider_name: str
    booking_count: int
    gross: int
    fees: int
    net: int
    fee_rate: float
    contribution: float = Field(..., description="Share of total gross, percent")


class FeeReportSummary(CamelModel):
    total_gross: int
    total_fees: int
    total_gst: int
    net_to_providers: int
    booking_count: int
    average_fee_rate: float


class FeeReport(CamelModel):
    range_from: date = Field(..., alias="from")
    range_to: date = Field(..., alias="to")
    rows: List[FeeReportRow]
    daily: List[DailyFeeBucket]
    by_provider: List[ProviderFeeBucket]
    summary: FeeReportSummary


class RevenueTrend(CamelModel):
    period: str
    total_revenue: int
    booking_count: int
    avg_booking_value: float
    platform_fees: int
    refunds: int
    net_revenue: int


class RevenueOverallStats(CamelModel):
    total_revenue: int
    total_bookings: int
    avg_booking_value: float
    total_platform_fees: int
    total_refunds: int
    net_revenue: int
    unique_customers: int
    unique_providers: int
    revenue_growth: float
    booking_growth: float


class RevenueAnalytics(CamelModel):
    timeframe: str
    group_by: str
    overall_stats: RevenueOverallStats
    revenue_trends: List[RevenueTrend]


class ProviderRiskMetrics(CamelModel):
    trust_score: int = 50
    unresolved_disputes: int = 0
    recent_disputes: int = 0
    completion_rate: float = 0.0
    cancellation_rate: float = 0.0
    total_suspensions: int = 0
    total_bookings: int = 0
    days_active: int = 0


class ProviderRiskRow(CamelModel):
    provider_id: str
    business_name: str
    handle: Optional[str] = None
    kyc_status: str
    status: str
    is_suspended: bool
    trust_score: int
    trust_level: str
    risk_score: int
    risk_level: RiskLevel
    risk_factors: List[str] = Field(default_factory=list)
