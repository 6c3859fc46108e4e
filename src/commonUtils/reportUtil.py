"""
Report aggregation and export helpers.

Used by the admin report endpoints and by the client-side export of an
already-loaded dataset, so both produce byte-identical files.
"""
import json
import math
from collections import OrderedDict
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from src.commonUtils.enumUtils import RiskLevel
from src.schemas.reportSchema import (
    FeeReportRow,
    DailyFeeBucket,
    ProviderFeeBucket,
    FeeReportSummary,
    ProviderRiskMetrics,
)

FEE_REPORT_HEADERS = [
    "Booking ID", "Status", "Paid At", "Service", "Provider", "Customer Email",
    "Total Amount", "Platform Fee", "GST", "Net To Provider",
]

TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
GROUP_BY_VALUES = ("day", "week", "month")

RISK_THRESHOLDS = [
    (80, RiskLevel.CRITICAL),
    (60, RiskLevel.HIGH),
    (30, RiskLevel.MEDIUM),
]

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "reports"
_env = Environment(
    loader=FileSystemLoader(_TEMPLATE_DIR),
    autoescape=select_autoescape(["html", "xml"]),
)


# ------------------------------------------------------------------------------------------------------#
#                                       Ratios                                                          #
# ------------------------------------------------------------------------------------------------------#

def safe_percent(numerator, denominator, digits: int = 2) -> float:
    """numerator / denominator * 100, or 0.0 when the result would be NaN/Infinity."""
    if not denominator:
        return 0.0
    value = numerator / denominator * 100
    if not math.isfinite(value):
        return 0.0
    return round(value, digits)


def fee_rate(fees: int, gross: int) -> float:
    return safe_percent(fees, gross)


def contribution_percent(part: int, total: int) -> float:
    return safe_percent(part, total)


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


# ------------------------------------------------------------------------------------------------------#
#                                       Buckets                                                         #
# ------------------------------------------------------------------------------------------------------#

def bucket_daily(rows: Iterable[FeeReportRow]) -> List[DailyFeeBucket]:
    buckets: "OrderedDict[date, dict]" = OrderedDict()
    for row in sorted(rows, key=lambda r: r.paid_at):
        day = row.paid_at.date()
        bucket = buckets.setdefault(day, {"booking_count": 0, "gross": 0, "fees": 0, "gst": 0, "net": 0})
        bucket["booking_count"] += 1
        bucket["gross"] += row.total_amount
        bucket["fees"] += row.platform_fee
        bucket["gst"] += row.gst_amount
        bucket["net"] += row.net_to_provider

    return [
        DailyFeeBucket(day=day, fee_rate=fee_rate(b["fees"], b["gross"]), **b)
        for day, b in buckets.items()
    ]


def bucket_by_provider(rows: Iterable[FeeReportRow]) -> List[ProviderFeeBucket]:
    rows = list(rows)
    total_gross = sum(r.total_amount for r in rows)

    buckets = {}
    for row in rows:
        bucket = buckets.setdefault(row.provider_name, {"booking_count": 0, "gross": 0, "fees": 0, "net": 0})
        bucket["booking_count"] += 1
        bucket["gross"] += row.total_amount
        bucket["fees"] += row.platform_fee
        bucket["net"] += row.net_to_provider

    result = [
        ProviderFeeBucket(
            provider_name=name,
            fee_rate=fee_rate(b["fees"], b["gross"]),
            contribution=contribution_percent(b["gross"], total_gross),
            **b,
        )
        for name, b in buckets.items()
    ]
    result.sort(key=lambda b: (-b.gross, b.provider_name))
    return result


def summarize(rows: Iterable[FeeReportRow]) -> FeeReportSummary:
    rows = list(rows)
    total_gross = sum(r.total_amount for r in rows)
    total_fees = sum(r.platform_fee for r in rows)
    return FeeReportSummary(
        total_gross=total_gross,
        total_fees=total_fees,
        total_gst=sum(r.gst_amount for r in rows),
        net_to_providers=sum(r.net_to_provider for r in rows),
        booking_count=len(rows),
        average_fee_rate=fee_rate(total_fees, total_gross),
    )


# ------------------------------------------------------------------------------------------------------#
#                                       Revenue analytics                                               #
# ------------------------------------------------------------------------------------------------------#

def timeframe_window(timeframe: str, now: datetime) -> Tuple[datetime, datetime, datetime]:
    """(previous_period_start, current_period_start, now)"""
    if timeframe not in TIMEFRAME_DAYS:
        raise ValueError(f"Unknown timeframe: {timeframe}")
    period = timedelta(days=TIMEFRAME_DAYS[timeframe])
    return now - 2 * period, now - period, now


def period_key(moment: datetime, group_by: str) -> str:
    day = moment.date()
    if group_by == "day":
        return day.isoformat()
    if group_by == "week":
        # ISO weeks start on Monday
        return (day - timedelta(days=day.weekday())).isoformat()
    if group_by == "month":
        return day.replace(day=1).isoformat()
    raise ValueError(f"Unknown groupBy: {group_by}")


def growth_percent(current, previous) -> float:
    """Change vs the previous period; 0 when there is nothing to compare with."""
    if not previous or previous <= 0:
        return 0.0
    return safe_percent(current - previous, previous)


# ------------------------------------------------------------------------------------------------------#
#                                       Risk                                                            #
# ------------------------------------------------------------------------------------------------------#

def compute_risk_score(metrics: ProviderRiskMetrics) -> int:
    score = 0.0
    score += max(0, 100 - metrics.trust_score) * 0.35
    score += min(metrics.unresolved_disputes * 15 + metrics.recent_disputes * 10, 100) * 0.25
    performance = max(0.0, (80 - metrics.completion_rate) + metrics.cancellation_rate)
    score += min(performance, 100) * 0.25
    score += min(metrics.total_suspensions * 20, 100) * 0.10
    score -= min(metrics.days_active / 365 * 20, 20) * 0.05
    return max(0, min(100, int(math.floor(score + 0.5))))


def risk_level(score: int) -> RiskLevel:
    for threshold, level in RISK_THRESHOLDS:
        if score >= threshold:
            return level
    return RiskLevel.LOW


def risk_factors(metrics: ProviderRiskMetrics) -> List[str]:
    factors = []
    if metrics.trust_score < 40:
        factors.append("Low trust score")
    if metrics.unresolved_disputes:
        factors.append(f"{metrics.unresolved_disputes} open dispute(s)")
    if metrics.total_bookings >= 5 and metrics.cancellation_rate > 20:
        factors.append("High cancellation rate")
    if metrics.total_bookings >= 5 and metrics.completion_rate < 60:
        factors.append("Low completion rate")
    if metrics.total_suspensions:
        factors.append("Previously suspended")
    if metrics.days_active < 30:
        factors.append("New provider")
    return factors


# ------------------------------------------------------------------------------------------------------#
#                                       Export                                                          #
# ------------------------------------------------------------------------------------------------------#

def _csv_field(value) -> str:
    if value is None:
        value = ""
    return '"' + str(value).replace('"', '""') + '"'


def to_csv(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    """Every field double-quoted, embedded quotes doubled, one header row."""
    lines = [",".join(_csv_field(h) for h in headers)]
    for row in rows:
        lines.append(",".join(_csv_field(v) for v in row))
    return "\n".join(lines)


def to_json(rows: Iterable, indent: Optional[int] = 2) -> str:
    payload = [
        row.model_dump(mode="json", by_alias=True) if hasattr(row, "model_dump") else row
        for row in rows
    ]
    return json.dumps(payload, indent=indent, default=str)


def fee_row_values(row: FeeReportRow) -> list:
    return [
        row.booking_id,
        row.status,
        row.paid_at.isoformat(),
        row.service_title,
        row.provider_name,
        row.customer_email,
        f"{row.total_amount / 100:.2f}",
        f"{row.platform_fee / 100:.2f}",
        f"{row.gst_amount / 100:.2f}",
        f"{row.net_to_provider / 100:.2f}",
    ]


def fee_report_csv(rows: Iterable[FeeReportRow]) -> str:
    return to_csv(FEE_REPORT_HEADERS, (fee_row_values(r) for r in rows))


def to_html(title: str, headers: Sequence[str], rows: Iterable[Sequence], generated_at: Optional[datetime] = None) -> str:
    template = _env.get_template("fees_report.html")
    return template.render(
        title=title,
        headers=list(headers),
        rows=[list(r) for r in rows],
        generated_at=(generated_at or datetime.utcnow()).strftime("%Y-%m-%d %H:%M UTC"),
    )


def fee_report_html(rows: Iterable[FeeReportRow], generated_at: Optional[datetime] = None) -> str:
    return to_html("Platform Fees Report", FEE_REPORT_HEADERS, (fee_row_values(r) for r in rows), generated_at)


def export_filename(prefix: str, ext: str, today: Optional[date] = None) -> str:
    """fees-report-2024-05-01.csv"""
    today = today or datetime.utcnow().date()
    return f"{prefix}-{today.isoformat()}.{ext.lstrip('.')}"


EXPORT_MEDIA_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "html": "text/html",
}


def render_fee_export(rows: List[FeeReportRow], fmt: str, today: Optional[date] = None) -> Tuple[str, str, str]:
    """(content, media_type, filename) for a fee report export"""
    if fmt == "csv":
        content = fee_report_csv(rows)
    elif fmt == "json":
        content = to_json(rows)
    elif fmt == "html":
        content = fee_report_html(rows)
    else:
        raise ValueError(f"Unsupported export format: {fmt}")
    return content, EXPORT_MEDIA_TYPES[fmt], export_filename("fees-report", fmt, today)
