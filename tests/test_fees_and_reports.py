import json
from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from src.commonUtils.enumUtils import RiskLevel
from src.commonUtils.feeUtil import (
    booking_payment_breakdown,
    calculate_customer_service_fee,
    calculate_gst_component,
    calculate_platform_fee,
    parse_metadata_int,
)
from src.commonUtils.reportUtil import (
    bucket_by_provider,
    bucket_daily,
    compute_risk_score,
    export_filename,
    fee_report_html,
    growth_percent,
    period_key,
    render_fee_export,
    risk_level,
    safe_percent,
    summarize,
    to_csv,
)
from src.crud.reportService import build_fee_row, build_revenue_analytics, build_risk_metrics
from src.schemas.reportSchema import FeeReportRow, ProviderRiskMetrics

from factories import booking_doc


def fee_row(provider="Ace Plumbing", total=5000, fee=500, paid_at=datetime(2024, 5, 1, 10, 0), **kw):
    return FeeReportRow(
        booking_id=kw.pop("booking_id", "b1"),
        status="paid",
        paid_at=paid_at,
        service_title="Tap repair",
        provider_name=provider,
        customer_email="c@example.com",
        total_amount=total,
        platform_fee=fee,
        gst_amount=kw.pop("gst", 0),
        net_to_provider=total - fee,
    )


# ==========================================================
# FEES
# ==========================================================

class TestServiceFee:

    @pytest.mark.parametrize("price,fee", [
        (500, 300),
        (999, 300),
        (1000, 500),
        (1999, 500),
        (5000, 250),
        (100000, 1500),
    ])
    def test_nzd_tiers(self, price, fee):
        assert calculate_customer_service_fee(price) == fee

    def test_other_currency_is_plain_percentage(self):
        assert calculate_customer_service_fee(5000, "aud") == 250

    def test_breakdown(self):
        assert booking_payment_breakdown(5000) == {
            "service_price_cents": 5000,
            "service_fee_cents": 250,
            "total_cents": 5250,
            "platform_fee_cents": 500,
        }


def test_platform_fee_rounds_up():
    assert calculate_platform_fee(1234) == 124
    assert calculate_platform_fee(5000) == 500
    assert calculate_platform_fee(-5) == 0


def test_gst_component():
    assert calculate_gst_component(11500, True) == 1500
    assert calculate_gst_component(11500, False) == 0


@pytest.mark.parametrize("metadata,expected", [
    ({"servicePriceCents": "4200"}, 4200),
    ({"servicePriceCents": 4200}, 4200),
    ({"servicePriceCents": "abc"}, None),
    ({"servicePriceCents": True}, None),
    ({}, None),
    (None, None),
])
def test_parse_metadata_int(metadata, expected):
    assert parse_metadata_int(metadata, "servicePriceCents") == expected


# ==========================================================
# RATIOS AND BUCKETS
# ==========================================================

def test_safe_percent_never_returns_nan():
    assert safe_percent(5, 0) == 0.0
    assert safe_percent(0, 0) == 0.0
    assert safe_percent(1, 3) == 33.33


def test_growth_without_previous_period():
    assert growth_percent(1000, 0) == 0.0
    assert growth_percent(1500, 1000) == 50.0


def test_buckets_and_summary():
    rows = [
        fee_row("Ace Plumbing", 5000, 500, datetime(2024, 5, 1, 9)),
        fee_row("Ace Plumbing", 3000, 300, datetime(2024, 5, 2, 9)),
        fee_row("Bright Sparks", 2000, 200, datetime(2024, 5, 1, 15)),
    ]

    daily = bucket_daily(rows)
    assert [b.day for b in daily] == [date(2024, 5, 1), date(2024, 5, 2)]
    assert daily[0].gross == 7000
    assert daily[0].booking_count == 2

    providers = bucket_by_provider(rows)
    assert [p.provider_name for p in providers] == ["Ace Plumbing", "Bright Sparks"]
    assert providers[0].contribution == 80.0
    assert providers[1].fee_rate == 10.0

    summary = summarize(rows)
    assert summary.total_gross == 10000
    assert summary.net_to_providers == 9000
    assert summary.average_fee_rate == 10.0


def test_summary_of_nothing():
    summary = summarize([])
    assert summary.booking_count == 0
    assert summary.average_fee_rate == 0.0


@pytest.mark.parametrize("group_by,expected", [
    ("day", "2024-05-16"),
    ("week", "2024-05-13"),
    ("month", "2024-05-01"),
])
def test_period_key(group_by, expected):
    assert period_key(datetime(2024, 5, 16, 8), group_by) == expected


# ==========================================================
# EXPORT
# ==========================================================

def test_csv_quotes_every_field():
    csv = to_csv(["Name", "Note"], [['Say "hi"', None]])
    assert csv == '"Name","Note"\n"Say ""hi""",""'


def test_export_filename():
    assert export_filename("fees-report", "csv", date(2024, 5, 1)) == "fees-report-2024-05-01.csv"


def test_render_fee_export_formats():
    rows = [fee_row()]

    content, media_type, filename = render_fee_export(rows, "csv", date(2024, 5, 1))
    assert media_type == "text/csv"
    assert filename == "fees-report-2024-05-01.csv"
    assert content.splitlines()[1].startswith('"b1","paid"')
    assert '"50.00","5.00","0.00","45.00"' in content

    content, media_type, _ = render_fee_export(rows, "json", date(2024, 5, 1))
    assert media_type == "application/json"
    assert json.loads(content)[0]["totalAmount"] == 5000

    with pytest.raises(ValueError):
        render_fee_export(rows, "xlsx")


def test_html_export_escapes_values():
    html = fee_report_html([fee_row(provider="<b>Ace</b>")], generated_at=datetime(2024, 5, 1, 12))
    assert "Platform Fees Report" in html
    assert "&lt;b&gt;Ace&lt;/b&gt;" in html
    assert "2024-05-01 12:00 UTC" in html


# ==========================================================
# RISK
# ==========================================================

def test_risk_score_for_new_provider():
    score = compute_risk_score(ProviderRiskMetrics())
    assert score == 38
    assert risk_level(score) == RiskLevel.MEDIUM


@pytest.mark.parametrize("score,level", [
    (0, RiskLevel.LOW),
    (29, RiskLevel.LOW),
    (30, RiskLevel.MEDIUM),
    (60, RiskLevel.HIGH),
    (80, RiskLevel.CRITICAL),
])
def test_risk_levels(score, level):
    assert risk_level(score) == level


# ==========================================================
# REPORT BUILDERS
# ==========================================================

def test_build_fee_row_with_gst():
    booking = booking_doc("paid", paid_at=datetime(2024, 5, 1, 10))
    row = build_fee_row(booking, "Ace Plumbing", "c@example.com", charges_gst=True)

    assert row.total_amount == 5000
    assert row.platform_fee == 500
    assert row.gst_amount == 652
    assert row.net_to_provider == 4500


def test_build_fee_row_prefers_quote():
    booking = booking_doc("completed", provider_quoted_price=8000, paid_at=datetime(2024, 5, 1, 10))
    row = build_fee_row(booking, "Ace Plumbing", "c@example.com")
    assert row.total_amount == 8000
    assert row.gst_amount == 0


def test_revenue_analytics():
    now = datetime(2024, 5, 31, 12)
    bookings = [
        booking_doc("paid", paid_at=datetime(2024, 5, 25, 9)),
        booking_doc("refunded", paid_at=datetime(2024, 5, 26, 9), price_at_booking=10000),
        booking_doc("completed", paid_at=datetime(2024, 5, 20, 9)),
        booking_doc("paid", paid_at=datetime(2024, 1, 1, 9)),
    ]

    analytics = build_revenue_analytics(bookings, "7d", "day", now)
    stats = analytics.overall_stats

    assert [t.period for t in analytics.revenue_trends] == ["2024-05-25", "2024-05-26"]
    assert stats.total_revenue == 15000
    assert stats.total_bookings == 2
    assert stats.total_platform_fees == 1500
    assert stats.total_refunds == 10000
    assert stats.net_revenue == -8500
    assert stats.revenue_growth == 200.0
    assert stats.booking_growth == 100.0


def test_revenue_analytics_rejects_unknown_timeframe():
    with pytest.raises(ValueError):
        build_revenue_analytics([], "2w", "day", datetime(2024, 5, 31))


def test_risk_metrics():
    now = datetime(2024, 5, 31)
    provider = SimpleNamespace(trust_score=70, total_suspensions=1, created_at=now - timedelta(days=10))
    bookings = [
        booking_doc("completed"),
        booking_doc("completed"),
        booking_doc("canceled_provider"),
        booking_doc("disputed", updated_at=now - timedelta(days=3)),
    ]

    metrics = build_risk_metrics(provider, bookings, now)

    assert metrics.completion_rate == 50.0
    assert metrics.cancellation_rate == 25.0
    assert metrics.unresolved_disputes == 1
    assert metrics.recent_disputes == 1
    assert metrics.days_active == 10


def test_risk_metrics_without_bookings():
    now = datetime(2024, 5, 31)
    provider = SimpleNamespace(trust_score=50, total_suspensions=0, created_at=now)
    metrics = build_risk_metrics(provider, [], now)
    assert metrics.completion_rate == 0.0
    assert metrics.cancellation_rate == 0.0
