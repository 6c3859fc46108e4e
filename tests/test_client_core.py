from datetime import date
from types import SimpleNamespace

import httpx
import pytest

from src.client.apiClient import ApiClient
from src.client.clientConfig import ClientConfig
from src.client.optimisticList import OptimisticList
from src.client.reportViews import FeesReportView
from src.commonUtils.errorUtils import FetchFailure

from factories import Recorder


def item(item_id, **kw):
    return SimpleNamespace(id=item_id, **kw)


class Boom(Exception):
    pass


# ==========================================================
# OPTIMISTIC LIST
# ==========================================================

class TestOptimisticList:

    async def test_insert_swaps_in_confirmed_item(self):
        items = OptimisticList([item("a")])
        staged = item(items.next_temp_id())

        async def commit():
            assert [i.id for i in items.items] == ["a", "temp-1"]
            return item("b")

        confirmed = await items.insert(staged, commit)

        assert confirmed.id == "b"
        assert [i.id for i in items.items] == ["a", "b"]

    async def test_insert_rolls_back(self):
        items = OptimisticList([item("a")])

        async def commit():
            raise Boom()

        with pytest.raises(Boom):
            await items.insert(item("temp-1"), commit)
        assert [i.id for i in items.items] == ["a"]

    async def test_remove_restores_order(self):
        items = OptimisticList([item("a"), item("b"), item("c")])

        async def commit():
            raise Boom()

        with pytest.raises(Boom):
            await items.remove("b", commit)
        assert [i.id for i in items.items] == ["a", "b", "c"]

    async def test_patch_rolls_back(self):
        items = OptimisticList([item("a", done=False)])

        async def commit():
            raise Boom()

        with pytest.raises(Boom):
            await items.patch("a", lambda i: item(i.id, done=True), commit)
        assert items.get("a").done is False

    async def test_patch_rollback_keeps_list_installed_during_commit(self):
        items = OptimisticList([item("a", done=False)])

        async def commit():
            items.replace_all([item("a", done=False, source="server"), item("b", done=True)])
            raise Boom()

        with pytest.raises(Boom):
            await items.patch("a", lambda i: item(i.id, done=True), commit)
        assert [i.id for i in items.items] == ["a", "b"]
        assert items.get("a").source == "server"

    def test_temp_ids_are_unique(self):
        items = OptimisticList()
        assert items.next_temp_id() != items.next_temp_id()


# ==========================================================
# API CLIENT
# ==========================================================

class TestApiClient:

    async def test_empty_error_body_gets_status_message(self):
        recorder = Recorder({("GET", "/api/v1/bookings"): httpx.Response(500)})
        async with ApiClient(ClientConfig(base_url="http://test/api/v1"),
                             transport=httpx.MockTransport(recorder)) as api:
            with pytest.raises(FetchFailure) as exc:
                await api.list_bookings()

        assert exc.value.message == "Request failed with status 500"
        assert exc.value.status_code == 500
        assert "Authorization" not in recorder.requests[0].headers

    async def test_timeout_becomes_fetch_failure(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        recorder = Recorder({("GET", "/api/v1/bookings"): slow})
        async with ApiClient(ClientConfig(base_url="http://test/api/v1"),
                             transport=httpx.MockTransport(recorder)) as api:
            with pytest.raises(FetchFailure) as exc:
                await api.list_bookings()

        assert exc.value.message.startswith("Request timed out")

    async def test_empty_success_body(self, api, recorder):
        recorder.routes[("DELETE", "/api/v1/provider/time-off/t1")] = httpx.Response(204)
        assert await api.delete_time_off("t1") is None


# ==========================================================
# FEES REPORT VIEW
# ==========================================================

def fee_report_payload():
    row = {
        "bookingId": "b1",
        "status": "paid",
        "paidAt": "2024-05-01T10:00:00",
        "serviceTitle": "Tap repair",
        "providerName": "Ace Plumbing",
        "customerEmail": "c@example.com",
        "totalAmount": 5000,
        "platformFee": 500,
        "gstAmount": 0,
        "netToProvider": 4500,
    }
    other = dict(row, bookingId="b2", providerName="Bright Sparks")
    return {
        "from": "2024-05-01",
        "to": "2024-05-31",
        "rows": [row, other],
        "daily": [],
        "byProvider": [],
        "summary": {
            "totalGross": 10000, "totalFees": 1000, "totalGst": 0,
            "netToProviders": 9000, "bookingCount": 2, "averageFeeRate": 10.0,
        },
    }


class TestFeesReportView:

    async def test_load_filter_and_export(self, api, recorder):
        recorder.routes[("GET", "/api/v1/admin/reports/fees")] = httpx.Response(200, json=fee_report_payload())
        view = FeesReportView(api)

        assert await view.load(date(2024, 5, 1), date(2024, 5, 31)) is True
        assert recorder.requests[0].url.params["from"] == "2024-05-01"

        view.provider_search = "bright"
        assert [r.booking_id for r in view.rows()] == ["b2"]

        content, media_type, filename = view.export("csv", today=date(2024, 6, 1))
        assert media_type == "text/csv"
        assert filename == "fees-report-2024-06-01.csv"
        assert len(content.splitlines()) == 2

    async def test_reversed_range_makes_no_request(self, api, recorder):
        view = FeesReportView(api)

        assert await view.load(date(2024, 5, 31), date(2024, 5, 1)) is False
        assert recorder.requests == []
        assert view.error

    def test_nothing_to_export(self, api):
        view = FeesReportView(api)
        assert view.export("csv") is None
        assert view.error == "There is nothing to export"

    def test_fee_rate_display(self, api):
        view = FeesReportView(api)
        assert view.fee_rate_display(500, 5000) == "10.0%"
        assert view.fee_rate_display(500, 0) == "0.0%"
