from datetime import date
from typing import List, Optional, Tuple

from src.client.apiClient import ApiClient
from src.commonUtils.errorUtils import FetchFailure, ValidationFailure
from src.commonUtils.reportUtil import fee_rate, format_percent, render_fee_export
from src.schemas.reportSchema import FeeReport, FeeReportRow, ProviderFeeBucket


class FeesReportView:
    """Admin fees report. Exports are generated locally from the rows already loaded."""

    def __init__(self, api: ApiClient):
        self.api = api
        self.report: Optional[FeeReport] = None
        self.loading = False
        self.error: Optional[str] = None
        self.provider_search = ""

    async def load(self, range_from: date, range_to: date) -> bool:
        if range_to < range_from:
            self.error = ValidationFailure("The end date must be on or after the start date").message
            return False

        self.loading = True
        try:
            self.report = await self.api.fees_report(range_from, range_to)
            self.error = None
            return True
        except FetchFailure as e:
            self.error = e.message
            return False
        finally:
            self.loading = False

    def rows(self) -> List[FeeReportRow]:
        if self.report is None:
            return []
        search = self.provider_search.strip().lower()
        if not search:
            return list(self.report.rows)
        return [r for r in self.report.rows if search in r.provider_name.lower()]

    def provider_buckets(self) -> List[ProviderFeeBucket]:
        return list(self.report.by_provider) if self.report else []

    def fee_rate_display(self, fees: int, gross: int) -> str:
        return format_percent(fee_rate(fees, gross))

    def export(self, fmt: str, today: Optional[date] = None) -> Optional[Tuple[str, str, str]]:
        """(content, media_type, filename) for the visible rows, or None with `error` set"""
        rows = self.rows()
        if not rows:
            self.error = "There is nothing to export"
            return None
        try:
            return render_fee_export(rows, fmt, today)
        except ValueError as e:
            self.error = str(e)
            return None
