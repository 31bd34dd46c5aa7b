"""
Report Ingestion Normalizer

Converts raw upload rows into typed ComprehensiveReport records.

Leniency policy:
- A malformed cell becomes 0 and the row is still ingested.
- Every substitution is recorded as a ParseIssue (row, column, raw value)
  and logged at warning level, so bad data stays discoverable.
- Rows without a parseable report date cannot be keyed and are skipped.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import polars as pl
import structlog

from shop_performance.config import get_settings
from shop_performance.exceptions import CellParseError
from shop_performance.ingestion.columns import ColumnMap
from shop_performance.ingestion.parsers import STRICT_PARSERS, is_blank, parse_report_date
from shop_performance.models import ComprehensiveReport, UploadRow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ParseIssue:
    """A cell that was replaced by 0"""
    row: int
    column: str
    field: str
    raw_value: Any
    reason: str


@dataclass(frozen=True)
class SkippedRow:
    """A row that produced no record"""
    row: int
    reason: str


@dataclass
class NormalizationResult:
    """Records produced from one upload, plus diagnostics"""
    records: List[ComprehensiveReport] = field(default_factory=list)
    issues: List[ParseIssue] = field(default_factory=list)
    skipped: List[SkippedRow] = field(default_factory=list)
    missing_columns: List[str] = field(default_factory=list)
    total_rows: int = 0

    @property
    def processed_rows(self) -> int:
        return len(self.records)

    @property
    def has_issues(self) -> bool:
        return bool(self.issues or self.skipped)

    def summary(self, max_details: Optional[int] = None) -> Dict[str, Any]:
        """Upload response body: counts plus the first skipped rows"""
        limit = max_details if max_details is not None else get_settings().ingestion.max_skipped_details
        return {
            "total_rows": self.total_rows,
            "processed_rows": self.processed_rows,
            "skipped_count": len(self.skipped),
            "issue_count": len(self.issues),
            "missing_columns": list(self.missing_columns),
            "skipped_details": [
                {"row": s.row, "reason": s.reason} for s in self.skipped[:limit]
            ],
        }

    def to_frame(self) -> pl.DataFrame:
        """Records as a polars DataFrame (one row per report)"""
        return reports_to_frame(self.records)


def reports_to_frame(records: Iterable[ComprehensiveReport]) -> pl.DataFrame:
    """Build a polars DataFrame from report records"""
    rows = []
    for record in records:
        row = asdict(record)
        row["platform"] = record.platform.value
        rows.append(row)
    if not rows:
        return pl.DataFrame(
            schema={
                "shop_id": pl.Utf8,
                "report_date": pl.Date,
                "total_revenue": pl.Int64,
                "cancelled_revenue": pl.Int64,
                "returned_revenue": pl.Int64,
            }
        )
    return pl.DataFrame(rows, infer_schema_length=None)


class ReportNormalizer:
    """
    Applies a ColumnMap to upload rows.

    Example:
        normalizer = ReportNormalizer(SHOPEE_DAILY_REPORT)
        result = normalizer.normalize(rows, shop_id="shop-1")
        for issue in result.issues:
            ...
    """

    def __init__(self, column_map: ColumnMap, emit_warnings: Optional[bool] = None):
        self.column_map = column_map
        if emit_warnings is None:
            emit_warnings = get_settings().ingestion.emit_parse_warnings
        self.emit_warnings = emit_warnings

    def _parse_cell(
        self,
        row: UploadRow,
        header: str,
        field_name: str,
        parser: str,
        issues: List[ParseIssue],
    ) -> Any:
        raw = row.cells.get(header)
        try:
            return STRICT_PARSERS[parser](raw)
        except CellParseError as e:
            issue = ParseIssue(
                row=row.row_number,
                column=header,
                field=field_name,
                raw_value=raw,
                reason=e.reason,
            )
            issues.append(issue)
            if self.emit_warnings:
                logger.warning(
                    "Malformed cell replaced with 0",
                    row=issue.row,
                    column=issue.column,
                    field=issue.field,
                    raw_value=repr(raw),
                )
            return 0

    def normalize_row(
        self,
        row: UploadRow,
        shop_id: str,
        resolved: Optional[Dict[str, Optional[str]]] = None,
        issues: Optional[List[ParseIssue]] = None,
    ) -> Optional[ComprehensiveReport]:
        """
        Normalize a single row.

        Returns None when the row has no usable report date.
        """
        if resolved is None:
            resolved = self.column_map.resolve(row.cells.keys())
        if issues is None:
            issues = []

        date_header = resolved.get("report_date")
        report_date = parse_report_date(row.cells.get(date_header)) if date_header else None
        if report_date is None:
            return None

        values: Dict[str, Any] = {}
        for spec in self.column_map.columns:
            header = resolved.get(spec.field)
            if header is None:
                continue  # absent column keeps the dataclass default (0)
            values[spec.field] = self._parse_cell(row, header, spec.field, spec.parser, issues)

        return ComprehensiveReport(
            shop_id=shop_id,
            report_date=report_date,
            platform=self.column_map.platform,
            **values,
        )

    def normalize(self, rows: Iterable[UploadRow], shop_id: str) -> NormalizationResult:
        """Normalize a batch; malformed data never aborts it"""
        rows = list(rows)
        result = NormalizationResult(total_rows=len(rows))
        if not rows:
            return result

        headers: List[str] = []
        for row in rows:
            for header in row.cells:
                if header not in headers:
                    headers.append(header)
        resolved = self.column_map.resolve(headers)
        result.missing_columns = [f for f, header in resolved.items() if header is None]
        if result.missing_columns:
            logger.info(
                "Columns absent from upload, defaulting to 0",
                column_map=self.column_map.name,
                fields=result.missing_columns,
            )

        for row in rows:
            if all(is_blank(v) for v in row.cells.values()):
                continue
            record = self.normalize_row(row, shop_id, resolved, result.issues)
            if record is None:
                date_header = resolved.get("report_date")
                raw = row.cells.get(date_header) if date_header else None
                reason = "Empty date column." if is_blank(raw) else f"Invalid date format: {raw}"
                result.skipped.append(SkippedRow(row=row.row_number, reason=reason))
                continue
            result.records.append(record)

        logger.info(
            "Upload normalized",
            column_map=self.column_map.name,
            shop_id=shop_id,
            total_rows=result.total_rows,
            processed=result.processed_rows,
            skipped=len(result.skipped),
            issues=len(result.issues),
        )
        return result


def normalize_rows(
    rows: Iterable[Dict[str, Any]],
    shop_id: str,
    column_map: ColumnMap,
    first_row_number: int = 1,
) -> NormalizationResult:
    """
    Convenience function for plain dict rows (label -> raw value).

    Row numbers in diagnostics start at `first_row_number`.
    """
    upload_rows = [
        UploadRow(row_number=first_row_number + i, cells=dict(cells))
        for i, cells in enumerate(rows)
    ]
    return ReportNormalizer(column_map).normalize(upload_rows, shop_id)
