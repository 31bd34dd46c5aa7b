"""
Upload Workbook Reader

Reads exported marketplace reports (.xlsx / .xls / .csv) into UploadRows.
Exports put a few title lines above the real header, so the header row is
located by scanning for the column map's anchor label.
"""

import csv
import io
from enum import Enum
from pathlib import Path
from typing import IO, Any, List, Optional, Union

import pandas as pd
import structlog

from shop_performance.config import get_settings
from shop_performance.exceptions import WorkbookError
from shop_performance.ingestion.columns import AdjustmentMap, ColumnMap
from shop_performance.ingestion.parsers import is_blank
from shop_performance.models import UploadRow

logger = structlog.get_logger(__name__)

Source = Union[str, Path, IO[bytes]]
Layout = Union[ColumnMap, AdjustmentMap]


class FileFormat(str, Enum):
    """Supported upload formats"""
    XLSX = "xlsx"
    XLS = "xls"
    CSV = "csv"

    @classmethod
    def from_name(cls, filename: str) -> "FileFormat":
        suffix = Path(filename).suffix.lower().lstrip(".")
        try:
            return cls(suffix)
        except ValueError:
            raise WorkbookError(f"Unsupported file type: '{filename}'") from None


def _read_csv_grid(source: Source) -> pd.DataFrame:
    # Title lines are shorter than the header, so rows are padded by DataFrame
    if isinstance(source, (str, Path)):
        with open(source, newline="", encoding="utf-8-sig") as fh:
            rows = list(csv.reader(fh))
    else:
        text = io.TextIOWrapper(source, encoding="utf-8-sig", newline="")
        try:
            rows = list(csv.reader(text))
        finally:
            text.detach()
    return pd.DataFrame(rows, dtype=object)


def _read_grid(source: Source, file_format: FileFormat, sheet_name: Optional[str]) -> pd.DataFrame:
    """Read the whole sheet without interpreting any row as header"""
    try:
        if file_format == FileFormat.CSV:
            return _read_csv_grid(source)
        return pd.read_excel(
            source,
            sheet_name=sheet_name if sheet_name is not None else 0,
            header=None,
            dtype=object,
        )
    except (ValueError, OSError, csv.Error) as e:
        raise WorkbookError(f"Could not read upload: {e}") from e


def find_header_row(grid: pd.DataFrame, column_map: Layout, scan_rows: int) -> int:
    """Index of the first row (within scan_rows) holding one of the table's anchor labels"""
    anchors = column_map.anchors
    for index in range(min(scan_rows, len(grid))):
        for cell in grid.iloc[index].tolist():
            if isinstance(cell, str) and any(anchor.matches(cell) for anchor in anchors):
                return index
    labels = " / ".join(f"'{anchor.label}'" for anchor in anchors)
    raise WorkbookError(
        f"Header row not found: no {labels} column in the first {scan_rows} rows"
    )


def _clean(value: Any) -> Any:
    return None if is_blank(value) else value


def read_upload(
    source: Source,
    column_map: Layout,
    filename: Optional[str] = None,
    sheet_name: Optional[str] = None,
    scan_rows: Optional[int] = None,
) -> List[UploadRow]:
    """
    Read an uploaded report into UploadRows.

    Args:
        source: Path or binary file object
        column_map: Table whose anchor labels identify the header row
        filename: Needed for file objects to pick the format
        sheet_name: Worksheet to read (first sheet by default)
        scan_rows: Rows searched for the header (settings default)

    Returns:
        One UploadRow per non-empty data row, numbered as in the sheet
    """
    name = filename or (str(source) if isinstance(source, (str, Path)) else None)
    if name is None:
        raise WorkbookError("filename is required when reading from a file object")
    file_format = FileFormat.from_name(name)
    scan_rows = scan_rows or get_settings().ingestion.header_scan_rows

    grid = _read_grid(source, file_format, sheet_name)
    header_index = find_header_row(grid, column_map, scan_rows)
    headers = [
        str(h).strip() if not is_blank(h) else "" for h in grid.iloc[header_index].tolist()
    ]

    rows: List[UploadRow] = []
    for offset, values in enumerate(grid.iloc[header_index + 1:].itertuples(index=False)):
        cells = {
            header: _clean(value)
            for header, value in zip(headers, values)
            if header
        }
        if all(v is None for v in cells.values()):
            continue
        # +2: 1-based numbering and the header row itself
        rows.append(UploadRow(row_number=header_index + offset + 2, cells=cells))

    logger.info(
        "Upload read",
        file=name,
        column_map=column_map.name,
        header_row=header_index + 1,
        data_rows=len(rows),
    )
    return rows
