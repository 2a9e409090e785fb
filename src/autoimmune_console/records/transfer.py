"""Spreadsheet import and export of disease entries."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd
from tqdm import tqdm

from autoimmune_console.client.schemas import Entry
from autoimmune_console.config import config
from autoimmune_console.config.constants import (
    EXPORT_COLUMNS,
    EXPORT_COLUMN_WIDTHS,
    IMPORT_COLUMN_ALIASES,
)
from autoimmune_console.config.logging_config import get_logger
from autoimmune_console.errors import EntryValidationError
from autoimmune_console.records.validation import validate_entry

logger = get_logger("transfer")

READABLE_SUFFIXES = {".csv", ".xlsx", ".xls"}


@dataclass
class RowError:
    """Validation errors for one spreadsheet row."""

    row: int
    errors: Dict[str, str]

    def describe(self) -> str:
        details = "; ".join(f"{name}: {message}" for name, message in self.errors.items())
        return f"Row {self.row}: {details}"


@dataclass
class ImportReport:
    """Result of reading an import file."""

    source: Path
    entries: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)
    blank_rows: int = 0
    unmapped_columns: List[str] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.entries) + len(self.errors) + self.blank_rows

    @property
    def is_clean(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        return (
            f"{self.source.name}: {len(self.entries)} valid, "
            f"{len(self.errors)} invalid, {self.blank_rows} blank"
        )


def _read_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix not in READABLE_SUFFIXES:
        raise ValueError(f"Unsupported import file type: {path.suffix or path.name}")
    if suffix == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    else:
        df = pd.read_excel(path, dtype=str, engine="openpyxl")
    return df.fillna("")


def normalize_columns(columns: Iterable[str]) -> Dict[str, str]:
    """
    Map spreadsheet headers to entry field names.

    Headers are matched case-insensitively after trimming. Headers with no
    alias map to themselves and are imported as additional fields.
    """
    mapping = {}
    for column in columns:
        key = str(column).strip().lower()
        mapping[column] = IMPORT_COLUMN_ALIASES.get(key, str(column).strip())
    return mapping


def read_entry_file(path: Path) -> ImportReport:
    """
    Read a CSV or Excel file into validated entry payloads.

    Blank rows are skipped. Every other row is validated; rows that fail are
    reported with their 1-based spreadsheet row number (header is row 1) and
    left out of ``entries``.

    Args:
        path: CSV, XLSX or XLS file.

    Returns:
        ImportReport with valid payloads and per-row errors.
    """
    path = Path(path)
    df = _read_frame(path)
    columns = normalize_columns(df.columns)
    known = set(IMPORT_COLUMN_ALIASES.values())
    report = ImportReport(source=path)
    report.unmapped_columns = [name for name in columns.values() if name not in known]

    for position, record in enumerate(df.to_dict(orient="records")):
        row_number = position + 2
        values = {columns[column]: str(value).strip() for column, value in record.items()}
        if not any(values.values()):
            report.blank_rows += 1
            continue

        payload: Dict[str, Any] = {name: value for name, value in values.items() if name in known}
        additional = [
            (name, value) for name, value in values.items() if name not in known and value
        ]
        if additional:
            payload["additional"] = additional

        try:
            report.entries.append(validate_entry(payload))
        except EntryValidationError as e:
            report.errors.append(RowError(row=row_number, errors=e.errors))

    logger.info(report.summary())
    for error in report.errors:
        logger.debug(error.describe())
    return report


async def upload_entries(
    service: Any,
    entries: List[Dict[str, Any]],
    batch_size: Optional[int] = None,
    show_progress: bool = True,
) -> Dict[str, int]:
    """
    Send validated payloads to the bulk import endpoint in batches.

    Args:
        service: QueryServiceClient (or anything with ``bulk_import``).
        entries: Payloads from ``read_entry_file``.
        batch_size: Entries per request (default from config).
        show_progress: Show a tqdm progress bar.

    Returns:
        Counts of ``batches`` sent and ``imported`` entries reported by the service.
    """
    batch_size = batch_size or config.data.import_batch_size
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    stats = {"batches": 0, "imported": 0}
    if not entries:
        return stats

    with tqdm(total=len(entries), desc="Importing entries", unit="entry", disable=not show_progress) as pbar:
        for start in range(0, len(entries), batch_size):
            batch = entries[start:start + batch_size]
            result = await service.bulk_import(batch)
            stats["batches"] += 1
            stats["imported"] += int((result or {}).get("count", len(batch)))
            pbar.update(len(batch))

    logger.info(f"Imported {stats['imported']} entries in {stats['batches']} batch(es)")
    return stats


def entries_to_frame(entries: Iterable[Any]) -> pd.DataFrame:
    """
    Tabulate entries for export.

    Known columns come first in a fixed order; flattened additional fields
    follow in first-seen order.
    """
    rows = []
    for entry in entries:
        if not isinstance(entry, Entry):
            entry = Entry.model_validate(entry)
        rows.append(entry.to_row())

    df = pd.DataFrame(rows)
    if df.empty:
        return pd.DataFrame(columns=EXPORT_COLUMNS)
    extra = [column for column in df.columns if column not in EXPORT_COLUMNS]
    ordered = [column for column in EXPORT_COLUMNS if column in df.columns] + extra
    return df[ordered]


class EntryExporter:
    """Write entries to local CSV or Excel files."""

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = Path(output_dir or config.data.exports_path)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _default_name(self, suffix: str) -> str:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"autoimmune_entries_{timestamp}.{suffix}"

    def export_to_csv(self, entries: Iterable[Any], filename: Optional[str] = None) -> Path:
        df = entries_to_frame(entries)
        filepath = self.output_dir / (filename or self._default_name("csv"))
        df.to_csv(filepath, index=False, encoding="utf-8")
        logger.info(f"Exported {len(df)} entries to {filepath}")
        return filepath

    def export_to_excel(
        self,
        entries: Iterable[Any],
        filename: Optional[str] = None,
        include_summary_sheet: bool = True,
    ) -> Path:
        """
        Export entries to a formatted workbook.

        Sheets: "Entries" (all columns) and, optionally, "Summary" with
        per-disease counts.
        """
        df = entries_to_frame(entries)
        filepath = self.output_dir / (filename or self._default_name("xlsx"))

        with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Entries", index=False)
            self._format_sheet(writer.sheets["Entries"], EXPORT_COLUMN_WIDTHS)

            if include_summary_sheet:
                summary_df = self._create_summary_df(df)
                summary_df.to_excel(writer, sheet_name="Summary", index=False)
                self._format_sheet(writer.sheets["Summary"], {"Metric": 36, "Value": 14})

        logger.info(f"Exported {len(df)} entries to Excel: {filepath}")
        return filepath

    def _format_sheet(self, worksheet, column_widths: Dict[str, int]) -> None:
        from openpyxl.styles import Alignment, Font, PatternFill

        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")

        for cell in worksheet[1]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")
            width = column_widths.get(cell.value)
            if width:
                worksheet.column_dimensions[cell.column_letter].width = width

        worksheet.freeze_panes = "A2"
        worksheet.auto_filter.ref = worksheet.dimensions

    def _create_summary_df(self, df: pd.DataFrame) -> pd.DataFrame:
        stats = [{"Metric": "Total Entries", "Value": len(df)}]
        for column, label in (
            ("disease", "Unique Diseases"),
            ("autoantibody", "Unique Autoantibodies"),
            ("autoantigen", "Unique Autoantigens"),
        ):
            if column in df.columns:
                stats.append({"Metric": label, "Value": int(df[column].nunique())})

        if "disease" in df.columns and len(df) > 0:
            for disease, count in df["disease"].value_counts().items():
                stats.append({"Metric": f"Entries: {disease}", "Value": int(count)})

        return pd.DataFrame(stats, columns=["Metric", "Value"])
