# essencia-dashboard/csv_reports.py
"""
Parser for the performance report CSV.

Columns are positional: Player ID, Dia do Ciclo, Total Dias Ciclo, then one
Meta/Atual/% triplet per metric in config.CSV_METRIC_ORDER. Four metrics are
required (15 columns); Conversões (18) and UPA (21) are optional.
"""
import csv
import io
import logging
import math
import time
from datetime import date
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field

import config
from errors import ApiError, ErrorType
from models import ReportRecord

logger = logging.getLogger(__name__)

BASE_COLUMN_COUNT = len(config.CSV_BASE_COLUMNS)
TRIPLET_PARTS = ("meta", "atual", "percentual")
VALID_COLUMN_COUNTS = tuple(
    BASE_COLUMN_COUNT + 3 * n for n in range(config.CSV_REQUIRED_METRICS, len(config.CSV_METRIC_ORDER) + 1)
)


class ValidationIssue(BaseModel):
    row: int
    field: str
    message: str
    value: Optional[str] = None


class ParseResult(BaseModel):
    records: List[ReportRecord] = Field(default_factory=list)
    errors: List[ValidationIssue] = Field(default_factory=list)
    total_rows: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.errors


# --- File checks ---

def validate_file_format(filename: Optional[str], size: int) -> None:
    if not filename or not filename.lower().endswith(config.CSV_ALLOWED_EXTENSIONS):
        raise ApiError(ErrorType.VALIDATION_ERROR, "Only .csv files are accepted", details={"filename": filename})
    if size <= 0:
        raise ApiError(ErrorType.VALIDATION_ERROR, "The file is empty")
    if size > config.CSV_MAX_FILE_SIZE:
        raise ApiError(
            ErrorType.VALIDATION_ERROR,
            f"File exceeds the {config.CSV_MAX_FILE_SIZE // (1024 * 1024)}MB limit",
            details={"size": size},
        )

def decode_content(raw: bytes) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ApiError(ErrorType.VALIDATION_ERROR, "The file must be UTF-8 encoded")


# --- Cell parsing ---

def parse_number(cell: str) -> float:
    """Accepts '85', '85.5', '85,5', '1.234,5' and '85%'. Raises ValueError otherwise."""
    text = cell.strip().replace("%", "").replace(" ", "")
    if "," in text and "." in text:
        text = text.replace(".", "").replace(",", ".")
    elif "," in text:
        text = text.replace(",", ".")
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {cell}")
    return number

def parse_int(cell: str) -> int:
    number = parse_number(cell)
    if not number.is_integer():
        raise ValueError(f"not an integer: {cell}")
    return int(number)

def _detect_delimiter(content: str) -> str:
    first_line = next((line for line in content.splitlines() if line.strip()), "")
    return ";" if first_line.count(";") > first_line.count(",") else ","

def _is_header(cells: List[str]) -> bool:
    return bool(cells) and cells[0].strip().lower() == config.CSV_BASE_COLUMNS[0].lower()

def _trim_trailing(cells: List[str]) -> List[str]:
    while len(cells) not in VALID_COLUMN_COUNTS and cells and not cells[-1].strip():
        cells = cells[:-1]
    return cells


# --- Row parsing ---

def parse_row(cells: List[str], row_number: int, report_date: str) -> Tuple[Optional[ReportRecord], List[ValidationIssue]]:
    issues: List[ValidationIssue] = []

    def issue(field: str, message: str, value: Any = None):
        issues.append(ValidationIssue(row=row_number, field=field, message=message, value=None if value is None else str(value)))

    cells = _trim_trailing(cells)
    if len(cells) not in VALID_COLUMN_COUNTS:
        issue("row", f"Expected {', '.join(map(str, VALID_COLUMN_COUNTS))} columns, got {len(cells)}", len(cells))
        return None, issues

    player_id = cells[0].strip()
    if not player_id:
        issue("player_id", "Player ID is required")

    cycle_cell = cells[1].strip()
    cycle_day = None
    if not cycle_cell:
        issue("current_cycle_day", "Dia do Ciclo is required")
    else:
        try:
            cycle_day = parse_int(cycle_cell)
            if cycle_day < 0:
                issue("current_cycle_day", "Dia do Ciclo cannot be negative", cycle_cell)
        except ValueError:
            issue("current_cycle_day", "Dia do Ciclo must be an integer", cycle_cell)

    total_cell = cells[2].strip()
    total_days = config.DEFAULT_CYCLE_DAYS
    if total_cell:
        try:
            total_days = parse_int(total_cell)
            if total_days <= 0:
                issue("total_cycle_days", "Total Dias Ciclo must be positive", total_cell)
        except ValueError:
            issue("total_cycle_days", "Total Dias Ciclo must be an integer", total_cell)

    percentages = {}
    metric_count = (len(cells) - BASE_COLUMN_COUNT) // 3
    for index, metric in enumerate(config.CSV_METRIC_ORDER[:metric_count]):
        start = BASE_COLUMN_COUNT + index * 3
        for part, cell in zip(TRIPLET_PARTS, cells[start:start + 3]):
            if not cell.strip():
                continue
            field = f"{metric}_{part}"
            try:
                value = parse_number(cell)
            except ValueError:
                issue(field, f"{config.METRICS[metric]['display_name']} {part} must be a number", cell)
                continue
            if value < 0:
                issue(field, f"{config.METRICS[metric]['display_name']} {part} cannot be negative", cell)
            elif part == "percentual":
                percentages[metric] = value

    if issues:
        return None, issues

    record = ReportRecord(
        id=f"{player_id}_{report_date}",
        player_id=player_id,
        current_cycle_day=cycle_day,
        total_cycle_days=total_days,
        report_date=report_date,
        time=int(time.time() * 1000),
        **percentages,
    )
    return record, issues

def parse_report_csv(content: str, report_date: Optional[str] = None) -> ParseResult:
    report_date = report_date or date.today().isoformat()
    result = ParseResult()
    records_by_player = {}

    reader = csv.reader(io.StringIO(content.lstrip("\ufeff")), delimiter=_detect_delimiter(content))
    for cells in reader:
        row_number = reader.line_num
        if not any(cell.strip() for cell in cells):
            continue
        if _is_header(cells):
            continue
        result.total_rows += 1
        record, issues = parse_row(cells, row_number, report_date)
        result.errors.extend(issues)
        if record is None:
            continue
        if record.player_id in records_by_player:
            logger.warning("Player %s appears more than once, keeping row %d", record.player_id, row_number)
        records_by_player[record.player_id] = record

    result.records = list(records_by_player.values())
    logger.info("Parsed report CSV: %d rows, %d valid, %d errors", result.total_rows, len(result.records), len(result.errors))
    return result
