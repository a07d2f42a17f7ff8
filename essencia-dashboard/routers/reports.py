from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, ValidationError
from typing import Optional, List, Dict, Any
from datetime import date
import logging

import config
import csv_reports
import cycle_history
import funifier_client
import goal_config
import identification
import reconciler
from csv_reports import ValidationIssue
from errors import ApiError, ErrorType
from models import ReportRecord
from routers.auth import require_admin, require_token
from utils import parse_report_date, time_ago

router = APIRouter()
logger = logging.getLogger(__name__)

# --- Pydantic Models ---
class ValidateResponse(BaseModel):
    filename: str
    is_valid: bool
    total_rows: int
    valid_rows: int
    errors: List[ValidationIssue]
    preview: List[ReportRecord]

class UploadResponse(BaseModel):
    filename: str
    report_date: str
    total_rows: int
    imported: int
    unchanged: int
    rejected: int
    errors: List[ValidationIssue]
    differences: Dict[str, Dict[str, Any]]

class ReportHistoryItem(BaseModel):
    record: ReportRecord
    uploaded: str

class CycleHistoryResponse(BaseModel):
    cycles: List[cycle_history.CycleHistory]
    summary: cycle_history.CycleSummaryStats


def _read_csv(file: UploadFile, report_date: Optional[str] = None) -> csv_reports.ParseResult:
    raw = file.file.read()
    csv_reports.validate_file_format(file.filename, len(raw))
    return csv_reports.parse_report_csv(csv_reports.decode_content(raw), report_date)

def _team_metrics(team: Optional[str], token: str) -> Optional[List[str]]:
    if not team:
        return None
    team_type = identification.determine_team_type(team)
    if team_type is None:
        raise ApiError(ErrorType.VALIDATION_ERROR, f"Unknown team '{team}'")
    team_config = goal_config.load_dashboard_configuration(token).configurations[team_type]
    return [goal.name for goal in (team_config.primary_goal, team_config.secondary_goal1, team_config.secondary_goal2)]

def _player_cycles(player_id: str, team: Optional[str], token: str) -> List[cycle_history.CycleHistory]:
    metric_names = _team_metrics(team, token)
    return cycle_history.group_reports_into_cycles(funifier_client.get_registered_reports(player_id, token), metric_names)


# --- API Endpoints ---
@router.post("/reports/validate", response_model=ValidateResponse, tags=["Reports"])
def validate_report(file: UploadFile = File(...), token: str = Depends(require_admin)):
    """Parses and validates a report CSV without storing anything."""
    result = _read_csv(file)
    return ValidateResponse(
        filename=file.filename,
        is_valid=result.is_valid,
        total_rows=result.total_rows,
        valid_rows=len(result.records),
        errors=result.errors,
        preview=result.records[:10],
    )

@router.post("/reports/upload", response_model=UploadResponse, tags=["Reports"])
def upload_report(
    file: UploadFile = File(...),
    report_date: Optional[date] = Form(None),
    token: str = Depends(require_admin),
):
    """
    Imports a report CSV. Valid rows are compared with each player's latest
    stored report and only changed rows are written; invalid rows are reported.
    """
    report_day = (report_date or date.today()).isoformat()
    result = _read_csv(file, report_day)

    differences: Dict[str, Dict[str, Any]] = {}
    changed: List[ReportRecord] = []
    if result.records:
        latest = funifier_client.get_latest_reports_by_player([r.player_id for r in result.records], token)
        comparison = reconciler.compare_report_batch(result.records, latest)
        changed_ids = set(comparison.changed_player_ids)
        changed = [r for r in result.records if r.player_id in changed_ids]
        differences = {c.player_id: c.differences for c in comparison.comparisons if c.has_changes}

    if changed:
        funifier_client.bulk_insert_records(config.REPORT_COLLECTION, [r.to_document() for r in changed], token)

    rejected_rows = {issue.row for issue in result.errors}
    logger.info("Report upload %s: %d imported, %d rejected rows", file.filename, len(changed), len(rejected_rows))
    return UploadResponse(
        filename=file.filename,
        report_date=report_day,
        total_rows=result.total_rows,
        imported=len(changed),
        unchanged=len(result.records) - len(changed),
        rejected=len(rejected_rows),
        errors=result.errors,
        differences=differences,
    )

@router.get("/reports/{player_id}/history", response_model=List[ReportHistoryItem], tags=["Reports"])
def get_report_history(player_id: str, limit: int = 50, token: str = Depends(require_token)):
    items = []
    for document in funifier_client.get_player_report_history(player_id, token, limit=limit):
        try:
            record = ReportRecord.model_validate(document)
        except ValidationError:
            logger.warning("Skipping malformed report %s", document.get("_id"))
            continue
        items.append(ReportHistoryItem(record=record, uploaded=time_ago(parse_report_date(record.time))))
    return items

@router.get("/reports/{player_id}/cycles", response_model=CycleHistoryResponse, tags=["Reports"])
def get_cycle_history(player_id: str, team: Optional[str] = None, token: str = Depends(require_token)):
    """Reports grouped into cycles, most recent first, with summary stats."""
    cycles = _player_cycles(player_id, team, token)
    return CycleHistoryResponse(cycles=cycles, summary=cycle_history.cycle_summary_stats(cycles))

@router.get("/reports/{player_id}/cycles/compare", response_model=cycle_history.CycleComparison, tags=["Reports"])
def compare_cycles(player_id: str, cycle1: int, cycle2: int, team: Optional[str] = None, token: str = Depends(require_token)):
    return cycle_history.compare_cycles(_player_cycles(player_id, team, token), cycle1, cycle2)
